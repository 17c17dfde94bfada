# src/backlog_health/config/settings.py
"""Settings and environment variables for the backlog health analyzer."""

from typing import Annotated, Any, List, Optional, Tuple

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode

from ..engine.models import DEFAULT_STORY_POINTS_FIELD, ScoringConfig

# Load environment variables from .env file
load_dotenv()


class MissingSettingError(ValueError):
    """A required environment variable is not set."""

    def __init__(self, name: str):
        super().__init__(f"Missing required environment variable: {name}")
        self.name = name


class Settings(BaseSettings):
    """Application settings."""

    jira_base_url: Optional[str] = None
    jira_api_email: Optional[str] = None
    jira_api_token: Optional[str] = None
    jira_board_ids: Annotated[List[str], NoDecode] = []

    stale_days: int = 60
    zombie_days: int = 90
    wip_limit: int = 3
    story_points_field: Optional[str] = None
    initiative_field: Optional[str] = None
    ready_statuses: Annotated[List[str], NoDecode] = []
    velocity_sprint_count: int = 6

    model_config = {"env_file": ".env", "extra": "ignore"}

    @field_validator("jira_board_ids", "ready_statuses", mode="before")
    @classmethod
    def split_comma_list(cls, value: Any) -> List[str]:
        """Parse 'A, B,C' into ['A', 'B', 'C']."""
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @field_validator("jira_base_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, value: Optional[str]) -> Optional[str]:
        return value.rstrip("/") if value else None

    @field_validator("story_points_field", "initiative_field", mode="before")
    @classmethod
    def empty_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value.strip() or None if isinstance(value, str) else value

    def jira_auth(self) -> Tuple[str, str, str]:
        """Returns (base_url, email, token), raising if any is missing."""
        required = {
            "JIRA_BASE_URL": self.jira_base_url,
            "JIRA_API_EMAIL": self.jira_api_email,
            "JIRA_API_TOKEN": self.jira_api_token,
        }
        for name, value in required.items():
            if not value:
                raise MissingSettingError(name)
        return self.jira_base_url, self.jira_api_email, self.jira_api_token

    def resolved_story_points_field(self) -> str:
        return self.story_points_field or DEFAULT_STORY_POINTS_FIELD

    def scoring_config(
        self,
        initiative_field: Optional[str] = None,
        avg_velocity: Optional[float] = None,
        **overrides: Any,
    ) -> ScoringConfig:
        """Builds the engine configuration from these settings.

        `initiative_field` is the discovered field, used when none is set here.
        """
        values = {
            "stale_days": self.stale_days,
            "zombie_days": self.zombie_days,
            "story_points_field": self.resolved_story_points_field(),
            "initiative_field": self.initiative_field or initiative_field,
            "ready_statuses": tuple(self.ready_statuses),
            "avg_velocity": avg_velocity,
        }
        values.update(overrides)
        return ScoringConfig(**values)


def get_settings() -> Settings:
    """Get the application settings."""
    # Pydantic will automatically handle loading from .env and validation
    return Settings()
