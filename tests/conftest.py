"""Pytest configuration for the backlog health analyzer."""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from src.backlog_health.engine.models import ScoringConfig

# Use static, absolute dates for predictable test results
NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
STORY_POINTS_FIELD = "customfield_10016"
INITIATIVE_FIELD = "customfield_20000"
LONG_DESCRIPTION = "As a user I want the backlog to be groomed " * 4


def iso_days_ago(days: float) -> str:
    return (NOW - timedelta(days=days)).isoformat().replace("+00:00", "Z")


def build_issue(
    key: str,
    *,
    created_days_ago: float = 10,
    updated_days_ago: float = 1,
    priority: Optional[str] = "Medium",
    points: Any = 3,
    description: Any = LONG_DESCRIPTION,
    flagged: bool = False,
    links: Optional[List[Dict[str, Any]]] = None,
    status: str = "To Do",
    category: str = "new",
    initiative: Any = None,
    parent: Optional[str] = None,
    issuetype: str = "Story",
    assignee: Optional[str] = None,
) -> Dict[str, Any]:
    """Builds a raw Jira issue payload."""
    fields: Dict[str, Any] = {
        "summary": f"Summary of {key}",
        "status": {"name": status, "statusCategory": {"key": category, "name": status}},
        "assignee": {"displayName": assignee} if assignee else None,
        "priority": {"name": priority, "id": "3"} if priority else None,
        "issuetype": {"name": issuetype, "subtask": False},
        "created": iso_days_ago(created_days_ago),
        "updated": iso_days_ago(updated_days_ago),
        "description": description,
        "flagged": flagged,
        "issuelinks": links or [],
        STORY_POINTS_FIELD: points,
    }
    if initiative is not None:
        fields[INITIATIVE_FIELD] = initiative
    if parent:
        fields["parent"] = {"key": parent}
    return {"id": f"id-{key}", "key": key, "fields": fields}


@pytest.fixture
def make_issue():
    """Factory for raw issues dated relative to NOW."""
    return build_issue


@pytest.fixture
def scoring_config() -> ScoringConfig:
    """Default config with the clock pinned to NOW."""
    return ScoringConfig(story_points_field=STORY_POINTS_FIELD, now=NOW)


@pytest.fixture
def initiative_config() -> ScoringConfig:
    """Config tracking initiatives through a custom field."""
    return ScoringConfig(
        story_points_field=STORY_POINTS_FIELD,
        initiative_field=INITIATIVE_FIELD,
        now=NOW,
    )


@pytest.fixture
def temp_data_dir(tmp_path) -> str:
    """Create a temporary data directory with a fetched backlog."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()

    issues = [
        build_issue("APP-1", points=5),
        build_issue("APP-2", points=0, updated_days_ago=70),
        build_issue("WEB-1", points=8, flagged=True),
    ]
    (data_dir / "backlog_raw.json").write_text(json.dumps(issues))
    (data_dir / "boards.json").write_text(
        json.dumps(
            [
                {"id": "1", "name": "App", "issueIds": ["id-APP-1", "id-APP-2"]},
                {"id": "2", "name": "Web", "issueIds": ["id-WEB-1"]},
            ]
        )
    )
    (data_dir / "velocity_history.json").write_text(
        json.dumps(
            [
                {"sprintId": 1, "sprintName": "S1", "committed": 10, "completed": 8,
                 "endDate": "2024-01-01T00:00:00Z"},
                {"sprintId": 2, "sprintName": "S2", "committed": 10, "completed": 12,
                 "endDate": "2024-01-14T00:00:00Z"},
            ]
        )
    )
    return str(data_dir)


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Mock environment variables for testing."""
    monkeypatch.setenv("JIRA_BASE_URL", "https://example.atlassian.net/")
    monkeypatch.setenv("JIRA_API_EMAIL", "bot@example.com")
    monkeypatch.setenv("JIRA_API_TOKEN", "test_token")
    monkeypatch.setenv("JIRA_BOARD_IDS", "1, 2")
    monkeypatch.setenv("READY_STATUSES", "Ready for Sprint,Groomed")
    monkeypatch.setenv("STALE_DAYS", "30")
