# src/backlog_health/engine/models.py

"""Value objects exchanged with the backlog health engine."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, field_validator

DEFAULT_STORY_POINTS_FIELD = "customfield_10016"
MAX_ALERT_ISSUES = 20


class ScoringConfig(BaseModel):
    """Thresholds and field identifiers for one scoring run."""

    stale_days: int = 60
    zombie_days: int = 90
    story_points_field: str = DEFAULT_STORY_POINTS_FIELD
    initiative_field: Optional[str] = None
    ready_statuses: Tuple[str, ...] = ()
    avg_velocity: Optional[float] = None
    # Epics whose own parent is an initiative; children inherit the link.
    initiative_linked_epic_keys: FrozenSet[str] = frozenset()
    # Pin the clock for reproducible runs; None means "now".
    now: Optional[datetime] = None

    model_config = {"frozen": True}

    @field_validator("initiative_field", mode="before")
    @classmethod
    def blank_field_is_unset(cls, value: Any) -> Optional[str]:
        """Treat an empty field identifier as not configured."""
        if isinstance(value, str) and not value.strip():
            return None
        return value


class AlertType(str, Enum):
    STALE = "stale"
    ZOMBIE = "zombie"
    UNESTIMATED = "unestimated"
    PRIORITY_INFLATION = "priority_inflation"
    BLOCKED = "blocked"
    LOW_READINESS = "low_readiness"
    NO_INITIATIVE = "no_initiative"
    LOW_SPRINT_COVERAGE = "low_sprint_coverage"


class Dimension(BaseModel):
    """One weighted component of the health score."""

    name: str
    weight: float
    score: int
    weighted_score: int
    detail: str

    model_config = {"frozen": True}


class Alert(BaseModel):
    """A threshold breach with a drill-down sample of issue keys."""

    type: AlertType
    message: str
    count: int
    issues: Tuple[str, ...] = ()

    model_config = {"frozen": True}

    @field_validator("issues", mode="before")
    @classmethod
    def cap_issue_keys(cls, value: Any) -> Tuple[str, ...]:
        return tuple(value or ())[:MAX_ALERT_ISSUES]


class BacklogHealthResult(BaseModel):
    """Outcome of scoring a backlog."""

    issues: List[Dict[str, Any]]
    health_score: int
    dimensions: Tuple[Dimension, ...]
    alerts: Tuple[Alert, ...]
    total_items: int
    ready_items: int
    blocked_items: int
    estimated_items: int
    stale_items: int
    zombie_items: int
    strategic_allocation_pct: int

    model_config = {"frozen": True}

    @property
    def ready_pct(self) -> int:
        return round(100 * self.ready_items / self.total_items) if self.total_items else 0

    @property
    def blocked_pct(self) -> int:
        return (
            round(100 * self.blocked_items / self.total_items) if self.total_items else 0
        )

    def alert(self, alert_type: AlertType) -> Optional[Alert]:
        """Returns the alert of the given type, if it fired."""
        for alert in self.alerts:
            if alert.type == alert_type:
                return alert
        return None

    def to_summary(self) -> Dict[str, Any]:
        """JSON-ready view without the raw issues."""
        return {
            "healthScore": self.health_score,
            "dimensions": [
                {
                    "name": d.name,
                    "weight": d.weight,
                    "score": d.score,
                    "weightedScore": d.weighted_score,
                    "detail": d.detail,
                }
                for d in self.dimensions
            ],
            "alerts": [
                {
                    "type": a.type.value,
                    "message": a.message,
                    "count": a.count,
                    "issues": list(a.issues),
                }
                for a in self.alerts
            ],
            "stats": {
                "totalItems": self.total_items,
                "readyItems": self.ready_items,
                "blockedItems": self.blocked_items,
                "estimatedItems": self.estimated_items,
                "staleItems": self.stale_items,
                "zombieItems": self.zombie_items,
                "strategicAllocationPct": self.strategic_allocation_pct,
                "readyPct": self.ready_pct,
                "blockedPct": self.blocked_pct,
            },
        }
