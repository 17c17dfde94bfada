# src/backlog_health/engine/scorer.py

"""Deterministic scoring system for backlog health."""

from typing import List, Sequence

from ..utils.helpers import now_utc, round_half_up
from .alerts import generate_alerts, stale_issues, unestimated_issues, zombie_issues
from .dimensions import (
    SCORERS,
    blocked_issues,
    ready_issues,
    strategic_allocation_ratio,
)
from .issue import Issue
from .models import BacklogHealthResult, Dimension, ScoringConfig


class BacklogHealthScorer:
    """Calculates a deterministic backlog health score from raw issues."""

    def __init__(self, config: ScoringConfig):
        """Initialize the scorer with a scoring configuration."""
        self.config = config

    def _pinned_config(self) -> ScoringConfig:
        """Fixes 'now' once so every time window in a run agrees."""
        if self.config.now is not None:
            return self.config
        return self.config.model_copy(update={"now": now_utc()})

    def calculate_dimensions(
        self, issues: Sequence[Issue], config: ScoringConfig
    ) -> List[Dimension]:
        """Scores every dimension independently, in display order."""
        return [scorer(issues, config) for scorer in SCORERS]

    @staticmethod
    def composite_score(dimensions: Sequence[Dimension]) -> int:
        """Sum of the per-dimension rounded weighted scores."""
        return round_half_up(sum(d.weighted_score for d in dimensions))

    def score(self, issues: Sequence[Issue]) -> BacklogHealthResult:
        """Calculates the overall backlog health."""
        config = self._pinned_config()
        issues = list(issues)

        dimensions = self.calculate_dimensions(issues, config)
        alerts = generate_alerts(issues, config)

        return BacklogHealthResult(
            issues=issues,
            health_score=self.composite_score(dimensions),
            dimensions=tuple(dimensions),
            alerts=tuple(alerts),
            total_items=len(issues),
            ready_items=len(ready_issues(issues, config)),
            blocked_items=len(blocked_issues(issues)),
            estimated_items=len(issues) - len(unestimated_issues(issues, config)),
            stale_items=len(stale_issues(issues, config)),
            zombie_items=len(zombie_issues(issues, config)),
            strategic_allocation_pct=round_half_up(
                strategic_allocation_ratio(issues, config) * 100
            ),
        )


def score_backlog_health(
    issues: Sequence[Issue], config: ScoringConfig
) -> BacklogHealthResult:
    """Functional entry point: score `issues` under `config`."""
    return BacklogHealthScorer(config).score(issues)
