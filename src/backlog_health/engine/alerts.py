# src/backlog_health/engine/alerts.py

"""Threshold-based backlog warnings.

Alerts are derived straight from the issues rather than from the dimension
results, so each check stands on its own. Issue keys keep input order.
"""

from typing import List, Optional, Sequence

from ..utils.helpers import days_ago, safe_ratio
from .dimensions import (
    blocked_issues,
    has_velocity,
    pct,
    priority_counts,
    ready_issues,
    resolve_now,
    sprint_coverage,
    strategic_allocation_ratio,
)
from .issue import Issue, created_at, get_story_points, has_initiative, issue_key, updated_at
from .models import MAX_ALERT_ISSUES, Alert, AlertType, ScoringConfig

LOW_ALLOCATION_RATIO = 0.3
LOW_READINESS_RATIO = 0.3
INFLATION_RATIO = 0.5
LOW_COVERAGE_SCORE = 50
INFLATED_PRIORITIES = {"highest", "critical", "blocker"}


def _keys(issues: Sequence[Issue]) -> List[str]:
    return [issue_key(issue) for issue in issues[:MAX_ALERT_ISSUES]]


def stale_issues(issues: Sequence[Issue], config: ScoringConfig) -> List[Issue]:
    """Issues whose last update predates the stale threshold."""
    cutoff = days_ago(resolve_now(config), config.stale_days)
    return [i for i in issues if (updated_at(i) or cutoff) < cutoff]


def zombie_issues(issues: Sequence[Issue], config: ScoringConfig) -> List[Issue]:
    """Issues created and last touched before the zombie threshold."""
    cutoff = days_ago(resolve_now(config), config.zombie_days)
    return [
        i
        for i in issues
        if (created_at(i) or cutoff) < cutoff and (updated_at(i) or cutoff) < cutoff
    ]


def unestimated_issues(issues: Sequence[Issue], config: ScoringConfig) -> List[Issue]:
    return [i for i in issues if get_story_points(i, config.story_points_field) == 0]


def no_initiative_alert(
    issues: Sequence[Issue], config: ScoringConfig
) -> Optional[Alert]:
    if not config.initiative_field or not issues:
        return None
    ratio = strategic_allocation_ratio(issues, config)
    if ratio >= LOW_ALLOCATION_RATIO:
        return None
    unlinked = [
        i
        for i in issues
        if get_story_points(i, config.story_points_field) > 0
        and not has_initiative(i, config)
    ]
    return Alert(
        type=AlertType.NO_INITIATIVE,
        message=(
            f"{pct(ratio)}% strategic allocation: {len(unlinked)} estimated items "
            "not linked to an initiative"
        ),
        count=len(unlinked),
        issues=_keys(unlinked),
    )


def low_readiness_alert(
    issues: Sequence[Issue], config: ScoringConfig
) -> Optional[Alert]:
    if not issues:
        return None
    ready = ready_issues(issues, config)
    ratio = safe_ratio(len(ready), len(issues))
    if ratio >= LOW_READINESS_RATIO:
        return None
    return Alert(
        type=AlertType.LOW_READINESS,
        message=f"Only {pct(ratio)}% of backlog items are fully defined",
        count=len(issues) - len(ready),
    )


def blocked_alert(issues: Sequence[Issue], config: ScoringConfig) -> Optional[Alert]:
    blocked = blocked_issues(issues)
    if not blocked:
        return None
    return Alert(
        type=AlertType.BLOCKED,
        message=f"{len(blocked)} items currently blocked",
        count=len(blocked),
        issues=_keys(blocked),
    )


def priority_inflation_alert(
    issues: Sequence[Issue], config: ScoringConfig
) -> Optional[Alert]:
    high = sum(
        count
        for label, count in priority_counts(issues).items()
        if label.lower() in INFLATED_PRIORITIES
    )
    share = safe_ratio(high, len(issues))
    if share <= INFLATION_RATIO:
        return None
    return Alert(
        type=AlertType.PRIORITY_INFLATION,
        message=f"{pct(share)}% of issues marked Highest/Critical",
        count=high,
    )


def low_sprint_coverage_alert(
    issues: Sequence[Issue], config: ScoringConfig
) -> Optional[Alert]:
    if not has_velocity(config):
        return None
    coverage = sprint_coverage(issues, config)
    if min(100, coverage.ratio * 100) >= LOW_COVERAGE_SCORE:
        return None
    return Alert(
        type=AlertType.LOW_SPRINT_COVERAGE,
        message=f"Only {pct(coverage.ratio)}% of 2-sprint capacity has ready work",
        count=0,
    )


def stale_alert(issues: Sequence[Issue], config: ScoringConfig) -> Optional[Alert]:
    stale = stale_issues(issues, config)
    if not stale:
        return None
    return Alert(
        type=AlertType.STALE,
        message=f"{len(stale)} items not updated in {config.stale_days}+ days",
        count=len(stale),
        issues=_keys(stale),
    )


def zombie_alert(issues: Sequence[Issue], config: ScoringConfig) -> Optional[Alert]:
    zombies = zombie_issues(issues, config)
    if not zombies:
        return None
    return Alert(
        type=AlertType.ZOMBIE,
        message=f"{len(zombies)} zombie issues ({config.zombie_days}+ days, no activity)",
        count=len(zombies),
        issues=_keys(zombies),
    )


def unestimated_alert(issues: Sequence[Issue], config: ScoringConfig) -> Optional[Alert]:
    unestimated = unestimated_issues(issues, config)
    if not unestimated:
        return None
    return Alert(
        type=AlertType.UNESTIMATED,
        message=f"{len(unestimated)} stories without estimates",
        count=len(unestimated),
        issues=_keys(unestimated),
    )


ALERT_CHECKS = [
    no_initiative_alert,
    low_readiness_alert,
    blocked_alert,
    priority_inflation_alert,
    low_sprint_coverage_alert,
    stale_alert,
    zombie_alert,
    unestimated_alert,
]


def generate_alerts(issues: Sequence[Issue], config: ScoringConfig) -> List[Alert]:
    """Runs every check; at most one alert per type."""
    alerts = []
    for check in ALERT_CHECKS:
        alert = check(issues, config)
        if alert is not None:
            alerts.append(alert)
    return alerts
