# src/backlog_health/engine/dimensions.py

"""The eight backlog health dimensions.

Each scorer is a pure function ``(issues, config) -> Dimension`` and can run
in any order. Ratios over an empty backlog are 0, never NaN.
"""

import math
from collections import Counter
from datetime import datetime
from typing import Callable, Dict, List, NamedTuple, Sequence

from ..utils.helpers import (
    clamp,
    days_ago,
    days_between,
    now_utc,
    round_half_up,
    safe_ratio,
)
from .issue import (
    NO_PRIORITY,
    Issue,
    created_at,
    description_length,
    get_story_points,
    has_initiative,
    has_priority,
    is_blocked,
    priority_name,
    status_name,
    updated_at,
)
from .models import Dimension, ScoringConfig

# --- FIXED WEIGHTS --- (sum to 1.0)
WEIGHTS = {
    "Strategic Allocation": 0.15,
    "Backlog Readiness": 0.20,
    "Dependencies": 0.10,
    "Avg Blocked Duration": 0.05,
    "Priority Distribution": 0.10,
    "Age Distribution": 0.10,
    "Grooming Freshness": 0.15,
    "2-Sprint Readiness": 0.15,
}

NEUTRAL_SCORE = 50
MIN_DESCRIPTION_LENGTH = 100

# --- TARGETS ---
STRATEGIC_ALLOCATION_TARGET = 0.7  # 70% of points tied to initiatives is perfect
READINESS_TARGET = 0.7
BLOCKED_RATIO_LIMIT = 0.15  # 15% blocked drives the score to 0
BLOCKED_DAYS_LIMIT = 14
PRIORITY_CONCENTRATION_LIMIT = 0.5
OLD_ITEM_DAYS = 90
OLD_RATIO_LIMIT = 0.10
GROOMING_WINDOW_DAYS = 45
GROOMING_TARGET = 0.8
SPRINTS_OF_COVERAGE = 2


def resolve_now(config: ScoringConfig) -> datetime:
    return config.now or now_utc()


def pct(ratio: float) -> int:
    return round_half_up(ratio * 100)


def make_dimension(name: str, raw_score: float, detail: str) -> Dimension:
    """Rounds the raw score, then weights the rounded score."""
    weight = WEIGHTS[name]
    score = round_half_up(clamp(raw_score))
    return Dimension(
        name=name,
        weight=weight,
        score=score,
        weighted_score=round_half_up(score * weight),
        detail=detail,
    )


# --- Shared classifications ---


def is_ready(issue: Issue, config: ScoringConfig) -> bool:
    """Fully defined: description, estimate, priority and (if tracked) initiative."""
    if description_length(issue) <= MIN_DESCRIPTION_LENGTH:
        return False
    if get_story_points(issue, config.story_points_field) <= 0:
        return False
    if not has_priority(issue):
        return False
    if config.initiative_field:
        return has_initiative(issue, config)
    return True


def ready_issues(issues: Sequence[Issue], config: ScoringConfig) -> List[Issue]:
    return [issue for issue in issues if is_ready(issue, config)]


def blocked_issues(issues: Sequence[Issue]) -> List[Issue]:
    return [issue for issue in issues if is_blocked(issue)]


def total_points(issues: Sequence[Issue], config: ScoringConfig) -> float:
    return sum(get_story_points(issue, config.story_points_field) for issue in issues)


def strategic_allocation_ratio(issues: Sequence[Issue], config: ScoringConfig) -> float:
    """Share of story points carried by issues linked to an initiative."""
    if not config.initiative_field:
        return 0.0
    total = 0.0
    with_initiative = 0.0
    for issue in issues:
        points = get_story_points(issue, config.story_points_field)
        total += points
        if points > 0 and has_initiative(issue, config):
            with_initiative += points
    return safe_ratio(with_initiative, total) if total > 0 else 0.0


def priority_counts(issues: Sequence[Issue]) -> Dict[str, int]:
    """Frequency of priority labels in input order; missing counts as 'None'."""
    return dict(Counter(priority_name(issue) or NO_PRIORITY for issue in issues))


class SprintCoverage(NamedTuple):
    ready_points: float
    target: float
    ratio: float


def sprint_coverage(issues: Sequence[Issue], config: ScoringConfig) -> SprintCoverage:
    """Ready story points against two sprints of average velocity.

    Callers must check ``config.avg_velocity`` is positive first.
    """
    if config.ready_statuses:
        wanted = {name.lower() for name in config.ready_statuses}
        candidates = [i for i in issues if status_name(i).lower() in wanted]
    else:
        candidates = ready_issues(issues, config)
    ready_points = total_points(candidates, config)
    target = (config.avg_velocity or 0) * SPRINTS_OF_COVERAGE
    return SprintCoverage(ready_points, target, safe_ratio(ready_points, target))


def has_velocity(config: ScoringConfig) -> bool:
    return bool(config.avg_velocity) and config.avg_velocity > 0


# --- Scorers ---


def score_strategic_allocation(issues: Sequence[Issue], config: ScoringConfig) -> Dimension:
    name = "Strategic Allocation"
    if not config.initiative_field:
        return make_dimension(
            name, NEUTRAL_SCORE, "No initiative field configured, score neutral"
        )
    ratio = strategic_allocation_ratio(issues, config)
    return make_dimension(
        name,
        min(100, ratio / STRATEGIC_ALLOCATION_TARGET * 100),
        f"{pct(ratio)}% of story points tied to initiatives",
    )


def score_backlog_readiness(issues: Sequence[Issue], config: ScoringConfig) -> Dimension:
    ready = ready_issues(issues, config)
    ratio = safe_ratio(len(ready), len(issues))
    return make_dimension(
        "Backlog Readiness",
        min(100, ratio / READINESS_TARGET * 100),
        f"{len(ready)}/{len(issues)} items fully defined ({pct(ratio)}%)",
    )


def score_dependencies(issues: Sequence[Issue], config: ScoringConfig) -> Dimension:
    blocked = blocked_issues(issues)
    ratio = safe_ratio(len(blocked), len(issues))
    detail = (
        f"{len(blocked)}/{len(issues)} items blocked ({pct(ratio)}%)"
        if blocked
        else "No blocked items"
    )
    return make_dimension(
        "Dependencies", 100 - ratio / BLOCKED_RATIO_LIMIT * 100, detail
    )


def average_blocked_days(issues: Sequence[Issue], now: datetime) -> float:
    """Mean days since last update across blocked issues (0 when none)."""
    ages = [
        days_between(updated, now)
        for updated in (updated_at(issue) for issue in blocked_issues(issues))
        if updated is not None
    ]
    return sum(ages) / len(ages) if ages else 0.0


def score_blocked_duration(issues: Sequence[Issue], config: ScoringConfig) -> Dimension:
    name = "Avg Blocked Duration"
    if not blocked_issues(issues):
        return make_dimension(name, 100, "No blocked items")
    avg_days = average_blocked_days(issues, resolve_now(config))
    return make_dimension(
        name,
        100 - avg_days / BLOCKED_DAYS_LIMIT * 100,
        f"{avg_days:.1f} days avg blocked duration",
    )


def priority_distribution_score(counts: Dict[str, int], total: int) -> float:
    """Penalizes concentration; otherwise rewards an even spread (entropy)."""
    if total == 0:
        return 100
    max_share = max(count / total for count in counts.values())
    if max_share > PRIORITY_CONCENTRATION_LIMIT:
        return max(0.0, (1 - max_share) * 200)

    entropy = 0.0
    for count in counts.values():
        if count:
            p = count / total
            entropy -= p * math.log2(p)
    max_entropy = math.log2(len(counts) or 1)
    return round_half_up(entropy / max_entropy * 100) if max_entropy > 0 else 100


def score_priority_distribution(
    issues: Sequence[Issue], config: ScoringConfig
) -> Dimension:
    counts = priority_counts(issues)
    detail = ", ".join(f"{label}: {count}" for label, count in counts.items())
    return make_dimension(
        "Priority Distribution",
        priority_distribution_score(counts, len(issues)),
        detail or "No items",
    )


def score_age_distribution(issues: Sequence[Issue], config: ScoringConfig) -> Dimension:
    cutoff = days_ago(resolve_now(config), OLD_ITEM_DAYS)
    old = [i for i in issues if (created_at(i) or cutoff) < cutoff]
    ratio = safe_ratio(len(old), len(issues))
    return make_dimension(
        "Age Distribution",
        100 - ratio / OLD_RATIO_LIMIT * 100,
        f"{len(old)}/{len(issues)} older than {OLD_ITEM_DAYS}d ({pct(ratio)}%)",
    )


def score_grooming_freshness(issues: Sequence[Issue], config: ScoringConfig) -> Dimension:
    cutoff = days_ago(resolve_now(config), GROOMING_WINDOW_DAYS)
    fresh = [i for i in issues if updated_at(i) is not None and updated_at(i) >= cutoff]
    ratio = safe_ratio(len(fresh), len(issues))
    return make_dimension(
        "Grooming Freshness",
        min(100, ratio / GROOMING_TARGET * 100),
        f"{len(fresh)}/{len(issues)} updated in last {GROOMING_WINDOW_DAYS}d "
        f"({pct(ratio)}%)",
    )


def score_sprint_readiness(issues: Sequence[Issue], config: ScoringConfig) -> Dimension:
    name = "2-Sprint Readiness"
    if not has_velocity(config):
        return make_dimension(name, NEUTRAL_SCORE, "No velocity data, score neutral")
    coverage = sprint_coverage(issues, config)
    return make_dimension(
        name,
        min(100, coverage.ratio * 100),
        f"{coverage.ready_points:.0f} ready SP / {coverage.target:.0f} target "
        f"({pct(coverage.ratio)}%)",
    )


DimensionScorer = Callable[[Sequence[Issue], ScoringConfig], Dimension]

SCORERS: List[DimensionScorer] = [
    score_strategic_allocation,
    score_backlog_readiness,
    score_dependencies,
    score_blocked_duration,
    score_priority_distribution,
    score_age_distribution,
    score_grooming_freshness,
    score_sprint_readiness,
]
