# src/backlog_health/engine/sprint.py

"""Progress summary of a single sprint."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel

from ..utils.helpers import parse_datetime, safe_ratio
from .issue import (
    Issue,
    assignee_name,
    created_at,
    get_story_points,
    is_flagged,
    issue_key,
    issue_summary,
    status_category,
    status_name,
)

DEFAULT_WIP_LIMIT = 3
UNASSIGNED = "Unassigned"


class AssigneeWip(BaseModel):
    count: int = 0
    points: float = 0
    over_limit: bool = False


class SprintBlocker(BaseModel):
    key: str
    summary: str
    assignee: str
    status: str


class SprintSummary(BaseModel):
    """Point totals, work in progress and blockers of one sprint."""

    sprint_id: Optional[int] = None
    name: str = ""
    state: str = ""
    goal: str = ""
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    total_points: float = 0
    completed_points: float = 0
    in_progress_points: float = 0
    todo_points: float = 0
    completion_rate: float = 0
    issue_counts: Dict[str, int] = {}
    wip_limit: int = DEFAULT_WIP_LIMIT
    wip_per_assignee: Dict[str, AssigneeWip] = {}
    blockers: List[SprintBlocker] = []
    unassigned_count: int = 0
    # Issues created after the sprint started
    scope_added: int = 0

    model_config = {"frozen": True}

    @property
    def overloaded_assignees(self) -> List[str]:
        return [name for name, wip in self.wip_per_assignee.items() if wip.over_limit]

    def to_summary(self) -> Dict[str, Any]:
        return {
            "sprint": {
                "id": self.sprint_id,
                "name": self.name,
                "state": self.state,
                "goal": self.goal,
                "startDate": self.start_date.isoformat() if self.start_date else None,
                "endDate": self.end_date.isoformat() if self.end_date else None,
            },
            "progress": {
                "totalPoints": self.total_points,
                "completedPoints": self.completed_points,
                "inProgressPoints": self.in_progress_points,
                "todoPoints": self.todo_points,
                "completionRate": self.completion_rate,
            },
            "issueCount": dict(self.issue_counts),
            "wipLimit": self.wip_limit,
            "wipPerAssignee": {
                name: {"count": wip.count, "points": wip.points, "overLimit": wip.over_limit}
                for name, wip in self.wip_per_assignee.items()
            },
            "blockers": [b.model_dump() for b in self.blockers],
            "unassignedCount": self.unassigned_count,
            "scopeChange": {"added": self.scope_added, "removed": 0, "net": self.scope_added},
        }


def is_sprint_blocker(issue: Issue) -> bool:
    """Blocked by status name or by the flag."""
    return "block" in status_name(issue).lower() or is_flagged(issue)


def summarize_sprint(
    sprint: Dict[str, Any],
    issues: Sequence[Issue],
    story_points_field: Optional[str],
    wip_limit: int = DEFAULT_WIP_LIMIT,
) -> SprintSummary:
    """Aggregates a sprint's issues by status category.

    Work in progress is tracked per assignee; an assignee holding more
    in-progress issues than `wip_limit` is over the limit.
    """
    totals = {"done": 0.0, "indeterminate": 0.0, "new": 0.0}
    counts = {"total": len(issues), "done": 0, "inProgress": 0, "todo": 0}
    wip: Dict[str, Dict[str, float]] = {}
    blockers = []
    unassigned = 0

    for issue in issues:
        points = get_story_points(issue, story_points_field) if story_points_field else 0
        category = status_category(issue)
        assignee = assignee_name(issue)

        if category == "done":
            totals["done"] += points
            counts["done"] += 1
        elif category == "indeterminate":
            totals["indeterminate"] += points
            counts["inProgress"] += 1
            entry = wip.setdefault(assignee or UNASSIGNED, {"count": 0, "points": 0.0})
            entry["count"] += 1
            entry["points"] += points
        else:
            totals["new"] += points
            counts["todo"] += 1

        if is_sprint_blocker(issue):
            blockers.append(
                SprintBlocker(
                    key=issue_key(issue),
                    summary=issue_summary(issue),
                    assignee=assignee or UNASSIGNED,
                    status=status_name(issue),
                )
            )
        if not assignee and category != "done":
            unassigned += 1

    total_points = sum(totals.values())
    start = parse_datetime(sprint.get("startDate"))
    scope_added = 0
    if start:
        scope_added = sum(1 for i in issues if (created_at(i) or start) > start)

    return SprintSummary(
        sprint_id=sprint.get("id"),
        name=sprint.get("name") or "",
        state=sprint.get("state") or "",
        goal=sprint.get("goal") or "",
        start_date=start,
        end_date=parse_datetime(sprint.get("endDate")),
        total_points=total_points,
        completed_points=totals["done"],
        in_progress_points=totals["indeterminate"],
        todo_points=totals["new"],
        completion_rate=safe_ratio(totals["done"], total_points),
        issue_counts=counts,
        wip_limit=wip_limit,
        wip_per_assignee={
            name: AssigneeWip(
                count=int(entry["count"]),
                points=entry["points"],
                over_limit=entry["count"] > wip_limit,
            )
            for name, entry in wip.items()
        },
        blockers=blockers,
        unassigned_count=unassigned,
        scope_added=scope_added,
    )
