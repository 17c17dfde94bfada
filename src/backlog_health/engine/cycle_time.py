# src/backlog_health/engine/cycle_time.py

"""Cycle and lead time analysis from status-change history."""

import logging
import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel

from ..utils.helpers import days_between, parse_datetime, round_half_up, safe_mean
from .issue import Issue, created_at, issue_key, issue_type, status_category

logger = logging.getLogger(__name__)

ChangelogLoader = Callable[[str], List[Dict[str, Any]]]

MAX_ANALYZED_ISSUES = 50
DEFAULT_MAX_WORKERS = 5
IN_PROGRESS_MARKER = "progress"
DONE_MARKER = "done"


class CycleTimeEntry(BaseModel):
    issue_key: str
    issue_type: str
    start_date: datetime
    end_date: datetime
    cycle_days: float


class IssueTimes(BaseModel):
    cycle_time: Optional[float] = None
    lead_time: Optional[float] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class CycleTimeSummary(BaseModel):
    avg_cycle_time: Optional[float] = None
    avg_lead_time: Optional[float] = None
    median_cycle_time: float = 0
    p90_cycle_time: float = 0
    analyzed: int = 0
    skipped: int = 0
    entries: List[CycleTimeEntry] = []

    def to_summary(self) -> Dict[str, Any]:
        return {
            "avgCycleTime": self.avg_cycle_time,
            "avgLeadTime": self.avg_lead_time,
            "median": self.median_cycle_time,
            "p90": self.p90_cycle_time,
            "analyzed": self.analyzed,
            "skipped": self.skipped,
            "entries": [
                {
                    "issueKey": e.issue_key,
                    "issueType": e.issue_type,
                    "startDate": e.start_date.isoformat(),
                    "endDate": e.end_date.isoformat(),
                    "cycleDays": e.cycle_days,
                }
                for e in self.entries
            ],
        }


def embedded_changelog(issue: Issue) -> List[Dict[str, Any]]:
    """Histories already attached to an issue fetched with expand=changelog."""
    changelog = issue.get("changelog") or {}
    return list(changelog.get("histories") or [])


def _round_days(value: Optional[float]) -> Optional[float]:
    return round_half_up(value * 10) / 10 if value is not None else None


def extract_times(issue: Issue, histories: Sequence[Dict[str, Any]]) -> IssueTimes:
    """Finds the first move into progress and the last move into done."""
    in_progress_date = None
    done_date = None

    dated = [
        (parse_datetime(h.get("created")), h) for h in histories if isinstance(h, dict)
    ]
    dated = [(when, h) for when, h in dated if when is not None]
    dated.sort(key=lambda pair: pair[0])

    for when, history in dated:
        for item in history.get("items") or []:
            if item.get("field") != "status":
                continue
            target = (item.get("toString") or "").lower()
            if in_progress_date is None and IN_PROGRESS_MARKER in target:
                in_progress_date = when
            if DONE_MARKER in target:
                done_date = when

    created = created_at(issue)
    cycle_time = (
        days_between(in_progress_date, done_date)
        if in_progress_date and done_date
        else None
    )
    lead_time = days_between(created, done_date) if created and done_date else None

    return IssueTimes(
        cycle_time=_round_days(cycle_time),
        lead_time=_round_days(lead_time),
        start_date=in_progress_date,
        end_date=done_date,
    )


def _percentile_index(values: List[float], fraction: float) -> float:
    """Index-based percentile over sorted values; 0 for an empty list."""
    if not values:
        return 0
    ordered = sorted(values)
    return ordered[min(len(ordered) - 1, math.floor(len(ordered) * fraction))]


class CycleTimeAnalyzer:
    """Computes cycle and lead times for done issues.

    Changelogs are fetched through `changelog_loader` (one call per issue) on a
    bounded thread pool. A failed fetch skips that issue only.
    """

    def __init__(
        self,
        changelog_loader: Optional[ChangelogLoader] = None,
        max_issues: int = MAX_ANALYZED_ISSUES,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ):
        self.changelog_loader = changelog_loader
        self.max_issues = max_issues
        self.max_workers = max(1, max_workers)

    def _load_histories(self, issue: Issue) -> List[Dict[str, Any]]:
        if self.changelog_loader is None:
            return embedded_changelog(issue)
        return self.changelog_loader(issue_key(issue))

    def _analyze_one(self, issue: Issue) -> IssueTimes:
        return extract_times(issue, self._load_histories(issue))

    def _collect(self, issues: List[Issue]) -> Tuple[List[Optional[IssueTimes]], int]:
        results: List[Optional[IssueTimes]] = [None] * len(issues)
        skipped = 0
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {
                pool.submit(self._analyze_one, issue): idx
                for idx, issue in enumerate(issues)
            }
            for fut in as_completed(futures):
                idx = futures[fut]
                try:
                    results[idx] = fut.result()
                except Exception as exc:
                    skipped += 1
                    logger.warning(
                        "Skipping %s, changelog unavailable: %s",
                        issue_key(issues[idx]),
                        exc,
                    )
        return results, skipped

    def analyze(self, issues: Sequence[Issue]) -> CycleTimeSummary:
        """Analyzes up to `max_issues` done issues, in input order."""
        done = [i for i in issues if status_category(i) == "done"][: self.max_issues]
        if not done:
            return CycleTimeSummary()

        results, skipped = self._collect(done)

        entries = []
        lead_times = []
        for issue, times in zip(done, results):
            if times is None:
                continue
            if times.cycle_time is not None:
                entries.append(
                    CycleTimeEntry(
                        issue_key=issue_key(issue),
                        issue_type=issue_type(issue),
                        start_date=times.start_date,
                        end_date=times.end_date,
                        cycle_days=times.cycle_time,
                    )
                )
            if times.lead_time is not None:
                lead_times.append(times.lead_time)

        cycle_days = [e.cycle_days for e in entries]
        logger.debug(
            "Cycle times: %d of %d done issues qualified", len(entries), len(done)
        )
        return CycleTimeSummary(
            avg_cycle_time=safe_mean(cycle_days),
            avg_lead_time=safe_mean(lead_times),
            median_cycle_time=_percentile_index(cycle_days, 0.5),
            p90_cycle_time=_percentile_index(cycle_days, 0.9),
            analyzed=len(done) - skipped,
            skipped=skipped,
            entries=entries,
        )
