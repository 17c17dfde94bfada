# src/backlog_health/engine/reporter.py

"""Compiles backlog health reports from fetched data."""

import json
import os
from typing import Any, Dict, List

from ..config.settings import Settings
from ..data.velocity import VelocityStore
from ..utils.helpers import now_utc
from .models import ScoringConfig
from .scorer import BacklogHealthScorer

ISSUES_FILE = "backlog_raw.json"
BOARDS_FILE = "boards.json"
INITIATIVE_EPICS_FILE = "initiative_epics.json"
META_FILE = "meta.json"
VELOCITY_FILE = "velocity_history.json"


def _read_json(path: str, default: Any) -> Any:
    if not os.path.exists(path):
        return default
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


class BacklogReporter:
    """Scores the fetched backlog as a whole and per board."""

    def __init__(self, data_dir: str, settings: Settings):
        """
        Initialize the reporter.

        Args:
            data_dir: Directory holding the files written by the fetch command.
            settings: Thresholds and field configuration.
        """
        self.data_dir = data_dir
        self.settings = settings
        self.velocity = VelocityStore(os.path.join(data_dir, VELOCITY_FILE))

    def _path(self, name: str) -> str:
        return os.path.join(self.data_dir, name)

    def load_issues(self) -> List[Dict[str, Any]]:
        with open(self._path(ISSUES_FILE), "r", encoding="utf-8") as f:
            return json.load(f)

    def load_boards(self) -> List[Dict[str, Any]]:
        return _read_json(self._path(BOARDS_FILE), [])

    def scoring_config(self) -> ScoringConfig:
        """Engine config from settings plus what the fetch step discovered."""
        meta = _read_json(self._path(META_FILE), {})
        linked_epics = _read_json(self._path(INITIATIVE_EPICS_FILE), [])
        overrides: Dict[str, Any] = {"initiative_linked_epic_keys": frozenset(linked_epics)}
        if not self.settings.story_points_field and meta.get("storyPointsField"):
            overrides["story_points_field"] = meta["storyPointsField"]
        return self.settings.scoring_config(
            initiative_field=meta.get("initiativeField"),
            avg_velocity=self.velocity.average_velocity(
                self.settings.velocity_sprint_count
            ),
            now=now_utc(),
            **overrides,
        )

    def _score_boards(
        self,
        scorer: BacklogHealthScorer,
        issues: List[Dict[str, Any]],
        boards: List[Dict[str, Any]],
    ) -> List[Dict[str, Any]]:
        by_id = {issue.get("id"): issue for issue in issues}
        results = []
        for board in boards:
            board_issues = [
                by_id[issue_id] for issue_id in board.get("issueIds", []) if issue_id in by_id
            ]
            health = scorer.score(board_issues)
            results.append(
                {
                    "boardId": board.get("id"),
                    "boardName": board.get("name") or f"Board {board.get('id')}",
                    **health.to_summary(),
                }
            )
        return results

    def generate(self) -> Dict[str, Any]:
        """Generates the complete report: aggregate, per board, and trend."""
        config = self.scoring_config()
        scorer = BacklogHealthScorer(config)
        issues = self.load_issues()
        boards = self.load_boards()

        aggregate = scorer.score(issues)
        return {
            "reportGeneratedAt": config.now.isoformat(),
            "mode": "overview" if len(boards) > 1 else "single",
            "aggregate": aggregate.to_summary(),
            "boards": self._score_boards(scorer, issues, boards) if len(boards) > 1 else [],
            "flags": [alert.message for alert in aggregate.alerts],
            "avgVelocity": config.avg_velocity,
            "velocityTrend": self.velocity.trend(self.settings.velocity_sprint_count),
        }

    def generate_summary(self) -> Dict[str, Any]:
        """Generates a lean summary: score, stats and flags."""
        config = self.scoring_config()
        health = BacklogHealthScorer(config).score(self.load_issues())
        summary = health.to_summary()
        return {
            "reportDate": config.now.date().isoformat(),
            "backlogHealth": {
                "score": health.health_score,
                "flags": [alert.message for alert in health.alerts],
            },
            "stats": summary["stats"],
        }
