# src/backlog_health/data/velocity.py

"""JSON-file store of per-sprint velocity history."""

import json
import os
from typing import Any, Dict, List, Optional

from ..utils.helpers import parse_datetime

DEFAULT_SPRINT_COUNT = 6


class VelocityStore:
    """Reads and writes sprint velocity points.

    Each point looks like::

        {"sprintId": 42, "sprintName": "Sprint 42", "committed": 30,
         "completed": 26, "endDate": "2024-01-12T00:00:00Z"}
    """

    def __init__(self, path: str):
        self.path = path

    def load(self) -> List[Dict[str, Any]]:
        """Returns every stored point, or an empty list if there is no file."""
        if not os.path.exists(self.path):
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def save(self, points: List[Dict[str, Any]]) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(points, f, indent=2)

    def record(self, point: Dict[str, Any]) -> None:
        """Adds a sprint, replacing any earlier entry for the same sprint id."""
        points = [p for p in self.load() if p.get("sprintId") != point.get("sprintId")]
        points.append(point)
        self.save(points)

    def _most_recent(self, sprint_count: int) -> List[Dict[str, Any]]:
        def end_key(point):
            end = parse_datetime(point.get("endDate"))
            return end.timestamp() if end else float("-inf")

        ordered = sorted(self.load(), key=end_key, reverse=True)
        return ordered[:sprint_count]

    def average_velocity(
        self, sprint_count: int = DEFAULT_SPRINT_COUNT
    ) -> Optional[float]:
        """Mean completed points over the latest sprints; None with no history."""
        recent = self._most_recent(sprint_count)
        if not recent:
            return None
        return sum(p.get("completed") or 0 for p in recent) / len(recent)

    def trend(self, sprint_count: int = DEFAULT_SPRINT_COUNT) -> List[Dict[str, Any]]:
        """Latest sprints, oldest first, with missing numbers as 0."""
        return [
            {
                "sprintId": p.get("sprintId"),
                "sprintName": p.get("sprintName", ""),
                "committed": p.get("committed") or 0,
                "completed": p.get("completed") or 0,
                "endDate": p.get("endDate") or "",
            }
            for p in reversed(self._most_recent(sprint_count))
        ]
