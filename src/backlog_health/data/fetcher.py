# src/backlog_health/data/fetcher.py

"""REST data fetcher for Jira backlog data."""

import json
import logging
import os
import random
import time
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import requests

logger = logging.getLogger(__name__)

# Standard fields to request for backlog issues
ISSUE_FIELDS = [
    "summary",
    "status",
    "assignee",
    "priority",
    "issuetype",
    "created",
    "updated",
    "description",
    "flagged",
    "labels",
    "issuelinks",
    "parent",
]

STORY_POINTS_FIELD_NAMES = ["story points", "story point estimate", "story point"]
INITIATIVE_FIELD_NAMES = ["initiative", "initiative name", "initiative link"]

MAX_RETRIES = 3
MAX_PAGINATION_RESTARTS = 2
JQL_KEY_BATCH = 50


class JiraAPIError(RuntimeError):
    """Jira answered with an error, or kept rate limiting us."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def issue_fields(
    story_points_field: Optional[str], initiative_field: Optional[str] = None
) -> List[str]:
    """Build field list with the dynamic story points and initiative fields."""
    fields = list(ISSUE_FIELDS)
    if story_points_field:
        fields.append(story_points_field)
    if initiative_field:
        fields.append(initiative_field)
    return fields


class JiraDataFetcher:
    """Fetches backlog data from the Jira REST and Agile APIs."""

    def __init__(
        self,
        base_url: str,
        email: str,
        token: str,
        output_dir: str = "data",
        timeout: float = 30.0,
    ):
        """Initialize the fetcher."""
        self.base_url = base_url.rstrip("/")
        self.auth = (email, token)
        self.output_dir = output_dir
        self.timeout = timeout
        self.headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, **kwargs) -> Any:
        """Execute a request, waiting out rate limits."""
        url = f"{self.base_url}{path}"
        for attempt in range(MAX_RETRIES + 1):
            response = requests.request(
                method,
                url,
                headers=self.headers,
                auth=self.auth,
                timeout=self.timeout,
                **kwargs,
            )
            if response.status_code == 429:
                if attempt == MAX_RETRIES:
                    break
                try:
                    retry_after = float(response.headers.get("Retry-After", 5))
                except (TypeError, ValueError):
                    retry_after = 5.0
                delay = retry_after + random.random()
                logger.warning("Rate limited by Jira. Retrying in %.1fs...", delay)
                time.sleep(delay)
                continue

            if not response.ok:
                raise JiraAPIError(
                    f"Jira API error {response.status_code}: {response.reason} "
                    f"- {response.text[:200]}",
                    status_code=response.status_code,
                )
            return response.json()

        raise JiraAPIError("Jira API: max retries exceeded after rate limiting", 429)

    def _paginate_values(self, path: str, page_size: int, **params) -> List[Dict]:
        """Offset pagination over endpoints answering {values, isLast}."""
        values: List[Dict] = []
        start_at = 0
        while True:
            data = self._request(
                "GET",
                path,
                params={**params, "startAt": start_at, "maxResults": page_size},
            )
            page = data.get("values", [])
            values.extend(page)
            if data.get("isLast") or len(page) < page_size:
                return values
            start_at += page_size

    def search_issues(
        self, jql: str, fields: List[str], expand: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Run a JQL search, following nextPageToken.

        An expired page token restarts the whole search, at most twice.
        """
        restarts = 0
        issues: List[Dict[str, Any]] = []
        token = None
        while True:
            body: Dict[str, Any] = {"jql": jql, "fields": fields, "maxResults": 100}
            if token:
                body["nextPageToken"] = token
            if expand:
                body["expand"] = expand
            try:
                data = self._request("POST", "/rest/api/3/search/jql", json=body)
            except JiraAPIError:
                if restarts >= MAX_PAGINATION_RESTARTS:
                    raise
                logger.warning("Pagination token expired, restarting...")
                restarts += 1
                issues = []
                token = None
                continue
            issues.extend(data.get("issues", []))
            token = data.get("nextPageToken")
            if not token:
                return issues

    def _paginate_issues(self, path: str, fields: List[str]) -> List[Dict]:
        """Offset pagination over agile endpoints answering {issues, total}."""
        issues: List[Dict] = []
        start_at = 0
        page_size = 100
        while True:
            data = self._request(
                "GET",
                path,
                params={
                    "startAt": start_at,
                    "maxResults": page_size,
                    "fields": ",".join(fields),
                },
            )
            issues.extend(data.get("issues", []))
            if start_at + page_size >= data.get("total", 0):
                return issues
            start_at += page_size

    def fetch_backlog_issues(self, board_id: str, fields: List[str]) -> List[Dict]:
        """Fetch all backlog issues of a board."""
        return self._paginate_issues(f"/rest/agile/1.0/board/{board_id}/backlog", fields)

    def fetch_active_sprint(self, board_id: str) -> Optional[Dict[str, Any]]:
        """The board's active sprint, or None when no sprint is running."""
        sprints = self._paginate_values(
            f"/rest/agile/1.0/board/{board_id}/sprint", page_size=50, state="active"
        )
        return sprints[0] if sprints else None

    def fetch_sprint_issues(self, sprint_id: int, fields: List[str]) -> List[Dict]:
        return self._paginate_issues(f"/rest/agile/1.0/sprint/{sprint_id}/issue", fields)

    def fetch_board_name(self, board_id: str) -> str:
        try:
            data = self._request("GET", f"/rest/agile/1.0/board/{board_id}")
        except (JiraAPIError, requests.RequestException) as exc:
            logger.warning("Failed to fetch board %s name: %s", board_id, exc)
            return f"Board {board_id}"
        return data.get("name") or f"Board {board_id}"

    def fetch_issue_changelog(self, issue_key: str) -> List[Dict[str, Any]]:
        """Fetch the complete status/field history of one issue."""
        return self._paginate_values(
            f"/rest/api/3/issue/{issue_key}/changelog", page_size=100
        )

    def fetch_fields(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/rest/api/3/field")

    def _discover_field(self, names: List[str]) -> Optional[str]:
        for field in self.fetch_fields():
            if str(field.get("name", "")).lower() in names:
                return field.get("id")
        return None

    def discover_story_points_field(self) -> Optional[str]:
        """Find the story points custom field id by its common names."""
        return self._discover_field(STORY_POINTS_FIELD_NAMES)

    def discover_initiative_field(self) -> Optional[str]:
        """Find the initiative custom field id by its common names."""
        return self._discover_field(INITIATIVE_FIELD_NAMES)

    def resolve_initiative_linked_epics(self, issues: Iterable[Dict]) -> Set[str]:
        """Keys of parent epics that themselves sit under an initiative."""
        parent_keys = []
        for issue in issues:
            parent = (issue.get("fields") or {}).get("parent") or {}
            key = parent.get("key")
            if key and key not in parent_keys:
                parent_keys.append(key)

        linked: Set[str] = set()
        # Batch to stay within JQL IN-clause limits
        for i in range(0, len(parent_keys), JQL_KEY_BATCH):
            chunk = parent_keys[i : i + JQL_KEY_BATCH]
            epics = self.search_issues(f"key in ({','.join(chunk)})", ["parent"])
            for epic in epics:
                if ((epic.get("fields") or {}).get("parent") or {}).get("key"):
                    linked.add(epic["key"])
        return linked

    def fetch_all(
        self,
        board_ids: List[str],
        fields: List[str],
        resolve_initiatives: bool = False,
    ) -> Tuple[int, int]:
        """Fetch every board's backlog and save the de-duplicated issues.

        Writes ``backlog_raw.json`` (unique issues) and ``boards.json`` (board
        names with their issue ids). Boards that fail are logged and skipped.
        With `resolve_initiatives`, also writes ``initiative_epics.json``.
        """
        unique: Dict[str, Dict[str, Any]] = {}
        boards = []
        for board_id in board_ids:
            try:
                board_issues = self.fetch_backlog_issues(board_id, fields)
            except (JiraAPIError, requests.RequestException) as exc:
                logger.warning("Failed to fetch backlog for board %s: %s", board_id, exc)
                continue
            boards.append(
                {
                    "id": board_id,
                    "name": self.fetch_board_name(board_id),
                    "issueIds": [issue.get("id") for issue in board_issues],
                }
            )
            for issue in board_issues:
                unique.setdefault(issue.get("id") or issue.get("key"), issue)

        issues = list(unique.values())
        issues_path = os.path.join(self.output_dir, "backlog_raw.json")
        with open(issues_path, "w", encoding="utf-8") as f:
            json.dump(issues, f, indent=2)

        boards_path = os.path.join(self.output_dir, "boards.json")
        with open(boards_path, "w", encoding="utf-8") as f:
            json.dump(boards, f, indent=2)

        if resolve_initiatives:
            linked = sorted(self.resolve_initiative_linked_epics(issues))
            epics_path = os.path.join(self.output_dir, "initiative_epics.json")
            with open(epics_path, "w", encoding="utf-8") as f:
                json.dump(linked, f, indent=2)

        return len(issues), len(boards)
