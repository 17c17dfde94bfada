# src/backlog_health/engine/issue.py

"""Typed accessors over raw tracker issue records.

Issues arrive as the tracker's JSON payload (``{"key": ..., "fields": {...}}``).
Custom fields differ per deployment, so every lookup by field identifier goes
through ``get_field``; the scorers never index into ``fields`` themselves.
None of these helpers raise on malformed data.
"""

import json
import math
from datetime import datetime
from typing import Any, Dict, Optional

from ..utils.helpers import parse_datetime
from .models import ScoringConfig

Issue = Dict[str, Any]

# T-shirt size to story point mapping
TSHIRT_TO_SP = {
    "xs": 1,
    "s": 2,
    "m": 5,
    "l": 8,
    "xl": 13,
    "xxl": 21,
}

NO_PRIORITY = "None"


def _fields(issue: Issue) -> Dict[str, Any]:
    fields = issue.get("fields") if isinstance(issue, dict) else None
    return fields if isinstance(fields, dict) else {}


def get_field(issue: Issue, field_id: Optional[str]) -> Any:
    """Returns the raw value of a (custom) field, or None."""
    if not field_id:
        return None
    return _fields(issue).get(field_id)


def issue_key(issue: Issue) -> str:
    return str(issue.get("key", "")) if isinstance(issue, dict) else ""


def parse_tshirt_size(raw: Any) -> float:
    """Maps a T-shirt label (plain or option object) to story points; 0 if unknown."""
    if isinstance(raw, str):
        label = raw
    elif isinstance(raw, dict) and "value" in raw:
        label = str(raw["value"])
    else:
        return 0
    return TSHIRT_TO_SP.get(label.strip().lower(), 0)


def get_story_points(issue: Issue, story_points_field: Optional[str]) -> float:
    """Resolves an issue's estimate, numeric or T-shirt coded."""
    value = get_field(issue, story_points_field)
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        # json.load accepts NaN and Infinity literals
        return value if math.isfinite(value) else 0
    return parse_tshirt_size(value)


def priority_name(issue: Issue) -> Optional[str]:
    priority = _fields(issue).get("priority")
    if isinstance(priority, dict):
        name = priority.get("name")
        return str(name) if name else None
    return None


def has_priority(issue: Issue) -> bool:
    name = priority_name(issue)
    return bool(name) and name != NO_PRIORITY


def status_name(issue: Issue) -> str:
    status = _fields(issue).get("status")
    if isinstance(status, dict):
        return str(status.get("name") or "")
    return ""


def status_category(issue: Issue) -> str:
    """Coarse status bucket: 'new', 'indeterminate' or 'done'."""
    status = _fields(issue).get("status")
    if isinstance(status, dict):
        category = status.get("statusCategory")
        if isinstance(category, dict):
            return str(category.get("key") or "")
    return ""


def issue_summary(issue: Issue) -> str:
    return str(_fields(issue).get("summary") or "")


def assignee_name(issue: Issue) -> Optional[str]:
    assignee = _fields(issue).get("assignee")
    if isinstance(assignee, dict):
        name = assignee.get("displayName")
        return str(name) if name else None
    return None


def issue_type(issue: Issue) -> str:
    issuetype = _fields(issue).get("issuetype")
    if isinstance(issuetype, dict):
        return str(issuetype.get("name") or "")
    return ""


def created_at(issue: Issue) -> Optional[datetime]:
    return parse_datetime(_fields(issue).get("created"))


def updated_at(issue: Issue) -> Optional[datetime]:
    return parse_datetime(_fields(issue).get("updated"))


def description_length(issue: Issue) -> int:
    """Length of the description, serializing rich-text documents first."""
    description = _fields(issue).get("description")
    if not description:
        return 0
    if isinstance(description, str):
        return len(description)
    try:
        return len(json.dumps(description, separators=(",", ":"), ensure_ascii=False))
    except (TypeError, ValueError):
        return 0


def parent_key(issue: Issue) -> Optional[str]:
    parent = _fields(issue).get("parent")
    if isinstance(parent, dict) and parent.get("key"):
        return str(parent["key"])
    return None


def has_initiative(issue: Issue, config: ScoringConfig) -> bool:
    """True when the issue carries an initiative reference.

    Either the initiative field is populated, or the parent epic is itself
    linked to an initiative.
    """
    if not config.initiative_field:
        return False
    if get_field(issue, config.initiative_field):
        return True
    parent = parent_key(issue)
    return parent is not None and parent in config.initiative_linked_epic_keys


def is_flagged(issue: Issue) -> bool:
    return bool(_fields(issue).get("flagged"))


def is_blocked(issue: Issue) -> bool:
    """Flagged, or blocked by another issue through an inward 'block' link."""
    fields = _fields(issue)
    if is_flagged(issue):
        return True
    links = fields.get("issuelinks")
    if not isinstance(links, list):
        return False
    for link in links:
        if not isinstance(link, dict):
            continue
        link_type = link.get("type")
        name = link_type.get("name", "") if isinstance(link_type, dict) else ""
        if "block" in str(name).lower() and link.get("inwardIssue"):
            return True
    return False
