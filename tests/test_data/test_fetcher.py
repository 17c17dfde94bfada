# tests/test_data/test_fetcher.py

import json
from unittest.mock import MagicMock, patch

import pytest

from src.backlog_health.data.fetcher import (
    ISSUE_FIELDS,
    JiraAPIError,
    JiraDataFetcher,
    issue_fields,
)


def _response(payload=None, status_code=200, headers=None):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.reason = "OK" if response.ok else "Error"
    response.text = json.dumps(payload)
    response.headers = headers or {}
    response.json.return_value = payload
    return response


def _issue(key, issue_id):
    return {"id": issue_id, "key": key, "fields": {"summary": key}}


@pytest.fixture
def fetcher(tmp_path):
    return JiraDataFetcher(
        base_url="https://example.atlassian.net/",
        email="bot@example.com",
        token="fake_token",
        output_dir=str(tmp_path),
    )


def test_issue_fields_appends_custom_fields():
    fields = issue_fields("customfield_10016", "customfield_20000")
    assert fields[: len(ISSUE_FIELDS)] == ISSUE_FIELDS
    assert fields[-2:] == ["customfield_10016", "customfield_20000"]
    assert issue_fields(None) == ISSUE_FIELDS


@patch("src.backlog_health.data.fetcher.requests.request")
def test_fetch_backlog_issues_paginates(mock_request, fetcher):
    first = [_issue(f"APP-{n}", str(n)) for n in range(100)]
    second = [_issue("APP-100", "100")]
    mock_request.side_effect = [
        _response({"issues": first, "total": 101}),
        _response({"issues": second, "total": 101}),
    ]

    issues = fetcher.fetch_backlog_issues("7", ["summary"])

    assert len(issues) == 101
    method, url = mock_request.call_args_list[0].args
    assert method == "GET"
    assert url == "https://example.atlassian.net/rest/agile/1.0/board/7/backlog"
    assert mock_request.call_args_list[1].kwargs["params"]["startAt"] == 100
    assert mock_request.call_args_list[0].kwargs["auth"] == ("bot@example.com", "fake_token")


@patch("src.backlog_health.data.fetcher.time.sleep")
@patch("src.backlog_health.data.fetcher.requests.request")
def test_rate_limit_is_retried(mock_request, mock_sleep, fetcher):
    mock_request.side_effect = [
        _response(status_code=429, headers={"Retry-After": "2"}),
        _response([{"id": "customfield_10016", "name": "Story Points"}]),
    ]

    assert fetcher.discover_story_points_field() == "customfield_10016"
    assert mock_sleep.call_count == 1
    assert 2 <= mock_sleep.call_args.args[0] < 3


@patch("src.backlog_health.data.fetcher.time.sleep")
@patch("src.backlog_health.data.fetcher.requests.request")
def test_rate_limit_gives_up_after_retries(mock_request, mock_sleep, fetcher):
    mock_request.return_value = _response(status_code=429)

    with pytest.raises(JiraAPIError) as excinfo:
        fetcher.fetch_fields()

    assert excinfo.value.status_code == 429
    assert mock_request.call_count == 4


@patch("src.backlog_health.data.fetcher.requests.request")
def test_http_error_raises(mock_request, fetcher):
    mock_request.return_value = _response({"errorMessages": ["nope"]}, status_code=404)

    with pytest.raises(JiraAPIError, match="404"):
        fetcher.fetch_issue_changelog("APP-1")


@patch("src.backlog_health.data.fetcher.requests.request")
def test_fetch_issue_changelog_follows_is_last(mock_request, fetcher):
    page = [{"id": str(n), "created": "2024-01-01T00:00:00Z", "items": []} for n in range(100)]
    mock_request.side_effect = [
        _response({"values": page, "isLast": False}),
        _response({"values": page[:3], "isLast": True}),
    ]

    assert len(fetcher.fetch_issue_changelog("APP-1")) == 103


@patch("src.backlog_health.data.fetcher.requests.request")
def test_discover_initiative_field(mock_request, fetcher):
    mock_request.return_value = _response(
        [
            {"id": "summary", "name": "Summary"},
            {"id": "customfield_20000", "name": "Initiative Link"},
        ]
    )
    assert fetcher.discover_initiative_field() == "customfield_20000"


@patch("src.backlog_health.data.fetcher.requests.request")
def test_search_restarts_after_expired_token(mock_request, fetcher):
    mock_request.side_effect = [
        _response({"issues": [_issue("APP-1", "1")], "nextPageToken": "t1"}),
        _response({"errorMessages": ["expired"]}, status_code=400),
        _response({"issues": [_issue("APP-1", "1")], "nextPageToken": "t2"}),
        _response({"issues": [_issue("APP-2", "2")]}),
    ]

    issues = fetcher.search_issues("project = APP", ["summary"])

    assert [i["key"] for i in issues] == ["APP-1", "APP-2"]
    body = mock_request.call_args_list[0].kwargs["json"]
    assert body["jql"] == "project = APP"


@patch("src.backlog_health.data.fetcher.requests.request")
def test_resolve_initiative_linked_epics(mock_request, fetcher):
    mock_request.return_value = _response(
        {
            "issues": [
                {"key": "EPIC-1", "fields": {"parent": {"key": "INIT-1"}}},
                {"key": "EPIC-2", "fields": {}},
            ]
        }
    )
    issues = [
        {"key": "APP-1", "fields": {"parent": {"key": "EPIC-1"}}},
        {"key": "APP-2", "fields": {"parent": {"key": "EPIC-2"}}},
        {"key": "APP-3", "fields": {"parent": {"key": "EPIC-1"}}},
        {"key": "APP-4", "fields": {}},
    ]

    assert fetcher.resolve_initiative_linked_epics(issues) == {"EPIC-1"}
    assert mock_request.call_count == 1
    assert mock_request.call_args.kwargs["json"]["jql"] == "key in (EPIC-1,EPIC-2)"


def test_resolve_initiative_linked_epics_without_parents(fetcher):
    assert fetcher.resolve_initiative_linked_epics([{"key": "APP-1", "fields": {}}]) == set()


@patch("src.backlog_health.data.fetcher.requests.request")
def test_fetch_all_dedupes_and_skips_failed_boards(mock_request, fetcher, tmp_path):
    shared = _issue("APP-1", "1")

    def respond(method, url, **kwargs):
        if url.endswith("/board/1/backlog"):
            return _response({"issues": [shared, _issue("APP-2", "2")], "total": 2})
        if url.endswith("/board/2/backlog"):
            return _response({"issues": [shared], "total": 1})
        if url.endswith("/board/3/backlog"):
            return _response({"errorMessages": ["gone"]}, status_code=500)
        if url.endswith("/board/1"):
            return _response({"id": 1, "name": "App board"})
        return _response({"errorMessages": ["forbidden"]}, status_code=403)

    mock_request.side_effect = respond

    issues_count, boards_count = fetcher.fetch_all(["1", "2", "3"], ["summary"])

    assert (issues_count, boards_count) == (2, 2)
    saved = json.loads((tmp_path / "backlog_raw.json").read_text())
    assert [i["key"] for i in saved] == ["APP-1", "APP-2"]
    boards = json.loads((tmp_path / "boards.json").read_text())
    assert boards == [
        {"id": "1", "name": "App board", "issueIds": ["1", "2"]},
        {"id": "2", "name": "Board 2", "issueIds": ["1"]},
    ]
    assert not (tmp_path / "initiative_epics.json").exists()


@patch("src.backlog_health.data.fetcher.requests.request")
def test_fetch_active_sprint(mock_request, fetcher):
    mock_request.return_value = _response(
        {"values": [{"id": 42, "name": "Sprint 42", "state": "active"}], "isLast": True}
    )

    sprint = fetcher.fetch_active_sprint("7")

    assert sprint["id"] == 42
    method, url = mock_request.call_args.args
    assert url.endswith("/rest/agile/1.0/board/7/sprint")
    assert mock_request.call_args.kwargs["params"]["state"] == "active"


@patch("src.backlog_health.data.fetcher.requests.request")
def test_fetch_active_sprint_none_running(mock_request, fetcher):
    mock_request.return_value = _response({"values": [], "isLast": True})
    assert fetcher.fetch_active_sprint("7") is None


@patch("src.backlog_health.data.fetcher.requests.request")
def test_fetch_sprint_issues(mock_request, fetcher):
    mock_request.return_value = _response({"issues": [_issue("APP-1", "1")], "total": 1})

    issues = fetcher.fetch_sprint_issues(42, ["summary", "assignee"])

    assert [i["key"] for i in issues] == ["APP-1"]
    assert mock_request.call_args.args[1].endswith("/rest/agile/1.0/sprint/42/issue")
    assert mock_request.call_args.kwargs["params"]["fields"] == "summary,assignee"
