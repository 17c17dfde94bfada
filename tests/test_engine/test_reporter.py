# tests/test_engine/test_reporter.py

import json
import os
from datetime import datetime, timezone

import pytest

from src.backlog_health.config.settings import Settings
from src.backlog_health.engine.reporter import BacklogReporter


NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def frozen_clock(monkeypatch):
    """Reports are scored against the same instant as the fixture data."""
    monkeypatch.setattr("src.backlog_health.engine.reporter.now_utc", lambda: NOW)


def _settings(**values):
    return Settings(_env_file=None, **values)


def test_generate_overview_report(temp_data_dir):
    reporter = BacklogReporter(temp_data_dir, _settings())
    report = reporter.generate()

    assert report["mode"] == "overview"
    assert report["aggregate"]["stats"]["totalItems"] == 3
    assert report["aggregate"]["stats"]["blockedItems"] == 1
    assert [b["boardName"] for b in report["boards"]] == ["App", "Web"]
    assert report["boards"][0]["stats"]["totalItems"] == 2
    assert report["boards"][1]["stats"]["blockedItems"] == 1
    # Average of the two recorded sprints
    assert report["avgVelocity"] == 10
    assert [p["sprintName"] for p in report["velocityTrend"]] == ["S1", "S2"]
    assert "1 stories without estimates" in report["flags"]
    # Report must serialize as-is
    json.dumps(report)


def test_generate_uses_discovered_fields(temp_data_dir):
    issues_path = os.path.join(temp_data_dir, "backlog_raw.json")
    with open(issues_path, encoding="utf-8") as f:
        issues = json.load(f)
    issues[0]["fields"]["customfield_30000"] = {"key": "INIT-1"}
    issues[1]["fields"]["parent"] = {"key": "EPIC-7"}
    with open(issues_path, "w", encoding="utf-8") as f:
        json.dump(issues, f)

    with open(os.path.join(temp_data_dir, "meta.json"), "w", encoding="utf-8") as f:
        json.dump({"initiativeField": "customfield_30000"}, f)
    with open(os.path.join(temp_data_dir, "initiative_epics.json"), "w", encoding="utf-8") as f:
        json.dump(["EPIC-7"], f)

    reporter = BacklogReporter(temp_data_dir, _settings())
    config = reporter.scoring_config()
    assert config.initiative_field == "customfield_30000"
    assert config.initiative_linked_epic_keys == frozenset({"EPIC-7"})

    report = reporter.generate()
    # APP-1 (5 SP) linked directly, APP-2 (0 SP) through its epic; WEB-1 (8 SP) not.
    assert report["aggregate"]["stats"]["strategicAllocationPct"] == 38


def test_single_board_report_skips_board_breakdown(temp_data_dir):
    os.remove(os.path.join(temp_data_dir, "boards.json"))
    report = BacklogReporter(temp_data_dir, _settings()).generate()

    assert report["mode"] == "single"
    assert report["boards"] == []


def test_generate_summary(temp_data_dir):
    summary = BacklogReporter(temp_data_dir, _settings(stale_days=30)).generate_summary()

    assert summary["backlogHealth"]["score"] >= 0
    assert any("not updated in 30+ days" in f for f in summary["backlogHealth"]["flags"])
    assert summary["stats"]["staleItems"] == 1
