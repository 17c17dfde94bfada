# tests/test_engine/test_scorer.py

import json

from src.backlog_health.engine.models import AlertType, ScoringConfig
from src.backlog_health.engine.scorer import BacklogHealthScorer, score_backlog_health
from src.backlog_health.utils.helpers import round_half_up


def _mixed_backlog(make_issue):
    link = [{"type": {"name": "Blocks"}, "inwardIssue": {"key": "OPS-1"}}]
    return [
        make_issue("APP-1", points=5, priority="High", initiative={"key": "INIT-1"}),
        make_issue("APP-2", points=8, priority="Low", links=link, updated_days_ago=10),
        make_issue("APP-3", points=0, priority="Medium", updated_days_ago=70),
        make_issue("APP-4", points="L", priority="High", created_days_ago=120,
                   updated_days_ago=100),
        make_issue("APP-5", points=3, priority=None, description="todo",
                   status="Ready", flagged=True),
    ]


def test_empty_backlog(scoring_config):
    result = score_backlog_health([], scoring_config)

    # Neutral 50s and the 100 fallbacks: 8 + 0 + 10 + 5 + 10 + 10 + 0 + 8
    assert result.health_score == 51
    assert result.total_items == 0
    assert result.ready_items == 0
    assert result.alerts == ()
    assert result.ready_pct == 0
    assert [d.name for d in result.dimensions] == [
        "Strategic Allocation",
        "Backlog Readiness",
        "Dependencies",
        "Avg Blocked Duration",
        "Priority Distribution",
        "Age Distribution",
        "Grooming Freshness",
        "2-Sprint Readiness",
    ]


def test_health_score_is_sum_of_rounded_weighted_scores(make_issue, initiative_config):
    config = initiative_config.model_copy(
        update={"avg_velocity": 12, "ready_statuses": ("Ready",)}
    )
    result = score_backlog_health(_mixed_backlog(make_issue), config)

    expected = round_half_up(
        sum(round_half_up(d.score * d.weight) for d in result.dimensions)
    )
    assert result.health_score == expected
    assert 0 <= result.health_score <= 100
    for dimension in result.dimensions:
        assert 0 <= dimension.score <= 100
        assert dimension.weighted_score == round_half_up(dimension.score * dimension.weight)


def test_result_counters(make_issue, initiative_config):
    result = score_backlog_health(_mixed_backlog(make_issue), initiative_config)

    assert result.total_items == 5
    assert result.ready_items == 1  # only APP-1 is fully defined and linked
    assert result.blocked_items == 2
    assert result.estimated_items == 4
    assert result.stale_items == 2
    assert result.zombie_items == 1
    # 5 of 24 points linked
    assert result.strategic_allocation_pct == 21
    assert result.blocked_pct == 40
    assert result.alert(AlertType.BLOCKED).issues == ("APP-2", "APP-5")
    assert result.alert(AlertType.PRIORITY_INFLATION) is None


def test_scoring_is_idempotent(make_issue, initiative_config):
    issues = _mixed_backlog(make_issue)
    scorer = BacklogHealthScorer(initiative_config)

    first = scorer.score(issues)
    second = scorer.score(issues)

    assert first == second
    assert first.model_dump_json() == second.model_dump_json()


def test_scoring_does_not_mutate_input(make_issue, scoring_config):
    issues = _mixed_backlog(make_issue)
    snapshot = [dict(issue) for issue in issues]
    score_backlog_health(issues, scoring_config)
    assert [dict(issue) for issue in issues] == snapshot


def test_unpinned_clock_is_fixed_once_per_run(make_issue):
    scorer = BacklogHealthScorer(ScoringConfig())
    result = scorer.score([make_issue("APP-1")])
    assert result.total_items == 1
    assert scorer.config.now is None


def test_to_summary_is_json_ready(make_issue, scoring_config):
    summary = score_backlog_health(_mixed_backlog(make_issue), scoring_config).to_summary()

    assert summary["healthScore"] >= 0
    assert summary["stats"]["totalItems"] == 5
    assert summary["dimensions"][0]["weightedScore"] == 8
    assert all(isinstance(a["type"], str) for a in summary["alerts"])
    assert "issues" not in summary


def test_non_finite_estimates_count_as_unestimated(make_issue, initiative_config):
    config = initiative_config.model_copy(
        update={"avg_velocity": 10, "ready_statuses": ("To Do",)}
    )
    issues = [
        make_issue("APP-1", points=json.loads("NaN")),
        make_issue("APP-2", points=json.loads("Infinity")),
        make_issue("APP-3", points=5, initiative={"key": "INIT-1"}),
    ]

    result = score_backlog_health(issues, config)

    assert result.estimated_items == 1
    assert result.strategic_allocation_pct == 100
    assert result.alert(AlertType.UNESTIMATED).issues == ("APP-1", "APP-2")
    assert 0 <= result.health_score <= 100
