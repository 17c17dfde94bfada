# src/backlog_health/cli/score.py

"""CLI command for scoring backlog health."""

import json
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from ..config.settings import get_settings
from ..engine.models import BacklogHealthResult
from ..engine.reporter import BacklogReporter
from ..engine.scorer import BacklogHealthScorer

console = Console()


def render_result(result: BacklogHealthResult) -> None:
    """Prints the dimension table and alerts."""
    table = Table(
        title="Backlog Health Score", show_header=True, header_style="bold magenta"
    )
    table.add_column("Dimension", style="cyan", width=24)
    table.add_column("Score", style="green", width=10)
    table.add_column("Weight", style="dim", width=8)
    table.add_column("Detail")

    for dimension in result.dimensions:
        table.add_row(
            dimension.name,
            f"{dimension.score}/100",
            f"{dimension.weight * 100:.0f}%",
            dimension.detail,
        )

    table.add_row("---", "---", "---", "---")
    table.add_row(
        "Overall Score",
        f"[bold]{result.health_score}/100[/bold]",
        "100%",
        f"{result.ready_items}/{result.total_items} ready, "
        f"{result.blocked_items} blocked",
    )
    console.print(table)

    for alert in result.alerts:
        keys = f" ({', '.join(alert.issues)})" if alert.issues else ""
        console.print(f"[yellow]! {alert.type.value}: {alert.message}{keys}[/yellow]")


@click.command()
@click.option(
    "--data-dir",
    default="data",
    help="Directory holding the fetched data and discovered field ids.",
    type=click.Path(exists=True, file_okay=False, dir_okay=True),
)
@click.option(
    "--issues-file",
    default=None,
    help="Backlog issues JSON file. Defaults to backlog_raw.json in --data-dir.",
    type=click.Path(exists=True, dir_okay=False),
)
@click.option(
    "--avg-velocity",
    type=float,
    default=None,
    help="Average completed points per sprint. Defaults to the recorded history.",
)
@click.option(
    "--initiative-field",
    default=None,
    help="Custom field id of the initiative link (overrides INITIATIVE_FIELD).",
)
@click.option(
    "--output",
    default=None,
    help="If set, saves the score summary as JSON.",
    type=click.Path(dir_okay=False),
)
def score_command(
    data_dir: str,
    issues_file: Optional[str],
    avg_velocity: Optional[float],
    initiative_field: Optional[str],
    output: Optional[str],
):
    """Calculates and displays a deterministic backlog health score."""
    reporter = BacklogReporter(data_dir, get_settings())
    if issues_file:
        with open(issues_file, "r", encoding="utf-8") as f:
            issues = json.load(f)
    else:
        issues = reporter.load_issues()

    # Same field ids and linked epics as the report; CLI flags win
    overrides = {}
    if initiative_field:
        overrides["initiative_field"] = initiative_field
    if avg_velocity is not None:
        overrides["avg_velocity"] = avg_velocity
    config = reporter.scoring_config().model_copy(update=overrides)

    result = BacklogHealthScorer(config).score(issues)
    render_result(result)

    if output:
        with open(output, "w", encoding="utf-8") as f:
            json.dump(result.to_summary(), f, indent=2)
        console.print(f"\n[green]Score saved to {output}[/green]")
