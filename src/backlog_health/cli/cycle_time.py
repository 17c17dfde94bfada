# src/backlog_health/cli/cycle_time.py

"""CLI command for cycle and lead time analysis."""

import json
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from ..config.settings import get_settings
from ..data.fetcher import ISSUE_FIELDS
from ..engine.cycle_time import MAX_ANALYZED_ISSUES, CycleTimeAnalyzer
from .fetch import build_fetcher

console = Console()


def _days(value: Optional[float]) -> str:
    return f"{value:.1f}d" if value is not None else "n/a"


@click.command()
@click.option(
    "--jql",
    required=True,
    help="JQL selecting the issues to analyze, e.g. a sprint's issues.",
)
@click.option(
    "--max-issues",
    default=MAX_ANALYZED_ISSUES,
    show_default=True,
    help="Maximum number of done issues whose changelog is fetched.",
)
@click.option(
    "--workers",
    default=5,
    show_default=True,
    help="Concurrent changelog requests.",
)
@click.option(
    "--output",
    default=None,
    help="If set, saves the cycle time summary as JSON.",
    type=click.Path(dir_okay=False),
)
def cycle_time_command(jql: str, max_issues: int, workers: int, output: Optional[str]):
    """Computes average cycle and lead time from status history."""
    fetcher = build_fetcher(get_settings())

    with console.status("[bold green]Searching issues..."):
        issues = fetcher.search_issues(jql, ISSUE_FIELDS)

    analyzer = CycleTimeAnalyzer(
        changelog_loader=fetcher.fetch_issue_changelog,
        max_issues=max_issues,
        max_workers=workers,
    )
    with console.status("[bold green]Fetching changelogs..."):
        summary = analyzer.analyze(issues)

    table = Table(title="Cycle Time", show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Avg cycle time", _days(summary.avg_cycle_time))
    table.add_row("Median cycle time", _days(summary.median_cycle_time))
    table.add_row("P90 cycle time", _days(summary.p90_cycle_time))
    table.add_row("Avg lead time", _days(summary.avg_lead_time))
    table.add_row("Issues analyzed", str(summary.analyzed))
    console.print(table)

    if summary.skipped:
        console.print(f"[yellow]{summary.skipped} issues skipped (changelog errors)[/yellow]")

    if output:
        with open(output, "w", encoding="utf-8") as f:
            json.dump(summary.to_summary(), f, indent=2)
        console.print(f"\n[green]Cycle times saved to {output}[/green]")
