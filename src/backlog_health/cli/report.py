# src/backlog_health/cli/report.py

"""CLI command for generating the full backlog health report."""

import json

import click
from rich.console import Console

from ..config.settings import get_settings
from ..engine.reporter import BacklogReporter

console = Console()


@click.command()
@click.option(
    "--data-dir",
    default="data",
    help="Directory containing the fetched raw JSON files (e.g., 'data/')",
    type=click.Path(exists=True, file_okay=False, dir_okay=True),
)
@click.option(
    "--output",
    default="backlog_report.json",
    help="Path for the report JSON file.",
    type=click.Path(dir_okay=False),
)
def report_command(data_dir: str, output: str):
    """Generates a report with aggregate and per-board health, flags and trend."""
    reporter = BacklogReporter(data_dir, get_settings())
    report = reporter.generate()

    with open(output, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2)

    console.print(f"[green]Backlog report saved to {output}[/green]")
    console.print(
        f"[bold]Health Score: {report['aggregate']['healthScore']}/100[/bold]"
    )
    if report["flags"]:
        console.print(f"[yellow]Alerts Raised: {len(report['flags'])}[/yellow]")
