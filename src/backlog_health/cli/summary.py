# src/backlog_health/cli/summary.py

"""CLI command for generating a lean backlog summary."""

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
    default="backlog_summary.json",
    help="Path for the lean summary JSON file.",
    type=click.Path(dir_okay=False),
)
def summary_command(data_dir: str, output: str):
    """Generates a lean summary with the score, stats and alert messages."""
    reporter = BacklogReporter(data_dir, get_settings())
    summary = reporter.generate_summary()

    with open(output, "w", encoding="utf-8") as f:
        json.dump(summary, f, indent=2)

    console.print(f"[green]Backlog summary saved to {output}[/green]")
    console.print(
        f"[bold]Health Score: {summary['backlogHealth']['score']}/100[/bold]"
    )
    for flag in summary["backlogHealth"]["flags"]:
        console.print(f"[yellow]- {flag}[/yellow]")
