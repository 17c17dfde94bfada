# src/backlog_health/cli/velocity.py

"""CLI command for recording sprint velocity history."""

import os

import click
from rich.console import Console

from ..config.settings import get_settings
from ..data.velocity import VelocityStore
from ..engine.reporter import VELOCITY_FILE

console = Console()


@click.command()
@click.option(
    "--data-dir",
    default="data",
    help="Directory holding velocity_history.json",
    type=click.Path(exists=True, file_okay=False, dir_okay=True),
)
@click.option("--sprint-id", required=True, type=int, help="Sprint id.")
@click.option("--sprint-name", default="", help="Sprint display name.")
@click.option("--committed", default=0.0, type=float, help="Points committed.")
@click.option("--completed", required=True, type=float, help="Points completed.")
@click.option("--end-date", required=True, help="Sprint end date (ISO 8601).")
def velocity_command(data_dir, sprint_id, sprint_name, committed, completed, end_date):
    """Records one sprint's velocity and prints the rolling average."""
    store = VelocityStore(os.path.join(data_dir, VELOCITY_FILE))
    store.record(
        {
            "sprintId": sprint_id,
            "sprintName": sprint_name or f"Sprint {sprint_id}",
            "committed": committed,
            "completed": completed,
            "endDate": end_date,
        }
    )
    sprint_count = get_settings().velocity_sprint_count
    average = store.average_velocity(sprint_count)
    console.print(
        f"[green]Recorded {sprint_name or sprint_id}. "
        f"Average velocity over last {sprint_count} sprints: {average:.1f}[/green]"
    )
