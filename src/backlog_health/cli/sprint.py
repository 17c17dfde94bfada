# src/backlog_health/cli/sprint.py

"""CLI command for the active sprint's progress."""

import json
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from ..config.settings import get_settings
from ..data.fetcher import issue_fields
from ..engine.cycle_time import CycleTimeAnalyzer
from ..engine.sprint import summarize_sprint
from .fetch import build_fetcher, resolve_fields

console = Console()


@click.command()
@click.option(
    "--board", default=None, help="Board id. Defaults to the first of JIRA_BOARD_IDS."
)
@click.option(
    "--cycle-time/--no-cycle-time",
    default=True,
    show_default=True,
    help="Also compute cycle and lead time of the sprint's done issues.",
)
@click.option(
    "--output",
    default=None,
    help="If set, saves the sprint summary as JSON.",
    type=click.Path(dir_okay=False),
)
@click.pass_obj
def sprint_command(caches, board: Optional[str], cycle_time: bool, output: Optional[str]):
    """Shows points by status, WIP per assignee and blockers of the active sprint."""
    settings = get_settings()
    board_id = board or (settings.jira_board_ids[0] if settings.jira_board_ids else None)
    if not board_id:
        raise click.ClickException("No board given; set JIRA_BOARD_IDS or use --board.")

    fetcher = build_fetcher(settings)
    with console.status("[bold green]Fetching active sprint..."):
        sprint = fetcher.fetch_active_sprint(board_id)
        if sprint is None:
            raise click.ClickException(f"No active sprint found on board {board_id}.")
        story_points_field, _ = resolve_fields(settings, fetcher, caches)
        issues = fetcher.fetch_sprint_issues(sprint["id"], issue_fields(story_points_field))

    summary = summarize_sprint(sprint, issues, story_points_field, settings.wip_limit)
    report = summary.to_summary()

    table = Table(
        title=summary.name or "Active Sprint", show_header=True, header_style="bold magenta"
    )
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Completed", f"{summary.completed_points:g}/{summary.total_points:g} SP")
    table.add_row("In progress", f"{summary.in_progress_points:g} SP")
    table.add_row("To do", f"{summary.todo_points:g} SP")
    table.add_row("Completion", f"{summary.completion_rate:.0%}")
    table.add_row("Unassigned", str(summary.unassigned_count))
    table.add_row("Added after start", str(summary.scope_added))
    console.print(table)

    for name, wip in summary.wip_per_assignee.items():
        style = "red" if wip.over_limit else "dim"
        console.print(f"[{style}]{name}: {wip.count} in progress ({wip.points:g} SP)[/{style}]")
    for blocker in summary.blockers:
        console.print(
            f"[yellow]! blocked: {blocker.key} {blocker.summary} ({blocker.assignee})[/yellow]"
        )

    if cycle_time:
        analyzer = CycleTimeAnalyzer(changelog_loader=fetcher.fetch_issue_changelog)
        with console.status("[bold green]Fetching changelogs..."):
            times = analyzer.analyze(issues)
        report["cycleTime"] = times.avg_cycle_time
        report["leadTime"] = times.avg_lead_time
        console.print(
            f"Avg cycle time: {times.avg_cycle_time}, avg lead time: {times.avg_lead_time}"
        )

    if output:
        with open(output, "w", encoding="utf-8") as f:
            json.dump(report, f, indent=2)
        console.print(f"\n[green]Sprint summary saved to {output}[/green]")
