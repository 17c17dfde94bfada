"""CLI command for fetching backlog data from Jira."""

import json
import os

import click
from rich.console import Console

from ..config.settings import MissingSettingError, Settings, get_settings
from ..data.fetcher import JiraDataFetcher, issue_fields
from ..engine.models import DEFAULT_STORY_POINTS_FIELD
from ..engine.reporter import META_FILE
from ..utils.helpers import now_utc

console = Console()


def build_fetcher(settings: Settings, output_dir: str = "data") -> JiraDataFetcher:
    """Creates a fetcher from settings, failing fast on missing credentials."""
    try:
        base_url, email, token = settings.jira_auth()
    except MissingSettingError as exc:
        raise click.ClickException(str(exc)) from exc
    return JiraDataFetcher(
        base_url=base_url, email=email, token=token, output_dir=output_dir
    )


def resolve_fields(settings: Settings, fetcher: JiraDataFetcher, caches) -> tuple:
    """Configured field ids win; otherwise discover them once per process."""
    story_points_field = (
        caches.story_points.resolve(
            settings.story_points_field, fetcher.discover_story_points_field
        )
        or DEFAULT_STORY_POINTS_FIELD
    )
    initiative_field = caches.initiative.resolve(
        settings.initiative_field, fetcher.discover_initiative_field
    )
    return story_points_field, initiative_field


@click.command()
@click.option(
    "--output-dir",
    default="data",
    help="Directory to save the fetched data",
    type=click.Path(exists=True, file_okay=False, dir_okay=True),
)
@click.option(
    "--board",
    "boards",
    multiple=True,
    help="Board id to fetch (repeatable). Defaults to JIRA_BOARD_IDS.",
)
@click.pass_obj
def fetch_command(caches, output_dir, boards):
    """Fetch backlog issues from Jira."""
    settings = get_settings()
    board_ids = list(boards) or settings.jira_board_ids
    if not board_ids:
        raise click.ClickException("No boards given; set JIRA_BOARD_IDS or use --board.")

    fetcher = build_fetcher(settings, output_dir)
    with console.status("[bold green]Resolving custom fields..."):
        story_points_field, initiative_field = resolve_fields(settings, fetcher, caches)

    fields = issue_fields(story_points_field, initiative_field)
    with console.status("[bold green]Fetching backlog from Jira..."):
        issues_count, boards_count = fetcher.fetch_all(
            board_ids, fields, resolve_initiatives=bool(initiative_field)
        )

    meta = {
        "fetchedAt": now_utc().isoformat(),
        "jiraBaseUrl": settings.jira_base_url,
        "storyPointsField": story_points_field,
        "initiativeField": initiative_field,
        "boardIds": board_ids,
    }
    with open(os.path.join(output_dir, META_FILE), "w", encoding="utf-8") as f:
        json.dump(meta, f, indent=2)

    console.print(
        f"[green]Saved {issues_count} backlog issues from {boards_count} boards.[/green]"
    )
    if boards_count < len(board_ids):
        console.print(
            f"[yellow]{len(board_ids) - boards_count} boards failed, see logs.[/yellow]"
        )
