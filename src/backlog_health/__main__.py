"""Main entry point for the backlog-health CLI."""

import logging

import click

from .cli.cycle_time import cycle_time_command
from .cli.fetch import fetch_command
from .cli.report import report_command
from .cli.score import score_command
from .cli.sprint import sprint_command
from .cli.summary import summary_command
from .cli.velocity import velocity_command
from .data.field_cache import FieldDiscoveryCache


class FieldCaches:
    """Discovery caches shared by the commands of one process."""

    def __init__(self):
        self.story_points = FieldDiscoveryCache("story points field")
        self.initiative = FieldDiscoveryCache("initiative field")


@click.group()
@click.version_option(package_name="backlog-health")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging.")
@click.pass_context
def main(ctx, verbose):
    """Backlog Health Analyzer - Score the health of Jira backlogs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.ensure_object(FieldCaches)


main.add_command(fetch_command, name="fetch")
main.add_command(score_command, name="score")
main.add_command(sprint_command, name="sprint")
main.add_command(report_command, name="report")
main.add_command(summary_command, name="summary")
main.add_command(cycle_time_command, name="cycle-time")
main.add_command(velocity_command, name="velocity")


if __name__ == "__main__":
    main()
