"""Projects command - list configured projects."""

from __future__ import annotations

import click

from space_cli.commands._helpers import get_config, handle_errors
from space_cli.utils import BOLD, RESET, log_info


@click.command()
@click.pass_context
@handle_errors
def projects(ctx: click.Context) -> None:
    """List all available projects."""
    config = get_config(ctx)
    keys = config.list_projects()
    if not keys:
        log_info("No projects configured.")
        return

    click.echo(f"\n{BOLD}Available projects:{RESET}")
    for key in keys:
        project = config.get_project(key)
        click.echo(f"  {key}: {project.name}")
        click.echo(f"    Repository: {project.repo}")
        click.echo(f"    Samples: {project.sample_repo or 'N/A'}")
        click.echo(f"    GitHub Org: {project.github_org or 'N/A'}")
        if project.post_init:
            click.echo(f"    Post-init: {project.post_init}")
        click.echo("")

    click.echo("Usage:")
    click.echo("  space init <project> [github-ids...] <branch-name>")
    click.echo(f"  space init {keys[0]} 123 456 feature/my-branch")
