"""List command - display workspaces, grouped by project.

With a project argument only that project's workspaces are shown.
"""

from __future__ import annotations

import click

from space_cli.commands._helpers import get_config, handle_errors
from space_cli.paths import list_workspaces
from space_cli.utils import BOLD, RESET, log_info, log_warn


def _print_project(name: str, key: str, workspaces: list[str]) -> None:
    click.echo(f"\n{BOLD}{name} ({key}):{RESET}")
    for workspace in workspaces:
        click.echo(f"  {workspace}")


@click.command("list")
@click.argument("project", required=False)
@click.pass_context
@handle_errors
def list_cmd(ctx: click.Context, project: str | None) -> None:
    """List workspaces, optionally for a single PROJECT."""
    config = get_config(ctx)

    if project:
        project_config = config.find_project(project)
        names = [p.name for p in list_workspaces(config.get_project_base_dir(project_config.key))]
        if not names:
            log_info(f"No workspaces found for project '{project_config.key}' ({project_config.name})")
            return
        _print_project(project_config.name, project_config.key, names)
        return

    found_any = False
    for key in config.list_projects():
        project_config = config.get_project(key)
        try:
            names = [p.name for p in list_workspaces(config.get_project_base_dir(key))]
        except OSError as exc:
            log_warn(f"Error checking workspaces for project '{key}': {exc}")
            continue
        if names:
            _print_project(project_config.name, key, names)
            found_any = True

    if not found_any:
        log_info("No workspaces found for any project.")
        click.echo("\nTo create a workspace, use:")
        click.echo("  space init <project> [github-ids...] <branch-name>")
        click.echo("\nTo see available projects, use:")
        click.echo("  space projects")
