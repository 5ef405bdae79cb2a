"""Info command - show paths and status of one workspace."""

from __future__ import annotations

import click

from space_cli.commands._helpers import get_config, handle_errors
from space_cli.errors import ConfigError
from space_cli.git import worktree_status
from space_cli.utils import BOLD, GREEN, RED, RESET, format_kv
from space_cli.validate import validate_project_key, validate_workspace_name


def _worktree_line(label: str, path) -> str:
    if path is None:
        return format_kv(label, "not configured")
    if not path.is_dir():
        return format_kv(label, f"{RED}missing{RESET} ({path})")
    status = worktree_status(path)
    dirty = f", {status.changed_files} changed" if status.changed_files else ""
    branch = status.branch or "detached"
    return format_kv(label, f"{GREEN}ready{RESET} [{branch}{dirty}] {status.last_commit}".rstrip())


@click.command()
@click.argument("project")
@click.argument("workspace")
@click.pass_context
@handle_errors
def info(ctx: click.Context, project: str, workspace: str) -> None:
    """Show details for WORKSPACE of PROJECT."""
    project_key = validate_project_key(project)
    workspace_name = validate_workspace_name(workspace)

    config = get_config(ctx)
    project_config = config.get_project(project_key)
    paths = config.get_workspace_paths(project_key, workspace_name, validate=False)

    if not paths.workspace_dir.is_dir():
        raise ConfigError(
            f"Workspace '{workspace_name}' not found for project '{project_key}' at {paths.workspace_dir}"
        )

    click.echo(f"{BOLD}Project:{RESET} {project_config.name} ({project_key})")
    click.echo(format_kv("Workspace", str(paths.workspace_dir)))
    click.echo(format_kv("Source repository", str(paths.source_repo_path)))
    click.echo(format_kv("Sample repository", str(paths.sample_repo_path or "N/A")))
    if paths.sample_app_path is not None:
        click.echo(format_kv("Sample app", str(paths.sample_app_path)))

    click.echo("")
    click.echo(f"{BOLD}Worktree Status:{RESET}")
    click.echo(_worktree_line("Source", paths.source_path))
    if paths.has_samples:
        click.echo(_worktree_line("Samples", paths.sample_path))

    env_file = config.get_env_file_path(project_key)
    if env_file is not None:
        state = "available" if env_file.is_file() else "missing"
        click.echo(format_kv("Environment", f"{state} ({env_file})"))
