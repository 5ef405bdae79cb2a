"""Clean command - remove a workspace, its worktrees and branches.

Cleanup sequence:
  1. Determine the feature branch from the source worktree
  2. Remove the source and sample worktrees (and prune registrations)
  3. Delete the local feature and samples branches (protected ones kept)
  4. Remove the workspace directory

Nothing is deleted without --force; --dry-run only prints the plan.
"""

from __future__ import annotations

import click

from space_cli.commands._helpers import get_config, handle_errors
from space_cli.git import current_branch
from space_cli.git_worktree import cleanup_workspace, samples_branch_name, worktree_has_changes
from space_cli.utils import log_info, log_section, log_step, log_success, log_warn
from space_cli.validate import validate_project_key, validate_workspace_name


@click.command()
@click.argument("project")
@click.argument("workspace")
@click.option("--force", "-f", is_flag=True, help="Confirm deletion")
@click.option("--dry-run", is_flag=True, help="Show what would be removed without removing it")
@click.pass_context
@handle_errors
def clean(ctx: click.Context, project: str, workspace: str, force: bool, dry_run: bool) -> None:
    """Remove WORKSPACE of PROJECT."""
    project_key = validate_project_key(project)
    workspace_name = validate_workspace_name(workspace)

    config = get_config(ctx)
    config.get_project(project_key)
    paths = config.get_workspace_paths(project_key, workspace_name, validate=False)

    if not paths.workspace_dir.is_dir():
        log_warn(f"Workspace not found: {paths.workspace_dir}")
        return

    # ------------------------------------------------------------------
    # Branch discovery
    # ------------------------------------------------------------------
    branch = current_branch(paths.source_path) if paths.source_path.is_dir() else ""
    if not branch:
        log_warn("Could not determine the workspace branch; branches will be kept")

    log_section(f"Workspace {workspace_name} ({project_key})")
    log_step(f"Directory: {paths.workspace_dir}")
    if branch:
        log_step(f"Branch: {branch}")
        if paths.has_samples:
            log_step(f"Samples branch: {samples_branch_name(branch)}")

    for label, path in (("Source", paths.source_path), ("Samples", paths.sample_path)):
        if path is not None and worktree_has_changes(path):
            log_warn(f"{label} worktree has uncommitted changes: {path}")

    if dry_run:
        log_info("DRY RUN MODE: nothing will be removed")
        cleanup_workspace(paths, branch or None, dry_run=True)
        return

    if not force:
        click.echo("\nUse --force flag to confirm dangerous operations")
        return

    cleanup_workspace(paths, branch or None)
    log_success(f"Workspace {workspace_name} removed")
