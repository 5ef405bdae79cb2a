"""Init command - create a workspace for a feature branch.

Usage: space init <project> [github-ids...] <branch>

Sequence:
  1. Validate the project key, GitHub IDs, and branch name
  2. Check the referenced issues exist (gh), unless --dry-run
  3. Resolve (or clear) the workspace directory
  4. Create the source and sample worktrees
  5. Copy the project's env file into the sample worktree
  6. Run the project's post-init command, unless --no-post-init
"""

from __future__ import annotations

import shutil
import sys
from pathlib import Path

import click

from space_cli.commands._helpers import get_config, handle_errors, is_noninteractive
from space_cli.config import ConfigManager
from space_cli.constants import TIMEOUT_POST_INIT
from space_cli.errors import WorkspaceConflictError
from space_cli.git_worktree import cleanup_workspace, samples_branch_name, setup_worktrees
from space_cli.github import GitHubCliService, validate_issues_exist
from space_cli.models import ExecutionOptions, ProjectConfig
from space_cli.paths import WorkspacePaths, ensure_dir, repo_basename
from space_cli.secure_exec import execute_shell_command
from space_cli.utils import (
    configure_logging,
    log_error,
    log_info,
    log_section,
    log_step,
    log_success,
    log_verbose,
    log_warn,
)
from space_cli.validate import (
    validate_branch_name,
    validate_github_ids,
    validate_project_key,
    workspace_name_for_branch,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve_existing_workspace(
    ctx: click.Context,
    paths: WorkspacePaths,
    branch: str,
    silent: bool,
    dry_run: bool,
) -> None:
    """Clear a non-empty workspace directory, or refuse.

    --silent removes it without asking. Non-interactive sessions refuse
    with WorkspaceConflictError. Otherwise the user is asked.
    """
    workspace_dir = paths.workspace_dir
    if dry_run or not workspace_dir.is_dir() or not any(workspace_dir.iterdir()):
        return

    if silent:
        log_warn(f"Workspace {workspace_dir} already exists. Auto-removing in silent mode...")
        cleanup_workspace(paths, branch)
        return

    if is_noninteractive(ctx):
        raise WorkspaceConflictError(
            f"Workspace directory already exists: {workspace_dir}. "
            "Use --silent to overwrite existing workspaces in non-interactive mode."
        )

    click.echo(f"\nWorkspace directory already exists: {workspace_dir}\n")
    if not click.confirm("Clean and overwrite?", default=False):
        click.echo("Aborted.")
        sys.exit(0)
    cleanup_workspace(paths, branch)


def _copy_env_file(config: ConfigManager, project: ProjectConfig, paths: WorkspacePaths, dry_run: bool) -> None:
    env_file = config.get_env_file_path(project.key)
    if env_file is None or paths.sample_path is None:
        return
    target = paths.sample_path / ".env.local"
    if not env_file.is_file():
        log_warn(f"Environment file not found: {env_file}")
        return
    if dry_run:
        log_step(f"[dry-run] Would copy {env_file} to {target}")
        return
    log_verbose(f"Copying environment variables from {env_file}...")
    shutil.copyfile(env_file, target)


def _run_post_init(project: ProjectConfig, workspace_dir: Path, dry_run: bool) -> int:
    """Run the configured post-init command; return its exit code."""
    command = project.post_init
    if not command:
        log_verbose("No post-init command configured, skipping...")
        return 0
    if dry_run:
        log_step(f"[dry-run] Would execute: {command}")
        return 0

    log_section("Running post-init")
    log_step(command)
    result = execute_shell_command(
        command,
        ExecutionOptions(cwd=workspace_dir, timeout=TIMEOUT_POST_INIT),
    )
    if not result.ok:
        log_error(f"post-init command failed (exit {result.exit_code})")
        output = (result.stderr or result.stdout).strip()
        if output:
            click.echo(output, err=True)
    return result.exit_code


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------


@click.command()
@click.argument("project")
@click.argument("args", nargs=-1, required=True)
@click.option("--dry-run", is_flag=True, help="Show what would be done without executing")
@click.option("--silent", is_flag=True, help="Suppress output and overwrite existing workspaces")
@click.option("--no-post-init", is_flag=True, help="Skip the project's post-init command")
@click.pass_context
@handle_errors
def init(
    ctx: click.Context,
    project: str,
    args: tuple[str, ...],
    dry_run: bool,
    silent: bool,
    no_post_init: bool,
) -> None:
    """Create a workspace: PROJECT [GITHUB_IDS...] BRANCH."""
    obj = ctx.ensure_object(dict)
    if silent:
        configure_logging(obj.get("verbose", False), obj.get("debug", False), silent=True)

    # ------------------------------------------------------------------
    # Validate every input before touching anything
    # ------------------------------------------------------------------
    validate_project_key(project)
    issue_ids = validate_github_ids(list(args[:-1]))
    branch = validate_branch_name(args[-1])
    workspace_name = workspace_name_for_branch(branch)

    config = get_config(ctx)
    project_config = config.find_project(project)
    paths = config.get_workspace_paths(project_config.key, workspace_name, validate=not dry_run)

    log_section(f"Creating workspace {workspace_name} for {project_config.name}")
    log_step(f"Branch: {branch}")
    if paths.has_samples:
        log_step(f"Samples branch: {samples_branch_name(branch)}")
    log_step(f"Directory: {paths.workspace_dir}")
    if dry_run:
        log_info("DRY RUN MODE: nothing will be changed")

    if issue_ids and not dry_run:
        if project_config.github_org:
            GitHubCliService().ensure_available()
            validate_issues_exist(issue_ids, project_config.github_org, repo_basename(project_config.repo))
        else:
            log_warn("No github_org configured; skipping issue validation")

    # ------------------------------------------------------------------
    # Workspace directory and worktrees
    # ------------------------------------------------------------------
    _resolve_existing_workspace(ctx, paths, branch, silent, dry_run)
    if not dry_run:
        ensure_dir(paths.workspace_dir)

    setup_worktrees(paths, branch, dry_run=dry_run)
    _copy_env_file(config, project_config, paths, dry_run)

    # ------------------------------------------------------------------
    # Post-init
    # ------------------------------------------------------------------
    if not no_post_init:
        exit_code = _run_post_init(project_config, paths.workspace_dir, dry_run)
        if exit_code != 0:
            sys.exit(exit_code)

    log_success(f"Workspace ready: {paths.workspace_dir}")
