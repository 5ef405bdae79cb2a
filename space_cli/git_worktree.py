"""Git worktree management for workspaces.

Handles:
  - Companion branch naming for the sample repository
  - Worktree creation with fallbacks and removal
  - Uncommitted change detection
  - Full workspace teardown (worktrees, branches, directory)

Protected branch patterns are never deleted by cleanup.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Optional

from space_cli.constants import (
    MAX_BRANCH_NAME_LENGTH,
    SAMPLES_BRANCH_SUFFIX,
    TIMEOUT_GIT_QUERY,
    TIMEOUT_GIT_TRANSFER,
)
from space_cli.errors import DependencyError, GitError, PolicyError
from space_cli.git import (
    ensure_repositories_fresh,
    get_default_branch,
    validate_repository,
)
from space_cli.models import ExecutionOptions
from space_cli.paths import WorkspacePaths, safe_remove
from space_cli.secure_exec import execute_git_command
from space_cli.utils import log_info, log_step, log_verbose, log_warn
from space_cli.validate import require_commands, validate_branch_name

_PROTECTED_BRANCHES = (
    r"^main$",
    r"^master$",
    r"^develop$",
    r"^production$",
    r"^release/",
    r"^hotfix/",
)


def samples_branch_name(branch: str) -> str:
    """Derive the sample-repository branch for a feature branch.

    ``bugfix/RT-same-scope-as-AT`` becomes ``bugfix-RT-same-scope-as-AT-samples``.
    The result is itself a valid branch name. Long names are shortened
    before the suffix is added, so the suffix always survives.
    """
    flat = validate_branch_name(branch).replace("/", "-")
    flat = flat[:MAX_BRANCH_NAME_LENGTH - len(SAMPLES_BRANCH_SUFFIX)]
    return validate_branch_name(f"{flat}{SAMPLES_BRANCH_SUFFIX}")


def is_protected_branch(branch: str) -> bool:
    return any(re.match(pattern, branch) for pattern in _PROTECTED_BRANCHES)


# ============================================================================
# Core Worktree Operations
# ============================================================================


def worktree_has_changes(worktree_path: str | Path) -> bool:
    """Check if a worktree has uncommitted or untracked changes.

    Args:
        worktree_path: Path to the worktree.

    Returns:
        True if ``git status`` reports anything, False if clean or missing.
    """
    wt_p = Path(worktree_path)
    if not wt_p.exists():
        return False
    result = execute_git_command(
        ["-C", str(wt_p), "status", "--porcelain"],
        ExecutionOptions(timeout=TIMEOUT_GIT_QUERY),
    )
    if not result.ok:
        # Unknown state counts as dirty so nothing is deleted by mistake.
        return True
    return bool(result.stdout.strip())


def prune_worktrees(repo_path: str | Path) -> None:
    """Drop stale worktree registrations (failures ignored)."""
    execute_git_command(
        ["-C", str(repo_path), "worktree", "prune"],
        ExecutionOptions(timeout=TIMEOUT_GIT_QUERY),
    )


def add_worktree(
    repo_path: str | Path,
    worktree_path: str | Path,
    branch: str,
    base_branch: str = "main",
    dry_run: bool = False,
) -> None:
    """Create a worktree for *branch* at *worktree_path*.

    Tries, in order: a new branch from ``origin/<base_branch>``, attaching
    an existing *branch*, and forcing the attach.

    Args:
        repo_path: Repository that owns the worktree.
        worktree_path: Where the worktree is created.
        branch: Branch to create or check out.
        base_branch: Branch the new branch starts from.
        dry_run: Log the plan and do nothing.

    Raises:
        GitError: If every attempt fails (with each attempt's stderr).
        PolicyError: If a branch name or path is unsafe.
    """
    branch = validate_branch_name(branch)
    base_branch = validate_branch_name(base_branch)
    repo = str(repo_path)
    wt_p = Path(worktree_path)

    if dry_run:
        log_step(f"[dry-run] Would create worktree {wt_p} on {branch} (from origin/{base_branch})")
        return

    if wt_p.exists():
        log_warn(f"Removing stale worktree directory: {wt_p}")
        safe_remove(wt_p)

    prune_worktrees(repo)

    attempts = [
        (["worktree", "add", "-b", branch, "--", str(wt_p), f"origin/{base_branch}"],
         f"Creating branch: {branch} (from origin/{base_branch})"),
        (["worktree", "add", "--", str(wt_p), branch],
         f"Using existing branch: {branch}"),
        (["worktree", "add", "-f", "--", str(wt_p), branch],
         f"Forcing worktree for branch: {branch}"),
    ]
    errors: list[str] = []
    for args, description in attempts:
        log_verbose(f"  {description}")
        result = execute_git_command(
            ["-C", repo, *args],
            ExecutionOptions(timeout=TIMEOUT_GIT_TRANSFER),
        )
        if result.ok:
            log_step(f"Worktree ready: {wt_p} ({branch})")
            return
        errors.append(result.stderr.strip())

    raise GitError(
        f"Failed to create worktree {wt_p} for branch {branch}:\n" + "\n".join(filter(None, errors))
    )


def setup_worktrees(
    paths: WorkspacePaths,
    branch: str,
    dry_run: bool = False,
) -> None:
    """Create the source (and sample) worktrees of a workspace.

    The source worktree is on *branch*; the sample worktree is on
    ``samples_branch_name(branch)``. Both start from their repository's
    default branch after a concurrent fetch.

    Raises:
        DependencyError: If git is not installed.
        GitError: If a repository is unusable or a worktree cannot be created.
    """
    repos = [paths.source_repo_path]
    if paths.has_samples:
        repos.append(paths.sample_repo_path)

    if not dry_run:
        if require_commands(["git"]):
            raise DependencyError("git is required but was not found in PATH")
        validate_repository(paths.source_repo_path, "Source")
        if paths.has_samples:
            validate_repository(paths.sample_repo_path, "Sample")

    ensure_repositories_fresh(repos, dry_run=dry_run)

    base = "main" if dry_run else get_default_branch(paths.source_repo_path)
    add_worktree(paths.source_repo_path, paths.source_path, branch, base, dry_run)

    if paths.has_samples:
        sample_base = "main" if dry_run else get_default_branch(paths.sample_repo_path)
        add_worktree(
            paths.sample_repo_path,
            paths.sample_path,
            samples_branch_name(branch),
            sample_base,
            dry_run,
        )


def remove_worktree(
    repo_path: str | Path,
    worktree_path: str | Path,
    dry_run: bool = False,
) -> None:
    """Remove a git worktree.

    Uses ``git worktree remove --force``; falls back to deleting the
    directory when git refuses.
    """
    wt_p = Path(worktree_path)
    if not wt_p.exists():
        return
    if dry_run:
        log_step(f"[dry-run] Would remove worktree {wt_p}")
        return

    result = execute_git_command(
        ["-C", str(repo_path), "worktree", "remove", "--force", str(wt_p)],
        ExecutionOptions(timeout=TIMEOUT_GIT_TRANSFER),
    )
    if not result.ok:
        log_warn(f"git worktree remove failed for {wt_p}; deleting directory")
        safe_remove(wt_p)


def delete_branch(repo_path: str | Path, branch: str, dry_run: bool = False) -> bool:
    """Delete a local branch unless it is protected.

    Names that validation would alter are refused rather than cleaned, so
    the branch deleted is always the one named.

    Returns:
        True if the branch was deleted (or would be, in dry-run mode).
    """
    if not branch:
        return False
    try:
        cleaned = validate_branch_name(branch)
    except PolicyError as e:
        log_warn(f"Not deleting branch {branch!r}: {e}")
        return False
    if cleaned != branch:
        log_warn(f"Not deleting branch {branch!r}: name contains unsupported characters")
        return False
    if is_protected_branch(cleaned):
        return False
    branch = cleaned
    if dry_run:
        log_step(f"[dry-run] Would delete branch {branch} in {repo_path}")
        return True

    result = execute_git_command(
        ["-C", str(repo_path), "branch", "-D", branch],
        ExecutionOptions(timeout=TIMEOUT_GIT_QUERY),
    )
    if result.ok:
        log_step(f"Deleted branch: {branch}")
    return result.ok


def cleanup_workspace(
    paths: WorkspacePaths,
    branch: Optional[str],
    dry_run: bool = False,
) -> None:
    """Tear down a workspace.

    Removes the worktrees, prunes their registrations, deletes the feature
    and samples branches, and removes the workspace directory.

    Args:
        paths: Workspace paths.
        branch: Feature branch of the workspace (None skips branch deletion).
        dry_run: Log the plan and do nothing.
    """
    pairs = [(paths.source_repo_path, paths.source_path, branch)]
    if paths.has_samples:
        pairs.append((
            paths.sample_repo_path,
            paths.sample_path,
            samples_branch_name(branch) if branch else None,
        ))

    for repo, worktree, worktree_branch in pairs:
        remove_worktree(repo, worktree, dry_run)
        if not dry_run and Path(repo).is_dir():
            prune_worktrees(repo)
        if worktree_branch and Path(repo).is_dir():
            delete_branch(repo, worktree_branch, dry_run)

    if dry_run:
        log_step(f"[dry-run] Would remove directory {paths.workspace_dir}")
        return
    safe_remove(paths.workspace_dir)
    log_info(f"Removed workspace: {paths.workspace_dir}")
