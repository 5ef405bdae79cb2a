"""Git operations for repository management.

Handles:
  - Retry wrapper with exponential backoff for git commands
  - Branch existence and default-branch detection
  - Repository sanity checks and freshness (concurrent fetch)
  - Working-tree status queries

Every command goes through ``space_cli.secure_exec``; paths and refs are
passed as separate arguments, never joined into a command line.
"""

from __future__ import annotations

import asyncio
import functools
import time
from pathlib import Path
from typing import Callable, NamedTuple, Optional, Sequence

from space_cli.constants import FETCH_ATTEMPTS, TIMEOUT_GIT_QUERY, TIMEOUT_GIT_TRANSFER
from space_cli.errors import GitError
from space_cli.models import ExecutionOptions, ExecutionResult
from space_cli.secure_exec import execute_git_command, execute_secure_command_async
from space_cli.utils import log_debug, log_step, log_verbose, log_warn


def _query(args: Sequence[str]) -> ExecutionResult:
    return execute_git_command(list(args), ExecutionOptions(timeout=TIMEOUT_GIT_QUERY))


# ============================================================================
# Core Git Operations
# ============================================================================


def git_with_retry(
    args: list[str],
    *,
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    timeout: float = TIMEOUT_GIT_TRANSFER,
    _sleep: Optional[Callable[[float], None]] = None,
) -> ExecutionResult:
    """Run a git command with exponential backoff retry.

    Retries up to *max_attempts* times with doubling delay between
    attempts. Policy errors (unsafe arguments) are raised on the first
    attempt and never retried.

    Args:
        args: Git sub-command and arguments (e.g. ``["-C", repo, "fetch", "origin"]``).
        max_attempts: Maximum number of attempts (default 3).
        initial_delay: Seconds to wait before first retry (doubles each retry).
        timeout: Per-attempt timeout in seconds.
        _sleep: Injectable sleep function (defaults to ``time.sleep``).

    Returns:
        The result of the successful attempt.

    Raises:
        GitError: If all attempts fail, with the last stderr output.
    """
    sleep = _sleep or time.sleep
    delay = initial_delay
    last_result: Optional[ExecutionResult] = None

    for attempt in range(1, max_attempts + 1):
        result = execute_git_command(args, ExecutionOptions(timeout=timeout))
        if result.ok:
            return result

        last_result = result
        if attempt < max_attempts:
            reason = "timed out" if result.timed_out else "failed"
            log_warn(
                f"Git command {reason} (attempt {attempt}/{max_attempts}). "
                f"Retrying in {delay:.0f}s..."
            )
            sleep(delay)
            delay *= 2

    msg = f"Git command failed after {max_attempts} attempts: git {' '.join(args)}"
    if last_result is not None and last_result.stderr.strip():
        msg += f"\n{last_result.stderr.strip()}"
    raise GitError(msg)


def is_git_repo(path: str | Path) -> bool:
    """Return True if *path* is a working tree (``.git`` dir or file)."""
    return (Path(path) / ".git").exists()


def branch_exists(repo_path: str | Path, branch: str) -> bool:
    """Check if a local branch exists in a repository.

    Args:
        repo_path: Path to the repository.
        branch: Branch name to check.

    Returns:
        True if the branch exists, False otherwise.
    """
    result = _query(
        ["-C", str(repo_path), "show-ref", "--verify", "--quiet", f"refs/heads/{branch}"]
    )
    return result.ok


def has_origin(repo_path: str | Path) -> bool:
    """Return True if the repository has an ``origin`` remote."""
    return _query(["-C", str(repo_path), "remote", "get-url", "origin"]).ok


def get_default_branch(repo_path: str | Path) -> str:
    """Return the repository's default branch.

    Uses ``origin/HEAD`` when set, then a local ``main`` or ``master``,
    and finally assumes ``main``.
    """
    result = _query(["-C", str(repo_path), "symbolic-ref", "refs/remotes/origin/HEAD"])
    ref = result.stdout.strip()
    if result.ok and ref.startswith("refs/remotes/origin/"):
        return ref[len("refs/remotes/origin/"):]

    for candidate in ("main", "master"):
        if branch_exists(repo_path, candidate):
            return candidate
    return "main"


def current_branch(repo_path: str | Path) -> str:
    """Return the checked-out branch name, or "" when detached/unknown."""
    result = _query(["-C", str(repo_path), "branch", "--show-current"])
    return result.stdout.strip() if result.ok else ""


class WorktreeStatus(NamedTuple):
    """Summary of a working tree's state."""

    branch: str
    changed_files: int
    last_commit: str


def worktree_status(path: str | Path) -> WorktreeStatus:
    """Return branch, number of changed files, and last commit subject."""
    status = _query(["-C", str(path), "status", "--porcelain"])
    changed = len([line for line in status.stdout.splitlines() if line.strip()]) if status.ok else 0
    log = _query(["-C", str(path), "log", "-1", "--format=%h %s"])
    return WorktreeStatus(
        branch=current_branch(path),
        changed_files=changed,
        last_commit=log.stdout.strip() if log.ok else "",
    )


def validate_repository(repo_path: str | Path, label: str) -> None:
    """Check that *repo_path* is a usable git repository.

    Raises:
        GitError: If the directory is missing or is not a git repository.
    """
    path = Path(repo_path)
    if not path.is_dir():
        raise GitError(f"{label} repository directory does not exist: {path}")
    if not is_git_repo(path):
        raise GitError(f"{label} directory is not a git repository: {path}")
    if not has_origin(path):
        log_warn(f"{label} repository has no 'origin' remote: {path}")
    log_verbose(f"{label} repository validation passed")


# ============================================================================
# Repository Freshness
# ============================================================================


async def _refresh_repository(repo_path: Path) -> bool:
    """Fetch origin for one repository; fast-forward main/master if behind."""
    repo = str(repo_path)
    loop = asyncio.get_running_loop()
    try:
        await loop.run_in_executor(
            None,
            functools.partial(
                git_with_retry,
                ["-C", repo, "fetch", "origin", "--prune"],
                max_attempts=FETCH_ATTEMPTS,
            ),
        )
    except GitError as e:
        log_warn(f"Could not fetch latest changes for {repo}: {e}")
        return False

    branch_result = await execute_secure_command_async(
        "git", ["-C", repo, "branch", "--show-current"], ExecutionOptions(timeout=TIMEOUT_GIT_QUERY)
    )
    branch = branch_result.stdout.strip()
    if not branch:
        return True

    behind = await execute_secure_command_async(
        "git",
        ["-C", repo, "rev-list", "--count", f"{branch}..origin/{branch}"],
        ExecutionOptions(timeout=TIMEOUT_GIT_QUERY),
    )
    try:
        commits_behind = int(behind.stdout.strip()) if behind.ok else 0
    except ValueError:
        commits_behind = 0

    if commits_behind == 0:
        log_verbose(f"Repository {repo} is up to date")
        return True

    log_warn(f"Repository {repo} is {commits_behind} commits behind origin/{branch}")
    # Only the default branches are updated in place.
    if branch in ("main", "master"):
        pull = await execute_secure_command_async(
            "git",
            ["-C", repo, "pull", "--ff-only", "origin", branch],
            ExecutionOptions(timeout=TIMEOUT_GIT_TRANSFER),
        )
        if pull.ok:
            log_step(f"Updated {branch} branch in {repo}")
        else:
            log_warn(f"Could not fast-forward {repo}")
    return True


async def _refresh_all(repos: Sequence[Path]) -> list[bool]:
    return list(await asyncio.gather(*(_refresh_repository(repo) for repo in repos)))


def ensure_repositories_fresh(
    repos: Sequence[str | Path],
    dry_run: bool = False,
) -> dict[Path, bool]:
    """Fetch origin for every repository concurrently.

    Fetch failures are warnings, not errors: a stale clone can still host
    a worktree.

    Args:
        repos: Repository paths (duplicates are fetched once).
        dry_run: Log what would be fetched and do nothing.

    Returns:
        Mapping of repository path to whether its fetch succeeded.
    """
    unique = list(dict.fromkeys(Path(r) for r in repos))
    if dry_run:
        for repo in unique:
            log_step(f"[dry-run] Would fetch latest changes for {repo}")
        return {repo: True for repo in unique}

    log_debug(f"Refreshing {len(unique)} repositories")
    results = asyncio.run(_refresh_all(unique))
    return dict(zip(unique, results))
