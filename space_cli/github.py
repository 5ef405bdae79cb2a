"""GitHub CLI integration.

Checks that ``gh`` is installed and authenticated (cached for a few
minutes) and verifies that issue/PR numbers exist before a workspace is
created for them.
"""

from __future__ import annotations

import re
import time
from typing import Callable, Optional, Sequence

from pydantic import BaseModel

from space_cli.constants import GH_STATUS_CACHE_SECONDS, TIMEOUT_GH_STATUS
from space_cli.errors import DependencyError, GitHubError
from space_cli.models import ExecutionOptions
from space_cli.secure_exec import execute_gh_command
from space_cli.utils import log_debug, log_verbose

_ACCOUNT_RE = re.compile(r"Logged in to (\S+)(?: account| as) (\S+)")


class GitHubCliStatus(BaseModel):
    """Result of a GitHub CLI availability check."""

    installed: bool = False
    """Whether ``gh --version`` succeeded."""

    authenticated: bool = False
    """Whether ``gh auth status`` succeeded."""

    hostname: Optional[str] = None
    """Host the CLI is logged in to."""

    account: Optional[str] = None
    """Account name reported by ``gh auth status``."""

    error: Optional[str] = None
    """Human-readable reason when not installed or not authenticated."""


INSTALLATION_GUIDANCE: tuple[str, ...] = (
    "GitHub CLI Setup Required:",
    "",
    "1. Install GitHub CLI:",
    "   - macOS: brew install gh",
    "   - Ubuntu/Debian: see https://github.com/cli/cli/blob/trunk/docs/install_linux.md",
    "   - Windows: see https://cli.github.com/",
    "",
    "2. Authenticate with GitHub:",
    "   gh auth login",
    "",
    "3. Verify setup:",
    "   gh auth status",
)

AUTHENTICATION_GUIDANCE: tuple[str, ...] = (
    "GitHub CLI Authentication Required:",
    "",
    "1. Authenticate with GitHub:",
    "   gh auth login",
    "",
    "2. Verify authentication:",
    "   gh auth status",
)


class GitHubCliService:
    """Caches the installed/authenticated state of the GitHub CLI.

    Args:
        cache_seconds: How long a status stays valid.
        clock: Monotonic clock (injectable for testing).
    """

    def __init__(
        self,
        cache_seconds: float = GH_STATUS_CACHE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cache_seconds = cache_seconds
        self._clock = clock
        self._cached: Optional[GitHubCliStatus] = None
        self._expires_at = 0.0

    def check_status(self, force_refresh: bool = False) -> GitHubCliStatus:
        """Return the CLI status, re-checking when the cache has expired."""
        if not force_refresh and self._cached is not None and self._clock() < self._expires_at:
            return self._cached

        status = GitHubCliStatus()
        options = ExecutionOptions(timeout=TIMEOUT_GH_STATUS)

        log_debug("Checking GitHub CLI installation...")
        if not execute_gh_command(["--version"], options).ok:
            status.error = "GitHub CLI is not installed or not available in PATH"
            return self._store(status)
        status.installed = True

        log_debug("Checking GitHub CLI authentication...")
        auth = execute_gh_command(["auth", "status"], options)
        if auth.ok:
            status.authenticated = True
            # gh prints its auth report on stderr
            match = _ACCOUNT_RE.search(auth.stderr + auth.stdout)
            if match:
                status.hostname, status.account = match.group(1), match.group(2)
            log_debug(f"GitHub CLI authenticated as {status.account or 'unknown'}")
        else:
            status.error = 'GitHub CLI is not authenticated. Run "gh auth login" to authenticate.'
        return self._store(status)

    def _store(self, status: GitHubCliStatus) -> GitHubCliStatus:
        self._cached = status
        self._expires_at = self._clock() + self._cache_seconds
        return status

    def clear_cache(self) -> None:
        self._cached = None
        self._expires_at = 0.0

    def ensure_available(self) -> None:
        """Raise DependencyError unless gh is installed and authenticated."""
        status = self.check_status()
        if not status.installed:
            raise DependencyError(
                "GitHub CLI is required but not installed. Please install it from "
                'https://cli.github.com/ and run "gh auth login" to authenticate.'
            )
        if not status.authenticated:
            raise DependencyError(
                'GitHub CLI is not authenticated. Please run "gh auth login" to authenticate with GitHub.'
            )


def validate_issues_exist(
    issue_ids: Sequence[int],
    github_org: str,
    repo_name: str,
) -> None:
    """Verify that every issue/PR number exists in ``github_org/repo_name``.

    Args:
        issue_ids: Validated GitHub IDs.
        github_org: Repository owner.
        repo_name: Repository name.

    Raises:
        GitHubError: If an issue is missing, access is denied, or the
            lookup fails.
        DependencyError: If the GitHub CLI is not installed.
    """
    if not issue_ids:
        return

    log_verbose(f"Validating GitHub issues exist in {github_org}/{repo_name}...")
    for issue_id in issue_ids:
        log_verbose(f"Checking issue #{issue_id}...")
        result = execute_gh_command(
            ["api", f"repos/{github_org}/{repo_name}/issues/{issue_id}", "--jq", ".number"],
            ExecutionOptions(timeout=TIMEOUT_GH_STATUS),
        )
        if result.ok:
            returned = result.stdout.strip()
            if returned != str(issue_id):
                raise GitHubError(
                    f"Issue ID mismatch: expected {issue_id}, got {returned or 'nothing'}"
                )
            continue

        message = result.stderr or result.stdout
        if result.exit_code == 127:
            raise DependencyError(
                "GitHub CLI is not installed. Please install it from https://cli.github.com/"
            )
        if "Not Found" in message or "404" in message:
            raise GitHubError(
                f"Issue #{issue_id} not found in {github_org}/{repo_name}. "
                "Please verify the issue exists and you have access to the repository."
            )
        if "Unauthorized" in message or "401" in message:
            raise GitHubError(
                f"Access denied to {github_org}/{repo_name}. "
                "Please check your GitHub CLI authentication and repository permissions."
            )
        raise GitHubError(f"Failed to validate issue #{issue_id}: {message.strip()}")

    log_verbose(f"All {len(issue_ids)} GitHub issues validated successfully")
