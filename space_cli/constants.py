"""Configuration defaults for space-cli.

Limits used by the validators, the executable allow-list, subprocess
timeouts, and runtime flags read from the environment.
"""

from __future__ import annotations

import math
import os
from pathlib import Path


def _env_int(key: str, default: int) -> int:
    """Read an integer from an environment variable, returning default on parse failure."""
    try:
        return int(os.environ.get(key, str(default)))
    except (ValueError, TypeError):
        return default


def _env_float(key: str, default: float) -> float:
    """Read a float from an environment variable, returning default on parse failure."""
    try:
        return float(os.environ.get(key, str(default)))
    except (ValueError, TypeError):
        return default


# ============================================================================
# Validation Limits
# ============================================================================

MAX_BRANCH_NAME_LENGTH: int = 100
"""Branch names longer than this are truncated (git allows 250)."""

MAX_WORKSPACE_NAME_LENGTH: int = 50
"""Workspace names longer than this are truncated."""

MAX_PROJECT_KEY_LENGTH: int = 50
"""Project keys longer than this are rejected outright."""

MAX_GITHUB_ID: int = 999_999
"""Largest accepted GitHub issue/PR number."""

SAMPLES_BRANCH_SUFFIX: str = "-samples"
"""Suffix appended to the flattened feature branch for the sample repository."""

# ============================================================================
# Secure Execution
# ============================================================================

DEFAULT_ALLOWED_COMMANDS: frozenset[str] = frozenset({
    "git",
    "gh",
    "sh",
    "node",
    "npm",
    "pnpm",
    "yarn",
})
"""Executables the secure executor may spawn."""

PACKAGE_MANAGERS: tuple[str, ...] = ("pnpm", "npm", "yarn")
"""Package managers checked by ``space doctor``."""

ALLOWED_GIT_HOSTS: frozenset[str] = frozenset({
    "github.com",
    "gitlab.com",
    "bitbucket.org",
    "git.sr.ht",
    "codeberg.org",
})
"""HTTPS hosts accepted for repository URLs in the project configuration."""

# ============================================================================
# Subprocess Timeout Constants (seconds)
# ============================================================================

DEFAULT_COMMAND_TIMEOUT: float = 30.0
"""Default timeout for any secure command (30000 ms)."""

TIMEOUT_GIT_QUERY: float = 10.0
"""Timeout for git config/rev-parse/show-ref (local)."""

TIMEOUT_GIT_TRANSFER: float = 120.0
"""Timeout for git fetch/pull/worktree add (network-bound)."""

TIMEOUT_GH_STATUS: float = 10.0
"""Timeout for gh --version / gh auth status."""

TIMEOUT_POST_INIT: float = 180.0
"""Timeout for a project's post-init command."""

FETCH_ATTEMPTS: int = 2
"""Attempts for the pre-worktree fetch of each repository."""

TIMEOUT_EXIT_CODE: int = 124
"""Exit code reported when a command is killed by its timeout."""

NOT_FOUND_EXIT_CODE: int = 127
"""Exit code reported when an executable cannot be found."""

PERMISSION_DENIED_EXIT_CODE: int = 126
"""Exit code reported when an executable cannot be run."""

GH_STATUS_CACHE_SECONDS: float = 300.0
"""How long a GitHub CLI status check stays valid."""

# ============================================================================
# Configuration File Locations
# ============================================================================


def get_config_search_paths(custom: str | None = None) -> list[Path]:
    """Return candidate configuration files in lookup order.

    Args:
        custom: Explicit path from ``--config`` or ``SPACE_CONFIG``.

    Returns:
        Paths to check, first match wins.
    """
    paths: list[Path] = []
    explicit = custom or os.environ.get("SPACE_CONFIG")
    if explicit:
        paths.append(Path(explicit).expanduser())
    home = Path.home()
    paths.append(home / ".space-config.yaml")
    paths.append(home / ".workspace-config.yaml")  # legacy name
    paths.append(Path.cwd() / "config.yaml")
    return paths


DEFAULT_SRC_DIR: str = "~/src"
"""Default root holding source repositories and workspaces."""

DEFAULT_WORKSPACE_BASE: str = "workspaces"
"""Default directory (under src_dir) that holds workspaces."""

# ============================================================================
# Runtime Flag Defaults (read from environment)
# ============================================================================


def get_space_debug() -> int:
    """Get SPACE_DEBUG flag from environment.

    Returns:
        1 if enabled, 0 if disabled (default)
    """
    return _env_int("SPACE_DEBUG", 0)


def get_space_verbose() -> int:
    """Get SPACE_VERBOSE flag from environment.

    Returns:
        1 if enabled, 0 if disabled (default)
    """
    return _env_int("SPACE_VERBOSE", 0)


def get_space_noninteractive() -> int:
    """Get SPACE_NONINTERACTIVE flag from environment.

    Returns:
        1 if enabled, 0 if disabled (default)
    """
    return _env_int("SPACE_NONINTERACTIVE", 0)


def get_command_timeout() -> float:
    """Get the default secure-command timeout in seconds.

    Respects SPACE_COMMAND_TIMEOUT; falls back to DEFAULT_COMMAND_TIMEOUT
    when the value is not a positive finite number.
    """
    value = _env_float("SPACE_COMMAND_TIMEOUT", DEFAULT_COMMAND_TIMEOUT)
    if not math.isfinite(value) or value <= 0:
        return DEFAULT_COMMAND_TIMEOUT
    return value
