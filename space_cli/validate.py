"""Input validation and argument sanitization for space-cli.

Pure functions, no I/O (except ``require_commands``, which consults PATH).

Convention:
- Validators return the cleaned value or raise a ``PolicyError`` subclass
  from ``space_cli.errors``. Callers match on the exception class, never
  on its message.
- Wrong argument types raise ``TypeError``.

Two families of string validators exist on purpose:
- *Stripping* validators (branch and workspace names) remove what they do
  not accept and fail only when nothing usable remains.
- *Strict* validators (project keys, GitHub IDs, repository locations)
  accept or reject the input as given.
"""

from __future__ import annotations

import re
import shutil
from pathlib import Path
from typing import Iterable, NewType, Sequence
from urllib.parse import urlparse

from space_cli.constants import (
    ALLOWED_GIT_HOSTS,
    MAX_BRANCH_NAME_LENGTH,
    MAX_GITHUB_ID,
    MAX_PROJECT_KEY_LENGTH,
    MAX_WORKSPACE_NAME_LENGTH,
)
from space_cli.errors import (
    EmptyAfterSanitizationError,
    InvalidCharactersError,
    InvalidIdError,
    InvalidPatternError,
    NoValidCharactersError,
    RequiredFieldError,
)

BranchName = NewType("BranchName", str)
WorkspaceName = NewType("WorkspaceName", str)
ProjectKey = NewType("ProjectKey", str)


def _has_control_characters(value: str) -> bool:
    """C0 controls, DEL and C1 controls."""
    return any(ord(ch) <= 31 or 127 <= ord(ch) <= 159 for ch in value)


def _require(value: object, field: str) -> str:
    if value is None:
        raise RequiredFieldError(field)
    if not isinstance(value, str):
        raise TypeError(f"{field} must be a string, got {type(value).__name__}")
    if not value.strip():
        raise RequiredFieldError(field)
    return value


# ============================================================================
# Branch and Workspace Names
# ============================================================================

# Anything after the first command separator is discarded, not salvaged.
_COMMAND_SEPARATOR_RE = re.compile(r"[;&|\r\n]")
_BRANCH_UNSAFE_RE = re.compile(r"[^A-Za-z0-9._/-]")
_WORKSPACE_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_-]")


def validate_branch_name(value: str | None) -> BranchName:
    """Clean a user-supplied branch name.

    The value is trimmed, cut at the first command separator (``;``, ``&``,
    ``|``, newline), and stripped of every character outside
    ``[A-Za-z0-9._/-]``. The result is at most MAX_BRANCH_NAME_LENGTH long.

    Args:
        value: Raw branch name.

    Returns:
        The cleaned branch name.

    Raises:
        RequiredFieldError: If *value* is None, empty or whitespace.
        NoValidCharactersError: If nothing remains after cleaning.
        InvalidPatternError: If the cleaned name starts with ``-`` or
            contains ``..``.
        TypeError: If *value* is not a string.
    """
    raw = _require(value, "branch name").strip()
    head = _COMMAND_SEPARATOR_RE.split(raw, maxsplit=1)[0]
    cleaned = _BRANCH_UNSAFE_RE.sub("", head)

    if not cleaned:
        raise NoValidCharactersError("branch name", raw)
    if cleaned.startswith("-"):
        raise InvalidPatternError("branch name", raw, "leading '-'")
    if ".." in cleaned:
        raise InvalidPatternError("branch name", raw, "'..'")

    return BranchName(cleaned[:MAX_BRANCH_NAME_LENGTH])


def validate_workspace_name(value: str | None) -> WorkspaceName:
    """Clean a workspace directory name.

    Keeps only ``[A-Za-z0-9_-]`` and truncates to MAX_WORKSPACE_NAME_LENGTH.

    Raises:
        RequiredFieldError: If *value* is None, empty or whitespace.
        NoValidCharactersError: If nothing remains after cleaning.
    """
    raw = _require(value, "workspace name")
    cleaned = _WORKSPACE_UNSAFE_RE.sub("", raw)
    if not cleaned:
        raise NoValidCharactersError("workspace name", raw)
    return WorkspaceName(cleaned[:MAX_WORKSPACE_NAME_LENGTH])


def workspace_name_for_branch(branch: str) -> WorkspaceName:
    """Derive the workspace directory name for a feature branch.

    ``feature/my-branch`` becomes ``feature_my-branch``.
    """
    return validate_workspace_name(validate_branch_name(branch).replace("/", "_"))


# ============================================================================
# Project Keys and GitHub IDs
# ============================================================================

_PROJECT_KEY_RE = re.compile(rf"[A-Za-z0-9_-]{{1,{MAX_PROJECT_KEY_LENGTH}}}")
_DECIMAL_RE = re.compile(r"[0-9]+")


def validate_project_key(value: str | None) -> ProjectKey:
    """Accept a project key unchanged or reject it.

    Raises:
        RequiredFieldError: If *value* is None or empty.
        InvalidCharactersError: If *value* is not 1..MAX_PROJECT_KEY_LENGTH
            characters of ``[A-Za-z0-9_-]``.
    """
    if value is None or value == "":
        raise RequiredFieldError("project key")
    if not isinstance(value, str):
        raise TypeError(f"project key must be a string, got {type(value).__name__}")
    if not _PROJECT_KEY_RE.fullmatch(value):
        reason = (
            f"longer than {MAX_PROJECT_KEY_LENGTH} characters"
            if len(value) > MAX_PROJECT_KEY_LENGTH
            else "only letters, digits, '-' and '_' are allowed"
        )
        raise InvalidCharactersError("project key", value, reason)
    return ProjectKey(value)


def validate_github_ids(values: Sequence[str | int]) -> list[int]:
    """Parse GitHub issue/PR identifiers.

    Args:
        values: List or tuple of decimal strings or ints.

    Returns:
        The parsed integers, in input order, duplicates preserved.

    Raises:
        TypeError: If *values* is not a list or tuple.
        InvalidIdError: If an element is not an integer in 1..MAX_GITHUB_ID.
    """
    if not isinstance(values, (list, tuple)):
        raise TypeError(
            f"GitHub IDs must be an array (list or tuple), got {type(values).__name__}"
        )

    ids: list[int] = []
    for item in values:
        if isinstance(item, bool):
            raise InvalidIdError(item, MAX_GITHUB_ID)
        if isinstance(item, int):
            number = item
        elif isinstance(item, str) and _DECIMAL_RE.fullmatch(item.strip()):
            number = int(item.strip())
        else:
            raise InvalidIdError(item, MAX_GITHUB_ID)
        if not 1 <= number <= MAX_GITHUB_ID:
            raise InvalidIdError(item, MAX_GITHUB_ID)
        ids.append(number)
    return ids


# ============================================================================
# Shell Argument Sanitization
# ============================================================================

_SHELL_METACHARACTERS = frozenset(";&|`$<>\\")


def sanitize_shell_arg(arg: str) -> str:
    """Refuse a subprocess argument carrying shell metacharacters.

    Rejection only: a clean argument is returned unchanged (no escaping,
    no trimming).

    Raises:
        TypeError: If *arg* is not a string.
        EmptyAfterSanitizationError: On ``; & | ` $ < > \\`` or any
            control character (including newline).
    """
    if not isinstance(arg, str):
        raise TypeError(f"Shell argument must be a string, got {type(arg).__name__}")
    for ch in arg:
        if ch in _SHELL_METACHARACTERS or _has_control_characters(ch):
            raise EmptyAfterSanitizationError(arg, ch)
    return arg


# ============================================================================
# Repository Locations
# ============================================================================

_SCP_LIKE_RE = re.compile(r"^[A-Za-z0-9._-]+@[A-Za-z0-9.-]+:[A-Za-z0-9._/-]+$")


def validate_git_url(url: str) -> str:
    """Validate a remote repository URL.

    Accepts ``https://`` (known hosts only), ``ssh://``, ``git://`` and
    scp-like ``git@host:owner/repo.git`` forms.

    Returns:
        The trimmed URL.

    Raises:
        RequiredFieldError: If *url* is empty.
        InvalidPatternError: On traversal, ``;``, unsupported scheme or host.
    """
    trimmed = _require(url, "repository URL").strip()

    if ".." in trimmed or ";" in trimmed or _has_control_characters(trimmed):
        raise InvalidPatternError("repository URL", trimmed, "dangerous path pattern")

    if _SCP_LIKE_RE.match(trimmed):
        return trimmed

    parsed = urlparse(trimmed)
    if parsed.scheme not in ("https", "ssh", "git"):
        raise InvalidPatternError(
            "repository URL", trimmed, "only https, ssh and git schemes are allowed"
        )
    if not parsed.hostname:
        raise InvalidPatternError("repository URL", trimmed, "missing host")
    if parsed.scheme == "https" and parsed.hostname not in ALLOWED_GIT_HOSTS:
        raise InvalidPatternError(
            "repository URL",
            trimmed,
            f"unsupported host; allowed: {', '.join(sorted(ALLOWED_GIT_HOSTS))}",
        )
    return trimmed


def validate_local_repository_path(path: str) -> str:
    """Validate an absolute local repository path.

    Raises:
        RequiredFieldError: If *path* is empty.
        InvalidPatternError: If the path is relative or contains ``..``,
            ``;``, ``|`` or control characters.
    """
    trimmed = _require(path, "repository path").strip()
    for pattern in ("..", ";", "|"):
        if pattern in trimmed:
            raise InvalidPatternError("repository path", trimmed, repr(pattern))
    if _has_control_characters(trimmed):
        raise InvalidPatternError("repository path", trimmed, "control characters")
    if not trimmed.startswith("/"):
        raise InvalidPatternError("repository path", trimmed, "must be absolute")
    return trimmed


def is_remote_url(value: str) -> bool:
    """Return True for URL-shaped repository locations."""
    return "://" in value or bool(_SCP_LIKE_RE.match(value))


def validate_repository_path(value: str) -> str:
    """Validate a repository location, dispatching on its shape."""
    trimmed = _require(value, "repository path").strip()
    if is_remote_url(trimmed):
        return validate_git_url(trimmed)
    return validate_local_repository_path(trimmed)


def validate_path(base: str | Path, target: str | Path) -> Path:
    """Resolve *target* under *base*, refusing to escape it.

    Returns:
        The resolved absolute path.

    Raises:
        InvalidPatternError: If the resolved path lies outside *base*.
    """
    base_resolved = Path(base).resolve()
    resolved = (base_resolved / target).resolve()
    try:
        resolved.relative_to(base_resolved)
    except ValueError:
        raise InvalidPatternError("path", str(target), "path traversal") from None
    return resolved


# ============================================================================
# Environment Validation
# ============================================================================


def require_commands(commands: Iterable[str]) -> list[str]:
    """Return the executables from *commands* that are not on PATH."""
    return [cmd for cmd in commands if shutil.which(cmd) is None]
