"""Exception hierarchy for space-cli.

Two disjoint families:

* ``PolicyError`` and its subclasses are raised synchronously, before any
  subprocess is spawned, when an input fails validation or a command is
  not authorized. The set is closed: one subclass per ``PolicyErrorKind``.
  Each carries structured fields so callers match on the class (or
  ``kind``), never on the message text.
* Operational errors (``ConfigError``, ``GitError``, ...) describe failures
  of the surrounding workflow.

Subprocess outcomes are never exceptions; see ``space_cli.models.ExecutionResult``.

This module is a base-layer module: it must NOT import from any
other ``space_cli`` submodule.
"""

from __future__ import annotations

import enum
from typing import Iterable


class SpaceError(Exception):
    """Base exception for all space-cli errors."""


# ============================================================================
# Policy Errors
# ============================================================================


class PolicyErrorKind(str, enum.Enum):
    """Tag identifying which policy rule rejected an input."""

    REQUIRED_FIELD = "required_field"
    INVALID_CHARACTERS = "invalid_characters"
    INVALID_PATTERN = "invalid_pattern"
    NO_VALID_CHARACTERS = "no_valid_characters"
    INVALID_ID = "invalid_id"
    UNAUTHORIZED_COMMAND = "unauthorized_command"
    EMPTY_AFTER_SANITIZATION = "empty_after_sanitization"


class PolicyError(SpaceError, ValueError):
    """Validation or authorization failure raised before any process exists."""

    kind: PolicyErrorKind

    def __reduce__(self):
        # Constructors take structured fields, not the message; rebuild from state.
        return (_rebuild_policy_error, (type(self), self.__dict__.copy(), self.args))


def _rebuild_policy_error(cls, state, args):
    err = cls.__new__(cls)
    Exception.__init__(err, *args)
    err.__dict__.update(state)
    return err


class RequiredFieldError(PolicyError):
    """A required value was empty or missing."""

    kind = PolicyErrorKind.REQUIRED_FIELD

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"{field.capitalize()} is required")


class InvalidCharactersError(PolicyError):
    """A strict validator found characters (or a length) it does not accept."""

    kind = PolicyErrorKind.INVALID_CHARACTERS

    def __init__(self, field: str, value: str, reason: str = "") -> None:
        self.field = field
        self.value = value
        self.reason = reason
        msg = f"{field.capitalize()} contains invalid characters: {value!r}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class InvalidPatternError(PolicyError):
    """A value matched a forbidden pattern (flag prefix, path traversal, ...)."""

    kind = PolicyErrorKind.INVALID_PATTERN

    def __init__(self, field: str, value: str, pattern: str) -> None:
        self.field = field
        self.value = value
        self.pattern = pattern
        super().__init__(
            f"{field.capitalize()} matches invalid patterns ({pattern}): {value!r}"
        )


class NoValidCharactersError(PolicyError):
    """Stripping disallowed characters left nothing behind."""

    kind = PolicyErrorKind.NO_VALID_CHARACTERS

    def __init__(self, field: str, value: str) -> None:
        self.field = field
        self.value = value
        super().__init__(f"{field.capitalize()} contains no valid characters: {value!r}")


class InvalidIdError(PolicyError):
    """A GitHub issue/PR identifier is not a positive integer within bounds."""

    kind = PolicyErrorKind.INVALID_ID

    def __init__(self, value: object, maximum: int) -> None:
        self.value = value
        self.maximum = maximum
        super().__init__(
            f"Invalid GitHub ID: {value!r} (expected an integer between 1 and {maximum})"
        )


class UnauthorizedCommandError(PolicyError):
    """The requested executable is not on the allow-list."""

    kind = PolicyErrorKind.UNAUTHORIZED_COMMAND

    def __init__(self, executable: str, allowed: Iterable[str] = ()) -> None:
        self.executable = executable
        self.allowed = tuple(sorted(allowed))
        msg = f"Unauthorized command: {executable!r}"
        if self.allowed:
            msg += f". Allowed commands: {', '.join(self.allowed)}"
        super().__init__(msg)


class EmptyAfterSanitizationError(PolicyError):
    """A subprocess argument carried shell metacharacters and was refused."""

    kind = PolicyErrorKind.EMPTY_AFTER_SANITIZATION

    def __init__(self, argument: str, character: str) -> None:
        self.argument = argument
        self.character = character
        super().__init__(
            f"Shell argument becomes empty after sanitization "
            f"(forbidden character {character!r})"
        )


POLICY_ERRORS: dict[PolicyErrorKind, type[PolicyError]] = {
    cls.kind: cls
    for cls in (
        RequiredFieldError,
        InvalidCharactersError,
        InvalidPatternError,
        NoValidCharactersError,
        InvalidIdError,
        UnauthorizedCommandError,
        EmptyAfterSanitizationError,
    )
}
"""Registry of the closed policy-error family, keyed by tag."""


# ============================================================================
# Operational Errors
# ============================================================================


class ConfigError(SpaceError):
    """Configuration file missing, unreadable, or malformed."""


class GitError(SpaceError):
    """A git operation required by the workflow failed."""


class DependencyError(SpaceError):
    """A required external executable is missing or unusable."""


class WorkspaceConflictError(SpaceError):
    """A workspace directory already exists and may not be overwritten."""


class GitHubError(SpaceError):
    """A GitHub lookup through the gh CLI failed (missing issue, no access)."""
