"""Logging and formatting utilities for space-cli.

Console helpers (``log_info``, ``log_step``, ...) print directly so their
output follows whatever ``sys.stdout``/``sys.stderr`` are at call time.
Library modules log through the ``space_cli`` stdlib logger; its level and
handler are set once per invocation by ``configure_logging``.
"""

from __future__ import annotations

import logging
import os
import sys

from space_cli.constants import get_space_debug, get_space_verbose


# Color codes - respect TERM environment variable
def _should_use_colors() -> bool:
    """Check if colors should be used based on TERM environment variable."""
    term = os.environ.get("TERM", "")
    if not term or term == "dumb":
        return False
    return sys.stdout.isatty()


_USE_COLORS = _should_use_colors()

# ANSI color codes
BOLD = "\033[1m" if _USE_COLORS else ""
RESET = "\033[0m" if _USE_COLORS else ""
RED = "\033[91m" if _USE_COLORS else ""
YELLOW = "\033[93m" if _USE_COLORS else ""
GREEN = "\033[92m" if _USE_COLORS else ""


class SpaceFormatter(logging.Formatter):
    """Plain-text formatter matching the console helpers' prefixes."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record.

        Args:
            record: The log record to format.

        Returns:
            The formatted log message.
        """
        msg = record.getMessage()
        if record.levelno == logging.DEBUG:
            return f"DEBUG: {msg}"
        elif record.levelno >= logging.ERROR:
            return f"Error: {msg}"
        elif record.levelno == logging.WARNING:
            return f"Warning: {msg}"
        return msg


_logger = logging.getLogger("space_cli")
_logger.setLevel(logging.WARNING)

_verbose = False
_debug = False
_silent = False


def configure_logging(
    verbose: bool = False,
    debug: bool = False,
    silent: bool = False,
) -> None:
    """Set output levels for the console helpers and the ``space_cli`` logger.

    Environment flags ``SPACE_DEBUG`` and ``SPACE_VERBOSE`` are OR-ed with
    the arguments. ``silent`` suppresses info/step/section output but never
    warnings or errors.

    Args:
        verbose: Show verbose progress messages.
        debug: Show debug messages (implies verbose).
        silent: Suppress informational output.
    """
    global _verbose, _debug, _silent
    _debug = debug or get_space_debug() == 1
    _verbose = verbose or _debug or get_space_verbose() == 1
    _silent = silent

    if _debug:
        _logger.setLevel(logging.DEBUG)
    elif _verbose:
        _logger.setLevel(logging.INFO)
    else:
        _logger.setLevel(logging.WARNING)

    # Replace any handler from a previous invocation; the stream may have changed.
    for handler in list(_logger.handlers):
        _logger.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(SpaceFormatter())
    _logger.addHandler(handler)
    _logger.propagate = False


def is_debug() -> bool:
    """Return True when debug output is enabled."""
    return _debug or get_space_debug() == 1


def is_verbose() -> bool:
    """Return True when verbose output is enabled."""
    return _verbose or is_debug() or get_space_verbose() == 1


def log_info(msg: str) -> None:
    """Log an info message to stdout.

    Args:
        msg: The message to log.
    """
    if not _silent:
        print(msg)


def log_verbose(msg: str) -> None:
    """Log a message only in verbose mode.

    Args:
        msg: The message to log.
    """
    if is_verbose() and not _silent:
        print(msg)


def log_debug(msg: str) -> None:
    """Log a debug message (only if --debug or SPACE_DEBUG=1).

    Args:
        msg: The message to log.
    """
    if is_debug():
        print(f"DEBUG: {msg}", file=sys.stderr)


def log_warn(msg: str) -> None:
    """Log a warning message to stderr.

    Args:
        msg: The message to log.
    """
    print(f"{YELLOW}Warning: {msg}{RESET}", file=sys.stderr)


def log_error(msg: str) -> None:
    """Log an error message to stderr.

    Args:
        msg: The message to log.
    """
    print(f"{RED}Error: {msg}{RESET}", file=sys.stderr)


def log_success(msg: str) -> None:
    """Log a completion message to stdout."""
    if not _silent:
        print(f"{GREEN}{msg}{RESET}")


def log_section(msg: str) -> None:
    """Log a section header with arrow and bold formatting.

    Args:
        msg: The section title.
    """
    if not _silent:
        print()
        print(f"{BOLD}▸ {msg}{RESET}")


def log_step(msg: str) -> None:
    """Log an indented step message (2 spaces indent).

    Args:
        msg: The step message.
    """
    if not _silent:
        print(f"  {msg}")


# Formatting helper functions (pure functions, not logging)


def format_kv(key: str, value: str) -> str:
    """Format a key-value pair with 2 spaces indent.

    Args:
        key: The key name.
        value: The value.

    Returns:
        Formatted string "  {key}: {value}".
    """
    return f"  {key}: {value}"

