"""Shared helper functions for space commands."""

from __future__ import annotations

import functools
import sys
from typing import Any, Callable, TypeVar

import click

from space_cli.config import ConfigManager
from space_cli.constants import get_space_noninteractive
from space_cli.errors import SpaceError

F = TypeVar("F", bound=Callable[..., Any])


def get_config(ctx: click.Context) -> ConfigManager:
    """Return the invocation's ConfigManager, loading it on first use.

    The path comes from the group's ``--config`` option (falling back to
    ``SPACE_CONFIG`` and the default locations).
    """
    obj = ctx.ensure_object(dict)
    manager = obj.get("config_manager")
    if manager is None:
        manager = ConfigManager()
        manager.load(obj.get("config_path"))
        obj["config_manager"] = manager
    return manager


def is_noninteractive(ctx: click.Context) -> bool:
    """True when prompts must not be shown (SPACE_NONINTERACTIVE=1 or no TTY)."""
    obj = ctx.ensure_object(dict)
    if obj.get("noninteractive") or get_space_noninteractive() == 1:
        return True
    return not sys.stdin.isatty()


def handle_errors(func: F) -> F:
    """Report SpaceError as ``Error: <reason>`` on stderr and exit 1."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except SpaceError as exc:
            click.echo(f"Error: {exc}", err=True)
            sys.exit(1)

    return wrapper  # type: ignore[return-value]
