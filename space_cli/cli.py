"""Click-based CLI entrypoint for space-cli.

All commands are implemented as Click subcommands with lazy loading.
Unknown commands raise an error.
"""

from __future__ import annotations

import importlib
import sys

import click

from space_cli import __version__
from space_cli.constants import get_space_noninteractive
from space_cli.errors import SpaceError
from space_cli.utils import configure_logging

# ---------------------------------------------------------------------------
# Custom Click Group
# ---------------------------------------------------------------------------


_LAZY_COMMANDS: dict[str, tuple[str, str]] = {
    "clean": ("space_cli.commands.clean", "clean"),
    "doctor": ("space_cli.commands.doctor", "doctor"),
    "info": ("space_cli.commands.info", "info"),
    "init": ("space_cli.commands.init", "init"),
    "list": ("space_cli.commands.list_cmd", "list_cmd"),
    "projects": ("space_cli.commands.projects", "projects"),
}


class SpaceGroup(click.Group):
    """Click group that imports command modules on first access."""

    def list_commands(self, ctx: click.Context) -> list[str]:
        eager = set(self.commands or {})
        return sorted(eager | _LAZY_COMMANDS.keys())

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        cmd = self.commands.get(cmd_name)
        if cmd is not None:
            return cmd

        entry = _LAZY_COMMANDS.get(cmd_name)
        if entry is None:
            return None

        module_path, attr_name = entry
        mod = importlib.import_module(module_path)
        loaded_cmd: click.Command = getattr(mod, attr_name)
        # Cache so subsequent lookups skip the import
        self.add_command(loaded_cmd, cmd_name)
        return loaded_cmd

    def resolve_command(
        self, ctx: click.Context, args: list[str]
    ) -> tuple[str | None, click.Command | None, list[str]]:
        if not args:
            return super().resolve_command(ctx, args)

        cmd_obj = self.get_command(ctx, args[0])
        if cmd_obj is not None:
            return args[0], cmd_obj, list(args[1:])
        ctx.fail(f"Unknown command '{args[0]}'. Run 'space --help' for available commands.")


# ---------------------------------------------------------------------------
# Main CLI Group
# ---------------------------------------------------------------------------


@click.group(cls=SpaceGroup, invoke_without_command=True)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Configuration file (default: $SPACE_CONFIG or ~/.space-config.yaml)",
)
@click.option("--verbose", "-v", is_flag=True, help="Show detailed progress")
@click.option("--debug", is_flag=True, help="Show debug output")
@click.version_option(__version__, prog_name="space")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool, debug: bool) -> None:
    """Space - git worktree workspaces for multi-repository projects."""
    ctx.ensure_object(dict)

    configure_logging(verbose=verbose, debug=debug)

    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    ctx.obj["noninteractive"] = get_space_noninteractive() == 1

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ---------------------------------------------------------------------------
# Entry Point
# ---------------------------------------------------------------------------


def main() -> None:
    """Entry point for the CLI.

    Uses ``standalone_mode=False`` so exit codes are managed here. Usage
    errors (bad flags, missing arguments) exit 1 instead of Click's 2, and
    any SpaceError escaping a command is reported as ``Error: <reason>``.
    """
    try:
        result = cli(standalone_mode=False)
    except click.UsageError as exc:
        click.echo(f"Error: {exc.format_message()}", err=True)
        sys.exit(1)
    except click.Abort:
        click.echo("\nAborted.", err=True)
        sys.exit(1)
    except SpaceError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    except SystemExit as exc:
        code = exc.code if isinstance(exc.code, int) else 1
        sys.exit(1 if code == 2 else code)
    if isinstance(result, int):
        sys.exit(result)


if __name__ == "__main__":
    main()
