"""Doctor command - check the local toolchain and configuration.

Each check reports ``ok``, ``warn`` or ``fail`` with a suggested fix.
The command exits 1 when any check fails.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import NamedTuple

import click

from space_cli.commands._helpers import get_config
from space_cli.config import ConfigManager
from space_cli.constants import PACKAGE_MANAGERS, TIMEOUT_GIT_QUERY
from space_cli.errors import SpaceError
from space_cli.git import is_git_repo
from space_cli.github import AUTHENTICATION_GUIDANCE, INSTALLATION_GUIDANCE, GitHubCliService
from space_cli.models import ExecutionOptions
from space_cli.secure_exec import execute_git_command, execute_secure_command
from space_cli.utils import BOLD, GREEN, RED, RESET, YELLOW
from space_cli.validate import is_remote_url


class Check(NamedTuple):
    name: str
    status: str  # "ok", "warn" or "fail"
    detail: str
    fix: str = ""
    guidance: tuple[str, ...] = ()


_MARKERS = {"ok": f"{GREEN}✓{RESET}", "warn": f"{YELLOW}!{RESET}", "fail": f"{RED}✗{RESET}"}


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------


def _version(executable: str) -> str | None:
    result = execute_secure_command(
        executable, ["--version"], ExecutionOptions(timeout=TIMEOUT_GIT_QUERY)
    )
    if not result.ok:
        return None
    lines = result.stdout.strip().splitlines()
    return lines[0] if lines else ""


def _check_git() -> list[Check]:
    version = _version("git")
    if version is None:
        return [Check("git", "fail", "not installed", "Install git from https://git-scm.com/")]

    checks = [Check("git", "ok", version)]
    for key in ("user.name", "user.email"):
        result = execute_git_command(
            ["config", "--get", key], ExecutionOptions(timeout=TIMEOUT_GIT_QUERY)
        )
        if result.ok and result.stdout.strip():
            checks.append(Check(f"git {key}", "ok", result.stdout.strip()))
        else:
            checks.append(Check(
                f"git {key}", "warn", "not set", f'git config --global {key} "<value>"'
            ))
    return checks


def _check_gh() -> Check:
    status = GitHubCliService().check_status(force_refresh=True)
    if not status.installed:
        return Check("gh", "warn", "not installed", guidance=INSTALLATION_GUIDANCE)
    if not status.authenticated:
        return Check("gh", "warn", "not authenticated", "gh auth login", AUTHENTICATION_GUIDANCE)
    return Check("gh", "ok", f"logged in as {status.account or 'unknown'}")


def _check_node() -> list[Check]:
    version = _version("node")
    if version is None:
        checks = [Check("node", "warn", "not installed", "Install Node.js (e.g. via nvm)")]
    else:
        checks = [Check("node", "ok", version)]

    found = [pm for pm in PACKAGE_MANAGERS if _version(pm) is not None]
    if found:
        checks.append(Check("package managers", "ok", ", ".join(found)))
    else:
        checks.append(Check(
            "package managers", "warn", "none of " + ", ".join(PACKAGE_MANAGERS),
            "npm install -g pnpm",
        ))
    return checks


def _check_config(config: ConfigManager) -> list[Check]:
    checks = [Check("config", "ok", str(config.config_path))]

    src_dir = Path(config.get_global().src_dir)
    if src_dir.is_dir():
        checks.append(Check("src_dir", "ok", str(src_dir)))
    else:
        checks.append(Check("src_dir", "warn", f"missing: {src_dir}", f"mkdir -p {src_dir}"))

    for key in config.list_projects():
        project = config.get_project(key)
        for label, location in (("repo", project.repo), ("sample_repo", project.sample_repo)):
            if not location or is_remote_url(location):
                continue
            name = f"{key} {label}"
            if not Path(location).is_dir():
                level = "fail" if label == "repo" else "warn"
                checks.append(Check(name, level, f"missing: {location}", f"git clone <url> {location}"))
            elif not is_git_repo(location):
                checks.append(Check(name, "fail", f"not a git repository: {location}"))
            else:
                checks.append(Check(name, "ok", location))
    return checks


def _print_check(check: Check) -> None:
    click.echo(f"  {_MARKERS[check.status]} {check.name}: {check.detail}")
    if check.fix and check.status != "ok":
        click.echo(f"      fix: {check.fix}")
    for line in check.guidance:
        click.echo(f"      {line}" if line else "")


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------


@click.command()
@click.pass_context
def doctor(ctx: click.Context) -> None:
    """Check required tools, configuration and repositories."""
    sections: list[tuple[str, list[Check]]] = [
        ("Tools", [*_check_git(), _check_gh(), *_check_node()]),
    ]

    try:
        config = get_config(ctx)
    except SpaceError as exc:
        sections.append((
            "Configuration",
            [Check("config", "fail", str(exc), "Create ~/.space-config.yaml or set SPACE_CONFIG")],
        ))
    else:
        sections.append(("Configuration", _check_config(config)))

    failed = 0
    warned = 0
    for title, checks in sections:
        click.echo(f"\n{BOLD}{title}{RESET}")
        for check in checks:
            _print_check(check)
            failed += check.status == "fail"
            warned += check.status == "warn"

    click.echo("")
    if failed:
        click.echo(f"{failed} check(s) failed, {warned} warning(s)")
        sys.exit(1)
    click.echo(f"All required checks passed ({warned} warning(s))")
