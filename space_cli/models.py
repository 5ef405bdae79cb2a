from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from space_cli.constants import DEFAULT_SRC_DIR, DEFAULT_WORKSPACE_BASE, get_command_timeout


# ============================================================================
# Subprocess Execution
# ============================================================================


@dataclass(frozen=True)
class ExecutionOptions:
    """Per-call options for the secure executor."""

    cwd: str | Path | None = None
    """Working directory for the child process (None = inherit)."""

    timeout: float = field(default_factory=get_command_timeout)
    """Seconds before the child is killed (default: SPACE_COMMAND_TIMEOUT or 30)."""

    env: Optional[Mapping[str, str]] = None
    """Extra variables, merged on top of the parent environment."""

    inherit_env: bool = True
    """When False, ``env`` replaces the parent environment entirely."""

    stdin: Optional[str] = None
    """Text written to the child's standard input."""


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of a spawned (or attempted) command.

    Never raised: every post-spawn outcome, including launch failures and
    timeouts, is reported through ``exit_code``.
    """

    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        """True when the command exited with status 0."""
        return self.exit_code == 0


# ============================================================================
# Project Configuration
# ============================================================================


class GlobalConfig(BaseModel):
    """The ``global:`` section of the YAML configuration."""

    model_config = ConfigDict(extra="ignore")

    src_dir: str = DEFAULT_SRC_DIR
    """Root directory holding source repositories."""

    workspace_base: str = DEFAULT_WORKSPACE_BASE
    """Directory under src_dir that holds per-project workspaces."""

    env_files_dir: Optional[str] = None
    """Directory containing per-project env files."""

    package_manager: Optional[str] = None
    """Preferred package manager (npm, pnpm or yarn)."""


class ProjectConfig(BaseModel):
    """A single entry under ``projects:``.

    ``post_init`` is read from the ``post-init`` key; legacy ``post_init``
    entries are renamed by ``space_cli.config.normalize_project_entry``
    before this model sees them.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    key: str
    """Project key (the mapping key in the YAML file)."""

    name: str
    """Human-readable project name."""

    repo: str
    """Source repository: absolute path, path under src_dir, or git URL."""

    sample_repo: Optional[str] = None
    """Optional sample-application repository."""

    github_org: Optional[str] = None
    """GitHub organization used for issue lookups."""

    sample_app_path: Optional[str] = None
    """Path of the sample app inside sample_repo."""

    env_file: Optional[str] = None
    """Env file name, relative to global.env_files_dir."""

    post_init: Optional[str] = Field(default=None, alias="post-init")
    """Shell command run in the workspace after the worktrees are created."""


class SpaceConfig(BaseModel):
    """Fully parsed configuration file."""

    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    """Global settings."""

    projects: dict[str, ProjectConfig] = Field(default_factory=dict)
    """Projects keyed by project key."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")
