"""Path derivation and filesystem helpers for space-cli.

Provides:
  - Deriving every path of a workspace from project config (WorkspacePaths)
  - Repository location helpers (basename, local clone location)
  - Directory management (ensure_dir, safe_remove, list_workspaces)
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import NamedTuple, Optional

from space_cli.models import GlobalConfig, ProjectConfig
from space_cli.validate import is_remote_url


# ============================================================================
# WorkspacePaths Data Structure
# ============================================================================


class WorkspacePaths(NamedTuple):
    """Container for all derived paths related to a workspace.

    Attributes:
        src_dir: Root directory holding source repositories
        base_dir: Directory holding every workspace of the project
        workspace_dir: The workspace itself
        source_repo_path: Local clone the source worktree is created from
        source_path: Source worktree inside the workspace
        sample_repo_path: Local clone of the sample repository, if configured
        sample_path: Sample worktree inside the workspace, if configured
        sample_app_path: Sample app directory inside the sample worktree
    """

    src_dir: Path
    base_dir: Path
    workspace_dir: Path
    source_repo_path: Path
    source_path: Path
    sample_repo_path: Optional[Path] = None
    sample_path: Optional[Path] = None
    sample_app_path: Optional[Path] = None

    @property
    def has_samples(self) -> bool:
        return self.sample_repo_path is not None and self.sample_path is not None


# ============================================================================
# Path Safety
# ============================================================================


def _assert_safe_path_component(name: str) -> None:
    """Reject names that could escape the intended directory.

    Raises:
        ValueError: If *name* is empty, contains ``/`` or ``\\``,
            or equals ``.`` or ``..``.
    """
    if not name:
        raise ValueError("Workspace/project name must not be empty")
    if "/" in name or "\\" in name:
        raise ValueError(f"Name must not contain path separators: {name!r}")
    if name in (".", ".."):
        raise ValueError(f"Name must not be '.' or '..': {name!r}")


# ============================================================================
# Repository Locations
# ============================================================================


def repo_basename(location: str) -> str:
    """Return the repository name of a URL or path, without ``.git``.

    ``git@github.com:acme/widgets.git`` and ``~/src/widgets`` both give
    ``widgets``.
    """
    tail = re.split(r"[/:]", location.rstrip("/"))[-1]
    return tail[:-4] if tail.endswith(".git") else tail


def expand_home(value: str) -> str:
    """Expand a leading ``~`` to the user's home directory."""
    return str(Path(value).expanduser()) if value.startswith("~") else value


def resolve_repo_location(location: str, src_dir: str | Path) -> Path:
    """Return the local clone for a configured repository location.

    Remote URLs are expected to be cloned as ``src_dir/<name>``; relative
    paths are taken relative to *src_dir*.
    """
    src = Path(src_dir)
    if is_remote_url(location):
        return src / repo_basename(location)
    path = Path(expand_home(location))
    return path if path.is_absolute() else src / path


# ============================================================================
# Path Derivation
# ============================================================================


def project_base_dir(project: ProjectConfig, global_config: GlobalConfig) -> Path:
    """Directory holding every workspace of *project*."""
    _assert_safe_path_component(project.key)
    src_dir = Path(expand_home(global_config.src_dir))
    return src_dir / global_config.workspace_base / project.key


def derive_workspace_paths(
    project: ProjectConfig,
    global_config: GlobalConfig,
    workspace_name: str,
) -> WorkspacePaths:
    """Derive all paths related to a named workspace.

    Layout: ``<src_dir>/<workspace_base>/<project key>/<workspace>/<repo name>``,
    plus a sibling directory for the sample repository when one is configured.

    Args:
        project: Project configuration.
        global_config: Global configuration.
        workspace_name: Validated workspace name.

    Returns:
        WorkspacePaths with every derived path.
    """
    _assert_safe_path_component(workspace_name)
    src_dir = Path(expand_home(global_config.src_dir))
    base_dir = project_base_dir(project, global_config)
    workspace_dir = base_dir / workspace_name

    source_repo_path = resolve_repo_location(project.repo, src_dir)
    source_path = workspace_dir / repo_basename(str(source_repo_path))

    sample_repo_path = sample_path = sample_app_path = None
    if project.sample_repo:
        sample_repo_path = resolve_repo_location(project.sample_repo, src_dir)
        sample_path = workspace_dir / repo_basename(str(sample_repo_path))
        if project.sample_app_path:
            sample_app_path = sample_path / project.sample_app_path

    return WorkspacePaths(
        src_dir=src_dir,
        base_dir=base_dir,
        workspace_dir=workspace_dir,
        source_repo_path=source_repo_path,
        source_path=source_path,
        sample_repo_path=sample_repo_path,
        sample_path=sample_path,
        sample_app_path=sample_app_path,
    )


# ============================================================================
# File System Helpers
# ============================================================================


def ensure_dir(path: str | Path) -> Path:
    """Ensure a directory exists, creating it if necessary.

    Equivalent to `mkdir -p`.

    Args:
        path: Directory path (string or Path)

    Returns:
        Path object of the directory
    """
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def _rmtree_no_follow_symlinks(path: Path) -> None:
    """Remove a directory tree, unlinking symlinks instead of following them."""
    for child in path.iterdir():
        if child.is_symlink():
            child.unlink()
        elif child.is_dir():
            _rmtree_no_follow_symlinks(child)
        else:
            child.unlink()
    path.rmdir()


def safe_remove(path: str | Path) -> None:
    """Remove a file or directory tree safely.

    Symlinks (top-level or inside the tree) are unlinked, never followed.
    Does nothing if *path* doesn't exist.

    Args:
        path: File or directory path (string or Path)
    """
    p = Path(path)
    if not p.exists() and not p.is_symlink():
        return

    if p.is_symlink():
        p.unlink()
        return

    if p.is_dir():
        _rmtree_no_follow_symlinks(p)
    else:
        p.unlink()


def list_workspaces(base_dir: str | Path) -> list[Path]:
    """Return the workspace directories under *base_dir*, sorted by name."""
    base = Path(base_dir)
    if not base.is_dir():
        return []
    return sorted(
        (child for child in base.iterdir() if child.is_dir() and not child.name.startswith(".")),
        key=lambda p: p.name,
    )
