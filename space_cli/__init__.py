"""space-cli - per-feature development workspaces built from git worktrees."""

from importlib.metadata import PackageNotFoundError, version as _pkg_version

try:
    __version__ = _pkg_version("space-cli")
except PackageNotFoundError:
    __version__ = "0.1.0"  # fallback for editable installs / dev
