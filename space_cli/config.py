"""Project configuration loading for space-cli.

Reads the YAML configuration (``~/.space-config.yaml`` and friends),
normalizes legacy keys, resolves paths, and exposes the result through
``ConfigManager``.

Example configuration::

    global:
      src_dir: ~/src
      workspace_base: workspaces
      env_files_dir: ./env-files

    projects:
      widgets:
        name: Widgets SDK
        repo: https://github.com/acme/widgets.git
        sample_repo: widgets-samples
        github_org: acme
        post-init: pnpm install
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from pydantic import ValidationError

from space_cli.constants import DEFAULT_SRC_DIR, get_config_search_paths
from space_cli.errors import ConfigError, PolicyError
from space_cli.models import GlobalConfig, ProjectConfig, SpaceConfig
from space_cli.paths import (
    WorkspacePaths,
    derive_workspace_paths,
    expand_home,
    project_base_dir,
    repo_basename,
)
from space_cli.utils import log_debug, log_warn
from space_cli.validate import (
    is_remote_url,
    validate_path,
    validate_project_key,
    validate_repository_path,
)


# ============================================================================
# Normalization
# ============================================================================


def normalize_project_entry(entry: Mapping[str, Any]) -> dict[str, Any]:
    """Rename the legacy ``post_init`` key to ``post-init``.

    When both spellings are present the hyphenated one wins and the
    underscore key is dropped. Nothing is added when neither is present.

    Args:
        entry: Raw project mapping from YAML.

    Returns:
        A new dict; *entry* is not modified.
    """
    normalized = dict(entry)
    if "post_init" in normalized:
        legacy = normalized.pop("post_init")
        if "post-init" in normalized:
            log_debug("Both 'post-init' and 'post_init' set; using 'post-init'")
        else:
            normalized["post-init"] = legacy
    return normalized


def _resolve_local(location: Optional[str], src_dir: str) -> Optional[str]:
    """Expand ``~`` and anchor relative local paths under *src_dir*."""
    if not location or is_remote_url(location):
        return location
    expanded = expand_home(location)
    if Path(expanded).is_absolute():
        return expanded
    return str(Path(src_dir) / expanded)


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load and parse a YAML file.

    Raises:
        ConfigError: If the file cannot be read or parsed, or is not a mapping.
    """
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML file {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read configuration file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Invalid configuration file {path}: expected YAML dictionary, got {type(data).__name__}"
        )
    return data


def parse_config(data: Mapping[str, Any], config_dir: Path) -> SpaceConfig:
    """Build a SpaceConfig from raw YAML data.

    Args:
        data: Top-level YAML mapping.
        config_dir: Directory of the configuration file, for ``./`` paths.

    Raises:
        ConfigError: On invalid project keys or schema violations.
    """
    raw_global = data.get("global") or {}
    raw_projects = data.get("projects") or {}
    if not isinstance(raw_global, dict):
        raise ConfigError("'global' must be a mapping")
    if not isinstance(raw_projects, dict):
        raise ConfigError("'projects' must be a mapping")

    try:
        global_config = GlobalConfig.model_validate(raw_global)
    except ValidationError as e:
        raise ConfigError(f"Invalid global configuration: {e}") from e

    global_config.src_dir = expand_home(global_config.src_dir or DEFAULT_SRC_DIR)
    if global_config.env_files_dir:
        if global_config.env_files_dir.startswith("./"):
            global_config.env_files_dir = str((config_dir / global_config.env_files_dir).resolve())
        else:
            global_config.env_files_dir = expand_home(global_config.env_files_dir)

    projects: dict[str, ProjectConfig] = {}
    for key, entry in raw_projects.items():
        try:
            validate_project_key(str(key))
        except PolicyError as e:
            raise ConfigError(f"Invalid project key {key!r}: {e}") from e
        if not isinstance(entry, dict):
            raise ConfigError(f"Project '{key}' must be a mapping")

        fields = normalize_project_entry(entry)
        fields["key"] = str(key)
        fields["repo"] = _resolve_local(fields.get("repo"), global_config.src_dir)
        fields["sample_repo"] = _resolve_local(fields.get("sample_repo"), global_config.src_dir)
        try:
            projects[str(key)] = ProjectConfig.model_validate(fields)
        except ValidationError as e:
            raise ConfigError(
                f"Project '{key}' has incomplete configuration - name and repo are required\n{e}"
            ) from e

    return SpaceConfig(global_=global_config, projects=projects)


# ============================================================================
# Config Manager
# ============================================================================


class ConfigManager:
    """Loads the configuration once and answers project/path queries."""

    def __init__(self) -> None:
        self.config: Optional[SpaceConfig] = None
        self.config_path: Optional[Path] = None

    def load(self, path: Optional[str] = None) -> SpaceConfig:
        """Load the first configuration file found.

        Args:
            path: Explicit path; checked before ``SPACE_CONFIG`` and the
                default locations.

        Raises:
            ConfigError: If no file exists or it cannot be parsed.
        """
        candidates = get_config_search_paths(path)
        found = next((p for p in candidates if p.is_file()), None)
        if found is None:
            raise ConfigError(
                "Configuration file not found. Checked: "
                + ", ".join(str(p) for p in candidates)
            )

        self.config = parse_config(_load_yaml_file(found), found.parent)
        self.config_path = found
        log_debug(f"Loaded configuration from: {found}")
        return self.config

    def is_loaded(self) -> bool:
        return self.config is not None

    def _require(self) -> SpaceConfig:
        if self.config is None:
            raise ConfigError("Configuration not loaded")
        return self.config

    def list_projects(self) -> list[str]:
        """Return project keys in file order."""
        return list(self._require().projects)

    def get_global(self) -> GlobalConfig:
        return self._require().global_

    def get_project(self, key: str) -> ProjectConfig:
        """Return the project with exactly this key.

        Raises:
            ConfigError: If no such project exists.
        """
        projects = self._require().projects
        if key not in projects:
            available = ", ".join(projects) or "(none)"
            raise ConfigError(f"Unknown project '{key}'. Available projects: {available}")
        return projects[key]

    def find_project(self, identifier: str) -> ProjectConfig:
        """Find a project by key or repository name.

        Lookup order: exact key, case-insensitive key, then the source
        repository's basename (case-insensitive).

        Raises:
            ConfigError: If nothing matches.
        """
        projects = self._require().projects
        if identifier in projects:
            return projects[identifier]

        wanted = identifier.lower()
        for key, project in projects.items():
            if key.lower() == wanted:
                return project
        for project in projects.values():
            if repo_basename(project.repo).lower() == wanted:
                return project

        raise ConfigError(
            f"No project found with identifier: {identifier}. "
            f"Available project keys: {', '.join(projects)}. "
            f"Available repo names: {', '.join(repo_basename(p.repo) for p in projects.values())}"
        )

    def validate_project(self, key: str) -> ProjectConfig:
        """Return the project after checking its repository locations.

        Raises:
            ConfigError: If the project is unknown or its local source
                repository is missing.
            PolicyError: If a repository location is unsafe.
        """
        project = self.get_project(key)
        validate_repository_path(project.repo)
        if project.sample_repo:
            validate_repository_path(project.sample_repo)

        if not is_remote_url(project.repo) and not Path(project.repo).exists():
            name = repo_basename(project.repo)
            raise ConfigError(
                f"Repository does not exist: {project.repo}\n"
                f"Please ensure the repository exists or update the 'repo' path in the config.\n"
                f"Current configuration: projects.{key}.repo = \"{project.repo}\"\n"
                f"Suggestions:\n"
                f"  1. Clone the repository to the specified path\n"
                f"  2. Update config with correct path: repo: \"~/src/{name}\"\n"
                f"  3. Use absolute path: repo: \"/full/path/to/{name}\""
            )
        if (
            project.sample_repo
            and not is_remote_url(project.sample_repo)
            and not Path(project.sample_repo).exists()
        ):
            log_warn(f"Sample repository does not exist: {project.sample_repo}")
        return project

    def get_env_file_path(self, key: str) -> Optional[Path]:
        """Return the env file configured for *key*, or None.

        Raises:
            InvalidPatternError: If ``env_file`` escapes the env files directory.
        """
        project = self.get_project(key)
        if not project.env_file:
            return None
        env_dir = self.get_global().env_files_dir
        if not env_dir:
            base = self.config_path.parent if self.config_path else Path.cwd()
            env_dir = str(base / "env-files")
        return validate_path(env_dir, project.env_file)

    def get_project_base_dir(self, key: str) -> Path:
        """Directory holding every workspace of the project."""
        return project_base_dir(self.get_project(key), self.get_global())

    def get_workspace_paths(
        self, key: str, workspace_name: str, *, validate: bool = True
    ) -> WorkspacePaths:
        """Derive the paths of *workspace_name* in project *key*.

        With *validate* (the default) the project's repositories are checked
        first; inspection commands pass False so a missing clone does not
        hide an existing workspace.
        """
        project = self.validate_project(key) if validate else self.get_project(key)
        return derive_workspace_paths(project, self.get_global(), workspace_name)
