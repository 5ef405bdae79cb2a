"""Unit tests for space_cli.config and space_cli.constants config lookup."""

from __future__ import annotations

from pathlib import Path

import pytest

from space_cli.config import ConfigManager, normalize_project_entry, parse_config
from space_cli.constants import get_config_search_paths
from space_cli.errors import ConfigError, PolicyError


BASIC = """\
global:
  src_dir: {src}
  env_files_dir: ./env-files

projects:
  widgets:
    name: Widgets SDK
    repo: widgets
    sample_repo: widgets-samples
    sample_app_path: apps/demo
    github_org: acme
    env_file: widgets.env
    post_init: pnpm install
  Gadgets:
    name: Gadgets
    repo: https://github.com/acme/gadget-core.git
"""


class TestNormalizeProjectEntry:
    """Tests for normalize_project_entry()."""

    def test_legacy_key_renamed(self):
        entry = normalize_project_entry({"name": "x", "post_init": "npm install"})
        assert entry["post-init"] == "npm install"
        assert "post_init" not in entry

    def test_hyphenated_key_wins(self):
        entry = normalize_project_entry({"post-init": "pnpm i", "post_init": "npm install"})
        assert entry == {"post-init": "pnpm i"}

    def test_nothing_injected(self):
        assert normalize_project_entry({"name": "x"}) == {"name": "x"}

    def test_input_not_modified(self):
        raw = {"post_init": "make"}
        normalize_project_entry(raw)
        assert raw == {"post_init": "make"}


class TestParseConfig:
    """Tests for parse_config()."""

    def test_post_init_exposed_from_legacy_key(self, tmp_path):
        config = parse_config(
            {"projects": {"p": {"name": "P", "repo": "/r", "post_init": "npm install"}}},
            tmp_path,
        )
        assert config.projects["p"].post_init == "npm install"

    def test_relative_repo_resolved_under_src_dir(self, tmp_path):
        config = parse_config(
            {"global": {"src_dir": "/code"}, "projects": {"p": {"name": "P", "repo": "proj"}}},
            tmp_path,
        )
        assert config.projects["p"].repo == "/code/proj"

    def test_remote_repo_kept(self, tmp_path):
        url = "git@github.com:acme/proj.git"
        config = parse_config({"projects": {"p": {"name": "P", "repo": url}}}, tmp_path)
        assert config.projects["p"].repo == url

    def test_env_files_dir_relative_to_config(self, tmp_path):
        config = parse_config({"global": {"env_files_dir": "./envs"}}, tmp_path)
        assert config.global_.env_files_dir == str((tmp_path / "envs").resolve())

    def test_defaults(self, tmp_path):
        config = parse_config({}, tmp_path)
        assert config.global_.src_dir == str(Path("~/src").expanduser())
        assert config.global_.workspace_base == "workspaces"
        assert config.projects == {}

    def test_invalid_project_key(self, tmp_path):
        with pytest.raises(ConfigError, match="Invalid project key"):
            parse_config({"projects": {"bad key": {"name": "x", "repo": "/r"}}}, tmp_path)

    def test_missing_required_fields(self, tmp_path):
        with pytest.raises(ConfigError, match="name and repo are required"):
            parse_config({"projects": {"p": {"name": "only name"}}}, tmp_path)

    def test_projects_must_be_mapping(self, tmp_path):
        with pytest.raises(ConfigError):
            parse_config({"projects": ["a", "b"]}, tmp_path)


class TestConfigManager:
    """Tests for ConfigManager loading and lookups."""

    def test_load_explicit_path(self, config_file, tmp_path):
        path = config_file(BASIC)
        manager = ConfigManager()
        manager.load(str(path))

        assert manager.is_loaded()
        assert manager.config_path == path
        assert manager.list_projects() == ["widgets", "Gadgets"]
        widgets = manager.get_project("widgets")
        assert widgets.repo == str(tmp_path / "src" / "widgets")
        assert widgets.post_init == "pnpm install"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Configuration file not found"):
            ConfigManager().load(str(tmp_path / "nope.yaml"))

    def test_invalid_yaml(self, config_file):
        path = config_file("projects: [unclosed\n")
        with pytest.raises(ConfigError, match="Failed to parse YAML"):
            ConfigManager().load(str(path))

    def test_non_mapping_yaml(self, config_file):
        path = config_file("- a\n- b\n")
        with pytest.raises(ConfigError, match="expected YAML dictionary"):
            ConfigManager().load(str(path))

    def test_queries_before_load(self):
        with pytest.raises(ConfigError, match="not loaded"):
            ConfigManager().list_projects()

    def test_unknown_project_lists_available(self, config_file):
        manager = ConfigManager()
        manager.load(str(config_file(BASIC)))
        with pytest.raises(ConfigError, match="Available projects: widgets, Gadgets"):
            manager.get_project("nope")

    def test_find_project_precedence(self, config_file):
        manager = ConfigManager()
        manager.load(str(config_file(BASIC)))

        assert manager.find_project("widgets").key == "widgets"
        assert manager.find_project("gadgets").key == "Gadgets"
        assert manager.find_project("GADGET-CORE").key == "Gadgets"
        with pytest.raises(ConfigError, match="No project found"):
            manager.find_project("missing")

    def test_env_file_path(self, config_file, tmp_path):
        manager = ConfigManager()
        manager.load(str(config_file(BASIC)))
        assert manager.get_env_file_path("widgets") == (tmp_path / "env-files").resolve() / "widgets.env"
        assert manager.get_env_file_path("Gadgets") is None

    def test_env_file_traversal_rejected(self, config_file):
        manager = ConfigManager()
        manager.load(str(config_file("""\
            projects:
              p:
                name: P
                repo: /r
                env_file: ../../secrets.env
        """)))
        with pytest.raises(PolicyError):
            manager.get_env_file_path("p")

    def test_workspace_paths(self, config_file, tmp_path):
        manager = ConfigManager()
        manager.load(str(config_file(BASIC)))
        (tmp_path / "src" / "widgets").mkdir()

        paths = manager.get_workspace_paths("widgets", "feature_x")

        workspace = tmp_path / "src" / "workspaces" / "widgets" / "feature_x"
        assert paths.workspace_dir == workspace
        assert paths.source_path == workspace / "widgets"
        assert paths.sample_path == workspace / "widgets-samples"
        assert paths.sample_app_path == workspace / "widgets-samples" / "apps" / "demo"

    def test_missing_local_repo_rejected(self, config_file):
        manager = ConfigManager()
        manager.load(str(config_file(BASIC)))
        with pytest.raises(ConfigError, match="Repository does not exist"):
            manager.get_workspace_paths("widgets", "feature_x")

    def test_unsafe_repo_path_rejected(self, config_file):
        manager = ConfigManager()
        manager.load(str(config_file("""\
            projects:
              evil:
                name: Evil
                repo: /tmp/x;rm
        """)))
        with pytest.raises(PolicyError):
            manager.validate_project("evil")


class TestConfigSearchPaths:
    """Tests for get_config_search_paths()."""

    def test_default_order(self, tmp_path):
        paths = get_config_search_paths()
        home = tmp_path / "home"
        assert paths == [
            home / ".space-config.yaml",
            home / ".workspace-config.yaml",
            Path.cwd() / "config.yaml",
        ]

    def test_env_var_first(self, monkeypatch):
        monkeypatch.setenv("SPACE_CONFIG", "/etc/space.yaml")
        assert get_config_search_paths()[0] == Path("/etc/space.yaml")

    def test_explicit_beats_env_var(self, monkeypatch):
        monkeypatch.setenv("SPACE_CONFIG", "/etc/space.yaml")
        assert get_config_search_paths("/mine.yaml")[0] == Path("/mine.yaml")

    def test_home_config_found(self, tmp_path):
        home_config = tmp_path / "home" / ".space-config.yaml"
        home_config.write_text("projects:\n  p:\n    name: P\n    repo: /r\n")
        manager = ConfigManager()
        manager.load()
        assert manager.config_path == home_config
