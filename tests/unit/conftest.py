"""
Pytest configuration for unit tests.

Every test starts with default console output levels and without the
SPACE_* environment flags of the developer's shell.
"""

import pytest

from space_cli.utils import configure_logging


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch, tmp_path):
    for var in (
        "SPACE_CONFIG",
        "SPACE_DEBUG",
        "SPACE_VERBOSE",
        "SPACE_NONINTERACTIVE",
        "SPACE_COMMAND_TIMEOUT",
        "NVM_BIN",
    ):
        monkeypatch.delenv(var, raising=False)
    # Keep ~/.space-config.yaml and ./config.yaml of the host out of lookups.
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    configure_logging()
    yield
    configure_logging()
