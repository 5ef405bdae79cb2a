"""
Top-level pytest conftest.py -- shared fixtures.

Provides:
    local_repo   - temporary directory with a deterministic git repo
    config_file  - writes a space-cli YAML config and returns its path
"""

import os
import subprocess
import textwrap

import pytest


@pytest.fixture
def local_repo(tmp_path):
    """Create a temporary directory containing a deterministic git repo.

    The repo has ``main`` as its default branch, a single ``README.md``,
    and one initial commit.  Yields the ``pathlib.Path`` to the repo root.
    """
    repo = tmp_path / "repo"
    repo.mkdir()

    env = {
        **os.environ,
        "GIT_AUTHOR_NAME": "Test User",
        "GIT_AUTHOR_EMAIL": "test@example.com",
        "GIT_COMMITTER_NAME": "Test User",
        "GIT_COMMITTER_EMAIL": "test@example.com",
    }
    run_opts = {"cwd": str(repo), "env": env, "capture_output": True, "text": True}

    subprocess.run(["git", "init", "-b", "main"], check=True, **run_opts)
    (repo / "README.md").write_text("# Test Repository\n")
    subprocess.run(["git", "add", "README.md"], check=True, **run_opts)
    subprocess.run(
        ["git", "commit", "-m", "Initial commit"], check=True, **run_opts
    )

    yield repo


@pytest.fixture
def config_file(tmp_path):
    """Return a writer: ``config_file(yaml_text)`` -> path of the file.

    ``{src}`` in the text is replaced with ``tmp_path / "src"``, which is
    created.
    """
    src = tmp_path / "src"
    src.mkdir(exist_ok=True)

    def _write(text, name="space-config.yaml"):
        path = tmp_path / name
        path.write_text(textwrap.dedent(text).replace("{src}", str(src)))
        return path

    return _write
