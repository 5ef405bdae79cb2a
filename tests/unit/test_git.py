"""Unit tests for space_cli/git.py and space_cli/git_worktree.py.

Tests cover:
- space_cli.git: retry logic, branch queries, default-branch detection,
  repository checks, concurrent freshness
- space_cli.git_worktree: samples branch naming, change detection,
  worktree creation fallbacks, branch and workspace cleanup
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from space_cli import git, git_worktree
from space_cli.constants import MAX_BRANCH_NAME_LENGTH
from space_cli.errors import DependencyError, GitError, InvalidPatternError
from space_cli.models import ExecutionResult
from space_cli.paths import WorkspacePaths


def ok(stdout: str = "") -> ExecutionResult:
    return ExecutionResult(stdout=stdout)


def fail(stderr: str = "error", exit_code: int = 1) -> ExecutionResult:
    return ExecutionResult(stderr=stderr, exit_code=exit_code)


# ============================================================================
# git.py Tests
# ============================================================================


class TestGitWithRetry:
    """Tests for git_with_retry()."""

    @patch("space_cli.git.execute_git_command")
    def test_success_on_first_attempt(self, mock_exec):
        mock_exec.return_value = ok("done")

        result = git.git_with_retry(["fetch", "origin"])

        assert result.stdout == "done"
        mock_exec.assert_called_once()
        assert mock_exec.call_args[0][0] == ["fetch", "origin"]

    @patch("space_cli.git.execute_git_command")
    def test_retry_then_succeed(self, mock_exec):
        mock_exec.side_effect = [fail(), ok()]
        sleep_calls = []

        result = git.git_with_retry(["fetch"], _sleep=sleep_calls.append)

        assert result.ok
        assert mock_exec.call_count == 2
        assert sleep_calls == [1.0]

    @patch("space_cli.git.execute_git_command")
    def test_all_retries_exhausted_raises(self, mock_exec):
        mock_exec.return_value = fail("fatal: unable to access")
        sleep_calls = []

        with pytest.raises(GitError, match="unable to access"):
            git.git_with_retry(["fetch"], max_attempts=3, _sleep=sleep_calls.append)

        assert mock_exec.call_count == 3
        assert sleep_calls == [1.0, 2.0]

    @patch("space_cli.git.execute_git_command")
    def test_policy_error_not_retried(self, mock_exec):
        mock_exec.side_effect = InvalidPatternError("branch name", "-x", "leading '-'")

        with pytest.raises(InvalidPatternError):
            git.git_with_retry(["checkout", "-x"], _sleep=lambda d: None)

        mock_exec.assert_called_once()


class TestBranchQueries:
    """Tests for branch_exists(), get_default_branch() and current_branch()."""

    @patch("space_cli.git.execute_git_command")
    def test_branch_exists(self, mock_exec):
        mock_exec.return_value = ok()
        assert git.branch_exists("/repo", "feature/x")
        args = mock_exec.call_args[0][0]
        assert args == ["-C", "/repo", "show-ref", "--verify", "--quiet", "refs/heads/feature/x"]

    @patch("space_cli.git.execute_git_command")
    def test_branch_missing(self, mock_exec):
        mock_exec.return_value = fail(exit_code=1)
        assert not git.branch_exists("/repo", "nope")

    @patch("space_cli.git.execute_git_command")
    def test_default_branch_from_origin_head(self, mock_exec):
        mock_exec.return_value = ok("refs/remotes/origin/develop\n")
        assert git.get_default_branch("/repo") == "develop"

    @patch("space_cli.git.execute_git_command")
    def test_default_branch_falls_back_to_master(self, mock_exec):
        # symbolic-ref fails, main missing, master present
        mock_exec.side_effect = [fail(), fail(), ok()]
        assert git.get_default_branch("/repo") == "master"

    @patch("space_cli.git.execute_git_command")
    def test_default_branch_assumes_main(self, mock_exec):
        mock_exec.return_value = fail()
        assert git.get_default_branch("/repo") == "main"

    @patch("space_cli.git.execute_git_command")
    def test_current_branch_detached(self, mock_exec):
        mock_exec.return_value = ok("\n")
        assert git.current_branch("/repo") == ""


class TestValidateRepository:
    """Tests for validate_repository()."""

    def test_missing_directory(self, tmp_path):
        with pytest.raises(GitError, match="does not exist"):
            git.validate_repository(tmp_path / "nope", "Source")

    def test_not_a_repository(self, tmp_path):
        with pytest.raises(GitError, match="not a git repository"):
            git.validate_repository(tmp_path, "Source")

    @patch("space_cli.git.execute_git_command")
    def test_repository_without_origin_warns(self, mock_exec, tmp_path, capsys):
        (tmp_path / ".git").mkdir()
        mock_exec.return_value = fail()

        git.validate_repository(tmp_path, "Sample")

        assert "no 'origin' remote" in capsys.readouterr().err


class TestEnsureRepositoriesFresh:
    """Tests for ensure_repositories_fresh()."""

    @patch("space_cli.secure_exec.subprocess.run")
    def test_dry_run_spawns_nothing(self, mock_run):
        result = git.ensure_repositories_fresh(["/a", "/b", "/a"], dry_run=True)

        assert result == {Path("/a"): True, Path("/b"): True}
        mock_run.assert_not_called()

    @patch("space_cli.git.time.sleep")
    @patch("space_cli.secure_exec.subprocess.run")
    def test_fetches_each_repository(self, mock_run, mock_sleep):
        def fake_run(argv, **kwargs):
            if "fetch" in argv:
                ok_ = argv[2] != "/broken"
                return Mock(returncode=0 if ok_ else 128, stdout="", stderr="" if ok_ else "fatal")
            if "--show-current" in argv:
                return Mock(returncode=0, stdout="feature\n", stderr="")
            return Mock(returncode=0, stdout="0\n", stderr="")

        mock_run.side_effect = fake_run

        result = git.ensure_repositories_fresh(["/good", "/broken"])

        assert result == {Path("/good"): True, Path("/broken"): False}
        fetched = [c[0][0][2] for c in mock_run.call_args_list if "fetch" in c[0][0]]
        assert sorted(fetched) == ["/broken", "/broken", "/good"]
        mock_sleep.assert_called_once_with(1.0)

    @patch("space_cli.secure_exec.subprocess.run")
    def test_fast_forwards_behind_main(self, mock_run):
        def fake_run(argv, **kwargs):
            if "--show-current" in argv:
                return Mock(returncode=0, stdout="main\n", stderr="")
            if "rev-list" in argv:
                return Mock(returncode=0, stdout="3\n", stderr="")
            return Mock(returncode=0, stdout="", stderr="")

        mock_run.side_effect = fake_run

        git.ensure_repositories_fresh(["/repo"])

        pulls = [c[0][0] for c in mock_run.call_args_list if "pull" in c[0][0]]
        assert pulls == [["git", "-C", "/repo", "pull", "--ff-only", "origin", "main"]]


class TestWithLocalRepo:
    """Queries against a real repository."""

    def test_queries(self, local_repo):
        assert git.is_git_repo(local_repo)
        assert git.get_default_branch(local_repo) == "main"
        assert git.current_branch(local_repo) == "main"
        assert not git_worktree.worktree_has_changes(local_repo)

        (local_repo / "new.txt").write_text("x")

        assert git_worktree.worktree_has_changes(local_repo)
        assert git.worktree_status(local_repo).changed_files == 1


# ============================================================================
# git_worktree.py Tests
# ============================================================================


class TestSamplesBranchName:
    """Tests for samples_branch_name()."""

    def test_slashes_flattened(self):
        assert (
            git_worktree.samples_branch_name("bugfix/RT-same-scope-as-AT")
            == "bugfix-RT-same-scope-as-AT-samples"
        )

    def test_simple_branch(self):
        assert git_worktree.samples_branch_name("simple-branch") == "simple-branch-samples"

    def test_input_validated(self):
        with pytest.raises(InvalidPatternError):
            git_worktree.samples_branch_name("-oops")

    def test_long_branch_keeps_suffix(self):
        name = git_worktree.samples_branch_name("f/" + "a" * 98)
        assert name.endswith("-samples")
        assert len(name) == MAX_BRANCH_NAME_LENGTH
        assert name == "f-" + "a" * 90 + "-samples"



class TestWorktreeHasChanges:
    """Tests for worktree_has_changes()."""

    def test_missing_path_is_clean(self, tmp_path):
        assert not git_worktree.worktree_has_changes(tmp_path / "gone")

    @patch("space_cli.git_worktree.execute_git_command")
    def test_failed_status_counts_as_dirty(self, mock_exec, tmp_path):
        mock_exec.return_value = fail()
        assert git_worktree.worktree_has_changes(tmp_path)


class TestAddWorktree:
    """Tests for add_worktree()."""

    @patch("space_cli.git_worktree.execute_git_command")
    def test_creates_new_branch_from_origin(self, mock_exec, tmp_path):
        mock_exec.return_value = ok()
        wt = tmp_path / "wt"

        git_worktree.add_worktree("/repo", wt, "feature/x", "main")

        calls = [c[0][0] for c in mock_exec.call_args_list]
        assert calls[0] == ["-C", "/repo", "worktree", "prune"]
        assert calls[1] == [
            "-C", "/repo", "worktree", "add", "-b", "feature/x", "--", str(wt), "origin/main",
        ]
        assert len(calls) == 2

    @patch("space_cli.git_worktree.execute_git_command")
    def test_falls_back_to_existing_branch(self, mock_exec, tmp_path):
        mock_exec.side_effect = [ok(), fail("branch already exists"), ok()]
        wt = tmp_path / "wt"

        git_worktree.add_worktree("/repo", wt, "feature/x")

        assert mock_exec.call_args[0][0] == ["-C", "/repo", "worktree", "add", "--", str(wt), "feature/x"]

    @patch("space_cli.git_worktree.execute_git_command")
    def test_all_attempts_fail(self, mock_exec, tmp_path):
        mock_exec.side_effect = [ok(), fail("e1"), fail("e2"), fail("e3")]

        with pytest.raises(GitError) as exc_info:
            git_worktree.add_worktree("/repo", tmp_path / "wt", "feature/x")

        assert "e1" in str(exc_info.value)
        assert "e3" in str(exc_info.value)

    @patch("space_cli.git_worktree.execute_git_command")
    def test_stale_directory_removed(self, mock_exec, tmp_path):
        mock_exec.return_value = ok()
        wt = tmp_path / "wt"
        wt.mkdir()
        (wt / "leftover").write_text("")

        git_worktree.add_worktree("/repo", wt, "feature/x")

        assert not (wt / "leftover").exists()

    @patch("space_cli.git_worktree.execute_git_command")
    def test_dry_run(self, mock_exec, tmp_path):
        git_worktree.add_worktree("/repo", tmp_path / "wt", "feature/x", dry_run=True)
        mock_exec.assert_not_called()


class TestSetupWorktrees:
    """Tests for setup_worktrees()."""

    @patch("space_cli.git_worktree.add_worktree")
    @patch("space_cli.git_worktree.get_default_branch", return_value="main")
    @patch("space_cli.git_worktree.ensure_repositories_fresh")
    @patch("space_cli.git_worktree.validate_repository")
    @patch("space_cli.git_worktree.require_commands", return_value=[])
    def test_source_and_samples(self, _require, mock_validate, mock_fresh, _default, mock_add, tmp_path):
        paths = WorkspacePaths(
            src_dir=tmp_path,
            base_dir=tmp_path / "ws",
            workspace_dir=tmp_path / "ws" / "feature_x",
            source_repo_path=tmp_path / "core",
            source_path=tmp_path / "ws" / "feature_x" / "core",
            sample_repo_path=tmp_path / "samples",
            sample_path=tmp_path / "ws" / "feature_x" / "samples",
        )

        git_worktree.setup_worktrees(paths, "feature/x")

        assert mock_validate.call_count == 2
        mock_fresh.assert_called_once_with([paths.source_repo_path, paths.sample_repo_path], dry_run=False)
        branches = [c[0][2] for c in mock_add.call_args_list]
        assert branches == ["feature/x", "feature-x-samples"]

    @patch("space_cli.git_worktree.validate_repository")
    @patch("space_cli.git_worktree.require_commands", return_value=["git"])
    def test_missing_git(self, _require, mock_validate, tmp_path):
        paths = WorkspacePaths(
            src_dir=tmp_path,
            base_dir=tmp_path / "ws",
            workspace_dir=tmp_path / "ws" / "x",
            source_repo_path=tmp_path / "core",
            source_path=tmp_path / "ws" / "x" / "core",
        )

        with pytest.raises(DependencyError):
            git_worktree.setup_worktrees(paths, "x")
        mock_validate.assert_not_called()


class TestCleanup:
    """Tests for delete_branch() and cleanup_workspace()."""

    @patch("space_cli.git_worktree.execute_git_command")
    def test_protected_branches_kept(self, mock_exec):
        for branch in ["main", "master", "develop", "release/1.0", "hotfix/x"]:
            assert not git_worktree.delete_branch("/repo", branch)
        mock_exec.assert_not_called()

    @patch("space_cli.git_worktree.execute_git_command")
    def test_feature_branch_deleted(self, mock_exec):
        mock_exec.return_value = ok()
        assert git_worktree.delete_branch("/repo", "feature/x")
        assert mock_exec.call_args[0][0] == ["-C", "/repo", "branch", "-D", "feature/x"]

    @patch("space_cli.git_worktree.execute_git_command")
    def test_protected_branch_behind_separator_kept(self, mock_exec):
        assert not git_worktree.delete_branch("/repo", "main;x")
        mock_exec.assert_not_called()

    @patch("space_cli.git_worktree.execute_git_command")
    def test_name_altered_by_validation_not_deleted(self, mock_exec):
        assert not git_worktree.delete_branch("/repo", "feat@x")
        mock_exec.assert_not_called()

    @patch("space_cli.git_worktree.execute_git_command")
    def test_unsafe_branch_name_not_deleted(self, mock_exec):
        assert not git_worktree.delete_branch("/repo", "-D")
        mock_exec.assert_not_called()

    @patch("space_cli.git_worktree.execute_git_command")
    def test_cleanup_workspace(self, mock_exec, tmp_path):
        mock_exec.return_value = ok()
        core = tmp_path / "core"
        core.mkdir()
        workspace = tmp_path / "ws" / "feature_x"
        (workspace / "core").mkdir(parents=True)
        paths = WorkspacePaths(
            src_dir=tmp_path,
            base_dir=tmp_path / "ws",
            workspace_dir=workspace,
            source_repo_path=core,
            source_path=workspace / "core",
        )

        git_worktree.cleanup_workspace(paths, "feature/x")

        calls = [c[0][0] for c in mock_exec.call_args_list]
        assert ["-C", str(core), "worktree", "remove", "--force", str(workspace / "core")] in calls
        assert ["-C", str(core), "branch", "-D", "feature/x"] in calls
        assert not workspace.exists()

    @patch("space_cli.git_worktree.execute_git_command")
    def test_cleanup_dry_run_keeps_everything(self, mock_exec, tmp_path):
        workspace = tmp_path / "ws" / "feature_x"
        (workspace / "core").mkdir(parents=True)
        paths = WorkspacePaths(
            src_dir=tmp_path,
            base_dir=tmp_path / "ws",
            workspace_dir=workspace,
            source_repo_path=tmp_path,
            source_path=workspace / "core",
        )

        git_worktree.cleanup_workspace(paths, "feature/x", dry_run=True)

        mock_exec.assert_not_called()
        assert workspace.exists()
