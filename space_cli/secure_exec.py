"""Allow-listed subprocess execution.

Every external process space-cli starts goes through ``SecureExecutor``:

  1. the executable must be on the allow-list,
  2. every argument must pass ``sanitize_shell_arg``,
  3. the process is spawned with ``shell=False`` and a timeout,
  4. the outcome is returned as an ``ExecutionResult``.

Steps 1-2 raise ``PolicyError`` before anything is spawned. Everything
after the spawn attempt (non-zero exit, timeout, missing executable) is
reported through the result and never raised. No retries here; see
``space_cli.git.git_with_retry``.
"""

from __future__ import annotations

import asyncio
import dataclasses
import functools
import logging
import os
import shutil
import subprocess
from typing import Callable, Iterable, Mapping, Optional, Sequence

from space_cli.constants import (
    DEFAULT_ALLOWED_COMMANDS,
    NOT_FOUND_EXIT_CODE,
    PERMISSION_DENIED_EXIT_CODE,
    TIMEOUT_EXIT_CODE,
)
from space_cli.errors import InvalidCharactersError, RequiredFieldError, UnauthorizedCommandError
from space_cli.models import ExecutionOptions, ExecutionResult
from space_cli.validate import sanitize_shell_arg

logger = logging.getLogger(__name__)

Runner = Callable[..., "subprocess.CompletedProcess[str]"]

_INSTALL_HINTS: dict[str, str] = {
    "git": "Install git from https://git-scm.com/downloads",
    "gh": "Install the GitHub CLI from https://cli.github.com/",
    "node": "Install Node.js from https://nodejs.org/",
    "npm": "Install Node.js (which ships npm) from https://nodejs.org/",
    "pnpm": "Install pnpm with: npm install -g pnpm",
    "yarn": "Install yarn with: npm install -g yarn",
}

_EXPECTED_FAILURE_MARKERS = (
    "not found",
    "does not exist",
    "No such file or directory",
    "No such remote",
    "not a symbolic ref",
)

# git sub-commands whose exit 1 just means "no" (no such ref or config key)
_GIT_QUERY_COMMANDS = ("show-ref", "config")


def _to_text(data: object) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return str(data)


def _is_expected_failure(argv: Sequence[str], result: ExecutionResult) -> bool:
    """Failures that callers use as a negative answer, not an error."""
    if argv[0] == "git" and result.exit_code == 1 and any(c in argv for c in _GIT_QUERY_COMMANDS):
        return True
    return any(marker in result.stderr for marker in _EXPECTED_FAILURE_MARKERS)


def build_environment(options: ExecutionOptions) -> dict[str, str]:
    """Compute the child environment for *options*.

    Inherits ``os.environ`` and overlays ``options.env``, unless
    ``inherit_env`` is False, in which case ``options.env`` is used alone.
    """
    extra: Mapping[str, str] = options.env or {}
    if not options.inherit_env:
        return dict(extra)
    return {**os.environ, **extra}


# ============================================================================
# Secure Executor
# ============================================================================


class SecureExecutor:
    """Spawns allow-listed executables with sanitized arguments.

    Holds no mutable state; one instance may serve concurrent callers.

    Args:
        allowed_commands: Executable names that may be spawned.
        runner: ``subprocess.run``-compatible callable. Defaults to
            ``subprocess.run`` looked up at call time.
    """

    def __init__(
        self,
        allowed_commands: Iterable[str] = DEFAULT_ALLOWED_COMMANDS,
        runner: Optional[Runner] = None,
    ) -> None:
        self._allowed = frozenset(allowed_commands)
        self._runner = runner

    @property
    def allowed_commands(self) -> frozenset[str]:
        return self._allowed

    def authorize(self, executable: str) -> None:
        """Raise UnauthorizedCommandError unless *executable* is allow-listed."""
        if not isinstance(executable, str) or executable not in self._allowed:
            raise UnauthorizedCommandError(str(executable), self._allowed)

    def run(
        self,
        executable: str,
        args: Sequence[str] = (),
        options: Optional[ExecutionOptions] = None,
    ) -> ExecutionResult:
        """Run *executable* with *args*.

        Raises:
            UnauthorizedCommandError: If *executable* is not allow-listed.
            EmptyAfterSanitizationError: If any argument carries a shell
                metacharacter. Raised for the first offending argument,
                before any process is spawned.
        """
        self.authorize(executable)
        argv = [executable] + [sanitize_shell_arg(arg) for arg in args]
        return self._spawn(argv, options or ExecutionOptions())

    def _spawn(self, argv: list[str], options: ExecutionOptions) -> ExecutionResult:
        runner = self._runner or subprocess.run
        executable = argv[0]
        logger.debug("Executing secure command: %s", " ".join(argv))

        try:
            completed = runner(
                argv,
                shell=False,
                capture_output=True,
                text=True,
                check=False,
                timeout=options.timeout,
                cwd=str(options.cwd) if options.cwd is not None else None,
                env=build_environment(options),
                input=options.stdin,
            )
        except subprocess.TimeoutExpired as exc:
            logger.error("Command timed out after %ss: %s", options.timeout, executable)
            return ExecutionResult(
                stdout=_to_text(exc.stdout),
                stderr=(
                    _to_text(exc.stderr)
                    or f"{executable} timed out after {options.timeout:g}s"
                ),
                exit_code=TIMEOUT_EXIT_CODE,
                timed_out=True,
            )
        except FileNotFoundError as exc:
            if options.cwd is not None and exc.filename == str(options.cwd):
                message = f"Working directory not found: {options.cwd}"
            else:
                message = f"{executable}: executable not found"
                hint = _INSTALL_HINTS.get(executable)
                if hint:
                    message += f". {hint}"
            logger.error("Command execution failed: %s", message)
            return ExecutionResult(stderr=message, exit_code=NOT_FOUND_EXIT_CODE)
        except PermissionError as exc:
            message = f"{executable}: permission denied ({exc})"
            logger.error("Command execution failed: %s", message)
            return ExecutionResult(stderr=message, exit_code=PERMISSION_DENIED_EXIT_CODE)
        except OSError as exc:
            message = f"{executable}: {exc}"
            logger.error("Command execution failed: %s", message)
            return ExecutionResult(stderr=message, exit_code=1)

        result = ExecutionResult(
            stdout=_to_text(completed.stdout),
            stderr=_to_text(completed.stderr),
            exit_code=completed.returncode,
        )
        if not result.ok:
            if _is_expected_failure(argv, result):
                logger.debug("Command failed as expected: %s (exit %d)", executable, result.exit_code)
            else:
                logger.error(
                    "Command execution failed: %s (exit %d) %s",
                    " ".join(argv[:3]),
                    result.exit_code,
                    result.stderr.strip(),
                )
        return result


_default_executor = SecureExecutor()


def get_executor() -> SecureExecutor:
    """Return the process-wide default executor."""
    return _default_executor


# ============================================================================
# Command Facades
# ============================================================================


def execute_secure_command(
    executable: str,
    args: Sequence[str] = (),
    options: Optional[ExecutionOptions] = None,
) -> ExecutionResult:
    """Run an allow-listed executable through the default executor."""
    return _default_executor.run(executable, args, options)


def execute_git_command(
    args: Sequence[str],
    options: Optional[ExecutionOptions] = None,
) -> ExecutionResult:
    """Run ``git`` with *args*."""
    return _default_executor.run("git", args, options)


def execute_gh_command(
    args: Sequence[str],
    options: Optional[ExecutionOptions] = None,
) -> ExecutionResult:
    """Run the GitHub CLI with *args*."""
    return _default_executor.run("gh", args, options)


async def execute_secure_command_async(
    executable: str,
    args: Sequence[str] = (),
    options: Optional[ExecutionOptions] = None,
) -> ExecutionResult:
    """Awaitable ``execute_secure_command``.

    The blocking call runs on the loop's default thread pool, so several
    commands can be awaited together with ``asyncio.gather``. Policy
    errors propagate to the awaiting caller.
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        None,
        functools.partial(execute_secure_command, executable, list(args), options),
    )


def _package_manager_in(command: str) -> Optional[str]:
    if "pnpm" in command:
        return "pnpm"
    if "npm" in command:
        return "npm"
    return None


def execute_shell_command(
    command: str,
    options: Optional[ExecutionOptions] = None,
    *,
    executor: Optional[SecureExecutor] = None,
) -> ExecutionResult:
    """Run a configured shell snippet via ``sh -c``.

    Only for commands taken from the project configuration (``post-init``).
    Shell operators such as ``&&`` are legitimate here, so per-argument
    sanitization is skipped; the process is still spawned with
    ``shell=False`` through the allow-listed ``sh``.

    When the snippet uses npm/pnpm and ``NVM_BIN`` is set, ``NVM_BIN`` is put
    first on PATH. A missing package manager yields exit code 127 without
    spawning anything.

    Raises:
        RequiredFieldError: If *command* is empty.
        InvalidCharactersError: If *command* contains control characters
            other than tab.
        UnauthorizedCommandError: If ``sh`` is not allow-listed.
    """
    if command is None or (isinstance(command, str) and not command.strip()):
        raise RequiredFieldError("shell command")
    if not isinstance(command, str):
        raise TypeError(f"Shell command must be a string, got {type(command).__name__}")
    if any((ord(ch) < 32 and ch != "\t") or ord(ch) == 127 for ch in command):
        raise InvalidCharactersError("shell command", command, "control characters")

    executor = executor or _default_executor
    executor.authorize("sh")
    options = options or ExecutionOptions()

    env = build_environment(options)
    package_manager = _package_manager_in(command)
    if package_manager and env.get("NVM_BIN"):
        env["PATH"] = os.pathsep.join(filter(None, [env["NVM_BIN"], env.get("PATH", "")]))
        logger.debug("Prepended NVM_BIN to PATH for %s", package_manager)

    if package_manager and shutil.which(package_manager, path=env.get("PATH")) is None:
        message = (
            f"{package_manager} executable not found in PATH. "
            f"{_INSTALL_HINTS[package_manager]}"
        )
        logger.error(message)
        return ExecutionResult(stderr=message, exit_code=NOT_FOUND_EXIT_CODE)

    logger.debug("Executing shell command via sh -c: %s", command)
    return executor._spawn(
        ["sh", "-c", command],
        dataclasses.replace(options, env=env, inherit_env=False),
    )
