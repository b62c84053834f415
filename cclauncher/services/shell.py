"""External command runner shared by every service."""

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence, Tuple

import git

from cclauncher.exceptions import GitOperationError
from cclauncher.logging_config import get_logger

logger = get_logger(__name__)

# Exit status reported when the program could not be started at all,
# the same code a shell uses for "command not found".
EXIT_NOT_FOUND = 127


@dataclass(frozen=True)
class CommandResult:
    """Captured result of one external program run."""

    args: Tuple[str, ...]
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


def run_command(
    args: Sequence[str],
    cwd: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> CommandResult:
    """Run an external program and capture its output.

    Never raises for a failing program: a non-zero exit is returned as is and
    a program that cannot be started is reported with exit code 127.

    Args:
        args: Program and arguments
        cwd: Working directory (defaults to the current one)
        env: Extra environment variables layered over the current environment

    Returns:
        CommandResult with stdout/stderr stripped of the final newline
    """
    argv = tuple(str(a) for a in args)
    try:
        status, stdout, stderr = git.cmd.Git(cwd).execute(
            list(argv),
            with_extended_output=True,
            with_exceptions=False,
            env=dict(env) if env else None,
        )
    except git.exc.GitCommandNotFound as e:
        logger.debug(f"Could not start {argv[0]}: {e}")
        return CommandResult(argv, EXIT_NOT_FOUND, "", str(e))

    if status != 0:
        logger.debug(f"{' '.join(argv)} exited with {status}: {stderr.strip()}")
    return CommandResult(argv, status if status is not None else 0, stdout, stderr)


def run_git(cwd: Optional[str], *args: str) -> CommandResult:
    """Run a git subcommand in ``cwd``."""
    return run_command(["git", *args], cwd=cwd)


def git_output(cwd: Optional[str], *args: str, operation: Optional[str] = None) -> str:
    """Run a git subcommand and return its stdout.

    Raises:
        GitOperationError: when git exits non-zero, carrying git's stderr
    """
    result = run_git(cwd, *args)
    if not result.ok:
        stderr = result.stderr.strip()
        if stderr:
            message = f"exit {result.exit_code}: {stderr}"
        else:
            message = f"exit code {result.exit_code}"
        raise GitOperationError(operation or f"git {args[0] if args else ''}".strip(), message=message)
    return result.stdout
