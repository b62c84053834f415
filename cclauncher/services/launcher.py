"""Running the Claude Code CLI as an interactive or background child process."""

import fcntl
import io
import os
import select
import shlex
import shutil
import signal
import struct
import subprocess
import sys
import tempfile
import termios
import threading
import tty
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from cclauncher.logging_config import get_logger
from cclauncher.models.launch import BackgroundLaunchReport, LaunchFailureReason, LaunchOutcome
from cclauncher.models.model import OPTIONAL_MODEL_KEYS, REQUIRED_VALUE_KEYS, ModelConfig
from cclauncher.services.terminal_launcher import ExternalTerminalLauncher, launch_temp_dir
from cclauncher.utils.terminal import get_terminal_size, reset_terminal_for_child

logger = get_logger(__name__)

DEFAULT_COMMAND = ("claude",)
ENV_REF_PREFIX = "env:"
READ_CHUNK_SIZE = 4096
# Poll interval used to notice a child that exited while something else
# still holds the PTY open
PTY_POLL_SECONDS = 0.1

INSTALL_GUIDANCE = (
    "Claude Code is not installed or not in PATH.\n\n"
    "Install it with:\n"
    "  npm install -g @anthropic-ai/claude-code\n\n"
    "Or visit: https://claude.ai/code"
)


def resolve_env_ref(value: str, environ: Optional[Mapping[str, str]] = None) -> str:
    """Expand an ``env:VAR`` reference, unset variables become ""."""
    if value.startswith(ENV_REF_PREFIX):
        environ = os.environ if environ is None else environ
        return environ.get(value[len(ENV_REF_PREFIX):], "")
    return value


def prepare_environment(model: ModelConfig, base_env: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Child environment for a model: the base environment plus its settings.

    Only non-empty values are set, so an unconfigured key never clobbers an
    inherited one.
    """
    env = dict(os.environ if base_env is None else base_env)
    value = model.value

    for key in REQUIRED_VALUE_KEYS + OPTIONAL_MODEL_KEYS:
        raw = value.get(key)
        if raw:
            env[key] = resolve_env_ref(raw, env)

    timeout = value.get("API_TIMEOUT_MS")
    if timeout is not None and timeout > 0:
        env["API_TIMEOUT_MS"] = str(int(timeout))

    if value.get("DISABLE_NONESSENTIAL_TRAFFIC") is True:
        env["CLAUDE_CODE_DISABLE_NONESSENTIAL_TRAFFIC"] = "1"

    return env


def is_command_available(command: str, env: Optional[Mapping[str, str]] = None) -> bool:
    """Whether ``command`` resolves on the PATH the child will see."""
    path = (env if env is not None else os.environ).get("PATH")
    return shutil.which(command, path=path) is not None


def _describe_signal(signum: int) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return str(signum)


class StrategyUnavailable(Exception):
    """A launch strategy cannot be used here; the next one should be tried."""
    pass


def _acquire_controlling_tty():
    # Runs in the child after setsid(); fd 0 is already the PTY slave
    fcntl.ioctl(0, termios.TIOCSCTTY, 0)


def _write_all(fd: int, data: bytes) -> None:
    while data:
        written = os.write(fd, data)
        data = data[written:]


class PtyLaunchStrategy:
    """Runs the child on a fresh pseudo-terminal and relays I/O to it.

    The child gets its own PTY as controlling terminal, so its input
    buffering is independent of ours. Terminal resizes and SIGTERM/SIGHUP
    are forwarded while it runs.
    """

    def __init__(self, stdin_fd: Optional[int] = None, stdout_fd: Optional[int] = None):
        """Initialize the strategy.

        Args:
            stdin_fd: Descriptor to read user input from (defaults to stdin)
            stdout_fd: Descriptor to copy child output to (defaults to stdout)
        """
        self.stdin_fd = stdin_fd
        self.stdout_fd = stdout_fd

    @staticmethod
    def _fileno(explicit: Optional[int], stream) -> int:
        if explicit is not None:
            return explicit
        try:
            return stream.fileno()
        except (AttributeError, ValueError, io.UnsupportedOperation) as e:
            raise StrategyUnavailable(f"No usable file descriptor for {stream!r}: {e}")

    def _window_size(self, stdout_fd: int) -> Tuple[int, int]:
        try:
            size = os.get_terminal_size(stdout_fd)
            if size.columns and size.lines:
                return size.columns, size.lines
        except OSError:
            pass
        return get_terminal_size()

    @staticmethod
    def _resize(fd: int, columns: int, rows: int) -> None:
        fcntl.ioctl(fd, termios.TIOCSWINSZ, struct.pack("HHHH", rows, columns, 0, 0))

    def run(self, argv: Sequence[str], env: Mapping[str, str], cwd: str) -> int:
        """Run ``argv`` to completion and return its Popen return code.

        Raises:
            StrategyUnavailable: if the PTY or the child could not be set up
        """
        stdin_fd = self._fileno(self.stdin_fd, sys.stdin)
        stdout_fd = self._fileno(self.stdout_fd, sys.stdout)

        try:
            master_fd, slave_fd = os.openpty()
        except OSError as e:
            raise StrategyUnavailable(f"Could not open a pseudo-terminal: {e}")

        child_env = dict(env)
        child_env.setdefault("TERM", "xterm-256color")
        try:
            columns, rows = self._window_size(stdout_fd)
            self._resize(slave_fd, columns, rows)
            process = subprocess.Popen(
                list(argv),
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                cwd=cwd,
                env=child_env,
                start_new_session=True,
                preexec_fn=_acquire_controlling_tty,
            )
        except (OSError, subprocess.SubprocessError) as e:
            os.close(master_fd)
            os.close(slave_fd)
            raise StrategyUnavailable(f"Could not start {argv[0]} on a pseudo-terminal: {e}")

        # The child holds the slave now; closing ours lets EOF reach the master
        os.close(slave_fd)
        logger.debug(f"Started {argv[0]} (pid {process.pid}) on a PTY {columns}x{rows}")

        # From here on the child is running; errors end the launch, never retry it
        saved_attrs = None
        previous_handlers = {}
        master_open = True
        try:
            if os.isatty(stdin_fd):
                try:
                    saved_attrs = termios.tcgetattr(stdin_fd)
                    tty.setraw(stdin_fd)
                except termios.error as e:
                    logger.debug(f"Could not switch input to raw mode: {e}")

            if threading.current_thread() is threading.main_thread():
                def on_resize(signum, frame):
                    try:
                        self._resize(master_fd, *self._window_size(stdout_fd))
                    except OSError:
                        pass

                def forward(signum, frame):
                    if process.poll() is None:
                        process.send_signal(signum)

                for signum, handler in ((signal.SIGWINCH, on_resize), (signal.SIGTERM, forward), (signal.SIGHUP, forward)):
                    previous_handlers[signum] = signal.signal(signum, handler)

            try:
                self._relay(process, master_fd, stdin_fd, stdout_fd)
            except OSError as e:
                logger.warning(f"Lost the terminal of {argv[0]} (pid {process.pid}): {e}")
                # Hanging up the PTY ends the child's session
                os.close(master_fd)
                master_open = False
            return process.wait()
        finally:
            for signum, handler in previous_handlers.items():
                signal.signal(signum, handler)
            if saved_attrs is not None:
                try:
                    termios.tcsetattr(stdin_fd, termios.TCSADRAIN, saved_attrs)
                except termios.error as e:
                    logger.debug(f"Could not restore terminal attributes: {e}")
            if master_open:
                os.close(master_fd)

    @staticmethod
    def _relay(process: subprocess.Popen, master_fd: int, stdin_fd: int, stdout_fd: int) -> None:
        """Copy stdin to the PTY and PTY output to stdout until the child is done."""
        read_fds = [master_fd, stdin_fd]
        while True:
            readable, _, _ = select.select(read_fds, [], [], PTY_POLL_SECONDS)

            if master_fd in readable:
                try:
                    data = os.read(master_fd, READ_CHUNK_SIZE)
                except OSError:
                    # Linux reports EIO once the slave side is fully closed
                    data = b""
                if not data:
                    return
                _write_all(stdout_fd, data)

            if stdin_fd in readable:
                data = os.read(stdin_fd, READ_CHUNK_SIZE)
                if data:
                    _write_all(master_fd, data)
                else:
                    read_fds.remove(stdin_fd)

            if not readable and process.poll() is not None:
                return


class InheritedStdioStrategy:
    """Runs the child directly on our own stdin/stdout/stderr."""

    def run(self, argv: Sequence[str], env: Mapping[str, str], cwd: str) -> int:
        """Run ``argv`` to completion and return its Popen return code.

        Raises:
            StrategyUnavailable: if the child could not be started
        """
        try:
            process = subprocess.Popen(list(argv), cwd=cwd, env=dict(env))
        except (OSError, subprocess.SubprocessError) as e:
            raise StrategyUnavailable(f"Could not start {argv[0]}: {e}")

        # Ctrl-C reaches the child through the shared process group
        previous = None
        if threading.current_thread() is threading.main_thread():
            previous = signal.signal(signal.SIGINT, signal.SIG_IGN)
        try:
            return process.wait()
        finally:
            if previous is not None:
                signal.signal(signal.SIGINT, previous)


class InteractiveLauncher:
    """Hands the terminal to the Claude Code CLI and waits for it to exit."""

    def __init__(self, command: Sequence[str] = DEFAULT_COMMAND, strategies: Optional[List] = None):
        """Initialize the launcher.

        Args:
            command: Program and fixed arguments to run
            strategies: Ordered launch strategies, PTY first by default
        """
        self.command = list(command)
        self.strategies = strategies if strategies is not None else [PtyLaunchStrategy(), InheritedStdioStrategy()]

    def launch(self, env: Mapping[str, str], cwd: str) -> LaunchOutcome:
        """Run the command in ``cwd`` with ``env`` as its whole environment.

        Returns:
            LaunchOutcome with the child's exit code, or the reason it did not run
        """
        if not is_command_available(self.command[0], env):
            logger.debug(f"{self.command[0]} not found on PATH")
            return LaunchOutcome.failure(LaunchFailureReason.NOT_FOUND, INSTALL_GUIDANCE)

        reset_terminal_for_child()

        last_error = "no launch strategy configured"
        for strategy in self.strategies:
            name = type(strategy).__name__
            try:
                returncode = strategy.run(self.command, env, cwd)
            except StrategyUnavailable as e:
                logger.debug(f"{name} could not launch {self.command[0]}: {e}")
                last_error = str(e)
                continue
            except OSError as e:
                # The child may already have run, so no other strategy is tried
                logger.error(f"{name} failed while running {self.command[0]}: {e}")
                return LaunchOutcome.failure(LaunchFailureReason.SPAWN_FAILED, f"Failed to launch Claude Code: {e}")

            logger.debug(f"{self.command[0]} exited with {returncode} ({name})")
            if returncode < 0:
                return LaunchOutcome.failure(
                    LaunchFailureReason.KILLED_BY_SIGNAL,
                    f"Claude Code was killed by signal {_describe_signal(-returncode)}",
                )
            return LaunchOutcome.success(returncode)

        logger.error(f"Failed to launch {self.command[0]}: {last_error}")
        return LaunchOutcome.failure(LaunchFailureReason.SPAWN_FAILED, f"Failed to launch Claude Code: {last_error}")


def environment_overlay(env: Mapping[str, str], base_env: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Variables in ``env`` that are new or different from ``base_env``."""
    base = os.environ if base_env is None else base_env
    return {key: value for key, value in env.items() if base.get(key) != value}


def build_launch_script(argv: Sequence[str], overlay: Mapping[str, str], cwd: str) -> str:
    """Bash script that sets up the environment and execs the command.

    The script deletes itself first so tokens do not stay on disk.
    """
    lines = ["#!/bin/bash", 'rm -f -- "$0"']
    for key in sorted(overlay):
        lines.append(f"export {key}={shlex.quote(overlay[key])}")
    lines.append(f"cd {shlex.quote(cwd)} || exit 1")
    lines.append("exec " + " ".join(shlex.quote(arg) for arg in argv))
    return "\n".join(lines) + "\n"


class BackgroundLauncher:
    """Starts the Claude Code CLI in new terminal windows without waiting."""

    def __init__(
        self,
        command: Sequence[str] = DEFAULT_COMMAND,
        terminal_launcher: Optional[ExternalTerminalLauncher] = None,
    ):
        self.command = list(command)
        self.terminal_launcher = terminal_launcher or ExternalTerminalLauncher()

    def launch(self, env: Mapping[str, str], cwd: str, args: Sequence[str] = ()) -> LaunchOutcome:
        """Open a terminal window running the command in ``cwd``.

        Success means the window was opened, not that the command succeeded.
        """
        if not is_command_available(self.command[0], env):
            return LaunchOutcome.failure(LaunchFailureReason.NOT_FOUND, INSTALL_GUIDANCE)

        script = build_launch_script(self.command + list(args), environment_overlay(env), cwd)
        try:
            fd, script_path = tempfile.mkstemp(prefix="launch-", suffix=".sh", dir=str(launch_temp_dir(cwd)))
            with os.fdopen(fd, "w") as f:
                f.write(script)
        except OSError as e:
            logger.error(f"Could not write launch script for {cwd}: {e}")
            return LaunchOutcome.failure(LaunchFailureReason.SPAWN_FAILED, f"Could not write launch script: {e}")

        ok, error = self.terminal_launcher.launch_script(script_path, cwd)
        if not ok:
            try:
                os.unlink(script_path)
            except OSError:
                pass
            return LaunchOutcome.failure(LaunchFailureReason.SPAWN_FAILED, error or "Could not open a terminal")

        logger.info(f"Started {self.command[0]} in a new terminal for {cwd}")
        # Nothing to wait for; the exit code belongs to the other window
        return LaunchOutcome.success(0)

    def launch_many(self, instances: Iterable[Tuple[str, Mapping[str, str], str]]) -> BackgroundLaunchReport:
        """Launch every (label, env, cwd) instance and report each outcome."""
        report = BackgroundLaunchReport()
        for label, env, cwd in instances:
            report.add(label, self.launch(env, cwd))
        return report
