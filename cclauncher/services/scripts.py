"""Post-worktree setup scripts, run inline or in an external terminal."""

import os
import shlex
import subprocess
import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from cclauncher.exceptions import MarkerFileError, ScriptValidationError
from cclauncher.logging_config import get_logger
from cclauncher.models.script import ScriptExecution, ScriptMode, ScriptRunResult
from cclauncher.services.terminal_launcher import (
    ExternalTerminalLauncher,
    setup_marker_path,
)

logger = get_logger(__name__)

SCRIPT_EXTENSIONS = {".sh", ".bash", ".zsh", ".command"}
DEFAULT_MAX_LINES = 100
DEFAULT_SETUP_TIMEOUT = 600.0
DEFAULT_POLL_INTERVAL = 0.5
WRAPPER_NAME = "setup_wrapper.sh"


def looks_like_file_path(raw: str) -> bool:
    """Whether a configured script reads like a path rather than a command."""
    trimmed = raw.strip()
    if not trimmed:
        return False
    if os.path.isabs(trimmed):
        return True
    if trimmed.startswith(".") or os.sep in trimmed:
        return True
    return os.path.splitext(trimmed)[1].lower() in SCRIPT_EXTENSIONS


def resolve_script_execution(project_root: str, raw: str) -> ScriptExecution:
    """Decide whether ``raw`` names a script file or is a shell command.

    Relative paths resolve against ``project_root``. Anything that does not
    exist as a file runs as a command.

    Raises:
        ScriptValidationError: if ``raw`` is empty
    """
    trimmed = (raw or "").strip()
    if not trimmed:
        raise ScriptValidationError(raw or "", "script is empty")

    resolved = trimmed if os.path.isabs(trimmed) else os.path.abspath(os.path.join(project_root, trimmed))
    if os.path.isfile(resolved):
        return ScriptExecution.file(resolved, trimmed)

    if looks_like_file_path(trimmed):
        logger.warning(f"Setup script {trimmed!r} looks like a file but {resolved} does not exist, running it as a command")
    return ScriptExecution.shell_command(trimmed, trimmed)


def build_script_argv(execution: ScriptExecution) -> List[str]:
    if execution.is_file:
        if os.access(execution.resolved_path, os.X_OK):
            return [execution.resolved_path]
        return ["sh", execution.resolved_path]
    return ["sh", "-c", execution.command]


class InlineScriptRunner:
    """Runs a setup step as a child process and captures its recent output."""

    def __init__(self, max_lines: int = DEFAULT_MAX_LINES):
        self.max_lines = max_lines
        self._process: Optional[subprocess.Popen] = None
        self._canceled = threading.Event()
        self._lock = threading.Lock()

    def run(
        self,
        execution: ScriptExecution,
        working_dir: str,
        on_output: Optional[Callable[[str], None]] = None,
    ) -> ScriptRunResult:
        """Run the step in ``working_dir``.

        stderr is merged into stdout. Each line is passed to ``on_output`` as
        it arrives; only the last ``max_lines`` lines are kept.
        """
        argv = build_script_argv(execution)
        env = os.environ.copy()
        env["FORCE_COLOR"] = "1"
        self._canceled.clear()

        logger.info(f"Running setup script {execution.raw!r} in {working_dir}")
        try:
            process = subprocess.Popen(
                argv,
                cwd=working_dir,
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                bufsize=1,
            )
        except OSError as e:
            logger.error(f"Could not start setup script {execution.raw!r}: {e}")
            return ScriptRunResult(success=False, message=f"Failed to start setup script: {e}")

        with self._lock:
            self._process = process

        lines = deque(maxlen=self.max_lines)
        try:
            for line in process.stdout:
                line = line.rstrip("\r\n")
                lines.append(line)
                if on_output:
                    on_output(line)
        finally:
            process.stdout.close()
            exit_code = process.wait()
            with self._lock:
                self._process = None

        output = list(lines)
        if self._canceled.is_set():
            return ScriptRunResult(
                success=False, exit_code=exit_code, output=output, message="Setup script canceled", canceled=True
            )
        if exit_code != 0:
            return ScriptRunResult(
                success=False,
                exit_code=exit_code,
                output=output,
                message=f"Setup script exited with code {exit_code}",
            )
        return ScriptRunResult(success=True, exit_code=0, output=output)

    def cancel(self) -> None:
        """Terminate the running step, if any."""
        self._canceled.set()
        with self._lock:
            process = self._process
        if process is not None and process.poll() is None:
            logger.debug(f"Terminating setup script (pid {process.pid})")
            process.terminate()


class MarkerState(Enum):
    WAITING = "waiting"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    CANCELED = "canceled"


@dataclass(frozen=True)
class MarkerWaitResult:
    state: MarkerState
    exit_code: Optional[int] = None
    message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state is MarkerState.COMPLETED and self.exit_code == 0


def read_exit_hint(content: str) -> Optional[int]:
    """Exit code written into a marker file. Empty means 0, garbage means None."""
    text = content.strip()
    if not text:
        return 0
    try:
        return int(text)
    except ValueError:
        return None


class MarkerWatcher:
    """Waits for a completion marker file to appear.

    WAITING moves to exactly one of COMPLETED, TIMED_OUT or CANCELED. A single
    event serves as both the poll timer and the cancel signal.
    """

    def __init__(
        self,
        marker: Path,
        timeout: float = DEFAULT_SETUP_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        stop: Optional[threading.Event] = None,
    ):
        self.marker = Path(marker)
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.state = MarkerState.WAITING
        self._stop = stop if stop is not None else threading.Event()

    def cancel(self) -> None:
        """Stop waiting. Safe to call from any thread."""
        self._stop.set()

    def _consume_marker(self) -> Optional[int]:
        try:
            content = self.marker.read_text()
        except OSError as e:
            raise MarkerFileError(str(self.marker), "read", str(e))
        try:
            self.marker.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise MarkerFileError(str(self.marker), "write", str(e))
        return read_exit_hint(content)

    def wait(self) -> MarkerWaitResult:
        """Block until the marker appears, the timeout passes or cancel() is called.

        Raises:
            MarkerFileError: if the marker exists but cannot be read or removed
        """
        deadline = time.monotonic() + self.timeout

        while self.state is MarkerState.WAITING:
            if self._stop.is_set():
                self.state = MarkerState.CANCELED
                return MarkerWaitResult(self.state, message="Waiting for setup script was canceled")

            if self.marker.exists():
                exit_code = self._consume_marker()
                self.state = MarkerState.COMPLETED
                if exit_code is None:
                    return MarkerWaitResult(self.state, message="Setup script reported an unreadable exit code")
                return MarkerWaitResult(self.state, exit_code=exit_code)

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self.state = MarkerState.TIMED_OUT
                return MarkerWaitResult(
                    self.state, message=f"Setup script did not finish within {self.timeout:g} seconds"
                )

            self._stop.wait(min(self.poll_interval, remaining))

        return MarkerWaitResult(self.state)


def write_setup_wrapper(execution: ScriptExecution, working_dir: str, marker: Path) -> Path:
    """Write the bash script an external terminal runs for a setup step.

    The wrapper runs the step in ``working_dir``, records its exit code in
    ``marker`` and keeps the window open until Enter is pressed.
    """
    marker = Path(marker)
    wrapper = marker.parent / WRAPPER_NAME
    pending = marker.parent / f"{marker.name}.tmp"
    command = " ".join(shlex.quote(arg) for arg in build_script_argv(execution))

    content = f"""#!/bin/bash
cd {shlex.quote(working_dir)} || exit 1
echo "Running setup script: {execution.raw.replace('"', '')}"
echo "----------------------------------------"
{command}
EXIT_CODE=$?
echo "----------------------------------------"
if [ $EXIT_CODE -eq 0 ]; then
  echo "Setup completed successfully."
else
  echo "Setup failed with exit code $EXIT_CODE."
fi
printf '%s' "$EXIT_CODE" > {shlex.quote(str(pending))}
mv -f {shlex.quote(str(pending))} {shlex.quote(str(marker))}
echo
read -r -p "Press Enter to close this window..."
exit $EXIT_CODE
"""
    wrapper.write_text(content)
    os.chmod(wrapper, 0o700)
    return wrapper


class ExternalScriptRunner:
    """Runs a setup step in a new terminal window and waits for its marker."""

    def __init__(
        self,
        terminal_launcher: Optional[ExternalTerminalLauncher] = None,
        timeout: float = DEFAULT_SETUP_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self.terminal_launcher = terminal_launcher or ExternalTerminalLauncher()
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._canceled = threading.Event()

    def cancel(self) -> None:
        """Stop waiting for the marker, also while the window is still opening."""
        self._canceled.set()

    def run(self, execution: ScriptExecution, working_dir: str) -> ScriptRunResult:
        self._canceled.clear()
        try:
            marker = setup_marker_path(working_dir)
            if marker.exists():
                try:
                    marker.unlink()
                except OSError as e:
                    raise MarkerFileError(str(marker), "write", str(e))
            wrapper = write_setup_wrapper(execution, working_dir, marker)
        except MarkerFileError as e:
            logger.error(str(e))
            return ScriptRunResult(success=False, message=str(e))
        except OSError as e:
            logger.error(f"Could not prepare setup wrapper for {working_dir}: {e}")
            return ScriptRunResult(success=False, message=f"Could not prepare setup script: {e}")

        ok, error = self.terminal_launcher.launch_script(str(wrapper), working_dir)
        if not ok:
            return ScriptRunResult(success=False, message=error)

        watcher = MarkerWatcher(
            marker, timeout=self.timeout, poll_interval=self.poll_interval, stop=self._canceled
        )
        try:
            waited = watcher.wait()
        except MarkerFileError as e:
            logger.error(str(e))
            return ScriptRunResult(success=False, message=str(e))

        logger.debug(f"Setup marker wait finished: {waited.state.value}")
        if waited.state is MarkerState.CANCELED:
            return ScriptRunResult(success=False, message=waited.message, canceled=True)
        if waited.state is MarkerState.TIMED_OUT:
            return ScriptRunResult(success=False, message=waited.message)
        if waited.exit_code is None:
            return ScriptRunResult(success=False, message=waited.message)
        if waited.exit_code != 0:
            return ScriptRunResult(
                success=False,
                exit_code=waited.exit_code,
                message=f"Setup script exited with code {waited.exit_code}",
            )
        return ScriptRunResult(success=True, exit_code=0)


def run_setup_script(
    raw: str,
    project_root: str,
    working_dir: str,
    mode: ScriptMode = ScriptMode.INLINE,
    on_output: Optional[Callable[[str], None]] = None,
    terminal_app: Optional[str] = None,
    timeout: float = DEFAULT_SETUP_TIMEOUT,
    max_lines: int = DEFAULT_MAX_LINES,
) -> bool:
    """Run a configured setup step for a freshly created worktree.

    Returns:
        True if the step exited with code 0. The caller decides whether to
        continue otherwise.
    """
    try:
        execution = resolve_script_execution(project_root, raw)
    except ScriptValidationError as e:
        logger.error(str(e))
        return False

    if mode is ScriptMode.EXTERNAL:
        runner = ExternalScriptRunner(ExternalTerminalLauncher(terminal_app), timeout=timeout)
        result = runner.run(execution, working_dir)
    else:
        result = InlineScriptRunner(max_lines=max_lines).run(execution, working_dir, on_output)

    if result.success:
        logger.info(f"Setup script {execution.raw!r} completed")
    else:
        logger.warning(f"Setup script {execution.raw!r} failed: {result.message}")
    return result.success
