"""Opening scripts in a separate terminal window."""

import hashlib
import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from cclauncher.config import get_app_dir
from cclauncher.logging_config import get_logger
from cclauncher.services.shell import run_command

logger = get_logger(__name__)

SETUP_MARKER_NAME = "setup_done"
DEFAULT_MAC_TERMINAL = "Terminal"

# Linux terminals in order of preference, with the flag that introduces the command
LINUX_TERMINALS = [
    ("x-terminal-emulator", ["-e"]),
    ("gnome-terminal", ["--"]),
    ("konsole", ["-e"]),
    ("xfce4-terminal", ["-x"]),
    ("xterm", ["-e"]),
    ("alacritty", ["-e"]),
    ("kitty", []),
]

MAC_TERMINAL_APPS = [
    ("Terminal", "/System/Applications/Utilities/Terminal.app"),
    ("iTerm", "/Applications/iTerm.app"),
    ("Hyper", "/Applications/Hyper.app"),
    ("Alacritty", "/Applications/Alacritty.app"),
    ("kitty", "/Applications/kitty.app"),
    ("Warp", "/Applications/Warp.app"),
]


def _ensure_private_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)
    os.chmod(path, 0o700)


def launch_temp_dir(work_dir: str) -> Path:
    """Per-working-directory scratch directory for launch and setup scripts.

    ``<app dir>/workdir-<first 12 hex chars of sha256(resolved work_dir)>``,
    created with mode 0700.
    """
    root = get_app_dir()
    _ensure_private_dir(root)
    digest = hashlib.sha256(os.path.realpath(work_dir).encode("utf-8")).hexdigest()[:12]
    path = root / f"workdir-{digest}"
    _ensure_private_dir(path)
    return path


def setup_marker_path(work_dir: str) -> Path:
    return launch_temp_dir(work_dir) / SETUP_MARKER_NAME


def detect_terminals(platform: Optional[str] = None) -> List[str]:
    """Names of terminal applications found on this machine."""
    platform = platform or sys.platform
    if platform == "darwin":
        return [name for name, app_path in MAC_TERMINAL_APPS if os.path.exists(app_path)]
    return [name for name, _ in LINUX_TERMINALS if shutil.which(name)]


class ExternalTerminalLauncher:
    """Runs a script file in a new terminal window without waiting for it."""

    def __init__(self, terminal_app: Optional[str] = None, platform: Optional[str] = None):
        """Initialize the launcher.

        Args:
            terminal_app: Terminal to use (macOS app name or Linux executable)
            platform: Override of sys.platform
        """
        self.terminal_app = terminal_app
        self.platform = platform or sys.platform

    def _linux_argv(self, script_path: str) -> Optional[List[str]]:
        candidates = LINUX_TERMINALS
        if self.terminal_app:
            flags = dict(LINUX_TERMINALS).get(os.path.basename(self.terminal_app), ["-e"])
            candidates = [(self.terminal_app, flags)] + LINUX_TERMINALS

        for term, flags in candidates:
            if shutil.which(term):
                return [term, *flags, "bash", script_path]
        return None

    def launch_script(self, script_path: str, cwd: str) -> Tuple[bool, Optional[str]]:
        """Open ``script_path`` in a new terminal window.

        Returns:
            Tuple of (success, error_message). error_message is None on success.
        """
        try:
            os.chmod(script_path, 0o700)
        except OSError as e:
            return False, f"Could not make {script_path} executable: {e}"

        if self.platform == "darwin":
            app = self.terminal_app or DEFAULT_MAC_TERMINAL
            result = run_command(["open", "-a", app, script_path], cwd=cwd)
            if not result.ok:
                error_msg = f"Failed to open {app}: {result.stderr.strip() or f'exit code {result.exit_code}'}"
                logger.error(error_msg)
                return False, error_msg
            logger.debug(f"Opened {script_path} in {app}")
            return True, None

        if self.platform.startswith("win"):
            return False, "Opening a terminal window is not supported on Windows"

        argv = self._linux_argv(script_path)
        if argv is None:
            return False, "No supported terminal emulator found"

        try:
            # Detached so closing the launcher does not close the window
            subprocess.Popen(
                argv,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            error_msg = f"Failed to start {argv[0]}: {e}"
            logger.error(error_msg)
            return False, error_msg

        logger.debug(f"Opened {script_path} in {argv[0]}")
        return True, None
