"""Terminal state helpers for handing the terminal over to a child process."""

import os
import shutil
import subprocess
import sys
from typing import Tuple

from cclauncher.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_COLUMNS = 80
DEFAULT_ROWS = 24

# Reset attributes, show cursor, leave the alternate screen, normal cursor keys,
# pop the Kitty keyboard mode, disable bracketed paste, mouse tracking
# (all modes) and focus events.
RESET_SEQUENCE = (
    "\x1b[0m\x1b[?25h\x1b[?1049l\x1b[?1l\x1b[<u\x1b[?2004l"
    "\x1b[?1000l\x1b[?1002l\x1b[?1003l\x1b[?1006l\x1b[?1015l\x1b[?1004l"
)


def get_terminal_size() -> Tuple[int, int]:
    """Return (columns, rows) of the controlling terminal, 80x24 when unknown."""
    size = shutil.get_terminal_size((DEFAULT_COLUMNS, DEFAULT_ROWS))
    columns = size.columns or DEFAULT_COLUMNS
    rows = size.lines or DEFAULT_ROWS
    return columns, rows


def reset_terminal_for_child() -> None:
    """Put the terminal back in a standard mode before a child TUI starts.

    A previous full-screen app (the picker) may leave input protocols
    enabled that the child would otherwise inherit.
    """
    if not sys.stdout.isatty():
        return

    try:
        sys.stdout.write(RESET_SEQUENCE)
        sys.stdout.flush()
    except (OSError, ValueError) as e:
        logger.debug(f"Could not write terminal reset sequence: {e}")

    if sys.stdin.isatty() and shutil.which("stty"):
        try:
            subprocess.run(["stty", "sane"], check=False, stdin=sys.stdin, env=os.environ.copy())
        except OSError as e:
            logger.debug(f"stty sane failed: {e}")
