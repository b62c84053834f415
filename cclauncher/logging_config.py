"""Logging configuration for cclauncher"""
import logging
import sys

from cclauncher.config import get_app_dir

FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
FILE_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# GitPython logs every command it runs at DEBUG
QUIET_LIBRARIES = ('git.cmd',)


class ColoredFormatter(logging.Formatter):
    """Colors console lines by level when stderr is a terminal.

    The record itself is left alone, so other handlers never see the codes.
    """

    COLORS = {
        'DEBUG': '\033[36m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[31m',
    }
    RESET = '\033[0m'

    def formatMessage(self, record):
        text = super().formatMessage(record)
        color = self.COLORS.get(record.levelname)
        if color and sys.stderr.isatty():
            return f"{color}{text}{self.RESET}"
        return text


def get_log_file():
    """Return the path of the persistent log file."""
    return get_app_dir() / 'logs' / 'cclauncher.log'


def setup_logging(verbose: bool = False, debug: bool = False, tui_mode: bool = False) -> None:
    """
    Configure logging for the application.

    Console records go to stderr, so they do not mix with the tables on
    stdout. The log file is written in debug mode and always while
    the picker runs.

    Args:
        verbose: If True, show INFO level messages
        debug: If True, show DEBUG level messages with time and source
        tui_mode: If True, log only to the file (the picker owns the screen)
    """
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if tui_mode else level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.INFO if debug else logging.WARNING)

    if tui_mode or debug:
        log_file = get_log_file()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        # Append, the launcher runs many short sessions
        file_handler = logging.FileHandler(log_file, mode='a')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
        root_logger.addHandler(file_handler)

    if not tui_mode:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        if debug:
            formatter = ColoredFormatter(fmt=FILE_FORMAT, datefmt=FILE_DATE_FORMAT)
        else:
            formatter = ColoredFormatter(fmt='[%(name)s] %(message)s')
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for the specified module.

    Args:
        name: Name of the module (typically __name__)

    Returns:
        Logger instance
    """
    # Strip the package prefix for cleaner log names
    if name.startswith('cclauncher.'):
        name = name.replace('cclauncher.', '', 1)
    if name.startswith('services.'):
        name = name.replace('services.', '', 1)

    return logging.getLogger(name)
