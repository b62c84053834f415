"""Configuration handling for cclauncher"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List

logger = logging.getLogger(__name__)

APP_DIR_NAME = ".claude-model-launcher"
APP_HOME_ENV = "CCLAUNCHER_HOME"


def get_app_dir() -> Path:
    """Return the directory holding stores, logs and launch scripts.

    ``CCLAUNCHER_HOME`` overrides the default ``~/.claude-model-launcher``.
    """
    override = os.environ.get(APP_HOME_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / APP_DIR_NAME


@dataclass
class Config:
    """Configuration for cclauncher with validation."""

    # Child process
    claude_command: List[str] = field(default_factory=lambda: ["claude"])

    # Worktree layout
    worktrees_dir: str = ".worktrees"
    worktree_prefix: str = "claude"

    # Setup scripts
    setup_timeout: float = 600.0  # Ten minutes for external terminal setup
    marker_poll_interval: float = 0.5
    output_max_lines: int = 100
    spawn_in_terminal: bool = False
    terminal_app: Optional[str] = None

    # Execution modes
    verbose: bool = False
    debug: bool = False
    sequential: bool = False  # Force sequential enrichment (disable parallelism)
    workers: Optional[int] = None  # Number of parallel workers (None = auto-detect)

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_claude_command()
        self._validate_worktrees_dir()
        self._validate_worktree_prefix()
        self._validate_setup_timeout()
        self._validate_poll_interval()
        self._validate_output_max_lines()
        self._validate_workers()

    def _validate_claude_command(self):
        """Validate claude_command is a non-empty argv list."""
        if isinstance(self.claude_command, str):
            self.claude_command = self.claude_command.split()
        if not self.claude_command or not all(isinstance(a, str) and a for a in self.claude_command):
            raise ValueError("claude_command must be a non-empty list of strings")

    def _validate_worktrees_dir(self):
        """Validate worktrees_dir is a plain relative directory name."""
        if not self.worktrees_dir or not self.worktrees_dir.strip():
            raise ValueError("worktrees_dir cannot be empty")
        if os.path.isabs(self.worktrees_dir):
            raise ValueError(f"worktrees_dir must be relative to the repository, got '{self.worktrees_dir}'")
        self.worktrees_dir = self.worktrees_dir.strip()

    def _validate_worktree_prefix(self):
        """Validate worktree_prefix is not empty."""
        if not self.worktree_prefix or not self.worktree_prefix.strip():
            raise ValueError("worktree_prefix cannot be empty")
        self.worktree_prefix = self.worktree_prefix.strip()

    def _validate_setup_timeout(self):
        """Validate setup_timeout is positive."""
        if self.setup_timeout <= 0:
            raise ValueError(f"setup_timeout must be positive, got {self.setup_timeout}")

    def _validate_poll_interval(self):
        """Validate marker_poll_interval is positive and below the timeout."""
        if self.marker_poll_interval <= 0:
            raise ValueError(f"marker_poll_interval must be positive, got {self.marker_poll_interval}")
        if self.marker_poll_interval > self.setup_timeout:
            raise ValueError("marker_poll_interval cannot exceed setup_timeout")

    def _validate_output_max_lines(self):
        """Validate output_max_lines is positive."""
        if self.output_max_lines <= 0:
            raise ValueError(f"output_max_lines must be positive, got {self.output_max_lines}")

    def _validate_workers(self):
        """Validate workers is positive when given."""
        if self.workers is not None and self.workers <= 0:
            raise ValueError(f"workers must be positive, got {self.workers}")

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "claude_command": list(self.claude_command),
            "worktrees_dir": self.worktrees_dir,
            "worktree_prefix": self.worktree_prefix,
            "setup_timeout": self.setup_timeout,
            "marker_poll_interval": self.marker_poll_interval,
            "output_max_lines": self.output_max_lines,
            "spawn_in_terminal": self.spawn_in_terminal,
            "terminal_app": self.terminal_app,
            "verbose": self.verbose,
            "debug": self.debug,
            "sequential": self.sequential,
            "workers": self.workers,
        }

    def get(self, key: str, default=None):
        """Get config value by key, mirrors dict access."""
        return getattr(self, key, default)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "Config":
        """Create Config from dictionary, ignoring unknown keys."""
        known_fields = {
            "claude_command",
            "worktrees_dir",
            "worktree_prefix",
            "setup_timeout",
            "marker_poll_interval",
            "output_max_lines",
            "spawn_in_terminal",
            "terminal_app",
            "verbose",
            "debug",
            "sequential",
            "workers",
        }

        filtered = {k: v for k, v in config_dict.items() if k in known_fields}
        return cls(**filtered)


@dataclass
class AppConfig:
    """Persistent application settings stored in config.json."""

    enable_debug_logging: bool = False

    def to_json(self) -> dict:
        return {"enableDebugLogging": self.enable_debug_logging}


def get_app_config_path() -> Path:
    return get_app_dir() / "config.json"


def load_app_config() -> AppConfig:
    """Read config.json, writing the defaults when it does not exist yet.

    A malformed file is logged and replaced by defaults in memory; it is
    never overwritten so the user can fix it by hand.
    """
    path = get_app_config_path()
    if not path.exists():
        app_config = AppConfig()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(app_config.to_json(), indent=2))
        except OSError as e:
            logger.debug(f"Could not write default app config to {path}: {e}")
        return app_config

    try:
        data = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read app config {path}: {e}")
        return AppConfig()

    if not isinstance(data, dict) or not isinstance(data.get("enableDebugLogging", False), bool):
        logger.warning(f"App config {path} is not valid, using defaults")
        return AppConfig()

    return AppConfig(enable_debug_logging=data.get("enableDebugLogging", False))
