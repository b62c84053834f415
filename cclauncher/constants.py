"""Shared constants for cclauncher."""

from dataclasses import dataclass
from typing import List


@dataclass
class ColumnDefinition:
    """Definition of a table column."""

    key: str
    label: str
    width: int = 0  # 0 means auto-width


# Column definitions shared by the CLI tables and the picker
WORKTREE_COLUMNS: List[ColumnDefinition] = [
    ColumnDefinition("path", "Worktree", 40),
    ColumnDefinition("branch", "Branch", 24),
    ColumnDefinition("head", "HEAD", 9),
    ColumnDefinition("changes", "Changes", 12),
    ColumnDefinition("mergeable", "Merge", 6),
    ColumnDefinition("base", "Base", 16),
]

MODEL_COLUMNS: List[ColumnDefinition] = [
    ColumnDefinition("name", "Model", 24),
    ColumnDefinition("model", "ANTHROPIC_MODEL", 20),
    ColumnDefinition("endpoint", "Endpoint", 36),
    ColumnDefinition("token", "Auth", 14),
]


# Symbol constants
SYMBOL_MERGEABLE = "✓"
SYMBOL_CONFLICTS = "✗"
SYMBOL_UNKNOWN = "?"
SYMBOL_DEFAULT_MODEL = " *"
SYMBOL_MAIN_WORKTREE = " (main)"

UNKNOWN_VALUE = "-"
