"""Utility functions for cclauncher.

This package provides utility modules:
- threading: worker sizing for the enrichment fan-out
- terminal: terminal state helpers used around the interactive launch
"""

from .threading import (
    is_free_threading_enabled,
    get_optimal_worker_count,
    get_threading_info,
)
from .terminal import reset_terminal_for_child, get_terminal_size

__all__ = [
    # Threading
    "is_free_threading_enabled",
    "get_optimal_worker_count",
    "get_threading_info",
    # Terminal
    "reset_terminal_for_child",
    "get_terminal_size",
]
