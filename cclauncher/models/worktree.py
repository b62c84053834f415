"""Worktree data models."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class DiffStats:
    """Uncommitted line changes in a worktree."""

    additions: int = 0
    deletions: int = 0

    def __str__(self) -> str:
        return f"+{self.additions}/-{self.deletions}"


@dataclass
class WorktreeRecord:
    """Information about a git worktree."""

    path: str
    head: str
    head_short: str
    branch: Optional[str]  # None when HEAD is detached
    is_detached: bool
    is_main: bool  # First entry of `git worktree list`
    relative_path: str
    diff_stats: Optional[DiffStats] = None  # None = couldn't check
    is_mergeable: Optional[bool] = None  # None = check failed
    base_branch: Optional[str] = None

    @property
    def display_name(self) -> str:
        """Branch name, or the short commit for detached worktrees."""
        if self.branch:
            return self.branch
        return f"(detached {self.head_short})" if self.head_short else "(detached)"

    def __str__(self) -> str:
        """String representation of worktree."""
        main_marker = " (main)" if self.is_main else ""
        return f"{self.display_name} @ {self.path}{main_marker}"
