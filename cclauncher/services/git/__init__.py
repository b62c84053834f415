"""Git-related services for cclauncher."""

from .enrichment import WorktreeEnricher
from .porcelain import parse_worktree_porcelain
from .worktrees import WorktreeService, find_repo_root, generate_worktree_path

__all__ = [
    "WorktreeEnricher",
    "WorktreeService",
    "find_repo_root",
    "generate_worktree_path",
    "parse_worktree_porcelain",
]
