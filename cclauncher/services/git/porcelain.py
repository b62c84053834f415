"""Parser for `git worktree list --porcelain` output."""

import os
from typing import Any, Dict, List

from cclauncher.models.worktree import WorktreeRecord

REFS_HEADS_PREFIX = "refs/heads/"
SHORT_SHA_LENGTH = 7


def relative_path_for(path: str, repo_root: str) -> str:
    """Compute a worktree path relative to the repository root.

    The root itself becomes ".". Paths outside the root are returned unchanged.
    """
    root = repo_root.rstrip(os.sep) or os.sep
    if not path.startswith(root):
        return path

    relative = path[len(root):]
    if relative.startswith(os.sep):
        relative = relative[len(os.sep):]
    elif relative:
        # A sibling such as /repo-other shares the prefix but is outside the root
        return path
    return relative or "."


def _finalize(block: Dict[str, Any], repo_root: str, is_main: bool) -> WorktreeRecord:
    path = block.get("path", "")
    return WorktreeRecord(
        path=path,
        head=block.get("head", ""),
        head_short=block.get("head_short", ""),
        branch=block.get("branch"),
        is_detached=block.get("is_detached", False),
        is_main=is_main,
        relative_path=relative_path_for(path, repo_root),
    )


def parse_worktree_porcelain(output: str, repo_root: str) -> List[WorktreeRecord]:
    """Parse porcelain worktree output into records.

    Format:
        worktree /path/to/repo
        HEAD abc123...
        branch refs/heads/main

        worktree /path/to/repo/.worktrees/feature
        HEAD def456...
        detached

    Blocks are delimited by the next ``worktree`` line, not by blank lines.
    The first block is the main worktree.
    """
    worktrees: List[WorktreeRecord] = []
    current: Dict[str, Any] = {}

    for line in output.split("\n"):
        line = line.rstrip("\r")

        if line.startswith("worktree "):
            if current.get("path"):
                worktrees.append(_finalize(current, repo_root, is_main=not worktrees))
            current = {"path": line[len("worktree "):], "is_detached": False}
        elif line.startswith("HEAD "):
            current["head"] = line[len("HEAD "):]
            current["head_short"] = current["head"][:SHORT_SHA_LENGTH]
        elif line.startswith("branch "):
            ref = line[len("branch "):]
            if ref.startswith(REFS_HEADS_PREFIX):
                ref = ref[len(REFS_HEADS_PREFIX):]
            current["branch"] = ref
            current["is_detached"] = False
        elif line == "detached":
            current["is_detached"] = True
            current["branch"] = None

    # Last block has no following "worktree" line
    if current.get("path"):
        worktrees.append(_finalize(current, repo_root, is_main=not worktrees))

    return worktrees
