"""Derived git state for discovered worktrees."""

import dataclasses
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, Dict, List, Optional, Tuple

from cclauncher.logging_config import get_logger
from cclauncher.models.worktree import DiffStats, WorktreeRecord
from cclauncher.services.shell import run_git
from cclauncher.utils.threading import get_optimal_worker_count

logger = get_logger(__name__)

FALLBACK_DEFAULT_BRANCH = "main"
PREFERRED_BASE_BRANCHES = ("main", "master")

# Fields computed per worktree, in the order they are submitted
ENRICHED_FIELDS = ("diff_stats", "is_mergeable", "base_branch")


def parse_numstat(output: str) -> DiffStats:
    """Sum a `git diff --numstat` listing.

    Binary files show "-" in both count columns and contribute nothing.
    """
    additions = 0
    deletions = 0
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split("\t")
        added = parts[0] if parts else "0"
        deleted = parts[1] if len(parts) > 1 else "0"
        if added != "-":
            try:
                additions += int(added)
            except ValueError:
                pass
        if deleted != "-":
            try:
                deletions += int(deleted)
            except ValueError:
                pass
    return DiffStats(additions=additions, deletions=deletions)


def get_diff_stats(worktree_path: str) -> Optional[DiffStats]:
    """Uncommitted line changes against HEAD, or None when git fails."""
    result = run_git(worktree_path, "diff", "--numstat", "HEAD")
    if not result.ok:
        return None
    return parse_numstat(result.stdout)


def get_default_branch(repo_root: str) -> str:
    """Name of origin's HEAD branch, "main" when there is none."""
    result = run_git(repo_root, "symbolic-ref", "refs/remotes/origin/HEAD")
    if result.ok and result.stdout.strip():
        # refs/remotes/origin/main -> main
        return result.stdout.strip().split("/")[-1] or FALLBACK_DEFAULT_BRANCH
    return FALLBACK_DEFAULT_BRANCH


def check_mergeability(worktree_path: str, target_branch: str) -> Optional[bool]:
    """Dry-run merge of the worktree HEAD into ``target_branch``.

    Returns:
        True for a clean merge, False on conflicts, None when the check failed
    """
    result = run_git(worktree_path, "merge-tree", target_branch, "HEAD")
    if result.exit_code == 0:
        return True
    if result.exit_code == 1:
        return False
    logger.debug(f"merge-tree check failed in {worktree_path}: {result.stderr.strip()}")
    return None


def _strip_ref_prefix(ref: str) -> str:
    for prefix in ("refs/heads/", "refs/remotes/"):
        if ref.startswith(prefix):
            return ref[len(prefix):]
    return ref


def get_base_branch(branch_name: str, repo_root: str) -> Optional[str]:
    """Upstream branch configured for ``branch_name`` (branch.<name>.merge)."""
    result = run_git(repo_root, "config", "--get", f"branch.{branch_name}.merge")
    if not result.ok:
        return None
    ref = result.stdout.strip()
    return _strip_ref_prefix(ref) or None


def get_detached_original_branch(head: str, repo_root: str) -> Optional[str]:
    """Best guess at the branch a detached HEAD came from.

    First a local branch containing the commit (main/master preferred),
    then the nearest named ancestor from name-rev.
    """
    if not head:
        return None

    result = run_git(repo_root, "branch", "--format=%(refname:short)", "--contains", head)
    if result.ok:
        branches = [b.strip() for b in result.stdout.splitlines() if b.strip()]
        if branches:
            for preferred in PREFERRED_BASE_BRANCHES:
                if preferred in branches:
                    return preferred
            return branches[0]

    result = run_git(repo_root, "name-rev", "--name-only", "--refs=refs/heads/*", head)
    if result.ok:
        name = result.stdout.strip()
        if name and name != "undefined":
            return name

    return None


class WorktreeEnricher:
    """Computes diff stats, mergeability and base branch for worktrees."""

    def __init__(self, max_workers: Optional[int] = None, sequential: bool = False):
        """Initialize the enricher.

        Args:
            max_workers: Worker count for the thread pool (None = auto-detect)
            sequential: Run every shell-out on the calling thread
        """
        self.max_workers = max_workers
        self.sequential = sequential

    def _tasks_for(self, record: WorktreeRecord, repo_root: str, default_branch: str) -> List[Tuple[str, Callable]]:
        """Independent computations for one worktree, keyed by the field they fill."""
        if record.is_main:
            # Nothing to merge the main checkout into
            mergeable = lambda: True  # noqa: E731
        else:
            mergeable = lambda: check_mergeability(record.path, default_branch)  # noqa: E731

        if record.branch:
            base = lambda: get_base_branch(record.branch, repo_root)  # noqa: E731
        else:
            base = lambda: get_detached_original_branch(record.head, repo_root)  # noqa: E731

        return [
            ("diff_stats", lambda: get_diff_stats(record.path)),
            ("is_mergeable", mergeable),
            ("base_branch", base),
        ]

    def enrich(self, records: List[WorktreeRecord], repo_root: str) -> List[WorktreeRecord]:
        """Return new records with the derived fields filled in.

        A failing computation leaves only its own field as None. Output order
        matches input order.
        """
        if not records:
            return []

        default_branch = get_default_branch(repo_root)
        logger.debug(f"Default branch for mergeability checks: {default_branch}")

        # One slot per (worktree index, field); each task writes only its own slot
        slots: Dict[Tuple[int, str], Optional[object]] = {}
        tasks = [
            ((index, field_name), func)
            for index, record in enumerate(records)
            for field_name, func in self._tasks_for(record, repo_root, default_branch)
        ]

        if self.sequential:
            for key, func in tasks:
                slots[key] = self._run_task(key, records, func)
        else:
            max_workers = get_optimal_worker_count(self.max_workers, task_count=len(tasks))
            logger.debug(f"Using {max_workers} workers for {len(tasks)} enrichment tasks")
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                future_to_key = {
                    executor.submit(self._run_task, key, records, func): key
                    for key, func in tasks
                }
                wait(future_to_key)
                for future, key in future_to_key.items():
                    slots[key] = future.result()

        return [
            dataclasses.replace(record, **{name: slots.get((index, name)) for name in ENRICHED_FIELDS})
            for index, record in enumerate(records)
        ]

    @staticmethod
    def _run_task(key: Tuple[int, str], records: List[WorktreeRecord], func: Callable):
        """Run one computation, degrading any error to None."""
        try:
            return func()
        except Exception as e:
            index, field_name = key
            logger.error(f"Error computing {field_name} for {records[index].path}: {e}")
            return None
