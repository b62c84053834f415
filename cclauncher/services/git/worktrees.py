"""Worktree lifecycle: discovery, creation, merge and cleanup."""

import os
import re
from datetime import datetime, timezone
from typing import List, Optional, Tuple

import git

from cclauncher.exceptions import WorktreeError
from cclauncher.logging_config import get_logger
from cclauncher.models.worktree import WorktreeRecord
from cclauncher.services.git.enrichment import WorktreeEnricher
from cclauncher.services.git.porcelain import parse_worktree_porcelain
from cclauncher.services.shell import git_output, run_git

logger = get_logger(__name__)

DEFAULT_WORKTREES_DIR = ".worktrees"
DEFAULT_WORKTREE_PREFIX = "claude"
MAX_SUFFIX_LENGTH = 30
TIMESTAMP_FORMAT = "%Y-%m-%dT%H-%M-%S"

_UNSAFE_SUFFIX_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def sanitize_suffix(suffix: str) -> str:
    """Make a user supplied suffix safe for a directory name."""
    return _UNSAFE_SUFFIX_CHARS.sub("_", suffix)[:MAX_SUFFIX_LENGTH]


def generate_worktree_path(
    repo_root: str,
    suffix: Optional[str] = None,
    now: Optional[datetime] = None,
    worktrees_dir: str = DEFAULT_WORKTREES_DIR,
    prefix: str = DEFAULT_WORKTREE_PREFIX,
) -> str:
    """Build a fresh worktree location under ``<repo_root>/.worktrees``.

    Args:
        repo_root: Main worktree path; one trailing separator is ignored
        suffix: Optional label placed between the prefix and the timestamp
        now: Time to stamp the name with (defaults to the current UTC time)

    Returns:
        e.g. /repo/.worktrees/claude-fix_login-2025-01-31T09-15-00
    """
    if repo_root.endswith(os.sep) and len(repo_root) > 1:
        repo_root = repo_root[:-1]

    stamp = now or datetime.now(timezone.utc)
    if stamp.tzinfo is not None:
        stamp = stamp.astimezone(timezone.utc)
    timestamp = stamp.strftime(TIMESTAMP_FORMAT)
    if suffix:
        name = f"{prefix}-{sanitize_suffix(suffix)}-{timestamp}"
    else:
        name = f"{prefix}-{timestamp}"
    return os.path.join(repo_root, worktrees_dir, name)


def find_repo_root(path: Optional[str] = None) -> Optional[str]:
    """Top level of the repository containing ``path``, or None outside one."""
    try:
        repo = git.Repo(path or os.getcwd(), search_parent_directories=True)
    except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
        return None
    return repo.working_tree_dir


def _format_git_error(e: git.exc.GitCommandError, command: str) -> str:
    # GitCommandError decorates stderr as "\n  stderr: '...'"
    stderr = (e.stderr if hasattr(e, "stderr") else str(e)).strip()
    status = e.status if hasattr(e, "status") else "unknown"
    if stderr:
        return f"{command} failed (exit {status}): {stderr}"
    return f"{command} failed with exit code {status}"


class WorktreeService:
    """Service for managing the worktrees of one repository."""

    def __init__(
        self,
        repo_root: str,
        enricher: Optional[WorktreeEnricher] = None,
        worktrees_dir: str = DEFAULT_WORKTREES_DIR,
        prefix: str = DEFAULT_WORKTREE_PREFIX,
    ):
        """Initialize the worktree service.

        Args:
            repo_root: Path to the main worktree of the repository
            enricher: Computes derived state for listed worktrees
            worktrees_dir: Directory (relative to the root) new worktrees go in
            prefix: Name prefix for generated worktrees
        """
        self.repo_root = repo_root
        self.enricher = enricher or WorktreeEnricher()
        self.worktrees_dir = worktrees_dir
        self.prefix = prefix

    def _get_repo(self):
        """Fresh git.Repo per call, safe to use from worker threads."""
        return git.Repo(self.repo_root)

    def list_worktrees(self) -> List[WorktreeRecord]:
        """Discover every worktree that still exists on disk, enriched.

        Raises:
            GitOperationError: if git cannot list the worktrees
        """
        output = git_output(self.repo_root, "worktree", "list", "--porcelain", operation="list_worktrees")
        records = parse_worktree_porcelain(output, self.repo_root)
        existing = []
        for record in records:
            if os.path.exists(record.path):
                existing.append(record)
            else:
                logger.debug(f"Skipping worktree with missing directory: {record.path}")

        logger.debug(f"Found {len(existing)} worktrees in {self.repo_root}")
        return self.enricher.enrich(existing, self.repo_root)

    def generate_path(self, suffix: Optional[str] = None) -> str:
        return generate_worktree_path(
            self.repo_root, suffix, worktrees_dir=self.worktrees_dir, prefix=self.prefix
        )

    def create_detached(self, path: str) -> None:
        """Create a detached worktree at ``path`` from the current HEAD.

        Raises:
            WorktreeError: if the parent directory or the worktree cannot be created
        """
        parent = os.path.dirname(path)
        try:
            os.makedirs(parent, exist_ok=True)
        except OSError as e:
            raise WorktreeError("create_worktree", f"Could not create directory {parent}: {e}", path=path)

        result = run_git(self.repo_root, "worktree", "add", "--detach", path)
        if not result.ok:
            raise WorktreeError(
                "create_worktree", f"Failed to create worktree: {result.stderr.strip()}", path=path
            )
        logger.info(f"Created worktree at {path}")

    def create_worktree(self, suffix: Optional[str] = None) -> str:
        """Create a new detached worktree under the worktrees directory.

        Returns:
            Path of the new worktree
        """
        path = self.generate_path(suffix)
        self.create_detached(path)
        return path

    def merge_into_default(self, source_ref: str, target_branch: str) -> Tuple[bool, Optional[str]]:
        """Merge ``source_ref`` into the branch checked out in the main worktree.

        The merge only runs when the main worktree is clean and on
        ``target_branch``.

        Returns:
            Tuple of (success, error_message). error_message is None on success.
        """
        status = run_git(self.repo_root, "status", "--porcelain")
        if not status.ok:
            return False, f"Could not read repository status: {status.stderr.strip()}"
        if status.stdout.strip():
            return False, "Main repository has uncommitted changes. Please commit or stash them first."

        head = run_git(self.repo_root, "rev-parse", "--abbrev-ref", "HEAD")
        if not head.ok:
            return False, f"Could not determine current branch: {head.stderr.strip()}"
        current = head.stdout.strip()
        if current != target_branch:
            return False, (
                f"Main repo is on '{current}', but you are trying to merge into "
                f"'{target_branch}'. Please switch branches first."
            )

        merge = run_git(self.repo_root, "merge", source_ref)
        if not merge.ok:
            error = merge.stderr.strip() or merge.stdout.strip()
            logger.error(f"Merge of {source_ref} into {target_branch} failed: {error}")
            return False, f"Merge failed: {error}"

        logger.info(f"Merged {source_ref} into {target_branch}")
        return True, None

    def remove_worktree(self, path: str, force: bool = False) -> Tuple[bool, Optional[str]]:
        """Remove a worktree at the specified path.

        Args:
            path: Path to the worktree directory
            force: Force removal even if working tree is dirty or locked

        Returns:
            Tuple of (success, error_message). error_message is None on success.
        """
        try:
            repo = self._get_repo()
            args = ["remove", path]
            if force:
                args.append("--force")

            repo.git.worktree(*args)
            logger.info(f"Removed worktree at {path}")
            return True, None
        except git.exc.GitCommandError as e:
            error_msg = _format_git_error(e, "git worktree remove")
            logger.error(f"Failed to remove worktree at {path}: {error_msg}")
            return False, error_msg
        except Exception as e:
            error_msg = f"Unexpected error removing worktree: {e}"
            logger.error(error_msg)
            return False, error_msg

    def prune_worktrees(self) -> Tuple[bool, Optional[str]]:
        """Prune metadata of worktrees whose directories are gone.

        Returns:
            Tuple of (success, error_message). error_message is None on success.
        """
        try:
            repo = self._get_repo()
            repo.git.worktree("prune")
            logger.info("Pruned orphaned worktree metadata")
            return True, None
        except git.exc.GitCommandError as e:
            error_msg = _format_git_error(e, "git worktree prune")
            logger.error(f"Failed to prune worktrees: {error_msg}")
            return False, error_msg
        except Exception as e:
            error_msg = f"Unexpected error pruning worktrees: {e}"
            logger.error(error_msg)
            return False, error_msg
