"""Core functionality for cclauncher"""

import os
from typing import List, Mapping, Optional, Sequence, Tuple, Union

from cclauncher.config import Config
from cclauncher.exceptions import WorktreeError
from cclauncher.logging_config import get_logger
from cclauncher.models.launch import BackgroundLaunchReport, LaunchFailureReason, LaunchOutcome
from cclauncher.models.script import ScriptMode
from cclauncher.models.worktree import WorktreeRecord
from cclauncher.services.git import WorktreeEnricher, WorktreeService, find_repo_root
from cclauncher.services.launcher import BackgroundLauncher, InteractiveLauncher
from cclauncher.services.scripts import run_setup_script
from cclauncher.services.terminal_launcher import ExternalTerminalLauncher

logger = get_logger(__name__)


class Launcher:
    """Entry point tying worktrees, setup scripts and child launches together."""

    def __init__(self, config: Union[Config, dict, None] = None):
        """Initialize the launcher.

        Args:
            config: Configuration dict or Config object (defaults when omitted)
        """
        if config is None:
            self.config = Config()
        elif isinstance(config, dict):
            self.config = Config.from_dict(config)
        else:
            self.config = config

        self.enricher = WorktreeEnricher(max_workers=self.config.workers, sequential=self.config.sequential)
        self.interactive = InteractiveLauncher(command=self.config.claude_command)
        self.background = BackgroundLauncher(
            command=self.config.claude_command,
            terminal_launcher=ExternalTerminalLauncher(self.config.terminal_app),
        )

    def worktree_service(self, repo_root: str) -> WorktreeService:
        return WorktreeService(
            repo_root,
            enricher=self.enricher,
            worktrees_dir=self.config.worktrees_dir,
            prefix=self.config.worktree_prefix,
        )

    def get_repo_root(self, path: Optional[str] = None) -> Optional[str]:
        """Top level of the repository containing ``path`` (default: cwd)."""
        return find_repo_root(path)

    def list_worktrees(self, repo_root: str) -> List[WorktreeRecord]:
        return self.worktree_service(repo_root).list_worktrees()

    def create_worktree(self, repo_root: str, suffix: Optional[str] = None) -> str:
        """Create a detached worktree and return its path.

        Raises:
            WorktreeError: if git refuses to create it
        """
        return self.worktree_service(repo_root).create_worktree(suffix)

    def launch_interactive(self, env: Mapping[str, str], cwd: str) -> LaunchOutcome:
        """Run Claude Code in the foreground, blocking until it exits."""
        logger.debug(f"Launching interactively in {cwd}")
        return self.interactive.launch(env, cwd)

    def launch_background(self, env: Mapping[str, str], cwd: str, args: Sequence[str] = ()) -> LaunchOutcome:
        return self.background.launch(env, cwd, args)

    def launch_parallel(
        self,
        instances: Sequence[Tuple[str, Mapping[str, str]]],
        repo_root: Optional[str] = None,
    ) -> BackgroundLaunchReport:
        """Start one Claude Code per (label, env) pair, each in a new worktree.

        The label also names the worktree. A worktree that cannot be created
        is reported as a failed launch for that instance only.
        """
        repo_root = repo_root or self.get_repo_root() or os.getcwd()
        service = self.worktree_service(repo_root)

        prepared = []
        report = BackgroundLaunchReport()
        for label, env in instances:
            try:
                path = service.create_worktree(label)
            except WorktreeError as e:
                logger.error(f"Could not create worktree for {label}: {e}")
                report.add(label, LaunchOutcome.failure(LaunchFailureReason.SPAWN_FAILED, str(e)))
                continue
            prepared.append((label, env, path))

        for label, outcome in self.background.launch_many(prepared).results:
            report.add(label, outcome)
        return report

    def run_setup_script(
        self,
        raw: str,
        project_root: str,
        working_dir: str,
        mode: ScriptMode = ScriptMode.INLINE,
        on_output=None,
        terminal_app: Optional[str] = None,
    ) -> bool:
        """Run a setup step in ``working_dir``; True if it exited with code 0."""
        return run_setup_script(
            raw,
            project_root,
            working_dir,
            mode,
            on_output=on_output,
            terminal_app=terminal_app or self.config.terminal_app,
            timeout=self.config.setup_timeout,
            max_lines=self.config.output_max_lines,
        )
