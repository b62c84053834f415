"""Per-project settings (projects.json), keyed by repository root."""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from cclauncher.config import get_app_dir
from cclauncher.exceptions import StoreError
from cclauncher.logging_config import get_logger
from cclauncher.services.json_file import read_json, write_json

logger = get_logger(__name__)

PROJECTS_FILE = "projects.json"


@dataclass
class ProjectSettings:
    post_worktree_script: Optional[str] = None
    spawn_in_terminal: bool = False
    terminal_app: Optional[str] = None

    def to_json(self) -> dict:
        data: dict = {}
        if self.post_worktree_script:
            data["postWorktreeScript"] = self.post_worktree_script
        if self.spawn_in_terminal:
            data["spawnInTerminal"] = True
        if self.terminal_app:
            data["terminalApp"] = self.terminal_app
        return data

    @classmethod
    def from_json(cls, data: dict) -> "ProjectSettings":
        if not isinstance(data, dict):
            raise ValueError("project settings must be an object")
        script = data.get("postWorktreeScript")
        terminal_app = data.get("terminalApp")
        if script is not None and not isinstance(script, str):
            raise ValueError("postWorktreeScript must be a string")
        if terminal_app is not None and not isinstance(terminal_app, str):
            raise ValueError("terminalApp must be a string")
        return cls(
            post_worktree_script=script or None,
            spawn_in_terminal=bool(data.get("spawnInTerminal", False)),
            terminal_app=terminal_app or None,
        )


class ProjectStore:
    """Settings for each repository the launcher has been used in."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else get_app_dir() / PROJECTS_FILE

    def _read(self) -> Dict[str, ProjectSettings]:
        if not self.path.exists():
            return {}
        data = read_json(self.path)
        if not isinstance(data, dict):
            logger.warning(f"{self.path} is not an object, ignoring it")
            return {}

        projects = {}
        for root, entry in data.items():
            try:
                projects[root] = ProjectSettings.from_json(entry)
            except ValueError as e:
                logger.warning(f"Ignoring settings for {root} in {self.path}: {e}")
        return projects

    def get(self, project_root: str) -> ProjectSettings:
        """Settings for ``project_root``, defaults when none are stored."""
        return self._read().get(project_root, ProjectSettings())

    def save(self, project_root: str, settings: ProjectSettings) -> None:
        projects = self._read()
        projects[project_root] = settings
        write_json(self.path, {root: s.to_json() for root, s in projects.items()})

    def set_post_worktree_script(self, project_root: str, script: Optional[str]) -> None:
        """Store (or clear, with an empty value) the setup step for a project."""
        settings = self.get(project_root)
        settings.post_worktree_script = (script or "").strip() or None
        self.save(project_root, settings)

    def remove(self, project_root: str) -> None:
        projects = self._read()
        if project_root not in projects:
            raise StoreError("not_found", f"No settings stored for {project_root}")
        del projects[project_root]
        write_json(self.path, {root: s.to_json() for root, s in projects.items()})
