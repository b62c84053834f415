"""
cclauncher - Launch Claude Code against different model backends in git worktrees
"""

from .__version__ import __version__
from .core import Launcher
from .cli import main

__all__ = ["Launcher", "main", "__version__"]
