"""Data models for cclauncher."""

from .worktree import DiffStats, WorktreeRecord
from .script import ScriptKind, ScriptMode, ScriptExecution, ScriptRunResult
from .launch import LaunchFailureReason, LaunchOutcome, BackgroundLaunchReport
from .model import ModelConfig

__all__ = [
    "DiffStats",
    "WorktreeRecord",
    "ScriptKind",
    "ScriptMode",
    "ScriptExecution",
    "ScriptRunResult",
    "LaunchFailureReason",
    "LaunchOutcome",
    "BackgroundLaunchReport",
    "ModelConfig",
]
