"""Shared formatting utilities for cclauncher."""

from typing import Dict, Optional

from cclauncher.constants import (
    SYMBOL_CONFLICTS,
    SYMBOL_DEFAULT_MODEL,
    SYMBOL_MAIN_WORKTREE,
    SYMBOL_MERGEABLE,
    SYMBOL_UNKNOWN,
    UNKNOWN_VALUE,
)
from cclauncher.models.model import ModelConfig
from cclauncher.models.worktree import DiffStats, WorktreeRecord

ENV_REF_PREFIX = "env:"
MASK_VISIBLE_CHARS = 4
MASK_MIN_LENGTH = 12


def format_diff_stats(stats: Optional[DiffStats]) -> str:
    """
    Format uncommitted changes as "+added/-deleted".

    Args:
        stats: Diff stats, None when they could not be computed

    Returns:
        Formatted stats, or "-" when unknown
    """
    if stats is None:
        return UNKNOWN_VALUE
    return str(stats)


def format_mergeable(is_mergeable: Optional[bool]) -> str:
    """Symbol for the merge check: clean, conflicts, or unknown."""
    if is_mergeable is None:
        return SYMBOL_UNKNOWN
    return SYMBOL_MERGEABLE if is_mergeable else SYMBOL_CONFLICTS


def format_base_branch(base_branch: Optional[str]) -> str:
    return base_branch or UNKNOWN_VALUE


def format_worktree_name(worktree: WorktreeRecord) -> str:
    """Relative path, marking the main worktree."""
    return worktree.relative_path + (SYMBOL_MAIN_WORKTREE if worktree.is_main else "")


def mask_token(value: str) -> str:
    """
    Hide a secret for display.

    ``env:`` references are shown as they are. Short values are fully
    masked, longer ones keep their first and last four characters.

    Args:
        value: Token or env reference

    Returns:
        Masked value
    """
    if not value:
        return ""
    if value.startswith(ENV_REF_PREFIX):
        return value
    if len(value) <= MASK_MIN_LENGTH:
        return "****"
    return f"{value[:MASK_VISIBLE_CHARS]}...{value[-MASK_VISIBLE_CHARS:]}"


def format_model_name(model: ModelConfig) -> str:
    return model.name + (SYMBOL_DEFAULT_MODEL if model.is_default else "")


def format_worktree_row(worktree: WorktreeRecord) -> Dict[str, str]:
    """
    Format a worktree into display cells keyed like WORKTREE_COLUMNS.

    Args:
        worktree: Enriched worktree record

    Returns:
        Dict of column key to display string
    """
    return {
        "path": format_worktree_name(worktree),
        "branch": worktree.display_name,
        "head": worktree.head_short,
        "changes": format_diff_stats(worktree.diff_stats),
        "mergeable": format_mergeable(worktree.is_mergeable),
        "base": format_base_branch(worktree.base_branch),
    }


def format_model_row(model: ModelConfig) -> Dict[str, str]:
    """Format a model into display cells keyed like MODEL_COLUMNS."""
    return {
        "name": format_model_name(model),
        "model": model.value.get("ANTHROPIC_MODEL") or UNKNOWN_VALUE,
        "endpoint": model.value.get("ANTHROPIC_BASE_URL") or UNKNOWN_VALUE,
        "token": mask_token(model.value.get("ANTHROPIC_AUTH_TOKEN", "")) or UNKNOWN_VALUE,
    }


def format_model_info(model: ModelConfig) -> str:
    """Multi-line description of a model for confirmations and details."""
    lines = [
        f"Name: {model.name}",
        f"Description: {model.description or '(none)'}",
        f"Endpoint: {model.value.get('ANTHROPIC_BASE_URL', '')}",
        f"Model: {model.value.get('ANTHROPIC_MODEL', '')}",
        f"Auth: {mask_token(model.value.get('ANTHROPIC_AUTH_TOKEN', ''))}",
    ]
    if model.is_default:
        lines.append("(Default)")
    return "\n".join(lines)
