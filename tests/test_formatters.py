"""Tests for display formatting"""
import pytest

from cclauncher.formatters import (
    format_diff_stats,
    format_mergeable,
    format_model_info,
    format_model_row,
    format_worktree_row,
    mask_token,
)
from cclauncher.models.model import ModelConfig
from cclauncher.models.worktree import DiffStats, WorktreeRecord


def _worktree(**overrides):
    fields = dict(
        path="/repo/.worktrees/a",
        head="abcdef1234",
        head_short="abcdef1",
        branch=None,
        is_detached=True,
        is_main=False,
        relative_path=".worktrees/a",
    )
    fields.update(overrides)
    return WorktreeRecord(**fields)


class TestMaskToken:
    """Test secret masking."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("", ""),
            ("short", "****"),
            ("exactly12chr", "****"),
            ("sk-test-0123456789abcdef", "sk-t...cdef"),
            ("env:MY_TOKEN", "env:MY_TOKEN"),
        ],
    )
    def test_values(self, value, expected):
        assert mask_token(value) == expected


class TestWorktreeFormatting:
    """Test worktree table cells."""

    def test_enriched_row(self):
        row = format_worktree_row(
            _worktree(diff_stats=DiffStats(10, 2), is_mergeable=True, base_branch="main")
        )
        assert row == {
            "path": ".worktrees/a",
            "branch": "(detached abcdef1)",
            "head": "abcdef1",
            "changes": "+10/-2",
            "mergeable": "✓",
            "base": "main",
        }

    def test_unknown_values(self):
        row = format_worktree_row(_worktree())
        assert row["changes"] == "-"
        assert row["mergeable"] == "?"
        assert row["base"] == "-"

    def test_main_marker(self):
        row = format_worktree_row(_worktree(is_main=True, relative_path=".", branch="main", is_detached=False))
        assert row["path"] == ". (main)"
        assert row["branch"] == "main"

    def test_helpers(self):
        assert format_diff_stats(None) == "-"
        assert format_diff_stats(DiffStats(0, 0)) == "+0/-0"
        assert format_mergeable(False) == "✗"


class TestModelFormatting:
    """Test model table cells."""

    def test_row(self, sample_model):
        sample_model.is_default = True
        row = format_model_row(sample_model)
        assert row == {
            "name": "Test Model *",
            "model": "test-model",
            "endpoint": "https://example.test/anthropic",
            "token": "sk-t...cdef",
        }

    def test_row_without_values(self):
        row = format_model_row(ModelConfig(name="Empty"))
        assert row["model"] == "-"
        assert row["token"] == "-"

    def test_info_never_shows_full_token(self, sample_model):
        info = format_model_info(sample_model)
        assert "sk-test-0123456789abcdef" not in info
        assert "Auth: sk-t...cdef" in info
        assert "Name: Test Model" in info
