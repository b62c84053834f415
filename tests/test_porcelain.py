"""Tests for worktree porcelain parsing"""
from cclauncher.services.git.porcelain import parse_worktree_porcelain, relative_path_for

SHA_MAIN = "1111111111111111111111111111111111111111"
SHA_FEATURE = "2222222222222222222222222222222222222222"
SHA_DETACHED = "3333333333333333333333333333333333333333"


class TestParseWorktreePorcelain:
    """Test parsing of `git worktree list --porcelain`."""

    def test_main_branch_and_detached(self):
        output = (
            f"worktree /repo\nHEAD {SHA_MAIN}\nbranch refs/heads/main\n\n"
            f"worktree /repo/.worktrees/feature\nHEAD {SHA_FEATURE}\nbranch refs/heads/feature/login\n\n"
            f"worktree /repo/.worktrees/claude-2025\nHEAD {SHA_DETACHED}\ndetached\n"
        )
        records = parse_worktree_porcelain(output, "/repo")

        assert len(records) == 3
        main, feature, detached = records

        assert main.path == "/repo"
        assert main.is_main is True
        assert main.branch == "main"
        assert main.relative_path == "."
        assert main.head == SHA_MAIN
        assert main.head_short == "1111111"

        assert feature.is_main is False
        assert feature.branch == "feature/login"
        assert feature.is_detached is False
        assert feature.relative_path == ".worktrees/feature"

        assert detached.is_detached is True
        assert detached.branch is None
        assert detached.head_short == "3333333"
        assert detached.relative_path == ".worktrees/claude-2025"

    def test_blocks_without_blank_lines(self):
        """A new `worktree` line ends the previous block."""
        output = (
            f"worktree /repo\nHEAD {SHA_MAIN}\nbranch refs/heads/main\n"
            f"worktree /repo/.worktrees/a\nHEAD {SHA_FEATURE}\ndetached"
        )
        records = parse_worktree_porcelain(output, "/repo")

        assert [r.path for r in records] == ["/repo", "/repo/.worktrees/a"]
        assert records[0].branch == "main"
        assert records[1].is_detached is True

    def test_only_first_block_is_main(self):
        output = "\n".join(
            f"worktree /repo/wt{i}\nHEAD {SHA_FEATURE}\ndetached\n" for i in range(4)
        )
        records = parse_worktree_porcelain(output, "/repo")

        assert [r.is_main for r in records] == [True, False, False, False]

    def test_empty_output(self):
        assert parse_worktree_porcelain("", "/repo") == []

    def test_ignores_unknown_lines(self):
        output = f"worktree /repo\nHEAD {SHA_MAIN}\nbranch refs/heads/main\nlocked\nprunable gitdir file points to non-existent location\n"
        records = parse_worktree_porcelain(output, "/repo")

        assert len(records) == 1
        assert records[0].branch == "main"


class TestRelativePathFor:
    """Test worktree path display relative to the repository root."""

    def test_root_is_dot(self):
        assert relative_path_for("/repo", "/repo") == "."

    def test_nested_path(self):
        assert relative_path_for("/repo/.worktrees/x", "/repo") == ".worktrees/x"

    def test_root_with_trailing_separator(self):
        assert relative_path_for("/repo/.worktrees/x", "/repo/") == ".worktrees/x"

    def test_outside_root_unchanged(self):
        assert relative_path_for("/elsewhere/wt", "/repo") == "/elsewhere/wt"

    def test_sibling_with_shared_prefix_unchanged(self):
        assert relative_path_for("/repo-other/wt", "/repo") == "/repo-other/wt"
