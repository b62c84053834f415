"""Pytest fixtures for cclauncher tests"""
import tempfile
from pathlib import Path

import git
import pytest

from cclauncher.models.model import ModelConfig


@pytest.fixture(autouse=True)
def app_home(tmp_path, monkeypatch):
    """Keep stores, logs and launch scripts out of the real home directory."""
    home = tmp_path / "cclauncher-home"
    monkeypatch.setenv("CCLAUNCHER_HOME", str(home))
    return home


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        # Resolved so paths match what git reports (e.g. /private/var on macOS)
        yield Path(tmpdir).resolve()


@pytest.fixture
def git_repo(temp_dir):
    """Create a real Git repository for testing."""
    repo_path = temp_dir / "test_repo"
    repo_path.mkdir()

    # Initialize repository
    repo = git.Repo.init(repo_path)

    # Configure git user for commits
    repo.config_writer().set_value("user", "name", "Test User").release()
    repo.config_writer().set_value("user", "email", "test@example.com").release()

    # Create initial commit on main branch
    test_file = repo_path / "README.md"
    test_file.write_text("line 1\nline 2\nline 3\nline 4\nline 5\n")
    repo.index.add(["README.md"])
    repo.index.commit("Initial commit")

    # Rename master to main if needed
    try:
        repo.git.branch('-M', 'main')
    except git.exc.GitCommandError:
        pass

    # Worktrees live inside the repository; keep them out of `git status`
    exclude_file = Path(repo.git_dir) / "info" / "exclude"
    exclude_file.parent.mkdir(parents=True, exist_ok=True)
    with open(exclude_file, "a") as f:
        f.write(".worktrees/\n")

    yield repo

    # Cleanup
    repo.close()


@pytest.fixture
def git_repo_with_worktree(git_repo):
    """Repository with a detached worktree at .worktrees/feature holding +10/-2 changes."""
    repo_path = Path(git_repo.working_dir)
    worktree_path = repo_path / ".worktrees" / "feature"
    worktree_path.parent.mkdir()
    git_repo.git.worktree("add", "--detach", str(worktree_path))

    # Drop two lines and add ten, uncommitted
    new_lines = ["line 1", "line 2", "line 3"] + [f"new line {i}" for i in range(10)]
    (worktree_path / "README.md").write_text("\n".join(new_lines) + "\n")

    yield git_repo, worktree_path


@pytest.fixture
def sample_model():
    """A model configuration with every optional setting."""
    return ModelConfig(
        name="Test Model",
        description="For tests",
        value={
            "ANTHROPIC_BASE_URL": "https://example.test/anthropic",
            "ANTHROPIC_AUTH_TOKEN": "sk-test-0123456789abcdef",
            "ANTHROPIC_MODEL": "test-model",
            "ANTHROPIC_SMALL_FAST_MODEL": "test-model-small",
            "API_TIMEOUT_MS": 120000,
            "DISABLE_NONESSENTIAL_TRAFFIC": True,
        },
    )
