"""Tests for launching the Claude Code CLI"""
import io
import os
import sys
import termios
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from cclauncher.models.launch import LaunchFailureReason
from cclauncher.models.model import ModelConfig
from cclauncher.services import launcher as launcher_module
from cclauncher.services.launcher import (
    INSTALL_GUIDANCE,
    BackgroundLauncher,
    InheritedStdioStrategy,
    InteractiveLauncher,
    PtyLaunchStrategy,
    StrategyUnavailable,
    build_launch_script,
    environment_overlay,
    is_command_available,
    prepare_environment,
    resolve_env_ref,
)
from cclauncher.services.terminal_launcher import launch_temp_dir

BASE_ENV = {"PATH": "/usr/bin:/bin", "HOME": "/home/test"}


def _python(code):
    return [sys.executable, "-c", code]


def _open_pty_or_skip():
    try:
        master, slave = os.openpty()
    except OSError:
        pytest.skip("pseudo-terminals are not available")
    os.close(master)
    os.close(slave)


class TestPrepareEnvironment:
    """Test the child environment built from a model."""

    def test_model_values_set(self, sample_model):
        env = prepare_environment(sample_model, BASE_ENV)

        assert env["PATH"] == "/usr/bin:/bin"
        assert env["ANTHROPIC_BASE_URL"] == "https://example.test/anthropic"
        assert env["ANTHROPIC_AUTH_TOKEN"] == "sk-test-0123456789abcdef"
        assert env["ANTHROPIC_MODEL"] == "test-model"
        assert env["ANTHROPIC_SMALL_FAST_MODEL"] == "test-model-small"
        assert env["API_TIMEOUT_MS"] == "120000"
        assert env["CLAUDE_CODE_DISABLE_NONESSENTIAL_TRAFFIC"] == "1"

    def test_empty_values_do_not_clobber(self):
        model = ModelConfig(name="Partial", value={"ANTHROPIC_MODEL": "m"})
        env = prepare_environment(model, {**BASE_ENV, "ANTHROPIC_AUTH_TOKEN": "inherited"})

        assert env["ANTHROPIC_AUTH_TOKEN"] == "inherited"
        assert "ANTHROPIC_BASE_URL" not in env
        assert "ANTHROPIC_DEFAULT_OPUS_MODEL" not in env

    def test_optional_model_keys(self):
        model = ModelConfig(name="Opus", value={"ANTHROPIC_DEFAULT_OPUS_MODEL": "opus-x"})
        assert prepare_environment(model, BASE_ENV)["ANTHROPIC_DEFAULT_OPUS_MODEL"] == "opus-x"

    def test_timeout_and_traffic_omitted(self):
        model = ModelConfig(
            name="Plain",
            value={"API_TIMEOUT_MS": 0, "DISABLE_NONESSENTIAL_TRAFFIC": False},
        )
        env = prepare_environment(model, BASE_ENV)

        assert "API_TIMEOUT_MS" not in env
        assert "CLAUDE_CODE_DISABLE_NONESSENTIAL_TRAFFIC" not in env

    def test_float_timeout_truncated(self):
        model = ModelConfig(name="Float", value={"API_TIMEOUT_MS": 1500.7})
        assert prepare_environment(model, BASE_ENV)["API_TIMEOUT_MS"] == "1500"

    def test_env_reference(self):
        model = ModelConfig(name="Ref", value={"ANTHROPIC_AUTH_TOKEN": "env:MY_TOKEN"})
        env = prepare_environment(model, {**BASE_ENV, "MY_TOKEN": "secret"})
        assert env["ANTHROPIC_AUTH_TOKEN"] == "secret"

    def test_base_env_not_modified(self, sample_model):
        base = dict(BASE_ENV)
        prepare_environment(sample_model, base)
        assert base == BASE_ENV

    def test_resolve_env_ref(self):
        assert resolve_env_ref("plain", {}) == "plain"
        assert resolve_env_ref("env:X", {"X": "1"}) == "1"
        assert resolve_env_ref("env:MISSING", {}) == ""


class TestIsCommandAvailable:
    """Test PATH lookup of the child command."""

    def test_found_on_child_path(self, temp_dir):
        tool = temp_dir / "claude"
        tool.write_text("#!/bin/sh\n")
        os.chmod(tool, 0o755)
        assert is_command_available("claude", {"PATH": str(temp_dir)}) is True

    def test_missing(self, temp_dir):
        assert is_command_available("claude", {"PATH": str(temp_dir)}) is False

    def test_absolute_path(self):
        assert is_command_available(sys.executable, {"PATH": ""}) is True


class TestInteractiveLauncher:
    """Test interactive launches and how their outcome is reported."""

    def test_not_found_without_spawning(self, temp_dir):
        strategy = MagicMock()
        launcher = InteractiveLauncher(["definitely-not-installed-cli"], strategies=[strategy])

        outcome = launcher.launch({"PATH": str(temp_dir)}, str(temp_dir))

        assert outcome.ok is False
        assert outcome.reason is LaunchFailureReason.NOT_FOUND
        assert outcome.message == INSTALL_GUIDANCE
        strategy.run.assert_not_called()

    def test_exit_code_propagated(self, temp_dir):
        launcher = InteractiveLauncher(_python("import sys; sys.exit(3)"), strategies=[InheritedStdioStrategy()])

        outcome = launcher.launch(dict(os.environ), str(temp_dir))

        assert outcome.ok is True
        assert outcome.exit_code == 3

    def test_environment_and_cwd_reach_child(self, temp_dir):
        out_file = temp_dir / "seen.txt"
        code = (
            "import os, pathlib; "
            f"pathlib.Path({str(out_file)!r}).write_text(os.environ['ANTHROPIC_MODEL'] + '|' + os.getcwd())"
        )
        launcher = InteractiveLauncher(_python(code), strategies=[InheritedStdioStrategy()])

        outcome = launcher.launch({**os.environ, "ANTHROPIC_MODEL": "test-model"}, str(temp_dir))

        assert outcome.exit_code == 0
        model, cwd = out_file.read_text().split("|")
        assert model == "test-model"
        assert os.path.realpath(cwd) == os.path.realpath(str(temp_dir))

    def test_falls_back_to_next_strategy(self, temp_dir):
        first = MagicMock()
        first.run.side_effect = StrategyUnavailable("no pty")
        second = MagicMock()
        second.run.return_value = 0

        outcome = InteractiveLauncher([sys.executable], strategies=[first, second]).launch(
            dict(os.environ), str(temp_dir)
        )

        assert outcome.ok is True
        first.run.assert_called_once()
        second.run.assert_called_once()

    def test_all_strategies_fail(self, temp_dir):
        first = MagicMock()
        first.run.side_effect = StrategyUnavailable("no pty")
        second = MagicMock()
        second.run.side_effect = StrategyUnavailable("exec format error")

        outcome = InteractiveLauncher([sys.executable], strategies=[first, second]).launch(
            dict(os.environ), str(temp_dir)
        )

        assert outcome.ok is False
        assert outcome.reason is LaunchFailureReason.SPAWN_FAILED
        assert outcome.message == "Failed to launch Claude Code: exec format error"

    def test_error_after_start_not_retried(self, temp_dir):
        first = MagicMock()
        first.run.side_effect = OSError("Input/output error")
        second = MagicMock()

        outcome = InteractiveLauncher([sys.executable], strategies=[first, second]).launch(
            dict(os.environ), str(temp_dir)
        )

        assert outcome.reason is LaunchFailureReason.SPAWN_FAILED
        assert "Input/output error" in outcome.message
        second.run.assert_not_called()

    def test_child_runs_once_when_output_breaks(self, temp_dir):
        _open_pty_or_skip()
        counter = temp_dir / "runs.txt"
        code = f"open({str(counter)!r}, 'a').write('run\\n'); print('x' * 100)"
        stdin_r, stdin_w = os.pipe()
        os.close(stdin_w)
        out_r, out_w = os.pipe()
        os.close(out_r)
        strategies = [PtyLaunchStrategy(stdin_fd=stdin_r, stdout_fd=out_w), InheritedStdioStrategy()]
        try:
            InteractiveLauncher(_python(code), strategies=strategies).launch(dict(os.environ), str(temp_dir))
        finally:
            os.close(stdin_r)
            os.close(out_w)

        assert counter.read_text() == "run\n"

    def test_killed_by_signal(self, temp_dir):
        strategy = MagicMock()
        strategy.run.return_value = -9

        outcome = InteractiveLauncher([sys.executable], strategies=[strategy]).launch(dict(os.environ), str(temp_dir))

        assert outcome.reason is LaunchFailureReason.KILLED_BY_SIGNAL
        assert outcome.message == "Claude Code was killed by signal SIGKILL"

    def test_real_signal_death(self, temp_dir):
        code = "import os, signal; os.kill(os.getpid(), signal.SIGTERM)"
        launcher = InteractiveLauncher(_python(code), strategies=[InheritedStdioStrategy()])

        outcome = launcher.launch(dict(os.environ), str(temp_dir))

        assert outcome.reason is LaunchFailureReason.KILLED_BY_SIGNAL
        assert "SIGTERM" in outcome.message


class TestPtyLaunchStrategy:
    """Test running the child on a pseudo-terminal."""

    def _run(self, temp_dir, code, stdin_data=b""):
        _open_pty_or_skip()
        read_fd, write_fd = os.pipe()
        os.write(write_fd, stdin_data)
        os.close(write_fd)
        out_path = temp_dir / "pty-out.bin"
        out_fd = os.open(str(out_path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        try:
            returncode = PtyLaunchStrategy(stdin_fd=read_fd, stdout_fd=out_fd).run(
                _python(code), dict(os.environ), str(temp_dir)
            )
        finally:
            os.close(read_fd)
            os.close(out_fd)
        return returncode, out_path.read_bytes()

    def test_child_sees_a_terminal(self, temp_dir):
        code = "import os, sys; print('pty-check', os.isatty(0), os.isatty(1)); sys.exit(5)"

        returncode, output = self._run(temp_dir, code)

        assert returncode == 5
        assert b"pty-check True True" in output

    def test_term_defaulted(self, temp_dir):
        env_without_term = {k: v for k, v in os.environ.items() if k != "TERM"}
        _open_pty_or_skip()
        out_path = temp_dir / "term.txt"
        code = f"import os, pathlib; pathlib.Path({str(out_path)!r}).write_text(os.environ.get('TERM', ''))"
        read_fd, write_fd = os.pipe()
        os.close(write_fd)
        devnull = os.open(os.devnull, os.O_WRONLY)
        try:
            PtyLaunchStrategy(stdin_fd=read_fd, stdout_fd=devnull).run(_python(code), env_without_term, str(temp_dir))
        finally:
            os.close(read_fd)
            os.close(devnull)

        assert out_path.read_text() == "xterm-256color"

    def test_input_relayed(self, temp_dir):
        code = "import sys; line = sys.stdin.readline(); print('got', line.strip())"

        returncode, output = self._run(temp_dir, code, stdin_data=b"hello\n")

        assert returncode == 0
        assert b"got hello" in output

    def test_unavailable_without_file_descriptors(self, temp_dir, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO())
        with pytest.raises(StrategyUnavailable):
            PtyLaunchStrategy().run(_python("pass"), dict(os.environ), str(temp_dir))

    def test_raw_mode_failure_is_not_fatal(self, temp_dir, monkeypatch):
        def no_attrs(fd):
            raise termios.error(25, "Inappropriate ioctl for device")

        monkeypatch.setattr(launcher_module.os, "isatty", lambda fd: True)
        monkeypatch.setattr(launcher_module.termios, "tcgetattr", no_attrs)

        returncode, _ = self._run(temp_dir, "import sys; sys.exit(5)")

        assert returncode == 5

    def test_bad_working_directory(self, temp_dir):
        _open_pty_or_skip()
        read_fd, write_fd = os.pipe()
        os.close(write_fd)
        devnull = os.open(os.devnull, os.O_WRONLY)
        try:
            with pytest.raises(StrategyUnavailable):
                PtyLaunchStrategy(stdin_fd=read_fd, stdout_fd=devnull).run(
                    _python("pass"), dict(os.environ), str(temp_dir / "missing")
                )
        finally:
            os.close(read_fd)
            os.close(devnull)


class TestInheritedStdioStrategy:
    """Test running the child on our own stdio."""

    def test_missing_program_unavailable(self, temp_dir):
        with pytest.raises(StrategyUnavailable):
            InheritedStdioStrategy().run([str(temp_dir / "no-such-cli")], dict(os.environ), str(temp_dir))


class TestLaunchScript:
    """Test the script that background windows run."""

    def test_contents(self):
        script = build_launch_script(
            ["claude", "--resume"],
            {"ANTHROPIC_MODEL": "m", "ANTHROPIC_AUTH_TOKEN": "tok'en"},
            "/repo/.worktrees/a b",
        )
        lines = script.splitlines()

        assert lines[0] == "#!/bin/bash"
        assert lines[1] == 'rm -f -- "$0"'
        assert lines[2] == "export ANTHROPIC_AUTH_TOKEN='tok'\"'\"'en'"
        assert lines[3] == "export ANTHROPIC_MODEL=m"
        assert lines[4] == "cd '/repo/.worktrees/a b' || exit 1"
        assert lines[5] == "exec claude --resume"

    def test_overlay_only_changed_values(self):
        base = {"PATH": "/bin", "HOME": "/h"}
        env = {"PATH": "/bin", "HOME": "/other", "NEW": "1"}
        assert environment_overlay(env, base) == {"HOME": "/other", "NEW": "1"}


class TestBackgroundLauncher:
    """Test launching into new terminal windows."""

    def _terminal(self, ok=True, error=None):
        terminal = MagicMock()
        terminal.launch_script.return_value = (ok, error)
        return terminal

    def test_writes_script_and_opens_terminal(self, temp_dir):
        terminal = self._terminal()
        launcher = BackgroundLauncher([sys.executable], terminal_launcher=terminal)

        outcome = launcher.launch({**os.environ, "ANTHROPIC_MODEL": "bg-model"}, str(temp_dir), args=["--version"])

        assert outcome.ok is True
        script_path, cwd = terminal.launch_script.call_args[0]
        assert cwd == str(temp_dir)
        assert Path(script_path).parent == launch_temp_dir(str(temp_dir))
        assert Path(script_path).name.startswith("launch-")
        content = Path(script_path).read_text()
        assert "export ANTHROPIC_MODEL=bg-model" in content
        assert content.rstrip().endswith("--version")

    def test_failure_removes_script(self, temp_dir):
        terminal = self._terminal(False, "No supported terminal emulator found")
        launcher = BackgroundLauncher([sys.executable], terminal_launcher=terminal)

        outcome = launcher.launch(dict(os.environ), str(temp_dir))

        assert outcome.ok is False
        assert outcome.reason is LaunchFailureReason.SPAWN_FAILED
        assert outcome.message == "No supported terminal emulator found"
        script_path = terminal.launch_script.call_args[0][0]
        assert not os.path.exists(script_path)

    def test_not_found(self, temp_dir):
        terminal = self._terminal()
        launcher = BackgroundLauncher(["definitely-not-installed-cli"], terminal_launcher=terminal)

        outcome = launcher.launch({"PATH": str(temp_dir)}, str(temp_dir))

        assert outcome.reason is LaunchFailureReason.NOT_FOUND
        terminal.launch_script.assert_not_called()

    def test_launch_many_reports_each(self, temp_dir):
        terminal = MagicMock()
        terminal.launch_script.side_effect = [(True, None), (False, "boom"), (True, None)]
        launcher = BackgroundLauncher([sys.executable], terminal_launcher=terminal)
        env = dict(os.environ)

        report = launcher.launch_many([("a", env, str(temp_dir)), ("b", env, str(temp_dir)), ("c", env, str(temp_dir))])

        assert report.succeeded == ["a", "c"]
        assert [label for label, _ in report.failed] == ["b"]
        assert report.all_ok is False
