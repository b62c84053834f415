"""Command-line argument parsing for cclauncher."""

import argparse

from cclauncher.__version__ import __version__


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cclauncher",
        description="Launch Claude Code against different model backends, in git worktrees",
        epilog="Run without a command on a terminal to open the interactive picker.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    parser.add_argument("--version", action="version", version=f"cclauncher {__version__}")
    parser.add_argument(
        "--debug", action="store_true", help="Show debug information for troubleshooting"
    )
    parser.add_argument(
        "--workers",
        type=int,
        metavar="N",
        help="Number of parallel workers for worktree inspection (default: auto-detect)",
    )
    parser.add_argument(
        "--sequential",
        action="store_true",
        help="Inspect worktrees sequentially (disable parallelism)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    subparsers.add_parser("list", help="List configured models")
    subparsers.add_parser("worktrees", help="List worktrees of the current repository")

    launch = subparsers.add_parser("launch", help="Run Claude Code with a model")
    launch.add_argument("model", nargs="?", help="Model name (default: the default model)")
    target = launch.add_mutually_exclusive_group()
    target.add_argument("--worktree", metavar="PATH", help="Run inside an existing worktree")
    target.add_argument(
        "--new-worktree", action="store_true", help="Create a new detached worktree and run there"
    )
    launch.add_argument(
        "--name", metavar="SUFFIX", help="Label for the new worktree directory (with --new-worktree)"
    )
    launch.add_argument(
        "--no-setup", action="store_true", help="Skip the project's post-worktree setup script"
    )
    launch.add_argument(
        "--external-setup",
        action="store_true",
        help="Run the setup script in a separate terminal window",
    )
    launch.add_argument(
        "--background",
        action="store_true",
        help="Start Claude Code in a new terminal window and return immediately",
    )

    parallel = subparsers.add_parser(
        "parallel", help="Start one Claude Code per model, each in a new worktree and terminal"
    )
    parallel.add_argument("models", nargs="+", metavar="MODEL", help="Model names")

    add = subparsers.add_parser("add", help="Add a model configuration")
    add.add_argument("--name", required=True, help="Model name")
    add.add_argument("--base-url", required=True, help="ANTHROPIC_BASE_URL")
    add.add_argument(
        "--token",
        required=True,
        help="ANTHROPIC_AUTH_TOKEN (use env:VAR to read it from VAR, - to read it from stdin)",
    )
    add.add_argument("--model", required=True, help="ANTHROPIC_MODEL")
    add.add_argument("--small-fast-model", help="ANTHROPIC_SMALL_FAST_MODEL (default: --model)")
    add.add_argument("--description", default="", help="Free-form description")
    add.add_argument("--timeout-ms", type=int, metavar="MS", help="API_TIMEOUT_MS")
    add.add_argument(
        "--disable-nonessential-traffic",
        action="store_true",
        help="Set CLAUDE_CODE_DISABLE_NONESSENTIAL_TRAFFIC for this model",
    )
    add.add_argument("--default", action="store_true", help="Make this the default model")

    remove_model = subparsers.add_parser("delete", help="Delete a model configuration")
    remove_model.add_argument("model", help="Model name")

    default = subparsers.add_parser("default", help="Set the default model")
    default.add_argument("model", help="Model name")

    project = subparsers.add_parser("project", help="Show or change settings for this repository")
    project.add_argument(
        "--setup-script",
        metavar="SCRIPT",
        help="Script file or shell command to run in new worktrees (empty string clears it)",
    )
    project.add_argument(
        "--spawn-in-terminal",
        choices=["on", "off"],
        help="Run the setup script in a separate terminal window",
    )
    project.add_argument("--terminal-app", metavar="APP", help="Terminal application to use")
    project.add_argument(
        "--clear", action="store_true", help="Forget all stored settings for this repository"
    )

    merge = subparsers.add_parser("merge", help="Merge a worktree into the main repository")
    merge.add_argument("path", help="Worktree path")
    merge.add_argument(
        "--into", metavar="BRANCH", help="Target branch (default: the repository default branch)"
    )

    remove = subparsers.add_parser("remove", help="Remove a worktree")
    remove.add_argument("path", help="Worktree path")
    remove.add_argument("--force", action="store_true", help="Remove even if dirty or locked")

    subparsers.add_parser("prune", help="Prune metadata of deleted worktrees")

    return parser


def parse_args(argv=None):
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)
