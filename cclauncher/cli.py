"""Command-line interface for cclauncher"""

import os
import sys
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm, Prompt
from rich.table import Table

from cclauncher.args import parse_args
from cclauncher.config import Config, load_app_config
from cclauncher.constants import MODEL_COLUMNS, WORKTREE_COLUMNS
from cclauncher.core import Launcher
from cclauncher.exceptions import CCLauncherError
from cclauncher.formatters import format_model_info, format_model_row, format_worktree_row
from cclauncher.logging_config import get_logger, setup_logging
from cclauncher.models.launch import LaunchFailureReason
from cclauncher.models.model import ModelConfig
from cclauncher.models.script import ScriptMode
from cclauncher.services.git.enrichment import get_default_branch
from cclauncher.services.launcher import prepare_environment
from cclauncher.services.model_store import ModelStore
from cclauncher.services.project_store import ProjectStore
from cclauncher.services.shell import EXIT_NOT_FOUND
from cclauncher.services.terminal_launcher import detect_terminals
from cclauncher.utils import get_threading_info

console = Console()
logger = get_logger(__name__)


def _require_repo_root(launcher: Launcher) -> str:
    repo_root = launcher.get_repo_root()
    if not repo_root:
        raise CCLauncherError("Not inside a git repository")
    return repo_root


def _print_table(columns, rows) -> None:
    table = Table(show_header=True, header_style="bold")
    for col in columns:
        table.add_column(col.label, min_width=min(col.width, 12) or None, overflow="fold")
    for row in rows:
        table.add_row(*[escape(row[col.key]) for col in columns])
    console.print(table)


def run_setup_if_configured(
    launcher: Launcher,
    repo_root: str,
    worktree_path: str,
    external: bool = False,
) -> bool:
    """Run the project's post-worktree script in a new worktree.

    Returns:
        False if the script failed and the user chose not to continue
    """
    settings = ProjectStore().get(repo_root)
    if not settings.post_worktree_script:
        return True

    mode = ScriptMode.EXTERNAL if external or settings.spawn_in_terminal else ScriptMode.INLINE
    console.print(f"[cyan]Running setup script:[/cyan] {escape(settings.post_worktree_script)}")
    if mode is ScriptMode.EXTERNAL:
        console.print("[dim]Waiting for the setup terminal window to finish...[/dim]")

    ok = launcher.run_setup_script(
        settings.post_worktree_script,
        repo_root,
        worktree_path,
        mode,
        on_output=lambda line: console.print(line, markup=False, highlight=False),
        terminal_app=settings.terminal_app,
    )
    if ok:
        console.print("[green]Setup completed[/green]")
        return True

    console.print("[red]Setup script failed[/red]")
    if not sys.stdin.isatty():
        return False
    return Confirm.ask("Launch Claude Code anyway?", default=False)


def launch_model(launcher: Launcher, model: ModelConfig, cwd: str, background: bool = False) -> int:
    """Run Claude Code and return its exit code.

    With ``background`` it starts in a new terminal window and 0 means it was started.
    """
    env = prepare_environment(model)
    if background:
        outcome = launcher.launch_background(env, cwd)
        if not outcome.ok:
            console.print(f"[red]{escape(outcome.message or 'Launch failed')}[/red]")
            return 1
        console.print(f"[green]Started {escape(model.name)} in a new terminal[/green] {escape(cwd)}")
        return 0

    logger.info(f"Launching Claude Code with {model.name} in {cwd}")
    outcome = launcher.launch_interactive(env, cwd)

    if outcome.ok:
        return outcome.exit_code
    console.print(f"[red]{escape(outcome.message or 'Launch failed')}[/red]")
    if outcome.reason is LaunchFailureReason.NOT_FOUND:
        return EXIT_NOT_FOUND
    return 1


def prepare_and_launch(
    launcher: Launcher,
    model: ModelConfig,
    worktree: Optional[str] = None,
    new_worktree: bool = False,
    suffix: Optional[str] = None,
    run_setup: bool = True,
    external_setup: bool = False,
    background: bool = False,
) -> int:
    """Pick the working directory, run setup for new worktrees, then launch."""
    if new_worktree:
        repo_root = _require_repo_root(launcher)
        cwd = launcher.create_worktree(repo_root, suffix)
        console.print(f"[green]Created worktree[/green] {escape(cwd)}")
        if run_setup and not run_setup_if_configured(launcher, repo_root, cwd, external_setup):
            return 1
    elif worktree:
        cwd = os.path.abspath(worktree)
        if not os.path.isdir(cwd):
            raise CCLauncherError(f"Worktree directory does not exist: {cwd}")
    else:
        cwd = os.getcwd()

    return launch_model(launcher, model, cwd, background)


def cmd_list(launcher: Launcher, args) -> int:
    models = ModelStore().list_models()
    if not models:
        console.print("[yellow]No models configured[/yellow]")
        return 0
    _print_table(MODEL_COLUMNS, [format_model_row(m) for m in models])
    return 0


def cmd_worktrees(launcher: Launcher, args) -> int:
    repo_root = _require_repo_root(launcher)
    with console.status("Inspecting worktrees..."):
        worktrees = launcher.list_worktrees(repo_root)
    _print_table(WORKTREE_COLUMNS, [format_worktree_row(w) for w in worktrees])
    return 0


def cmd_launch(launcher: Launcher, args) -> int:
    store = ModelStore()
    model = store.get_model(args.model) if args.model else store.get_default_model()
    return prepare_and_launch(
        launcher,
        model,
        worktree=args.worktree,
        new_worktree=args.new_worktree,
        suffix=args.name,
        run_setup=not args.no_setup,
        external_setup=args.external_setup,
        background=args.background,
    )


def cmd_parallel(launcher: Launcher, args) -> int:
    store = ModelStore()
    models = [store.get_model(name) for name in args.models]
    repo_root = _require_repo_root(launcher)

    report = launcher.launch_parallel([(m.name, prepare_environment(m)) for m in models], repo_root)
    for label, outcome in report.results:
        if outcome.ok:
            console.print(f"[green]✓[/green] {escape(label)}")
        else:
            console.print(f"[red]✗[/red] {escape(label)}: {escape(outcome.message or '')}")
    return 0 if report.all_ok else 1


def read_token(raw: str) -> str:
    """The token argument, or a token pasted on stdin for "-"."""
    if raw != "-":
        return raw
    if sys.stdin.isatty():
        return Prompt.ask("Auth token", password=True, console=console).strip()
    return sys.stdin.readline().strip()


def cmd_add(launcher: Launcher, args) -> int:
    token = read_token(args.token)
    if not token:
        console.print("[red]No auth token given[/red]")
        return 1

    value = {
        "ANTHROPIC_BASE_URL": args.base_url,
        "ANTHROPIC_AUTH_TOKEN": token,
        "ANTHROPIC_MODEL": args.model,
        "ANTHROPIC_SMALL_FAST_MODEL": args.small_fast_model or args.model,
    }
    if args.timeout_ms is not None:
        value["API_TIMEOUT_MS"] = args.timeout_ms
    if args.disable_nonessential_traffic:
        value["DISABLE_NONESSENTIAL_TRAFFIC"] = True

    try:
        model = ModelConfig(name=args.name, value=value, description=args.description)
    except ValueError as e:
        console.print(f"[red]Invalid model: {escape(str(e))}[/red]")
        return 1

    store = ModelStore()
    store.save_model(model)
    if args.default:
        store.set_default(model.name)
    console.print("[green]Added model[/green]")
    console.print(escape(format_model_info(store.get_model(model.name))), highlight=False)
    return 0


def cmd_delete(launcher: Launcher, args) -> int:
    ModelStore().delete_model(args.model)
    console.print(f"Deleted model {escape(args.model)}")
    return 0


def cmd_default(launcher: Launcher, args) -> int:
    ModelStore().set_default(args.model)
    console.print(f"Default model is now {escape(args.model)}")
    return 0


def cmd_project(launcher: Launcher, args) -> int:
    repo_root = _require_repo_root(launcher)
    store = ProjectStore()
    if args.clear:
        store.remove(repo_root)
        console.print(f"Cleared settings for {escape(repo_root)}")
        return 0
    settings = store.get(repo_root)

    changed = False
    if args.setup_script is not None:
        settings.post_worktree_script = args.setup_script.strip() or None
        changed = True
    if args.spawn_in_terminal is not None:
        settings.spawn_in_terminal = args.spawn_in_terminal == "on"
        changed = True
    if args.terminal_app is not None:
        settings.terminal_app = args.terminal_app or None
        changed = True
    if changed:
        store.save(repo_root, settings)

    console.print(f"[bold]{escape(repo_root)}[/bold]")
    console.print(f"  Setup script: {escape(settings.post_worktree_script or '(none)')}")
    console.print(f"  Run in terminal: {'on' if settings.spawn_in_terminal else 'off'}")
    console.print(f"  Terminal app: {escape(settings.terminal_app or '(default)')}")
    available = detect_terminals()
    console.print(f"  Available terminals: {escape(', '.join(available) or '(none found)')}")
    return 0


def cmd_merge(launcher: Launcher, args) -> int:
    repo_root = _require_repo_root(launcher)
    target_path = os.path.realpath(args.path)
    worktree = next(
        (w for w in launcher.list_worktrees(repo_root) if os.path.realpath(w.path) == target_path),
        None,
    )
    if worktree is None:
        raise CCLauncherError(f"No worktree at {args.path}")
    if worktree.is_main:
        raise CCLauncherError("Cannot merge the main worktree into itself")

    source = worktree.branch or worktree.head
    target = args.into or get_default_branch(repo_root)
    ok, error = launcher.worktree_service(repo_root).merge_into_default(source, target)
    if not ok:
        console.print(f"[red]{escape(error or 'Merge failed')}[/red]")
        return 1
    console.print(f"[green]Merged {escape(worktree.display_name)} into {escape(target)}[/green]")
    return 0


def cmd_remove(launcher: Launcher, args) -> int:
    repo_root = _require_repo_root(launcher)
    ok, error = launcher.worktree_service(repo_root).remove_worktree(args.path, force=args.force)
    if not ok:
        console.print(f"[red]{escape(error or 'Could not remove worktree')}[/red]")
        return 1
    console.print(f"Removed worktree {escape(args.path)}")
    return 0


def cmd_prune(launcher: Launcher, args) -> int:
    repo_root = _require_repo_root(launcher)
    ok, error = launcher.worktree_service(repo_root).prune_worktrees()
    if not ok:
        console.print(f"[red]{escape(error or 'Could not prune worktrees')}[/red]")
        return 1
    console.print("Pruned worktree metadata")
    return 0


COMMANDS = {
    "list": cmd_list,
    "worktrees": cmd_worktrees,
    "launch": cmd_launch,
    "parallel": cmd_parallel,
    "add": cmd_add,
    "delete": cmd_delete,
    "default": cmd_default,
    "project": cmd_project,
    "merge": cmd_merge,
    "remove": cmd_remove,
    "prune": cmd_prune,
}


def run_picker(launcher: Launcher) -> int:
    """Show the picker, then launch what was picked once it has exited."""
    from cclauncher.tui import LauncherApp

    repo_root = launcher.get_repo_root()
    app = LauncherApp(launcher, ModelStore(), repo_root)
    request = app.run()
    if request is None:
        return 0

    # The picker is gone, the terminal belongs to the child from here on
    model = ModelStore().get_model(request.model_name)
    return prepare_and_launch(
        launcher,
        model,
        worktree=request.worktree_path,
        new_worktree=request.new_worktree,
    )


def main(argv=None):
    """Main entry point for the application."""
    parsed_args = None
    try:
        parsed_args = parse_args(argv)

        app_config = load_app_config()
        debug = parsed_args.debug or app_config.enable_debug_logging
        use_picker = parsed_args.command is None and sys.stdin.isatty() and sys.stdout.isatty()

        setup_logging(verbose=parsed_args.verbose, debug=debug, tui_mode=use_picker)

        config = Config(
            verbose=parsed_args.verbose,
            debug=debug,
            sequential=parsed_args.sequential,
            workers=parsed_args.workers,
        )

        if debug and not use_picker:
            console.print("[yellow]Debug mode enabled[/yellow]")
            console.print("[yellow]Configuration:[/yellow]")
            for key, value in config.to_dict().items():
                console.print(f"  {key}: {escape(str(value))}")

            threading_info = get_threading_info()
            console.print("[yellow]Threading:[/yellow]")
            console.print(f"  Python version: {threading_info['python_version']}")
            console.print(f"  CPU count: {threading_info['cpu_count']}")
            console.print(f"  Optimal workers: {threading_info['optimal_workers']}")
            console.print(f"  Free-threading enabled: {threading_info['free_threading']}")

        launcher = Launcher(config)

        if use_picker:
            return run_picker(launcher)

        command = parsed_args.command or "list"
        return COMMANDS[command](launcher, parsed_args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return 1
    except CCLauncherError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1
    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        if parsed_args is not None and parsed_args.debug:
            console.print_exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())
