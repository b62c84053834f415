"""Interactive model and worktree picker using Textual."""

import asyncio
from dataclasses import dataclass
from typing import List, Optional

from rich.text import Text
from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, DataTable, Footer, Header, Static

from .__version__ import __version__
from .constants import MODEL_COLUMNS, WORKTREE_COLUMNS
from .exceptions import CCLauncherError
from .formatters import format_model_row, format_worktree_row
from .logging_config import get_logger
from .models.model import ModelConfig
from .models.worktree import WorktreeRecord

logger = get_logger(__name__)


@dataclass(frozen=True)
class LaunchRequest:
    """What the user picked; carried out after the picker has exited."""

    model_name: str
    worktree_path: Optional[str] = None  # None = current directory
    new_worktree: bool = False


class InfoScreen(ModalScreen):
    """Modal info display dialog for errors."""

    DEFAULT_CSS = """
    InfoScreen {
        align: center middle;
    }

    #info-dialog {
        width: 80%;
        height: auto;
        border: thick $background 80%;
        background: $surface;
        padding: 1 2;
    }

    #info-content {
        width: 100%;
        height: auto;
        padding: 1 0;
    }

    #info-button-container {
        width: 100%;
        height: auto;
        align: center middle;
        padding: 1 0;
    }
    """

    def __init__(self, info: str):
        super().__init__()
        self.info = info

    def compose(self) -> ComposeResult:
        with Vertical(id="info-dialog"):
            yield Static(self.info, id="info-content")
            with Container(id="info-button-container"):
                yield Button("Close", variant="primary", id="close")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        """Handle button press."""
        self.dismiss()


class LauncherApp(App[Optional[LaunchRequest]]):
    """Pick a model and a worktree, then hand over to Claude Code."""

    TITLE = "cclauncher"
    SUB_TITLE = f"v{__version__}"

    CSS = """
    DataTable {
        height: 1fr;
    }

    #model-table {
        max-height: 40%;
    }

    .section-title {
        padding: 0 1;
        text-style: bold;
    }

    #status-bar {
        dock: bottom;
        height: 1;
        padding: 0 1;
        background: $panel;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("enter", "launch", "Launch", priority=True),
        Binding("n", "new_worktree", "New Worktree"),
        Binding("r", "refresh", "Refresh"),
    ]

    def __init__(self, launcher, model_store, repo_root: Optional[str]):
        super().__init__()
        self.launcher = launcher
        self.model_store = model_store
        self.repo_root = repo_root
        self.models: List[ModelConfig] = []
        self.worktrees: List[WorktreeRecord] = []

    def compose(self) -> ComposeResult:
        """Create child widgets."""
        yield Header(show_clock=False, icon="")
        yield Static("Models", classes="section-title")
        yield DataTable(id="model-table", cursor_type="row", zebra_stripes=True)
        yield Static("Worktrees", classes="section-title")
        yield DataTable(id="worktree-table", cursor_type="row", zebra_stripes=True)
        yield Static(id="status-bar")
        yield Footer()

    def on_mount(self) -> None:
        """Set up the tables and start loading worktrees."""
        model_table = self.query_one("#model-table", DataTable)
        for col in MODEL_COLUMNS:
            model_table.add_column(col.label, width=None, key=col.key)

        worktree_table = self.query_one("#worktree-table", DataTable)
        for col in WORKTREE_COLUMNS:
            if col.key in ["changes", "mergeable"]:
                worktree_table.add_column(Text(col.label, justify="center"), width=None, key=col.key)
            else:
                worktree_table.add_column(col.label, width=None, key=col.key)

        self._load_models()
        model_table.focus()

        if self.repo_root:
            worktree_table.loading = True
            self.load_worktrees()
        else:
            self._set_status("Not inside a git repository, Claude Code will run in the current directory")

    def _set_status(self, message: str) -> None:
        self.query_one("#status-bar", Static).update(message)

    def _load_models(self) -> None:
        table = self.query_one("#model-table", DataTable)
        table.clear()
        try:
            self.models = self.model_store.list_models()
        except CCLauncherError as e:
            logger.error(f"Error loading models: {e}")
            self.push_screen(InfoScreen(f"Error loading models:\n\n{e}"))
            self.models = []

        for model in self.models:
            row = format_model_row(model)
            table.add_row(*[row[col.key] for col in MODEL_COLUMNS], key=model.name)

        # Start on the default model
        for index, model in enumerate(self.models):
            if model.is_default:
                table.move_cursor(row=index)
                break

    def _populate_worktrees(self) -> None:
        table = self.query_one("#worktree-table", DataTable)
        table.clear()
        for worktree in self.worktrees:
            row = format_worktree_row(worktree)
            cells = []
            for col in WORKTREE_COLUMNS:
                if col.key in ["changes", "mergeable"]:
                    cells.append(Text(row[col.key], justify="center"))
                else:
                    cells.append(row[col.key])
            table.add_row(*cells, key=worktree.path)
        self._set_status(f"{len(self.worktrees)} worktree(s) in {self.repo_root}")

    @work(exclusive=True, thread=False)
    async def load_worktrees(self) -> None:
        """Discover and inspect worktrees off the UI thread."""
        table = self.query_one("#worktree-table", DataTable)
        try:
            self.worktrees = await asyncio.to_thread(self.launcher.list_worktrees, self.repo_root)
            self._populate_worktrees()
        except Exception as e:
            logger.error(f"Error loading worktrees: {e}", exc_info=True)
            self.push_screen(
                InfoScreen(f"Error loading worktrees:\n\n{e}\n\nCheck the logs for more details.")
            )
        finally:
            table.loading = False

    def _selected_model(self) -> Optional[ModelConfig]:
        table = self.query_one("#model-table", DataTable)
        if not self.models or table.cursor_row is None:
            return None
        return self.models[min(table.cursor_row, len(self.models) - 1)]

    def _selected_worktree(self) -> Optional[WorktreeRecord]:
        table = self.query_one("#worktree-table", DataTable)
        if not self.worktrees or table.cursor_row is None:
            return None
        return self.worktrees[min(table.cursor_row, len(self.worktrees) - 1)]

    def action_launch(self) -> None:
        """Launch the highlighted model in the highlighted worktree."""
        model = self._selected_model()
        if model is None:
            self.notify("No model selected", severity="warning")
            return
        worktree = self._selected_worktree()
        self.exit(LaunchRequest(model.name, worktree.path if worktree else None))

    def action_new_worktree(self) -> None:
        """Launch the highlighted model in a freshly created worktree."""
        model = self._selected_model()
        if model is None:
            self.notify("No model selected", severity="warning")
            return
        if not self.repo_root:
            self.notify("Not inside a git repository", severity="error")
            return
        self.exit(LaunchRequest(model.name, new_worktree=True))

    def action_refresh(self) -> None:
        """Reload models and worktrees."""
        self._load_models()
        if self.repo_root:
            self.query_one("#worktree-table", DataTable).loading = True
            self.load_worktrees()

    async def action_quit(self) -> None:
        """Cancel running workers, then exit without launching."""
        self.workers.cancel_all()
        self.exit(None)
