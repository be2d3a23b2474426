"""Textual TUI for gitcast."""

import logging
import shlex
import subprocess
import threading
from collections.abc import Callable
from pathlib import Path

from rich.text import Text
from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical, VerticalScroll
from textual.css.query import NoMatches
from textual.screen import ModalScreen
from textual.widgets import DataTable, Footer, Input, OptionList, Static

from gitcast import commands
from gitcast.config import Settings
from gitcast.dispatch import Dispatcher
from gitcast.effects import (
    ERROR,
    WARN,
    AskText,
    Choose,
    Confirm,
    Effect,
    OpenPath,
    Outcome,
    ShowDetail,
    ShowOutput,
)
from gitcast.models import ComposedView, EventKind, JobResult, ViewModel
from gitcast.progress import ProgressIndicator
from gitcast.render import line_text, view_text
from gitcast.runner import CommandRecorder, JobRunner, ProcessRunner
from gitcast.session import Session

logger = logging.getLogger(__name__)

COMMAND_BAR = (
    "Enter: open  |  Tab: stage/unstage  |  S-Tab: all  |  Bksp: discard/reset  |  "
    "c: commit  |  s: switch  |  p/P: pull/push  |  ?: help  |  q: quit"
)
HELP_TEXT = """Line keys
  Enter      open diff, commit or branch detail
  Tab        stage / unstage file, switch branch on the Head line
  Shift+Tab  stage / unstage every file in the section
  Backspace  discard, unstage, delete or reset (asks first)
  o          open file in editor

Repository keys
  c  commit staged changes       C  amend HEAD
  f  fixup a recent commit       s  switch branch
  n  new branch                  t  choose tracking branch
  p  pull --rebase               P  push
  F  force push (with lease)     m  rebase onto tracking branch
  M  squash-merge into tracking  x  cancel running jobs
  r  refresh                     q  quit
"""
LEVEL_STYLES = {WARN: "yellow", ERROR: "bold red"}


CSS = """
Screen {
    layout: vertical;
}

#command_bar {
    padding: 0 1;
    height: 1;
    color: $text-muted;
}

#status_line {
    padding: 0 1;
    height: 1;
}

#progress_line {
    padding: 0 1;
    height: 1;
    color: $accent;
}

#dashboard {
    height: 1fr;
}

.modal {
    align: center middle;
}

.modal-body {
    width: 72;
    max-width: 90;
    height: auto;
    max-height: 80%;
    border: thick $primary;
    background: $surface;
    padding: 1 2;
}

.modal-wide {
    width: 90%;
    max-width: 160;
    height: 90%;
}

.modal-title {
    margin-bottom: 1;
    text-style: bold;
}

.modal-hint {
    margin-top: 1;
    color: $text-muted;
}

.modal-input {
    margin-top: 1;
}

.modal-list {
    height: auto;
    max-height: 20;
}

.modal-scroll {
    height: 1fr;
}
"""


class ConfirmScreen(ModalScreen[bool]):
    """Simple yes/no modal."""

    BINDINGS = [
        Binding("y", "yes", "Yes"),
        Binding("n", "no", "No"),
        Binding("escape", "no", "No"),
    ]

    def __init__(self, prompt: str) -> None:
        super().__init__()
        self.prompt = prompt

    def compose(self) -> ComposeResult:
        with Vertical(classes="modal"):
            with Vertical(classes="modal-body"):
                yield Static(self.prompt, classes="modal-title")
                yield Static("Press y to confirm, n or Esc to cancel.", classes="modal-hint")

    def action_yes(self) -> None:
        self.dismiss(True)

    def action_no(self) -> None:
        self.dismiss(False)


class TextInputScreen(ModalScreen[str | None]):
    """Text input modal, optionally pre-filled."""

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(self, prompt: str, default: str = "") -> None:
        super().__init__()
        self.prompt = prompt
        self.default = default

    def compose(self) -> ComposeResult:
        with Vertical(classes="modal"):
            with Vertical(classes="modal-body"):
                yield Static(self.prompt, classes="modal-title")
                yield Input(
                    value=self.default,
                    placeholder="Type and press Enter",
                    classes="modal-input",
                    id="value_input",
                )
                yield Static("Esc to cancel.", classes="modal-hint")

    def on_mount(self) -> None:
        self.query_one("#value_input", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.dismiss(event.value)

    def action_cancel(self) -> None:
        self.dismiss(None)


class PickerScreen(ModalScreen[int | None]):
    """Pick one entry from a list; dismisses with its index."""

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(self, prompt: str, options: tuple[str, ...]) -> None:
        super().__init__()
        self.prompt = prompt
        self.options = options

    def compose(self) -> ComposeResult:
        with Vertical(classes="modal"):
            with Vertical(classes="modal-body"):
                yield Static(self.prompt, classes="modal-title")
                yield OptionList(*self.options, classes="modal-list", id="options")
                yield Static("Enter to select, Esc to cancel.", classes="modal-hint")

    def on_mount(self) -> None:
        self.query_one("#options", OptionList).focus()

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        self.dismiss(event.option_index)

    def action_cancel(self) -> None:
        self.dismiss(None)


class OutputScreen(ModalScreen[None]):
    """Read-only command output such as a diff."""

    BINDINGS = [
        Binding("escape", "close", "Close"),
        Binding("q", "close", "Close"),
    ]

    def __init__(self, title: str, body: Text) -> None:
        super().__init__()
        self.title_text = title
        self.body = body

    def compose(self) -> ComposeResult:
        with Vertical(classes="modal"):
            with Vertical(classes="modal-body modal-wide"):
                yield Static(self.title_text, classes="modal-title")
                with VerticalScroll(classes="modal-scroll"):
                    yield Static(self.body)
                yield Static("q or Esc to close.", classes="modal-hint")

    def action_close(self) -> None:
        self.dismiss(None)


class DetailScreen(ModalScreen[None]):
    """Branch or commit detail with its own line actions."""

    BINDINGS = [
        Binding("escape", "close", "Close"),
        Binding("q", "close", "Close"),
        Binding("enter", "activate", "Open"),
        Binding("o", "open_file", "Open file"),
    ]

    def __init__(self, title: str, view: ViewModel, styles: dict[str, str]) -> None:
        super().__init__()
        self.title_text = title
        self.view = view
        self.line_styles = styles

    def compose(self) -> ComposeResult:
        with Vertical(classes="modal"):
            with Vertical(classes="modal-body modal-wide"):
                yield Static(self.title_text, classes="modal-title")
                yield DataTable(id="detail", cursor_type="row", show_header=False)
                yield Static("Enter: open  |  o: open file  |  q/Esc: close", classes="modal-hint")

    def on_mount(self) -> None:
        table = self.query_one("#detail", DataTable)
        table.add_column("line", key="line")
        for number in range(1, len(self.view.lines) + 1):
            table.add_row(view_text(self.view, number, self.line_styles), key=str(number))
        table.focus()

    def _dispatch(self, kind: EventKind) -> None:
        app = self.app
        if not isinstance(app, DashboardApp):
            return
        line = self.query_one("#detail", DataTable).cursor_row + 1
        app.run_effect(app.dispatcher.dispatch_local(self.view, kind, line))

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        self._dispatch(EventKind.ACTIVATE)

    def action_activate(self) -> None:
        self._dispatch(EventKind.ACTIVATE)

    def action_open_file(self) -> None:
        self._dispatch(EventKind.OPEN)

    def action_close(self) -> None:
        self.dismiss(None)


class DashboardTable(DataTable):
    """Dashboard rows; Tab cycles the line instead of moving focus."""

    BINDINGS = [
        Binding("tab", "app.cycle", "Stage/Unstage"),
        Binding("shift+tab", "app.bulk_cycle", "All"),
    ]


class ProgressSlots:
    """Notification slots rendered on the progress line."""

    def __init__(self, app: "DashboardApp") -> None:
        self.app = app
        self.slots: dict[str, str] = {}

    def notify(self, slot: str, message: str) -> None:
        self.slots[slot] = message
        self._render()

    def clear(self, slot: str) -> None:
        self.slots.pop(slot, None)
        self._render()

    def _render(self) -> None:
        try:
            line = self.app.query_one("#progress_line", Static)
        except NoMatches:
            return
        line.update("  ".join(self.slots.values()))


class DashboardApp(App[None]):
    """Main textual application."""

    CSS = CSS
    BINDINGS = [
        Binding("q", "quit_dashboard", "Quit"),
        Binding("enter", "activate", "Open"),
        Binding("backspace", "destructive", "Discard"),
        Binding("o", "open_file", "Edit", show=False),
        Binding("c", "commit", "Commit"),
        Binding("shift+c", "amend", "Amend", show=False),
        Binding("f", "fixup", "Fixup", show=False),
        Binding("s", "switch_branch", "Switch"),
        Binding("n", "new_branch", "New branch", show=False),
        Binding("t", "tracking", "Tracking", show=False),
        Binding("p", "pull", "Pull"),
        Binding("shift+p", "push", "Push"),
        Binding("shift+f", "force_push", "Force push", show=False),
        Binding("m", "rebase", "Rebase", show=False),
        Binding("shift+m", "squash_merge", "Squash", show=False),
        Binding("x", "cancel_jobs", "Cancel jobs", show=False),
        Binding("r", "refresh", "Refresh"),
        Binding("question_mark", "help", "Help"),
    ]

    def __init__(
        self, repo_root: Path, settings: Settings, recorder: CommandRecorder | None = None
    ) -> None:
        super().__init__()
        self.progress_slots = ProgressSlots(self)
        self.jobs = JobRunner(
            self._schedule,
            ProgressIndicator(self._start_interval, self.progress_slots),
            recorder=recorder,
            cwd=repo_root,
        )
        self.session = Session(repo_root, settings, ProcessRunner(repo_root, recorder), self.jobs)
        self.dispatcher = Dispatcher(self.session, notify=self._job_finished)
        self._shown: ComposedView | None = None
        self._loop_thread: int | None = None

    def compose(self) -> ComposeResult:
        yield Static(COMMAND_BAR, id="command_bar")
        yield Static("", id="status_line")
        yield Static("", id="progress_line")
        yield DashboardTable(id="dashboard", cursor_type="row", show_header=False)
        yield Footer()

    def on_mount(self) -> None:
        self._loop_thread = threading.get_ident()
        table = self.query_one("#dashboard", DataTable)
        table.add_column("line", key="line")
        self.session.refresh()
        self._populate_table()
        table.focus()

    def _schedule(self, callback: Callable[[], None]) -> None:
        if not self.is_running:
            return
        if threading.get_ident() == self._loop_thread:
            self.call_later(callback)
        else:
            self.call_from_thread(callback)

    def _start_interval(self, seconds: float, callback: Callable[[], None]) -> Callable[[], None]:
        return self.set_interval(seconds, callback).stop

    def _set_status(self, message: str | None, level: str = "info") -> None:
        self.query_one("#status_line", Static).update(
            Text(message or "", style=LEVEL_STYLES.get(level, ""))
        )

    def _populate_table(self) -> None:
        view = self.session.view
        if view is None:
            return
        table = self.query_one("#dashboard", DataTable)
        row = table.cursor_row
        styles = self.session.styles()
        annotation_styles = self.session.annotation_styles()

        table.clear(columns=False)
        for number in range(1, len(view.lines) + 1):
            table.add_row(line_text(view, number, styles, annotation_styles), key=str(number))
        self._shown = view
        if view.lines:
            table.move_cursor(row=max(0, min(row, len(view.lines) - 1)))

    def _sync(self) -> None:
        if self.session.view is not self._shown:
            self._populate_table()

    def _dispatch(self, kind: EventKind) -> None:
        line = self.query_one("#dashboard", DataTable).cursor_row + 1
        effect = self.dispatcher.dispatch(kind, line)
        self._sync()
        self.run_effect(effect)

    def _command(self, command: Callable[[], Effect]) -> None:
        self.run_effect(self.dispatcher.run(command))
        self._sync()

    def _job_finished(self, outcome: Outcome) -> None:
        self._sync()
        self._report(outcome)

    def _report(self, outcome: Outcome) -> None:
        if outcome.message:
            self._set_status(outcome.message, outcome.level)

    @work(group="effects")
    async def run_effect(self, effect: Effect | None) -> None:
        """Interpret an effect, following continuations until it settles."""
        while effect is not None:
            if isinstance(effect, Outcome):
                self._report(effect)
                break
            if isinstance(effect, Confirm):
                if not await self.push_screen_wait(ConfirmScreen(effect.prompt)):
                    self._set_status("Cancelled.")
                    break
                effect = self.dispatcher.follow(effect.on_confirm)
            elif isinstance(effect, Choose):
                index = await self.push_screen_wait(PickerScreen(effect.prompt, effect.options))
                if index is None:
                    self._set_status("Cancelled.")
                    break
                effect = self.dispatcher.follow(effect.on_choose, index)
            elif isinstance(effect, AskText):
                value = await self.push_screen_wait(TextInputScreen(effect.prompt, effect.default))
                if value is None:
                    self._set_status("Cancelled.")
                    break
                effect = self.dispatcher.follow(effect.on_submit, value)
            elif isinstance(effect, ShowOutput):
                self._show_output(effect)
                break
            elif isinstance(effect, OpenPath):
                self._open_path(effect.path)
                break
            elif isinstance(effect, ShowDetail):
                self.push_screen(DetailScreen(effect.title, effect.view, self.session.styles()))
                break
            else:
                break
            self._sync()
        self._sync()

    def _show_output(self, effect: ShowOutput) -> None:
        if effect.warning:
            self._set_status(effect.warning, WARN)

        def done(result: JobResult) -> None:
            body = result.stdout or result.stderr or "(no output)"
            self.push_screen(OutputScreen(effect.title, Text.from_ansi(body)))

        self.jobs.run_async(effect.command, on_exit=done, show_progress=False)

    def _open_path(self, path: Path) -> None:
        editor = shlex.split(self.session.settings.editor_command())
        with self.suspend():
            subprocess.run([*editor, str(path)], check=False)
        self.session.cache.invalidate()
        self.session.refresh()
        self._sync()

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        """Activate the line when DataTable handles Enter."""
        if event.data_table.id != "dashboard":
            return
        self.action_activate()

    def action_activate(self) -> None:
        self._dispatch(EventKind.ACTIVATE)

    def action_cycle(self) -> None:
        self._dispatch(EventKind.CYCLE)

    def action_bulk_cycle(self) -> None:
        self._dispatch(EventKind.BULK_CYCLE)

    def action_destructive(self) -> None:
        self._dispatch(EventKind.DESTRUCTIVE)

    def action_open_file(self) -> None:
        self._dispatch(EventKind.OPEN)

    def action_commit(self) -> None:
        self._command(lambda: commands.commit(self.session.git, self.session.snapshot()))

    def action_amend(self) -> None:
        self._command(lambda: commands.amend(self.session.git, self.session.snapshot()))

    def action_fixup(self) -> None:
        self._command(lambda: commands.fixup(self.session.git, self.session.snapshot()))

    def action_switch_branch(self) -> None:
        self._command(lambda: commands.switch_branch(self.session.git))

    def action_new_branch(self) -> None:
        self._command(lambda: commands.create_branch(self.session.git))

    def action_tracking(self) -> None:
        self._command(lambda: commands.pick_tracking_branch(self.session.git))

    def action_pull(self) -> None:
        self._command(lambda: commands.pull(self.session.git))

    def action_push(self) -> None:
        self._command(lambda: commands.push(self.session.git))

    def action_force_push(self) -> None:
        self._command(lambda: commands.push(self.session.git, force=True))

    def action_rebase(self) -> None:
        self._command(lambda: commands.rebase(self.session.git))

    def action_squash_merge(self) -> None:
        self._command(lambda: commands.squash_merge(self.session.git))

    def action_cancel_jobs(self) -> None:
        cancelled = self.jobs.cancel_all()
        self._set_status(f"Cancelled {cancelled} job(s)." if cancelled else "No running jobs.")

    def action_refresh(self) -> None:
        self.session.cache.invalidate()
        self.session.refresh()
        self._populate_table()
        self._set_status("Refreshed.")

    def action_help(self) -> None:
        self.push_screen(OutputScreen("gitcast keys", Text(HELP_TEXT)))

    def action_quit_dashboard(self) -> None:
        self.jobs.cancel_all()
        self.exit(None)


def run_tui(repo_root: Path, settings: Settings, recorder: CommandRecorder | None = None) -> None:
    """Run the textual dashboard."""
    logger.debug("opening tui for %s", repo_root)
    DashboardApp(repo_root, settings, recorder).run()
