"""Staged, unstaged and untracked file sections.

The three sections share one builder; subclasses only pick the files, the
toggle direction and the destructive operation.
"""

import logging
import os
from collections.abc import Callable

from gitcast import diff
from gitcast.config import Settings
from gitcast.effects import Confirm, Effect, OpenPath, Outcome
from gitcast.git import Git
from gitcast.models import CommandResult, EventKind, FileChange, StatusSnapshot, ViewModel
from gitcast.sections import ANNOTATION_STYLE, add_empty, format_file_line

logger = logging.getLogger(__name__)


class StagingProvider:
    key = ""
    header = ""
    status_style = ""
    noun = "files"
    uses_snapshot = True
    annotation_style = ANNOTATION_STYLE

    def __init__(self, git: Git, settings: Settings) -> None:
        self.git = git
        self.settings = settings

    def styles(self) -> dict[str, str]:
        return {
            "gitcast.staged": "green",
            "gitcast.modified": "yellow",
            "gitcast.untracked": "red",
        }

    def files(self, snapshot: StatusSnapshot) -> tuple[FileChange, ...]:
        raise NotImplementedError

    def toggle_one(self, path: str) -> CommandResult:
        raise NotImplementedError

    def toggled_message(self, path: str) -> str:
        raise NotImplementedError

    def bulk_message(self, count: int) -> str:
        raise NotImplementedError

    def diff_args(self, path: str) -> list[str]:
        raise NotImplementedError

    def destroy(self, change: FileChange) -> Effect:
        raise NotImplementedError

    def build(self, snapshot: StatusSnapshot | None) -> ViewModel:
        files = self.files(snapshot or StatusSnapshot())
        view = ViewModel(header=self.header)
        view.bulk_cycle = lambda: self.toggle_all(files)
        if not files:
            add_empty(view, "(no files)")
            return view
        for change in files:
            text, ranges = format_file_line(change, self.status_style)
            line = view.add_line(text, ranges)
            view.on(EventKind.ACTIVATE, line, lambda change=change: self.show_diff(change))
            view.on(EventKind.CYCLE, line, lambda change=change: self.toggle(change))
            view.on(EventKind.DESTRUCTIVE, line, lambda change=change: self.destroy(change))
            view.on(EventKind.OPEN, line, lambda change=change: self.open(change))
        return view

    def show_diff(self, change: FileChange) -> Effect:
        return diff.show(change.path, self.diff_args(change.path), self.settings.diff_pager)

    def open(self, change: FileChange) -> Effect:
        target = self.git.root / change.path
        if not target.exists():
            return Outcome.warn(f"File no longer exists: {change.path}")
        return OpenPath(target)

    def toggle(self, change: FileChange) -> Outcome:
        result = self.toggle_one(change.path)
        if not result.ok:
            return Outcome.error(f"Failed to update {change.path}: {result.error_text}")
        return Outcome.done(self.toggled_message(change.path))

    def toggle_all(self, files: tuple[FileChange, ...]) -> Outcome:
        """Toggle every file of the section and report once."""
        if not files:
            return Outcome(message=f"No {self.noun} to process")
        succeeded = 0
        for change in files:
            result = self.toggle_one(change.path)
            if result.ok:
                succeeded += 1
            else:
                logger.warning("bulk toggle failed for %s: %s", change.path, result.error_text)
        if succeeded == len(files):
            return Outcome.done(self.bulk_message(succeeded))
        return Outcome.warn(
            f"Processed {succeeded}/{len(files)} files successfully", changed=succeeded > 0
        )

    def _confirmed(
        self, prompt: str, action: Callable[[], CommandResult], success: str, failure: str
    ) -> Confirm:
        def run() -> Outcome:
            result = action()
            if not result.ok:
                return Outcome.error(f"{failure}: {result.error_text}")
            return Outcome.done(success)

        return Confirm(prompt, run)


class StagedProvider(StagingProvider):
    key = "staged"
    header = "Staged changes:"
    status_style = "gitcast.staged"
    noun = "staged files"

    def files(self, snapshot: StatusSnapshot) -> tuple[FileChange, ...]:
        return snapshot.staged

    def toggle_one(self, path: str) -> CommandResult:
        return self.git.unstage(path)

    def toggled_message(self, path: str) -> str:
        return f"Unstaged {path}"

    def bulk_message(self, count: int) -> str:
        return f"Unstaged {count} files"

    def diff_args(self, path: str) -> list[str]:
        return ["diff", "--cached", "--", path]

    def destroy(self, change: FileChange) -> Effect:
        return self._confirmed(
            f"Unstage {change.path}?",
            lambda: self.git.unstage(change.path),
            f"Unstaged {change.path}",
            "Git unstage failed",
        )


class ModifiedProvider(StagingProvider):
    key = "modified"
    header = "Unstaged changes:"
    status_style = "gitcast.modified"
    noun = "modified files"

    def files(self, snapshot: StatusSnapshot) -> tuple[FileChange, ...]:
        return snapshot.modified

    def toggle_one(self, path: str) -> CommandResult:
        return self.git.stage(path)

    def toggled_message(self, path: str) -> str:
        return f"Staged {path}"

    def bulk_message(self, count: int) -> str:
        return f"Staged {count} {self.noun}"

    def diff_args(self, path: str) -> list[str]:
        return ["diff", "--", path]

    def destroy(self, change: FileChange) -> Effect:
        return self._confirmed(
            f"Checkout {change.path}? This will discard all changes.",
            lambda: self.git.discard(change.path),
            f"Discarded changes to {change.path}",
            "Git checkout failed",
        )


class UntrackedProvider(StagingProvider):
    key = "untracked"
    header = "Untracked files:"
    status_style = "gitcast.untracked"
    noun = "untracked files"

    def files(self, snapshot: StatusSnapshot) -> tuple[FileChange, ...]:
        return snapshot.untracked

    def toggle_one(self, path: str) -> CommandResult:
        return self.git.stage(path)

    def toggled_message(self, path: str) -> str:
        return f"Staged {path}"

    def bulk_message(self, count: int) -> str:
        return f"Staged {count} {self.noun}"

    def diff_args(self, path: str) -> list[str]:
        return ["diff", "--no-index", "--", os.devnull, path]

    def show_diff(self, change: FileChange) -> Effect:
        target = self.git.root / change.path
        if not target.is_file() or not os.access(target, os.R_OK):
            return self.open(change)
        return super().show_diff(change)

    def destroy(self, change: FileChange) -> Effect:
        kind = "folder" if (self.git.root / change.path).is_dir() else "file"
        return self._confirmed(
            f"Delete untracked {kind} {change.path}? This cannot be undone.",
            lambda: self.git.delete_untracked(change.path),
            f"Deleted {change.path}",
            f"Failed to delete {change.path}",
        )
