"""Recent commit history section."""

from gitcast.config import Settings
from gitcast.detail import HASH_STYLE, commit_detail
from gitcast.effects import Confirm, Effect, Outcome, ShowDetail
from gitcast.git import Git
from gitcast.models import Commit, EventKind, HighlightRange, StatusSnapshot, ViewModel
from gitcast.sections import ANNOTATION_STYLE, add_empty, count_ranges

AUTHOR_STYLE = "gitcast.author"
DATE_STYLE = "gitcast.date"


def commit_line(commit: Commit) -> tuple[str, tuple[HighlightRange, ...]]:
    """`  <short> <subject> +A -D (<author>) <date>`."""
    text = f"  {commit.short_hash} {commit.subject} "
    ranges = [HighlightRange(2, 2 + len(commit.short_hash), HASH_STYLE)]
    counts, count_highlights = count_ranges(len(text), commit.added, commit.removed)
    ranges.extend(count_highlights)
    text += f"{counts} "
    author = f"({commit.author})"
    ranges.append(HighlightRange(len(text), len(text) + len(author), AUTHOR_STYLE))
    text += f"{author} "
    ranges.append(HighlightRange(len(text), len(text) + len(commit.date), DATE_STYLE))
    return text + commit.date, tuple(ranges)


class CommitsProvider:
    uses_snapshot = False
    annotation_style = ANNOTATION_STYLE

    def __init__(self, git: Git, settings: Settings) -> None:
        self.git = git
        self.settings = settings

    def styles(self) -> dict[str, str]:
        return {HASH_STYLE: "yellow", AUTHOR_STYLE: "blue", DATE_STYLE: "dim"}

    def build(self, snapshot: StatusSnapshot | None) -> ViewModel:
        view = ViewModel(header="Commits:")
        commits = self.git.recent_commits(self.settings.commit_count)
        if not commits:
            add_empty(view, "(no commits)")
            return view
        for commit in commits:
            text, ranges = commit_line(commit)
            line = view.add_line(text, ranges)
            view.on(EventKind.ACTIVATE, line, lambda commit=commit: self.open_detail(commit))
            view.on(EventKind.DESTRUCTIVE, line, lambda commit=commit: self.reset_before(commit))
        return view

    def open_detail(self, commit: Commit) -> Effect:
        view = commit_detail(self.git, commit.hash, self.settings.diff_pager)
        return ShowDetail(f"{commit.short_hash} {commit.subject}", view)

    def reset_before(self, commit: Commit) -> Effect:
        """Confirm, then move HEAD to the commit's parent keeping changes unstaged."""
        parent = self.git.parent_of(commit.hash)
        if parent is None:
            return Confirm(
                f"Reset past initial commit {commit.short_hash} ({commit.subject})? "
                "This will remove ALL commits from this branch and keep the files as "
                "uncommitted changes.",
                self._remove_all_commits,
            )
        target = self.git.commit_subject(parent)
        return Confirm(
            f"Reset to parent of {commit.short_hash} ({commit.subject})? "
            f"Target: {parent[:8]} ({target}). "
            "This will undo this commit and all commits after it.",
            lambda: self._reset(parent),
        )

    def _reset(self, parent: str) -> Outcome:
        result = self.git.reset_mixed(parent)
        if not result.ok:
            return Outcome.error(f"Mixed reset failed: {result.error_text}")
        return Outcome.done(f"Reset to {parent[:8]}")

    def _remove_all_commits(self) -> Outcome:
        result = self.git.delete_head_ref()
        if not result.ok:
            return Outcome.error(f"Failed to reset past initial commit: {result.error_text}")
        return Outcome.done("Reset past initial commit - repository is now empty")
