"""Secondary views for branch comparison and single commits."""

import shlex

from gitcast import diff
from gitcast.effects import Effect, OpenPath, Outcome, ShowOutput
from gitcast.git import Git
from gitcast.models import EventKind, FileChange, HighlightRange, StatusSnapshot, ViewModel
from gitcast.sections import (
    ADDED_STYLE,
    EMPTY_STYLE,
    HEADER_STYLE,
    count_ranges,
    format_file_line,
)

HASH_STYLE = "gitcast.hash"
CONFLICT_STYLE = "gitcast.conflict"
POTENTIAL_STYLE = "gitcast.potential"
FILE_STATUS_STYLE = "gitcast.modified"


def _summary(
    files: tuple[FileChange, ...], offset: int = 0
) -> tuple[str, tuple[HighlightRange, ...]]:
    added = sum(change.added for change in files)
    removed = sum(change.removed for change in files)
    prefix = f"{len(files)} files, "
    counts, ranges = count_ranges(offset + len(prefix), added, removed)
    return prefix + counts, ranges


def _open_file(git: Git, path: str) -> Effect:
    target = git.root / path
    if not target.exists():
        return Outcome.warn(f"File no longer exists: {path}")
    return OpenPath(target)


def branch_detail(
    git: Git, snapshot: StatusSnapshot, current: str, tracking: str, pager: str | None
) -> ViewModel:
    """Commits behind, conflict risk and changed files of `current` against `tracking`."""
    view = ViewModel()
    view.add_line("Comparing branches:", HEADER_STYLE)
    view.add_line(f"  {current}...{tracking}")
    view.add_line("")

    behind = git.commits_between(current, tracking)
    view.add_line(f"Commits behind ({len(behind)}):", HEADER_STYLE)
    for entry in behind:
        short = entry.split(" ", 1)[0]
        view.add_line(f"  {entry}", (HighlightRange(2, 2 + len(short), HASH_STYLE),))
    if not behind:
        view.add_line("  (up to date)", EMPTY_STYLE)
    view.add_line("")

    report = git.conflict_report(snapshot, tracking)
    view.add_line("Merge conflicts:", HEADER_STYLE)
    if not report.has_conflicts:
        view.add_line("  No conflicts", ADDED_STYLE)
    if report.active:
        view.add_line("  Active:")
        for path in report.active:
            line = view.add_line(f"    🔥 {path}", CONFLICT_STYLE)
            view.on(EventKind.ACTIVATE, line, lambda path=path: _open_file(git, path))
    if report.potential:
        view.add_line("  Potential:")
        for path in report.potential:
            view.add_line(f"    ⚠ {path}", POTENTIAL_STYLE)
    view.add_line("")

    files = git.branch_files(tracking)
    summary, ranges = _summary(files, offset=len("Summary: "))
    view.add_line(f"Summary: {summary}", ranges)
    view.add_line("Files changed:", HEADER_STYLE)
    if not files:
        view.add_line("  (no files)", EMPTY_STYLE)
    for change in files:
        text, highlights = format_file_line(change, FILE_STATUS_STYLE)
        line = view.add_line(text, highlights)
        view.on(
            EventKind.ACTIVATE,
            line,
            lambda path=change.path: diff.show(
                f"{tracking}...HEAD -- {path}", ["diff", f"{tracking}...HEAD", "--", path], pager
            ),
        )
        view.on(EventKind.OPEN, line, lambda path=change.path: _open_file(git, path))
    return view


def commit_detail(git: Git, revision: str, pager: str | None) -> ViewModel:
    """Metadata and per-file changes of one commit."""
    view = ViewModel()
    info = git.commit_info(revision)
    if info is None:
        view.add_line(f"Commit {revision} not found", EMPTY_STYLE)
        return view

    view.add_line(f"Commit: {info.hash}", (HighlightRange(8, 8 + len(info.hash), HASH_STYLE),))
    view.add_line(f"Message: {info.subject}")
    view.add_line(f"Author: {info.author} <{info.email}>")
    view.add_line(f"Date: {info.date}")
    view.add_line("")

    files = git.commit_files(info.hash)
    summary, _ = _summary(files)
    view.add_line(f"Files changed ({summary}):", HEADER_STYLE)
    if not files:
        view.add_line("  (no files)", EMPTY_STYLE)
    for change in files:
        text, highlights = format_file_line(change, FILE_STATUS_STYLE)
        line = view.add_line(text, highlights)
        view.on(
            EventKind.ACTIVATE,
            line,
            lambda path=change.path: diff.show(
                f"{info.short_hash} -- {path}", ["show", info.hash, "--", path], pager
            ),
        )
        view.on(
            EventKind.OPEN,
            line,
            lambda path=change.path: ShowOutput(
                title=f"{info.short_hash}:{path}",
                command=shlex.join(["git", "show", f"{info.hash}:{path}"]),
            ),
        )
    return view
