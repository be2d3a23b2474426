"""Section provider protocol and shared line formatting."""

from typing import Protocol

from gitcast.config import Settings
from gitcast.git import Git
from gitcast.models import FileChange, HighlightRange, StatusSnapshot, ViewModel

HEADER_STYLE = "gitcast.header"
EMPTY_STYLE = "gitcast.empty"
ADDED_STYLE = "gitcast.added"
REMOVED_STYLE = "gitcast.removed"
ANNOTATION_STYLE = "gitcast.annotation"

BASE_STYLES = {
    HEADER_STYLE: "bold",
    EMPTY_STYLE: "dim",
    ADDED_STYLE: "green",
    REMOVED_STYLE: "red",
    ANNOTATION_STYLE: "dim italic",
}


class SectionProvider(Protocol):
    """A data source contributing one section to the dashboard.

    `build` must not mutate repository state. Providers that read the shared
    status snapshot set `uses_snapshot`; the others receive it anyway.
    """

    uses_snapshot: bool
    annotation_style: str

    def __init__(self, git: Git, settings: Settings) -> None: ...

    def build(self, snapshot: StatusSnapshot | None) -> ViewModel: ...

    def styles(self) -> dict[str, str]: ...


def count_ranges(offset: int, added: int, removed: int) -> tuple[str, tuple[HighlightRange, ...]]:
    """Render `+A -D` starting at column `offset` with its highlight ranges."""
    plus = f"+{added}"
    minus = f"-{removed}"
    text = f"{plus} {minus}"
    minus_start = offset + len(plus) + 1
    return text, (
        HighlightRange(offset, offset + len(plus), ADDED_STYLE),
        HighlightRange(minus_start, minus_start + len(minus), REMOVED_STYLE),
    )


def format_file_line(
    change: FileChange, status_style: str, indent: str = "  "
) -> tuple[str, tuple[HighlightRange, ...]]:
    """`  <status>[ +A -D] <path>`; counts are omitted when both are zero."""
    ranges = [HighlightRange(len(indent), len(indent) + len(change.status), status_style)]
    text = f"{indent}{change.status}"
    if change.added or change.removed:
        counts, count_highlights = count_ranges(len(text) + 1, change.added, change.removed)
        text = f"{text} {counts}"
        ranges.extend(count_highlights)
    return f"{text} {change.path}", tuple(ranges)


def add_empty(view: ViewModel, text: str) -> None:
    view.add_line(f"  {text}", EMPTY_STYLE)
