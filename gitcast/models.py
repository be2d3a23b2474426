"""Data models for gitcast."""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventKind(str, Enum):
    """User events a dashboard line can react to."""

    ACTIVATE = "activate"
    CYCLE = "cycle"
    BULK_CYCLE = "bulk_cycle"
    DESTRUCTIVE = "destructive"
    OPEN = "open"


@dataclass(frozen=True)
class FileChange:
    """One changed path with its line counts."""

    status: str
    path: str
    added: int = 0
    removed: int = 0


@dataclass(frozen=True)
class StatusSnapshot:
    """Aggregate working-tree state produced by a single status pass."""

    staged: tuple[FileChange, ...] = ()
    modified: tuple[FileChange, ...] = ()
    untracked: tuple[FileChange, ...] = ()
    conflicted: tuple[str, ...] = ()


@dataclass(frozen=True)
class BranchStatus:
    """Current branch with its divergence from the comparison branch."""

    branch: str
    ahead: int = 0
    behind: int = 0
    upstream: str | None = None
    tracking: str | None = None

    @property
    def on_tracking(self) -> bool:
        return self.tracking is not None and self.branch == self.tracking


@dataclass(frozen=True)
class ConflictReport:
    """Active and predicted merge conflicts."""

    active: tuple[str, ...] = ()
    potential: tuple[str, ...] = ()

    @property
    def has_conflicts(self) -> bool:
        return bool(self.active or self.potential)


@dataclass(frozen=True)
class Commit:
    """A single commit as shown in the history section."""

    hash: str
    short_hash: str
    author: str
    email: str
    date: str
    subject: str
    added: int = 0
    removed: int = 0


@dataclass(frozen=True)
class CommandResult:
    """Result of a blocking command invocation."""

    command: str
    exit_status: int
    stdout: str
    stderr: str
    duration: float

    @property
    def ok(self) -> bool:
        return self.exit_status == 0

    @property
    def error_text(self) -> str:
        return (self.stderr or self.stdout or "Unknown error").strip() or "Unknown error"


@dataclass(frozen=True)
class JobResult:
    """Result handed to an async job's exit callback."""

    exit_status: int
    stdout: str
    stderr: str
    duration: float

    @property
    def ok(self) -> bool:
        return self.exit_status == 0

    @property
    def error_text(self) -> str:
        return (self.stderr or self.stdout or "Unknown error").strip() or "Unknown error"


@dataclass(frozen=True)
class JobHandle:
    """Registry entry for a running async job."""

    job_id: int
    command: str
    started_at: float


@dataclass(frozen=True)
class CommandRecord:
    """One recorded command invocation."""

    duration_ms: float
    call_site: str
    command: str


@dataclass(frozen=True)
class HighlightRange:
    """Styled column range on a line, 0-based and end-exclusive."""

    start: int
    end: int
    style: str


Highlight = str | tuple[HighlightRange, ...]
Action = Callable[[], Any]


@dataclass
class ViewModel:
    """Lines contributed by one section plus per-line behaviour.

    Line numbers are 1-based and local to the section. A line without an
    entry in a handler map has no action for that event.
    """

    lines: list[str] = field(default_factory=list)
    header: str | None = None
    highlights: dict[int, Highlight] = field(default_factory=dict)
    annotations: dict[int, str] = field(default_factory=dict)
    handlers: dict[EventKind, dict[int, Action]] = field(default_factory=dict, compare=False)
    bulk_cycle: Action | None = field(default=None, compare=False)
    header_actions: dict[EventKind, Action] = field(default_factory=dict, compare=False)

    def add_line(self, text: str, highlight: Highlight | None = None) -> int:
        """Append a line and return its local number."""
        self.lines.append(text)
        line = len(self.lines)
        if highlight:
            self.highlights[line] = highlight
        return line

    def on(self, kind: EventKind, line: int, action: Action) -> None:
        self.handlers.setdefault(kind, {})[line] = action

    def handler(self, kind: EventKind, line: int) -> Action | None:
        if kind is EventKind.BULK_CYCLE:
            return self.bulk_cycle
        return self.handlers.get(kind, {}).get(line)


@dataclass(frozen=True)
class SectionDescriptor:
    """Static registry entry for a dashboard section."""

    key: str
    provider: type
    header: str | None = None
    spacing_after: bool = True


@dataclass(frozen=True)
class LineInfo:
    """Where a composed line came from."""

    section: str
    local_line: int | None = None
    is_header: bool = False
    is_spacing: bool = False


@dataclass(frozen=True)
class SectionSlot:
    """A section's view model and its span in the composed view."""

    descriptor: SectionDescriptor
    view: ViewModel
    start_line: int
    end_line: int


@dataclass(frozen=True)
class ComposedView:
    """Flattened dashboard; rebuilt on every refresh."""

    lines: tuple[str, ...]
    index: dict[int, LineInfo]
    sections: dict[str, SectionSlot]

    def line_info(self, line: int) -> LineInfo | None:
        return self.index.get(line)
