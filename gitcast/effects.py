"""Values returned by dashboard actions and interpreted by a host."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Union

from gitcast.models import ViewModel

if TYPE_CHECKING:
    from gitcast.pipeline import Pipeline

INFO = "info"
WARN = "warn"
ERROR = "error"


@dataclass(frozen=True)
class Outcome:
    """Final result of an action. `changed` means repository state moved."""

    changed: bool = False
    message: str | None = None
    level: str = INFO

    @classmethod
    def done(cls, message: str, changed: bool = True) -> Outcome:
        return cls(changed=changed, message=message, level=INFO)

    @classmethod
    def warn(cls, message: str, changed: bool = False) -> Outcome:
        return cls(changed=changed, message=message, level=WARN)

    @classmethod
    def error(cls, message: str, changed: bool = False) -> Outcome:
        return cls(changed=changed, message=message, level=ERROR)


@dataclass(frozen=True)
class Confirm:
    """Ask a yes/no question before running `on_confirm`."""

    prompt: str
    on_confirm: Callable[[], Any] = field(compare=False)


@dataclass(frozen=True)
class Choose:
    """Pick one of `options`; `on_choose` receives the chosen index."""

    prompt: str
    options: tuple[str, ...]
    on_choose: Callable[[int], Any] = field(compare=False)

    @classmethod
    def of(cls, prompt: str, options: Sequence[str], on_choose: Callable[[int], Any]) -> Choose:
        return cls(prompt, tuple(options), on_choose)


@dataclass(frozen=True)
class AskText:
    """Ask for a line of text, pre-filled with `default`."""

    prompt: str
    on_submit: Callable[[str], Any] = field(compare=False)
    default: str = ""


@dataclass(frozen=True)
class ShowOutput:
    """Run a shell command and show its output read-only."""

    title: str
    command: str
    warning: str | None = None


@dataclass(frozen=True)
class OpenPath:
    """Open a file in the user's editor."""

    path: Path


@dataclass(frozen=True)
class ShowDetail:
    """Show a secondary line-oriented view with its own actions."""

    title: str
    view: ViewModel


@dataclass(frozen=True)
class RunJob:
    """Start an async command pipeline; its outcome arrives later."""

    pipeline: Pipeline


Effect = Union[Outcome, Confirm, Choose, AskText, ShowOutput, OpenPath, ShowDetail, RunJob]
