"""Hand-off of git diffs to an external pretty-printer."""

import shlex
import shutil
from collections.abc import Sequence

from gitcast.config import DEFAULT_PAGER
from gitcast.effects import ShowOutput

MISSING_DELTA = "Delta not found. Install delta for better diff rendering."


def _colored(git_args: Sequence[str]) -> list[str]:
    if not git_args:
        return ["git"]
    return ["git", git_args[0], "--color=always", *git_args[1:]]


def pipeline(git_args: Sequence[str], pager: str | None = DEFAULT_PAGER) -> tuple[str, str | None]:
    """Shell command piping git output through `pager`, plus a warning if it is missing."""
    if not pager:
        return shlex.join(_colored(git_args)), None
    tool = shlex.split(pager)[0]
    if shutil.which(tool) is None:
        warning = MISSING_DELTA if tool == "delta" else f"{tool} not found, showing plain diff."
        return shlex.join(_colored(git_args)), warning
    return f"{shlex.join(['git', *git_args])} | {pager}", None


def show(title: str, git_args: Sequence[str], pager: str | None = DEFAULT_PAGER) -> ShowOutput:
    command, warning = pipeline(git_args, pager)
    return ShowOutput(title=title, command=command, warning=warning)
