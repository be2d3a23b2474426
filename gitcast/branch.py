"""Branch header section."""

from gitcast import commands
from gitcast.config import Settings
from gitcast.detail import CONFLICT_STYLE, POTENTIAL_STYLE, branch_detail
from gitcast.effects import Effect, Outcome, ShowDetail
from gitcast.git import Git
from gitcast.models import BranchStatus, EventKind, HighlightRange, StatusSnapshot, ViewModel
from gitcast.sections import ANNOTATION_STYLE

LABEL_STYLE = "gitcast.label"
BRANCH_STYLE = "gitcast.branch"
AHEAD_STYLE = "gitcast.ahead"
BEHIND_STYLE = "gitcast.behind"


def head_line(status: BranchStatus, active_conflicts: int) -> tuple[str, tuple[HighlightRange, ...]]:
    """`Head: <branch>` plus divergence and conflict indicators."""
    text = "Head: "
    ranges = [
        HighlightRange(0, 5, LABEL_STYLE),
        HighlightRange(len(text), len(text) + len(status.branch), BRANCH_STYLE),
    ]
    text += status.branch
    if status.on_tracking:
        return text, tuple(ranges)

    indicators: list[tuple[str, str]] = []
    if status.ahead:
        indicators.append((f"↑{status.ahead}", AHEAD_STYLE))
    if status.behind:
        indicators.append((f"↓{status.behind}", BEHIND_STYLE))
    if active_conflicts:
        indicators.append((f"🔥{active_conflicts}", CONFLICT_STYLE))
    if not indicators:
        return text, tuple(ranges)

    text += " ("
    for position, (indicator, style) in enumerate(indicators):
        if position:
            text += " "
        ranges.append(HighlightRange(len(text), len(text) + len(indicator), style))
        text += indicator
    return text + ")", tuple(ranges)


class BranchProvider:
    uses_snapshot = True
    annotation_style = ANNOTATION_STYLE

    def __init__(self, git: Git, settings: Settings) -> None:
        self.git = git
        self.settings = settings

    def styles(self) -> dict[str, str]:
        return {
            LABEL_STYLE: "bold",
            BRANCH_STYLE: "bold cyan",
            AHEAD_STYLE: "green",
            BEHIND_STYLE: "yellow",
            CONFLICT_STYLE: "bold red",
            POTENTIAL_STYLE: "yellow",
        }

    def build(self, snapshot: StatusSnapshot | None) -> ViewModel:
        snapshot = snapshot or StatusSnapshot()
        status = self.git.branch_status()
        text, ranges = head_line(status, len(snapshot.conflicted))
        view = ViewModel()
        line = view.add_line(text, ranges)
        if status.upstream:
            view.annotations[line] = status.upstream
        view.on(EventKind.ACTIVATE, line, lambda: self.open_detail(status, snapshot))
        view.on(EventKind.CYCLE, line, lambda: commands.switch_branch(self.git))
        return view

    def open_detail(self, status: BranchStatus, snapshot: StatusSnapshot) -> Effect:
        if status.tracking is None:
            return Outcome.warn("No tracking branch found")
        if status.on_tracking:
            return Outcome.warn(f"Already on {status.tracking} branch")
        view = branch_detail(
            self.git, snapshot, status.branch, status.tracking, self.settings.diff_pager
        )
        return ShowDetail(f"{status.branch}...{status.tracking}", view)
