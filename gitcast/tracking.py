"""Tracking branch section."""

from gitcast import commands
from gitcast.config import Settings
from gitcast.git import Git
from gitcast.models import EventKind, HighlightRange, StatusSnapshot, ViewModel
from gitcast.sections import ANNOTATION_STYLE

TRACKING_STYLE = "gitcast.tracking"


class TrackingProvider:
    """One `Tracking: <branch>` line, shown only off the tracking branch."""

    uses_snapshot = False
    annotation_style = ANNOTATION_STYLE

    def __init__(self, git: Git, settings: Settings) -> None:
        self.git = git

    def styles(self) -> dict[str, str]:
        return {TRACKING_STYLE: "magenta"}

    def build(self, snapshot: StatusSnapshot | None) -> ViewModel:
        view = ViewModel()
        tracking = self.git.tracking_branch()
        if tracking is None or tracking == self.git.current_branch():
            return view
        label = "Tracking: "
        line = view.add_line(
            f"{label}{tracking}",
            (HighlightRange(len(label), len(label) + len(tracking), TRACKING_STYLE),),
        )
        view.on(EventKind.ACTIVATE, line, lambda: commands.pick_tracking_branch(self.git))
        return view
