"""Flatten section view models into one line-indexed dashboard."""

import logging
from collections.abc import Callable, Mapping, Sequence

from gitcast.branch import BranchProvider
from gitcast.commits import CommitsProvider
from gitcast.models import (
    ComposedView,
    LineInfo,
    SectionDescriptor,
    SectionSlot,
    StatusSnapshot,
)
from gitcast.sections import SectionProvider
from gitcast.staging import ModifiedProvider, StagedProvider, UntrackedProvider
from gitcast.tracking import TrackingProvider

logger = logging.getLogger(__name__)

SECTIONS: tuple[SectionDescriptor, ...] = (
    SectionDescriptor("branch", BranchProvider, spacing_after=False),
    SectionDescriptor("tracking", TrackingProvider),
    SectionDescriptor("commits", CommitsProvider, header="Commits:"),
    SectionDescriptor("staged", StagedProvider, header="Staged changes:"),
    SectionDescriptor("modified", ModifiedProvider, header="Unstaged changes:"),
    SectionDescriptor("untracked", UntrackedProvider, header="Untracked files:"),
)


def compose(
    providers: Mapping[str, SectionProvider],
    snapshot_source: Callable[[], StatusSnapshot],
    sections: Sequence[SectionDescriptor] = SECTIONS,
) -> ComposedView:
    """Build the dashboard from `sections` in order.

    The snapshot is fetched at most once and shared by every provider. Each
    composed line maps back to its section and local line number.
    """
    snapshot: StatusSnapshot | None = None
    if any(getattr(providers[d.key], "uses_snapshot", False) for d in sections):
        snapshot = snapshot_source()

    lines: list[str] = []
    index: dict[int, LineInfo] = {}
    slots: dict[str, SectionSlot] = {}

    for descriptor in sections:
        view = providers[descriptor.key].build(snapshot)
        start = len(lines) + 1
        header = view.header if view.header is not None else descriptor.header
        if header:
            lines.append(header)
            index[len(lines)] = LineInfo(descriptor.key, is_header=True)
        for local, text in enumerate(view.lines, start=1):
            lines.append(text)
            index[len(lines)] = LineInfo(descriptor.key, local_line=local)
        end = len(lines)
        if descriptor.spacing_after:
            lines.append("")
            index[len(lines)] = LineInfo(descriptor.key, is_spacing=True)
        slots[descriptor.key] = SectionSlot(descriptor, view, start, end)

    logger.debug("composed %d lines", len(lines))
    return ComposedView(lines=tuple(lines), index=index, sections=slots)
