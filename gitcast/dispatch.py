"""Route user events on dashboard lines to section actions."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from gitcast.effects import Effect, Outcome, RunJob
from gitcast.models import EventKind, ViewModel

if TYPE_CHECKING:
    from gitcast.session import Session

logger = logging.getLogger(__name__)


class Dispatcher:
    """Resolve (event, line) to an action and settle what it returns.

    A changed Outcome invalidates the status cache and recomposes the view
    exactly once. Pipeline outcomes arrive later and are passed to `notify`
    after they have been settled.
    """

    def __init__(
        self, session: Session, notify: Callable[[Outcome], None] | None = None
    ) -> None:
        self.session = session
        self.notify = notify

    def dispatch(self, kind: EventKind, line: int) -> Effect | None:
        view = self.session.view
        if view is None:
            return None
        info = view.line_info(line)
        if info is None:
            return None
        slot = view.sections[info.section]
        if info.local_line is None:
            if kind is EventKind.BULK_CYCLE:
                action = slot.view.bulk_cycle
            else:
                action = slot.view.header_actions.get(kind)
        else:
            action = slot.view.handler(kind, info.local_line)
        if action is None:
            return None
        logger.debug("dispatch %s on %s:%s", kind.value, info.section, info.local_line)
        return self.settle(action())

    def dispatch_local(self, view: ViewModel, kind: EventKind, line: int) -> Effect | None:
        """Dispatch within a detail view that is not part of the dashboard."""
        action = view.handler(kind, line)
        if action is None:
            return None
        return self.settle(action())

    def follow(self, continuation: Callable[..., Any], *args: Any) -> Effect | None:
        """Run a continuation a host resolved from Confirm, Choose or AskText."""
        return self.settle(continuation(*args))

    def run(self, command: Callable[[], Any]) -> Effect | None:
        return self.settle(command())

    def settle(self, effect: Effect | None) -> Effect | None:
        if isinstance(effect, RunJob):
            effect.pipeline.start(self.session.jobs, self._job_done)
            return None
        if isinstance(effect, Outcome) and effect.changed:
            self.session.cache.invalidate()
            self.session.refresh()
        return effect

    def _job_done(self, outcome: Outcome) -> None:
        self.settle(outcome)
        if self.notify:
            self.notify(outcome)
