"""Short-lived cache for the working-tree status snapshot."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from gitcast.models import StatusSnapshot

logger = logging.getLogger(__name__)

CACHE_TTL = 0.1


@dataclass(frozen=True)
class CacheEntry:
    snapshot: StatusSnapshot
    timestamp: float


class StateCache:
    """Memoize the status snapshot for `ttl` seconds.

    Sections composed in the same refresh share one snapshot instead of each
    re-running git status.
    """

    def __init__(
        self,
        fetch: Callable[[], StatusSnapshot],
        ttl: float = CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.fetch = fetch
        self.ttl = ttl
        self.clock = clock
        self.fetches = 0
        self._entry: CacheEntry | None = None

    def get_snapshot(self) -> StatusSnapshot:
        now = self.clock()
        entry = self._entry
        if entry is not None and now - entry.timestamp < self.ttl:
            return entry.snapshot
        snapshot = self.fetch()
        self.fetches += 1
        self._entry = CacheEntry(snapshot=snapshot, timestamp=self.clock())
        return snapshot

    def invalidate(self) -> None:
        if self._entry is not None:
            logger.debug("status cache invalidated")
        self._entry = None
