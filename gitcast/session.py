"""Dashboard context shared by the dispatcher and the hosts."""

import time
from collections.abc import Callable
from pathlib import Path

from gitcast.cache import CACHE_TTL, StateCache
from gitcast.compose import SECTIONS, compose
from gitcast.config import Settings
from gitcast.git import Git
from gitcast.models import ComposedView, StatusSnapshot
from gitcast.runner import JobRunner, ProcessRunner
from gitcast.sections import BASE_STYLES, SectionProvider


class Session:
    """Everything one dashboard needs, owned by the control loop."""

    def __init__(
        self,
        root: Path,
        settings: Settings,
        runner: ProcessRunner,
        jobs: JobRunner,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.root = root
        self.settings = settings
        self.runner = runner
        self.jobs = jobs
        self.git = Git(root, runner)
        self.cache = StateCache(self.git.status_snapshot, ttl=CACHE_TTL, clock=clock)
        self.providers: dict[str, SectionProvider] = {
            descriptor.key: descriptor.provider(self.git, settings) for descriptor in SECTIONS
        }
        self.view: ComposedView | None = None
        self.compositions = 0

    def refresh(self) -> ComposedView:
        self.view = compose(self.providers, self.cache.get_snapshot)
        self.compositions += 1
        return self.view

    def snapshot(self) -> StatusSnapshot:
        return self.cache.get_snapshot()

    def annotation_styles(self) -> dict[str, str]:
        return {key: provider.annotation_style for key, provider in self.providers.items()}

    def styles(self) -> dict[str, str]:
        merged = dict(BASE_STYLES)
        for provider in self.providers.values():
            merged.update(provider.styles())
        return merged
