from pathlib import Path

import pytest

from conftest import GIT_AVAILABLE, commit_file, init_repo
from gitcast.cache import StateCache
from gitcast.git import GitError, find_repo_root
from gitcast.models import FileChange, StatusSnapshot


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def _counting_fetch() -> tuple[list[StatusSnapshot], object]:
    produced: list[StatusSnapshot] = []

    def fetch() -> StatusSnapshot:
        snapshot = StatusSnapshot(untracked=(FileChange("??", f"f{len(produced)}"),))
        produced.append(snapshot)
        return snapshot

    return produced, fetch


@pytest.mark.skipif(not GIT_AVAILABLE, reason="git missing")
def test_repo_root_from_subdirectory(tmp_path: Path) -> None:
    root = init_repo(tmp_path / "repo")
    commit_file(root, "pkg/module.py", "x = 1\n", "init")
    assert find_repo_root(root / "pkg").resolve() == root.resolve()


@pytest.mark.skipif(not GIT_AVAILABLE, reason="git missing")
def test_repo_root_outside_repository(tmp_path: Path) -> None:
    outside = tmp_path / "plain"
    outside.mkdir()
    with pytest.raises(GitError):
        find_repo_root(outside)


def test_cache_reuses_snapshot_within_ttl() -> None:
    clock = FakeClock()
    produced, fetch = _counting_fetch()
    cache = StateCache(fetch, ttl=0.1, clock=clock)

    first = cache.get_snapshot()
    clock.now += 0.05
    second = cache.get_snapshot()

    assert first is second
    assert cache.fetches == 1
    assert len(produced) == 1


def test_cache_refetches_after_ttl() -> None:
    clock = FakeClock()
    _, fetch = _counting_fetch()
    cache = StateCache(fetch, ttl=0.1, clock=clock)

    first = cache.get_snapshot()
    clock.now += 0.1
    second = cache.get_snapshot()

    assert first != second
    assert cache.fetches == 2


def test_cache_invalidate_forces_fetch() -> None:
    clock = FakeClock()
    _, fetch = _counting_fetch()
    cache = StateCache(fetch, ttl=0.1, clock=clock)

    cache.get_snapshot()
    cache.invalidate()
    cache.get_snapshot()
    cache.invalidate()
    cache.invalidate()

    assert cache.fetches == 2
    cache.get_snapshot()
    assert cache.fetches == 3
