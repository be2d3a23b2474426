import shutil
import subprocess
from pathlib import Path

import pytest

from gitcast.config import Settings
from gitcast.loop import SimpleLoop
from gitcast.models import ComposedView
from gitcast.runner import CommandRecorder, JobRunner, ProcessRunner
from gitcast.session import Session

GIT_AVAILABLE = shutil.which("git") is not None


def git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args], cwd=repo, check=True, capture_output=True, text=True
    )
    return result.stdout.strip()


def init_repo(root: Path, branch: str = "main") -> Path:
    root.mkdir(parents=True, exist_ok=True)
    git(root, "init", "-q")
    git(root, "symbolic-ref", "HEAD", f"refs/heads/{branch}")
    git(root, "config", "user.email", "test@example.com")
    git(root, "config", "user.name", "Test")
    git(root, "config", "commit.gpgsign", "false")
    return root


def commit_file(repo: Path, name: str, content: str, message: str) -> str:
    path = repo / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    git(repo, "add", "--", name)
    git(repo, "commit", "-q", "-m", message)
    return git(repo, "rev-parse", "HEAD")


def line_of(view: ComposedView, section: str, local: int | None = None) -> int:
    """Composed line number of a section's content line, or of its header."""
    for number, info in view.index.items():
        if info.section != section:
            continue
        if local is None and info.is_header:
            return number
        if local is not None and info.local_line == local:
            return number
    raise AssertionError(f"no line {local} in section {section}")


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    if not GIT_AVAILABLE:
        pytest.skip("git missing")
    root = init_repo(tmp_path / "repo")
    commit_file(root, "README.md", "hello\n", "init")
    return root


@pytest.fixture
def loop() -> SimpleLoop:
    return SimpleLoop()


@pytest.fixture
def recorder() -> CommandRecorder:
    return CommandRecorder()


@pytest.fixture
def session(repo: Path, loop: SimpleLoop, recorder: CommandRecorder) -> Session:
    jobs = JobRunner(loop.schedule, cwd=repo)
    return Session(repo, Settings(diff_pager=""), ProcessRunner(repo, recorder), jobs)
