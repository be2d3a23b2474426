from pathlib import Path

import pytest

from conftest import GIT_AVAILABLE, commit_file, git
from gitcast import commands
from gitcast.dispatch import Dispatcher
from gitcast.effects import ERROR, INFO, AskText, Outcome, RunJob
from gitcast.loop import SimpleLoop
from gitcast.pipeline import Pipeline, step
from gitcast.prompts import EffectRunner
from gitcast.runner import JobRunner
from gitcast.session import Session


def _run_pipeline(pipeline: Pipeline, cwd: Path) -> Outcome:
    loop = SimpleLoop()
    outcomes: list[Outcome] = []
    pipeline.start(JobRunner(loop.schedule, cwd=cwd), outcomes.append)
    assert loop.run_until(lambda: bool(outcomes), timeout=30)
    return outcomes[0]


def test_pipeline_runs_steps_in_order(tmp_path: Path) -> None:
    pipeline = Pipeline(
        "touch files",
        [
            step("sh", "-c", "echo one >> log", failure="first failed"),
            step("sh", "-c", "echo two >> log", failure="second failed"),
        ],
        "all done",
    )

    outcome = _run_pipeline(pipeline, tmp_path)

    assert outcome == Outcome.done("all done")
    assert (tmp_path / "log").read_text() == "one\ntwo\n"
    assert pipeline.completed == 2
    assert pipeline.outcome == outcome


def test_pipeline_stops_at_failure_and_rolls_back(tmp_path: Path) -> None:
    pipeline = Pipeline(
        "failing",
        [
            step("touch", "first", failure="First failed"),
            step(
                "sh", "-c", "echo broken >&2; exit 2",
                failure="Second failed",
                rollback=[("touch", "rolled"), ("touch", "rolled-again")],
            ),
            step("touch", "third", failure="Third failed"),
        ],
        "never",
    )

    outcome = _run_pipeline(pipeline, tmp_path)

    assert outcome.level == ERROR
    assert outcome.message == "Second failed: broken"
    assert outcome.changed
    assert pipeline.completed == 1
    assert (tmp_path / "first").exists()
    assert (tmp_path / "rolled").exists()
    assert (tmp_path / "rolled-again").exists()
    assert not (tmp_path / "third").exists()


def test_first_step_failure_without_rollback_is_unchanged(tmp_path: Path) -> None:
    pipeline = Pipeline(
        "hinted",
        [step("false", failure="Rebase failed", hint="Resolve conflicts")],
        "never",
    )

    outcome = _run_pipeline(pipeline, tmp_path)

    assert outcome == Outcome.error("Rebase failed: Unknown error. Resolve conflicts")


def test_pipeline_start_failure(tmp_path: Path) -> None:
    pipeline = Pipeline(
        "missing", [step("gitcast-no-such-binary", failure="Could not run")], "never"
    )

    outcome = _run_pipeline(pipeline, tmp_path)

    assert outcome == Outcome.error("Could not run: Failed to start job")


@pytest.mark.skipif(not GIT_AVAILABLE, reason="git missing")
def test_squash_merge_onto_tracking_branch(session: Session, repo: Path, loop: SimpleLoop) -> None:
    git(repo, "checkout", "-q", "-b", "feature")
    commit_file(repo, "a.txt", "a\n", "one")
    commit_file(repo, "b.txt", "b\n", "two")
    outcomes: list[Outcome] = []
    dispatcher = Dispatcher(session, notify=outcomes.append)

    effect = commands.squash_merge(session.git)
    assert isinstance(effect, AskText)
    assert effect.default == "Squash merge feature (2 commits)"
    job = effect.on_submit(effect.default)
    assert isinstance(job, RunJob)

    before = session.compositions
    assert dispatcher.settle(job) is None
    assert loop.run_until(lambda: bool(outcomes), timeout=30)

    assert outcomes[0] == Outcome.done(
        "Successfully squash merged feature into main (now on main)"
    )
    assert session.compositions == before + 1
    assert session.git.current_branch() == "main"
    assert git(repo, "log", "-1", "--format=%s") == "Squash merge feature (2 commits)"
    assert git(repo, "rev-list", "--count", "HEAD") == "2"


@pytest.mark.skipif(not GIT_AVAILABLE, reason="git missing")
def test_squash_merge_conflict_restores_branch(session: Session, repo: Path, loop: SimpleLoop) -> None:
    commit_file(repo, "f.txt", "base\n", "base")
    git(repo, "checkout", "-q", "-b", "feature")
    commit_file(repo, "f.txt", "feature\n", "feature edit")
    git(repo, "checkout", "-q", "main")
    commit_file(repo, "f.txt", "main\n", "main edit")
    git(repo, "checkout", "-q", "feature")
    outcomes: list[Outcome] = []

    effect = commands.squash_merge(session.git)
    Dispatcher(session, notify=outcomes.append).settle(effect.on_submit("squash"))
    assert loop.run_until(lambda: bool(outcomes), timeout=30)

    assert outcomes[0].level == ERROR
    assert outcomes[0].message.startswith("Squash merge failed: ")
    assert outcomes[0].changed
    assert session.git.current_branch() == "feature"
    assert session.git.is_clean()
    assert (repo / "f.txt").read_text() == "feature\n"


@pytest.mark.skipif(not GIT_AVAILABLE, reason="git missing")
def test_pull_without_remote_reports_failure(session: Session, loop: SimpleLoop) -> None:
    runner = EffectRunner(session, loop)
    before = session.compositions

    outcome = runner.resolve(commands.pull(session.git))

    assert outcome is not None
    assert outcome.level == ERROR
    assert outcome.message.startswith("Pull rebase failed: ")
    assert session.compositions == before + 1
    assert session.jobs.active_jobs == {}


@pytest.mark.skipif(not GIT_AVAILABLE, reason="git missing")
def test_effect_runner_returns_plain_outcomes(session: Session, loop: SimpleLoop) -> None:
    runner = EffectRunner(session, loop)
    outcome = runner.resolve(commands.switch_to(session.git, "main"))
    assert outcome == Outcome.warn("Already on main")
    assert outcome.level != INFO
