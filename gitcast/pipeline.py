"""Sequential async command pipelines with rollback."""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from gitcast.effects import Outcome
from gitcast.models import JobResult
from gitcast.runner import JobRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Step:
    """One command in a pipeline.

    `rollback` commands run, in order, only when this step fails. `partial`
    marks steps that can leave the repository half-changed on failure.
    """

    command: tuple[str, ...]
    failure: str
    rollback: tuple[tuple[str, ...], ...] = ()
    partial: bool = False
    hint: str | None = None


def step(
    *command: str,
    failure: str,
    rollback: Sequence[Sequence[str]] = (),
    partial: bool = False,
    hint: str | None = None,
) -> Step:
    return Step(tuple(command), failure, tuple(tuple(cmd) for cmd in rollback), partial, hint)


class Pipeline:
    """Run steps one after another on a JobRunner; stop at the first failure."""

    def __init__(self, title: str, steps: Sequence[Step], success: str) -> None:
        self.title = title
        self.steps = tuple(steps)
        self.success = success
        self.completed = 0
        self.outcome: Outcome | None = None

    def start(self, jobs: JobRunner, on_done: Callable[[Outcome], None]) -> None:
        logger.info("pipeline started: %s", self.title)
        self._jobs = jobs
        self._on_done = on_done
        self._run(0)

    def _run(self, index: int) -> None:
        if index >= len(self.steps):
            self._finish(Outcome.done(self.success))
            return
        current = self.steps[index]
        self._jobs.run_async(
            list(current.command),
            on_exit=lambda result: self._step_done(index, result),
            show_progress=True,
        )

    def _step_done(self, index: int, result: JobResult) -> None:
        if result.ok:
            self.completed = index + 1
            self._run(index + 1)
            return

        failed = self.steps[index]
        reason = result.error_text
        if result.exit_status < 0 and result.exit_status != -1:
            reason = "cancelled"
        message = f"{failed.failure}: {reason}"
        if failed.hint:
            message = f"{message}. {failed.hint}"
        changed = index > 0 or failed.partial or bool(failed.rollback)
        logger.warning("pipeline %s failed at step %d: %s", self.title, index + 1, reason)
        self._rollback(list(failed.rollback), Outcome.error(message, changed=changed))

    def _rollback(self, commands: list[tuple[str, ...]], outcome: Outcome) -> None:
        if not commands:
            self._finish(outcome)
            return
        command = commands.pop(0)

        def next_command(result: JobResult) -> None:
            if not result.ok:
                logger.warning("rollback step failed: %s", " ".join(command))
            self._rollback(commands, outcome)

        self._jobs.run_async(list(command), on_exit=next_command, show_progress=False)

    def _finish(self, outcome: Outcome) -> None:
        self.outcome = outcome
        self._on_done(outcome)
