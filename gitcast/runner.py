"""Blocking and async subprocess execution."""

import logging
import os
import shlex
import subprocess
import sys
import threading
import time
from collections import deque
from collections.abc import Callable, Sequence
from pathlib import Path

from gitcast.models import CommandRecord, CommandResult, JobHandle, JobResult
from gitcast.progress import ProgressIndicator

logger = logging.getLogger(__name__)
perf_logger = logging.getLogger("gitcast.perf")

Command = Sequence[str] | str
Schedule = Callable[[Callable[[], None]], object]

RECORD_COMMAND_WIDTH = 50
START_FAILURE = "Failed to start job"


def describe(command: Command) -> str:
    """Render a command as a single shell-like string."""
    if isinstance(command, str):
        return command
    return shlex.join(command)


def _call_site() -> str:
    frame = sys._getframe(1)
    while frame is not None and frame.f_code.co_filename == __file__:
        frame = frame.f_back
    if frame is None:
        return "unknown"
    return f"{Path(frame.f_code.co_filename).name}:{frame.f_lineno}"


class CommandRecorder:
    """Opt-in per-command timing log."""

    def __init__(self, limit: int = 200) -> None:
        self.records: deque[CommandRecord] = deque(maxlen=limit)

    def record(self, command: str, duration: float, call_site: str) -> CommandRecord:
        if len(command) > RECORD_COMMAND_WIDTH:
            command = f"{command[: RECORD_COMMAND_WIDTH - 3]}..."
        entry = CommandRecord(duration_ms=round(duration * 1000, 1), call_site=call_site, command=command)
        self.records.append(entry)
        perf_logger.debug("%.1fms %s %s", entry.duration_ms, entry.call_site, entry.command)
        return entry


class ProcessRunner:
    """Blocking command execution that never raises."""

    def __init__(self, cwd: Path | None = None, recorder: CommandRecorder | None = None) -> None:
        self.cwd = cwd
        self.recorder = recorder

    def run(self, command: Command, cwd: Path | None = None) -> CommandResult:
        """Run a command to completion and capture its output."""
        text = describe(command)
        call_site = _call_site() if self.recorder else ""
        started = time.monotonic()
        try:
            proc = subprocess.run(
                command,
                cwd=cwd or self.cwd,
                shell=isinstance(command, str),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
            result = CommandResult(
                command=text,
                exit_status=proc.returncode,
                stdout=proc.stdout,
                stderr=proc.stderr,
                duration=time.monotonic() - started,
            )
        except OSError as exc:
            result = CommandResult(text, -1, "", str(exc), time.monotonic() - started)

        if self.recorder:
            self.recorder.record(text, result.duration, call_site)
        if not result.ok:
            logger.debug("command exited %d: %s", result.exit_status, text)
        return result


class JobRunner:
    """Launch commands asynchronously and report back on the control loop.

    Every callback passes through `schedule`, so callers only ever observe
    job events from the loop thread. Running jobs are tracked by pid until
    their exit callback has been delivered.
    """

    def __init__(
        self,
        schedule: Schedule,
        progress: ProgressIndicator | None = None,
        recorder: CommandRecorder | None = None,
        cwd: Path | None = None,
    ) -> None:
        self.schedule = schedule
        self.progress = progress
        self.recorder = recorder
        self.cwd = cwd
        self.active_jobs: dict[int, JobHandle] = {}
        self._processes: dict[int, subprocess.Popen[str]] = {}

    def run_async(
        self,
        command: Command,
        on_stdout_line: Callable[[str], None] | None = None,
        on_stderr_line: Callable[[str], None] | None = None,
        on_exit: Callable[[JobResult], None] | None = None,
        show_progress: bool = True,
    ) -> JobHandle | None:
        """Start a command and return immediately."""
        text = describe(command)
        call_site = _call_site() if self.recorder else ""
        started = time.monotonic()
        try:
            proc = subprocess.Popen(
                command,
                cwd=self.cwd,
                shell=isinstance(command, str),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
            )
        except OSError as exc:
            logger.warning("failed to start %s: %s", text, exc)
            if on_exit:
                self.schedule(lambda: on_exit(JobResult(-1, "", START_FAILURE, 0.0)))
            return None

        handle = JobHandle(job_id=proc.pid, command=text, started_at=started)
        self.active_jobs[handle.job_id] = handle
        self._processes[handle.job_id] = proc
        stop_progress = self.progress.start(text) if self.progress and show_progress else None
        logger.debug("started job %d: %s", handle.job_id, text)

        stdout_lines: list[str] = []
        stderr_lines: list[str] = []
        readers = [
            threading.Thread(
                target=self._pump, args=(proc.stdout, stdout_lines, on_stdout_line), daemon=True
            ),
            threading.Thread(
                target=self._pump, args=(proc.stderr, stderr_lines, on_stderr_line), daemon=True
            ),
        ]
        for reader in readers:
            reader.start()

        def finish(exit_status: int) -> None:
            if stop_progress:
                stop_progress()
            self.active_jobs.pop(handle.job_id, None)
            self._processes.pop(handle.job_id, None)
            duration = time.monotonic() - started
            if self.recorder:
                self.recorder.record(text, duration, call_site)
            if exit_status != 0:
                logger.warning("job %d exited %d: %s", handle.job_id, exit_status, text)
            if on_exit:
                on_exit(
                    JobResult(
                        exit_status=exit_status,
                        stdout="\n".join(stdout_lines),
                        stderr="\n".join(stderr_lines),
                        duration=duration,
                    )
                )

        def waiter() -> None:
            for reader in readers:
                reader.join()
            exit_status = proc.wait()
            self.schedule(lambda: finish(exit_status))

        threading.Thread(target=waiter, daemon=True).start()
        return handle

    def _pump(
        self,
        stream: object,
        collected: list[str],
        callback: Callable[[str], None] | None,
    ) -> None:
        for raw in stream:  # type: ignore[attr-defined]
            line = raw.rstrip("\r\n")
            collected.append(line)
            if line and callback:
                self.schedule(lambda line=line: callback(line))
        stream.close()  # type: ignore[attr-defined]

    def cancel_all(self) -> int:
        """Terminate every running job and clear the registry."""
        cancelled = 0
        for job_id in list(self.active_jobs):
            proc = self._processes.pop(job_id, None)
            if proc is None:
                continue
            try:
                proc.terminate()
                cancelled += 1
            except ProcessLookupError:
                pass
        self.active_jobs.clear()
        if cancelled:
            logger.info("cancelled %d job(s)", cancelled)
        return cancelled
