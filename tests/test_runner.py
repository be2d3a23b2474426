from pathlib import Path

from gitcast.loop import SimpleLoop
from gitcast.models import JobResult
from gitcast.progress import FRAMES, LABEL_WIDTH, ProgressIndicator, progress_label
from gitcast.runner import START_FAILURE, CommandRecorder, JobRunner, ProcessRunner, describe


class FakeNotifier:
    def __init__(self) -> None:
        self.events: list[tuple[str, str, str | None]] = []
        self.slots: dict[str, str] = {}

    def notify(self, slot: str, message: str) -> None:
        self.events.append(("notify", slot, message))
        self.slots[slot] = message

    def clear(self, slot: str) -> None:
        self.events.append(("clear", slot, None))
        self.slots.pop(slot, None)


class ManualTimers:
    def __init__(self) -> None:
        self.callbacks: list = []
        self.cancelled = 0

    def set_interval(self, interval: float, callback):
        self.callbacks.append(callback)

        def cancel() -> None:
            self.cancelled += 1

        return cancel

    def tick(self) -> None:
        for callback in self.callbacks:
            callback()


def test_process_runner_captures_output(tmp_path: Path) -> None:
    recorder = CommandRecorder()
    runner = ProcessRunner(tmp_path, recorder)

    ok = runner.run(["sh", "-c", "echo out; echo err >&2"])
    failed = runner.run("exit 3")

    assert (ok.exit_status, ok.stdout, ok.stderr) == (0, "out\n", "err\n")
    assert ok.ok
    assert failed.exit_status == 3
    assert failed.error_text == "Unknown error"
    assert [r.command for r in recorder.records] == ["sh -c 'echo out; echo err >&2'", "exit 3"]
    assert recorder.records[0].call_site.startswith("test_runner.py:")


def test_process_runner_missing_binary(tmp_path: Path) -> None:
    result = ProcessRunner(tmp_path).run(["gitcast-no-such-binary"])
    assert result.exit_status == -1
    assert not result.ok


def test_recorder_truncates_long_commands() -> None:
    recorder = CommandRecorder(limit=2)
    long_command = "git " + "x" * 80

    entry = recorder.record(long_command, 0.01234, "here.py:1")
    recorder.record("a", 0.0, "here.py:2")
    recorder.record("b", 0.0, "here.py:3")

    assert entry.command == long_command[:47] + "..."
    assert len(entry.command) == 50
    assert entry.duration_ms == 12.3
    assert [r.command for r in recorder.records] == ["a", "b"]


def test_describe_quotes_arguments() -> None:
    assert describe(["git", "commit", "-m", "two words"]) == "git commit -m 'two words'"
    assert describe("git status | cat") == "git status | cat"


def test_run_async_delivers_lines_on_loop(tmp_path: Path) -> None:
    loop = SimpleLoop()
    jobs = JobRunner(loop.schedule, cwd=tmp_path)
    stdout: list[str] = []
    stderr: list[str] = []
    results: list[JobResult] = []

    handle = jobs.run_async(
        ["sh", "-c", "echo one; echo two; echo oops >&2; exit 3"],
        on_stdout_line=stdout.append,
        on_stderr_line=stderr.append,
        on_exit=results.append,
    )

    assert handle is not None
    assert handle.job_id in jobs.active_jobs
    assert loop.run_until(lambda: bool(results), timeout=10)
    assert stdout == ["one", "two"]
    assert stderr == ["oops"]
    assert results[0].exit_status == 3
    assert results[0].stdout == "one\ntwo"
    assert results[0].error_text == "oops"
    assert jobs.active_jobs == {}


def test_run_async_start_failure_reports_through_loop(tmp_path: Path) -> None:
    loop = SimpleLoop()
    jobs = JobRunner(loop.schedule, cwd=tmp_path)
    results: list[JobResult] = []

    handle = jobs.run_async(["gitcast-no-such-binary"], on_exit=results.append)

    assert handle is None
    assert results == []
    assert loop.run_pending() == 1
    assert results == [JobResult(-1, "", START_FAILURE, 0.0)]
    assert jobs.active_jobs == {}


def test_cancel_all_terminates_jobs(tmp_path: Path) -> None:
    loop = SimpleLoop()
    jobs = JobRunner(loop.schedule, cwd=tmp_path)
    results: list[JobResult] = []
    jobs.run_async(["sleep", "30"], on_exit=results.append)
    jobs.run_async(["sleep", "30"], on_exit=results.append)

    assert jobs.cancel_all() == 2
    assert jobs.active_jobs == {}
    assert loop.run_until(lambda: len(results) == 2, timeout=10)
    assert all(result.exit_status < 0 for result in results)
    assert jobs.cancel_all() == 0


def test_progress_rotates_and_stops() -> None:
    timers = ManualTimers()
    notifier = FakeNotifier()
    indicator = ProgressIndicator(timers.set_interval, notifier)

    stop = indicator.start("git push origin main")
    slot = "gitcast_progress_git push origin main"
    assert notifier.slots == {slot: f"{FRAMES[0]} git push origin main"}

    timers.tick()
    assert notifier.slots[slot] == f"{FRAMES[1]} git push origin main"

    stop()
    stop()
    timers.tick()
    assert notifier.slots == {}
    assert timers.cancelled == 1
    assert [event[0] for event in notifier.events] == ["notify", "notify", "clear"]


def test_progress_label_truncates() -> None:
    command = "git pull --rebase origin a-really-long-branch-name"
    assert progress_label(command) == command[:LABEL_WIDTH] + "..."
    assert progress_label("git push") == "git push"


def test_progress_follows_async_job(tmp_path: Path) -> None:
    loop = SimpleLoop()
    notifier = FakeNotifier()
    jobs = JobRunner(loop.schedule, ProgressIndicator(loop.set_interval, notifier), cwd=tmp_path)
    results: list[JobResult] = []

    jobs.run_async(["sh", "-c", "sleep 0.3"], on_exit=results.append)
    assert len(notifier.slots) == 1

    assert loop.run_until(lambda: bool(results), timeout=10)
    assert notifier.slots == {}
    assert sum(1 for event in notifier.events if event[0] == "notify") >= 2


def test_loop_runs_scheduled_callbacks_in_order() -> None:
    loop = SimpleLoop()
    seen: list[int] = []
    for number in range(3):
        loop.schedule(lambda number=number: seen.append(number))

    assert loop.run_pending() == 3
    assert seen == [0, 1, 2]
    assert loop.run_until(lambda: False, timeout=0.05) is False
