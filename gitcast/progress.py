"""Spinner notifications for long-running jobs."""

from collections.abc import Callable
from typing import Protocol

FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"
INTERVAL = 0.1
LABEL_WIDTH = 30

SetInterval = Callable[[float, Callable[[], None]], Callable[[], None]]


class Notifier(Protocol):
    """A surface with replaceable notification slots."""

    def notify(self, slot: str, message: str) -> None: ...

    def clear(self, slot: str) -> None: ...


def progress_label(command: str) -> str:
    if len(command) > LABEL_WIDTH:
        return f"{command[:LABEL_WIDTH]}..."
    return command


class ProgressIndicator:
    """Rotate a glyph in a notification slot until stopped.

    `set_interval(seconds, callback)` must return a function that cancels the
    timer. Each tick replaces the previous render in the same slot.
    """

    def __init__(self, set_interval: SetInterval, notifier: Notifier) -> None:
        self.set_interval = set_interval
        self.notifier = notifier

    def start(self, command: str) -> Callable[[], None]:
        label = progress_label(command)
        slot = f"gitcast_progress_{label}"
        frame = 0
        stopped = False

        def tick() -> None:
            nonlocal frame
            if stopped:
                return
            self.notifier.notify(slot, f"{FRAMES[frame % len(FRAMES)]} {label}")
            frame += 1

        tick()
        cancel_timer = self.set_interval(INTERVAL, tick)

        def stop() -> None:
            nonlocal stopped
            if stopped:
                return
            stopped = True
            cancel_timer()
            self.notifier.clear(slot)

        return stop
