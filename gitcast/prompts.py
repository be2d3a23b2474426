"""Terminal prompts for running dashboard effects outside the TUI."""

import sys
from collections.abc import Sequence
from typing import TextIO

import click
import questionary
from prompt_toolkit.completion import FuzzyCompleter, WordCompleter
from prompt_toolkit.shortcuts import prompt

from gitcast.dispatch import Dispatcher
from gitcast.effects import (
    ERROR,
    WARN,
    AskText,
    Choose,
    Confirm,
    Effect,
    OpenPath,
    Outcome,
    RunJob,
    ShowDetail,
    ShowOutput,
)
from gitcast.loop import SimpleLoop
from gitcast.session import Session

ANSI_RESET = "\x1b[0m"
ANSI_WARN = "\x1b[33m"
ANSI_ERROR = "\x1b[31m"
ANSI_CLEAR_LINE = "\r\x1b[2K"


def _colorize(text: str, color: str | None) -> str:
    if not color:
        return text
    return f"{color}{text}{ANSI_RESET}"


class TerminalNotifier:
    """Progress slots drawn on a single rewritten stderr line."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream or sys.stderr
        self._slots: dict[str, str] = {}

    def notify(self, slot: str, message: str) -> None:
        self._slots[slot] = message
        self._draw()

    def clear(self, slot: str) -> None:
        self._slots.pop(slot, None)
        self._draw()

    def _draw(self) -> None:
        if not self.stream.isatty():
            return
        self.stream.write(ANSI_CLEAR_LINE + "  ".join(self._slots.values()))
        self.stream.flush()


def pick(prompt_text: str, options: Sequence[str]) -> int | None:
    """Fuzzy-pick one option; returns its index or None."""
    if not options:
        return None
    completer = FuzzyCompleter(WordCompleter(list(options), ignore_case=True, sentence=True))
    selection = prompt(f"{prompt_text} ", completer=completer).strip()
    if selection in options:
        return list(options).index(selection)
    return None


def confirm(text: str) -> bool:
    return bool(questionary.confirm(text, default=False).unsafe_ask())


def ask_text(prompt_text: str, default: str = "") -> str:
    return prompt(f"{prompt_text} ", default=default)


def report(outcome: Outcome) -> None:
    if not outcome.message:
        return
    color = {WARN: ANSI_WARN, ERROR: ANSI_ERROR}.get(outcome.level)
    click.echo(_colorize(outcome.message, color), err=outcome.level != "info")


class EffectRunner:
    """Resolve effects with terminal prompts and a headless control loop."""

    def __init__(self, session: Session, loop: SimpleLoop) -> None:
        self.session = session
        self.loop = loop
        self._finished: list[Outcome] = []
        self.dispatcher = Dispatcher(session, notify=self._finished.append)

    def resolve(self, effect: Effect | None) -> Outcome | None:
        """Drive `effect` to completion and return the final outcome, if any."""
        effect = self.dispatcher.settle(effect) if isinstance(effect, RunJob) else effect
        while effect is not None:
            if isinstance(effect, Outcome):
                report(effect)
                return effect
            if isinstance(effect, Confirm):
                if not confirm(effect.prompt):
                    return self._cancelled()
                effect = self.dispatcher.follow(effect.on_confirm)
            elif isinstance(effect, Choose):
                index = pick(effect.prompt, effect.options)
                if index is None:
                    return self._cancelled()
                effect = self.dispatcher.follow(effect.on_choose, index)
            elif isinstance(effect, AskText):
                effect = self.dispatcher.follow(effect.on_submit, ask_text(effect.prompt, effect.default))
            elif isinstance(effect, ShowOutput):
                self._show_output(effect)
                return None
            elif isinstance(effect, OpenPath):
                click.edit(filename=str(effect.path), editor=self.session.settings.editor_command())
                return None
            elif isinstance(effect, ShowDetail):
                click.echo(effect.title)
                for line in effect.view.lines:
                    click.echo(line)
                return None
            else:
                return None
        return self._wait_for_job()

    def _cancelled(self) -> Outcome:
        outcome = Outcome(message="Cancelled.")
        report(outcome)
        return outcome

    def _show_output(self, effect: ShowOutput) -> None:
        if effect.warning:
            click.echo(_colorize(effect.warning, ANSI_WARN), err=True)
        result = self.session.runner.run(effect.command)
        click.echo(result.stdout.rstrip("\n") or result.stderr.rstrip("\n"))

    def _wait_for_job(self) -> Outcome | None:
        if not self.session.jobs.active_jobs and not self._finished:
            return None
        try:
            self.loop.run_until(lambda: bool(self._finished))
        except KeyboardInterrupt:
            self.session.jobs.cancel_all()
            self.loop.run_until(lambda: bool(self._finished), timeout=10)
        if not self._finished:
            return None
        outcome = self._finished.pop()
        sys.stderr.write(ANSI_CLEAR_LINE if sys.stderr.isatty() else "")
        report(outcome)
        return outcome
