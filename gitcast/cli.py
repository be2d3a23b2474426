"""Command line entry point for gitcast."""

import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import click

from gitcast import commands
from gitcast.config import LOG_LEVELS, ConfigError, Settings, load_settings
from gitcast.effects import ERROR, Effect
from gitcast.git import GitError, find_repo_root
from gitcast.log import setup_logging
from gitcast.loop import SimpleLoop
from gitcast.progress import ProgressIndicator
from gitcast.prompts import EffectRunner, TerminalNotifier
from gitcast.render import plain_lines
from gitcast.runner import CommandRecorder, JobRunner, ProcessRunner
from gitcast.session import Session
from gitcast.tui import run_tui

logger = logging.getLogger(__name__)


@dataclass
class CliState:
    root: Path
    settings: Settings
    recorder: CommandRecorder | None

    def session(self) -> tuple[Session, EffectRunner]:
        """Build a session driven by a headless loop."""
        loop = SimpleLoop()
        progress = ProgressIndicator(loop.set_interval, TerminalNotifier())
        jobs = JobRunner(loop.schedule, progress, recorder=self.recorder, cwd=self.root)
        session = Session(self.root, self.settings, ProcessRunner(self.root, self.recorder), jobs)
        return session, EffectRunner(session, loop)


def _print_records(recorder: CommandRecorder) -> None:
    for record in recorder.records:
        click.echo(f"{record.duration_ms:>8.1f}ms  {record.call_site:<20} {record.command}", err=True)


def _print_dashboard(state: CliState) -> None:
    session, _ = state.session()
    for line in plain_lines(session.refresh()):
        click.echo(line)


def _run(state: CliState, build: Callable[[Session], Effect]) -> None:
    session, runner = state.session()
    outcome = runner.resolve(build(session))
    if outcome is not None and outcome.level == ERROR:
        raise SystemExit(1)


@click.group(context_settings={"help_option_names": ["-h", "--help"]}, invoke_without_command=True)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Settings file (default: $XDG_CONFIG_HOME/gitcast/settings.json).",
)
@click.option("--log-level", type=click.Choice(LOG_LEVELS, case_sensitive=False), default=None)
@click.option("--perf", is_flag=True, help="Record the duration of every external command.")
@click.pass_context
def main(ctx: click.Context, config_path: Path | None, log_level: str | None, perf: bool) -> None:
    """gitcast: git working tree dashboard."""
    try:
        settings = load_settings(config_path)
    except ConfigError as exc:
        click.echo(f"gitcast: {exc}", err=True)
        raise SystemExit(1)

    setup_logging(log_level or settings.log_level)
    recorder = None
    if perf or settings.performance_tracking:
        recorder = CommandRecorder()
        logging.getLogger("gitcast.perf").setLevel(logging.DEBUG)
        ctx.call_on_close(lambda: _print_records(recorder))

    try:
        root = find_repo_root(Path.cwd())
    except GitError:
        click.echo("gitcast: not inside a git repository", err=True)
        raise SystemExit(1)

    state = CliState(root=root, settings=settings, recorder=recorder)
    ctx.obj = state
    if ctx.invoked_subcommand is not None:
        return
    if not sys.stdin.isatty() or not sys.stdout.isatty():
        _print_dashboard(state)
        return
    logger.info("starting dashboard in %s", root)
    run_tui(root, settings, recorder)


@main.command()
@click.pass_obj
def status(state: CliState) -> None:
    """Print the dashboard as plain text."""
    _print_dashboard(state)


@main.command()
@click.argument("branch", required=False)
@click.pass_obj
def switch(state: CliState, branch: str | None) -> None:
    """Switch branch; picks from recent branches when BRANCH is omitted."""
    if branch:
        _run(state, lambda session: commands.switch_to(session.git, branch))
    else:
        _run(state, lambda session: commands.switch_branch(session.git))


@main.command("new")
@click.argument("branch", required=False)
@click.pass_obj
def new_branch(state: CliState, branch: str | None) -> None:
    """Create a branch from HEAD and switch to it."""
    _run(state, lambda session: commands.create_branch(session.git, branch))


@main.command()
@click.argument("branch", required=False)
@click.option("--pick", is_flag=True, help="Choose the tracking branch interactively.")
@click.pass_obj
def track(state: CliState, branch: str | None, pick: bool) -> None:
    """Show or set the branch the dashboard compares against."""
    if pick:
        _run(state, lambda session: commands.pick_tracking_branch(session.git))
    elif branch:
        _run(state, lambda session: commands.set_tracking(session.git, branch))
    else:
        session, _ = state.session()
        click.echo(session.git.tracking_branch() or "No tracking branch found")


@main.command()
@click.option("--amend", is_flag=True, help="Fold staged changes into HEAD.")
@click.option("--fixup", is_flag=True, help="Create a fixup commit for a recent commit.")
@click.pass_obj
def commit(state: CliState, amend: bool, fixup: bool) -> None:
    """Commit the staged changes."""
    if amend:
        _run(state, lambda session: commands.amend(session.git, session.snapshot()))
    elif fixup:
        _run(state, lambda session: commands.fixup(session.git, session.snapshot()))
    else:
        _run(state, lambda session: commands.commit(session.git, session.snapshot()))


@main.command()
@click.pass_obj
def pull(state: CliState) -> None:
    """Pull with rebase from origin."""
    _run(state, lambda session: commands.pull(session.git))


@main.command()
@click.option("--force", is_flag=True, help="Push with --force-with-lease.")
@click.pass_obj
def push(state: CliState, force: bool) -> None:
    """Push the current branch to origin."""
    _run(state, lambda session: commands.push(session.git, force=force))


@main.command()
@click.pass_obj
def rebase(state: CliState) -> None:
    """Rebase the current branch onto the tracking branch."""
    _run(state, lambda session: commands.rebase(session.git))


@main.command()
@click.pass_obj
def squash(state: CliState) -> None:
    """Squash-merge the current branch into the tracking branch."""
    _run(state, lambda session: commands.squash_merge(session.git))


if __name__ == "__main__":
    main()
