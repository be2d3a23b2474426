"""Repository-wide commands that are not tied to a dashboard line."""

import re

from gitcast.effects import AskText, Choose, Confirm, Effect, Outcome, RunJob
from gitcast.git import DEFAULT_TRACKING, Git
from gitcast.models import CommandResult, StatusSnapshot
from gitcast.pipeline import Pipeline, step

BRANCH_NAME_RE = re.compile(r"^[\w\-/]+$")
INVALID_BRANCH_NAME = "Invalid branch name. Use only letters, numbers, hyphens, underscores, and slashes."
DIRTY_TREE = "Working directory has uncommitted changes. Please commit or stash them first."
REBASE_HINT = "Resolve conflicts, then run git rebase --continue or git rebase --abort"
FIXUP_CANDIDATES = 20


def _report(result: CommandResult, success: str, failure: str) -> Outcome:
    if result.ok:
        return Outcome.done(success)
    return Outcome.error(f"{failure}: {result.error_text}")


def commit(git: Git, snapshot: StatusSnapshot) -> Effect:
    """Ask for a message and commit the staged changes."""
    if not snapshot.staged:
        return Outcome.warn("No staged changes to commit")

    def submit(message: str) -> Outcome:
        message = message.strip()
        if not message:
            return Outcome(message="Commit cancelled - no message provided")
        return _report(git.commit(message), "Commit created successfully", "Git commit failed")

    return AskText("Commit message:", submit)


def amend(git: Git, snapshot: StatusSnapshot) -> Effect:
    """Fold the staged changes into HEAD, keeping its message."""
    if not snapshot.staged:
        return Outcome.warn("No staged changes for amend")
    if not git.has_head():
        return Outcome.warn("No commits to amend")
    return _report(git.amend(), "Commit amended successfully", "Git commit amend failed")


def fixup(git: Git, snapshot: StatusSnapshot) -> Effect:
    """Pick a recent commit and create a fixup commit for it."""
    if not snapshot.staged:
        return Outcome.warn("No staged changes for fixup")
    entries = git.oneline_log(limit=FIXUP_CANDIDATES)
    if not entries:
        return Outcome.error("No commits found for fixup")

    def choose(index: int) -> Outcome:
        revision = entries[index].split()[0]
        return _report(
            git.fixup(revision),
            f"Fixup commit created for {revision[:8]}",
            "Git commit fixup failed",
        )

    return Choose.of("Select commit to fixup:", entries, choose)


def switch_to(git: Git, name: str) -> Outcome:
    if name == git.current_branch():
        return Outcome.warn(f"Already on {name}")
    result = git.switch_branch(name)
    if not result.ok:
        return Outcome.error(f"Failed to checkout branch: {result.error_text}")
    return Outcome.done(f"Switched to branch: {name}")


def switch_branch(git: Git) -> Effect:
    """Offer local branches, most recently checked out first."""
    branches = git.recent_branches()
    if not branches:
        return Outcome.warn("No other branches found")
    return Choose.of("Switch to branch:", branches, lambda index: switch_to(git, branches[index]))


def create_branch(git: Git, name: str | None = None) -> Effect:
    """Create a branch from HEAD and switch to it."""

    def submit(value: str) -> Outcome:
        value = value.strip()
        if not value:
            return Outcome(message="Branch creation cancelled - no name provided")
        if not BRANCH_NAME_RE.match(value):
            return Outcome.error(INVALID_BRANCH_NAME)
        if git.branch_exists(value):
            return Outcome.error(f"Branch '{value}' already exists")
        return _report(
            git.create_branch(value),
            f"Created and switched to branch '{value}'",
            "Failed to create branch",
        )

    if name is not None:
        return submit(name)
    return AskText("New branch name:", submit)


def tracking_candidates(git: Git) -> list[str]:
    """Local branches with main and master first, the rest alphabetical."""
    branches = git.local_branches()
    preferred = [name for name in DEFAULT_TRACKING if name in branches]
    return preferred + sorted(name for name in branches if name not in preferred)


def set_tracking(git: Git, name: str) -> Outcome:
    if not git.branch_exists(name):
        return Outcome.error(f"Branch '{name}' does not exist")
    if name == git.tracking_branch():
        return Outcome(message=f"Tracking branch is already {name}")
    result = git.set_tracking_branch(name)
    if not result.ok:
        return Outcome.error(f"Failed to set tracking branch: {result.error_text}")
    return Outcome.done(f"Set tracking branch to: {name}")


def pick_tracking_branch(git: Git) -> Effect:
    branches = tracking_candidates(git)
    if not branches:
        return Outcome.warn("No local branches found")
    current = git.tracking_branch()
    labels = [f"{name} (current)" if name == current else name for name in branches]
    return Choose.of(
        "Select tracking branch:", labels, lambda index: set_tracking(git, branches[index])
    )


def _attached_branch(git: Git) -> str | None:
    branch = git.current_branch()
    return None if branch == "HEAD" else branch


def pull(git: Git) -> Effect:
    """Rebase the current branch onto its counterpart on origin."""
    branch = _attached_branch(git)
    if branch is None:
        return Outcome.warn("Could not determine current branch")
    return RunJob(
        Pipeline(
            f"Pull {branch}",
            [
                step(
                    "git", "pull", "--rebase", "origin", branch,
                    failure="Pull rebase failed",
                    partial=True,
                )
            ],
            "Pull rebase completed",
        )
    )


def push(git: Git, force: bool = False) -> Effect:
    """Push the current branch to origin; forced pushes use --force-with-lease."""
    branch = _attached_branch(git)
    if branch is None:
        return Outcome.warn("Could not determine current branch")
    command = ["git", "push", "origin", branch]
    if force:
        command.append("--force-with-lease")
    job = RunJob(
        Pipeline(
            f"Push {branch}",
            [step(*command, failure="Force push failed" if force else "Push failed")],
            "Force push completed" if force else "Push completed",
        )
    )
    if force:
        return Confirm(
            f"Force push {branch} to origin? This will overwrite the remote branch.",
            lambda: job,
        )
    return job


def _tracking_preconditions(git: Git) -> tuple[str, str] | Outcome:
    current = _attached_branch(git)
    if current is None:
        return Outcome.error("Could not determine current branch")
    tracking = git.tracking_branch()
    if tracking is None:
        return Outcome.warn("No tracking branch found")
    if current == tracking:
        return Outcome.warn(f"Already on {tracking} branch")
    if not git.is_clean():
        return Outcome.warn(DIRTY_TREE)
    return current, tracking


def rebase(git: Git) -> Effect:
    """Rebase the current branch onto the tracking branch."""
    checked = _tracking_preconditions(git)
    if isinstance(checked, Outcome):
        return checked
    current, tracking = checked
    return RunJob(
        Pipeline(
            f"Rebase {current} onto {tracking}",
            [
                step(
                    "git", "rebase", tracking,
                    failure="Rebase failed",
                    partial=True,
                    hint=REBASE_HINT,
                )
            ],
            f"Successfully rebased {current} onto {tracking}",
        )
    )


def squash_merge(git: Git) -> Effect:
    """Squash the current branch into one commit on the tracking branch."""
    checked = _tracking_preconditions(git)
    if isinstance(checked, Outcome):
        return checked
    current, tracking = checked
    commits = git.oneline_log(f"{tracking}..{current}")
    if not commits:
        return Outcome.warn(f"No commits to merge from {current}")

    def submit(message: str) -> Effect:
        message = message.strip()
        if not message:
            return Outcome(message="Squash merge cancelled - no commit message provided")
        restore = (("git", "reset", "--hard", "-q", "HEAD"), ("git", "checkout", current))
        steps = [
            step("git", "checkout", tracking, failure="Failed to checkout tracking branch"),
            step("git", "merge", "--squash", current, failure="Squash merge failed", rollback=restore),
            step(
                "git", "commit", "--no-verify", "-m", message,
                failure="Failed to commit squashed changes",
                rollback=restore,
            ),
        ]
        return RunJob(
            Pipeline(
                f"Squash merge {current} into {tracking}",
                steps,
                f"Successfully squash merged {current} into {tracking} (now on {tracking})",
            )
        )

    return AskText(
        "Squash commit message:",
        submit,
        default=f"Squash merge {current} ({len(commits)} commits)",
    )
