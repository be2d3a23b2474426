"""Git queries, mutations and output parsers."""

import logging
import os
import re
import shutil
from collections.abc import Iterable, Sequence
from pathlib import Path

from gitcast.models import (
    BranchStatus,
    CommandResult,
    Commit,
    ConflictReport,
    FileChange,
    StatusSnapshot,
)
from gitcast.runner import ProcessRunner

logger = logging.getLogger(__name__)

TRACKING_CONFIG_KEY = "gitcast.trackingbranch"
DEFAULT_TRACKING = ("main", "master")
UNMERGED = frozenset({"DD", "AU", "UD", "UA", "DU", "AA", "UU"})
COMMIT_PREFIX = "COMMIT:"
LOG_FORMAT = f"{COMMIT_PREFIX}%H|%h|%an|%ae|%ar|%s"
RECENT_REFLOG_ENTRIES = 30

_HEADER_RE = re.compile(r"^## (?P<branch>.+?)(?:\.\.\.(?P<upstream>\S+))?(?: \[(?P<state>[^\]]+)\])?$")
_AHEAD_RE = re.compile(r"ahead (\d+)")
_BEHIND_RE = re.compile(r"behind (\d+)")
_CHECKOUT_RE = re.compile(r"^checkout: moving from (\S+) to (\S+)$")
_HEX_RE = re.compile(r"^[0-9a-f]{7,40}$")
_LEGACY_ENTRY_RE = re.compile(r"^  (?:base|our|their)\s+\d{6} [0-9a-f]+ (.+)$")
_ESCAPES = {"a": 7, "b": 8, "t": 9, "n": 10, "v": 11, "f": 12, "r": 13, '"': 34, "\\": 92}


class GitError(Exception):
    """Git command failed."""

    def __init__(self, cmd: Sequence[str], stderr: str) -> None:
        self.cmd = cmd
        self.stderr = stderr
        super().__init__(f"git {' '.join(cmd)}: {stderr}")


def find_repo_root(cwd: Path, runner: ProcessRunner | None = None) -> Path:
    """Get the top-level directory of the working tree containing `cwd`."""
    args = ["rev-parse", "--show-toplevel"]
    result = (runner or ProcessRunner()).run(["git", *args], cwd=cwd)
    if not result.ok or not result.stdout.strip():
        raise GitError(args, result.error_text)
    return Path(result.stdout.strip())


def unquote_path(path: str) -> str:
    """Undo git's C-style quoting of unusual path names."""
    if len(path) < 2 or not (path.startswith('"') and path.endswith('"')):
        return path
    body = path[1:-1]
    out = bytearray()
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            nxt = body[i + 1]
            octal = body[i + 1 : i + 4]
            if len(octal) == 3 and all(c in "01234567" for c in octal):
                out.append(int(octal, 8))
                i += 4
                continue
            out.append(_ESCAPES.get(nxt, ord(nxt)))
            i += 2
            continue
        out.extend(ch.encode("utf-8"))
        i += 1
    return out.decode("utf-8", errors="replace")


def _numstat_path(path: str) -> str:
    if " => " not in path:
        return unquote_path(path)
    if "{" in path and "}" in path:
        prefix, rest = path.split("{", 1)
        inner, suffix = rest.split("}", 1)
        new = inner.split(" => ", 1)[1]
        return (prefix + new + suffix).replace("//", "/")
    return unquote_path(path.split(" => ", 1)[1])


def _count(value: str) -> int:
    return int(value) if value.isdigit() else 0


def parse_numstat(output: str) -> dict[str, tuple[int, int]]:
    """Map path to (added, removed) from `git diff --numstat` output."""
    counts: dict[str, tuple[int, int]] = {}
    for line in output.splitlines():
        parts = line.split("\t", 2)
        if len(parts) != 3:
            continue
        added, removed, path = parts
        counts[_numstat_path(path)] = (_count(added), _count(removed))
    return counts


def parse_porcelain(
    output: str,
) -> tuple[list[tuple[str, str]], list[tuple[str, str]], list[str], list[str]]:
    """Split porcelain v1 status into staged, modified, untracked and conflicted."""
    staged: list[tuple[str, str]] = []
    modified: list[tuple[str, str]] = []
    untracked: list[str] = []
    conflicted: list[str] = []
    for line in output.splitlines():
        if len(line) < 4 or line.startswith("## "):
            continue
        code, rest = line[:2], line[3:]
        if code[0] in "RC" and " -> " in rest:
            rest = rest.split(" -> ", 1)[1]
        path = unquote_path(rest)
        if code == "??":
            untracked.append(path)
        elif code == "!!":
            continue
        elif code in UNMERGED:
            # kept out of staged; a reset there would drop the merge stages
            conflicted.append(path)
            modified.append((code[1], path))
        else:
            if code[0] not in " ?":
                staged.append((code[0], path))
            if code[1] not in " ?":
                modified.append((code[1], path))
    return staged, modified, untracked, conflicted


def parse_branch_header(line: str) -> BranchStatus:
    """Parse the `## branch...upstream [ahead N, behind M]` status line."""
    match = _HEADER_RE.match(line.strip())
    if not match:
        return BranchStatus(branch="HEAD")
    branch = match.group("branch")
    for prefix in ("No commits yet on ", "Initial commit on "):
        if branch.startswith(prefix):
            branch = branch[len(prefix) :]
    if branch.startswith("HEAD ("):
        branch = "HEAD"
    state = match.group("state") or ""
    ahead = _AHEAD_RE.search(state)
    behind = _BEHIND_RE.search(state)
    return BranchStatus(
        branch=branch,
        ahead=int(ahead.group(1)) if ahead else 0,
        behind=int(behind.group(1)) if behind else 0,
        upstream=match.group("upstream"),
    )


def parse_log(output: str) -> list[Commit]:
    """Parse `COMMIT:`-prefixed log records followed by numstat lines."""
    commits: list[Commit] = []
    current: dict[str, object] | None = None

    def flush() -> None:
        if current is not None:
            commits.append(Commit(**current))  # type: ignore[arg-type]

    for line in output.splitlines():
        if line.startswith(COMMIT_PREFIX):
            flush()
            fields = line[len(COMMIT_PREFIX) :].split("|", 5)
            if len(fields) != 6:
                current = None
                continue
            full, short, author, email, date, subject = fields
            current = {
                "hash": full,
                "short_hash": short,
                "author": author,
                "email": email,
                "date": date,
                "subject": subject,
                "added": 0,
                "removed": 0,
            }
        elif current is not None and line.strip():
            parts = line.split("\t", 2)
            if len(parts) == 3:
                current["added"] = int(current["added"]) + _count(parts[0])  # type: ignore[call-overload]
                current["removed"] = int(current["removed"]) + _count(parts[1])  # type: ignore[call-overload]
    flush()
    return commits


def parse_name_status(output: str) -> list[tuple[str, str]]:
    """Parse `--name-status` output into (status letter, path)."""
    entries: list[tuple[str, str]] = []
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) < 2 or not parts[0]:
            continue
        entries.append((parts[0][0], unquote_path(parts[-1])))
    return entries


def parse_merge_tree(output: str) -> list[str]:
    """Conflicted paths from `merge-tree --write-tree --name-only` output."""
    lines = output.splitlines()[1:]
    paths: list[str] = []
    for line in lines:
        if not line.strip():
            break
        path = unquote_path(line)
        if path not in paths:
            paths.append(path)
    return paths


def parse_legacy_merge_tree(output: str) -> list[str]:
    """Conflicted paths from three-argument `merge-tree` output."""
    paths: list[str] = []
    in_both = False
    path: str | None = None
    for line in output.splitlines():
        if line and line[0] not in " +-@":
            in_both = line.strip() == "changed in both"
            path = None
            continue
        entry = _LEGACY_ENTRY_RE.match(line)
        if entry:
            path = entry.group(1)
            continue
        if in_both and path and line.startswith("+<<<<<<<") and path not in paths:
            paths.append(path)
    return paths


def merge_file_changes(
    entries: Iterable[tuple[str, str]], counts: dict[str, tuple[int, int]]
) -> tuple[FileChange, ...]:
    return tuple(
        FileChange(status, path, *counts.get(path, (0, 0))) for status, path in entries
    )


def count_lines(path: Path) -> int:
    """Count newline characters in a file, like `wc -l`."""
    if not path.is_file():
        return 0
    try:
        with path.open("rb") as handle:
            return sum(chunk.count(b"\n") for chunk in iter(lambda: handle.read(65536), b""))
    except OSError:
        return 0


class Git:
    """Git access for one working tree. Queries fail safe to empty results."""

    def __init__(self, root: Path, runner: ProcessRunner | None = None) -> None:
        self.root = root
        self.runner = runner or ProcessRunner(root)

    def run(self, *args: str) -> CommandResult:
        return self.runner.run(["git", *args], cwd=self.root)

    def _stdout(self, *args: str) -> str | None:
        result = self.run(*args)
        if not result.ok:
            return None
        return result.stdout

    def _value(self, *args: str) -> str | None:
        out = self._stdout(*args)
        if out is None:
            return None
        return out.strip() or None

    # Status

    def status_snapshot(self) -> StatusSnapshot:
        """Collect staged, modified and untracked files in three git calls."""
        status = self._stdout("status", "--porcelain=v1", "--untracked-files=all")
        if status is None:
            return StatusSnapshot()
        staged, modified, untracked, conflicted = parse_porcelain(status)
        staged_counts = parse_numstat(self._stdout("diff", "--numstat", "--cached") or "")
        modified_counts = parse_numstat(self._stdout("diff", "--numstat") or "")
        return StatusSnapshot(
            staged=merge_file_changes(staged, staged_counts),
            modified=merge_file_changes(modified, modified_counts),
            untracked=tuple(
                FileChange("??", path, count_lines(self.root / path), 0) for path in untracked
            ),
            conflicted=tuple(conflicted),
        )

    def is_clean(self) -> bool:
        out = self._stdout("status", "--porcelain")
        return out is not None and not out.strip()

    def has_head(self) -> bool:
        return self.run("rev-parse", "--verify", "--quiet", "HEAD").ok

    # Branches

    def current_branch(self) -> str:
        name = self._value("symbolic-ref", "--quiet", "--short", "HEAD")
        return name or "HEAD"

    def branch_exists(self, name: str) -> bool:
        if not name:
            return False
        return self.run("show-ref", "--verify", "--quiet", f"refs/heads/{name}").ok

    def local_branches(self) -> list[str]:
        out = self._stdout("for-each-ref", "--format=%(refname:short)", "refs/heads")
        if out is None:
            return []
        return sorted(line.strip() for line in out.splitlines() if line.strip())

    def branch_header(self) -> BranchStatus:
        out = self._stdout("status", "-b", "--porcelain=v1", "--untracked-files=no")
        if not out:
            return BranchStatus(branch="HEAD")
        return parse_branch_header(out.splitlines()[0])

    def tracking_branch(self) -> str | None:
        """Configured comparison branch, else main, else master."""
        configured = self._value("config", "--local", "--get", TRACKING_CONFIG_KEY)
        if configured and self.branch_exists(configured):
            return configured
        for candidate in DEFAULT_TRACKING:
            if self.branch_exists(candidate):
                return candidate
        return None

    def set_tracking_branch(self, name: str) -> CommandResult:
        return self.run("config", "--local", TRACKING_CONFIG_KEY, name)

    def ahead_behind(self, left: str, right: str) -> tuple[int, int] | None:
        out = self._value("rev-list", "--left-right", "--count", f"{left}...{right}")
        if not out:
            return None
        parts = out.split()
        if len(parts) != 2 or not all(part.isdigit() for part in parts):
            return None
        return int(parts[0]), int(parts[1])

    def branch_status(self) -> BranchStatus:
        """Current branch plus ahead/behind against upstream or tracking branch."""
        header = self.branch_header()
        tracking = self.tracking_branch()
        ahead, behind = header.ahead, header.behind
        if not (ahead or behind) and tracking and header.branch != tracking:
            counts = self.ahead_behind(header.branch, tracking)
            if counts is not None:
                ahead, behind = counts
        return BranchStatus(
            branch=header.branch,
            ahead=ahead,
            behind=behind,
            upstream=header.upstream,
            tracking=tracking,
        )

    def recent_branches(self) -> list[str]:
        """Local branches ordered by checkout history, current branch excluded."""
        current = self.current_branch()
        local = self.local_branches()
        known = set(local)
        ordered: list[str] = []
        out = self._stdout(
            "reflog",
            "--grep-reflog=checkout: moving from",
            "--format=%gs",
            "-n",
            str(RECENT_REFLOG_ENTRIES),
        )
        for line in (out or "").splitlines():
            match = _CHECKOUT_RE.match(line.strip())
            if not match:
                continue
            name = match.group(1)
            if name == current or name not in known or _HEX_RE.match(name) or name in ordered:
                continue
            ordered.append(name)
        ordered.extend(name for name in local if name != current and name not in ordered)
        return ordered

    def create_branch(self, name: str) -> CommandResult:
        return self.run("checkout", "-b", name)

    def switch_branch(self, name: str) -> CommandResult:
        return self.run("checkout", name)

    def merge_base(self, left: str, right: str) -> str | None:
        return self._value("merge-base", left, right)

    def potential_conflicts(self, left: str, right: str) -> tuple[str, ...]:
        """Paths that would conflict if `right` were merged into `left`."""
        result = self.run("merge-tree", "--write-tree", "--name-only", "--no-messages", left, right)
        if result.exit_status == 0:
            return ()
        if result.exit_status == 1 and result.stdout.strip():
            return tuple(parse_merge_tree(result.stdout))
        base = self.merge_base(left, right)
        if not base:
            return ()
        legacy = self._stdout("merge-tree", base, left, right)
        return tuple(parse_legacy_merge_tree(legacy or ""))

    def conflict_report(self, snapshot: StatusSnapshot, tracking: str | None) -> ConflictReport:
        current = self.current_branch()
        potential: tuple[str, ...] = ()
        if tracking and tracking != current:
            potential = self.potential_conflicts(current, tracking)
        return ConflictReport(active=snapshot.conflicted, potential=potential)

    def commits_between(self, base: str, tip: str) -> list[str]:
        out = self._stdout("log", "--format=%h %s (%an, %ar)", f"{base}..{tip}")
        return [line for line in (out or "").splitlines() if line.strip()]

    def oneline_log(self, revision: str | None = None, limit: int | None = None) -> list[str]:
        args = ["log", "--oneline"]
        if limit is not None:
            args += ["-n", str(limit)]
        if revision:
            args.append(revision)
        out = self._stdout(*args)
        return [line for line in (out or "").splitlines() if line.strip()]

    def _file_changes(self, command: str, *args: str) -> tuple[FileChange, ...]:
        names = parse_name_status(self._stdout(command, "--name-status", *args) or "")
        counts = parse_numstat(self._stdout(command, "--numstat", *args) or "")
        return merge_file_changes(names, counts)

    def branch_files(self, tracking: str) -> tuple[FileChange, ...]:
        return self._file_changes("diff", f"{tracking}...HEAD")

    # Commits

    def recent_commits(self, limit: int) -> list[Commit]:
        out = self._stdout("log", "--numstat", f"--format={LOG_FORMAT}", "-n", str(limit))
        return parse_log(out or "")

    def commit_info(self, revision: str) -> Commit | None:
        out = self._stdout(
            "show", "-s", "--date=iso", "--format=%H%x1f%h%x1f%an%x1f%ae%x1f%ad%x1f%s", revision
        )
        if not out:
            return None
        fields = out.strip("\n").split("\x1f")
        if len(fields) != 6:
            return None
        return Commit(*fields)

    def commit_files(self, revision: str) -> tuple[FileChange, ...]:
        return self._file_changes("show", "--format=", revision)

    def commit_subject(self, revision: str) -> str:
        return self._value("log", "-1", "--format=%s", revision) or ""

    def parent_of(self, revision: str) -> str | None:
        return self._value("rev-parse", "--verify", "--quiet", f"{revision}^")

    def reset_mixed(self, target: str) -> CommandResult:
        return self.run("reset", "--mixed", "-q", target)

    def delete_head_ref(self) -> CommandResult:
        return self.run("update-ref", "-d", "HEAD")

    def commit(self, message: str) -> CommandResult:
        return self.run("commit", "--no-verify", "-m", message)

    def amend(self) -> CommandResult:
        return self.run("commit", "--amend", "--no-edit", "--no-verify")

    def fixup(self, revision: str) -> CommandResult:
        return self.run("commit", f"--fixup={revision}", "--no-verify")

    # Working tree

    def stage(self, path: str) -> CommandResult:
        """Stage a path; a path missing on disk is staged as a deletion."""
        if os.path.lexists(self.root / path):
            return self.run("add", "--", path)
        return self.run("rm", "--quiet", "--", path)

    def unstage(self, path: str) -> CommandResult:
        if self.has_head():
            return self.run("reset", "-q", "HEAD", "--", path)
        return self.run("rm", "--cached", "--quiet", "--", path)

    def discard(self, path: str) -> CommandResult:
        return self.run("checkout", "--", path)

    def delete_untracked(self, path: str) -> CommandResult:
        target = self.root / path
        command = f"rm -rf {path}"
        try:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            else:
                target.unlink()
        except OSError as exc:
            logger.warning("failed to delete %s: %s", target, exc)
            return CommandResult(command, 1, "", str(exc), 0.0)
        return CommandResult(command, 0, "", "", 0.0)
