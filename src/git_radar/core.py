"""
git-radar: Sweep every Git repository under your roots and see where each one stands.

Discovers repositories under one or more root paths, refreshes their
remote-tracking state with bounded parallelism (fetch, status and optionally
pull), and classifies each one as up to date, dirty, behind, ahead, pulled,
ignored or failed.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import math
import os
import shlex
import signal
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from pathlib import Path

import typer
from rich.console import Console
from rich.live import Live

from ._version import __version__
from .formatters import OutputFormatter
from .logger import RepoLoggerAdapter, get_logger, setup_logging
from .schema import get_tool_schema

DEFAULT_MAX_DEPTH = 8
DEFAULT_WORKERS = 4
DEFAULT_COMMAND_TIMEOUT = 30.0
DEFAULT_POLL_INTERVAL_MS = 50
REFRESH_PER_SECOND = 30

BEHIND_MARKER = "[behind "
AHEAD_MARKER = "[ahead "
NO_OUTPUT = "<ERR>"

# =============================================================================
# Domain Models
# =============================================================================


class ItemStatus(StrEnum):
    """Classification of a single repository."""

    FOUND = "found"
    CHECK = "check"
    IGNORE = "ignore"
    UP_TO_DATE = "up_to_date"
    DIRTY = "dirty"
    BEHIND = "behind"
    AHEAD = "ahead"  # terminal only, nothing is done for ahead repositories yet
    PULL = "pull"
    ERROR = "error"


class RunStatus(StrEnum):
    """Where a repository is in its processing run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    ERROR = "error"


_RUN_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.PENDING: frozenset({RunStatus.RUNNING}),
    RunStatus.RUNNING: frozenset({RunStatus.COMPLETE, RunStatus.ERROR}),
    RunStatus.COMPLETE: frozenset(),
    RunStatus.ERROR: frozenset(),
}


class Phase(StrEnum):
    """Overall phase of a fleet run."""

    SCANNING = "Scanning"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    ERROR = "Error"


class CommandKind(StrEnum):
    """Git commands issued against a repository."""

    REMOTE = "remote"
    FETCH = "fetch"
    STATUS = "status"
    LOG = "log"
    PULL = "pull"


GIT_COMMANDS: dict[CommandKind, tuple[str, ...]] = {
    CommandKind.REMOTE: ("remote", "-v"),
    CommandKind.FETCH: ("fetch",),
    CommandKind.STATUS: ("status", "-bs"),
    CommandKind.LOG: ("log", "--pretty=(%cd) %s", "--date=relative", "-10"),
    CommandKind.PULL: ("pull",),
}

# Search order for the stderr line shown against a failed repository
_DIAGNOSTIC_ORDER = (
    CommandKind.FETCH,
    CommandKind.STATUS,
    CommandKind.LOG,
    CommandKind.REMOTE,
    CommandKind.PULL,
)


class GitRadarError(Exception):
    """Base class for git-radar errors."""


class DiscoveryError(GitRadarError):
    """A root path could not be scanned for repositories."""


class RecoverableError(GitRadarError):
    """A repository could not be classified and there is nothing to show for it.

    Runners raise this to end a repository as Error without keeping a cause.
    """


class CommandFailedError(GitRadarError):
    """A git command exited nonzero, timed out or could not be started."""

    def __init__(self, kind: CommandKind, result: ProcessResult):
        self.kind = kind
        self.result = result
        super().__init__(self._describe())

    def _describe(self) -> str:
        result = self.result
        if result.timed_out:
            reason = f"timed out after {result.duration:.1f}s"
        elif result.exit_code is None:
            reason = "could not be started"
        else:
            reason = f"exited with {result.exit_code}"
        message = f"{self.kind}: `{result.command_line}` {reason}"
        if result.stderr:
            message += f": {result.stderr[0]}"
        return message


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of one subprocess invocation."""

    command: str
    args: tuple[str, ...]
    cwd: Path
    exit_code: int | None
    stdout: tuple[str, ...] = ()
    stderr: tuple[str, ...] = ()
    duration: float = 0.0
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def command_line(self) -> str:
        return shlex.join([self.command, *self.args])

    def first_line_or_error(self) -> str:
        """First stdout line, or a marker when the command printed nothing."""
        if not self.stdout:
            return NO_OUTPUT
        return self.stdout[0]

    def to_dict(self) -> dict:
        return {
            "command": self.command_line,
            "cwd": str(self.cwd),
            "exit_code": self.exit_code,
            "stdout": list(self.stdout),
            "stderr": list(self.stderr),
            "duration": round(self.duration, 3),
            "timed_out": self.timed_out,
        }


@dataclass(eq=False)
class RepoRecord:
    """A discovered repository and everything learned about it during a run."""

    path: Path
    path_relative: str
    status: ItemStatus = ItemStatus.FOUND
    run_status: RunStatus = RunStatus.PENDING
    results: dict[CommandKind, ProcessResult] = field(default_factory=dict)
    error: BaseException | None = None
    started: datetime | None = None
    duration: float = 0.0

    @property
    def is_complete(self) -> bool:
        return self.run_status in (RunStatus.COMPLETE, RunStatus.ERROR)

    def advance(self, run_status: RunStatus) -> None:
        """Move the run state forward, refusing anything that is not monotonic."""
        if run_status not in _RUN_TRANSITIONS[self.run_status]:
            raise ValueError(
                f"{self.path_relative}: run state cannot go from "
                f"{self.run_status} to {run_status}"
            )
        self.run_status = run_status


@dataclass(frozen=True)
class Classified:
    """The repository reached a terminal status."""

    status: ItemStatus


@dataclass(frozen=True)
class Failed:
    """Processing failed; the cause is kept for the operator."""

    cause: BaseException


@dataclass(frozen=True)
class FailedOpaque:
    """Processing failed with nothing worth surfacing."""


Outcome = Classified | Failed | FailedOpaque


@dataclass(frozen=True)
class RecordView:
    """Point-in-time, read-only view of one repository for presentation."""

    path: Path
    path_relative: str
    status: ItemStatus
    run_status: RunStatus
    detail: str
    is_complete: bool
    duration: float = 0.0
    error: str | None = None
    started: datetime | None = None
    # Every command run so far, in execution order
    commands: tuple[tuple[CommandKind, ProcessResult], ...] = ()

    @classmethod
    def of(cls, record: RepoRecord) -> RecordView:
        return cls(
            path=record.path,
            path_relative=record.path_relative,
            status=record.status,
            run_status=record.run_status,
            detail=status_line(record),
            is_complete=record.is_complete,
            duration=record.duration,
            error=str(record.error) if record.error is not None else None,
            started=record.started,
            commands=tuple(record.results.items()),
        )

    def to_dict(self) -> dict:
        return {
            "path": str(self.path),
            "path_relative": self.path_relative,
            "status": self.status.value,
            "run_status": self.run_status.value,
            "detail": self.detail,
            "is_complete": self.is_complete,
            "started": self.started.isoformat() if self.started else None,
            "duration": round(self.duration, 3),
            "error": self.error,
            "commands": {kind.value: result.to_dict() for kind, result in self.commands},
        }


@dataclass(frozen=True)
class RunSnapshot:
    """Point-in-time view of a whole fleet run."""

    phase: Phase
    records: tuple[RecordView, ...] = ()
    completed: int = 0
    total: int = 0
    elapsed: float = 0.0

    def status_counts(self) -> dict[str, int]:
        counts = {status.value: 0 for status in ItemStatus}
        for view in self.records:
            counts[view.status.value] += 1
        return counts

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "elapsed": round(self.elapsed, 3),
            "repositories": [view.to_dict() for view in self.records],
            "summary": {
                "total": self.total,
                "completed": self.completed,
                "errors": sum(1 for view in self.records if view.error is not None),
                **self.status_counts(),
            },
        }


def status_line(record: RepoRecord) -> str:
    """Derive the one-line detail shown next to a repository."""
    results = record.results
    if record.status == ItemStatus.ERROR:
        for kind in _DIAGNOSTIC_ORDER:
            result = results.get(kind)
            if result is not None and result.stderr:
                return result.stderr[0]
        return "Unknown error"
    if record.run_status == RunStatus.ERROR:
        return f"<ERROR> {record.error}"
    if record.status == ItemStatus.FOUND:
        return ""

    git_status = results.get(CommandKind.STATUS)
    git_log = results.get(CommandKind.LOG)
    if record.status == ItemStatus.IGNORE:
        if git_log is not None:
            return git_log.first_line_or_error()
        if git_status is not None:
            return git_status.first_line_or_error()
        return ""
    if git_status is not None:
        if record.status in (ItemStatus.BEHIND, ItemStatus.AHEAD):
            return git_status.first_line_or_error()
        if record.status == ItemStatus.DIRTY and len(git_status.stdout) > 1:
            return f"[{len(git_status.stdout) - 1} files] {git_status.stdout[1]}"
    if record.status == ItemStatus.CHECK:
        return ""
    if record.status == ItemStatus.UP_TO_DATE:
        if git_log is not None:
            if git_log.stdout:
                return git_log.stdout[0]
            if git_log.stderr:
                return git_log.stderr[0]
            if git_log.exit_code != 0:
                return f"exitcode: {git_log.exit_code}"
        return ""
    if record.status == ItemStatus.PULL:
        git_pull = results.get(CommandKind.PULL)
        if git_pull is not None:
            return git_pull.first_line_or_error()
    return record.status.value


# =============================================================================
# Run Configuration
# =============================================================================


def split_fragments(values: Sequence[str] | None) -> list[str]:
    """Flatten comma-separated option values into a list of path fragments."""
    fragments: list[str] = []
    for value in values or ():
        fragments.extend(part.strip() for part in value.split(",") if part.strip())
    return fragments


def build_exclude_predicate(
    fragments: Sequence[str], logger: logging.Logger | None = None
) -> Callable[[str], bool]:
    """Build a predicate that is true for relative paths ending with any fragment."""
    patterns = tuple(f for f in fragments if f)
    log = logger or get_logger("scan")

    def is_excluded(path_relative: str) -> bool:
        for fragment in patterns:
            if path_relative.endswith(fragment):
                log.info("Excluding: %s (because %s)", path_relative, fragment)
                return True
        return False

    return is_excluded


@dataclass(frozen=True)
class NoFetchPolicy:
    """Decide which repositories skip `git fetch`.

    A ``*`` entry disables fetch everywhere; any other entry disables it for
    repositories whose relative path ends with that fragment.
    """

    fragments: tuple[str, ...] = ()

    @classmethod
    def from_list(cls, values: Sequence[str]) -> NoFetchPolicy:
        return cls(tuple(v for v in values if v))

    @property
    def disables_all(self) -> bool:
        return "*" in self.fragments

    def should_fetch(self, path_relative: str) -> bool:
        if self.disables_all:
            return False
        return not any(path_relative.endswith(f) for f in self.fragments)


@dataclass
class RunOptions:
    """Everything a fleet run needs to know."""

    roots: list[Path] = field(default_factory=lambda: [Path.cwd()])
    exclude: list[str] = field(default_factory=list)
    no_fetch: list[str] = field(default_factory=list)
    pull: bool = False
    query_remotes: bool = False
    max_depth: int = DEFAULT_MAX_DEPTH
    workers: int = DEFAULT_WORKERS
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS

    def no_fetch_policy(self) -> NoFetchPolicy:
        return NoFetchPolicy.from_list(self.no_fetch)

    def exclude_predicate(self, logger: logging.Logger | None = None) -> Callable[[str], bool]:
        return build_exclude_predicate(self.exclude, logger)


def load_roots_file(roots_file: Path) -> list[Path]:
    """Load repository roots from a file (one path per line).

    Supports:
    - Comments starting with #
    - Environment variables: $HOME, ${HOME}, $DEV_ROOT, etc.
    - Tilde expansion: ~/path
    """
    roots = []
    try:
        with open(roots_file.expanduser()) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#"):
                    path = Path(os.path.expandvars(line)).expanduser()
                    if path.is_dir():
                        roots.append(path)
    except FileNotFoundError:
        pass
    return roots


def resolve_roots_file() -> Path | None:
    """Auto-resolve roots file from environment and standard locations.

    Priority order:
    1. $GIT_RADAR_ROOTS environment variable
    2. ~/.config/git-radar/roots (XDG-compliant)
    3. ~/.git-radar-roots
    """
    env_roots = os.environ.get("GIT_RADAR_ROOTS")
    if env_roots:
        env_path = Path(env_roots).expanduser()
        if env_path.is_file():
            return env_path

    xdg_path = Path.home() / ".config" / "git-radar" / "roots"
    if xdg_path.is_file():
        return xdg_path

    dotfile_path = Path.home() / ".git-radar-roots"
    if dotfile_path.is_file():
        return dotfile_path

    return None


# =============================================================================
# Process Execution
# =============================================================================

ProcessRunner = Callable[..., Awaitable[ProcessResult]]

_STREAM_LIMIT = 1024 * 1024
_REAP_TIMEOUT = 5.0


async def _read_lines(stream: asyncio.StreamReader | None, sink: list[str]) -> None:
    if stream is None:
        return
    while True:
        try:
            line = await stream.readline()
        except ValueError:
            # readline discards a line longer than the stream limit
            sink.append("<line too long>")
            continue
        if not line:
            return
        sink.append(line.decode("utf-8", errors="replace").rstrip("\r\n"))


def _kill_process_group(proc: asyncio.subprocess.Process) -> None:
    """Kill the process and everything it started in its session."""
    if hasattr(os, "killpg"):
        with contextlib.suppress(ProcessLookupError, PermissionError):
            os.killpg(proc.pid, signal.SIGKILL)
            return
    with contextlib.suppress(ProcessLookupError):
        proc.kill()


async def run_process(
    command: str,
    args: Sequence[str],
    cwd: Path | str,
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
    timeout: float = DEFAULT_COMMAND_TIMEOUT,
) -> ProcessResult:
    """Run a command to completion or timeout, capturing output as it arrives.

    stdout and stderr are read line by line while the process runs, so a
    timeout still returns whatever was printed before the deadline. A process
    that outlives ``timeout`` is killed and reaped, and the result is flagged
    ``timed_out`` with no exit code. The process runs in its own session, so
    the kill also reaches helpers it started (ssh, credential helpers), as it
    does when such helpers keep the pipes open after the process exits.

    Never raises for command failures: a nonzero exit is reported in the
    result, and a process that cannot be spawned yields ``exit_code=None``
    with the OS error as its only stderr line.
    """
    args = tuple(args)
    cwd = Path(cwd)
    started = time.monotonic()
    stdout: list[str] = []
    stderr: list[str] = []

    try:
        proc = await asyncio.create_subprocess_exec(
            command,
            *args,
            cwd=str(cwd),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=_STREAM_LIMIT,
            start_new_session=True,
        )
    except OSError as e:
        return ProcessResult(
            command=command,
            args=args,
            cwd=cwd,
            exit_code=None,
            stderr=(str(e),),
            duration=time.monotonic() - started,
        )

    readers = [
        asyncio.create_task(_read_lines(proc.stdout, stdout)),
        asyncio.create_task(_read_lines(proc.stderr, stderr)),
    ]
    poll = max(poll_interval_ms, 1) / 1000
    timed_out = False
    try:
        while True:
            try:
                await asyncio.wait_for(proc.wait(), timeout=poll)
                break
            except asyncio.TimeoutError:
                if time.monotonic() - started > timeout:
                    timed_out = True
                    break

        if not timed_out:
            # Let the readers drain what is still buffered in the pipes
            remaining = max(timeout - (time.monotonic() - started), poll)
            await asyncio.wait(readers, timeout=remaining)
    finally:
        if proc.returncode is None or not all(reader.done() for reader in readers):
            # Also catches children that outlived git and still hold the pipes
            _kill_process_group(proc)
        if proc.returncode is None:
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(proc.wait(), timeout=_REAP_TIMEOUT)
        # Once every writer is gone the pipes hit EOF and the transport closes itself
        await asyncio.wait(readers, timeout=_REAP_TIMEOUT)
        for reader in readers:
            reader.cancel()
        await asyncio.gather(*readers, return_exceptions=True)

    return ProcessResult(
        command=command,
        args=args,
        cwd=cwd,
        exit_code=None if timed_out else proc.returncode,
        stdout=tuple(stdout),
        stderr=tuple(stderr),
        duration=time.monotonic() - started,
        timed_out=timed_out,
    )


# =============================================================================
# Repository Status Machine
# =============================================================================


class RepoStatusMachine:
    """Drive one repository through git and classify it.

    Steps: optional ``remote -v``, ``fetch`` unless the no-fetch policy says
    otherwise, then ``status -bs``. A single status line is inspected for
    behind/ahead markers; a clean branch line triggers ``log`` and is reported
    up to date only when this run fetched. More than one line means the working
    tree is dirty.
    """

    def __init__(
        self,
        options: RunOptions,
        logger: logging.Logger | None = None,
        runner: ProcessRunner | None = None,
    ):
        self.options = options
        self.no_fetch = options.no_fetch_policy()
        self.logger = logger or get_logger("repo")
        self.runner = runner or run_process

    async def process(self, record: RepoRecord) -> Outcome:
        """Process a record once, mutating it in place, and report the outcome."""
        log = RepoLoggerAdapter(self.logger, {"repo": record.path_relative})
        record.started = datetime.now()
        started = time.monotonic()
        record.advance(RunStatus.RUNNING)
        try:
            outcome: Outcome = await self._classify(record, log)
        except RecoverableError as e:
            log.warning("Could not classify: %s", e)
            record.status = ItemStatus.ERROR
            record.advance(RunStatus.ERROR)
            outcome = FailedOpaque()
        except Exception as e:
            log.error("Failed: %s", e)
            record.status = ItemStatus.ERROR
            record.advance(RunStatus.ERROR)
            record.error = e
            outcome = Failed(e)
        finally:
            record.duration = time.monotonic() - started
            if record.run_status != RunStatus.ERROR:
                record.advance(RunStatus.COMPLETE)
        log.info("%s in %.2fs", record.status, record.duration)
        return outcome

    async def _classify(self, record: RepoRecord, log: logging.LoggerAdapter) -> Outcome:
        if record.status == ItemStatus.IGNORE:
            return Classified(ItemStatus.IGNORE)

        record.status = ItemStatus.CHECK
        if self.options.query_remotes:
            await self._run_git(record, CommandKind.REMOTE, log)

        fetched = self.no_fetch.should_fetch(record.path_relative)
        if fetched:
            await self._run_git(record, CommandKind.FETCH, log, check_stdout=False)

        git_status = await self._run_git(record, CommandKind.STATUS, log)
        if len(git_status.stdout) > 1:
            record.status = ItemStatus.DIRTY
            return Classified(record.status)

        # No output at all reads as a branch line without markers
        branch_line = git_status.first_line_or_error()
        if BEHIND_MARKER in branch_line:
            record.status = ItemStatus.BEHIND
            if self.options.pull:
                record.status = ItemStatus.PULL
                await self._run_git(record, CommandKind.PULL, log)
        elif AHEAD_MARKER in branch_line:
            record.status = ItemStatus.AHEAD
        else:
            await self._run_git(record, CommandKind.LOG, log)
            # Without a fetch this run there is no telling whether we are current
            record.status = ItemStatus.UP_TO_DATE if fetched else ItemStatus.IGNORE
        return Classified(record.status)

    async def _run_git(
        self,
        record: RepoRecord,
        kind: CommandKind,
        log: logging.LoggerAdapter,
        check_stdout: bool = True,
    ) -> ProcessResult:
        result = await self.runner(
            "git",
            GIT_COMMANDS[kind],
            record.path,
            self.options.poll_interval_ms,
            self.options.command_timeout,
        )
        # Stored before the exit-code check so failed commands keep their output
        record.results[kind] = result

        log.info(
            "CMD: %s ==> exit=%s in %.2fs [std: %d, err: %d]",
            result.command_line,
            result.exit_code,
            result.duration,
            len(result.stdout),
            len(result.stderr),
        )
        if result.timed_out:
            log.warning("CMD-TIMEOUT: %s after %.1fs", result.command_line, result.duration)
        for line in result.stderr:
            log.debug("ERR: %s", line)
        for line in result.stdout:
            log.debug("%s", line)
        if check_stdout and result.ok and not result.stdout:
            log.warning("No error (exit=0), but no stdout: %s", result.command_line)

        if not result.ok:
            raise CommandFailedError(kind, result)
        return result


# =============================================================================
# Repository Discovery
# =============================================================================


def _relative(path: Path, root: Path) -> str:
    relative = path.relative_to(root).as_posix()
    return relative or "."


class GitFolderScanner:
    """Find repository roots below a directory.

    A directory holding a ``.git`` entry (directory, or file for worktrees
    and submodules) is a repository root and is not descended into. Anything
    at or below a directory matched by ``exclude`` is still reported, with
    status ``IGNORE``.
    """

    def __init__(
        self,
        exclude: Callable[[str], bool] | None = None,
        logger: logging.Logger | None = None,
    ):
        self.exclude = exclude or (lambda path_relative: False)
        self.logger = logger or get_logger("scan")

    def scan(self, root: Path, max_depth: int = DEFAULT_MAX_DEPTH) -> list[RepoRecord]:
        """Scan one root, raising DiscoveryError if it cannot be scanned at all."""
        root = Path(root).expanduser().resolve()
        if not root.is_dir():
            raise DiscoveryError(f"Cannot scan {root}: not a directory")

        records: list[RepoRecord] = []
        self._walk(root, root, 0, max_depth, False, records)
        records.sort(key=lambda r: r.path)
        self.logger.info("Scanned %s: %d repositories", root, len(records))
        return records

    def _walk(
        self,
        root: Path,
        directory: Path,
        depth: int,
        max_depth: int,
        excluded: bool,
        records: list[RepoRecord],
    ) -> None:
        path_relative = _relative(directory, root)
        if not excluded and self.exclude(path_relative):
            excluded = True

        if (directory / ".git").exists():
            records.append(
                RepoRecord(
                    path=directory,
                    path_relative=path_relative,
                    status=ItemStatus.IGNORE if excluded else ItemStatus.FOUND,
                )
            )
            return
        if depth >= max_depth:
            return

        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            self.logger.debug("Skipping %s: %s", directory, e)
            return

        for entry in entries:
            if entry.name.startswith("."):
                continue
            try:
                if not entry.is_dir(follow_symlinks=False):
                    continue
            except OSError:
                continue
            self._walk(root, Path(entry.path), depth + 1, max_depth, excluded, records)


# =============================================================================
# Fleet Orchestration
# =============================================================================


def collect_in_buckets(items: Sequence[RepoRecord], size: int) -> list[list[RepoRecord]]:
    """Split items into contiguous buckets of ``size`` (at least 1) items."""
    size = max(size, 1)
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class FleetScanner:
    """Discover repositories under every root and classify them concurrently.

    Discovery runs one scanner call per root in parallel threads; any failure
    aborts the run. Processing splits the discovered records into at most
    ``options.workers`` contiguous buckets. Buckets run concurrently while the
    records inside one bucket are processed one after another, which bounds
    the number of git processes in flight.
    """

    def __init__(
        self,
        options: RunOptions,
        *,
        machine: RepoStatusMachine | None = None,
        scanner: GitFolderScanner | None = None,
        logger: logging.Logger | None = None,
    ):
        self.options = options
        self.logger = logger or get_logger("fleet")
        self.machine = machine or RepoStatusMachine(options, logger=self.logger.getChild("repo"))
        self.scanner = scanner or GitFolderScanner(
            options.exclude_predicate(self.logger.getChild("scan")),
            logger=self.logger.getChild("scan"),
        )
        self.phase = Phase.SCANNING
        self._records: list[RepoRecord] = []
        self._started: float | None = None
        self._finished: float | None = None
        self.outcomes: dict[Path, Outcome] = {}

    @property
    def records(self) -> list[RepoRecord]:
        return sorted(self._records, key=lambda r: r.path)

    @property
    def elapsed(self) -> float:
        if self._started is None:
            return 0.0
        end = self._finished if self._finished is not None else time.monotonic()
        return end - self._started

    async def run(self) -> list[RepoRecord]:
        """Scan every root, then process all repositories. Returns records sorted by path."""
        self._started = time.monotonic()
        self.logger.info("Run: %d root(s)", len(self.options.roots))
        try:
            self.phase = Phase.SCANNING
            found = await asyncio.gather(
                *(
                    asyncio.to_thread(self.scanner.scan, root, self.options.max_depth)
                    for root in self.options.roots
                )
            )
            self._records = [record for records in found for record in records]
            self.logger.info("Found %d repositories", len(self._records))

            self.phase = Phase.PROCESSING
            size = math.ceil(len(self._records) / max(self.options.workers, 1))
            buckets = collect_in_buckets(self._records, size)
            await asyncio.gather(*(self._process_bucket(bucket) for bucket in buckets))

            self.phase = Phase.COMPLETED
        except Exception:
            self.phase = Phase.ERROR
            raise
        finally:
            self._finished = time.monotonic()
            self.logger.info("Run finished: %s in %.2fs", self.phase, self.elapsed)
        return self.records

    async def _process_bucket(self, bucket: list[RepoRecord]) -> None:
        for record in bucket:
            self.outcomes[record.path] = await self.machine.process(record)

    def snapshot(self) -> RunSnapshot:
        """Read the current state without any synchronisation."""
        views = tuple(RecordView.of(record) for record in self.records)
        return RunSnapshot(
            phase=self.phase,
            records=views,
            completed=sum(1 for view in views if view.is_complete),
            total=len(views),
            elapsed=self.elapsed,
        )

    def first_error(self) -> RepoRecord | None:
        """First repository, in path order, that kept an error for the operator."""
        for record in self.records:
            if isinstance(self.outcomes.get(record.path), Failed):
                return record
        return None


async def watch_run(
    fleet: FleetScanner,
    formatter: OutputFormatter,
    live: bool = True,
    refresh_per_second: int = REFRESH_PER_SECOND,
) -> list[RepoRecord]:
    """Run the fleet, redrawing the live board on a fixed tick until it finishes."""
    task = asyncio.create_task(fleet.run())
    if not live:
        return await task

    tick = 1 / refresh_per_second
    with Live(
        formatter.render_snapshot(fleet.snapshot(), live=True),
        console=formatter.console,
        auto_refresh=False,
        transient=True,
    ) as board:
        while not task.done():
            await asyncio.wait({task}, timeout=tick)
            board.update(formatter.render_snapshot(fleet.snapshot(), live=True), refresh=True)
    return task.result()


# =============================================================================
# CLI Application
# =============================================================================


app = typer.Typer(
    name="git-radar",
    help="Sweep every Git repository under your roots and see where each one stands.",
    add_completion=False,
)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        print(f"git-radar {__version__}")
        raise typer.Exit()


def schema_callback(value: bool):
    """Print the tool schema and exit."""
    if value:
        print(json.dumps(get_tool_schema(), indent=2))
        raise typer.Exit()


def get_console_and_formatter(json_output: bool) -> tuple[Console, OutputFormatter]:
    """Create console and formatter."""
    console = Console(force_terminal=not json_output)
    formatter = OutputFormatter(console, use_json=json_output, err_console=Console(stderr=True))
    return console, formatter


@app.command()
def main(
    paths: list[Path] = typer.Argument(
        None,
        help="Root paths to scan for repositories (default: current directory)",
    ),
    exclude: list[str] = typer.Option(
        None,
        "--exclude",
        "-x",
        help="Comma-separated path fragments; repositories under a matching path are listed as ignored",
    ),
    no_fetch: list[str] = typer.Option(
        None,
        "--no-fetch",
        help="Comma-separated path fragments that skip fetch, or '*' to skip fetch everywhere",
    ),
    pull: bool = typer.Option(
        False,
        "--pull",
        "-p",
        help="Pull repositories that are behind their upstream",
    ),
    remote: bool = typer.Option(
        False,
        "--remote",
        help="List remotes (git remote -v) before fetching",
    ),
    workers: int = typer.Option(
        DEFAULT_WORKERS,
        "--workers",
        "-w",
        min=1,
        help="Maximum number of repositories processed at the same time",
    ),
    timeout: float = typer.Option(
        DEFAULT_COMMAND_TIMEOUT,
        "--timeout",
        min=0.1,
        help="Seconds before a single git command is abandoned",
    ),
    max_depth: int = typer.Option(
        DEFAULT_MAX_DEPTH,
        "--max-depth",
        min=0,
        help="How many directory levels below each root to search",
    ),
    roots: Path = typer.Option(
        None,
        "--roots",
        "-r",
        help="File containing repository root paths (one per line)",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
    log_file: Path = typer.Option(
        None,
        "--log-file",
        help="Write a detailed log of every git command to this file",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log captured command output as well",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    schema: bool = typer.Option(
        False,
        "--schema",
        callback=schema_callback,
        is_eager=True,
        help="Output MCP-compatible tool schema for AI agents",
    ),
):
    """Fetch and classify every repository under the given roots."""
    console, formatter = get_console_and_formatter(json_output)

    if paths:
        root_paths = list(paths)
    else:
        resolved_roots = roots or resolve_roots_file()
        if resolved_roots:
            root_paths = load_roots_file(resolved_roots)
            if not root_paths:
                formatter.print_fault(f"No valid roots found in {resolved_roots}")
                raise typer.Exit(1)
        else:
            root_paths = [Path.cwd()]

    logger = setup_logging(log_file=log_file, verbose=verbose, stream=json_output)
    options = RunOptions(
        roots=root_paths,
        exclude=split_fragments(exclude),
        no_fetch=split_fragments(no_fetch),
        pull=pull,
        query_remotes=remote,
        max_depth=max_depth,
        workers=workers,
        command_timeout=timeout,
    )
    fleet = FleetScanner(options, logger=logger.getChild("fleet"))

    try:
        asyncio.run(watch_run(fleet, formatter, live=not json_output))
    except Exception as e:
        logger.exception("Run failed")
        formatter.print_fault(e)
        raise typer.Exit(1)

    formatter.print_final(fleet.snapshot())

    first_error = fleet.first_error()
    if first_error is not None:
        logger.error("First error: %s: %s", first_error.path_relative, first_error.error)
        formatter.print_first_error(RecordView.of(first_error))
        raise typer.Exit(1)
