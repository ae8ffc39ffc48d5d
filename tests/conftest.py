import asyncio
from pathlib import Path

import pytest

from git_radar.core import GIT_COMMANDS, CommandKind, ProcessResult, RepoRecord

_KIND_BY_ARGS = {args: kind for kind, args in GIT_COMMANDS.items()}


def make_result(
    kind: CommandKind,
    stdout=(),
    stderr=(),
    exit_code=0,
    timed_out=False,
    cwd=Path("/repo"),
):
    return ProcessResult(
        command="git",
        args=GIT_COMMANDS[kind],
        cwd=cwd,
        exit_code=None if timed_out else exit_code,
        stdout=tuple(stdout),
        stderr=tuple(stderr),
        duration=0.01,
        timed_out=timed_out,
    )


class FakeGit:
    """Scripted stand-in for run_process.

    Responses are keyed by (repository directory name, CommandKind). Anything
    unscripted answers like a clean, up-to-date repository.
    """

    def __init__(self, delay=0.0):
        self.delay = delay
        self.responses = {}
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    def script(self, repo, kind, **kwargs):
        self.responses[(repo, kind)] = kwargs

    def kinds_for(self, repo):
        return [kind for name, kind in self.calls if name == repo]

    async def __call__(self, command, args, cwd, poll_interval_ms=50, timeout=30.0):
        kind = _KIND_BY_ARGS[tuple(args)]
        repo = Path(cwd).name
        self.calls.append((repo, kind))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1

        scripted = self.responses.get((repo, kind))
        if scripted is None:
            scripted = _DEFAULT_RESPONSES[kind]
        return make_result(kind, cwd=Path(cwd), **scripted)


_DEFAULT_RESPONSES = {
    CommandKind.REMOTE: {"stdout": ["origin\tgit@example.com:x.git (fetch)"]},
    CommandKind.FETCH: {},
    CommandKind.STATUS: {"stdout": ["## main...origin/main"]},
    CommandKind.LOG: {"stdout": ["(2 days ago) Fix the thing"]},
    CommandKind.PULL: {"stdout": ["Updating 1a2b3c..4d5e6f"]},
}


class FakeScanner:
    """Returns prepared records per root instead of walking the filesystem."""

    def __init__(self, by_root, fail_on=None):
        self.by_root = by_root
        self.fail_on = fail_on
        self.scanned = []

    def scan(self, root, max_depth=8):
        self.scanned.append((root, max_depth))
        if root == self.fail_on:
            raise OSError(f"cannot read {root}")
        return list(self.by_root.get(root, []))


def make_records(root: Path, names, status=None):
    records = []
    for name in names:
        record = RepoRecord(path=root / name, path_relative=name)
        if status is not None:
            record.status = status
        records.append(record)
    return records


@pytest.fixture
def fake_git():
    return FakeGit()


@pytest.fixture
def record():
    return RepoRecord(path=Path("/work/alpha"), path_relative="alpha")
