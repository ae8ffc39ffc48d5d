from pathlib import Path

import pytest
from conftest import make_result

from git_radar.core import CommandKind, ItemStatus, RepoRecord, RunStatus, status_line


def _record(item_status, run_status=RunStatus.COMPLETE, **results):
    record = RepoRecord(path=Path("/work/repo"), path_relative="repo", status=item_status)
    record.run_status = run_status
    for kind, result in results.items():
        record.results[CommandKind(kind)] = result
    return record


@pytest.mark.parametrize("line_count", [2, 3, 5])
def test_dirty_detail_counts_changed_entries(line_count):
    lines = ["## main...origin/main"] + [f" M file{i}.py" for i in range(1, line_count)]
    record = _record(ItemStatus.DIRTY, status=make_result(CommandKind.STATUS, stdout=lines))

    assert status_line(record) == f"[{line_count - 1} files]  M file1.py"


def test_found_and_check_have_no_detail():
    assert status_line(_record(ItemStatus.FOUND, RunStatus.PENDING)) == ""
    assert status_line(_record(ItemStatus.CHECK, RunStatus.RUNNING)) == ""


def test_error_shows_first_stderr_line_in_diagnostic_order():
    record = _record(
        ItemStatus.ERROR,
        RunStatus.ERROR,
        status=make_result(CommandKind.STATUS, stderr=["status failed"], exit_code=1),
        fetch=make_result(CommandKind.FETCH, stderr=["fetch complained"]),
    )

    assert status_line(record) == "fetch complained"


def test_error_without_stderr_is_unknown():
    assert status_line(_record(ItemStatus.ERROR, RunStatus.ERROR)) == "Unknown error"


def test_error_run_state_shows_cause():
    record = _record(ItemStatus.CHECK, RunStatus.ERROR)
    record.error = RuntimeError("exploded")

    assert status_line(record) == "<ERROR> exploded"


def test_ignore_prefers_log_then_status():
    status = make_result(CommandKind.STATUS, stdout=["## main"])
    log = make_result(CommandKind.LOG, stdout=["(3 hours ago) Bump"])

    assert status_line(_record(ItemStatus.IGNORE, status=status, log=log)) == "(3 hours ago) Bump"
    assert status_line(_record(ItemStatus.IGNORE, status=status)) == "## main"
    assert status_line(_record(ItemStatus.IGNORE)) == ""


def test_up_to_date_falls_back_to_stderr_then_exit_code():
    with_stderr = make_result(CommandKind.LOG, stderr=["warning: odd"])
    silent_failure = make_result(CommandKind.LOG, exit_code=3)

    assert status_line(_record(ItemStatus.UP_TO_DATE, log=with_stderr)) == "warning: odd"
    assert status_line(_record(ItemStatus.UP_TO_DATE, log=silent_failure)) == "exitcode: 3"
    assert status_line(_record(ItemStatus.UP_TO_DATE)) == ""


def test_pull_shows_first_pull_line_or_marker():
    pulled = make_result(CommandKind.PULL, stdout=["Already up to date."])
    quiet = make_result(CommandKind.PULL)

    assert status_line(_record(ItemStatus.PULL, pull=pulled)) == "Already up to date."
    assert status_line(_record(ItemStatus.PULL, pull=quiet)) == "<ERR>"
