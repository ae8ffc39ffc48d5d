import io
import json
from pathlib import Path

from rich.console import Console

from git_radar.core import ItemStatus, Phase, RecordView, RunSnapshot, RunStatus
from git_radar.formatters import STATUS_LABELS, STATUS_STYLES, OutputFormatter, ellipsize_start


def _view(path_relative, status, detail="", error=None):
    return RecordView(
        path=Path("/work") / path_relative,
        path_relative=path_relative,
        status=status,
        run_status=RunStatus.ERROR if error else RunStatus.COMPLETE,
        detail=detail,
        is_complete=True,
        error=error,
    )


def _formatter(use_json=False, width=120):
    out = io.StringIO()
    err = io.StringIO()
    formatter = OutputFormatter(
        Console(file=out, width=width, force_terminal=False, color_system=None),
        use_json=use_json,
        err_console=Console(file=err, width=width, color_system=None),
    )
    return formatter, out, err


SNAPSHOT = RunSnapshot(
    phase=Phase.COMPLETED,
    records=(
        _view("alpha", ItemStatus.BEHIND, "## main...origin/main [behind 2]"),
        _view("beta", ItemStatus.DIRTY, "[3 files]  M app.py"),
        _view("gamma", ItemStatus.ERROR, "fatal: nope", error="status: `git status -bs` exited with 128"),
    ),
    completed=3,
    total=3,
    elapsed=1.25,
)


def test_every_status_has_a_style_and_label():
    for status in ItemStatus:
        assert status in STATUS_STYLES
        assert status in STATUS_LABELS


def test_ellipsize_start_keeps_the_tail():
    assert ellipsize_start("short", 10) == "short"
    assert ellipsize_start("very/long/path/to/repo", 10) == "__/to/repo"
    assert ellipsize_start("abcdef", 2) == "ef"
    assert ellipsize_start("abc", 0) == ""


def test_table_output_keeps_bracketed_detail_literal():
    formatter, out, _ = _formatter()

    formatter.print_final(SNAPSHOT)

    text = out.getvalue()
    assert "[behind 2]" in text
    assert "[3 files]" in text
    assert "Items 3/3 in 1.2 sec" in text or "Items 3/3 in 1.3 sec" in text
    assert "Total:" in text
    assert "Behind" in text


def test_json_output_parses():
    formatter, out, _ = _formatter(use_json=True)

    formatter.print_final(SNAPSHOT)

    report = json.loads(out.getvalue())
    assert report["phase"] == "Completed"
    assert report["summary"]["behind"] == 1
    assert report["summary"]["errors"] == 1
    assert report["repositories"][1]["detail"] == "[3 files]  M app.py"


def test_live_render_truncates_to_terminal_height():
    views = tuple(_view(f"repo{i:03d}", ItemStatus.UP_TO_DATE) for i in range(50))
    snapshot = RunSnapshot(Phase.PROCESSING, views, completed=10, total=50, elapsed=0.5)
    out = io.StringIO()
    formatter = OutputFormatter(Console(file=out, width=100, height=12, color_system=None))

    formatter.console.print(formatter.render_snapshot(snapshot, live=True))

    text = out.getvalue()
    assert "repo000" in text
    assert "repo049" not in text
    assert "Items 10/50" in text


def test_errors_go_to_error_console():
    formatter, out, err = _formatter()

    formatter.print_fault(RuntimeError("scan [failed]"))
    formatter.print_first_error(SNAPSHOT.records[2])

    assert out.getvalue() == ""
    assert "Error: scan [failed]" in err.getvalue()
    assert "gamma:" in err.getvalue()
    assert "exited with 128" in err.getvalue()
