"""Output formatters for the live board, the final report and JSON."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from rich.console import Console, Group
from rich.markup import escape
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from .core import RecordView, RunSnapshot


# Keyed by ItemStatus value. The board once used its own labels for some of
# these; they map as Discover -> found, Checking -> check, Ignored -> ignore
# and Clean -> up_to_date.
STATUS_STYLES: dict[str, str] = {
    "found": "blue",
    "check": "cyan",
    "ignore": "bright_black",
    "up_to_date": "green",
    "dirty": "yellow",
    "behind": "bright_cyan",
    "ahead": "bright_blue",
    "pull": "magenta",
    "error": "red",
}

STATUS_LABELS: dict[str, str] = {
    "found": "Found",
    "check": "Check",
    "ignore": "Ignore",
    "up_to_date": "UpToDate",
    "dirty": "Dirty",
    "behind": "Behind",
    "ahead": "Ahead",
    "pull": "Pull",
    "error": "Error",
}

# Detail text takes the status colour only for these
HIGHLIGHTED_DETAIL = frozenset({"dirty", "behind"})

MAX_PATH_WIDTH = 80


def ellipsize_start(text: str, width: int, marker: str = "__") -> str:
    """Shorten text to width by cutting from the start, keeping the tail visible."""
    if width <= 0:
        return ""
    if len(text) <= width:
        return text
    if width <= len(marker):
        return text[-width:]
    return marker + text[len(text) - (width - len(marker)) :]


class OutputFormatter:
    """Format output for console or JSON."""

    def __init__(
        self,
        console: Console,
        use_json: bool = False,
        err_console: Console | None = None,
    ):
        self.console = console
        self.use_json = use_json
        self.err_console = err_console or Console(stderr=True)

    def _path_width(self, views: tuple[RecordView, ...]) -> int:
        longest = max((len(v.path_relative) for v in views), default=1)
        return max(1, min(longest, MAX_PATH_WIDTH, self.console.width // 2))

    def render_snapshot(self, snapshot: RunSnapshot, live: bool = False) -> Group:
        """Build the board: one row per repository plus a progress line.

        On the live board rows beyond the terminal height are dropped; the
        final render shows everything.
        """
        table = Table(box=None, show_header=False, pad_edge=False, expand=False)
        table.add_column("Status", width=8, no_wrap=True)
        table.add_column("Repository", no_wrap=True)
        table.add_column("Detail", no_wrap=True, overflow="ellipsis")

        path_width = self._path_width(snapshot.records)
        max_rows = max(self.console.height - 2, 1) if live else None

        for count, view in enumerate(snapshot.records):
            if max_rows is not None and count >= max_rows:
                break
            style = STATUS_STYLES.get(view.status, "")
            detail_style = style if view.status in HIGHLIGHTED_DETAIL else ""
            table.add_row(
                Text(STATUS_LABELS.get(view.status, str(view.status)), style=style),
                Text(ellipsize_start(view.path_relative, path_width).ljust(path_width)),
                Text(view.detail, style=detail_style),
            )

        progress = Text(
            f"[{snapshot.phase.value:>10}] Items {snapshot.completed}/{snapshot.total}"
            f" in {snapshot.elapsed:.1f} sec"
        )
        return Group(table, progress)

    def print_final(self, snapshot: RunSnapshot):
        """Print the final report."""
        if self.use_json:
            self._print_snapshot_json(snapshot)
        else:
            self.console.print(self.render_snapshot(snapshot))
            self.console.print()
            self._print_summary(snapshot)

    def _print_summary(self, snapshot: RunSnapshot):
        """Print per-status counts."""
        parts = [f"[bold]Total:[/] {snapshot.total}"]
        for status, count in snapshot.status_counts().items():
            if count > 0:
                style = STATUS_STYLES.get(status, "")
                parts.append(f"[{style}]{STATUS_LABELS[status]}:[/] {count}")
        self.console.print(" | ".join(parts))

    def _print_snapshot_json(self, snapshot: RunSnapshot):
        """Print JSON output."""
        self.console.out(json.dumps(snapshot.to_dict(), indent=2, default=str), highlight=False)

    def print_fault(self, error: BaseException | str):
        """Report a failure of the whole run."""
        self.err_console.print(f"[red]Error: {escape(str(error))}[/]")

    def print_first_error(self, view: RecordView):
        """Report the first repository error."""
        self.err_console.print(f"[red]{escape(view.path_relative)}:[/] {escape(view.error or '')}")
