"""git-radar: Sweep every Git repository under your roots and see where each one stands."""

# Guard against deleted CWD (e.g. directory removed by another process).
# rich crashes on import if os.getcwd() fails, so recover before any imports.
import os

try:
    os.getcwd()
except (OSError, PermissionError):
    os.chdir(os.path.expanduser("~"))

from ._version import __version__
from .core import (
    Classified,
    CommandFailedError,
    CommandKind,
    DiscoveryError,
    Failed,
    FailedOpaque,
    FleetScanner,
    GitFolderScanner,
    GitRadarError,
    ItemStatus,
    NoFetchPolicy,
    Phase,
    ProcessResult,
    RecordView,
    RecoverableError,
    RepoRecord,
    RepoStatusMachine,
    RunOptions,
    RunSnapshot,
    RunStatus,
    app,
    run_process,
    status_line,
)
from .formatters import OutputFormatter
from .schema import get_tool_schema

__all__ = [
    # Version
    "__version__",
    # CLI
    "app",
    # Models
    "Classified",
    "CommandKind",
    "Failed",
    "FailedOpaque",
    "ItemStatus",
    "Phase",
    "ProcessResult",
    "RecordView",
    "RepoRecord",
    "RunOptions",
    "RunSnapshot",
    "RunStatus",
    # Errors
    "CommandFailedError",
    "DiscoveryError",
    "GitRadarError",
    "RecoverableError",
    # Operations
    "FleetScanner",
    "GitFolderScanner",
    "NoFetchPolicy",
    "RepoStatusMachine",
    "run_process",
    # Functions
    "get_tool_schema",
    "status_line",
    # Formatters
    "OutputFormatter",
]
