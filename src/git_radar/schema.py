"""MCP-compatible tool schema for AI agents."""

from __future__ import annotations

from ._version import __version__

_STATUS_ENUM = [
    "found",
    "check",
    "ignore",
    "up_to_date",
    "dirty",
    "behind",
    "ahead",
    "pull",
    "error",
]


def get_tool_schema() -> dict:
    """Generate MCP-compatible tool schema for AI agents."""
    return {
        "name": "git-radar",
        "version": __version__,
        "description": "Sweep every Git repository under one or more roots: fetch, read branch status and optionally pull, with a bounded number of git processes at a time. Each repository ends in exactly one status.",
        "usage": "git-radar [paths...] [options]",
        "tools": [
            {
                "name": "git-radar",
                "description": "Discover repositories under the given roots, fetch them (unless excluded with --no-fetch), run `git status -bs` and classify each one as up_to_date, dirty, behind, ahead, pull (pulled), ignore or error.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "paths": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "Root paths to scan for repositories (default: current directory)",
                        },
                        "exclude": {
                            "type": "string",
                            "description": "Comma-separated path fragments. Repositories under a path ending with a fragment are listed with status 'ignore' and no git command is run for them.",
                        },
                        "no_fetch": {
                            "type": "string",
                            "description": "Comma-separated path fragments that skip `git fetch`, or '*' for all. Clean repositories that were not fetched are reported as 'ignore'.",
                        },
                        "pull": {
                            "type": "boolean",
                            "description": "Run `git pull` in clean repositories that are behind",
                            "default": False,
                        },
                        "remote": {
                            "type": "boolean",
                            "description": "Run `git remote -v` before fetching",
                            "default": False,
                        },
                        "workers": {
                            "type": "integer",
                            "description": "Maximum number of repositories processed at the same time",
                            "default": 4,
                        },
                        "timeout": {
                            "type": "number",
                            "description": "Seconds before a single git command is abandoned",
                            "default": 30.0,
                        },
                        "max_depth": {
                            "type": "integer",
                            "description": "Directory levels searched below each root",
                            "default": 8,
                        },
                        "roots": {
                            "type": "string",
                            "description": "Path to roots file, used when no paths are given. Auto-resolved from: $GIT_RADAR_ROOTS env var → ~/.config/git-radar/roots → ~/.git-radar-roots",
                        },
                        "json": {
                            "type": "boolean",
                            "description": "Output as JSON for machine parsing",
                            "default": False,
                        },
                    },
                    "required": [],
                },
                "outputSchema": {
                    "type": "object",
                    "properties": {
                        "phase": {
                            "type": "string",
                            "enum": ["Scanning", "Processing", "Completed", "Error"],
                        },
                        "elapsed": {"type": "number"},
                        "repositories": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "path": {"type": "string"},
                                    "path_relative": {"type": "string"},
                                    "status": {"type": "string", "enum": _STATUS_ENUM},
                                    "run_status": {
                                        "type": "string",
                                        "enum": ["pending", "running", "complete", "error"],
                                    },
                                    "detail": {"type": "string"},
                                    "is_complete": {"type": "boolean"},
                                    "started": {"type": ["string", "null"]},
                                    "duration": {"type": "number"},
                                    "error": {"type": ["string", "null"]},
                                    "commands": {
                                        "type": "object",
                                        "description": "Every git command run, keyed by kind (remote, fetch, status, log, pull)",
                                        "additionalProperties": {
                                            "type": "object",
                                            "properties": {
                                                "command": {"type": "string"},
                                                "cwd": {"type": "string"},
                                                "exit_code": {"type": ["integer", "null"]},
                                                "stdout": {"type": "array", "items": {"type": "string"}},
                                                "stderr": {"type": "array", "items": {"type": "string"}},
                                                "duration": {"type": "number"},
                                                "timed_out": {"type": "boolean"},
                                            },
                                        },
                                    },
                                },
                            },
                        },
                        "summary": {
                            "type": "object",
                            "properties": {
                                "total": {"type": "integer"},
                                "completed": {"type": "integer"},
                                "errors": {"type": "integer"},
                                **{status: {"type": "integer"} for status in _STATUS_ENUM},
                            },
                        },
                    },
                },
                "examples": [
                    {
                        "description": "Check every repository under ~/Development",
                        "command": "git-radar ~/Development --json",
                    },
                    {
                        "description": "Skip vendored checkouts and pull whatever is behind",
                        "command": "git-radar ~/src --exclude vendor,third_party --pull --json",
                    },
                    {
                        "description": "Offline look: no fetch anywhere",
                        "command": "git-radar ~/src --no-fetch '*' --json",
                    },
                ],
            },
        ],
        "exitCodes": {
            "0": "All repositories processed without a recorded error",
            "1": "Scanning failed, or at least one repository recorded an error (first one printed to stderr)",
        },
        "notes": [
            "A repository is 'up_to_date' only when it was fetched during this run",
            "'dirty' detail reads '[N files] <first changed entry>'",
            "Quote '*' for --no-fetch so the shell does not expand it",
        ],
    }
