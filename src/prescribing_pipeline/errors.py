"""Error taxonomy shared by the pipeline stages.

Every error carries the process exit code the CLI returns for it, so the
calling shell can tell a failed download from a broken store.
"""

from __future__ import annotations

from pathlib import Path


class PipelineError(RuntimeError):
    """Base class for pipeline failures that abort a run."""

    exit_code = 1


class ConfigError(PipelineError):
    """A setting read from the environment has an unusable value."""


class RowParseError(PipelineError):
    """A single malformed input line. Recovered locally by skipping the row."""

    def __init__(self, line: str, reason: str) -> None:
        super().__init__(f"{reason}: {line!r}")
        self.line = line
        self.reason = reason


class StoreWriteError(PipelineError):
    """A store directory or file could not be created, replaced or deleted."""

    exit_code = 3

    def __init__(self, message: str, *, path: Path) -> None:
        super().__init__(f"{message} ({path})")
        self.path = path


class SourceUnavailableError(PipelineError):
    """A source file could not be downloaded or is missing on disk."""

    exit_code = 4


class StoreReadError(PipelineError):
    """A shard or the organization document is unreadable or malformed."""

    exit_code = 5

    def __init__(self, message: str, *, path: Path) -> None:
        super().__init__(f"{message} ({path})")
        self.path = path


class EmptyResultError(PipelineError):
    """An aggregate was requested over zero eligible records."""

    exit_code = 6
