"""Parsing helpers for the practice and prescribing CSV files.

`parse_organization_line` and `parse_transaction_line` turn one raw line into
a validated record. `iter_organizations` and `iter_transactions` stream a
whole file lazily, skipping (and logging) malformed rows instead of aborting.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, TypeVar

from pydantic import BaseModel, ValidationError

from prescribing_pipeline.errors import RowParseError, SourceUnavailableError
from prescribing_pipeline.models import (
    ORGANIZATION_FIELDS,
    TRANSACTION_FIELDS,
    OrganizationRecord,
    TransactionRecord,
)

log = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


@dataclass
class ParseStats:
    """Running counters for one source file."""
    rows_read: int = 0
    rows_skipped: int = 0

    @property
    def rows_parsed(self) -> int:
        return self.rows_read - self.rows_skipped


def _split(line: str) -> list[str]:
    return [field.strip() for field in next(csv.reader([line]), [])]


def _parse_line(line: str, model: type[RecordT], fields: tuple[str, ...]) -> RecordT:
    try:
        values = _split(line)
    except csv.Error as e:
        raise RowParseError(line, str(e)) from e
    if len(values) != len(fields):
        raise RowParseError(line, f"expected {len(fields)} fields, got {len(values)}")

    try:
        return model.model_validate(dict(zip(fields, values)))
    except ValidationError as e:
        err = e.errors()[0]
        loc = ".".join(str(p) for p in err["loc"])
        raise RowParseError(line, f"{loc}: {err['msg']}") from e


def parse_organization_line(line: str) -> OrganizationRecord:
    """Parse one line of the practice address file.

    Raises:
        RowParseError: if the line does not have exactly eight fields.
    """
    return _parse_line(line, OrganizationRecord, ORGANIZATION_FIELDS)


def parse_transaction_line(line: str) -> TransactionRecord:
    """Parse one line of the prescribing file.

    Raises:
        RowParseError: on a wrong field count, or when items/costs are not
            non-negative numbers.
    """
    return _parse_line(line, TransactionRecord, TRANSACTION_FIELDS)


def _read_records(
    path: Path,
    parse: Callable[[str], RecordT],
    skip_header: bool,
    stats: ParseStats,
) -> Iterator[RecordT]:
    with path.open("r", encoding="utf-8", errors="replace", newline="") as fh:
        if skip_header:
            next(fh, None)
        for lineno, line in enumerate(fh, start=2 if skip_header else 1):
            if not line.strip():
                continue
            stats.rows_read += 1
            try:
                yield parse(line.rstrip("\r\n"))
            except RowParseError as e:
                stats.rows_skipped += 1
                log.warning("Skipping line %d of %s: %s", lineno, path.name, e)


def _iter_file(
    path: Path,
    parse: Callable[[str], RecordT],
    *,
    skip_header: bool,
    stats: ParseStats | None,
) -> Iterator[RecordT]:
    # checked eagerly so a missing file fails before iteration starts
    if not path.is_file():
        raise SourceUnavailableError(f"Source file does not exist: {path}")
    return _read_records(path, parse, skip_header, stats if stats is not None else ParseStats())


def iter_organizations(path: Path, stats: ParseStats | None = None) -> Iterator[OrganizationRecord]:
    """Stream records from the header-less practice address file.

    Args:
        path: Path to the dimension CSV.
        stats: Optional counters updated while the file is consumed.

    Yields:
        One `OrganizationRecord` per well-formed line.

    Raises:
        SourceUnavailableError: if `path` does not exist.
    """
    return _iter_file(path, parse_organization_line, skip_header=False, stats=stats)


def iter_transactions(path: Path, stats: ParseStats | None = None) -> Iterator[TransactionRecord]:
    """Stream records from the prescribing file, skipping its header line.

    Args:
        path: Path to the fact CSV.
        stats: Optional counters updated while the file is consumed.

    Yields:
        One `TransactionRecord` per well-formed line.

    Raises:
        SourceUnavailableError: if `path` does not exist.
    """
    return _iter_file(path, parse_transaction_line, skip_header=True, stats=stats)
