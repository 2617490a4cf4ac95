"""Chunked BSON writer for the document store.

Transaction records are buffered and flushed into numbered shard files
(`{base}1.bson`, `{base}2.bson`, ...). Each shard is a plain concatenation of
BSON documents, one per record, the same layout `mongodump` produces. The
organization records are written as one unsharded document file.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

import bson
from pydantic import BaseModel

from prescribing_pipeline.errors import StoreWriteError
from prescribing_pipeline.models import OrganizationRecord, TransactionRecord

log = logging.getLogger(__name__)

SHARD_SUFFIX = ".bson"


@dataclass
class ShardWriteResult:
    """Outcome of one `write_shards` run.

    Attributes:
        shards: Shard paths in the order they were written (numeric order).
        records: Total number of records written across all shards.
        removed: Number of stale shards deleted before writing.
    """
    shards: list[Path] = field(default_factory=list)
    records: int = 0
    removed: int = 0


def shard_pattern(prefix: str) -> re.Pattern[str]:
    """Return the regex matching shard file names for `prefix`."""
    return re.compile(rf"^{re.escape(prefix)}(\d+){re.escape(SHARD_SUFFIX)}$")


def shard_path(directory: Path, base: str, number: int) -> Path:
    return directory / f"{base}{number}{SHARD_SUFFIX}"


def _ensure_dir(directory: Path) -> None:
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StoreWriteError("Couldn't create the store directory", path=directory) from e


def _write_documents(path: Path, docs: Iterable[BaseModel]) -> int:
    """Write models to `path` as concatenated BSON, replacing it atomically."""
    tmp = path.with_name(path.name + ".tmp")
    written = 0
    try:
        with tmp.open("wb") as fh:
            for doc in docs:
                fh.write(bson.encode(doc.model_dump()))
                written += 1
        tmp.replace(path)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        raise StoreWriteError("Couldn't write store file", path=path) from e
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    return written


def clear_shards_by_prefix(directory: Path, prefix: str) -> int:
    """Delete every shard file named `{prefix}{n}.bson` in `directory`.

    Args:
        directory: Store directory to clean. A missing directory is a no-op.
        prefix: Shard base name.

    Returns:
        Number of files removed.

    Raises:
        StoreWriteError: if a matching file cannot be deleted.
    """
    if not directory.is_dir():
        return 0

    pattern = shard_pattern(prefix)
    removed = 0
    for p in directory.iterdir():
        if not (p.is_file() and pattern.match(p.name)):
            continue
        try:
            p.unlink()
        except OSError as e:
            raise StoreWriteError("Couldn't delete previous shard", path=p) from e
        removed += 1

    if removed:
        log.info("Removed %d previous shard(s) matching %s* in %s", removed, prefix, directory)
    return removed


def write_shards(
    records: Iterable[TransactionRecord],
    directory: Path,
    base: str,
    capacity: int,
) -> ShardWriteResult:
    """Stream records into numbered shard files of at most `capacity` records.

    The source is consumed once. A full batch is flushed as soon as it
    reaches `capacity`; the remainder is flushed after the source is
    exhausted. An empty source still produces one (empty) shard, and a
    source whose size is a multiple of `capacity` does not get a trailing
    empty shard.

    Args:
        records: Lazy sequence of transaction records.
        directory: Target directory (created if missing).
        base: Shard base name; shards are `{base}{n}.bson`, n from 1.
        capacity: Maximum records per shard (B >= 1).

    Returns:
        `ShardWriteResult` listing the shards written.

    Raises:
        ValueError: if `capacity` < 1.
        StoreWriteError: if the directory or a shard cannot be written.
    """
    if capacity < 1:
        raise ValueError(f"shard capacity must be >= 1, got {capacity}")

    _ensure_dir(directory)
    result = ShardWriteResult(removed=clear_shards_by_prefix(directory, base))

    batch: list[TransactionRecord] = []

    def _flush() -> None:
        path = shard_path(directory, base, len(result.shards) + 1)
        result.records += _write_documents(path, batch)
        result.shards.append(path)
        log.info("Saved shard %s (%d records, %d total)", path.name, len(batch), result.records)
        batch.clear()

    for rec in records:
        batch.append(rec)
        if len(batch) >= capacity:
            _flush()

    if batch or not result.shards:
        _flush()

    return result


def write_document(records: Iterable[OrganizationRecord], path: Path) -> int:
    """Write all organization records to a single document file.

    Any previous file at `path` is replaced.

    Returns:
        Number of records written.

    Raises:
        StoreWriteError: if the file or its directory cannot be written.
    """
    _ensure_dir(path.parent)
    count = _write_documents(path, records)
    log.info("Saved %s (%d records)", path, count)
    return count
