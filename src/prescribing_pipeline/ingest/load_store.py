"""Load the parsed source files into the document store.

The practice file becomes one organization document; the prescribing file is
streamed row by row into numbered transaction shards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from prescribing_pipeline.ingest.parse_rows import ParseStats, iter_organizations, iter_transactions
from prescribing_pipeline.store.writer import ShardWriteResult, write_document, write_shards

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadSummary:
    """Row counts for one loaded source file.

    Attributes:
        rows_read: Non-blank data lines read.
        rows_skipped: Malformed lines skipped.
        rows_written: Records persisted to the store.
        shards: Number of files written.
    """
    rows_read: int
    rows_skipped: int
    rows_written: int
    shards: int = 1


def load_organizations(source: Path, dest: Path) -> LoadSummary:
    """Parse the practice address file into a single document at `dest`."""
    log.info("Reading the ADD file %s...", source)
    stats = ParseStats()
    written = write_document(iter_organizations(source, stats), dest)

    log.info(
        "The ADD file has been read: %d rows, %d skipped",
        stats.rows_read,
        stats.rows_skipped,
    )
    return LoadSummary(stats.rows_read, stats.rows_skipped, written)


def load_transactions(source: Path, directory: Path, base: str, capacity: int) -> LoadSummary:
    """Parse the prescribing file into shards of at most `capacity` records.

    Args:
        source: Prescribing CSV (with a header line).
        directory: Shard directory; previous `{base}{n}.bson` files are removed.
        base: Shard base name.
        capacity: Records per shard.

    Returns:
        `LoadSummary` with the number of shards written.
    """
    log.info("Reading the PDP file %s...", source)
    stats = ParseStats()
    result: ShardWriteResult = write_shards(
        iter_transactions(source, stats),
        directory,
        base,
        capacity,
    )

    log.info(
        "The PDP file has been read: %d rows, %d skipped, %d shard(s)",
        stats.rows_read,
        stats.rows_skipped,
        len(result.shards),
    )
    return LoadSummary(stats.rows_read, stats.rows_skipped, result.records, len(result.shards))
