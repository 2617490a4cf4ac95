"""Adapters from the shard store to Dask DataFrames.

Each shard becomes exactly one Dask partition, loaded lazily by a delayed
task, so a computation never holds more than one shard per running task.
All computations in this package use the synchronous scheduler.
"""

from __future__ import annotations

import logging
from typing import Any, cast
from typing import Any as TypingAny

import pandas as pd
import dask.dataframe as dd
from dask import delayed  # type: ignore[attr-defined]

from prescribing_pipeline.models import TRANSACTION_FIELDS
from prescribing_pipeline.store.reader import TRANSACTION_DTYPES, TransactionStore, shard_frame

log = logging.getLogger(__name__)

SCHEDULER = "synchronous"


def transaction_meta() -> pd.DataFrame:
    """Return an empty frame carrying the shard column names and dtypes."""
    return pd.DataFrame(columns=list(TRANSACTION_FIELDS)).astype(TRANSACTION_DTYPES)


def store_to_ddf(store: TransactionStore) -> Any:
    """Build a Dask DataFrame with one partition per shard of `store`.

    Args:
        store: Shard set to read.

    Returns:
        Dask DataFrame; an empty store gives a single empty partition.
    """
    shards = store.shards()
    dd_mod = cast(TypingAny, dd)
    meta = transaction_meta()

    if not shards:
        log.warning("No shards found for %r", store)
        return dd_mod.from_pandas(meta, npartitions=1)

    parts = [delayed(shard_frame)(p) for p in shards]
    log.info("Reading %d shard(s) as Dask partitions", len(parts))
    # partitions may come back with object strings while meta is converted
    return dd_mod.from_delayed(parts, meta=meta, verify_meta=False)
