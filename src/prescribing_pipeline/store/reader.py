"""Read access to the BSON document store.

`TransactionStore` is a restartable, lazy view over all shards of one base
name: each iteration re-lists the directory and holds a single shard in
memory at a time. Any unreadable shard aborts the read with `StoreReadError`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterator, TypeVar

import bson
import pandas as pd
from bson.errors import BSONError
from pydantic import BaseModel, ValidationError

from prescribing_pipeline.errors import StoreReadError
from prescribing_pipeline.models import TRANSACTION_FIELDS, OrganizationRecord, TransactionRecord
from prescribing_pipeline.store.writer import shard_pattern

log = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# pandas dtypes of a shard frame; numeric columns are fixed so empty shards
# line up with non-empty ones
TRANSACTION_DTYPES: dict[str, str] = {
    name: "object" for name in TRANSACTION_FIELDS
} | {"item_count": "int64", "net_cost": "float64", "actual_cost": "float64"}


def _read_models(path: Path, model: type[ModelT]) -> list[ModelT]:
    try:
        data = path.read_bytes()
    except FileNotFoundError as e:
        raise StoreReadError("Store file not found, run ingest first", path=path) from e
    except OSError as e:
        raise StoreReadError(f"Couldn't read store file: {e}", path=path) from e

    try:
        docs: list[dict[str, Any]] = bson.decode_all(data)
    except BSONError as e:
        raise StoreReadError(f"Malformed BSON: {e}", path=path) from e

    try:
        return [model.model_validate({k: v for k, v in d.items() if k != "_id"}) for d in docs]
    except ValidationError as e:
        raise StoreReadError(f"Document does not match {model.__name__}: {e}", path=path) from e


def list_shards(directory: Path, prefix: str) -> list[Path]:
    """Return the shard files for `prefix` in filesystem listing order.

    The order is not numeric; callers must only rely on set membership.
    A missing directory yields an empty list.
    """
    if not directory.is_dir():
        return []
    pattern = shard_pattern(prefix)
    return [p for p in directory.iterdir() if p.is_file() and pattern.match(p.name)]


def shard_number(path: Path, prefix: str) -> int:
    """Return n for a shard named `{prefix}{n}.bson`."""
    m = shard_pattern(prefix).match(path.name)
    if m is None:
        raise ValueError(f"{path.name} is not a shard of {prefix!r}")
    return int(m.group(1))


def read_shard(path: Path) -> list[TransactionRecord]:
    """Materialize one shard.

    Raises:
        StoreReadError: if the file is unreadable or malformed.
    """
    return _read_models(path, TransactionRecord)


def shard_frame(path: Path) -> pd.DataFrame:
    """Load one shard as a pandas DataFrame with `TRANSACTION_DTYPES` columns."""
    records = read_shard(path)
    pdf = pd.DataFrame([r.model_dump() for r in records], columns=list(TRANSACTION_FIELDS))
    return pdf.astype(TRANSACTION_DTYPES)


def read_organizations(path: Path) -> list[OrganizationRecord]:
    """Load the whole organization document into memory.

    Raises:
        StoreReadError: if the document is missing, unreadable or malformed.
    """
    records = _read_models(path, OrganizationRecord)
    log.info("Loaded %d organizations from %s", len(records), path)
    return records


def organizations_frame(organizations: list[OrganizationRecord]) -> pd.DataFrame:
    """Return organization records as a DataFrame, one row per record."""
    return pd.DataFrame(
        [o.model_dump() for o in organizations],
        columns=list(OrganizationRecord.model_fields),
        dtype="object",
    )


class TransactionStore:
    """Lazy, restartable sequence of all transaction records in a shard set.

    Args:
        directory: Directory holding the shards.
        prefix: Shard base name.
    """

    def __init__(self, directory: Path, prefix: str) -> None:
        self.directory = directory
        self.prefix = prefix

    def __repr__(self) -> str:
        return f"TransactionStore({str(self.directory)!r}, {self.prefix!r})"

    def shards(self) -> list[Path]:
        return list_shards(self.directory, self.prefix)

    def __iter__(self) -> Iterator[TransactionRecord]:
        for path in self.shards():
            yield from read_shard(path)

    def frames(self) -> Iterator[pd.DataFrame]:
        """Yield one DataFrame per shard."""
        for path in self.shards():
            yield shard_frame(path)
