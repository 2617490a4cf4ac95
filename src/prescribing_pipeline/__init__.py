"""prescribing_pipeline package.

Contains modules for fetching the practice (ADD) and prescribing (PDP) flat
files, converting them into a sharded BSON document store, and answering a
fixed set of analytical questions over that store.

Architecture:
- CSV → records → BSON documents (one organization document, N transaction shards)
- Pydantic models validate every row on the way in and out of the store
- pandas/Dask fold the store one shard at a time, never the whole fact file
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
