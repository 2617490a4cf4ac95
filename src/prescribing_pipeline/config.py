"""Configuration helpers and Settings container.

This module provides a small `Settings` dataclass and `get_settings` which
reads the source file locations, the store directory and the shard capacity
from the environment (a `.env` file at the project root is honoured).
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os

from dotenv import load_dotenv

from prescribing_pipeline.errors import ConfigError

# Explicitly load .env from project root
PROJECT_ROOT = Path(__file__).resolve().parents[2]
load_dotenv(PROJECT_ROOT / ".env")

DEFAULT_SHARD_CAPACITY = 50_000
SHARD_BASE = "transactions"


@dataclass(frozen=True)
class Settings:
    """Container for pipeline configuration read from the environment.

    Attributes:
        org_file_path: Dimension (practice address) CSV, header-less.
        txn_file_path: Fact (prescribing) CSV, one header line.
        store_dir: Root directory of the BSON document store.
        shard_capacity: Maximum number of transaction records per shard.
        org_file_url: Optional download location of the dimension file.
        txn_file_url: Optional download location of the fact file.
    """
    org_file_path: Path
    txn_file_path: Path
    store_dir: Path
    shard_capacity: int
    org_file_url: str | None = None
    txn_file_url: str | None = None

    @property
    def organizations_path(self) -> Path:
        return self.store_dir / "organizations.bson"

    @property
    def shard_dir(self) -> Path:
        return self.store_dir / SHARD_BASE

    @property
    def shard_base(self) -> str:
        return SHARD_BASE

    @property
    def report_path(self) -> Path:
        return self.store_dir / "avg-price.txt"


def get_settings() -> Settings:
    """Read environment variables and return a frozen `Settings` object.

    Raises:
        ConfigError: if `SHARD_CAPACITY` is not a positive integer.
    """
    org_file_path = Path(os.getenv("ORG_FILE_PATH", "data/raw/add.csv"))
    txn_file_path = Path(os.getenv("TXN_FILE_PATH", "data/raw/pdp.csv"))
    store_dir = Path(os.getenv("STORE_DIR", "data/store"))
    raw_capacity = os.getenv("SHARD_CAPACITY", str(DEFAULT_SHARD_CAPACITY)).strip()

    try:
        shard_capacity = int(raw_capacity)
    except ValueError:
        shard_capacity = 0
    if shard_capacity < 1:
        raise ConfigError(
            f"SHARD_CAPACITY must be a positive integer, got {raw_capacity!r}."
        )

    return Settings(
        org_file_path=org_file_path,
        txn_file_path=txn_file_path,
        store_dir=store_dir,
        shard_capacity=shard_capacity,
        org_file_url=os.getenv("ORG_FILE_URL", "").strip() or None,
        txn_file_url=os.getenv("TXN_FILE_URL", "").strip() or None,
    )
