from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest

from prescribing_pipeline.ingest.load_store import load_organizations, load_transactions
from prescribing_pipeline.models import OrganizationRecord, TransactionRecord
from prescribing_pipeline.store.reader import TransactionStore, read_organizations
from prescribing_pipeline.store.writer import write_shards

TXN_HEADER = "SHA,PCT,PRACTICE,BNF CODE,BNF NAME,ITEMS,NIC,ACT COST,PERIOD"

ORG_LINES = [
    "1,A,Org A,Fac A,1 High Street,Leeds,North,N1",
    "2,B,Org B,Fac B,2 Low Road,Exeter,South,S1",
]

TXN_LINES = [
    "h1,pct1,A,100,Peppermint Oil,2,10.00,12.00,202001",
    "h2,pct2,999,100,Peppermint Oil,3,9.00,9.00,202001",
]


def org(id: str, **kw: Any) -> OrganizationRecord:
    base = {
        "index": "1",
        "id": id,
        "name": f"Org {id}",
        "facility": "Surgery",
        "address1": "1 Street",
        "address2": "Town",
        "region": "North",
        "postcode": "N1",
    }
    base.update(kw)
    return OrganizationRecord(**base)


def txn(organization_id: str, **kw: Any) -> TransactionRecord:
    base = {
        "hash": "h",
        "organization_unit": "pct",
        "organization_id": organization_id,
        "code": "100",
        "description": "Peppermint Oil",
        "item_count": 1,
        "net_cost": 1.0,
        "actual_cost": 1.0,
        "period": "202001",
    }
    base.update(kw)
    return TransactionRecord(**base)


def write_lines(path: Path, lines: list[str]) -> Path:
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def org_csv(tmp_path: Path) -> Path:
    return write_lines(tmp_path / "add.csv", ORG_LINES)


@pytest.fixture
def txn_csv(tmp_path: Path) -> Path:
    return write_lines(tmp_path / "pdp.csv", [TXN_HEADER, *TXN_LINES])


@pytest.fixture
def scenario(tmp_path: Path, org_csv: Path, txn_csv: Path) -> tuple[list[OrganizationRecord], TransactionStore]:
    """The two-practice, two-prescription store used by the report tests."""
    store_dir = tmp_path / "store"
    load_organizations(org_csv, store_dir / "organizations.bson")
    load_transactions(txn_csv, store_dir / "transactions", "transactions", capacity=1)
    return (
        read_organizations(store_dir / "organizations.bson"),
        TransactionStore(store_dir / "transactions", "transactions"),
    )


@pytest.fixture
def build_store(tmp_path: Path) -> Callable[..., TransactionStore]:
    """Write the given transactions into a fresh shard set and return a store over it."""
    def _build(records: list[TransactionRecord], capacity: int = 2) -> TransactionStore:
        directory = tmp_path / "shards"
        write_shards(records, directory, "drugs", capacity)
        return TransactionStore(directory, "drugs")

    return _build
