from __future__ import annotations

from pathlib import Path

from prescribing_pipeline.ingest.load_store import load_organizations, load_transactions
from prescribing_pipeline.store.reader import TransactionStore, list_shards, read_organizations

from conftest import TXN_HEADER, write_lines


def test_load_organizations_skips_malformed_lines(tmp_path: Path) -> None:
    source = write_lines(tmp_path / "add.csv", [
        "1,A,Org A,Fac A,1 High Street,Leeds,North,N1",
        "2,B,Org B,Fac B,2 Low Road",
        "3,C,Org C,Fac C,3 Mill Lane,York,North,Y1,extra",
        "4,D,Org D,Fac D,4 Bridge St,Hull,East,H1",
    ])
    dest = tmp_path / "store" / "organizations.bson"

    summary = load_organizations(source, dest)

    assert (summary.rows_read, summary.rows_skipped) == (4, 2)
    assert summary.rows_written == summary.rows_read - summary.rows_skipped
    assert [o.id for o in read_organizations(dest)] == ["A", "D"]


def test_load_transactions_skips_malformed_lines(tmp_path: Path) -> None:
    source = write_lines(tmp_path / "pdp.csv", [
        TXN_HEADER,
        "h1,pct1,A,100,Peppermint Oil,2,10.00,12.00,202001",
        "h2,pct2,B,100,Peppermint Oil,99999999999999999999,9.00,9.00,202001",
        "h3,pct3,C,100,Peppermint Oil",
        "h4,pct4,D,100,Peppermint Oil,3,9.00,9.00,202001",
        "h5,pct5,E,100,Peppermint Oil,1,1.00,1.00,202001",
    ])
    directory = tmp_path / "shards"

    summary = load_transactions(source, directory, "t", capacity=2)

    assert (summary.rows_read, summary.rows_skipped) == (5, 2)
    assert summary.rows_written == summary.rows_read - summary.rows_skipped
    assert summary.shards == 2
    stored = list(TransactionStore(directory, "t"))
    assert sorted(r.organization_id for r in stored) == ["A", "D", "E"]
    assert sorted(p.name for p in directory.iterdir()) == sorted(p.name for p in list_shards(directory, "t"))
