from __future__ import annotations

import math
from pathlib import Path

import pytest

from prescribing_pipeline.store.reader import list_shards, read_organizations, read_shard, shard_number
from prescribing_pipeline.store.writer import clear_shards_by_prefix, write_document, write_shards

from conftest import org, txn


def _records(n: int) -> list:
    return [txn(f"P{i}", item_count=i, actual_cost=float(i)) for i in range(n)]


@pytest.mark.parametrize(
    "rows,capacity",
    [(0, 1), (0, 3), (1, 1), (1, 5), (5, 2), (6, 2), (6, 3), (7, 3), (10, 10), (11, 10)],
)
def test_shard_count_and_order(tmp_path: Path, rows: int, capacity: int) -> None:
    records = _records(rows)
    result = write_shards(iter(records), tmp_path, "drugs", capacity)

    expected = math.ceil(rows / capacity) if rows else 1
    assert len(result.shards) == expected
    assert result.records == rows

    shards = sorted(list_shards(tmp_path, "drugs"), key=lambda p: shard_number(p, "drugs"))
    assert [shard_number(p, "drugs") for p in shards] == list(range(1, expected + 1))
    assert shards == result.shards

    back = [r for p in shards for r in read_shard(p)]
    assert back == records
    assert all(len(read_shard(p)) <= capacity for p in shards)


def test_empty_source_writes_one_empty_shard(tmp_path: Path) -> None:
    result = write_shards([], tmp_path, "drugs", 100)
    assert [p.name for p in result.shards] == ["drugs1.bson"]
    assert read_shard(result.shards[0]) == []


def test_rewrite_removes_stale_shards(tmp_path: Path) -> None:
    write_shards(_records(9), tmp_path, "drugs", 2)
    assert len(list_shards(tmp_path, "drugs")) == 5

    result = write_shards(_records(3), tmp_path, "drugs", 2)
    assert result.removed == 5
    assert sorted(p.name for p in list_shards(tmp_path, "drugs")) == ["drugs1.bson", "drugs2.bson"]


def test_clear_shards_by_prefix_leaves_other_files(tmp_path: Path) -> None:
    for name in ("drugs1.bson", "drugs12.bson", "drugs.bson", "drugs1.bson.tmp", "other1.bson", "notes.txt"):
        (tmp_path / name).write_bytes(b"")

    assert clear_shards_by_prefix(tmp_path, "drugs") == 2
    assert sorted(p.name for p in tmp_path.iterdir()) == [
        "drugs.bson", "drugs1.bson.tmp", "notes.txt", "other1.bson",
    ]


def test_clear_missing_directory_is_noop(tmp_path: Path) -> None:
    assert clear_shards_by_prefix(tmp_path / "missing", "drugs") == 0


def test_invalid_capacity(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        write_shards(_records(1), tmp_path, "drugs", 0)


def test_write_document_round_trip(tmp_path: Path) -> None:
    orgs = [org("A", postcode="N1"), org("B", region="South", postcode="S1")]
    path = tmp_path / "nested" / "organizations.bson"

    assert write_document(orgs, path) == 2
    assert read_organizations(path) == orgs

    write_document(orgs[:1], path)
    assert read_organizations(path) == orgs[:1]


def test_failed_write_leaves_no_temp_file(tmp_path: Path) -> None:
    def _broken():
        yield org("A")
        raise RuntimeError("source went away")

    path = tmp_path / "organizations.bson"
    with pytest.raises(RuntimeError):
        write_document(_broken(), path)
    assert list(tmp_path.iterdir()) == []
