"""Analytical passes over the document store.

Each function is one independent full scan of the transaction shards. The
organization records (the small side of every join) are held in memory;
transactions are folded one shard at a time into per-pass accumulators.

Joins are inner joins on exact equality of `organization_id` and the
organization `id`: prescriptions from practices missing in the address file
never reach a joined result. Rankings are stable, so groups with equal
values keep the order in which they were first seen.

Expectations:
- `organizations`: the full list of `OrganizationRecord`s.
- `store`: a `TransactionStore` over the transaction shards.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterator

import dask
import pandas as pd

from prescribing_pipeline.aggregate.frames import SCHEDULER, store_to_ddf
from prescribing_pipeline.errors import EmptyResultError, StoreWriteError
from prescribing_pipeline.models import (
    OrganizationReconciliation,
    OrganizationRecord,
    OrganizationVolume,
    PostcodeSpend,
    RegionAverage,
    RegionPriceReport,
    VolumeReport,
)
from prescribing_pipeline.store.reader import TransactionStore, organizations_frame

log = logging.getLogger(__name__)


def _joined_frames(
    organizations: list[OrganizationRecord],
    store: TransactionStore,
) -> Iterator[pd.DataFrame]:
    """Yield each shard inner-joined to its organization, left order kept."""
    # first occurrence wins if an id is repeated in the address file
    orgs = organizations_frame(organizations).drop_duplicates("id")
    for pdf in store.frames():
        yield pdf.merge(orgs, left_on="organization_id", right_on="id", how="inner", sort=False)


def _fold(acc: dict[Any, Any], series: pd.Series) -> None:
    for key, value in series.items():
        acc[key] = acc.get(key, 0) + value


# =========================================================
# 1) PRACTICE COUNTS
# =========================================================

def reconcile_organizations(
    organizations: list[OrganizationRecord],
    store: TransactionStore,
) -> OrganizationReconciliation:
    """Count practices known to the address file and those only seen in prescriptions.

    Args:
        organizations: Records of the address file.
        store: Transaction shards.

    Returns:
        `OrganizationReconciliation` with |A|, |B \\ A| and their sum, where
        A are address-file ids and B the practice ids found in prescriptions.
    """
    known = {o.id for o in organizations}

    ddf = store_to_ddf(store)
    seen = ddf["organization_id"].drop_duplicates().compute(scheduler=SCHEDULER)
    unmatched = set(seen) - known

    return OrganizationReconciliation(
        dimension_count=len(known),
        unmatched_count=len(unmatched),
        total_count=len(known) + len(unmatched),
    )


# =========================================================
# 2) AVERAGE COST PER ITEM OF ONE PRESENTATION
# =========================================================

def average_cost_per_item(store: TransactionStore, description: str) -> float:
    """Return the mean `actual_cost / item_count` of one presentation.

    Records are matched on `description` case-insensitively; records with no
    items are skipped.

    Args:
        store: Transaction shards.
        description: Presentation name, e.g. "Peppermint Oil".

    Raises:
        EmptyResultError: if no record with items matches `description`.
    """
    ddf = store_to_ddf(store)
    matched = ddf[
        (ddf["description"].str.lower() == description.lower()) &
        (ddf["item_count"] > 0)
    ]
    per_item = matched["actual_cost"] / matched["item_count"]

    total, count = dask.compute(per_item.sum(), per_item.count(), scheduler=SCHEDULER)
    if int(count) == 0:
        raise EmptyResultError(f"No prescriptions with items found for {description!r}")

    log.info("Averaged %d %r prescriptions", int(count), description)
    return float(total) / int(count)


# =========================================================
# 3) TOP POSTCODES BY SPEND
# =========================================================

def top_postcodes_by_spend(
    organizations: list[OrganizationRecord],
    store: TransactionStore,
    top_n: int = 5,
) -> list[PostcodeSpend]:
    """Return the postcodes with the highest total actual cost.

    Args:
        organizations: Records of the address file.
        store: Transaction shards.
        top_n: Number of postcodes to return (default 5).

    Returns:
        Up to `top_n` `PostcodeSpend` rows, highest spend first.
    """
    totals: dict[str, float] = {}
    for joined in _joined_frames(organizations, store):
        _fold(totals, joined.groupby("postcode", sort=False)["actual_cost"].sum())

    ranked = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)[:top_n]
    return [PostcodeSpend(postcode=k, total_cost=float(v)) for k, v in ranked]


# =========================================================
# 4) REGIONAL AVERAGE PRICE VS NATIONAL MEAN
# =========================================================

def region_price_report(
    organizations: list[OrganizationRecord],
    store: TransactionStore,
    include: str,
    exclude: str | None = None,
) -> RegionPriceReport:
    """Average per-item price by region for presentations matching `include`.

    A record qualifies when its description contains `include` and does not
    contain `exclude` (both case-insensitive) and it has at least one item.
    The national mean is the unweighted mean of the regional averages.

    Args:
        organizations: Records of the address file.
        store: Transaction shards.
        include: Substring the description must contain.
        exclude: Optional substring the description must not contain.

    Returns:
        `RegionPriceReport` with regions sorted by average, highest first.

    Raises:
        EmptyResultError: if no joined record qualifies.
    """
    sums: dict[str, float] = {}
    counts: dict[str, int] = {}

    for joined in _joined_frames(organizations, store):
        desc = joined["description"].str.lower()
        mask = desc.str.contains(include.lower(), regex=False) & (joined["item_count"] > 0)
        if exclude:
            mask &= ~desc.str.contains(exclude.lower(), regex=False)
        hits = joined[mask]

        per_item = hits["actual_cost"] / hits["item_count"]
        _fold(sums, per_item.groupby(hits["region"], sort=False).sum())
        _fold(counts, per_item.groupby(hits["region"], sort=False).count())

    if not sums:
        raise EmptyResultError(f"No prescriptions found matching {include!r}")

    averages = {region: float(sums[region]) / int(counts[region]) for region in sums}
    national = sum(averages.values()) / len(averages)

    ranked = sorted(averages.items(), key=lambda kv: kv[1], reverse=True)
    return RegionPriceReport(
        national_mean=national,
        regions=[
            RegionAverage(
                region=region,
                average_cost=avg,
                pct_of_national=avg / national * 100 if national else 0.0,
            )
            for region, avg in ranked
        ],
    )


def write_region_report(report: RegionPriceReport, path: Path) -> Path:
    """Replace `path` with one line per region of `report`.

    Raises:
        StoreWriteError: if the report file cannot be written.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as fh:
            for row in report.regions:
                fh.write(row.report_line() + "\n")
    except OSError as e:
        raise StoreWriteError("Couldn't write the regional price report", path=path) from e

    log.info("Average price by regions has been saved to %s", path)
    return path


# =========================================================
# 5) LOWEST-VOLUME PRACTICES
# =========================================================

def lowest_volume_organizations(
    organizations: list[OrganizationRecord],
    store: TransactionStore,
    bottom_n: int = 10,
) -> VolumeReport:
    """Return the practices with the fewest prescription items.

    Items are summed per (practice id, practice name). The mean across
    practices and each practice's percentage of it are truncated to ints.

    Args:
        organizations: Records of the address file.
        store: Transaction shards.
        bottom_n: Number of practices to return (default 10).

    Raises:
        EmptyResultError: if no prescription joins to a known practice.
    """
    totals: dict[tuple[str, str], int] = {}
    for joined in _joined_frames(organizations, store):
        _fold(totals, joined.groupby(["organization_id", "name"], sort=False)["item_count"].sum())

    if not totals:
        raise EmptyResultError("No prescriptions joined to a known practice")

    mean_items = int(sum(totals.values()) / len(totals))
    ranked = sorted(totals.items(), key=lambda kv: kv[1])[:bottom_n]

    return VolumeReport(
        mean_items=mean_items,
        lowest=[
            OrganizationVolume(
                organization_id=org_id,
                organization_name=name,
                item_total=int(total),
                pct_of_mean=int(total) * 100 // mean_items if mean_items else 0,
            )
            for (org_id, name), total in ranked
        ],
    )
