"""Command-line interface for orchestrating the pipeline.

Provides subcommands: `fetch`, `ingest`, `report`, and `all`. Each command
is implemented as a `cmd_*` function that accepts an argparse namespace.

Exit codes:
    0 success, 1 unknown or configuration error, 2 bad arguments, 3 couldn't create or write
    a store file, 4 source files unavailable, 5 error reading the store,
    6 a report had no eligible records.
"""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

from prescribing_pipeline.config import Settings, get_settings
from prescribing_pipeline.errors import PipelineError, SourceUnavailableError
from prescribing_pipeline.logging_config import configure_logging

# INGEST
from prescribing_pipeline.ingest.fetch_source import SourceTarget, download_source
from prescribing_pipeline.ingest.load_store import load_organizations, load_transactions

# REPORTS
from prescribing_pipeline.aggregate.reports import (
    average_cost_per_item,
    lowest_volume_organizations,
    reconcile_organizations,
    region_price_report,
    top_postcodes_by_spend,
    write_region_report,
)
from prescribing_pipeline.store.reader import TransactionStore, read_organizations

log = logging.getLogger(__name__)


# --------------------------------------------------
# FETCH
# --------------------------------------------------
def cmd_fetch(args: argparse.Namespace) -> None:
    """Download (or reuse cached copies of) both source files."""
    s = get_settings()
    targets = [
        SourceTarget("ADD", s.org_file_url, s.org_file_path),
        SourceTarget("PDP", s.txn_file_url, s.txn_file_path),
    ]
    for i, t in enumerate(targets, start=1):
        log.info("(%d/%d) Fetching the %s file...", i, len(targets), t.label)
        download_source(t, force=getattr(args, "force", False))


# --------------------------------------------------
# INGEST
# --------------------------------------------------
def cmd_ingest(_: argparse.Namespace) -> None:
    """Convert both source files into the document store."""
    s = get_settings()
    for p in (s.org_file_path, s.txn_file_path):
        if not p.is_file():
            raise SourceUnavailableError(f"Source file does not exist: {p}. Run fetch first.")

    load_organizations(s.org_file_path, s.organizations_path)
    load_transactions(s.txn_file_path, s.shard_dir, s.shard_base, s.shard_capacity)
    log.info("Got and parsed the files.")


# --------------------------------------------------
# REPORT
# --------------------------------------------------
def _run_reports(s: Settings, args: argparse.Namespace) -> None:
    organizations = read_organizations(s.organizations_path)
    store = TransactionStore(s.shard_dir, s.shard_base)

    log.info("1) Counting practices...")
    rec = reconcile_organizations(organizations, store)
    log.info("Practices count from ADD file: %d", rec.dimension_count)
    log.info("Practices count from PDP file not mentioned in ADD: %d", rec.unmatched_count)
    log.info("So, overall count of practices is: %d", rec.total_count)

    log.info("2) Average actual cost of %s...", args.description)
    avg = average_cost_per_item(store, args.description)
    log.info("The average actual cost of all %s prescriptions: %.2f per item", args.description, avg)

    log.info("3) Top %d postcodes by actual spend...", args.top_n)
    for row in top_postcodes_by_spend(organizations, store, args.top_n):
        log.info('- practices from "%s" spent %.2f in total', row.postcode, row.total_cost)

    log.info("4) Average price per item of %s (excluding %s)...", args.include, args.exclude)
    prices = region_price_report(organizations, store, args.include, args.exclude)
    log.info("Average national mean: %.2f", prices.national_mean)
    write_region_report(prices, s.report_path)

    log.info("5) %d practices with the lowest volume of items...", args.bottom_n)
    volumes = lowest_volume_organizations(organizations, store, args.bottom_n)
    log.info("Overall average items of prescriptions: %d", volumes.mean_items)
    for v in volumes.lowest:
        log.info(
            "- [%s] %s: %d, it's %d%% from average value",
            v.organization_id,
            v.organization_name,
            v.item_total,
            v.pct_of_mean,
        )


def cmd_report(args: argparse.Namespace) -> None:
    """Answer the five questions from an existing store.

    A missing or unreadable store surfaces as `StoreReadError` (exit 5).
    """
    s = get_settings()
    _run_reports(s, args)
    log.info("The application has finished its work.")


# --------------------------------------------------
# ALL
# --------------------------------------------------
def cmd_all(args: argparse.Namespace) -> None:
    """Convenience: run fetch → ingest → report with the provided args."""
    if not args.skip_ingest:
        if not args.skip_download:
            cmd_fetch(args)
        cmd_ingest(args)
    cmd_report(args)


# --------------------------------------------------
# CLI
# --------------------------------------------------
def _add_report_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--description", default="Peppermint Oil")
    p.add_argument("--include", default="Flucloxacillin")
    p.add_argument("--exclude", default="Co-Fluampicil")
    p.add_argument("--top-n", type=int, default=5)
    p.add_argument("--bottom-n", type=int, default=10)


def build_parser() -> argparse.ArgumentParser:
    """Build and return the top-level argument parser for the CLI.

    Returns:
        Configured argparse.ArgumentParser instance.
    """
    p = argparse.ArgumentParser(
        prog="prescribing-pipeline",
        description="Downloads NHS practice and prescribing files, shards them and reports on them.",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    p_fetch = sub.add_parser("fetch")
    p_fetch.add_argument("--force", action="store_true")

    sub.add_parser("ingest")

    p_report = sub.add_parser("report")
    _add_report_args(p_report)

    p_all = sub.add_parser("all")
    p_all.add_argument("--force", action="store_true")
    p_all.add_argument("--skip-download", action="store_true")
    p_all.add_argument(
        "-f",
        "--skip-ingest",
        action="store_true",
        help="skip downloading and parsing, reuse an existing store",
    )
    _add_report_args(p_all)

    return p


COMMANDS = {
    "fetch": cmd_fetch,
    "ingest": cmd_ingest,
    "report": cmd_report,
    "all": cmd_all,
}


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point: parse args, configure logging, dispatch and map errors to exit codes."""
    args = build_parser().parse_args(argv)
    configure_logging(Path("logs/pipeline.log"))

    try:
        COMMANDS[args.cmd](args)
    except PipelineError as e:
        log.error("%s", e)
        return e.exit_code
    except Exception:
        log.exception("Unknown error!")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
