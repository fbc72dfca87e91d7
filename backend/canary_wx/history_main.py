#!/usr/bin/env python3
"""Historical climatology import tool.

Fetches ten years of AEMET daily values per station into JSON artifacts and
upserts them into the local database.

Usage:
    python -m canary_wx.history_main fetch C447A
    python -m canary_wx.history_main upload C447A
    python -m canary_wx.history_main upload --all
    python -m canary_wx.history_main import-all [--fetch-only] [--upload-only]
                                                [--dry-run] [--station=C447A,C449C]
"""

import argparse
import logging
import sys
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .config import settings
from .models.database import SessionLocal, init_database
from .services.history_import import HistoryImporter
from .services.history_store import HistoryStore
from .services.station_catalog import StationCatalog, StationCatalogError, load_catalog

logger = logging.getLogger("canary_wx.history")


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def heading(msg: str) -> None:
    print(f"\n{'=' * 60}")
    print(f"  {msg}")
    print(f"{'=' * 60}\n")


def step(msg: str) -> None:
    print(f"  -> {msg}")


def ok(msg: str) -> None:
    print(f"  [OK] {msg}")


def warn(msg: str) -> None:
    print(f"  [!!] {msg}")


def fail(msg: str) -> None:
    print(f"  [FAIL] {msg}", file=sys.stderr)


def format_duration(seconds: float) -> str:
    seconds = int(seconds)
    minutes, hours = seconds // 60, seconds // 3600
    if hours:
        return f"{hours}h {minutes % 60}m"
    if minutes:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


@dataclass
class StationOutcome:
    station_id: str
    name: str
    fetch_ok: bool = True
    upload_ok: bool = True
    seconds: float = 0.0
    error: Optional[str] = None


def _importer(with_store: bool) -> HistoryImporter:
    store = None
    if with_store:
        init_database()
        store = HistoryStore(SessionLocal)
    return HistoryImporter(store=store)


def _fetch(importer: HistoryImporter, station_id: str) -> bool:
    try:
        result = importer.fetch_station(station_id)
    except (ValueError, OSError) as exc:
        fail(f"Fetch {station_id}: {exc}")
        return False
    ok(f"{result.total_records} records, {result.interpolated_records} interpolated -> {result.path}")
    for err in result.errors:
        warn(f"{err['period']}: {err['error']}")
    return True


def _upload(importer: HistoryImporter, station_id: str) -> bool:
    try:
        result = importer.upload_station(station_id)
    except (ValueError, OSError) as exc:
        fail(f"Upload {station_id}: {exc}")
        return False
    if result.failed_batches:
        warn(f"{station_id}: {result.failed_batches} batch(es) failed")
    ok(f"{station_id}: {result.inserted} records upserted")
    return result.failed_batches == 0


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_fetch(args: argparse.Namespace) -> int:
    """Fetch one station into its artifact."""
    if not settings.aemet_api_key:
        fail("CANARY_WX_AEMET_API_KEY is not set")
        return 1
    heading(f"Fetching station {args.station_id}")
    return 0 if _fetch(_importer(with_store=False), args.station_id) else 1


def cmd_upload(args: argparse.Namespace) -> int:
    """Upload one station's artifact, or every artifact in the import dir."""
    importer = _importer(with_store=True)
    if args.all:
        station_ids = sorted(
            p.stem.removeprefix("station_") for p in importer.import_dir.glob("station_*.json")
        )
        if not station_ids:
            fail(f"No artifacts found in {importer.import_dir}")
            return 1
    elif args.station_id:
        station_ids = [args.station_id]
    else:
        fail("Give a station id or --all")
        return 1

    heading(f"Uploading {len(station_ids)} station(s)")
    results = [_upload(importer, sid) for sid in station_ids]
    return 0 if all(results) else 1


def run_import_all(
    catalog: StationCatalog,
    importer: HistoryImporter,
    station_ids: list[str],
    fetch_only: bool = False,
    upload_only: bool = False,
    sleep: Callable[[float], None] = time.sleep,
) -> list[StationOutcome]:
    """Fetch and/or upload stations one after another."""
    outcomes = []
    for i, station_id in enumerate(station_ids):
        station = catalog.get(station_id)
        outcome = StationOutcome(station_id, station.name if station else station_id)
        print(f"\n[{i + 1}/{len(station_ids)}] {station_id} - {outcome.name}")
        started = time.monotonic()

        if not upload_only:
            outcome.fetch_ok = _fetch(importer, station_id)
            if not outcome.fetch_ok:
                outcome.error = "Fetch failed"

        if not fetch_only and outcome.fetch_ok:
            outcome.upload_ok = _upload(importer, station_id)
            if not outcome.upload_ok:
                outcome.error = (outcome.error + " & " if outcome.error else "") + "Upload failed"

        outcome.seconds = time.monotonic() - started
        outcomes.append(outcome)

        if i < len(station_ids) - 1:
            step(f"Waiting {settings.import_station_delay_sec:.0f}s before next station")
            sleep(settings.import_station_delay_sec)
    return outcomes


def cmd_import_all(args: argparse.Namespace) -> int:
    """Fetch and upload every catalogued station (or the --station subset)."""
    try:
        catalog = load_catalog()
    except StationCatalogError as exc:
        fail(str(exc))
        return 1

    station_ids = [s.station_id for s in catalog]
    if args.station:
        wanted = {sid.strip() for sid in args.station.split(",") if sid.strip()}
        station_ids = [sid for sid in station_ids if sid in wanted]
        if not station_ids:
            fail("No matching stations found")
            step("Available: " + ", ".join(s.station_id for s in catalog))
            return 1

    heading("Full import")
    step(f"Stations to process: {len(station_ids)}")
    step(f"Delay between stations: {settings.import_station_delay_sec:.0f}s")
    step(f"Fetch only: {args.fetch_only}  Upload only: {args.upload_only}  Dry run: {args.dry_run}")
    for i, sid in enumerate(station_ids, 1):
        station = catalog.get(sid)
        print(f"    {i}. {sid}: {station.name} ({station.island})")

    if args.dry_run:
        ok("Dry run, nothing done")
        return 0

    if not args.upload_only and not settings.aemet_api_key:
        fail("CANARY_WX_AEMET_API_KEY is not set")
        return 1

    started = time.monotonic()
    outcomes = run_import_all(
        catalog,
        _importer(with_store=not args.fetch_only),
        station_ids,
        fetch_only=args.fetch_only,
        upload_only=args.upload_only,
    )

    heading("Import summary")
    for o in outcomes:
        print(f"  {o.station_id:<11} | {o.name[:31]:<31} | "
              f"{'OK' if o.fetch_ok else 'FAIL':<6} | {'OK' if o.upload_ok else 'FAIL':<6} | "
              f"{format_duration(o.seconds)}")
    failed = [o for o in outcomes if not (o.fetch_ok and o.upload_ok)]
    step(f"Total duration: {format_duration(time.monotonic() - started)}")
    for o in failed:
        fail(f"{o.station_id}: {o.error}")
    return 1 if failed else 0


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(levelname)s:     %(name)s - %(message)s",
    )

    parser = argparse.ArgumentParser(
        prog="canary_wx.history_main",
        description="Import AEMET daily climatology",
    )
    sub = parser.add_subparsers(dest="command")

    p_fetch = sub.add_parser("fetch", help="Fetch one station into a JSON artifact")
    p_fetch.add_argument("station_id")

    p_upload = sub.add_parser("upload", help="Upsert artifacts into the database")
    p_upload.add_argument("station_id", nargs="?")
    p_upload.add_argument("--all", action="store_true", help="Upload every artifact found")

    p_all = sub.add_parser("import-all", help="Fetch and upload every station")
    p_all.add_argument("--fetch-only", action="store_true")
    p_all.add_argument("--upload-only", action="store_true")
    p_all.add_argument("--dry-run", action="store_true")
    p_all.add_argument("--station", help="Comma-separated station ids")

    args = parser.parse_args(argv)

    commands = {
        "fetch": cmd_fetch,
        "upload": cmd_upload,
        "import-all": cmd_import_all,
    }

    if args.command is None:
        parser.print_help()
        return 1

    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
