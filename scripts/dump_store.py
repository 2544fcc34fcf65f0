#!/usr/bin/env python3
"""Dump every collection of a transportjf logbook.

Opens the durable store and the sync cache named by the ``TRANSPORT_*``
environment variables (or the options below) and prints each collection
next to its cached mirror, so drift between the two is easy to spot.

Usage
-----
::

    export TRANSPORT_DATABASE_PATH=transportjf.sqlite3
    export TRANSPORT_CACHE_PATH=transportjf-cache.json
    python scripts/dump_store.py

Options::

    --collection NAME    Only dump this collection (repeatable)
    --json               Output as machine-readable JSON
    --output FILE        Write output to FILE instead of stdout
    --no-migrate         Do not run the legacy cache migration on open
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from transportjf import Logbook, ReadAuthority, TransportConfig  # noqa: E402
from transportjf._constants import COLLECTIONS  # noqa: E402
from transportjf._redact import redact_for_log  # noqa: E402

# ── helpers ──────────────────────────────────────────────────


def _section(title: str) -> str:
    line = "=" * 60
    return f"\n{line}\n  {title}\n{line}"


def _mirror_drift(stored: list[dict[str, Any]], cached: list[dict[str, Any]] | None) -> str:
    if cached is None:
        return "not mirrored"
    stored_ids = {r.get("id") for r in stored}
    cached_ids = {r.get("id") for r in cached}
    if stored_ids == cached_ids:
        return "in sync"
    return f"store-only={sorted(stored_ids - cached_ids)} cache-only={sorted(cached_ids - stored_ids)}"


# ── main ─────────────────────────────────────────────────────


async def main() -> None:
    parser = argparse.ArgumentParser(description="Dump transportjf collections for debugging.")
    parser.add_argument("--collection", action="append", choices=COLLECTIONS, help="Only dump this collection")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--output", "-o", help="Write output to FILE instead of stdout")
    parser.add_argument("--no-migrate", action="store_true", help="Skip the legacy cache migration")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    config = TransportConfig.from_env(run_migration=not args.no_migrate, seed_defaults=False)
    result: dict[str, Any] = {
        "timestamp": datetime.now(UTC).isoformat(),
        "database_path": config.database_path,
        "cache_path": config.cache_path,
        "collections": {},
    }

    out: list[str] = [_section("transportjf dump_store")]
    out.append(f"  time      : {result['timestamp']}")
    out.append(f"  database  : {config.database_path}")
    out.append(f"  cache     : {config.cache_path}")

    async with Logbook(config) as logbook:
        out.append(f"  schema    : v{logbook.store.schema_version}")
        for collection in args.collection or COLLECTIONS:
            stored = await logbook.store.get_all(collection)
            mirrored = logbook.storage.authority(collection) == ReadAuthority.MIRRORED
            cached = logbook.cache.get_collection(collection) if mirrored else None
            drift = _mirror_drift(stored, cached)
            result["collections"][collection] = {"records": stored, "mirror": drift}

            out.append(_section(f"{collection}  ({len(stored)} record(s), {drift})"))
            for record in stored:
                out.append(json.dumps(redact_for_log(record), ensure_ascii=False))

    if args.json_mode:
        payload = json.dumps(result, indent=2, default=str, ensure_ascii=False)
        if args.output:
            Path(args.output).write_text(payload, encoding="utf-8")
            print(f"JSON written to {args.output}", file=sys.stderr)
        else:
            print(payload)
    elif args.output:
        Path(args.output).write_text("\n".join(out), encoding="utf-8")
        print(f"Dump written to {args.output}")
    else:
        print("\n".join(out))


if __name__ == "__main__":
    asyncio.run(main())
