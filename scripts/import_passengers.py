#!/usr/bin/env python3
"""Import passengers from a CSV export of the roster spreadsheet.

Column headers are matched loosely (``Nombre``/``Nombres y Apellidos``,
``Cedula``/``Cédula``, ``Gerencia``...).  Rows without a name or cedula
are skipped; cedulas that are already registered are reported as
duplicates.

Usage
-----
::

    python scripts/import_passengers.py roster.csv
    python scripts/import_passengers.py roster.csv --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import csv
import logging
import sys
from pathlib import Path

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from transportjf import DuplicateKeyError, Logbook, StorageFullError, TransportConfig  # noqa: E402
from transportjf.ingestion import ImportSummary, import_passengers, passengers_from_rows  # noqa: E402


def _report(summary: ImportSummary) -> None:
    print(f"imported   : {summary.imported_count}")
    print(f"duplicates : {len(summary.duplicates)}")
    for cedula in summary.duplicates:
        print(f"    - {cedula}")
    # +2: header line and 1-based numbering
    print(f"incomplete : {', '.join(str(i + 2) for i in summary.skipped_rows) or 'none'}")


async def main() -> int:
    parser = argparse.ArgumentParser(description="Import passengers from a CSV file.")
    parser.add_argument("csv_file", type=Path, help="CSV file with a header row")
    parser.add_argument("--delimiter", default=",", help="Field delimiter (default: ',')")
    parser.add_argument("--encoding", default="utf-8-sig", help="File encoding (default: utf-8-sig)")
    parser.add_argument("--dry-run", action="store_true", help="Parse and report without writing")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    with args.csv_file.open(newline="", encoding=args.encoding) as handle:
        rows = list(csv.DictReader(handle, delimiter=args.delimiter))

    if args.dry_run:
        _report(passengers_from_rows(rows))
        return 0

    async with Logbook(TransportConfig.from_env()) as logbook:
        try:
            summary = await import_passengers(logbook.storage, rows)
        except (StorageFullError, DuplicateKeyError) as exc:
            print(f"Import stopped: {exc}", file=sys.stderr)
            return 1
    _report(summary)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
