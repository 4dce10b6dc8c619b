#!/usr/bin/env python3
"""Seed the printer board with the default UMS5-1 ... UMS5-N fleet.

Printers whose printer_key already exists are skipped, so the script can be
re-run safely.
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.app.core.database import async_session, init_db
from backend.app.schemas.printer import PrinterStatus
from backend.app.services.live_status import utcnow
from backend.app.services.printer_store import PrinterStore


def default_fleet(count: int) -> list[dict]:
    return [{"name": f"UMS5-{i}", "printer_key": f"ums5-{i}"} for i in range(1, count + 1)]


async def seed(count: int) -> tuple[int, int]:
    await init_db()

    added = 0
    skipped = 0
    async with async_session() as db:
        store = PrinterStore(db)
        existing_keys = {p.printer_key for p in await store.list()}

        for printer in default_fleet(count):
            if printer["printer_key"] in existing_keys:
                print(f"  skip  {printer['name']} (already exists)")
                skipped += 1
                continue
            await store.add(
                **printer,
                status=PrinterStatus.AVAILABLE.value,
                estimated_finish=None,
                photo_url=None,
                last_updated=utcnow(),
            )
            print(f"  added {printer['name']}")
            added += 1

    return added, skipped


def main():
    parser = argparse.ArgumentParser(description="Seed the default printer fleet")
    parser.add_argument("--count", type=int, default=8, help="Number of UMS5 printers to create (default: 8)")
    args = parser.parse_args()

    try:
        added, skipped = asyncio.run(seed(args.count))
    except Exception as e:
        print(f"Seed failed: {e}")
        sys.exit(1)

    print(f"\nDone - {added} added, {skipped} skipped.")


if __name__ == "__main__":
    main()
