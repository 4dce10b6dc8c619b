#!/usr/bin/env python3
"""Rename printers to UMS5-<n> based on their ums5-<n> printer_key.

Keeps the board ordering (printers are listed by name) in step with the
physical numbering.
"""

import asyncio
import re
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.app.core.database import async_session, init_db
from backend.app.services.printer_store import PrinterStore

KEY_RE = re.compile(r"^ums5-(\d+)$")


def expected_name(printer_key: str | None) -> str | None:
    match = KEY_RE.match(printer_key or "")
    if not match:
        return None
    return f"UMS5-{match.group(1)}"


async def normalize() -> int:
    await init_db()

    fixed = 0
    async with async_session() as db:
        store = PrinterStore(db)
        for printer in await store.list():
            correct_name = expected_name(printer.printer_key)
            if correct_name is None:
                print(f"  skip  {printer.id} - no recognized printer_key ({printer.printer_key})")
                continue

            if printer.name == correct_name:
                print(f"  ok    {correct_name}")
                continue

            old_name = printer.name or "(unnamed)"
            await store.update(printer.id, name=correct_name)
            print(f"  fixed {old_name} -> {correct_name}")
            fixed += 1

    return fixed


def main():
    try:
        asyncio.run(normalize())
    except Exception as e:
        print(f"Failed: {e}")
        sys.exit(1)

    print("\nDone.")


if __name__ == "__main__":
    main()
