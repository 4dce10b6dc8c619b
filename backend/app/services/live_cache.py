"""Short-lived per-printer cache of live status results."""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

DEFAULT_TTL = 30.0


@dataclass(frozen=True)
class _Entry:
    data: Any
    expires_at: float


class ResponseCache:
    """Maps printer id -> live result, each entry expiring ``ttl`` seconds after it was stored."""

    def __init__(self, ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, _Entry] = {}

    def get(self, printer_id: str):
        entry = self._entries.get(printer_id)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            self._entries.pop(printer_id, None)
            return None
        return entry.data

    def set(self, printer_id: str, data):
        self._entries[printer_id] = _Entry(data=data, expires_at=self._clock() + self.ttl)

    def invalidate(self, printer_id: str):
        self._entries.pop(printer_id, None)

    def clear(self):
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
