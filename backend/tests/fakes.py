"""Test doubles for the live status services."""

import asyncio
from datetime import datetime, timezone

from backend.app.services.telemetry import RawTelemetry, SourceKind


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeTelemetrySource:
    """In-memory telemetry source recording every fetch."""

    kind = SourceKind.DEVICE
    supports_cancellation = False

    def __init__(self):
        self.telemetry = RawTelemetry(printer_status="idle")
        self.error: Exception | None = None
        self.calls: list[str] = []
        self.closed = False

    async def fetch_telemetry(self, printer_key: str) -> RawTelemetry:
        self.calls.append(printer_key)
        if self.error is not None:
            raise self.error
        return self.telemetry

    async def close(self):
        self.closed = True


class BlockingTelemetrySource(FakeTelemetrySource):
    """Cancellable source whose fetch never finishes on its own."""

    supports_cancellation = True

    def __init__(self):
        super().__init__()
        self.started = asyncio.Event()
        self.cancelled = asyncio.Event()

    async def fetch_telemetry(self, printer_key: str) -> RawTelemetry:
        self.calls.append(printer_key)
        self.started.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled.set()
            raise
        return self.telemetry


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo on the way back; stored values are UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
