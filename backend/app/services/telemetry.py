"""Provider-neutral telemetry types shared by the live status sources.

Both the Digital Factory cloud source and the direct device source reduce
their wire payloads to a ``RawTelemetry``. Failures are raised as
``TelemetryError`` subclasses, each carrying the ``reason`` reported to clients.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from backend.app.schemas.printer import LiveReason

UNKNOWN_JOB_NAME = "Unknown job"
UNKNOWN_JOB_STATUS = "unknown"


class SourceKind(StrEnum):
    CLOUD = "cloud"
    DEVICE = "device"


class TelemetryError(Exception):
    """Base exception for live telemetry failures."""

    reason: LiveReason = LiveReason.UNREACHABLE
    detail: str | None = None


class NotConfiguredError(TelemetryError):
    """No device address is mapped for the printer key."""

    reason = LiveReason.KEY_NOT_CONFIGURED


class DeviceTimeoutError(TelemetryError):
    """The device did not answer before the deadline."""

    reason = LiveReason.TIMEOUT


class UnreachableError(TelemetryError):
    """Network-level failure talking to the device."""

    reason = LiveReason.UNREACHABLE


class ClusterNotFoundError(TelemetryError):
    """No Digital Factory cluster matches the printer key."""

    reason = LiveReason.CLOUD_ERROR
    detail = "cluster_not_found"


class UpstreamError(TelemetryError):
    """Non-success response from a cloud provider endpoint."""

    reason = LiveReason.CLOUD_ERROR
    detail = "upstream_error"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class RawJob:
    name: str = UNKNOWN_JOB_NAME
    status: str = UNKNOWN_JOB_STATUS
    time_elapsed: float = 0
    time_total: float = 0


@dataclass(frozen=True)
class RawTelemetry:
    printer_status: str
    job: RawJob | None = None


class TelemetrySource(Protocol):
    """Uniform interface over the live status backends."""

    kind: SourceKind
    supports_cancellation: bool

    async def fetch_telemetry(self, printer_key: str) -> RawTelemetry: ...

    async def close(self) -> None: ...


def _seconds(value) -> float:
    """Coerce a provider time field to seconds, defaulting junk to zero."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0


def parse_job(data: dict) -> RawJob:
    """Build a RawJob from a provider job object, tolerating missing fields."""
    return RawJob(
        name=data.get("name") or UNKNOWN_JOB_NAME,
        status=data.get("status") or UNKNOWN_JOB_STATUS,
        time_elapsed=_seconds(data.get("time_elapsed")),
        time_total=_seconds(data.get("time_total")),
    )


def select_active_job(jobs) -> RawJob | None:
    """Pick the job that is printing, else the first job, else none."""
    if not isinstance(jobs, list):
        return None
    jobs = [job for job in jobs if isinstance(job, dict)]
    if not jobs:
        return None
    for job in jobs:
        if job.get("status") == "printing":
            return parse_job(job)
    return parse_job(jobs[0])
