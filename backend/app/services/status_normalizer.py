"""Map provider telemetry onto the canonical printer status vocabulary."""

import math
from dataclasses import dataclass

from backend.app.schemas.printer import PrinterStatus
from backend.app.services.telemetry import RawJob

# Exact, case-sensitive provider status -> canonical status
STATUS_MAP: dict[str, PrinterStatus] = {
    "idle": PrinterStatus.AVAILABLE,
    "error": PrinterStatus.MAINTENANCE,
    "maintenance": PrinterStatus.MAINTENANCE,
}

# Anything unmapped (printing, paused, pre_print, new firmware states...) is
# treated as busy. An unknown active state must never read as "available".
UNMAPPED_STATUS_FALLBACK = PrinterStatus.IN_USE


@dataclass(frozen=True)
class JobProgress:
    name: str
    status: str
    time_elapsed: int
    time_total: int
    time_remaining: int
    percent_complete: int


def normalize_status(provider_status: str) -> PrinterStatus:
    return STATUS_MAP.get(provider_status, UNMAPPED_STATUS_FALLBACK)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percent_complete(elapsed: float, total: float) -> int:
    """Percentage of the job done, clamped to 0-100. Zero when total is unknown."""
    if total <= 0:
        return 0
    return max(0, min(100, _round_half_up(elapsed / total * 100)))


def build_job_progress(job: RawJob | None) -> JobProgress | None:
    if job is None:
        return None

    elapsed = job.time_elapsed
    total = job.time_total
    return JobProgress(
        name=job.name,
        status=job.status,
        time_elapsed=_round_half_up(elapsed),
        time_total=_round_half_up(total),
        time_remaining=_round_half_up(max(0, total - elapsed)),
        percent_complete=percent_complete(elapsed, total),
    )
