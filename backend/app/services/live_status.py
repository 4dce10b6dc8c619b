"""Live status reconciliation.

Fetches telemetry for a printer from the configured source, maps it onto the
canonical status, writes the status back when the stored record has drifted,
and caches the answer for a short TTL. Failures to reach a printer are a
normal outcome and come back as ``live: false`` results, never as errors.
"""

import logging
from dataclasses import asdict
from datetime import datetime, timedelta, timezone

from backend.app.core.config import Settings
from backend.app.schemas.printer import (
    JobProgressResponse,
    LiveReason,
    LiveStatusOffline,
    LiveStatusOnline,
    LiveStatusResponse,
    PrinterStatus,
)
from backend.app.services.live_cache import ResponseCache
from backend.app.services.printer_store import PersistenceError, PrinterNotFoundError, PrinterStore
from backend.app.services.status_normalizer import JobProgress, build_job_progress, normalize_status
from backend.app.services.telemetry import TelemetryError, TelemetrySource
from backend.app.services.ultimaker_cloud import UltimakerCloudSource
from backend.app.services.ultimaker_device import UltimakerDeviceSource

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_telemetry_source(settings: Settings) -> TelemetrySource:
    """Choose the live source once: cloud when credentials exist, else direct device polling."""
    if settings.cloud_configured:
        logger.info("Live status source: Ultimaker Digital Factory (%s)", settings.ultimaker_api_base)
        return UltimakerCloudSource(
            client_id=settings.ultimaker_client_id,
            client_secret=settings.ultimaker_client_secret,
            base_url=settings.ultimaker_api_base,
            scope=settings.ultimaker_scope,
            timeout=settings.ultimaker_cloud_timeout,
            refresh_margin=settings.token_refresh_margin,
        )

    addresses = settings.device_addresses()
    logger.info("Live status source: direct device polling (%d printer address(es) configured)", len(addresses))
    return UltimakerDeviceSource(addresses, timeout=settings.device_timeout)


def estimate_finish(status: PrinterStatus, job: JobProgress | None, now: datetime) -> datetime | None:
    if status == PrinterStatus.IN_USE and job is not None and job.time_remaining > 0:
        return now + timedelta(seconds=job.time_remaining)
    return None


class LiveStatusService:
    """Reconciles stored printer status against live telemetry."""

    def __init__(self, source: TelemetrySource, cache: ResponseCache | None = None, clock=utcnow):
        self.source = source
        self.cache = cache if cache is not None else ResponseCache()
        self._clock = clock

    def invalidate(self, printer_id: str):
        """Drop the cached live result after a manual change to the printer."""
        self.cache.invalidate(printer_id)

    def _remember(self, printer_id: str, result: LiveStatusResponse) -> LiveStatusResponse:
        self.cache.set(printer_id, result)
        return result

    async def get_live_status(self, printer_id: str, store: PrinterStore) -> LiveStatusResponse:
        """Return the live status of a printer.

        Raises:
            PrinterNotFoundError: No record exists for ``printer_id``.
        """
        cached = self.cache.get(printer_id)
        if cached is not None:
            logger.debug("Live status cache hit for printer %s", printer_id)
            return cached

        printer = await store.get(printer_id)
        if printer is None:
            raise PrinterNotFoundError(printer_id)

        if not printer.printer_key:
            return self._remember(printer_id, LiveStatusOffline(reason=LiveReason.NO_KEY))

        try:
            telemetry = await self.source.fetch_telemetry(printer.printer_key)
        except TelemetryError as e:
            logger.warning(
                "Live %s fetch failed for printer %s (key=%s): %s",
                self.source.kind,
                printer_id,
                printer.printer_key,
                e,
            )
            return self._remember(printer_id, LiveStatusOffline(reason=e.reason, detail=e.detail))

        canonical = normalize_status(telemetry.printer_status)
        job = build_job_progress(telemetry.job)

        if canonical != printer.status:
            await self._write_back(printer_id, printer.status, canonical, job, store)

        result = LiveStatusOnline(
            printer_status=telemetry.printer_status,
            canonical_status=canonical,
            job=JobProgressResponse(**asdict(job)) if job else None,
        )
        return self._remember(printer_id, result)

    async def _write_back(
        self,
        printer_id: str,
        previous: str,
        canonical: PrinterStatus,
        job: JobProgress | None,
        store: PrinterStore,
    ):
        now = self._clock()
        try:
            await store.update(
                printer_id,
                status=canonical.value,
                estimated_finish=estimate_finish(canonical, job, now),
                last_updated=now,
            )
        except (PersistenceError, PrinterNotFoundError) as e:
            # The read succeeded; report it even though the record could not be corrected
            logger.warning("Write-back of live status for printer %s failed: %s", printer_id, e)
            return
        logger.info("Printer %s status synced from live data: %s -> %s", printer_id, previous, canonical)

    async def close(self):
        await self.source.close()


# Singleton instance
_live_status_service: LiveStatusService | None = None


def get_live_status_service() -> LiveStatusService:
    """Get the singleton live status service, building it from settings on first use."""
    global _live_status_service
    if _live_status_service is None:
        from backend.app.core.config import settings

        _live_status_service = LiveStatusService(
            build_telemetry_source(settings),
            ResponseCache(ttl=settings.live_cache_ttl),
        )
    return _live_status_service


def init_live_status_service(service: LiveStatusService | None = None) -> LiveStatusService:
    """Install ``service`` (or a settings-built one) as the singleton."""
    global _live_status_service
    _live_status_service = service
    return get_live_status_service()


async def close_live_status_service():
    """Close the singleton's source and forget it."""
    global _live_status_service
    if _live_status_service is not None:
        await _live_status_service.close()
        _live_status_service = None
