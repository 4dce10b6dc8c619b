"""Direct LAN access to Ultimaker printers through their cluster API.

The printers answer unauthenticated on ``http://<address>/cluster-api/v1``.
Addresses come from the PRINTER_IPS key -> address table so network topology
stays out of the printer records.
"""

import asyncio
import logging

import httpx

from backend.app.services.telemetry import (
    DeviceTimeoutError,
    NotConfiguredError,
    RawTelemetry,
    SourceKind,
    UnreachableError,
    select_active_job,
)

logger = logging.getLogger(__name__)

DEFAULT_DEVICE_TIMEOUT = 5.0


def device_base_url(address: str) -> str:
    return f"http://{address}/cluster-api/v1"


class UltimakerDeviceSource:
    """Telemetry source polling each printer's local cluster API."""

    kind = SourceKind.DEVICE
    supports_cancellation = True

    def __init__(
        self,
        addresses: dict[str, str],
        timeout: float = DEFAULT_DEVICE_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        self.addresses = dict(addresses)
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def fetch_telemetry(self, printer_key: str) -> RawTelemetry:
        address = self.addresses.get(printer_key)
        if not address:
            raise NotConfiguredError(f'No address configured for printer_key "{printer_key}"')
        return await self.fetch_telemetry_at(printer_key, address)

    async def _get_json(self, url: str):
        response = await self._client.get(url)
        if not response.is_success:
            raise UnreachableError(f"{url} returned HTTP {response.status_code}")
        try:
            return response.json()
        except ValueError:
            raise UnreachableError(f"{url} returned a non-JSON body")

    async def fetch_telemetry_at(self, printer_key: str, address: str) -> RawTelemetry:
        """Poll jobs and printers concurrently under one shared deadline.

        If either request fails or the deadline passes, the sibling request is
        cancelled and the whole call fails.
        """
        base = device_base_url(address)
        tasks = [
            asyncio.ensure_future(self._get_json(f"{base}/print_jobs")),
            asyncio.ensure_future(self._get_json(f"{base}/printers")),
        ]
        try:
            jobs, printers = await asyncio.wait_for(asyncio.gather(*tasks), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise DeviceTimeoutError(f"{printer_key} ({address}) did not respond within {self.timeout}s")
        except httpx.TimeoutException as e:
            raise DeviceTimeoutError(f"{printer_key} ({address}) timed out: {e}")
        except httpx.RequestError as e:
            raise UnreachableError(f"{printer_key} ({address}) unreachable: {e}")
        except httpx.InvalidURL as e:
            raise UnreachableError(f"{printer_key} has an invalid address {address!r}: {e}")
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
                elif not task.cancelled():
                    # gather only re-raises the first failure
                    task.exception()

        raw_status = "idle"
        if isinstance(printers, list) and printers and isinstance(printers[0], dict):
            raw_status = printers[0].get("status") or "idle"

        return RawTelemetry(printer_status=raw_status, job=select_active_job(jobs))

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()
