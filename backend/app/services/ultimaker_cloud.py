"""
Ultimaker Digital Factory Cloud API Service

Reads live printer state for the account behind a single OAuth client
credential (ULTIMAKER_CLIENT_ID / ULTIMAKER_CLIENT_SECRET).

A printer record's ``printer_key`` must match the cluster ``name`` or
``host_name`` shown in the Digital Factory dashboard (e.g. "ums5-1").
"""

import logging
import time

import httpx

from backend.app.services.telemetry import (
    ClusterNotFoundError,
    RawTelemetry,
    SourceKind,
    UpstreamError,
    select_active_job,
)
from backend.app.services.token_cache import DEFAULT_REFRESH_MARGIN, OAuthToken, TokenCache

logger = logging.getLogger(__name__)

ULTIMAKER_API_BASE = "https://api.ultimaker.com"
DEFAULT_SCOPE = "um.df.organization.printers.read"
DEFAULT_TOKEN_LIFETIME = 3600  # seconds, when expires_in is missing


def extract_clusters(payload) -> list[dict]:
    """The listing comes back as a bare array or wrapped in data/clusters."""
    if isinstance(payload, list):
        clusters = payload
    elif isinstance(payload, dict):
        clusters = payload.get("data") or payload.get("clusters") or []
    else:
        clusters = []
    if not isinstance(clusters, list):
        return []
    return [c for c in clusters if isinstance(c, dict)]


def find_cluster(clusters: list[dict], printer_key: str) -> dict | None:
    for cluster in clusters:
        if cluster.get("name") == printer_key or cluster.get("host_name") == printer_key:
            return cluster
    return None


def cluster_to_telemetry(cluster: dict) -> RawTelemetry:
    raw_status = cluster.get("printer_status") or cluster.get("status") or "idle"
    jobs = cluster.get("print_jobs")
    if jobs is None:
        jobs = cluster.get("active_print_jobs") or []
    return RawTelemetry(printer_status=raw_status, job=select_active_job(jobs))


class UltimakerCloudSource:
    """Telemetry source backed by the Digital Factory cluster listing."""

    kind = SourceKind.CLOUD
    supports_cancellation = False

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        base_url: str = ULTIMAKER_API_BASE,
        scope: str = DEFAULT_SCOPE,
        timeout: float = 10.0,
        refresh_margin: float = DEFAULT_REFRESH_MARGIN,
        client: httpx.AsyncClient | None = None,
        clock=time.monotonic,
    ):
        self.base_url = base_url.rstrip("/")
        self._client_id = client_id
        self._client_secret = client_secret
        self._scope = scope
        self._clock = clock
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self.tokens = TokenCache(self._request_token, clock=clock, refresh_margin=refresh_margin)

    async def _request_token(self) -> OAuthToken:
        """Exchange the client credential for a bearer token."""
        try:
            response = await self._client.post(
                f"{self.base_url}/oauth/v1/token",
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                data={
                    "grant_type": "client_credentials",
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "scope": self._scope,
                },
            )
        except httpx.RequestError as e:
            raise UpstreamError(f"OAuth request failed: {e}")

        if not response.is_success:
            raise UpstreamError(
                f"Ultimaker OAuth error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            raise UpstreamError("Ultimaker OAuth returned a non-JSON body")

        access_token = data.get("access_token")
        if not access_token:
            raise UpstreamError("Ultimaker OAuth response had no access_token")

        expires_in = data.get("expires_in") or DEFAULT_TOKEN_LIFETIME
        logger.info("Obtained Digital Factory access token (expires in %ss)", expires_in)
        return OAuthToken(access_token=access_token, expires_at=self._clock() + float(expires_in))

    async def _api_get(self, path: str):
        token = await self.tokens.get_token()
        try:
            response = await self._client.get(
                f"{self.base_url}{path}",
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.RequestError as e:
            raise UpstreamError(f"Request failed: {e}")

        if not response.is_success:
            raise UpstreamError(f"Ultimaker API {response.status_code}: {path}", status_code=response.status_code)

        try:
            return response.json()
        except ValueError:
            raise UpstreamError(f"Ultimaker API returned a non-JSON body: {path}")

    async def list_clusters(self) -> list[dict]:
        """Get every cluster in the account. The API has no single-cluster lookup."""
        payload = await self._api_get("/connect/v1/clusters")
        return extract_clusters(payload)

    async def fetch_telemetry(self, printer_key: str) -> RawTelemetry:
        clusters = await self.list_clusters()
        cluster = find_cluster(clusters, printer_key)
        if cluster is None:
            raise ClusterNotFoundError(
                f'cluster_not_found: "{printer_key}" - check printer_key matches Digital Factory cluster name'
            )
        return cluster_to_telemetry(cluster)

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()
