"""OAuth access token cache for the Digital Factory client credential."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_MARGIN = 30.0  # seconds before expiry a token is considered stale


@dataclass(frozen=True)
class OAuthToken:
    access_token: str
    expires_at: float  # absolute, in the cache clock's time base


class TokenCache:
    """Single-slot token holder with lazy, coalesced refresh.

    ``fetcher`` performs the credential exchange and returns a fresh
    ``OAuthToken``. Concurrent callers that find the slot stale wait on one
    exchange instead of each starting their own.
    """

    def __init__(
        self,
        fetcher: Callable[[], Awaitable[OAuthToken]],
        clock: Callable[[], float] = time.monotonic,
        refresh_margin: float = DEFAULT_REFRESH_MARGIN,
    ):
        self._fetcher = fetcher
        self._clock = clock
        self._refresh_margin = refresh_margin
        self._token: OAuthToken | None = None
        self._lock = asyncio.Lock()

    @property
    def token(self) -> OAuthToken | None:
        return self._token

    def _is_fresh(self, token: OAuthToken | None) -> bool:
        return token is not None and self._clock() < token.expires_at - self._refresh_margin

    async def get_token(self) -> str:
        token = self._token
        if self._is_fresh(token):
            return token.access_token

        async with self._lock:
            # Another caller may have refreshed while we waited
            token = self._token
            if self._is_fresh(token):
                return token.access_token

            logger.debug("Refreshing OAuth access token")
            token = await self._fetcher()
            self._token = token
            return token.access_token

    def clear(self):
        self._token = None
