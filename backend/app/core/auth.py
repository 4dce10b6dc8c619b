"""API key protection for mutating routes.

Clients send the key configured in ADMIN_API_KEY as the ``X-API-Key`` header.
Without a configured key, production rejects mutations outright while
development lets them through so a local setup works without extra config.
"""

import logging
import secrets
from typing import Annotated

from fastapi import Header, HTTPException, status

from backend.app.core.config import settings

logger = logging.getLogger(__name__)

_warned_missing_key = False


async def require_api_key(
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    global _warned_missing_key

    configured = settings.admin_api_key
    if not configured:
        if settings.is_production:
            logger.error("ADMIN_API_KEY not set - rejecting mutating request")
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Server misconfigured")
        if not _warned_missing_key:
            logger.warning("ADMIN_API_KEY not set - mutating routes are unprotected")
            _warned_missing_key = True
        return

    if not x_api_key or not secrets.compare_digest(x_api_key, configured):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
