import asyncio
import logging
import re

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.auth import require_api_key
from backend.app.core.config import settings
from backend.app.core.database import get_db
from backend.app.core.rate_limit import limiter
from backend.app.schemas.printer import (
    PRINTER_ID_PATTERN,
    LiveStatusResponse,
    OkResponse,
    PrinterCreate,
    PrinterCreated,
    PrinterResponse,
    PrinterStatus,
    PrinterUpdate,
)
from backend.app.services.live_status import LiveStatusService, get_live_status_service, utcnow
from backend.app.services.printer_store import PrinterNotFoundError, PrinterStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/printers", tags=["printers"])

_ID_RE = re.compile(PRINTER_ID_PATTERN)

# How often a pending live fetch checks whether the client went away
DISCONNECT_POLL_INTERVAL = 0.5
CLIENT_CLOSED_REQUEST = 499


def get_printer_store(db: AsyncSession = Depends(get_db)) -> PrinterStore:
    return PrinterStore(db)


def _validate_id(printer_id: str):
    if not _ID_RE.match(printer_id):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Invalid printer ID")


async def _run_until_disconnect(request: Request, coro):
    """Await ``coro``, cancelling it if the client disconnects first.

    Returns None when the request was abandoned.
    """
    task = asyncio.ensure_future(coro)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_INTERVAL)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.debug("Client disconnected, aborting live fetch for %s", request.url.path)
                task.cancel()
                return None
    finally:
        if not task.done():
            task.cancel()


@router.get("/", response_model=list[PrinterResponse])
async def list_printers(store: PrinterStore = Depends(get_printer_store)):
    """List all printers ordered by name."""
    return await store.list()


@router.get("/{printer_id}", response_model=PrinterResponse)
async def get_printer(printer_id: str, store: PrinterStore = Depends(get_printer_store)):
    """Get a specific printer."""
    _validate_id(printer_id)
    printer = await store.get(printer_id)
    if not printer:
        raise HTTPException(404, "Printer not found")
    return printer


@router.get("/{printer_id}/live", response_model=LiveStatusResponse)
@limiter.limit(settings.live_rate_limit)
async def get_live_status(
    request: Request,
    printer_id: str,
    store: PrinterStore = Depends(get_printer_store),
    live: LiveStatusService = Depends(get_live_status_service),
):
    """Get live telemetry for a printer, syncing its stored status when it has drifted.

    Results are cached per printer for a short TTL. An unreachable or
    unconfigured printer answers with ``live: false`` and a reason.
    """
    _validate_id(printer_id)
    try:
        if live.source.supports_cancellation:
            result = await _run_until_disconnect(request, live.get_live_status(printer_id, store))
            if result is None:
                return Response(status_code=CLIENT_CLOSED_REQUEST)
            return result
        return await live.get_live_status(printer_id, store)
    except PrinterNotFoundError:
        raise HTTPException(404, "Printer not found")


@router.post(
    "/",
    response_model=PrinterCreated,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_api_key)],
)
async def create_printer(printer_data: PrinterCreate, store: PrinterStore = Depends(get_printer_store)):
    """Add a new printer. New printers start out available."""
    printer = await store.add(
        name=printer_data.name,
        printer_key=printer_data.printer_key,
        status=PrinterStatus.AVAILABLE.value,
        estimated_finish=None,
        photo_url=None,
        last_updated=utcnow(),
    )
    logger.info("Created printer %s (%s)", printer.id, printer.name)
    return PrinterCreated(id=printer.id)


@router.patch("/{printer_id}", response_model=OkResponse, dependencies=[Depends(require_api_key)])
async def update_printer(
    printer_id: str,
    printer_data: PrinterUpdate,
    store: PrinterStore = Depends(get_printer_store),
    live: LiveStatusService = Depends(get_live_status_service),
):
    """Manually update status, estimated finish, photo or printer key."""
    _validate_id(printer_id)
    update_data = printer_data.model_dump(exclude_unset=True)

    if "status" in update_data:
        if update_data["status"] is None:
            raise HTTPException(
                status.HTTP_400_BAD_REQUEST,
                f"status must be one of: {', '.join(s.value for s in PrinterStatus)}",
            )
        update_data["status"] = update_data["status"].value

    update_data["last_updated"] = utcnow()

    live.invalidate(printer_id)
    try:
        await store.update(printer_id, **update_data)
    except PrinterNotFoundError:
        raise HTTPException(404, "Printer not found")

    # A live fetch that was in flight during the update may have re-filled the cache
    live.invalidate(printer_id)
    return OkResponse()


@router.delete("/{printer_id}", response_model=OkResponse, dependencies=[Depends(require_api_key)])
async def delete_printer(
    printer_id: str,
    store: PrinterStore = Depends(get_printer_store),
    live: LiveStatusService = Depends(get_live_status_service),
):
    """Delete a printer."""
    _validate_id(printer_id)
    live.invalidate(printer_id)
    if not await store.delete(printer_id):
        raise HTTPException(404, "Printer not found")
    live.invalidate(printer_id)
    logger.info("Deleted printer %s", printer_id)
    return OkResponse()
