import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Import settings first for logging configuration
from backend.app.core.config import settings as app_settings, APP_VERSION

# Configure logging based on settings
# DEBUG=true -> DEBUG level, else use LOG_LEVEL setting
log_level_str = "DEBUG" if app_settings.debug else app_settings.log_level.upper()
log_level = getattr(logging, log_level_str, logging.INFO)
log_format = '%(asctime)s %(levelname)s [%(name)s] %(message)s'

# Create root logger
root_logger = logging.getLogger()
root_logger.setLevel(log_level)

# Console handler - always enabled
console_handler = logging.StreamHandler()
console_handler.setLevel(log_level)
console_handler.setFormatter(logging.Formatter(log_format))
root_logger.addHandler(console_handler)

# File handler - only if explicitly enabled
if app_settings.log_to_file:
    log_file = app_settings.log_dir / "printer-board.log"
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=5*1024*1024,  # 5MB
        backupCount=3,
        encoding='utf-8'
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(logging.Formatter(log_format))
    root_logger.addHandler(file_handler)
    logging.info(f"Logging to file: {log_file}")

# Reduce noise from third-party libraries in production
if not app_settings.debug:
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

logging.info(f"Printer Board starting - debug={app_settings.debug}, log_level={log_level_str}")

from slowapi import _rate_limit_exceeded_handler  # noqa: E402
from slowapi.errors import RateLimitExceeded  # noqa: E402
from slowapi.middleware import SlowAPIMiddleware  # noqa: E402

from backend.app.api.routes import printers  # noqa: E402
from backend.app.core.database import init_db  # noqa: E402
from backend.app.core.rate_limit import limiter  # noqa: E402
from backend.app.services.live_status import close_live_status_service, init_live_status_service  # noqa: E402


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    await init_db()

    if not app_settings.admin_api_key:
        logging.warning("ADMIN_API_KEY is not set - create/update/delete routes are not protected")

    # Pick the live telemetry source once for the whole process
    init_live_status_service()

    yield

    # Shutdown
    await close_live_status_service()


app = FastAPI(
    title=app_settings.app_name,
    description="Live availability board for makerspace 3D printers",
    version=APP_VERSION,
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in app_settings.frontend_url.split(",") if o.strip()],
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-API-Key"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Log unexpected errors; never leak internal details in production."""
    logging.getLogger(__name__).exception(f"Unhandled error on {request.method} {request.url.path}")
    message = "Internal server error" if app_settings.is_production else (str(exc) or "Internal server error")
    return JSONResponse(status_code=500, content={"detail": message})


# API routes
app.include_router(printers.router, prefix=app_settings.api_prefix)


@app.get("/health")
async def health_check():
    """Health check endpoint. Exposes nothing about configuration."""
    return {"ok": True}
