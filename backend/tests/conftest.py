"""Shared test fixtures for Printer Board backend tests."""

import logging
import os
from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import pytest

# IMPORTANT: Set environment variables BEFORE any app imports
# This must happen before settings/config are loaded
os.environ["LOG_TO_FILE"] = "false"
os.environ["DEBUG"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.pop("ULTIMAKER_CLIENT_ID", None)
os.environ.pop("ULTIMAKER_CLIENT_SECRET", None)

from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

# Ensure settings use our env vars - import and override before database import
from backend.app.core.config import settings  # noqa: E402

settings.log_to_file = False
settings.admin_api_key = "test-admin-key"

from backend.app.core.database import Base  # noqa: E402
from backend.app.services.live_cache import ResponseCache  # noqa: E402
from backend.app.services.live_status import LiveStatusService  # noqa: E402
from backend.tests.fakes import FakeClock, FakeTelemetrySource  # noqa: E402

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ADMIN_HEADERS = {"X-API-Key": "test-admin-key"}


@pytest.fixture
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    # Import all models to register them
    from backend.app.models import printer  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session_maker = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session_maker() as session:
        yield session


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_source():
    return FakeTelemetrySource()


@pytest.fixture
def live_service(fake_source, fake_clock):
    """An isolated live status service backed by the fake source."""
    return LiveStatusService(fake_source, ResponseCache(ttl=30, clock=fake_clock))


@pytest.fixture
async def async_client(test_engine, db_session, live_service) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    from backend.app.core.database import get_db
    from backend.app.main import app
    from backend.app.services.live_status import get_live_status_service

    # Create a new session maker for the test engine
    test_async_session = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with test_async_session() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_live_status_service] = lambda: live_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return dict(ADMIN_HEADERS)


# ============================================================================
# Test Data Factories
# ============================================================================


@pytest.fixture
def printer_factory(db_session):
    """Factory to create test printers."""
    _counter = [0]

    async def _create_printer(**kwargs):
        from backend.app.models.printer import Printer

        _counter[0] += 1
        counter = _counter[0]

        defaults = {
            "name": f"UMS5-{counter}",
            "printer_key": f"ums5-{counter}",
            "status": "available",
            "estimated_finish": None,
            "photo_url": None,
            "last_updated": datetime(2026, 1, 1, tzinfo=timezone.utc),
        }
        defaults.update(kwargs)

        printer = Printer(**defaults)
        db_session.add(printer)
        await db_session.commit()
        await db_session.refresh(printer)
        return printer

    return _create_printer


# ============================================================================
# Log Capture
# ============================================================================


class LogCapture(logging.Handler):
    """Handler that keeps emitted records for assertions."""

    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord):
        self.records.append(record)

    def get_warnings(self) -> list[logging.LogRecord]:
        return [r for r in self.records if r.levelno == logging.WARNING]

    def get_errors(self) -> list[logging.LogRecord]:
        return [r for r in self.records if r.levelno >= logging.ERROR]


@pytest.fixture
def capture_logs():
    """Capture log records emitted during a test.

    Usage:
        def test_something(capture_logs):
            ...
            assert capture_logs.get_warnings()
    """
    handler = LogCapture()
    root = logging.getLogger()
    previous_level = root.level
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)
    yield handler
    root.removeHandler(handler)
    root.setLevel(previous_level)
