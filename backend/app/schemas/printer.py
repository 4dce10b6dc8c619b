from datetime import datetime, timezone
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field, field_validator

MAX_NAME_LEN = 80
MAX_KEY_LEN = 60
MAX_URL_LEN = 500
PRINTER_ID_PATTERN = r"^[a-zA-Z0-9_-]{1,128}$"


class PrinterStatus(StrEnum):
    """Canonical printer status stored on every record."""

    AVAILABLE = "available"
    IN_USE = "in_use"
    MAINTENANCE = "maintenance"


class LiveReason(StrEnum):
    """Why a live lookup produced no telemetry."""

    NO_KEY = "no_key"
    KEY_NOT_CONFIGURED = "key_not_configured"
    UNREACHABLE = "unreachable"
    TIMEOUT = "timeout"
    CLOUD_ERROR = "cloud_error"


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite keeps no offset; stored datetimes are UTC wall time
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _blank_to_none(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class PrinterCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=MAX_NAME_LEN)
    printer_key: str | None = Field(default=None, max_length=MAX_KEY_LEN)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return str(v).strip() if v is not None else v

    @field_validator("printer_key", mode="before")
    @classmethod
    def normalize_key(cls, v):
        return _blank_to_none(v)


class PrinterUpdate(BaseModel):
    status: PrinterStatus | None = None
    estimated_finish: datetime | None = None
    photo_url: str | None = Field(default=None, max_length=MAX_URL_LEN)
    printer_key: str | None = Field(default=None, max_length=MAX_KEY_LEN)

    @field_validator("photo_url", "printer_key", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        return _blank_to_none(v)

    @field_validator("estimated_finish")
    @classmethod
    def finish_in_utc(cls, v):
        return _as_utc(v)


class PrinterResponse(BaseModel):
    id: str
    name: str
    printer_key: str | None = None
    status: PrinterStatus
    estimated_finish: datetime | None = None
    photo_url: str | None = None
    last_updated: datetime | None = None

    @field_validator("estimated_finish", "last_updated")
    @classmethod
    def assume_utc(cls, v):
        return _as_utc(v)

    class Config:
        from_attributes = True


class PrinterCreated(BaseModel):
    id: str


class OkResponse(BaseModel):
    ok: bool = True


class JobProgressResponse(BaseModel):
    """Progress of the job a printer is working on, derived from live telemetry."""

    name: str
    status: str
    time_elapsed: int
    time_total: int
    time_remaining: int
    percent_complete: int


class LiveStatusOnline(BaseModel):
    live: Literal[True] = True
    printer_status: str  # provider-native status, as reported
    canonical_status: PrinterStatus
    job: JobProgressResponse | None = None


class LiveStatusOffline(BaseModel):
    live: Literal[False] = False
    reason: LiveReason
    detail: str | None = None  # finer-grained cause, e.g. "cluster_not_found"


LiveStatusResponse = LiveStatusOnline | LiveStatusOffline
