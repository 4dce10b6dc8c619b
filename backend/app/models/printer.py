import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.core.database import Base


def _new_printer_id() -> str:
    return uuid.uuid4().hex


class Printer(Base):
    __tablename__ = "printers"

    id: Mapped[str] = mapped_column(String(128), primary_key=True, default=_new_printer_id)
    name: Mapped[str] = mapped_column(String(80), index=True)
    # Cluster name / host alias in Digital Factory, or a key into PRINTER_IPS
    printer_key: Mapped[str | None] = mapped_column(String(60))
    status: Mapped[str] = mapped_column(String(20), default="available")  # available, in_use, maintenance
    estimated_finish: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))  # only meaningful while in_use
    photo_url: Mapped[str | None] = mapped_column(String(500))
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
