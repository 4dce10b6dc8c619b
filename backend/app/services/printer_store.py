"""Persisted printer records, accessed by id."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.models.printer import Printer

logger = logging.getLogger(__name__)


class PrinterNotFoundError(Exception):
    """No printer record exists for the id."""


class PersistenceError(Exception):
    """A write to the printer store failed."""


class PrinterStore:
    """Single-record get/list/add/update/delete over an async session.

    Every write commits on its own; records are independently owned so no
    write spans more than one row.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, printer_id: str) -> Printer | None:
        result = await self.db.execute(select(Printer).where(Printer.id == printer_id))
        return result.scalar_one_or_none()

    async def list(self) -> list[Printer]:
        result = await self.db.execute(select(Printer).order_by(Printer.name))
        return list(result.scalars().all())

    async def add(self, **fields) -> Printer:
        printer = Printer(**fields)
        self.db.add(printer)
        await self._commit()
        await self.db.refresh(printer)
        return printer

    async def update(self, printer_id: str, **fields) -> Printer:
        printer = await self.get(printer_id)
        if printer is None:
            raise PrinterNotFoundError(printer_id)
        for field, value in fields.items():
            setattr(printer, field, value)
        await self._commit()
        return printer

    async def delete(self, printer_id: str) -> bool:
        printer = await self.get(printer_id)
        if printer is None:
            return False
        await self.db.delete(printer)
        await self._commit()
        return True

    async def _commit(self):
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(str(e)) from e
