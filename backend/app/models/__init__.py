from backend.app.models.printer import Printer

__all__ = [
    "Printer",
]
