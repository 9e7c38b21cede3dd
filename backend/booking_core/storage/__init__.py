"""
Storage port and adapters.

Everything above this package (slot calculator, reservation coordinator,
routers) depends on BookingStorage only.
"""

from ..config import Settings
from .base import BookingStorage, LedgerTransaction
from .memory import MemoryStorage
from .sql import SqlStorage


def build_storage(settings: Settings) -> BookingStorage:
    """Pick the adapter configured by STORAGE_BACKEND."""
    if settings.storage_backend == "memory":
        return MemoryStorage()

    from ..database import SessionLocal

    return SqlStorage(SessionLocal)


__all__ = [
    "BookingStorage",
    "LedgerTransaction",
    "MemoryStorage",
    "SqlStorage",
    "build_storage",
]
