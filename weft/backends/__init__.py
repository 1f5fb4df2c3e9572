"""Global store persistence backends."""

from weft.backends.base import StoreBackend
from weft.backends.memory import MemoryBackend
from weft.backends.sqlite import SQLiteBackend

__all__ = [
    "StoreBackend",
    "MemoryBackend",
    "SQLiteBackend",
]
