"""SQLite storage backend for items, stock, orders and tables."""

from .schema import ensure_schema
from .store import SQLiteStore

__all__ = [
    "SQLiteStore",
    "ensure_schema",
]
