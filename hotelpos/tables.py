"""Dining table registry. Table status is managed here, not by orders."""

from __future__ import annotations

import logging
from uuid import uuid4

from .errors import NotFound
from .models import Table, TableStatus
from .store import Store

logger = logging.getLogger(__name__)


class TableRegistry:
    def __init__(self, store: Store) -> None:
        self._store = store

    def ensure_defaults(self, count: int = 10, capacity: int = 4) -> list[Table]:
        """Create tables T-01..T-NN when none exist yet."""
        tables = self._store.list_tables()
        if tables:
            return tables
        for i in range(1, count + 1):
            self._store.save_table(
                Table(id=uuid4().hex, table_no=f"T-{i:02d}", capacity=capacity)
            )
        logger.info("Created %d default tables", count)
        return self._store.list_tables()

    def list(self) -> list[Table]:
        return self._store.list_tables()

    def get(self, table_no: str) -> Table | None:
        return self._store.get_table(table_no)

    def has_tables(self) -> bool:
        return bool(self._store.list_tables())

    def set_status(self, table_no: str, status: TableStatus | str) -> Table:
        table = self._store.get_table(table_no)
        if table is None:
            raise NotFound(f"Table {table_no} not found")
        table.status = TableStatus(status)
        self._store.save_table(table)
        return table
