"""Storage backend base class, in-memory backend, and factory."""

from __future__ import annotations

import copy
import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from .models import ACTIVE_STATUSES, Item, Order, OrderStatus, StockEntry, Table

if TYPE_CHECKING:
    from .config import PosConfig


class Store(ABC):
    """Persistence for items, stock entries, orders and tables.

    Every method returns detached copies; mutating a returned record
    never changes what is stored until it is saved again.
    """

    # items

    @abstractmethod
    def list_items(self) -> list[Item]: ...

    @abstractmethod
    def get_item(self, item_id: str) -> Item | None: ...

    @abstractmethod
    def get_item_by_code(self, code: int) -> Item | None:
        """Return the item with this code, preferring an active one."""
        ...

    @abstractmethod
    def save_item(self, item: Item) -> None: ...

    @abstractmethod
    def delete_item(self, item_id: str) -> None: ...

    @abstractmethod
    def item_referenced(self, item_id: str) -> bool:
        """True if any order line references the item."""
        ...

    # stock

    @abstractmethod
    def get_stock(self, item_id: str, day: str) -> StockEntry | None: ...

    @abstractmethod
    def save_stock(self, entry: StockEntry) -> None:
        """Insert or replace the entry for (item_id, date)."""
        ...

    @abstractmethod
    def adjust_stock(self, item_id: str, day: str, delta: float) -> StockEntry | None:
        """Atomically add ``delta`` to current_stock.

        Returns the updated entry, or None when no entry exists.
        """
        ...

    @abstractmethod
    def list_stock(self, day: str) -> list[StockEntry]: ...

    @abstractmethod
    def stock_history(self, item_id: str, start: str, end: str) -> list[StockEntry]:
        """Entries for an item with ``start <= date < end``, oldest first."""
        ...

    # orders

    @abstractmethod
    def next_order_seq(self, day: str) -> int:
        """Reserve and return the next order sequence number for a day."""
        ...

    @abstractmethod
    def save_order(self, order: Order) -> None: ...

    @abstractmethod
    def get_order(self, order_id: str) -> Order | None: ...

    @abstractmethod
    def list_orders(
        self, day: str | None = None, status: OrderStatus | None = None
    ) -> list[Order]:
        """Orders newest first, optionally filtered by creation day and status."""
        ...

    @abstractmethod
    def latest_active_order(self, table_no: str) -> Order | None: ...

    # tables

    @abstractmethod
    def list_tables(self) -> list[Table]: ...

    @abstractmethod
    def get_table(self, table_no: str) -> Table | None: ...

    @abstractmethod
    def save_table(self, table: Table) -> None: ...

    def close(self) -> None:
        pass


class MemoryStore(Store):
    """Dict-backed store used for tests and degraded local-only mode."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: dict[str, Item] = {}
        self._stock: dict[tuple[str, str], StockEntry] = {}
        self._orders: dict[str, Order] = {}
        self._seq: dict[str, int] = {}
        self._tables: dict[str, Table] = {}

    def list_items(self) -> list[Item]:
        with self._lock:
            items = sorted(self._items.values(), key=lambda i: i.code)
            return copy.deepcopy(items)

    def get_item(self, item_id: str) -> Item | None:
        with self._lock:
            return copy.deepcopy(self._items.get(item_id))

    def get_item_by_code(self, code: int) -> Item | None:
        with self._lock:
            matches = [i for i in self._items.values() if i.code == code]
            if not matches:
                return None
            matches.sort(key=lambda i: (i.is_active, i.created_at), reverse=True)
            return copy.deepcopy(matches[0])

    def save_item(self, item: Item) -> None:
        with self._lock:
            self._items[item.id] = copy.deepcopy(item)

    def delete_item(self, item_id: str) -> None:
        with self._lock:
            self._items.pop(item_id, None)

    def item_referenced(self, item_id: str) -> bool:
        with self._lock:
            return any(
                line.item_id == item_id
                for order in self._orders.values()
                for line in order.lines
            )

    def get_stock(self, item_id: str, day: str) -> StockEntry | None:
        with self._lock:
            return copy.deepcopy(self._stock.get((item_id, day)))

    def save_stock(self, entry: StockEntry) -> None:
        with self._lock:
            self._stock[(entry.item_id, entry.date)] = copy.deepcopy(entry)

    def adjust_stock(self, item_id: str, day: str, delta: float) -> StockEntry | None:
        with self._lock:
            entry = self._stock.get((item_id, day))
            if entry is None:
                return None
            entry.current_stock += delta
            return copy.deepcopy(entry)

    def list_stock(self, day: str) -> list[StockEntry]:
        with self._lock:
            return copy.deepcopy([e for e in self._stock.values() if e.date == day])

    def stock_history(self, item_id: str, start: str, end: str) -> list[StockEntry]:
        with self._lock:
            rows = [
                e
                for e in self._stock.values()
                if e.item_id == item_id and start <= e.date < end
            ]
            rows.sort(key=lambda e: e.date)
            return copy.deepcopy(rows)

    def next_order_seq(self, day: str) -> int:
        with self._lock:
            self._seq[day] = self._seq.get(day, 0) + 1
            return self._seq[day]

    def save_order(self, order: Order) -> None:
        with self._lock:
            stored = copy.deepcopy(order)
            stored.stock_anomalies = []
            self._orders[order.id] = stored

    def get_order(self, order_id: str) -> Order | None:
        with self._lock:
            return copy.deepcopy(self._orders.get(order_id))

    def list_orders(
        self, day: str | None = None, status: OrderStatus | None = None
    ) -> list[Order]:
        with self._lock:
            orders = list(self._orders.values())
        if day is not None:
            orders = [o for o in orders if o.created_at.startswith(day)]
        if status is not None:
            orders = [o for o in orders if o.status == status]
        orders.sort(key=lambda o: (o.created_at, o.order_no), reverse=True)
        return copy.deepcopy(orders)

    def latest_active_order(self, table_no: str) -> Order | None:
        for order in self.list_orders():
            if order.table_no == table_no and order.status in ACTIVE_STATUSES:
                return order
        return None

    def list_tables(self) -> list[Table]:
        with self._lock:
            tables = sorted(self._tables.values(), key=lambda t: t.table_no)
            return copy.deepcopy(tables)

    def get_table(self, table_no: str) -> Table | None:
        with self._lock:
            return copy.deepcopy(self._tables.get(table_no))

    def save_table(self, table: Table) -> None:
        with self._lock:
            self._tables[table.table_no] = copy.deepcopy(table)


def create_store(config: PosConfig) -> Store:
    """Create a storage backend based on configuration."""
    backend_name = config.database.backend

    match backend_name:
        case "memory":
            return MemoryStore()
        case "sqlite":
            from .db import SQLiteStore

            return SQLiteStore(config.database.path)
        case _:
            raise ValueError(
                f"Unknown database backend: {backend_name!r} "
                f"(choose from memory / sqlite)"
            )
