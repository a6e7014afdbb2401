"""SQLite implementation of the Store interface."""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path

from ..models import (
    Item,
    LineItem,
    LineStatus,
    Order,
    OrderStatus,
    PaymentStatus,
    StockEntry,
    Table,
    TableStatus,
)
from ..store import Store
from .schema import ensure_schema


def _row_to_item(row: sqlite3.Row) -> Item:
    return Item(
        id=row["id"],
        code=row["code"],
        name=row["name"],
        category=row["category"],
        price=row["price"],
        unit=row["unit"],
        description=row["description"],
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_stock(row: sqlite3.Row) -> StockEntry:
    return StockEntry(
        id=row["id"],
        item_id=row["item_id"],
        date=row["date"],
        starting_stock=row["starting_stock"],
        current_stock=row["current_stock"],
        unit=row["unit"],
        notes=row["notes"],
    )


def _row_to_line(row: sqlite3.Row) -> LineItem:
    return LineItem(
        id=row["id"],
        item_id=row["item_id"],
        item_code=row["item_code"],
        item_name=row["item_name"],
        quantity=row["quantity"],
        unit_price=row["unit_price"],
        notes=row["notes"],
        status=LineStatus(row["status"]),
    )


class SQLiteStore(Store):
    """Stores everything in one SQLite file.

    A single connection is shared between threads and guarded by a
    lock. Stock adjustments and order numbering run as single SQL
    statements inside a transaction, so they also stay correct when
    several processes share the file.
    """

    def __init__(self, db_path: str | Path = "~/.config/hotelpos/hotelpos.db") -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = ensure_schema(self._db_path)
        return self._conn

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    # items

    def list_items(self) -> list[Item]:
        with self._lock:
            rows = self._get_conn().execute(
                "SELECT * FROM items ORDER BY code, created_at"
            ).fetchall()
        return [_row_to_item(r) for r in rows]

    def get_item(self, item_id: str) -> Item | None:
        with self._lock:
            row = self._get_conn().execute(
                "SELECT * FROM items WHERE id = ?", (item_id,)
            ).fetchone()
        return _row_to_item(row) if row else None

    def get_item_by_code(self, code: int) -> Item | None:
        with self._lock:
            row = self._get_conn().execute(
                """SELECT * FROM items WHERE code = ?
                   ORDER BY is_active DESC, created_at DESC LIMIT 1""",
                (code,),
            ).fetchone()
        return _row_to_item(row) if row else None

    def save_item(self, item: Item) -> None:
        with self._lock:
            conn = self._get_conn()
            with conn:
                conn.execute(
                    """INSERT OR REPLACE INTO items
                       (id, code, name, category, price, unit, description,
                        is_active, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        item.id,
                        item.code,
                        item.name,
                        item.category,
                        item.price,
                        item.unit,
                        item.description,
                        int(item.is_active),
                        item.created_at,
                        item.updated_at,
                    ),
                )

    def delete_item(self, item_id: str) -> None:
        with self._lock:
            conn = self._get_conn()
            with conn:
                conn.execute("DELETE FROM items WHERE id = ?", (item_id,))

    def item_referenced(self, item_id: str) -> bool:
        with self._lock:
            row = self._get_conn().execute(
                "SELECT 1 FROM order_lines WHERE item_id = ? LIMIT 1", (item_id,)
            ).fetchone()
        return row is not None

    # stock

    def get_stock(self, item_id: str, day: str) -> StockEntry | None:
        with self._lock:
            row = self._get_conn().execute(
                "SELECT * FROM stock_entries WHERE item_id = ? AND date = ?",
                (item_id, day),
            ).fetchone()
        return _row_to_stock(row) if row else None

    def save_stock(self, entry: StockEntry) -> None:
        with self._lock:
            conn = self._get_conn()
            with conn:
                cur = conn.execute(
                    """UPDATE stock_entries
                       SET starting_stock = ?, current_stock = ?, unit = ?, notes = ?
                       WHERE item_id = ? AND date = ?""",
                    (
                        entry.starting_stock,
                        entry.current_stock,
                        entry.unit,
                        entry.notes,
                        entry.item_id,
                        entry.date,
                    ),
                )
                if cur.rowcount == 0:
                    conn.execute(
                        """INSERT INTO stock_entries
                           (id, item_id, date, starting_stock, current_stock,
                            unit, notes)
                           VALUES (?, ?, ?, ?, ?, ?, ?)""",
                        (
                            entry.id,
                            entry.item_id,
                            entry.date,
                            entry.starting_stock,
                            entry.current_stock,
                            entry.unit,
                            entry.notes,
                        ),
                    )

    def adjust_stock(self, item_id: str, day: str, delta: float) -> StockEntry | None:
        with self._lock:
            conn = self._get_conn()
            with conn:
                cur = conn.execute(
                    """UPDATE stock_entries
                       SET current_stock = current_stock + ?
                       WHERE item_id = ? AND date = ?""",
                    (delta, item_id, day),
                )
                if cur.rowcount == 0:
                    return None
                row = conn.execute(
                    "SELECT * FROM stock_entries WHERE item_id = ? AND date = ?",
                    (item_id, day),
                ).fetchone()
        return _row_to_stock(row)

    def list_stock(self, day: str) -> list[StockEntry]:
        with self._lock:
            rows = self._get_conn().execute(
                "SELECT * FROM stock_entries WHERE date = ? ORDER BY rowid", (day,)
            ).fetchall()
        return [_row_to_stock(r) for r in rows]

    def stock_history(self, item_id: str, start: str, end: str) -> list[StockEntry]:
        with self._lock:
            rows = self._get_conn().execute(
                """SELECT * FROM stock_entries
                   WHERE item_id = ? AND date >= ? AND date < ?
                   ORDER BY date""",
                (item_id, start, end),
            ).fetchall()
        return [_row_to_stock(r) for r in rows]

    # orders

    def next_order_seq(self, day: str) -> int:
        with self._lock:
            conn = self._get_conn()
            with conn:
                conn.execute(
                    """INSERT INTO order_sequence (day, last) VALUES (?, 1)
                       ON CONFLICT(day) DO UPDATE SET last = last + 1""",
                    (day,),
                )
                row = conn.execute(
                    "SELECT last FROM order_sequence WHERE day = ?", (day,)
                ).fetchone()
        return row["last"]

    def save_order(self, order: Order) -> None:
        with self._lock:
            conn = self._get_conn()
            with conn:
                conn.execute(
                    """INSERT INTO orders
                       (id, order_no, table_no, status, payment_status,
                        created_at, updated_at, completed_at, version)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                       ON CONFLICT(id) DO UPDATE SET
                           table_no = excluded.table_no,
                           status = excluded.status,
                           payment_status = excluded.payment_status,
                           updated_at = excluded.updated_at,
                           completed_at = excluded.completed_at,
                           version = excluded.version""",
                    (
                        order.id,
                        order.order_no,
                        order.table_no,
                        order.status.value,
                        order.payment_status.value,
                        order.created_at,
                        order.updated_at,
                        order.completed_at,
                        order.version,
                    ),
                )
                for position, line in enumerate(order.lines):
                    conn.execute(
                        """INSERT INTO order_lines
                           (id, order_id, position, item_id, item_code, item_name,
                            quantity, unit_price, notes, status)
                           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                           ON CONFLICT(id) DO UPDATE SET
                               position = excluded.position,
                               quantity = excluded.quantity,
                               notes = excluded.notes,
                               status = excluded.status""",
                        (
                            line.id,
                            order.id,
                            position,
                            line.item_id,
                            line.item_code,
                            line.item_name,
                            line.quantity,
                            line.unit_price,
                            line.notes,
                            line.status.value,
                        ),
                    )

    def _load_orders(self, rows: list[sqlite3.Row]) -> list[Order]:
        conn = self._get_conn()
        orders = []
        for row in rows:
            lines = conn.execute(
                "SELECT * FROM order_lines WHERE order_id = ? ORDER BY position",
                (row["id"],),
            ).fetchall()
            orders.append(
                Order(
                    id=row["id"],
                    order_no=row["order_no"],
                    table_no=row["table_no"],
                    lines=[_row_to_line(r) for r in lines],
                    status=OrderStatus(row["status"]),
                    payment_status=PaymentStatus(row["payment_status"]),
                    created_at=row["created_at"],
                    updated_at=row["updated_at"],
                    completed_at=row["completed_at"],
                    version=row["version"],
                )
            )
        return orders

    def get_order(self, order_id: str) -> Order | None:
        with self._lock:
            rows = self._get_conn().execute(
                "SELECT * FROM orders WHERE id = ?", (order_id,)
            ).fetchall()
            orders = self._load_orders(rows)
        return orders[0] if orders else None

    def list_orders(
        self, day: str | None = None, status: OrderStatus | None = None
    ) -> list[Order]:
        query = "SELECT * FROM orders WHERE 1 = 1"
        params: list = []
        if day is not None:
            query += " AND substr(created_at, 1, 10) = ?"
            params.append(day)
        if status is not None:
            query += " AND status = ?"
            params.append(OrderStatus(status).value)
        query += " ORDER BY created_at DESC, order_no DESC"
        with self._lock:
            rows = self._get_conn().execute(query, params).fetchall()
            return self._load_orders(rows)

    def latest_active_order(self, table_no: str) -> Order | None:
        with self._lock:
            rows = self._get_conn().execute(
                """SELECT * FROM orders
                   WHERE table_no = ? AND status IN ('pending', 'preparing', 'ready')
                   ORDER BY created_at DESC, order_no DESC LIMIT 1""",
                (table_no,),
            ).fetchall()
            orders = self._load_orders(rows)
        return orders[0] if orders else None

    # tables

    def list_tables(self) -> list[Table]:
        with self._lock:
            rows = self._get_conn().execute(
                "SELECT * FROM dining_tables ORDER BY table_no"
            ).fetchall()
        return [
            Table(
                id=r["id"],
                table_no=r["table_no"],
                capacity=r["capacity"],
                status=TableStatus(r["status"]),
            )
            for r in rows
        ]

    def get_table(self, table_no: str) -> Table | None:
        with self._lock:
            r = self._get_conn().execute(
                "SELECT * FROM dining_tables WHERE table_no = ?", (table_no,)
            ).fetchone()
        if r is None:
            return None
        return Table(
            id=r["id"],
            table_no=r["table_no"],
            capacity=r["capacity"],
            status=TableStatus(r["status"]),
        )

    def save_table(self, table: Table) -> None:
        with self._lock:
            conn = self._get_conn()
            with conn:
                conn.execute(
                    """INSERT INTO dining_tables (id, table_no, capacity, status)
                       VALUES (?, ?, ?, ?)
                       ON CONFLICT(table_no) DO UPDATE SET
                           capacity = excluded.capacity,
                           status = excluded.status""",
                    (table.id, table.table_no, table.capacity, table.status.value),
                )
