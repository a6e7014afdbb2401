"""Data models for items, orders, stock entries and tables."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    SERVED = "served"
    CANCELLED = "cancelled"


class LineStatus(str, Enum):
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    SERVED = "served"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class TableStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    RESERVED = "reserved"


# current -> allowed next
ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.SERVED, OrderStatus.CANCELLED}),
    OrderStatus.SERVED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

LINE_TRANSITIONS: dict[LineStatus, frozenset[LineStatus]] = {
    LineStatus.PENDING: frozenset({LineStatus.PREPARING}),
    LineStatus.PREPARING: frozenset({LineStatus.READY}),
    LineStatus.READY: frozenset({LineStatus.SERVED}),
    LineStatus.SERVED: frozenset(),
}

ACTIVE_STATUSES = frozenset(
    {OrderStatus.PENDING, OrderStatus.PREPARING, OrderStatus.READY}
)


@dataclass
class Item:
    """An orderable catalog item, looked up by its numeric code."""

    id: str
    code: int
    name: str
    category: str = ""
    price: float = 0.0
    unit: str = "pcs"
    description: str = ""
    is_active: bool = True
    created_at: str = ""
    updated_at: str = ""


@dataclass
class LineItem:
    """A quantity of one item with the price captured when it was added."""

    id: str
    item_id: str
    item_code: int
    item_name: str
    quantity: float
    unit_price: float
    notes: str | None = None
    status: LineStatus = LineStatus.PENDING

    @property
    def subtotal(self) -> float:
        return self.quantity * self.unit_price


@dataclass
class StockAnomaly:
    """A stock change that could not be tracked cleanly.

    ``kind`` is one of:

    - ``missing_entry``: no stock entry existed for the item on that day.
    - ``negative_stock``: a depletion pushed ``current_stock`` below zero.
    - ``above_start``: a count, a returned quantity or a lowered start
      left ``current_stock`` above ``starting_stock``.
    """

    kind: str
    item_id: str
    date: str
    quantity: float
    current_stock: float | None = None
    order_id: str | None = None
    recorded_at: str = ""


@dataclass
class Order:
    id: str
    order_no: str
    lines: list[LineItem]
    table_no: str | None = None
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    created_at: str = ""
    updated_at: str = ""
    completed_at: str | None = None
    version: int = 1
    stock_anomalies: list[StockAnomaly] = field(
        default_factory=list, compare=False, repr=False
    )

    @property
    def total(self) -> float:
        return sum(line.subtotal for line in self.lines)

    @property
    def day(self) -> str:
        return self.created_at[:10]

    @property
    def is_terminal(self) -> bool:
        return self.status not in ACTIVE_STATUSES

    @property
    def kitchen_status(self) -> OrderStatus:
        return derive_kitchen_status(self.lines)

    def find_line(self, line_id: str) -> LineItem | None:
        for line in self.lines:
            if line.id == line_id:
                return line
        return None


@dataclass
class StockEntry:
    """Starting and current stock for one item on one calendar day."""

    id: str
    item_id: str
    date: str
    starting_stock: float
    current_stock: float
    unit: str = ""
    notes: str | None = None

    @property
    def sold_quantity(self) -> float:
        return self.starting_stock - self.current_stock


@dataclass
class Table:
    id: str
    table_no: str
    capacity: int = 4
    status: TableStatus = TableStatus.AVAILABLE


def derive_kitchen_status(lines: list[LineItem]) -> OrderStatus:
    """Aggregate per-line kitchen progress into an order-level status.

    Display only: the result is never written back to the order.
    """
    statuses = {line.status for line in lines}
    if not statuses or statuses == {LineStatus.PENDING}:
        return OrderStatus.PENDING
    if statuses == {LineStatus.SERVED}:
        return OrderStatus.SERVED
    if statuses <= {LineStatus.READY, LineStatus.SERVED}:
        return OrderStatus.READY
    return OrderStatus.PREPARING
