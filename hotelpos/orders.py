"""Order ledger: committed orders, their status machines, and broadcasts."""

from __future__ import annotations

import logging
import math
import threading
from collections import OrderedDict
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterator
from uuid import uuid4

from .broadcast import (
    TOPIC_LINE_STATUS,
    TOPIC_ORDER_NEW,
    TOPIC_ORDER_STATUS,
    EventBus,
    order_payload,
)
from .errors import (
    EmptyCart,
    InvalidTransition,
    NoEntryForDate,
    NotFound,
    ValidationError,
)
from .models import (
    LINE_TRANSITIONS,
    ORDER_TRANSITIONS,
    LineItem,
    LineStatus,
    Order,
    OrderStatus,
    PaymentStatus,
    StockAnomaly,
    TableStatus,
)
from .stock import StockLedger
from .store import Store
from .tables import TableRegistry

logger = logging.getLogger(__name__)

_EDITABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.PREPARING})


def _parse_status(enum, value, what: str):
    try:
        return enum(value)
    except ValueError:
        raise ValidationError(f"Unknown {what} status: {value!r}") from None


class OrderLedger:
    """The single source of truth for committed orders.

    Every mutation runs under one re-entrant lock, so two terminals
    racing to move the same order from the same state cannot both
    succeed: the loser sees the new state and gets InvalidTransition.
    Events are queued while the lock is held and delivered after it
    is released.
    """

    def __init__(
        self,
        store: Store,
        stock: StockLedger,
        *,
        bus: EventBus | None = None,
        tables: TableRegistry | None = None,
        missing_entry_policy: str = "warn",
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        if missing_entry_policy not in ("warn", "block"):
            raise ValueError(f"Unknown missing_entry_policy: {missing_entry_policy!r}")
        self._store = store
        self._stock = stock
        self._bus = bus
        self._tables = tables
        self._policy = missing_entry_policy
        self._clock = clock
        self._lock = threading.RLock()

    def create_order(
        self, lines: list[LineItem], table_no: str | None = None
    ) -> Order:
        """Commit lines as a new Pending order and deplete stock.

        Missing stock entries are returned on ``order.stock_anomalies``
        under the ``warn`` policy, or raise NoEntryForDate (with no
        order created) under ``block``.

        Raises:
            EmptyCart: If ``lines`` is empty.
            ValidationError: On a non-positive quantity or a reserved table.
            NotFound: If ``table_no`` is not a known table.
        """
        if not lines:
            raise EmptyCart()
        for line in lines:
            if not math.isfinite(line.quantity) or line.quantity <= 0:
                raise ValidationError(
                    f"Quantity for {line.item_name} must be positive"
                )
        table_no = table_no or None
        if table_no is not None:
            self._check_table(table_no)

        per_item: OrderedDict[str, float] = OrderedDict()
        for line in lines:
            per_item[line.item_id] = per_item.get(line.item_id, 0.0) + line.quantity

        with self._lock:
            now = self._clock()
            day = now.date().isoformat()
            if self._policy == "block":
                for item_id in per_item:
                    if self._stock.get(item_id, day) is None:
                        raise NoEntryForDate(item_id, day)

            seq = self._store.next_order_seq(day)
            stamp = now.isoformat(timespec="seconds")
            order = Order(
                id=uuid4().hex,
                order_no=f"ORD-{now:%Y%m%d}-{seq:04d}",
                table_no=table_no,
                lines=[
                    replace(line, id=uuid4().hex, status=LineStatus.PENDING)
                    for line in lines
                ],
                created_at=stamp,
                updated_at=stamp,
            )
            self._store.save_order(order)

            anomalies: list[StockAnomaly] = []
            for item_id, quantity in per_item.items():
                anomaly = self._stock.deplete_for_order(
                    item_id, day, quantity, order_id=order.id
                )
                if anomaly is not None:
                    anomalies.append(anomaly)

            self._publish(TOPIC_ORDER_NEW, order)

        self._flush()
        logger.info(
            "Order %s created (table=%s, lines=%d, total=%.2f)",
            order.order_no,
            table_no or "-",
            len(order.lines),
            order.total,
        )
        order.stock_anomalies = anomalies
        return order

    def transition(self, order_id: str, target: OrderStatus | str) -> Order:
        """Move an order along one edge of its status machine.

        Raises:
            NotFound: Unknown order id.
            InvalidTransition: ``target`` is not reachable from the
                current status (including anything from a terminal one).
        """
        target = _parse_status(OrderStatus, target, "order")
        with self._lock:
            order = self._require(order_id)
            if target not in ORDER_TRANSITIONS[order.status]:
                raise InvalidTransition(order.status.value, target.value)
            previous = order.status
            order.status = target
            self._touch(order)
            if target is OrderStatus.SERVED:
                order.completed_at = order.updated_at
            self._store.save_order(order)
            self._publish(TOPIC_ORDER_STATUS, order, previous=previous.value)
        self._flush()
        logger.info(
            "Order %s: %s -> %s", order.order_no, previous.value, target.value
        )
        return order

    def cancel(self, order_id: str) -> Order:
        return self.transition(order_id, OrderStatus.CANCELLED)

    def transition_line(
        self, order_id: str, line_id: str, target: LineStatus | str
    ) -> Order:
        """Advance one line's kitchen status by a single step."""
        target = _parse_status(LineStatus, target, "line")
        with self._lock:
            order = self._require(order_id)
            line = order.find_line(line_id)
            if line is None:
                raise NotFound(f"Line {line_id} not found in order {order.order_no}")
            if order.status is OrderStatus.CANCELLED:
                raise InvalidTransition(order.status.value, target.value, "line")
            if target not in LINE_TRANSITIONS[line.status]:
                raise InvalidTransition(line.status.value, target.value, "line")
            line.status = target
            self._touch(order)
            self._store.save_order(order)
            self._publish(
                TOPIC_LINE_STATUS, order, line_id=line.id, line_status=target.value
            )
        self._flush()
        return order

    def update_line_quantity(
        self, order_id: str, line_id: str, quantity: float
    ) -> Order:
        """Change a line's quantity while the order is Pending or Preparing.

        The difference is depleted from (or returned to) the stock of
        the day the order was created.
        """
        if not math.isfinite(quantity) or quantity <= 0:
            raise ValidationError("Quantity must be positive; cancel the order instead")
        with self._lock:
            order = self._require(order_id)
            if order.status not in _EDITABLE_STATUSES:
                raise ValidationError(
                    f"Order {order.order_no} is {order.status.value}; "
                    "quantities can no longer change"
                )
            line = order.find_line(line_id)
            if line is None:
                raise NotFound(f"Line {line_id} not found in order {order.order_no}")
            delta = quantity - line.quantity
            line.quantity = float(quantity)
            self._touch(order)
            self._store.save_order(order)
            anomalies = []
            if delta:
                anomaly = self._stock.deplete_for_order(
                    line.item_id, order.day, delta, order_id=order.id
                )
                if anomaly is not None:
                    anomalies.append(anomaly)
            self._publish(
                TOPIC_LINE_STATUS, order, line_id=line.id, line_status=line.status.value
            )
        self._flush()
        order.stock_anomalies = anomalies
        return order

    def mark_paid(self, order_id: str) -> Order:
        with self._lock:
            order = self._require(order_id)
            if (
                order.payment_status is not PaymentStatus.PENDING
                or order.status is OrderStatus.CANCELLED
            ):
                raise InvalidTransition(
                    order.payment_status.value, PaymentStatus.PAID.value, "payment"
                )
            order.payment_status = PaymentStatus.PAID
            self._touch(order)
            self._store.save_order(order)
        return order

    def refund(self, order_id: str) -> Order:
        with self._lock:
            order = self._require(order_id)
            if order.payment_status is not PaymentStatus.PAID:
                raise InvalidTransition(
                    order.payment_status.value, PaymentStatus.REFUNDED.value, "payment"
                )
            order.payment_status = PaymentStatus.REFUNDED
            self._touch(order)
            self._store.save_order(order)
        return order

    def get(self, order_id: str) -> Order:
        with self._lock:
            return self._require(order_id)

    def by_table(self, table_no: str) -> Order | None:
        """The most recent order for a table that is neither served nor cancelled."""
        with self._lock:
            return self._store.latest_active_order(table_no)

    def list_orders(
        self, day: str | None = None, status: OrderStatus | str | None = None
    ) -> list[Order]:
        if status is not None:
            status = _parse_status(OrderStatus, status, "order")
        with self._lock:
            return self._store.list_orders(day=day, status=status)

    @contextmanager
    def snapshot(self) -> Iterator[OrderLedger]:
        """Hold the ledger lock across several reads.

        Orders and the stock they depleted are only ever changed
        together under this lock, so reads made inside the block never
        see an order whose depletion is half applied.
        """
        with self._lock:
            yield self

    def kitchen_snapshot(self) -> list[Order]:
        """Active orders, oldest first, for subscribers resynchronizing."""
        with self._lock:
            orders = self._store.list_orders()
        active = [o for o in orders if not o.is_terminal]
        return sorted(active, key=lambda o: (o.created_at, o.order_no))

    def _require(self, order_id: str) -> Order:
        order = self._store.get_order(order_id)
        if order is None:
            raise NotFound(f"Order {order_id} not found")
        return order

    def _check_table(self, table_no: str) -> None:
        if self._tables is None or not self._tables.has_tables():
            return
        table = self._tables.get(table_no)
        if table is None:
            raise NotFound(f"Table {table_no} not found")
        if table.status is TableStatus.RESERVED:
            raise ValidationError(f"Table {table_no} is reserved")

    def _touch(self, order: Order) -> None:
        order.updated_at = self._clock().isoformat(timespec="seconds")
        order.version += 1

    def _publish(self, topic: str, order: Order, **extra) -> None:
        if self._bus is None:
            return
        event = {
            "order_id": order.id,
            "order_no": order.order_no,
            "version": order.version,
            "status": order.status.value,
            "order": order_payload(order),
        }
        event.update(extra)
        self._bus.publish(topic, event)

    def _flush(self) -> None:
        if self._bus is not None:
            self._bus.flush()
