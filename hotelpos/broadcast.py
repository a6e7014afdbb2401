"""In-process event bus for order and line status updates.

Events are queued in the order they are published and drained by a
single dispatcher at a time, so two updates for the same order are
never delivered out of sequence. A handler that raises is retried
(at-least-once), so subscribers must apply events idempotently; the
boards below do this by keeping the highest order ``version`` seen.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections import OrderedDict, defaultdict
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from .orders import OrderLedger

logger = logging.getLogger(__name__)

TOPIC_ORDER_NEW = "kds:order:new"
TOPIC_ORDER_STATUS = "order:status:update"
TOPIC_LINE_STATUS = "kds:item:update"
TOPICS = (TOPIC_ORDER_NEW, TOPIC_ORDER_STATUS, TOPIC_LINE_STATUS)

Handler = Callable[[dict], Any]


class EventBus:
    """Topic-based publish/subscribe with ordered delivery."""

    def __init__(self, max_attempts: int = 3) -> None:
        self._max_attempts = max(1, max_attempts)
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._handlers_lock = threading.Lock()
        self._queue: queue.Queue[tuple[str, dict] | None] = queue.Queue()
        self._dispatch_lock = threading.Lock()
        self._worker: threading.Thread | None = None

    def subscribe(self, topic: str, handler: Handler) -> None:
        with self._handlers_lock:
            self._handlers[topic].append(handler)

    def unsubscribe(self, topic: str, handler: Handler) -> None:
        with self._handlers_lock:
            try:
                self._handlers[topic].remove(handler)
            except ValueError:
                pass

    def publish(self, topic: str, payload: dict) -> None:
        """Queue an event. Delivery happens on flush() or the worker thread."""
        self._queue.put((topic, dict(payload)))

    def flush(self) -> int:
        """Deliver every queued event on the calling thread.

        Returns:
            Number of events delivered.
        """
        if self._worker is not None:
            # The worker owns delivery; nothing to do here
            return 0
        delivered = 0
        with self._dispatch_lock:
            while True:
                try:
                    event = self._queue.get_nowait()
                except queue.Empty:
                    break
                if event is not None:
                    self._deliver(*event)
                    delivered += 1
        return delivered

    def start(self) -> None:
        """Deliver events from a background thread until stop() is called."""
        if self._worker is not None:
            return
        self._worker = threading.Thread(
            target=self._run, name="hotelpos-broadcast", daemon=True
        )
        self._worker.start()
        logger.info("Broadcast worker started")

    def stop(self, timeout: float = 5.0) -> None:
        worker = self._worker
        if worker is None:
            return
        self._queue.put(None)
        worker.join(timeout)
        self._worker = None
        logger.info("Broadcast worker stopped")

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def _run(self) -> None:
        while True:
            event = self._queue.get()
            if event is None:
                break
            with self._dispatch_lock:
                self._deliver(*event)

    def _deliver(self, topic: str, payload: dict) -> None:
        with self._handlers_lock:
            handlers = list(self._handlers.get(topic, ()))
        for handler in handlers:
            for attempt in range(1, self._max_attempts + 1):
                try:
                    handler(payload)
                    break
                except Exception:
                    if attempt == self._max_attempts:
                        logger.exception(
                            "Dropping %s for order %s after %d attempts",
                            topic,
                            payload.get("order_id"),
                            attempt,
                        )
                    else:
                        logger.warning(
                            "Handler failed for %s (attempt %d), retrying",
                            topic,
                            attempt,
                        )


_FINISHED = ("served", "cancelled")


class _Board:
    """Version bookkeeping shared by the kitchen and table boards.

    The board remembers the highest version applied per order. Finished
    orders are remembered too, so a late duplicate cannot bring one
    back, but only the newest ``max_finished`` of them.
    """

    max_finished = 1000

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._versions: dict[str, int] = {}
        self._stamps: dict[str, int] = {}
        self._applied = 0
        self._finished: OrderedDict[str, None] = OrderedDict()

    def _accept(self, order_id: str, version: int, status: str) -> bool:
        # Caller holds _lock.
        if self._versions.get(order_id, 0) >= version:
            return False
        self._versions[order_id] = version
        self._applied += 1
        self._stamps[order_id] = self._applied
        if status in _FINISHED:
            self._finished[order_id] = None
            while len(self._finished) > self.max_finished:
                old, _ = self._finished.popitem(last=False)
                self._versions.pop(old, None)
                self._stamps.pop(old, None)
        return True

    def resync(self, ledger: OrderLedger) -> None:
        """Rebuild the board from the ledger's current active orders.

        A snapshot entry replaces what the board holds only when its
        version is at least the stored one. Orders applied while the
        snapshot was being taken are kept as they are. Everything else
        not in the snapshot is dropped, finished orders included.
        """
        with self._lock:
            mark = self._applied
        snapshot = ledger.kitchen_snapshot()
        with self._lock:
            fresh = {
                o.id: o for o in snapshot if self._versions.get(o.id, 0) <= o.version
            }
            keep = {oid for oid, stamp in self._stamps.items() if stamp > mark}
            keep.update(o.id for o in snapshot if o.id not in fresh)

            payloads = {
                oid: p for oid, p in self._payloads().items() if oid in keep
            }
            payloads.update((oid, order_payload(o)) for oid, o in fresh.items())
            self._replace(payloads)

            versions = {oid: self._versions[oid] for oid in keep}
            versions.update((oid, o.version) for oid, o in fresh.items())
            self._versions = versions
            self._stamps = {
                oid: stamp for oid, stamp in self._stamps.items() if oid in keep
            }
            self._finished = OrderedDict(
                (oid, None) for oid in self._finished if oid in keep
            )

    def _payloads(self) -> dict[str, dict]:
        raise NotImplementedError

    def _replace(self, payloads: dict[str, dict]) -> None:
        raise NotImplementedError


class KitchenBoard(_Board):
    """Kitchen display state rebuilt from broadcast events.

    Only orders that still need kitchen attention are kept. Events
    carrying a version older than (or equal to) what the board already
    holds are ignored, so duplicates are harmless.
    """

    def __init__(self) -> None:
        super().__init__()
        self._orders: dict[str, dict] = {}

    def attach(self, bus: EventBus) -> None:
        for topic in TOPICS:
            bus.subscribe(topic, self.apply)

    def detach(self, bus: EventBus) -> None:
        for topic in TOPICS:
            bus.unsubscribe(topic, self.apply)

    def apply(self, event: dict) -> bool:
        """Apply an event. Returns False if it was stale or a duplicate."""
        order = event["order"]
        order_id = order["order_id"]
        with self._lock:
            if not self._accept(order_id, event["version"], order["status"]):
                return False
            if order["status"] in _FINISHED:
                self._orders.pop(order_id, None)
            else:
                self._orders[order_id] = order
        return True

    def _payloads(self) -> dict[str, dict]:
        return dict(self._orders)

    def _replace(self, payloads: dict[str, dict]) -> None:
        self._orders = payloads

    def orders(self, line_status: str | None = None) -> list[dict]:
        """Orders on the board, oldest first.

        Args:
            line_status: Only orders with at least one line in this status.
        """
        with self._lock:
            orders = list(self._orders.values())
        if line_status is not None:
            orders = [
                o for o in orders
                if any(line["status"] == line_status for line in o["items"])
            ]
        return sorted(orders, key=lambda o: o["created_at"])


class TableBoard(_Board):
    """Per-table view of the active order, fed by order status events.

    Answers the same question as ``OrderLedger.by_table``: the most
    recent order on the table that is neither served nor cancelled.
    """

    def __init__(self) -> None:
        super().__init__()
        self._active: dict[str, dict[str, dict]] = defaultdict(dict)

    def attach(self, bus: EventBus) -> None:
        bus.subscribe(TOPIC_ORDER_NEW, self.apply)
        bus.subscribe(TOPIC_ORDER_STATUS, self.apply)

    def detach(self, bus: EventBus) -> None:
        bus.unsubscribe(TOPIC_ORDER_NEW, self.apply)
        bus.unsubscribe(TOPIC_ORDER_STATUS, self.apply)

    def apply(self, event: dict) -> bool:
        order = event["order"]
        table_no = order.get("table_no")
        if not table_no:
            return False
        order_id = order["order_id"]
        with self._lock:
            if not self._accept(order_id, event["version"], order["status"]):
                return False
            if order["status"] in _FINISHED:
                self._active[table_no].pop(order_id, None)
                if not self._active[table_no]:
                    del self._active[table_no]
            else:
                self._active[table_no][order_id] = order
        return True

    def _payloads(self) -> dict[str, dict]:
        return {
            oid: payload
            for orders in self._active.values()
            for oid, payload in orders.items()
        }

    def _replace(self, payloads: dict[str, dict]) -> None:
        self._active = defaultdict(dict)
        for oid, payload in payloads.items():
            if payload.get("table_no"):
                self._active[payload["table_no"]][oid] = payload

    def order_for(self, table_no: str) -> dict | None:
        with self._lock:
            orders = list(self._active.get(table_no, {}).values())
        if not orders:
            return None
        return max(orders, key=lambda o: (o["created_at"], o["order_no"]))


def order_payload(order) -> dict:
    """Serialize an order the way the kitchen display consumes it."""
    return {
        "order_id": order.id,
        "order_no": order.order_no,
        "table_no": order.table_no,
        "status": order.status.value,
        "kitchen_status": order.kitchen_status.value,
        "total": order.total,
        "created_at": order.created_at,
        "items": [
            {
                "line_id": line.id,
                "item_id": line.item_id,
                "item_name": line.item_name,
                "quantity": line.quantity,
                "status": line.status.value,
                "notes": line.notes,
            }
            for line in order.lines
        ],
    }
