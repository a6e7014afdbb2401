"""Per-item, per-day stock tracking and depletion."""

from __future__ import annotations

import logging
import math
import threading
from datetime import date, datetime, timedelta
from uuid import uuid4

from .errors import NoEntryForDate, NotFound, ValidationError
from .models import StockAnomaly, StockEntry
from .store import Store

logger = logging.getLogger(__name__)


def _day(value: date | str) -> str:
    return value.isoformat()[:10] if isinstance(value, date) else str(value)[:10]


def _finite(value: float, what: str) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{what} must be a number, got {value!r}") from None
    if not math.isfinite(value):
        raise ValidationError(f"{what} must be a finite number, got {value!r}")
    return value


class StockLedger:
    """Owns StockEntry rows; every change goes through here.

    Changes to the same (item, day) key are serialized by a per-key
    lock, and the backend applies the decrement as one atomic update.

    Key locks and anomalies are kept for ``retain_days`` before the
    newest day seen. Older ones are dropped as new days arrive.
    """

    def __init__(self, store: Store, *, retain_days: int = 31) -> None:
        if retain_days < 1:
            raise ValueError("retain_days must be at least 1")
        self._store = store
        self.retain_days = retain_days
        self._locks: dict[tuple[str, str], threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._anomalies: list[StockAnomaly] = []
        self._anomalies_lock = threading.Lock()
        self._newest_day = ""

    def _key_lock(self, item_id: str, day: str) -> threading.Lock:
        with self._locks_guard:
            if day > self._newest_day:
                self._newest_day = day
                self._drop_locks_before(self._cutoff())
            lock = self._locks.get((item_id, day))
            if lock is None:
                lock = self._locks[(item_id, day)] = threading.Lock()
            return lock

    def _cutoff(self) -> str:
        if not self._newest_day:
            return ""
        newest = date.fromisoformat(self._newest_day)
        return (newest - timedelta(days=self.retain_days)).isoformat()

    def _drop_locks_before(self, day: str) -> None:
        # Caller holds _locks_guard. A held lock is kept so its owner
        # never races a fresh one for the same key.
        stale = [k for k, lock in self._locks.items() if k[1] < day and not lock.locked()]
        for key in stale:
            del self._locks[key]
        if stale:
            logger.debug("Dropped %d stock key locks before %s", len(stale), day)

    def forget_before(self, day: date | str) -> int:
        """Drop key locks and logged anomalies for days before ``day``.

        Returns:
            Number of anomalies dropped.
        """
        day = _day(day)
        with self._locks_guard:
            self._drop_locks_before(day)
        with self._anomalies_lock:
            kept = [a for a in self._anomalies if a.date >= day]
            dropped = len(self._anomalies) - len(kept)
            self._anomalies = kept
        return dropped

    def get(self, item_id: str, day: date | str) -> StockEntry | None:
        return self._store.get_stock(item_id, _day(day))

    def get_or_create(self, item_id: str, day: date | str) -> StockEntry:
        day = _day(day)
        with self._key_lock(item_id, day):
            entry = self._store.get_stock(item_id, day)
            if entry is None:
                entry = StockEntry(
                    id=uuid4().hex,
                    item_id=item_id,
                    date=day,
                    starting_stock=0.0,
                    current_stock=0.0,
                    unit=self._unit_for(item_id),
                )
                self._store.save_stock(entry)
            return entry

    def record(
        self,
        item_id: str,
        day: date | str,
        starting_stock: float,
        notes: str | None = None,
    ) -> StockEntry:
        """Set the day's starting stock, creating the entry if needed.

        An existing entry keeps its current_stock: depletions already
        applied today are not undone by re-recording the start. If the
        new start ends up below current_stock, an ``above_start``
        anomaly is logged.
        """
        starting_stock = _finite(starting_stock, "Starting stock")
        if starting_stock < 0:
            raise ValidationError("Starting stock must not be negative")
        day = _day(day)
        with self._key_lock(item_id, day):
            entry = self._store.get_stock(item_id, day)
            if entry is None:
                entry = StockEntry(
                    id=uuid4().hex,
                    item_id=item_id,
                    date=day,
                    starting_stock=starting_stock,
                    current_stock=starting_stock,
                    unit=self._unit_for(item_id),
                    notes=notes,
                )
            else:
                entry.starting_stock = starting_stock
                if notes is not None:
                    entry.notes = notes
            self._store.save_stock(entry)
        logger.info("Stock for %s on %s starts at %s", item_id, day, starting_stock)
        self._check_above_start(entry, starting_stock)
        return entry

    def restock(self, item_id: str, day: date | str, current_stock: float) -> StockEntry:
        """Overwrite current_stock with a counted value.

        A count above the day's starting stock is kept but logged as an
        ``above_start`` anomaly.
        """
        current_stock = _finite(current_stock, "Current stock")
        day = _day(day)
        with self._key_lock(item_id, day):
            entry = self._store.get_stock(item_id, day)
            if entry is None:
                raise NoEntryForDate(item_id, day)
            delta = entry.current_stock - current_stock
            entry.current_stock = current_stock
            self._store.save_stock(entry)
        self._check_above_start(entry, delta)
        return entry

    def deplete(
        self,
        item_id: str,
        day: date | str,
        quantity: float,
        order_id: str | None = None,
    ) -> StockEntry:
        """Take ``quantity`` off the day's current stock.

        Stock may go negative; that is recorded as an anomaly rather
        than clamped. A negative ``quantity`` returns stock.

        Raises:
            NoEntryForDate: If the item has no entry for the day.
        """
        entry, _ = self._deplete(item_id, _day(day), quantity, order_id)
        return entry

    def deplete_for_order(
        self,
        item_id: str,
        day: date | str,
        quantity: float,
        order_id: str | None = None,
    ) -> StockAnomaly | None:
        """Deplete on behalf of an order without ever failing it.

        Returns:
            The anomaly recorded for this depletion, if any.
        """
        day = _day(day)
        try:
            _, anomaly = self._deplete(item_id, day, quantity, order_id)
        except NoEntryForDate:
            anomaly = self.report(
                StockAnomaly(
                    kind="missing_entry",
                    item_id=item_id,
                    date=day,
                    quantity=float(quantity),
                    order_id=order_id,
                )
            )
        return anomaly

    def _deplete(
        self, item_id: str, day: str, quantity: float, order_id: str | None
    ) -> tuple[StockEntry, StockAnomaly | None]:
        quantity = _finite(quantity, "Quantity")
        with self._key_lock(item_id, day):
            entry = self._store.adjust_stock(item_id, day, -quantity)
        if entry is None:
            raise NoEntryForDate(item_id, day)
        if entry.current_stock < 0:
            anomaly = self.report(
                StockAnomaly(
                    kind="negative_stock",
                    item_id=item_id,
                    date=day,
                    quantity=quantity,
                    current_stock=entry.current_stock,
                    order_id=order_id,
                )
            )
        else:
            anomaly = self._check_above_start(entry, quantity, order_id)
        return entry, anomaly

    def _check_above_start(
        self, entry: StockEntry, quantity: float, order_id: str | None = None
    ) -> StockAnomaly | None:
        if entry.current_stock <= entry.starting_stock:
            return None
        return self.report(
            StockAnomaly(
                kind="above_start",
                item_id=entry.item_id,
                date=entry.date,
                quantity=quantity,
                current_stock=entry.current_stock,
                order_id=order_id,
            )
        )

    def report(self, anomaly: StockAnomaly) -> StockAnomaly:
        """Record a non-fatal stock anomaly for the reporting engine."""
        if not anomaly.recorded_at:
            anomaly.recorded_at = datetime.now().isoformat(timespec="seconds")
        cutoff = self._cutoff()
        with self._anomalies_lock:
            self._anomalies.append(anomaly)
            if cutoff:
                self._anomalies = [a for a in self._anomalies if a.date >= cutoff]
        logger.warning(
            "Stock anomaly (%s) for item %s on %s: quantity=%s current=%s order=%s",
            anomaly.kind,
            anomaly.item_id,
            anomaly.date,
            anomaly.quantity,
            anomaly.current_stock,
            anomaly.order_id,
        )
        return anomaly

    def anomalies(self, day: date | str | None = None) -> list[StockAnomaly]:
        with self._anomalies_lock:
            found = list(self._anomalies)
        if day is not None:
            day = _day(day)
            found = [a for a in found if a.date == day]
        return found

    def entries_for(self, day: date | str) -> list[StockEntry]:
        return self._store.list_stock(_day(day))

    def history(self, item_id: str, before: date | str, days: int) -> list[StockEntry]:
        """Entries for an item in the ``days`` calendar days before ``before``."""
        end = date.fromisoformat(_day(before))
        start = end - timedelta(days=max(0, days))
        return self._store.stock_history(item_id, start.isoformat(), end.isoformat())

    def _unit_for(self, item_id: str) -> str:
        item = self._store.get_item(item_id)
        if item is None:
            raise NotFound(f"Item {item_id} not found")
        return item.unit
