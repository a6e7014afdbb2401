"""Daily sales and stock reports, and restock suggestions."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import date

from .models import OrderStatus, StockAnomaly
from .orders import OrderLedger
from .stock import StockLedger
from .store import Store

RESTOCK = "restock"
LOW_STOCK = "low_stock"
ADEQUATE = "adequate"


@dataclass
class TopItem:
    item_id: str
    item_name: str
    quantity_sold: float
    revenue: float


@dataclass
class DailySalesReport:
    date: str
    total_orders: int
    total_revenue: float
    orders_by_status: dict[str, int]
    top_items: list[TopItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class StockRow:
    item_id: str
    item_name: str
    starting_stock: float
    current_stock: float
    sold_quantity: float
    unit: str


@dataclass
class DailyStockReport:
    date: str
    items: list[StockRow] = field(default_factory=list)
    anomalies: list[StockAnomaly] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class StockSuggestion:
    item_id: str
    item_name: str
    current_stock: float
    average_daily_sales: float
    days_remaining: float
    suggestion: str
    recommended_quantity: float | None = None

    def to_dict(self) -> dict:
        d = asdict(self)
        # JSON has no infinity
        if math.isinf(self.days_remaining):
            d["days_remaining"] = None
        return d


def classify_stock(
    current_stock: float,
    average_daily_sales: float,
    *,
    lookahead_days: float = 3.0,
    restock_days: float = 1.0,
    low_stock_days: float = 3.0,
) -> tuple[float, str, float | None]:
    """Classify an item's stock level against its average daily sales.

    Returns:
        ``(days_remaining, suggestion, recommended_quantity)``. With no
        sales history (average of zero) stock lasts forever and is
        ``adequate``. ``recommended_quantity`` is only set for
        ``restock`` and covers ``lookahead_days`` of average sales.
    """
    if average_daily_sales <= 0:
        return math.inf, ADEQUATE, None
    days_remaining = current_stock / average_daily_sales
    if days_remaining < restock_days:
        recommended = max(0.0, lookahead_days * average_daily_sales - current_stock)
        return days_remaining, RESTOCK, recommended
    if days_remaining < low_stock_days:
        return days_remaining, LOW_STOCK, None
    return days_remaining, ADEQUATE, None


class ReportingEngine:
    """Builds reports on demand from the order and stock ledgers."""

    def __init__(
        self,
        store: Store,
        orders: OrderLedger,
        stock: StockLedger,
        *,
        history_days: int = 7,
        lookahead_days: float = 3.0,
        restock_days: float = 1.0,
        low_stock_days: float = 3.0,
        exclude_cancelled_revenue: bool = False,
    ) -> None:
        self._store = store
        self._orders = orders
        self._stock = stock
        self.history_days = history_days
        self.lookahead_days = lookahead_days
        self.restock_days = restock_days
        self.low_stock_days = low_stock_days
        self.exclude_cancelled_revenue = exclude_cancelled_revenue

    def daily_sales(self, day: date | str) -> DailySalesReport:
        """Orders, revenue and best sellers for orders created on ``day``.

        Cancelled orders count toward revenue unless
        ``exclude_cancelled_revenue`` is set.
        """
        day = _day(day)
        with self._orders.snapshot():
            orders = self._orders.list_orders(day=day)
        by_status = {status.value: 0 for status in OrderStatus}
        revenue = 0.0
        items: dict[str, TopItem] = {}

        for order in orders:
            by_status[order.status.value] += 1
            if self.exclude_cancelled_revenue and order.status is OrderStatus.CANCELLED:
                continue
            revenue += order.total
            for line in order.lines:
                top = items.get(line.item_id)
                if top is None:
                    top = items[line.item_id] = TopItem(
                        item_id=line.item_id,
                        item_name=line.item_name,
                        quantity_sold=0.0,
                        revenue=0.0,
                    )
                top.quantity_sold += line.quantity
                top.revenue += line.subtotal

        top_items = sorted(
            items.values(),
            key=lambda t: (-t.revenue, -t.quantity_sold, t.item_name),
        )
        return DailySalesReport(
            date=day,
            total_orders=len(orders),
            total_revenue=revenue,
            orders_by_status=by_status,
            top_items=top_items,
        )

    def daily_stock(self, day: date | str) -> DailyStockReport:
        day = _day(day)
        with self._orders.snapshot():
            entries = self._stock.entries_for(day)
            anomalies = self._stock.anomalies(day)
        rows = [
            StockRow(
                item_id=entry.item_id,
                item_name=self._item_name(entry.item_id),
                starting_stock=entry.starting_stock,
                current_stock=entry.current_stock,
                sold_quantity=entry.sold_quantity,
                unit=entry.unit,
            )
            for entry in entries
        ]
        return DailyStockReport(date=day, items=rows, anomalies=anomalies)

    def stock_suggestions(self, day: date | str) -> list[StockSuggestion]:
        """One suggestion per item with a stock entry on ``day``.

        Average daily sales come from the item's entries in the
        ``history_days`` days before ``day``, divided by the number of
        days that have an entry (at least one).
        """
        day = _day(day)
        with self._orders.snapshot():
            entries = self._stock.entries_for(day)
            histories = {
                e.item_id: self._stock.history(e.item_id, day, self.history_days)
                for e in entries
            }
        suggestions = []
        for entry in entries:
            history = histories[entry.item_id]
            sold = sum(h.sold_quantity for h in history)
            average = sold / max(1, len(history))
            days_remaining, suggestion, recommended = classify_stock(
                entry.current_stock,
                average,
                lookahead_days=self.lookahead_days,
                restock_days=self.restock_days,
                low_stock_days=self.low_stock_days,
            )
            suggestions.append(
                StockSuggestion(
                    item_id=entry.item_id,
                    item_name=self._item_name(entry.item_id),
                    current_stock=entry.current_stock,
                    average_daily_sales=average,
                    days_remaining=days_remaining,
                    suggestion=suggestion,
                    recommended_quantity=recommended,
                )
            )
        return suggestions

    def _item_name(self, item_id: str) -> str:
        item = self._store.get_item(item_id)
        return item.name if item else ""


def _day(value: date | str) -> str:
    return value.isoformat()[:10] if isinstance(value, date) else str(value)[:10]
