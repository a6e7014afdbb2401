"""Wires the store, ledgers, broadcast bus and reports from a config."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from .broadcast import EventBus
from .cart import Cart
from .catalog import Catalog
from .config import PosConfig, load_config
from .orders import OrderLedger
from .reports import ReportingEngine
from .stock import StockLedger
from .store import Store, create_store
from .tables import TableRegistry

logger = logging.getLogger(__name__)


@dataclass
class PosService:
    config: PosConfig
    store: Store
    bus: EventBus
    catalog: Catalog
    stock: StockLedger
    tables: TableRegistry
    orders: OrderLedger
    reports: ReportingEngine

    def new_cart(self, table_no: str | None = None) -> Cart:
        return Cart(self.catalog, self.orders, table_no=table_no)

    def close(self) -> None:
        self.bus.stop()
        self.store.close()


def build_service(
    config: PosConfig | None = None,
    *,
    store: Store | None = None,
    clock: Callable[[], datetime] = datetime.now,
) -> PosService:
    """Build a ready-to-use service graph.

    Args:
        config: Configuration; defaults are used when omitted.
        store: Use this backend instead of the configured one.
        clock: Source of "now" for order timestamps.
    """
    config = config or load_config()
    store = store or create_store(config)
    bus = EventBus(max_attempts=config.broadcast.max_attempts)
    if config.broadcast.threaded:
        bus.start()

    catalog = Catalog(store)
    stock = StockLedger(store, retain_days=config.stock.retain_days)
    tables = TableRegistry(store)
    tables.ensure_defaults(config.tables.count, config.tables.capacity)
    orders = OrderLedger(
        store,
        stock,
        bus=bus,
        tables=tables,
        missing_entry_policy=config.stock.missing_entry_policy,
        clock=clock,
    )
    rc = config.reports
    reports = ReportingEngine(
        store,
        orders,
        stock,
        history_days=rc.history_days,
        lookahead_days=rc.lookahead_days,
        restock_days=rc.restock_days,
        low_stock_days=rc.low_stock_days,
        exclude_cancelled_revenue=rc.exclude_cancelled_revenue,
    )
    logger.debug("Service built with %s backend", config.database.backend)
    return PosService(
        config=config,
        store=store,
        bus=bus,
        catalog=catalog,
        stock=stock,
        tables=tables,
        orders=orders,
        reports=reports,
    )
