"""Order entry, stock depletion and daily reporting for a single outlet."""

from .broadcast import EventBus, KitchenBoard, TableBoard
from .cart import Cart
from .catalog import Catalog
from .config import PosConfig, load_config
from .errors import (
    ConnectivityError,
    EmptyCart,
    InvalidTransition,
    ItemInactive,
    ItemNotFound,
    NoEntryForDate,
    NotFound,
    PosError,
    ValidationError,
)
from .models import (
    Item,
    LineItem,
    LineStatus,
    Order,
    OrderStatus,
    PaymentStatus,
    StockAnomaly,
    StockEntry,
    Table,
    TableStatus,
)
from .orders import OrderLedger
from .reports import ReportingEngine, classify_stock
from .service import PosService, build_service
from .stock import StockLedger
from .store import MemoryStore, Store, create_store
from .tables import TableRegistry

__all__ = [
    "Cart",
    "Catalog",
    "OrderLedger",
    "StockLedger",
    "ReportingEngine",
    "classify_stock",
    "TableRegistry",
    "EventBus",
    "KitchenBoard",
    "TableBoard",
    "Store",
    "MemoryStore",
    "create_store",
    "PosService",
    "build_service",
    "PosConfig",
    "load_config",
    "Item",
    "LineItem",
    "LineStatus",
    "Order",
    "OrderStatus",
    "PaymentStatus",
    "StockAnomaly",
    "StockEntry",
    "Table",
    "TableStatus",
    "PosError",
    "NotFound",
    "ItemNotFound",
    "NoEntryForDate",
    "ValidationError",
    "EmptyCart",
    "ItemInactive",
    "InvalidTransition",
    "ConnectivityError",
]
