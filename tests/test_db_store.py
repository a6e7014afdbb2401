"""Tests for the SQLite store."""

import pytest

from hotelpos.config import PosConfig
from hotelpos.db import SQLiteStore
from hotelpos.models import (
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
from hotelpos.service import build_service
from hotelpos.store import MemoryStore, create_store


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "pos.db"


@pytest.fixture
def store(db_path):
    s = SQLiteStore(db_path)
    yield s
    s.close()


def _item(id="i1", code=7, name="Burger", active=True, created="2024-05-01T08:00:00"):
    return Item(
        id=id,
        code=code,
        name=name,
        price=4.5,
        is_active=active,
        created_at=created,
        updated_at=created,
    )


def _order(id, order_no, created_at, table_no=None, status=OrderStatus.PENDING):
    return Order(
        id=id,
        order_no=order_no,
        table_no=table_no,
        status=status,
        created_at=created_at,
        updated_at=created_at,
        lines=[
            LineItem(
                id=f"{id}-a",
                item_id="i1",
                item_code=7,
                item_name="Burger",
                quantity=2,
                unit_price=4.5,
                notes="no onions",
            ),
            LineItem(
                id=f"{id}-b",
                item_id="i2",
                item_code=12,
                item_name="Fries",
                quantity=0.5,
                unit_price=2.0,
            ),
        ],
    )


def test_item_round_trip(store):
    store.save_item(_item())

    item = store.get_item("i1")

    assert item == _item()
    assert item.is_active is True


def test_get_item_by_code_prefers_active(store):
    store.save_item(_item(id="old", active=True, created="2024-01-01T00:00:00"))
    store.save_item(_item(id="new", active=False, created="2024-05-01T00:00:00"))

    assert store.get_item_by_code(7).id == "old"
    assert store.get_item_by_code(99) is None


def test_delete_item(store):
    store.save_item(_item())
    store.delete_item("i1")
    assert store.get_item("i1") is None


def test_order_round_trip(store):
    order = _order("o1", "ORD-20240501-0001", "2024-05-01T12:00:00", table_no="T-01")
    order.stock_anomalies = [StockAnomaly("missing_entry", "i2", "2024-05-01", 0.5)]

    store.save_order(order)
    loaded = store.get_order("o1")

    assert loaded == order
    assert [l.id for l in loaded.lines] == ["o1-a", "o1-b"]
    assert loaded.lines[0].notes == "no onions"
    assert loaded.total == 10.0
    assert loaded.stock_anomalies == []


def test_save_order_updates_in_place(store):
    order = _order("o1", "ORD-20240501-0001", "2024-05-01T12:00:00")
    store.save_order(order)

    order.status = OrderStatus.SERVED
    order.payment_status = PaymentStatus.PAID
    order.completed_at = "2024-05-01T12:30:00"
    order.version = 4
    order.lines[1].status = LineStatus.READY
    order.lines[0].quantity = 3
    store.save_order(order)

    loaded = store.get_order("o1")
    assert loaded.status == OrderStatus.SERVED
    assert loaded.payment_status == PaymentStatus.PAID
    assert loaded.completed_at == "2024-05-01T12:30:00"
    assert loaded.version == 4
    assert loaded.lines[0].quantity == 3
    assert loaded.lines[1].status == LineStatus.READY
    assert store.item_referenced("i1")
    assert not store.item_referenced("i9")


def test_list_orders_filters_and_sorts(store):
    store.save_order(_order("a", "ORD-20240501-0001", "2024-05-01T09:00:00"))
    store.save_order(_order("b", "ORD-20240501-0002", "2024-05-01T10:00:00"))
    store.save_order(
        _order("c", "ORD-20240502-0001", "2024-05-02T09:00:00", status=OrderStatus.CANCELLED)
    )

    assert [o.id for o in store.list_orders()] == ["c", "b", "a"]
    assert [o.id for o in store.list_orders(day="2024-05-01")] == ["b", "a"]
    assert [o.id for o in store.list_orders(status=OrderStatus.CANCELLED)] == ["c"]


def test_latest_active_order(store):
    store.save_order(_order("a", "ORD-20240501-0001", "2024-05-01T09:00:00", "T-01"))
    store.save_order(
        _order(
            "b",
            "ORD-20240501-0002",
            "2024-05-01T10:00:00",
            "T-01",
            status=OrderStatus.SERVED,
        )
    )

    assert store.latest_active_order("T-01").id == "a"
    assert store.latest_active_order("T-02") is None


def test_order_sequence_survives_reopen(db_path):
    first = SQLiteStore(db_path)
    assert first.next_order_seq("2024-05-01") == 1
    assert first.next_order_seq("2024-05-01") == 2
    first.close()

    second = SQLiteStore(db_path)
    assert second.next_order_seq("2024-05-01") == 3
    assert second.next_order_seq("2024-05-02") == 1
    second.close()


def test_stock_round_trip_and_adjust(store):
    entry = StockEntry("s1", "i1", "2024-05-01", 20, 20, unit="pcs")
    store.save_stock(entry)

    adjusted = store.adjust_stock("i1", "2024-05-01", -4.5)

    assert adjusted.current_stock == 15.5
    assert adjusted.sold_quantity == 4.5
    assert store.adjust_stock("i1", "2024-05-02", -1) is None


def test_save_stock_updates_existing_entry(store):
    store.save_stock(StockEntry("s1", "i1", "2024-05-01", 20, 20))
    store.save_stock(StockEntry("s1", "i1", "2024-05-01", 25, 18, notes="recount"))

    [entry] = store.list_stock("2024-05-01")
    assert entry.starting_stock == 25
    assert entry.current_stock == 18
    assert entry.notes == "recount"


def test_stock_history_range(store):
    for i, day in enumerate(["2024-04-29", "2024-04-30", "2024-05-01"]):
        store.save_stock(StockEntry(f"s{i}", "i1", day, 10, 5))

    history = store.stock_history("i1", "2024-04-29", "2024-05-01")

    assert [e.date for e in history] == ["2024-04-29", "2024-04-30"]


def test_tables(store):
    store.save_table(Table("t1", "T-01"))
    store.save_table(Table("t1", "T-01", capacity=6, status=TableStatus.RESERVED))

    [table] = store.list_tables()
    assert table.capacity == 6
    assert store.get_table("T-01").status == TableStatus.RESERVED
    assert store.get_table("T-09") is None


def test_create_store_backends(tmp_path):
    config = PosConfig()
    config.database.backend = "memory"
    assert isinstance(create_store(config), MemoryStore)

    config.database.backend = "sqlite"
    config.database.path = str(tmp_path / "x.db")
    store = create_store(config)
    assert isinstance(store, SQLiteStore)
    store.close()


def test_service_lifecycle_on_sqlite(db_path, clock):
    """A full order lifecycle persists across service restarts."""
    config = PosConfig()
    config.database.path = str(db_path)

    service = build_service(config, clock=clock)
    burger = service.catalog.create(7, "Burger", 4.50)
    service.stock.record(burger.id, "2024-05-01", 20)
    cart = service.new_cart()
    cart.add_line(7, 3)
    order = cart.commit("T-03")
    for status in (OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.SERVED):
        service.orders.transition(order.id, status)
    service.orders.mark_paid(order.id)
    service.close()

    service = build_service(config, clock=clock)
    loaded = service.orders.get(order.id)
    assert loaded.status == OrderStatus.SERVED
    assert loaded.payment_status == PaymentStatus.PAID
    assert loaded.total == 13.5
    assert service.stock.get(burger.id, "2024-05-01").current_stock == 17
    assert len(service.tables.list()) == 10
    assert service.reports.daily_sales("2024-05-01").total_revenue == 13.5
    service.close()
