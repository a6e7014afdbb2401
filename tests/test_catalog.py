"""Tests for the item catalog and the table registry."""

import pytest

from hotelpos.catalog import Catalog
from hotelpos.errors import ItemNotFound, NotFound, ValidationError
from hotelpos.models import LineItem, TableStatus
from hotelpos.orders import OrderLedger
from hotelpos.stock import StockLedger
from hotelpos.store import MemoryStore
from hotelpos.tables import TableRegistry


def test_lookup_by_code(service, menu):
    item = service.catalog.lookup(7)
    assert item.id == menu["burger"].id
    assert item.price == 4.50


def test_lookup_accepts_string_code(service, menu):
    assert service.catalog.lookup("12").name == "Fries"


def test_lookup_unknown(service, menu):
    with pytest.raises(ItemNotFound) as exc:
        service.catalog.lookup(999)
    assert exc.value.code == 999


@pytest.mark.parametrize("code", ["burger", "", None, "7.5"])
def test_lookup_non_numeric_code(service, menu, code):
    with pytest.raises(ItemNotFound) as exc:
        service.catalog.lookup(code)
    assert exc.value.code == code


def test_is_orderable(service, menu):
    assert service.catalog.is_orderable(menu["burger"])
    assert not service.catalog.is_orderable(menu["soup"])


def test_list_active_only(service, menu):
    names = {i.name for i in service.catalog.list(active_only=True)}
    assert names == {"Burger", "Fries", "Cola"}
    assert len(service.catalog.list()) == 4


def test_duplicate_active_code_rejected(service, menu):
    with pytest.raises(ValidationError):
        service.catalog.create(7, "Veggie burger", 5.00)


def test_code_of_inactive_item_can_be_reused(service, menu):
    item = service.catalog.create(41, "Tomato soup", 3.50)

    assert service.catalog.lookup(41).id == item.id


@pytest.mark.parametrize(
    "kwargs",
    [
        {"code": 50, "name": "Tea", "price": -1},
        {"code": 50, "name": "  ", "price": 1},
        {"code": -1, "name": "Tea", "price": 1},
        {"code": "tea", "name": "Tea", "price": 1},
        {"code": 50, "name": "Tea", "price": float("nan")},
        {"code": 50, "name": "Tea", "price": "free"},
    ],
)
def test_create_validation(service, kwargs):
    with pytest.raises(ValidationError):
        service.catalog.create(**kwargs)


def test_update_fields(service, menu):
    updated = service.catalog.update(menu["cola"].id, price=1.75, name="Cola 0.5l")

    assert updated.price == 1.75
    assert service.catalog.lookup(30).name == "Cola 0.5l"


def test_update_unknown_field(service, menu):
    with pytest.raises(ValidationError):
        service.catalog.update(menu["cola"].id, colour="red")


def test_update_to_taken_code(service, menu):
    with pytest.raises(ValidationError):
        service.catalog.update(menu["cola"].id, code=7)


def test_deactivate(service, menu):
    service.catalog.deactivate(menu["fries"].id)

    assert not service.catalog.lookup(12).is_active


def test_delete_unreferenced_item(service, menu):
    service.catalog.delete(menu["cola"].id)

    with pytest.raises(NotFound):
        service.catalog.get(menu["cola"].id)


def test_delete_referenced_item_only_deactivates(service, menu):
    burger = menu["burger"]
    service.orders.create_order(
        [
            LineItem(
                id="",
                item_id=burger.id,
                item_code=burger.code,
                item_name=burger.name,
                quantity=1,
                unit_price=burger.price,
            )
        ]
    )

    service.catalog.delete(burger.id)

    assert service.catalog.get(burger.id).is_active is False


# tables


def test_default_tables(service):
    tables = service.tables.list()

    assert [t.table_no for t in tables][:3] == ["T-01", "T-02", "T-03"]
    assert len(tables) == 10
    assert all(t.status == TableStatus.AVAILABLE for t in tables)
    assert tables[0].capacity == 4


def test_ensure_defaults_keeps_existing_tables():
    registry = TableRegistry(MemoryStore())
    registry.ensure_defaults(count=2)

    tables = registry.ensure_defaults(count=6)

    assert [t.table_no for t in tables] == ["T-01", "T-02"]


def test_set_status(service):
    table = service.tables.set_status("T-02", "occupied")

    assert table.status == TableStatus.OCCUPIED
    assert service.tables.get("T-02").status == TableStatus.OCCUPIED


def test_set_status_unknown_table(service):
    with pytest.raises(NotFound):
        service.tables.set_status("T-99", TableStatus.RESERVED)


def test_empty_registry_accepts_any_table():
    store = MemoryStore()
    burger = Catalog(store).create(7, "Burger", 4.50)
    registry = TableRegistry(store)
    ledger = OrderLedger(store, StockLedger(store), tables=registry)

    order = ledger.create_order(
        [
            LineItem(
                id="",
                item_id=burger.id,
                item_code=7,
                item_name="Burger",
                quantity=1,
                unit_price=4.50,
            )
        ],
        table_no="Patio 2",
    )

    assert not registry.has_tables()
    assert order.table_no == "Patio 2"
