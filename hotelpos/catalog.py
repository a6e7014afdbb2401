"""Item catalog: lookup by numeric code and basic maintenance."""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import datetime
from uuid import uuid4

from .errors import ItemNotFound, NotFound, ValidationError
from .models import Item
from .store import Store

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = frozenset(
    {"code", "name", "category", "price", "unit", "description", "is_active"}
)


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _number(value, what: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{what} must be a number, got {value!r}") from None


def _integer(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Item number must be a whole number, got {value!r}") from None


class Catalog:
    """Read-mostly view of orderable items."""

    def __init__(self, store: Store) -> None:
        self._store = store

    def lookup(self, code: int) -> Item:
        """Return the item for a staff-entered code.

        Raises:
            ItemNotFound: If no item carries this code.
        """
        try:
            number = int(code)
        except (TypeError, ValueError):
            raise ItemNotFound(code) from None
        item = self._store.get_item_by_code(number)
        if item is None:
            raise ItemNotFound(code)
        return item

    @staticmethod
    def is_orderable(item: Item) -> bool:
        return item.is_active

    def get(self, item_id: str) -> Item:
        item = self._store.get_item(item_id)
        if item is None:
            raise NotFound(f"Item {item_id} not found")
        return item

    def list(self, active_only: bool = False) -> list[Item]:
        items = self._store.list_items()
        if active_only:
            items = [i for i in items if i.is_active]
        return items

    def create(
        self,
        code: int,
        name: str,
        price: float,
        *,
        category: str = "",
        unit: str = "pcs",
        description: str = "",
        is_active: bool = True,
    ) -> Item:
        """Add an item to the catalog.

        Raises:
            ValidationError: On a negative price, blank name, or a code
                already used by an active item.
        """
        self._validate(code=code, name=name, price=price)
        if is_active:
            self._check_code_free(code)
        now = _now()
        item = Item(
            id=uuid4().hex,
            code=int(code),
            name=name,
            category=category,
            price=float(price),
            unit=unit,
            description=description,
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )
        self._store.save_item(item)
        logger.info("Item %d (%s) added at %.2f", item.code, item.name, item.price)
        return item

    def update(self, item_id: str, **fields) -> Item:
        """Change catalog fields of an item.

        Past order lines keep the name and price they captured.
        """
        unknown = set(fields) - _EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown item fields: {', '.join(sorted(unknown))}")
        item = self.get(item_id)
        self._validate(**fields)
        updated = replace(item, **fields, updated_at=_now())
        if updated.is_active and (updated.code != item.code or not item.is_active):
            self._check_code_free(updated.code, exclude_id=item.id)
        self._store.save_item(updated)
        return updated

    def deactivate(self, item_id: str) -> Item:
        return self.update(item_id, is_active=False)

    def delete(self, item_id: str) -> None:
        """Remove an item, or only deactivate it if orders reference it."""
        item = self.get(item_id)
        if self._store.item_referenced(item.id):
            logger.info("Item %d is referenced by orders; deactivating", item.code)
            self.deactivate(item.id)
            return
        self._store.delete_item(item.id)

    def _check_code_free(self, code: int, exclude_id: str | None = None) -> None:
        existing = self._store.get_item_by_code(int(code))
        if existing and existing.is_active and existing.id != exclude_id:
            raise ValidationError(
                f"Item number {code} is already used by {existing.name}"
            )

    @staticmethod
    def _validate(**fields) -> None:
        if "price" in fields:
            price = _number(fields["price"], "Price")
            if not math.isfinite(price) or price < 0:
                raise ValidationError("Price must not be negative")
        if "name" in fields and not str(fields["name"]).strip():
            raise ValidationError("Item name is required")
        if "code" in fields and _integer(fields["code"]) < 0:
            raise ValidationError("Item number must not be negative")
