"""Draft order built up at the point-of-sale terminal before commit."""

from __future__ import annotations

import math
from dataclasses import replace
from uuid import uuid4

from .catalog import Catalog
from .errors import EmptyCart, ItemInactive, NotFound, ValidationError
from .models import LineItem, Order
from .orders import OrderLedger


class Cart:
    """Lines keyed by item, owned by one POS session.

    Not thread-safe: a cart belongs to a single interactive session.
    Adding an item that is already in the cart increases that line's
    quantity instead of adding a second row.
    """

    def __init__(
        self,
        catalog: Catalog,
        ledger: OrderLedger,
        table_no: str | None = None,
    ) -> None:
        self._catalog = catalog
        self._ledger = ledger
        self._lines: dict[str, LineItem] = {}  # item_id -> line, insertion ordered
        self.table_no = table_no

    @property
    def lines(self) -> list[LineItem]:
        return [replace(line) for line in self._lines.values()]

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def __len__(self) -> int:
        return len(self._lines)

    def add_line(
        self, code: int, quantity: float = 1, notes: str | None = None
    ) -> LineItem:
        """Add ``quantity`` of the item with this code.

        Raises:
            ItemNotFound: No item has this code.
            ItemInactive: The item exists but is not orderable.
            ValidationError: ``quantity`` is not positive.
        """
        if not math.isfinite(quantity) or quantity <= 0:
            raise ValidationError("Quantity must be positive")
        item = self._catalog.lookup(code)
        if not self._catalog.is_orderable(item):
            raise ItemInactive(item.code, item.name)

        line = self._lines.get(item.id)
        if line is not None:
            # Price stays at the value captured when the line was first added
            line.quantity += quantity
            if notes:
                line.notes = notes
        else:
            line = LineItem(
                id=uuid4().hex,
                item_id=item.id,
                item_code=item.code,
                item_name=item.name,
                quantity=float(quantity),
                unit_price=item.price,
                notes=notes,
            )
            self._lines[item.id] = line
        return replace(line)

    def set_line_quantity(self, line_id: str, quantity: float) -> LineItem | None:
        """Set a line's quantity; zero or less removes the line.

        Returns:
            The updated line, or None if it was removed.
        """
        line = self._find(line_id)
        if not math.isfinite(quantity):
            raise ValidationError("Quantity must be a finite number")
        if quantity <= 0:
            del self._lines[line.item_id]
            return None
        line.quantity = float(quantity)
        return replace(line)

    def set_note(self, line_id: str, notes: str | None) -> LineItem:
        line = self._find(line_id)
        line.notes = notes or None
        return replace(line)

    def remove_line(self, line_id: str) -> None:
        line = self._find(line_id)
        del self._lines[line.item_id]

    def clear(self) -> None:
        self._lines.clear()

    def total(self) -> float:
        return sum(line.subtotal for line in self._lines.values())

    def commit(self, table_no: str | None = None) -> Order:
        """Hand the lines to the order ledger as one order and empty the cart.

        If the ledger rejects the order the cart is left as it was.

        Raises:
            EmptyCart: The cart has no lines.
        """
        if not self._lines:
            raise EmptyCart()
        order = self._ledger.create_order(self.lines, table_no or self.table_no)
        self.clear()
        self.table_no = None
        return order

    def _find(self, line_id: str) -> LineItem:
        for line in self._lines.values():
            if line.id == line_id:
                return line
        raise NotFound(f"Line {line_id} not in cart")
