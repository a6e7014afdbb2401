"""Exception types raised by the order and stock services."""

from __future__ import annotations


class PosError(Exception):
    """Base class for all hotelpos errors."""


class NotFound(PosError):
    """An item, order, table or stock entry does not exist."""


class ItemNotFound(NotFound):
    def __init__(self, code: int | str) -> None:
        super().__init__(f"Item with number {code} not found")
        self.code = code


class NoEntryForDate(NotFound):
    def __init__(self, item_id: str, day: str) -> None:
        super().__init__(f"No stock entry for item {item_id} on {day}")
        self.item_id = item_id
        self.day = day


class ValidationError(PosError):
    """Input was rejected before any state changed."""


class EmptyCart(ValidationError):
    def __init__(self) -> None:
        super().__init__("Cannot commit an empty cart")


class ItemInactive(ValidationError):
    def __init__(self, code: int, name: str) -> None:
        super().__init__(f"Item {name} ({code}) is not active")
        self.code = code
        self.name = name


class InvalidTransition(PosError):
    """A status change was attempted along an edge that is not allowed."""

    def __init__(self, current: str, target: str, what: str = "order") -> None:
        super().__init__(f"Cannot move {what} from {current!r} to {target!r}")
        self.current = current
        self.target = target


class ConnectivityError(PosError):
    """Raised by transport adapters when the backing service is unreachable."""
