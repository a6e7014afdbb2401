"""Shared fixtures: an in-memory service with a fixed clock and a small menu."""

from datetime import datetime, timedelta

import pytest

from hotelpos.config import PosConfig
from hotelpos.service import build_service
from hotelpos.store import MemoryStore


class FakeClock:
    """Settable stand-in for datetime.now."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 5, 1, 12, 0, 0))


@pytest.fixture
def config(tmp_path):
    cfg = PosConfig()
    cfg.database.backend = "memory"
    cfg.reports.output_dir = str(tmp_path / "reports")
    return cfg


@pytest.fixture
def service(config, clock):
    svc = build_service(config, store=MemoryStore(), clock=clock)
    yield svc
    svc.close()


@pytest.fixture
def menu(service):
    """Three active items and one inactive one."""
    catalog = service.catalog
    return {
        "burger": catalog.create(7, "Burger", 4.50, category="Mains"),
        "fries": catalog.create(12, "Fries", 2.00, category="Sides"),
        "cola": catalog.create(30, "Cola", 1.50, category="Drinks", unit="bottle"),
        "soup": catalog.create(41, "Soup of the day", 3.00, is_active=False),
    }
