"""TOML configuration loader for hotelpos."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        tomllib = None  # type: ignore[assignment]

MISSING_ENTRY_POLICIES = ("warn", "block")
STORE_BACKENDS = ("memory", "sqlite")


@dataclass
class DatabaseConfig:
    backend: str = "sqlite"
    path: str = "~/.config/hotelpos/hotelpos.db"


@dataclass
class StockConfig:
    missing_entry_policy: str = "warn"
    retain_days: int = 31


@dataclass
class ReportsConfig:
    history_days: int = 7
    lookahead_days: float = 3.0
    restock_days: float = 1.0
    low_stock_days: float = 3.0
    exclude_cancelled_revenue: bool = False
    output_dir: str = "~/.config/hotelpos/reports"
    schedule: str = "30 23 * * *"
    pdf: bool = False


@dataclass
class TablesConfig:
    count: int = 10
    capacity: int = 4


@dataclass
class BroadcastConfig:
    max_attempts: int = 3
    threaded: bool = False


@dataclass
class PosConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    stock: StockConfig = field(default_factory=StockConfig)
    reports: ReportsConfig = field(default_factory=ReportsConfig)
    tables: TablesConfig = field(default_factory=TablesConfig)
    broadcast: BroadcastConfig = field(default_factory=BroadcastConfig)


def load_config(path: str | Path | None = None) -> PosConfig:
    """Load configuration from a TOML file.

    Falls back to defaults if no path is given or the file doesn't exist.
    The database path can be overridden via HOTELPOS_DB_PATH.

    Raises:
        ValueError: If a policy or backend name is not recognised.
    """
    raw: dict = {}

    if path is not None:
        p = Path(path)
        if p.exists():
            if tomllib is None:
                raise ImportError(
                    "tomli is required on Python < 3.11: pip install tomli"
                )
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    dbs = raw.get("database", {})
    stk = raw.get("stock", {})
    rpt = raw.get("reports", {})
    tbl = raw.get("tables", {})
    bus = raw.get("broadcast", {})

    # Environment variable wins over the file so deployments can relocate the DB
    db_path = os.environ.get("HOTELPOS_DB_PATH", "") or dbs.get(
        "path", "~/.config/hotelpos/hotelpos.db"
    )

    backend = dbs.get("backend", "sqlite")
    if backend not in STORE_BACKENDS:
        raise ValueError(
            f"Unknown database backend: {backend!r} "
            f"(choose from {', '.join(STORE_BACKENDS)})"
        )

    policy = stk.get("missing_entry_policy", "warn")
    if policy not in MISSING_ENTRY_POLICIES:
        raise ValueError(
            f"Unknown missing_entry_policy: {policy!r} "
            f"(choose from {', '.join(MISSING_ENTRY_POLICIES)})"
        )

    return PosConfig(
        database=DatabaseConfig(backend=backend, path=db_path),
        stock=StockConfig(
            missing_entry_policy=policy,
            retain_days=stk.get("retain_days", 31),
        ),
        reports=ReportsConfig(
            history_days=rpt.get("history_days", 7),
            lookahead_days=rpt.get("lookahead_days", 3.0),
            restock_days=rpt.get("restock_days", 1.0),
            low_stock_days=rpt.get("low_stock_days", 3.0),
            exclude_cancelled_revenue=rpt.get("exclude_cancelled_revenue", False),
            output_dir=rpt.get("output_dir", "~/.config/hotelpos/reports"),
            schedule=rpt.get("schedule", "30 23 * * *"),
            pdf=rpt.get("pdf", False),
        ),
        tables=TablesConfig(
            count=tbl.get("count", 10),
            capacity=tbl.get("capacity", 4),
        ),
        broadcast=BroadcastConfig(
            max_attempts=bus.get("max_attempts", 3),
            threaded=bus.get("threaded", False),
        ),
    )
