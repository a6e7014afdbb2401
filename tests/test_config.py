"""Tests for hotelpos config loading."""

import os
import tempfile

import pytest

from hotelpos.config import PosConfig, load_config


@pytest.fixture(autouse=True)
def _no_db_env(monkeypatch):
    monkeypatch.delenv("HOTELPOS_DB_PATH", raising=False)


def _load(toml_content: bytes) -> PosConfig:
    with tempfile.NamedTemporaryFile(suffix=".toml", delete=False) as f:
        f.write(toml_content)
        f.flush()
        config = load_config(f.name)
    os.unlink(f.name)
    return config


def test_load_config_defaults():
    """Loading with no path returns all defaults."""
    config = load_config()
    assert isinstance(config, PosConfig)
    assert config.database.backend == "sqlite"
    assert config.database.path == "~/.config/hotelpos/hotelpos.db"
    assert config.stock.missing_entry_policy == "warn"
    assert config.stock.retain_days == 31
    assert config.reports.history_days == 7
    assert config.reports.lookahead_days == 3.0
    assert config.reports.restock_days == 1.0
    assert config.reports.low_stock_days == 3.0
    assert config.reports.exclude_cancelled_revenue is False
    assert config.reports.schedule == "30 23 * * *"
    assert config.tables.count == 10
    assert config.broadcast.max_attempts == 3
    assert config.broadcast.threaded is False


def test_load_config_nonexistent_file():
    """Loading a nonexistent file returns defaults."""
    config = load_config("/nonexistent/path.toml")
    assert config.database.backend == "sqlite"


def test_load_config_from_toml():
    config = _load(b"""\
[database]
backend = "memory"
path = "/var/lib/pos.db"

[stock]
missing_entry_policy = "block"
retain_days = 7

[reports]
history_days = 14
lookahead_days = 2.5
exclude_cancelled_revenue = true
schedule = "0 22 * * *"
pdf = true

[tables]
count = 4
capacity = 6

[broadcast]
max_attempts = 5
threaded = true
""")

    assert config.database.backend == "memory"
    assert config.database.path == "/var/lib/pos.db"
    assert config.stock.missing_entry_policy == "block"
    assert config.stock.retain_days == 7
    assert config.reports.history_days == 14
    assert config.reports.lookahead_days == 2.5
    assert config.reports.exclude_cancelled_revenue is True
    assert config.reports.schedule == "0 22 * * *"
    assert config.reports.pdf is True
    assert config.tables.count == 4
    assert config.tables.capacity == 6
    assert config.broadcast.max_attempts == 5
    assert config.broadcast.threaded is True


def test_load_config_partial_toml():
    """Partial TOML uses defaults for missing sections."""
    config = _load(b"""\
[reports]
history_days = 3
""")
    assert config.reports.history_days == 3
    # Other sections use defaults
    assert config.database.backend == "sqlite"
    assert config.tables.count == 10


def test_db_path_env_override(monkeypatch):
    monkeypatch.setenv("HOTELPOS_DB_PATH", "/tmp/env.db")
    config = _load(b"""\
[database]
path = "/var/lib/pos.db"
""")
    assert config.database.path == "/tmp/env.db"


def test_unknown_policy():
    with pytest.raises(ValueError):
        _load(b"""\
[stock]
missing_entry_policy = "ignore"
""")


def test_unknown_backend():
    with pytest.raises(ValueError):
        _load(b"""\
[database]
backend = "postgres"
""")
