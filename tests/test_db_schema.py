"""Tests for database schema creation and migration."""

import sqlite3

import pytest

from hotelpos.db.schema import _SCHEMA_VERSION, ensure_schema


def test_ensure_schema_creates_tables(tmp_path):
    conn = ensure_schema(tmp_path / "test.db")

    tables = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
    ).fetchall()
    table_names = {row["name"] for row in tables}

    assert {
        "items",
        "stock_entries",
        "orders",
        "order_lines",
        "order_sequence",
        "dining_tables",
        "schema_version",
    } <= table_names

    conn.close()


def test_ensure_schema_creates_parent_dirs(tmp_path):
    db_path = tmp_path / "sub" / "dir" / "test.db"
    conn = ensure_schema(db_path)
    assert db_path.exists()
    conn.close()


def test_ensure_schema_idempotent(tmp_path):
    db_path = tmp_path / "test.db"
    ensure_schema(db_path).close()

    conn = ensure_schema(db_path)
    rows = conn.execute("SELECT version FROM schema_version").fetchall()
    assert [r["version"] for r in rows] == [_SCHEMA_VERSION]
    conn.close()


def test_ensure_schema_wal_mode(tmp_path):
    conn = ensure_schema(tmp_path / "test.db")
    assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
    conn.close()


def test_in_memory_database():
    conn = ensure_schema(":memory:")
    row = conn.execute("SELECT version FROM schema_version").fetchone()
    assert row["version"] == _SCHEMA_VERSION
    conn.close()


def test_stock_entry_unique_per_item_and_day(tmp_path):
    conn = ensure_schema(tmp_path / "test.db")
    insert = (
        "INSERT INTO stock_entries (id, item_id, date, starting_stock, current_stock)"
        " VALUES (?, 'i1', '2024-05-01', 1, 1)"
    )
    conn.execute(insert, ("a",))
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(insert, ("b",))
    conn.close()
