"""
Tests for SQLite database adapter.
"""

import pytest
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

from tasktally.db.interface import affected_rows, contains_pattern
from tasktally.errors import ConflictError, InternalError


@pytest.fixture
async def sqlite_adapter():
    """Create a temporary SQLite adapter for testing."""
    from tasktally.db.sqlite import SQLiteAdapter

    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        adapter = SQLiteAdapter(str(db_path))
        await adapter.connect()

        # Create test table
        await adapter.execute("""
            CREATE TABLE test_items (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL UNIQUE,
                value INTEGER,
                owner TEXT,
                created_at TEXT DEFAULT (datetime('now'))
            )
        """)

        yield adapter

        await adapter.close()


async def insert_item(adapter, item_id, name, value, owner=None):
    return await adapter.execute(
        "INSERT INTO test_items (id, name, value, owner) VALUES ($1, $2, $3, $4)",
        item_id, name, value, owner,
    )


@pytest.mark.asyncio
async def test_sqlite_connect(sqlite_adapter):
    """Test SQLite connection."""
    result = await sqlite_adapter.fetchval("SELECT 1")
    assert result == 1


@pytest.mark.asyncio
async def test_sqlite_execute_insert(sqlite_adapter):
    """Test inserting data."""
    result = await insert_item(sqlite_adapter, "test-1", "Test Item", 42)

    assert result == "INSERT 0 1"
    assert affected_rows(result) == 1


@pytest.mark.asyncio
async def test_sqlite_update_and_delete_status(sqlite_adapter):
    await insert_item(sqlite_adapter, "item-1", "Item 1", 10)

    updated = await sqlite_adapter.execute(
        "UPDATE test_items SET value = $1 WHERE id = $2", 11, "item-1"
    )
    missing = await sqlite_adapter.execute(
        "DELETE FROM test_items WHERE id = $1", "nonexistent"
    )
    deleted = await sqlite_adapter.execute(
        "DELETE FROM test_items WHERE id = $1", "item-1"
    )

    assert updated == "UPDATE 1"
    assert affected_rows(missing) == 0
    assert deleted == "DELETE 1"


@pytest.mark.asyncio
async def test_sqlite_fetch(sqlite_adapter):
    """Test fetching multiple rows."""
    await insert_item(sqlite_adapter, "item-1", "Item 1", 10)
    await insert_item(sqlite_adapter, "item-2", "Item 2", 20)

    rows = await sqlite_adapter.fetch("SELECT * FROM test_items ORDER BY name")

    assert len(rows) == 2
    assert rows[0]["name"] == "Item 1"
    assert rows[1]["name"] == "Item 2"


@pytest.mark.asyncio
async def test_sqlite_fetchrow(sqlite_adapter):
    """Test fetching single row."""
    await insert_item(sqlite_adapter, "single", "Single Item", 100)

    row = await sqlite_adapter.fetchrow(
        "SELECT * FROM test_items WHERE id = $1", "single"
    )

    assert row is not None
    assert row["name"] == "Single Item"
    assert row["value"] == 100


@pytest.mark.asyncio
async def test_sqlite_fetchrow_not_found(sqlite_adapter):
    """Test fetchrow returns None when not found."""
    row = await sqlite_adapter.fetchrow(
        "SELECT * FROM test_items WHERE id = $1", "nonexistent"
    )

    assert row is None


@pytest.mark.asyncio
async def test_sqlite_unique_violation_is_conflict(sqlite_adapter):
    await insert_item(sqlite_adapter, "item-1", "Same", 1)

    with pytest.raises(ConflictError):
        await insert_item(sqlite_adapter, "item-2", "Same", 2)


@pytest.mark.asyncio
async def test_sqlite_bad_query_is_internal_error(sqlite_adapter):
    with pytest.raises(InternalError):
        await sqlite_adapter.fetch("SELECT * FROM no_such_table")


@pytest.mark.asyncio
async def test_sqlite_search_text(sqlite_adapter):
    """Test text search with LIKE fallback."""
    await insert_item(sqlite_adapter, "auth-1", "Authentication handler", 1)
    await insert_item(sqlite_adapter, "auth-2", "Authorization middleware", 2)
    await insert_item(sqlite_adapter, "other", "Database connection", 3)

    results = await sqlite_adapter.search_text(
        table="test_items",
        query="auth",
        columns=["name"],
        limit=10,
    )

    assert len(results) == 2
    assert all("auth" in r["name"].lower() for r in results)


@pytest.mark.asyncio
async def test_sqlite_search_text_with_where_clause(sqlite_adapter):
    await insert_item(sqlite_adapter, "auth-1", "Authentication handler", 1, "alice")
    await insert_item(sqlite_adapter, "auth-2", "Authorization middleware", 2, "bob")

    results = await sqlite_adapter.search_text(
        table="test_items",
        query="auth",
        columns=["name"],
        where_clause="owner = $2 AND value >= $3",
        where_args=["bob", 1],
    )

    assert [r["id"] for r in results] == ["auth-2"]


@pytest.mark.asyncio
async def test_sqlite_features(sqlite_adapter):
    """Test feature detection."""
    assert sqlite_adapter.dialect == "sqlite"
    assert sqlite_adapter.supports_fts is False
    assert sqlite_adapter.supports_arrays is False
    assert sqlite_adapter.table("tasks") == "tasks"
    assert sqlite_adapter.case_insensitive_like == "LIKE"


@pytest.mark.asyncio
async def test_sqlite_format_query(sqlite_adapter):
    """Test query placeholder conversion."""
    # PostgreSQL style
    pg_query = "SELECT * FROM items WHERE id = $1 AND name = $2"

    # Should convert to SQLite style
    sqlite_query = sqlite_adapter.format_query(pg_query)

    assert sqlite_query == "SELECT * FROM items WHERE id = ? AND name = ?"


@pytest.mark.asyncio
async def test_sqlite_value_encoding(sqlite_adapter):
    plus_five = timezone(timedelta(hours=5))
    value = datetime(2026, 3, 15, 17, 0, tzinfo=plus_five)

    assert sqlite_adapter.encode_datetime(value) == "2026-03-15T12:00:00.000000+00:00"
    assert sqlite_adapter.encode_datetime(None) is None
    assert sqlite_adapter.encode_list(["a", "b"]) == '["a", "b"]'
    assert sqlite_adapter.encode_bool(True) == 1


def test_affected_rows_parsing():
    assert affected_rows("INSERT 0 3") == 3
    assert affected_rows("UPDATE 0") == 0
    assert affected_rows("OK") == 0
    assert affected_rows("") == 0


class TestMigrations:
    """Tests for run_migrations against SQLite."""

    @pytest.mark.asyncio
    async def test_migrations_create_tables(self, sqlite_adapter):
        from tasktally.db.migrations import run_migrations

        applied = await run_migrations(sqlite_adapter)

        assert applied == ["001"]
        tables = await sqlite_adapter.fetch(
            "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name"
        )
        names = {row["name"] for row in tables}
        assert {"categories", "tasks", "schema_migrations"} <= names

    @pytest.mark.asyncio
    async def test_migrations_are_idempotent(self, sqlite_adapter):
        from tasktally.db.migrations import run_migrations

        await run_migrations(sqlite_adapter)
        applied = await run_migrations(sqlite_adapter)

        assert applied == []

    def test_statement_splitting_drops_comments(self):
        from tasktally.db.migrations import _statements

        sql = "-- header\nCREATE TABLE a (id TEXT);\n\n-- next\nCREATE INDEX i ON a (id);\n"

        assert _statements(sql) == ["CREATE TABLE a (id TEXT)", "CREATE INDEX i ON a (id)"]


def test_contains_pattern_escapes_wildcards():
    assert contains_pattern("auth") == "%auth%"
    assert contains_pattern("50%_off") == "%50\\%\\_off%"
    assert contains_pattern("a\\b") == "%a\\\\b%"


@pytest.mark.asyncio
async def test_sqlite_search_text_literal_wildcards(sqlite_adapter):
    await insert_item(sqlite_adapter, "plain", "Auth flow", 1)
    await insert_item(sqlite_adapter, "snake", "auth_flow", 2)

    results = await sqlite_adapter.search_text(
        table="test_items", query="_", columns=["name"]
    )

    assert [r["id"] for r in results] == ["snake"]
