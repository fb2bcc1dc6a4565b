"""
SQLite adapter on aiosqlite.

Single connection, WAL journal. Timestamps are ISO-8601 UTC text with a
fixed width so that text order is time order; lists and attachments are
JSON text. Search is a LIKE scan without ranking.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Sequence

import aiosqlite

from tasktally.db.interface import LIKE_ESCAPE, DatabaseAdapter, contains_pattern
from tasktally.errors import ConflictError, InternalError

logger = logging.getLogger(__name__)


class SQLiteAdapter(DatabaseAdapter):
    """Store backed by a local SQLite file, created on first connect."""

    dialect = "sqlite"

    def __init__(self, db_path: str = "~/.tasktally/tasktally.db"):
        self.db_path = Path(db_path).expanduser()
        self._conn: Optional[aiosqlite.Connection] = None

    async def connect(self) -> None:
        if self._conn is not None:
            return

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = await aiosqlite.connect(str(self.db_path))
            await conn.execute("PRAGMA foreign_keys = ON")
            await conn.execute("PRAGMA journal_mode = WAL")
        except aiosqlite.Error as e:
            raise InternalError(f"Could not open SQLite database {self.db_path}: {e}") from e

        conn.row_factory = aiosqlite.Row
        self._conn = conn
        logger.info(f"SQLite database connected: {self.db_path}")

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None
        logger.info("SQLite connection closed")

    async def _cursor(self, query: str, args: Sequence[Any]) -> aiosqlite.Cursor:
        if self._conn is None:
            await self.connect()
        try:
            return await self._conn.execute(self.format_query(query), tuple(args))
        except aiosqlite.IntegrityError as e:
            if "UNIQUE" in str(e):
                raise ConflictError(str(e)) from e
            raise InternalError(f"Integrity error: {e}") from e
        except aiosqlite.Error as e:
            raise InternalError(f"SQLite query failed: {e}") from e

    async def execute(self, query: str, *args) -> str:
        cursor = await self._cursor(query, args)
        try:
            await self._conn.commit()
        except aiosqlite.Error as e:
            raise InternalError(f"SQLite commit failed: {e}") from e
        return _command_tag(query, cursor.rowcount)

    async def fetch(self, query: str, *args) -> list[dict]:
        cursor = await self._cursor(query, args)
        return [dict(row) for row in await cursor.fetchall()]

    async def fetchrow(self, query: str, *args) -> Optional[dict]:
        cursor = await self._cursor(query, args)
        row = await cursor.fetchone()
        return dict(row) if row is not None else None

    async def fetchval(self, query: str, *args) -> Any:
        cursor = await self._cursor(query, args)
        row = await cursor.fetchone()
        return row[0] if row is not None else None

    def encode_datetime(self, value: datetime | None) -> Optional[str]:
        return to_db_timestamp(value)

    def encode_json(self, value: Any) -> str:
        return json.dumps(value)

    def encode_bool(self, value: bool) -> int:
        return 1 if value else 0

    async def search_text(
        self,
        table: str,
        query: str,
        columns: list[str],
        limit: int = 20,
        where_clause: Optional[str] = None,
        where_args: Sequence[Any] = (),
    ) -> list[dict]:
        """LIKE match on any of columns, newest first."""
        matches = " OR ".join(f"{col} LIKE ? {LIKE_ESCAPE}" for col in columns)
        params: list[Any] = [contains_pattern(query)] * len(columns)

        conditions = [f"({matches})"]
        if where_clause:
            conditions.append(f"({self.format_query(where_clause)})")
            params.extend(where_args)
        params.append(limit)
        where_sql = " AND ".join(conditions)

        return await self.fetch(
            f"""
            SELECT * FROM {table}
            WHERE {where_sql}
            ORDER BY created_at DESC
            LIMIT ?
            """,
            *params,
        )


def _command_tag(query: str, rowcount: int) -> str:
    """PostgreSQL-style command tag for a statement SQLite just ran."""
    words = query.split(None, 1)
    verb = words[0].upper() if words else ""
    if verb == "INSERT":
        return f"INSERT 0 {rowcount}"
    if verb in ("UPDATE", "DELETE"):
        return f"{verb} {rowcount}"
    return "OK"


def to_db_timestamp(value: datetime | None) -> Optional[str]:
    """Serialize a timestamp as fixed-width ISO-8601 UTC text."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")
