"""
Storage adapter contract.

Services write SQL once, with $1, $2 placeholders and unqualified table
names passed through table(); each adapter supplies the dialect details.
"""

import re
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Sequence

_NUMBERED_PARAM = re.compile(r"\$\d+")
_LIKE_SPECIAL = re.compile(r"([\\%_])")

#: Appended after a LIKE operand built with contains_pattern()
LIKE_ESCAPE = "ESCAPE '\\'"


class DatabaseAdapter(ABC):
    """
    Async access to one tasktally store.

    Subclasses implement the four query methods and the value encoders.
    Driver exceptions never escape an adapter: unique-constraint violations
    are raised as ConflictError and every other store failure as InternalError.
    """

    #: "sqlite" or "postgres"
    dialect: str = ""
    #: Schema that holds the tasktally tables, if the backend has schemas
    schema: str | None = None

    @abstractmethod
    async def connect(self) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def execute(self, query: str, *args) -> str:
        """
        Run a statement.

        Returns:
            A command tag such as "INSERT 0 1", "UPDATE 2" or "DELETE 0";
            see affected_rows()
        """

    @abstractmethod
    async def fetch(self, query: str, *args) -> list[dict]:
        pass

    @abstractmethod
    async def fetchrow(self, query: str, *args) -> dict | None:
        pass

    @abstractmethod
    async def fetchval(self, query: str, *args) -> Any:
        """First column of the first row, or None when there are no rows."""

    @property
    def supports_fts(self) -> bool:
        """Ranked full-text search over a search_vector column."""
        return False

    @property
    def supports_arrays(self) -> bool:
        return False

    @property
    def case_insensitive_like(self) -> str:
        return "LIKE"

    def table(self, name: str) -> str:
        """Qualified name for a tasktally table."""
        if self.schema:
            return f"{self.schema}.{name}"
        return name

    @abstractmethod
    def encode_datetime(self, value: datetime | None) -> Any:
        pass

    @abstractmethod
    def encode_json(self, value: Any) -> Any:
        pass

    def encode_list(self, items: Sequence[str] | None) -> Any:
        """A list of strings for a tags-style column; JSON text without array support."""
        items = list(items or [])
        if self.supports_arrays:
            return items
        return self.encode_json(items)

    def encode_bool(self, value: bool) -> Any:
        return bool(value)

    @abstractmethod
    async def search_text(
        self,
        table: str,
        query: str,
        columns: list[str],
        limit: int = 20,
        where_clause: str | None = None,
        where_args: Sequence[Any] = (),
    ) -> list[dict]:
        """
        Rows of table whose columns match query.

        Args:
            table: Qualified table name
            query: Text to look for
            columns: Columns matched against query
            limit: Maximum number of rows
            where_clause: Extra AND-ed condition without the WHERE keyword.
                $1 is reserved for the query, so its placeholders start at $2.
            where_args: Values for where_clause, in placeholder order

        Returns:
            Matching rows, best match first where the backend can rank
        """

    def format_query(self, query: str) -> str:
        """
        Rewrite $n placeholders for drivers that only take positional "?".

        The rewrite is positional: every $n must appear once, in argument order.
        """
        if self.dialect == "postgres":
            return query
        return _NUMBERED_PARAM.sub("?", query)

    async def ensure_schema(self) -> None:
        """Create self.schema if the backend needs it. No-op by default."""


def affected_rows(status: str) -> int:
    """Row count from a command tag such as "UPDATE 1" or "INSERT 0 1"."""
    try:
        return int(status.split()[-1])
    except (IndexError, ValueError):
        return 0


def contains_pattern(text: str) -> str:
    """LIKE pattern matching text anywhere, with % and _ in text taken literally."""
    return "%" + _LIKE_SPECIAL.sub(r"\\\1", text) + "%"
