"""
Database abstraction layer supporting PostgreSQL and SQLite.
"""

from tasktally.db.factory import close_adapter, get_adapter, init_adapter
from tasktally.db.interface import DatabaseAdapter
from tasktally.db.migrations import run_migrations

__all__ = [
    "DatabaseAdapter",
    "get_adapter",
    "init_adapter",
    "close_adapter",
    "run_migrations",
]
