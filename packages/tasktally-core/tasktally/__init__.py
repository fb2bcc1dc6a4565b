"""
Tasktally Core Library

Task lifecycle and analytics engine with support for PostgreSQL and SQLite.
"""

__version__ = "0.1.0"

from tasktally.config import TasktallyConfig, load_config
from tasktally.db import DatabaseAdapter, get_adapter

__all__ = [
    "load_config",
    "TasktallyConfig",
    "get_adapter",
    "DatabaseAdapter",
]
