"""
Adapter construction and the process-wide adapter.

Services take an adapter explicitly; the module-level one here serves
callers that don't inject one, such as the MCP server.
"""

import logging

from tasktally.db.interface import DatabaseAdapter

logger = logging.getLogger(__name__)

_adapter: DatabaseAdapter | None = None


def _postgres(db_config) -> DatabaseAdapter:
    from tasktally.db.postgres import PostgresAdapter

    if not db_config.postgres_url:
        raise ValueError(
            "PostgreSQL selected but no URL configured. Set database.postgres.url "
            "(or url_env) in the config file, or TASKTALLY_DATABASE_URL."
        )
    logger.info("Using PostgreSQL adapter")
    return PostgresAdapter(
        db_config.postgres_url, min_size=db_config.min_pool, max_size=db_config.max_pool
    )


def _sqlite(db_config) -> DatabaseAdapter:
    from tasktally.db.sqlite import SQLiteAdapter

    logger.info(f"Using SQLite adapter: {db_config.sqlite_path}")
    return SQLiteAdapter(db_config.sqlite_path)


_BUILDERS = {
    "postgres": _postgres,
    "postgresql": _postgres,
    "sqlite": _sqlite,
}


def create_adapter(config) -> DatabaseAdapter:
    """
    New, unconnected adapter for config.database.

    Raises:
        ValueError: Unknown database type or missing PostgreSQL URL
    """
    db_type = config.database.type.lower()
    builder = _BUILDERS.get(db_type)
    if builder is None:
        raise ValueError(f"Unknown database type: {db_type}. Use 'postgres' or 'sqlite'.")
    return builder(config.database)


def get_adapter(config=None) -> DatabaseAdapter:
    """The shared adapter, created from config (or the loaded config) on first call."""
    global _adapter
    if _adapter is None:
        if config is None:
            from tasktally.config import get_config
            config = get_config()
        _adapter = create_adapter(config)
    return _adapter


async def init_adapter(config=None) -> DatabaseAdapter:
    """Connect the shared adapter and bring its schema up to date."""
    from tasktally.db.migrations import run_migrations

    adapter = get_adapter(config)
    await adapter.connect()
    await run_migrations(adapter)
    return adapter


async def close_adapter() -> None:
    global _adapter
    if _adapter is not None:
        await _adapter.close()
        _adapter = None


def reset_adapter() -> None:
    """Forget the shared adapter without closing it, e.g. after a config change."""
    global _adapter
    _adapter = None
