"""
Schema migrations.

Versioned SQL files live in tasktally/migrations/<backend>/NNN_name.sql.
Applied versions are recorded in schema_migrations.
"""

import logging
from pathlib import Path

from tasktally.db.interface import DatabaseAdapter

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"


def migrations_path(adapter: DatabaseAdapter) -> Path:
    """Directory holding the migration files for this adapter's backend."""
    return MIGRATIONS_DIR / adapter.dialect


def _statements(sql: str) -> list[str]:
    """Split a migration script into statements, dropping comment lines."""
    statements = []
    for chunk in sql.split(";"):
        lines = [line for line in chunk.splitlines() if not line.strip().startswith("--")]
        statement = "\n".join(lines).strip()
        if statement:
            statements.append(statement)
    return statements


async def run_migrations(adapter: DatabaseAdapter) -> list[str]:
    """
    Run pending database migrations.

    Returns:
        Versions applied by this call, in order
    """
    migrations_dir = migrations_path(adapter)
    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return []

    await adapter.ensure_schema()
    table = adapter.table("schema_migrations")

    await adapter.execute(
        f"CREATE TABLE IF NOT EXISTS {table} (version TEXT PRIMARY KEY, name TEXT NOT NULL)"
    )
    applied = await adapter.fetch(f"SELECT version FROM {table}")
    applied_versions = {row["version"] for row in applied}

    newly_applied = []
    for sql_file in sorted(migrations_dir.glob("*.sql")):
        version = sql_file.name.split("_")[0]
        if version in applied_versions:
            continue

        logger.info(f"Running migration: {sql_file.name}")
        for statement in _statements(sql_file.read_text()):
            try:
                await adapter.execute(statement)
            except Exception as e:
                logger.error(f"Migration error in {sql_file.name}: {e}")
                raise

        await adapter.execute(
            f"INSERT INTO {table} (version, name) VALUES ($1, $2)",
            version, sql_file.name,
        )
        newly_applied.append(version)

    return newly_applied
