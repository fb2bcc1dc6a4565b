"""
Pytest configuration and fixtures for tasktally tests.
"""

import pytest
import sys
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Configure pytest-asyncio
pytest_plugins = ["pytest_asyncio"]

# Add packages to path for testing
packages_dir = Path(__file__).parent.parent / "packages"
sys.path.insert(0, str(packages_dir / "tasktally-core"))
sys.path.insert(0, str(packages_dir / "tasktally-mcp"))


NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """A clock that only moves when told to."""

    def __init__(self, start: datetime = NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def sqlite_db():
    """A connected SQLite adapter on a temporary file with migrations applied."""
    from tasktally.db.migrations import run_migrations
    from tasktally.db.sqlite import SQLiteAdapter

    with tempfile.TemporaryDirectory() as tmpdir:
        adapter = SQLiteAdapter(str(Path(tmpdir) / "test.db"))
        await adapter.connect()
        await run_migrations(adapter)

        yield adapter

        await adapter.close()


@pytest.fixture
def task_service(sqlite_db, clock):
    from tasktally.services.tasks import TaskService

    return TaskService(adapter=sqlite_db, clock=clock)


@pytest.fixture
def category_service(sqlite_db, clock):
    from tasktally.services.categories import CategoryService

    return CategoryService(adapter=sqlite_db, clock=clock)


@pytest.fixture
def analytics_service(sqlite_db, clock):
    from tasktally.services.analytics import AnalyticsService

    return AnalyticsService(adapter=sqlite_db, clock=clock)


@pytest.fixture
async def work_category(category_service):
    """A category named Work owned by alice."""
    return await category_service.create(
        name="Work",
        created_by="alice",
        description="Work related tasks",
        color="#FF5733",
    )


@pytest.fixture
def sample_task_data(work_category):
    """Keyword arguments for a valid task due in a week."""
    return {
        "title": "Complete project",
        "category_id": work_category.id,
        "assigned_to": "alice",
        "created_by": "alice",
        "due_date": NOW + timedelta(days=7),
        "description": "Finish the quarterly project",
        "priority": "high",
        "tags": ["urgent", "frontend", "bug"],
    }


@pytest.fixture
async def mcp_server(tmp_path, monkeypatch):
    """The MCP server module wired to a fresh SQLite database."""
    from tasktally import config as config_module
    from tasktally.db.factory import close_adapter, reset_adapter
    from tasktally_mcp import server

    monkeypatch.setattr(config_module, "CONFIG_FILE", tmp_path / "config.yaml")
    monkeypatch.delenv("TASKTALLY_DATABASE_URL", raising=False)
    monkeypatch.delenv("TASKTALLY_ANALYTICS_SCOPE", raising=False)
    monkeypatch.setenv("TASKTALLY_SQLITE_PATH", str(tmp_path / "mcp.db"))
    monkeypatch.setenv("TASKTALLY_ACTOR_ID", "alice")
    config_module.reload_config()
    reset_adapter()
    server._initialized = False

    yield server

    await close_adapter()
    server._initialized = False
    monkeypatch.undo()
    config_module.reload_config()
