"""
Tasktally MCP Server

Task, category and analytics tools over the Tasktally core, backed by
PostgreSQL or SQLite.
"""

import asyncio
import logging
import sys
from datetime import datetime
from typing import Optional, List

from mcp.server.fastmcp import FastMCP

from tasktally.errors import TasktallyError

# Initialize FastMCP server
mcp = FastMCP("tasktally")

logger = logging.getLogger(__name__)

# Global state
_initialized = False


async def ensure_initialized():
    """Ensure database is connected and migrated."""
    global _initialized
    if _initialized:
        return

    from tasktally.db import init_adapter
    from tasktally.config import get_config

    await init_adapter(get_config())

    _initialized = True
    logger.info("Tasktally initialized")


def _error(e: TasktallyError) -> dict:
    return {"error": str(e), "type": e.kind}


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 tool argument."""
    if value is None:
        return None
    from tasktally.models.base import parse_datetime
    return parse_datetime(value)


def _scope(actor_id: Optional[str] = None, mode: Optional[str] = None):
    from tasktally.config import get_config
    from tasktally.services import TaskScope

    config = get_config()
    return TaskScope(
        actor_id=actor_id or config.actor_id,
        mode=mode or config.analytics.scope,
    )


# =============================================================================
# TASK TOOLS
# =============================================================================

@mcp.tool()
async def task_create(
    title: str,
    category_id: str,
    due_date: str,
    assigned_to: Optional[str] = None,
    description: Optional[str] = None,
    priority: str = "medium",
    status: str = "pending",
    estimated_hours: Optional[float] = None,
    completed_at: Optional[str] = None,
    tags: Optional[List[str]] = None,
    attachments: Optional[List[dict]] = None,
) -> dict:
    """
    Create a new task.

    Args:
        title: Task title (1-100 characters)
        category_id: Category UUID
        due_date: Due date (ISO-8601)
        assigned_to: Assignee user id (defaults to the configured actor)
        description: Task description
        priority: Priority (low, medium, high)
        status: Status (pending, in-progress, completed)
        estimated_hours: Estimate, 0-40
        completed_at: Completion time to record for an already completed task (ISO-8601)
        tags: List of tags
        attachments: List of {filename, url, upload_date?}

    Returns:
        Created task details
    """
    await ensure_initialized()
    from tasktally.services import TaskService
    from tasktally.config import get_config

    config = get_config()
    service = TaskService()

    try:
        task = await service.create(
            title=title,
            category_id=category_id,
            assigned_to=assigned_to or config.actor_id,
            due_date=_parse_datetime(due_date),
            created_by=config.actor_id,
            description=description,
            priority=priority,
            status=status,
            estimated_hours=estimated_hours,
            completed_at=_parse_datetime(completed_at),
            tags=tags,
            attachments=attachments,
        )
    except TasktallyError as e:
        return _error(e)
    except ValueError as e:
        return {"error": f"Invalid date: {e}", "type": "validation"}

    return task.to_dict()


@mcp.tool()
async def task_show(task_id: str) -> dict:
    """
    Get detailed information about a task.

    Args:
        task_id: Task UUID

    Returns:
        Full task details including is_overdue and progress_percentage
    """
    await ensure_initialized()
    from tasktally.services import TaskService

    try:
        task = await TaskService().get(task_id)
    except TasktallyError as e:
        return _error(e)

    return task.to_dict()


@mcp.tool()
async def task_update(
    task_id: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    category_id: Optional[str] = None,
    assigned_to: Optional[str] = None,
    due_date: Optional[str] = None,
    priority: Optional[str] = None,
    status: Optional[str] = None,
    estimated_hours: Optional[float] = None,
    actual_hours: Optional[float] = None,
    completed_at: Optional[str] = None,
    tags: Optional[List[str]] = None,
    attachments: Optional[List[dict]] = None,
    is_archived: Optional[bool] = None,
) -> dict:
    """
    Update an existing task. Omitted fields are left unchanged.

    Args:
        task_id: Task UUID
        title: New title
        description: New description
        category_id: New category UUID
        assigned_to: New assignee
        due_date: New due date (ISO-8601)
        priority: New priority
        status: New status
        estimated_hours: New estimate
        actual_hours: Hours spent
        completed_at: Explicit completion time (ISO-8601)
        tags: New tags
        attachments: Replacement list of {filename, url, upload_date?}
        is_archived: Archive flag

    Returns:
        Updated task details
    """
    await ensure_initialized()
    from tasktally.services import TaskService

    try:
        task = await TaskService().update(
            task_id=task_id,
            title=title,
            description=description,
            category_id=category_id,
            assigned_to=assigned_to,
            due_date=_parse_datetime(due_date),
            priority=priority,
            status=status,
            estimated_hours=estimated_hours,
            actual_hours=actual_hours,
            completed_at=_parse_datetime(completed_at),
            tags=tags,
            attachments=attachments,
            is_archived=is_archived,
        )
    except TasktallyError as e:
        return _error(e)
    except ValueError as e:
        return {"error": f"Invalid date: {e}", "type": "validation"}

    return task.to_dict()


@mcp.tool()
async def task_delete(task_id: str) -> dict:
    """
    Permanently delete a task.

    Args:
        task_id: Task UUID

    Returns:
        Deletion status
    """
    await ensure_initialized()
    from tasktally.services import TaskService

    try:
        await TaskService().delete(task_id)
    except TasktallyError as e:
        return _error(e)

    return {"deleted": True, "task_id": task_id}


@mcp.tool()
async def task_list(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    category_id: Optional[str] = None,
    assigned_to: Optional[str] = None,
    search: Optional[str] = None,
    due_after: Optional[str] = None,
    due_before: Optional[str] = None,
    is_archived: Optional[bool] = None,
    mine: bool = True,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    page: int = 1,
    limit: int = 10,
) -> dict:
    """
    List tasks with optional filters and pagination.

    Args:
        status: Filter by status (pending, in-progress, completed)
        priority: Filter by priority (low, medium, high)
        category_id: Filter by category
        assigned_to: Filter by assignee
        search: Substring of the title
        due_after: Only tasks due at or after this time (ISO-8601)
        due_before: Only tasks due at or before this time (ISO-8601)
        is_archived: Filter by archive flag
        mine: Restrict to tasks of the configured actor (default True)
        sort_by: created_at, due_date, title, status or priority
        sort_order: asc or desc
        page: Page number, starting at 1
        limit: Page size (max 100)

    Returns:
        Tasks and pagination info
    """
    await ensure_initialized()
    from tasktally.services import TaskFilters, TaskService

    try:
        filters = TaskFilters(
            status=status,
            priority=priority,
            category_id=category_id,
            assigned_to=assigned_to,
            search=search,
            due_after=_parse_datetime(due_after),
            due_before=_parse_datetime(due_before),
            is_archived=is_archived,
            scope=_scope() if mine else None,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        result = await TaskService().list(filters, page=page, limit=limit)
    except TasktallyError as e:
        return _error(e)
    except ValueError as e:
        return {"error": f"Invalid date: {e}", "type": "validation"}

    return result.to_dict()


@mcp.tool()
async def task_search(
    query: str,
    status: Optional[str] = None,
    limit: int = 20,
) -> dict:
    """
    Search tasks by title and description.

    Args:
        query: Search query
        status: Optional status filter
        limit: Maximum results

    Returns:
        List of matching tasks
    """
    await ensure_initialized()
    from tasktally.services import TaskService

    try:
        tasks = await TaskService().search(query=query, status=status, limit=limit)
    except TasktallyError as e:
        return _error(e)

    return {
        "tasks": [t.to_dict() for t in tasks],
        "count": len(tasks),
        "query": query,
    }


# =============================================================================
# CATEGORY TOOLS
# =============================================================================

@mcp.tool()
async def category_create(
    name: str,
    description: Optional[str] = None,
    color: str = "#3498db",
    icon: str = "folder",
) -> dict:
    """
    Create a category owned by the configured actor.

    Args:
        name: Unique name (1-50 characters)
        description: Optional description (max 200 characters)
        color: Hex color, #RGB or #RRGGBB
        icon: Icon name

    Returns:
        Created category details
    """
    await ensure_initialized()
    from tasktally.services import CategoryService
    from tasktally.config import get_config

    try:
        category = await CategoryService().create(
            name=name,
            created_by=get_config().actor_id,
            description=description,
            color=color,
            icon=icon,
        )
    except TasktallyError as e:
        return _error(e)

    return category.to_dict()


@mcp.tool()
async def category_show(category_id: str) -> dict:
    """
    Get a category with the number of tasks filed under it.

    Args:
        category_id: Category UUID

    Returns:
        Category details including task_count
    """
    await ensure_initialized()
    from tasktally.services import CategoryService

    try:
        category = await CategoryService().get_with_count(category_id)
    except TasktallyError as e:
        return _error(e)

    return category.to_dict()


@mcp.tool()
async def category_update(
    category_id: str,
    name: Optional[str] = None,
    description: Optional[str] = None,
    color: Optional[str] = None,
    icon: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> dict:
    """
    Update a category. Omitted fields are left unchanged.

    Args:
        category_id: Category UUID
        name: New name
        description: New description
        color: New hex color
        icon: New icon
        is_active: Active flag

    Returns:
        Updated category details
    """
    await ensure_initialized()
    from tasktally.services import CategoryService

    try:
        category = await CategoryService().update(
            category_id,
            name=name,
            description=description,
            color=color,
            icon=icon,
            is_active=is_active,
        )
    except TasktallyError as e:
        return _error(e)

    return category.to_dict()


@mcp.tool()
async def category_delete(category_id: str) -> dict:
    """
    Delete a category. Its tasks are kept.

    Args:
        category_id: Category UUID

    Returns:
        Deletion status
    """
    await ensure_initialized()
    from tasktally.services import CategoryService

    try:
        await CategoryService().delete(category_id)
    except TasktallyError as e:
        return _error(e)

    return {"deleted": True, "category_id": category_id}


@mcp.tool()
async def category_list(
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    """
    List categories with task counts.

    Args:
        is_active: Filter by active flag
        search: Substring of the name
        page: Page number, starting at 1
        limit: Page size (max 100)

    Returns:
        Categories and pagination info
    """
    await ensure_initialized()
    from tasktally.services import CategoryService

    try:
        result = await CategoryService().list(
            is_active=is_active,
            search=search,
            page=page,
            limit=limit,
            with_counts=True,
        )
    except TasktallyError as e:
        return _error(e)

    return result.to_dict()


# =============================================================================
# ANALYTICS TOOLS
# =============================================================================

@mcp.tool()
async def analytics_overview(
    actor_id: Optional[str] = None,
    scope: Optional[str] = None,
) -> dict:
    """
    Task counts, overdue count and completion rate for an actor.

    Args:
        actor_id: Actor to summarize (defaults to the configured actor)
        scope: involved, created or assigned (defaults to config)

    Returns:
        total_tasks, completed_tasks, pending_tasks, in_progress_tasks,
        overdue_tasks and completion_rate
    """
    await ensure_initialized()
    from tasktally.services import AnalyticsService

    try:
        stats = await AnalyticsService().overview(_scope(actor_id, scope))
    except TasktallyError as e:
        return _error(e)

    return stats.to_dict()


@mcp.tool()
async def analytics_status_distribution(
    actor_id: Optional[str] = None,
    scope: Optional[str] = None,
) -> dict:
    """
    Number of an actor's tasks per status.

    Args:
        actor_id: Actor to summarize (defaults to the configured actor)
        scope: involved, created or assigned (defaults to config)

    Returns:
        List of {status, count}; statuses without tasks are omitted
    """
    await ensure_initialized()
    from tasktally.services import AnalyticsService

    try:
        distribution = await AnalyticsService().status_distribution(_scope(actor_id, scope))
    except TasktallyError as e:
        return _error(e)

    return {"distribution": [item.to_dict() for item in distribution]}


# =============================================================================
# UTILITY TOOLS
# =============================================================================

@mcp.tool()
async def tasktally_health() -> dict:
    """
    Check database connectivity and health.

    Returns:
        Health status including database type
    """
    await ensure_initialized()
    from tasktally.db import get_adapter
    from tasktally.config import get_config

    config = get_config()
    adapter = get_adapter()

    try:
        connected = await adapter.fetchval("SELECT 1") == 1
    except TasktallyError as e:
        connected = False
        logger.error(f"Health check failed: {e}")

    return {
        "status": "healthy" if connected else "unhealthy",
        "database_type": adapter.dialect,
        "supports_fts": adapter.supports_fts,
        "actor_id": config.actor_id,
        "analytics_scope": config.analytics.scope,
    }


# =============================================================================
# CLI ENTRY POINT
# =============================================================================

def configure_logging(level: str) -> None:
    """Send logs to stderr; stdout carries the MCP protocol."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


def main():
    """Main entry point for tasktally-mcp command."""
    import argparse
    from tasktally.config import get_config

    parser = argparse.ArgumentParser(description="Tasktally MCP Server")
    parser.add_argument("command", nargs="?", default="serve", help="Command to run (serve, migrate)")
    args = parser.parse_args()

    configure_logging(get_config().logging.level)

    if args.command == "migrate":
        async def do_migrate():
            from tasktally.db import close_adapter

            await ensure_initialized()
            await close_adapter()
            print("Migrations complete", file=sys.stderr)

        asyncio.run(do_migrate())
    else:
        mcp.run()


if __name__ == "__main__":
    main()
