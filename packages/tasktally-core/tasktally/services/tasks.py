"""
Task Service for Tasktally.

CRUD operations for tasks with support for both PostgreSQL and SQLite.
Every write goes through the lifecycle rules before it is persisted, and
every task handed back carries its read-time fields.
"""

import builtins
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, Sequence

from tasktally.db import get_adapter
from tasktally.db.interface import LIKE_ESCAPE, affected_rows, contains_pattern
from tasktally.errors import ConflictError, NotFoundError, ValidationError
from tasktally.lifecycle import apply_status_transition, attach_derived
from tasktally.models.base import utc_now
from tasktally.models.task import STATUS_PENDING, Attachment, Task
from tasktally.services.query import (
    DEFAULT_PAGE_SIZE,
    Pagination,
    QueryBuilder,
    TaskScope,
    check_page,
    paginate,
)

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "created_at": "created_at",
    "due_date": "due_date",
    "title": "title",
    "status": "status",
    "priority": "CASE priority WHEN 'high' THEN 3 WHEN 'medium' THEN 2 ELSE 1 END",
}
SORT_ORDERS = ("asc", "desc")

# Columns written from a Task, in INSERT order
WRITE_COLUMNS = (
    "title",
    "description",
    "category_id",
    "assigned_to",
    "created_by",
    "due_date",
    "priority",
    "status",
    "estimated_hours",
    "actual_hours",
    "completed_at",
    "tags",
    "attachments",
    "is_archived",
    "updated_at",
)

# A lifecycle write lost to a concurrent status change is recomputed this many times
LIFECYCLE_WRITE_ATTEMPTS = 3


@dataclass
class TaskFilters:
    """Filters accepted by TaskService.list()."""

    status: str | None = None
    priority: str | None = None
    category_id: str | None = None
    assigned_to: str | None = None
    created_by: str | None = None
    is_archived: bool | None = None
    search: str | None = None
    due_after: datetime | None = None
    due_before: datetime | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None
    scope: TaskScope | None = None
    sort_by: str = "created_at"
    sort_order: str = "desc"

    def __post_init__(self):
        if self.sort_by not in SORT_COLUMNS:
            raise ValidationError(
                f"Invalid sort field. Must be one of: {', '.join(SORT_COLUMNS)}", field="sort_by"
            )
        if self.sort_order not in SORT_ORDERS:
            raise ValidationError("Sort order must be 'asc' or 'desc'", field="sort_order")


@dataclass
class TaskPage:
    """One page of tasks."""

    tasks: builtins.list[Task]
    pagination: Pagination

    def to_dict(self) -> dict:
        return {
            "tasks": [t.to_dict() for t in self.tasks],
            "pagination": self.pagination.to_dict(),
        }


class TaskService:
    """
    Service for managing tasks.

    Provides CRUD operations that work across PostgreSQL and SQLite.
    """

    def __init__(self, adapter=None, clock: Callable[[], datetime] = utc_now):
        """
        Initialize task service.

        Args:
            adapter: Optional DatabaseAdapter. If not provided, uses global adapter.
            clock: Source of the current time
        """
        self._adapter = adapter
        self._clock = clock

    @property
    def adapter(self):
        """Get the database adapter."""
        if self._adapter is None:
            self._adapter = get_adapter()
        return self._adapter

    async def _require_category(self, category_id: str) -> None:
        categories = self.adapter.table("categories")
        found = await self.adapter.fetchval(
            f"SELECT 1 FROM {categories} WHERE id = $1", category_id
        )
        if found is None:
            raise NotFoundError("category", category_id)

    @staticmethod
    def _stamp_attachments(
        attachments: Sequence[Attachment | dict] | None, now: datetime
    ) -> list[Attachment]:
        stamped = []
        for item in attachments or []:
            attachment = item if isinstance(item, Attachment) else Attachment.from_dict(item)
            if attachment.upload_date is None:
                attachment = replace(attachment, upload_date=now)
            stamped.append(attachment)
        return stamped

    def _encode(self, column: str, value: Any) -> Any:
        db = self.adapter
        if column in ("due_date", "completed_at", "updated_at", "created_at"):
            return db.encode_datetime(value)
        if column == "tags":
            return db.encode_list(value)
        if column == "attachments":
            return db.encode_json([a.to_dict() for a in value])
        if column == "is_archived":
            return db.encode_bool(value)
        return value

    def _row_values(self, task: Task) -> list[Any]:
        return [self._encode(column, getattr(task, column)) for column in WRITE_COLUMNS]

    async def create(
        self,
        title: str,
        category_id: str,
        assigned_to: str,
        due_date: datetime,
        created_by: str | None = None,
        description: str | None = None,
        priority: str = "medium",
        status: str = STATUS_PENDING,
        estimated_hours: float | None = None,
        actual_hours: float = 0,
        completed_at: datetime | None = None,
        tags: list[str] | None = None,
        attachments: Sequence[Attachment | dict] | None = None,
        is_archived: bool = False,
    ) -> Task:
        """
        Create a new task.

        A completed_at is only kept when status is completed; when the task
        is created completed without one, the current time is used.

        Raises:
            ValidationError: If a field is invalid
            NotFoundError: If the category does not exist
        """
        now = self._clock()
        task = Task(
            title=title,
            category_id=category_id,
            assigned_to=assigned_to,
            due_date=due_date,
            created_by=created_by,
            description=description,
            priority=priority,
            status=status,
            estimated_hours=estimated_hours,
            actual_hours=actual_hours,
            tags=tags or [],
            attachments=self._stamp_attachments(attachments, now),
            is_archived=is_archived,
            created_at=now,
            updated_at=now,
        )
        task.completed_at = apply_status_transition(
            previous_status=None,
            new_status=task.status,
            previous_completed_at=None,
            explicit_completed_at=completed_at,
            now=now,
        )

        await self._require_category(task.category_id)

        table = self.adapter.table("tasks")
        await self.adapter.execute(
            f"""
            INSERT INTO {table}
                (title, description, category_id, assigned_to, created_by, due_date,
                 priority, status, estimated_hours, actual_hours, completed_at,
                 tags, attachments, is_archived, updated_at, id, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16, $17)
            """,
            *self._row_values(task),
            task.id,
            self.adapter.encode_datetime(task.created_at),
        )

        logger.info(f"Created task: {task.id} - {task.title}")
        return attach_derived(task, now)

    async def _load(self, task_id: str) -> Task:
        table = self.adapter.table("tasks")
        row = await self.adapter.fetchrow(
            f"SELECT * FROM {table} WHERE id = $1", task_id
        )
        if not row:
            raise NotFoundError("task", task_id)
        return Task.from_dict(row)

    async def get(self, task_id: str) -> Task:
        """
        Get a task by ID with is_overdue and progress_percentage attached.

        Raises:
            NotFoundError: If the task does not exist
        """
        task = await self._load(task_id)
        return attach_derived(task, self._clock())

    async def update(
        self,
        task_id: str,
        title: str | None = None,
        description: str | None = None,
        category_id: str | None = None,
        assigned_to: str | None = None,
        due_date: datetime | None = None,
        priority: str | None = None,
        status: str | None = None,
        estimated_hours: float | None = None,
        actual_hours: float | None = None,
        completed_at: datetime | None = None,
        tags: list[str] | None = None,
        attachments: Sequence[Attachment | dict] | None = None,
        is_archived: bool | None = None,
    ) -> Task:
        """
        Apply a partial update to a task.

        Fields left as None are unchanged, and only the given columns are
        written, so concurrent updates to different fields both survive.
        When status or completed_at is given, the new status and the
        completed_at it implies are written together, guarded by the
        status and completed_at they were computed from; if another write
        changed those first, the task is re-read and the transition
        recomputed.

        Raises:
            NotFoundError: If the task, or a newly referenced category, does not exist
            ValidationError: If a field is invalid
            ConflictError: If the lifecycle write kept losing to concurrent status changes
        """
        now = self._clock()

        changes = {
            key: value
            for key, value in {
                "title": title,
                "description": description,
                "category_id": category_id,
                "assigned_to": assigned_to,
                "due_date": due_date,
                "priority": priority,
                "status": status,
                "estimated_hours": estimated_hours,
                "actual_hours": actual_hours,
                "tags": tags,
                "is_archived": is_archived,
            }.items()
            if value is not None
        }
        if attachments is not None:
            changes["attachments"] = self._stamp_attachments(attachments, now)

        current = await self._load(task_id)
        if not changes and completed_at is None:
            return attach_derived(current, now)

        lifecycle = status is not None or completed_at is not None
        columns = [*changes, "updated_at"]
        if lifecycle:
            columns += ["status", "completed_at"]
        columns = list(dict.fromkeys(columns))

        table = self.adapter.table("tasks")
        for attempt in range(LIFECYCLE_WRITE_ATTEMPTS):
            # replace() re-runs field validation on the merged task
            updated = replace(current, updated_at=now, **changes)
            updated.completed_at = apply_status_transition(
                previous_status=current.status,
                new_status=updated.status,
                previous_completed_at=current.completed_at,
                explicit_completed_at=completed_at,
                now=now,
            )

            if attempt == 0 and updated.category_id != current.category_id:
                await self._require_category(updated.category_id)

            builder = QueryBuilder()
            assignments = ", ".join(
                f"{column} = {builder.placeholder(self._encode(column, getattr(updated, column)))}"
                for column in columns
            )
            builder.add("id = {}", task_id)
            if lifecycle:
                builder.add("status = {}", current.status)
                if current.completed_at is None:
                    builder.conditions.append("completed_at IS NULL")
                else:
                    builder.add(
                        "completed_at = {}", self.adapter.encode_datetime(current.completed_at)
                    )

            where_sql = builder.where_sql()
            result = await self.adapter.execute(
                f"UPDATE {table} SET {assignments} {where_sql}", *builder.params
            )
            if affected_rows(result) > 0:
                break
            if not lifecycle:
                raise NotFoundError("task", task_id)

            logger.debug(f"Task {task_id} changed status during update, retrying")
            current = await self._load(task_id)
        else:
            raise ConflictError(f"Task {task_id} kept changing status during update")

        if updated.status != current.status:
            logger.info(f"Task {task_id} status {current.status} -> {updated.status}")
        else:
            logger.info(f"Updated task: {task_id}")
        return attach_derived(await self._load(task_id), now)

    async def delete(self, task_id: str) -> bool:
        """
        Permanently delete a task.

        Raises:
            NotFoundError: If the task does not exist
        """
        table = self.adapter.table("tasks")
        result = await self.adapter.execute(
            f"DELETE FROM {table} WHERE id = $1", task_id
        )
        if affected_rows(result) == 0:
            raise NotFoundError("task", task_id)

        logger.info(f"Deleted task: {task_id}")
        return True

    def _apply_filters(self, builder: QueryBuilder, filters: TaskFilters) -> QueryBuilder:
        db = self.adapter

        if filters.scope is not None:
            filters.scope.apply(builder)
        if filters.status:
            builder.add("status = {}", filters.status)
        if filters.priority:
            builder.add("priority = {}", filters.priority)
        if filters.category_id:
            builder.add("category_id = {}", filters.category_id)
        if filters.assigned_to:
            builder.add("assigned_to = {}", filters.assigned_to)
        if filters.created_by:
            builder.add("created_by = {}", filters.created_by)
        if filters.is_archived is not None:
            builder.add("is_archived = {}", db.encode_bool(filters.is_archived))
        if filters.search:
            builder.add(
                f"title {db.case_insensitive_like} {{}} {LIKE_ESCAPE}", contains_pattern(filters.search)
            )
        if filters.due_after:
            builder.add("due_date >= {}", db.encode_datetime(filters.due_after))
        if filters.due_before:
            builder.add("due_date <= {}", db.encode_datetime(filters.due_before))
        if filters.created_after:
            builder.add("created_at >= {}", db.encode_datetime(filters.created_after))
        if filters.created_before:
            builder.add("created_at <= {}", db.encode_datetime(filters.created_before))

        return builder

    async def list(
        self,
        filters: TaskFilters | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> TaskPage:
        """
        List tasks with optional filters.

        Args:
            filters: TaskFilters; all tasks when omitted
            page: 1-based page number
            limit: Page size (1-100)

        Returns:
            TaskPage with derived fields attached to every task
        """
        check_page(page, limit)
        filters = filters or TaskFilters()
        builder = self._apply_filters(QueryBuilder(), filters)

        table = self.adapter.table("tasks")
        where_sql = builder.where_sql()

        total = await self.adapter.fetchval(
            f"SELECT COUNT(*) FROM {table} {where_sql}", *builder.params
        )
        pagination = paginate(page, limit, int(total or 0))

        order_sql = f"{SORT_COLUMNS[filters.sort_by]} {filters.sort_order.upper()}, id ASC"
        limit_ph = builder.placeholder(limit)
        offset_ph = builder.placeholder(pagination.offset)

        rows = await self.adapter.fetch(
            f"""
            SELECT * FROM {table}
            {where_sql}
            ORDER BY {order_sql}
            LIMIT {limit_ph} OFFSET {offset_ph}
            """,
            *builder.params,
        )

        now = self._clock()
        return TaskPage(
            tasks=[attach_derived(Task.from_dict(row), now) for row in rows],
            pagination=pagination,
        )

    async def search(
        self,
        query: str,
        status: str | None = None,
        scope: TaskScope | None = None,
        limit: int = 20,
    ) -> builtins.list[Task]:
        """
        Search tasks by title and description.

        Args:
            query: Search query
            status: Optional status filter
            scope: Optional actor scope
            limit: Max results

        Returns:
            List of matching Task objects
        """
        # $1 is the search text; extra conditions number from $2
        builder = QueryBuilder(params=[query])
        if scope is not None:
            scope.apply(builder)
        if status:
            builder.add("status = {}", status)

        rows = await self.adapter.search_text(
            table=self.adapter.table("tasks"),
            query=query,
            columns=["title", "description"],
            limit=limit,
            where_clause=" AND ".join(builder.conditions) or None,
            where_args=builder.params[1:],
        )
        now = self._clock()
        return [attach_derived(Task.from_dict(row), now) for row in rows]

    async def assign(self, task_id: str, assigned_to: str) -> Task:
        """Assign a task to a user."""
        return await self.update(task_id, assigned_to=assigned_to)

    async def complete(self, task_id: str, completed_at: datetime | None = None) -> Task:
        """Mark a task as completed."""
        return await self.update(task_id, status="completed", completed_at=completed_at)
