"""
Category Service for Tasktally.

CRUD for categories plus the live reverse count of tasks per category.
"""

import builtins
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable

from tasktally.db import get_adapter
from tasktally.db.interface import LIKE_ESCAPE, affected_rows, contains_pattern
from tasktally.errors import ConflictError, NotFoundError
from tasktally.models.base import utc_now
from tasktally.models.category import DEFAULT_COLOR, DEFAULT_ICON, Category
from tasktally.services.query import (
    DEFAULT_PAGE_SIZE,
    Pagination,
    QueryBuilder,
    check_page,
    paginate,
)

logger = logging.getLogger(__name__)


@dataclass
class CategoryPage:
    """One page of categories."""

    categories: builtins.list[Category]
    pagination: Pagination

    def to_dict(self) -> dict:
        return {
            "categories": [c.to_dict() for c in self.categories],
            "pagination": self.pagination.to_dict(),
        }


class CategoryService:
    """
    Service for managing categories.

    The number of tasks in a category is never stored; it is counted against
    the task table whenever it is asked for.
    """

    def __init__(self, adapter=None, clock: Callable[[], datetime] = utc_now):
        """
        Initialize category service.

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

    async def _ensure_name_available(self, name: str, exclude_id: str | None = None) -> None:
        table = self.adapter.table("categories")
        existing = await self.adapter.fetchval(
            f"SELECT id FROM {table} WHERE name = $1", name
        )
        if existing is not None and existing != exclude_id:
            raise ConflictError(f"Category already exists: {name}")

    async def create(
        self,
        name: str,
        created_by: str,
        description: str | None = None,
        color: str = DEFAULT_COLOR,
        icon: str = DEFAULT_ICON,
        is_active: bool = True,
    ) -> Category:
        """
        Create a new category.

        Raises:
            ValidationError: If a field is invalid
            ConflictError: If a category with this name exists
        """
        now = self._clock()
        category = Category(
            name=name,
            created_by=created_by,
            description=description,
            color=color,
            icon=icon,
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )

        await self._ensure_name_available(category.name)

        table = self.adapter.table("categories")
        db = self.adapter
        await db.execute(
            f"""
            INSERT INTO {table}
                (id, name, description, color, icon, is_active, created_by, created_at, updated_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            """,
            category.id, category.name, category.description, category.color,
            category.icon, db.encode_bool(category.is_active), category.created_by,
            db.encode_datetime(category.created_at), db.encode_datetime(category.updated_at),
        )

        logger.info(f"Created category: {category.id} - {category.name}")
        return category

    async def get(self, category_id: str) -> Category:
        """
        Get a category by ID.

        Raises:
            NotFoundError: If the category does not exist
        """
        table = self.adapter.table("categories")
        row = await self.adapter.fetchrow(
            f"SELECT * FROM {table} WHERE id = $1", category_id
        )
        if not row:
            raise NotFoundError("category", category_id)
        return Category.from_dict(row)

    async def count_tasks(self, category_id: str) -> int:
        """Number of tasks currently filed under the category (0 when none)."""
        tasks = self.adapter.table("tasks")
        count = await self.adapter.fetchval(
            f"SELECT COUNT(*) FROM {tasks} WHERE category_id = $1",
            category_id,
        )
        return int(count or 0)

    async def get_with_count(self, category_id: str) -> Category:
        """Get a category with task_count filled in."""
        category = await self.get(category_id)
        category.task_count = await self.count_tasks(category_id)
        return category

    async def update(
        self,
        category_id: str,
        name: str | None = None,
        description: str | None = None,
        color: str | None = None,
        icon: str | None = None,
        is_active: bool | None = None,
    ) -> Category:
        """
        Update a category. The owner cannot be changed.

        Raises:
            NotFoundError: If the category does not exist
            ValidationError: If a field is invalid
            ConflictError: If the new name is taken by another category
        """
        current = await self.get(category_id)

        changes = {
            key: value
            for key, value in {
                "name": name,
                "description": description,
                "color": color,
                "icon": icon,
                "is_active": is_active,
            }.items()
            if value is not None
        }
        if not changes:
            return current

        updated = replace(current, updated_at=self._clock(), **changes)
        if updated.name != current.name:
            await self._ensure_name_available(updated.name, exclude_id=category_id)

        table = self.adapter.table("categories")
        db = self.adapter
        result = await db.execute(
            f"""
            UPDATE {table}
            SET name = $1, description = $2, color = $3, icon = $4,
                is_active = $5, updated_at = $6
            WHERE id = $7
            """,
            updated.name, updated.description, updated.color, updated.icon,
            db.encode_bool(updated.is_active), db.encode_datetime(updated.updated_at),
            category_id,
        )
        if affected_rows(result) == 0:
            raise NotFoundError("category", category_id)

        logger.info(f"Updated category: {category_id}")
        return updated

    async def delete(self, category_id: str) -> bool:
        """
        Delete a category. Tasks referencing it are left in place.

        Raises:
            NotFoundError: If the category does not exist
        """
        table = self.adapter.table("categories")
        result = await self.adapter.execute(
            f"DELETE FROM {table} WHERE id = $1", category_id
        )
        if affected_rows(result) == 0:
            raise NotFoundError("category", category_id)

        logger.info(f"Deleted category: {category_id}")
        return True

    async def list(
        self,
        is_active: bool | None = None,
        search: str | None = None,
        created_by: str | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        with_counts: bool = False,
    ) -> CategoryPage:
        """
        List categories with optional filters.

        Args:
            is_active: Filter by active flag
            search: Case-insensitive substring of the name
            created_by: Filter by owner
            page: 1-based page number
            limit: Page size
            with_counts: Fill in task_count for each category

        Returns:
            CategoryPage ordered by name
        """
        check_page(page, limit)
        db = self.adapter
        builder = QueryBuilder()

        if is_active is not None:
            builder.add("is_active = {}", db.encode_bool(is_active))
        if search:
            builder.add(f"name {db.case_insensitive_like} {{}} {LIKE_ESCAPE}", contains_pattern(search))
        if created_by:
            builder.add("created_by = {}", created_by)

        table = self.adapter.table("categories")
        where_sql = builder.where_sql()

        total = await db.fetchval(
            f"SELECT COUNT(*) FROM {table} {where_sql}", *builder.params
        )
        pagination = paginate(page, limit, int(total or 0))

        count_column = ""
        if with_counts:
            tasks = self.adapter.table("tasks")
            count_column = (
                f", (SELECT COUNT(*) FROM {tasks} t"
                f" WHERE t.category_id = {table}.id) AS task_count"
            )

        limit_ph = builder.placeholder(limit)
        offset_ph = builder.placeholder(pagination.offset)
        rows = await db.fetch(
            f"""
            SELECT {table}.*{count_column}
            FROM {table}
            {where_sql}
            ORDER BY name ASC
            LIMIT {limit_ph} OFFSET {offset_ph}
            """,
            *builder.params,
        )

        return CategoryPage(
            categories=[Category.from_dict(row) for row in rows],
            pagination=pagination,
        )
