"""
Analytics Service for Tasktally.

Per-actor task statistics. Each statistic is a single aggregate query
against the task table; task rows are never loaded to be counted.
"""

import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Callable, List

from tasktally.db import get_adapter
from tasktally.models.base import utc_now
from tasktally.models.task import STATUS_COMPLETED, STATUS_IN_PROGRESS, STATUS_PENDING
from tasktally.services.query import QueryBuilder, TaskScope

logger = logging.getLogger(__name__)


@dataclass
class OverviewStats:
    """
    Summary counts for an actor's tasks.

    pending, in-progress and completed partition total_tasks. overdue_tasks
    overlaps pending and in-progress and never includes completed tasks.
    """

    total_tasks: int = 0
    completed_tasks: int = 0
    pending_tasks: int = 0
    in_progress_tasks: int = 0
    overdue_tasks: int = 0
    completion_rate: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class StatusCount:
    status: str
    count: int

    def to_dict(self) -> dict:
        return asdict(self)


def completion_rate(completed: int, total: int) -> float:
    """Percentage of completed tasks; 0.0 when there are no tasks."""
    if total == 0:
        return 0.0
    return (completed / total) * 100


class AnalyticsService:
    """
    Service for task analytics.

    Reads whatever the store holds at call time. Concurrent calls share no
    state and may observe different committed snapshots.
    """

    def __init__(self, adapter=None, clock: Callable[[], datetime] = utc_now):
        """
        Initialize analytics service.

        Args:
            adapter: Optional DatabaseAdapter. If not provided, uses global adapter.
            clock: Source of the current time, used for overdue counts
        """
        self._adapter = adapter
        self._clock = clock

    @property
    def adapter(self):
        """Get the database adapter."""
        if self._adapter is None:
            self._adapter = get_adapter()
        return self._adapter

    async def overview(self, scope: TaskScope) -> OverviewStats:
        """
        Count an actor's tasks by status, plus overdue tasks and completion rate.

        Args:
            scope: Which tasks belong to the actor

        Returns:
            OverviewStats, all zero for an actor with no tasks
        """
        builder = QueryBuilder()
        # Placeholders render in textual order, so the SELECT list comes first
        completed_ph = builder.placeholder(STATUS_COMPLETED)
        pending_ph = builder.placeholder(STATUS_PENDING)
        in_progress_ph = builder.placeholder(STATUS_IN_PROGRESS)
        open_ph = builder.placeholder(STATUS_COMPLETED)
        now_ph = builder.placeholder(self.adapter.encode_datetime(self._clock()))
        scope.apply(builder)
        table = self.adapter.table("tasks")

        row = await self.adapter.fetchrow(
            f"""
            SELECT
                COUNT(*) AS total_tasks,
                COALESCE(SUM(CASE WHEN status = {completed_ph} THEN 1 ELSE 0 END), 0) AS completed_tasks,
                COALESCE(SUM(CASE WHEN status = {pending_ph} THEN 1 ELSE 0 END), 0) AS pending_tasks,
                COALESCE(SUM(CASE WHEN status = {in_progress_ph} THEN 1 ELSE 0 END), 0) AS in_progress_tasks,
                COALESCE(SUM(CASE WHEN status <> {open_ph} AND due_date < {now_ph} THEN 1 ELSE 0 END), 0) AS overdue_tasks
            FROM {table}
            {builder.where_sql()}
            """,
            *builder.params,
        )
        row = row or {}

        total = int(row.get("total_tasks") or 0)
        completed = int(row.get("completed_tasks") or 0)
        stats = OverviewStats(
            total_tasks=total,
            completed_tasks=completed,
            pending_tasks=int(row.get("pending_tasks") or 0),
            in_progress_tasks=int(row.get("in_progress_tasks") or 0),
            overdue_tasks=int(row.get("overdue_tasks") or 0),
            completion_rate=completion_rate(completed, total),
        )
        logger.debug(f"Overview for {scope.actor_id} ({scope.mode}): {stats}")
        return stats

    async def status_distribution(self, scope: TaskScope) -> List[StatusCount]:
        """
        Number of tasks per status.

        Statuses with no tasks are omitted. Callers should look entries up by
        status; the order (by status name) is not significant.
        """
        builder = scope.apply(QueryBuilder())
        table = self.adapter.table("tasks")
        rows = await self.adapter.fetch(
            f"""
            SELECT status, COUNT(*) AS count
            FROM {table}
            {builder.where_sql()}
            GROUP BY status
            ORDER BY status
            """,
            *builder.params,
        )
        return [StatusCount(status=row["status"], count=int(row["count"])) for row in rows]
