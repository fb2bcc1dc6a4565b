"""
Task lifecycle rules.

Keeps completed_at consistent with status on every write and computes the
read-time fields is_overdue and progress_percentage. Everything here is a
pure function of its arguments; callers pass the current time explicitly.
"""

from datetime import datetime
from typing import Optional

from tasktally.errors import ValidationError
from tasktally.models.base import as_utc
from tasktally.models.task import (
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_PENDING,
    TASK_STATUSES,
    Task,
)

PROGRESS_BY_STATUS = {
    STATUS_PENDING: 0,
    STATUS_IN_PROGRESS: 50,
    STATUS_COMPLETED: 100,
}


def _require_status(status: str) -> None:
    if status not in TASK_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(TASK_STATUSES)}",
            field="status",
        )


def apply_status_transition(
    previous_status: Optional[str],
    new_status: str,
    previous_completed_at: Optional[datetime],
    explicit_completed_at: Optional[datetime],
    now: datetime,
) -> Optional[datetime]:
    """
    Decide completed_at for a task being written with new_status.

    Args:
        previous_status: Persisted status, or None when the task is new
        new_status: Status being written
        previous_completed_at: Persisted completed_at
        explicit_completed_at: completed_at supplied by the write payload, if any
        now: Current time

    Returns:
        The completed_at to persist alongside new_status
    """
    _require_status(new_status)
    if previous_status is not None:
        _require_status(previous_status)

    if new_status != STATUS_COMPLETED:
        return None

    if explicit_completed_at is not None:
        return as_utc(explicit_completed_at)

    if previous_status == STATUS_COMPLETED and previous_completed_at is not None:
        return as_utc(previous_completed_at)

    return as_utc(now)


def is_overdue(task: Task, now: datetime) -> bool:
    """A task is overdue when it is not completed and its due date has passed."""
    if task.status == STATUS_COMPLETED:
        return False
    return task.due_date < as_utc(now)


def progress_percentage(task: Task) -> int:
    _require_status(task.status)
    return PROGRESS_BY_STATUS[task.status]


def attach_derived(task: Task, now: datetime) -> Task:
    """Stamp is_overdue and progress_percentage onto a task as of now."""
    task.is_overdue = is_overdue(task, now)
    task.progress_percentage = progress_percentage(task)
    return task
