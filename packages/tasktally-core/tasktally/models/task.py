"""
Task model for Tasktally.

Tasks are the core work items: they belong to a category, are assigned to a
user, carry a due date and move through pending -> in-progress -> completed.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List
from uuid import uuid4

from tasktally.errors import ValidationError
from tasktally.models.base import as_utc, isoformat, parse_datetime, parse_json, utc_now


# Valid status values
STATUS_PENDING = "pending"
STATUS_IN_PROGRESS = "in-progress"
STATUS_COMPLETED = "completed"
TASK_STATUSES = (STATUS_PENDING, STATUS_IN_PROGRESS, STATUS_COMPLETED)

# Valid priority values
TASK_PRIORITIES = ("low", "medium", "high")

TITLE_MAX_LENGTH = 100
MAX_ESTIMATED_HOURS = 40


@dataclass
class Attachment:
    """A file linked to a task."""

    filename: str
    url: str
    upload_date: Optional[datetime] = None

    def __post_init__(self):
        if not self.filename or not self.filename.strip():
            raise ValidationError("Attachment filename is required", field="attachments")
        if not self.url or not self.url.strip():
            raise ValidationError("Attachment url is required", field="attachments")
        self.upload_date = as_utc(self.upload_date)

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "url": self.url,
            "upload_date": isoformat(self.upload_date),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Attachment":
        return cls(
            filename=data.get("filename", ""),
            url=data.get("url", ""),
            upload_date=parse_datetime(data.get("upload_date")),
        )


@dataclass
class Task:
    """
    A task or work item.

    Attributes:
        id: Unique identifier (UUID)
        title: Task title, 1-100 characters
        description: Detailed description
        category_id: Category the task is filed under
        assigned_to: User the task is assigned to
        created_by: User who created the task
        due_date: When the task is due
        priority: Priority level (low, medium, high)
        status: Current status (pending, in-progress, completed)
        estimated_hours: Estimate between 0 and 40 hours
        actual_hours: Hours spent so far
        completed_at: When the task was completed; set only while completed
        tags: Ordered list of tags
        attachments: Linked files
        is_archived: Whether the task is archived
        created_at: When the task was created
        updated_at: When last modified

    is_overdue and progress_percentage are derived at read time and are
    never stored.
    """

    title: str
    category_id: str
    assigned_to: str
    due_date: datetime
    id: str = field(default_factory=lambda: str(uuid4()))
    description: Optional[str] = None
    created_by: Optional[str] = None
    priority: str = "medium"
    status: str = STATUS_PENDING
    estimated_hours: Optional[float] = None
    actual_hours: float = 0
    completed_at: Optional[datetime] = None
    tags: List[str] = field(default_factory=list)
    attachments: List[Attachment] = field(default_factory=list)
    is_archived: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    is_overdue: Optional[bool] = field(default=None, init=False, compare=False)
    progress_percentage: Optional[int] = field(default=None, init=False, compare=False)

    def __post_init__(self):
        self.title = (self.title or "").strip()
        if not self.title:
            raise ValidationError("Title is required", field="title")
        if len(self.title) > TITLE_MAX_LENGTH:
            raise ValidationError(
                f"Title must be at most {TITLE_MAX_LENGTH} characters", field="title"
            )

        if not self.category_id:
            raise ValidationError("Category is required", field="category_id")
        if not self.assigned_to:
            raise ValidationError("Assignee is required", field="assigned_to")
        if self.due_date is None:
            raise ValidationError("Due date is required", field="due_date")

        if self.status not in TASK_STATUSES:
            raise ValidationError(
                f"Invalid status. Must be one of: {', '.join(TASK_STATUSES)}", field="status"
            )
        if self.priority not in TASK_PRIORITIES:
            raise ValidationError(
                f"Invalid priority. Must be one of: {', '.join(TASK_PRIORITIES)}", field="priority"
            )

        if self.estimated_hours is not None and not 0 <= self.estimated_hours <= MAX_ESTIMATED_HOURS:
            raise ValidationError(
                f"Estimated hours must be between 0 and {MAX_ESTIMATED_HOURS}", field="estimated_hours"
            )
        if self.actual_hours is None:
            self.actual_hours = 0
        if self.actual_hours < 0:
            raise ValidationError("Actual hours cannot be negative", field="actual_hours")

        self.tags = list(self.tags or [])
        self.attachments = [
            a if isinstance(a, Attachment) else Attachment.from_dict(a)
            for a in (self.attachments or [])
        ]

        self.due_date = as_utc(self.due_date)
        self.completed_at = as_utc(self.completed_at)
        if self.created_at is None:
            self.created_at = utc_now()
        self.created_at = as_utc(self.created_at)
        if self.updated_at is None:
            self.updated_at = self.created_at
        self.updated_at = as_utc(self.updated_at)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization, including derived fields when attached."""
        result = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category_id": self.category_id,
            "assigned_to": self.assigned_to,
            "created_by": self.created_by,
            "due_date": isoformat(self.due_date),
            "priority": self.priority,
            "status": self.status,
            "estimated_hours": self.estimated_hours,
            "actual_hours": self.actual_hours,
            "completed_at": isoformat(self.completed_at),
            "tags": self.tags,
            "attachments": [a.to_dict() for a in self.attachments],
            "is_archived": self.is_archived,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
        if self.is_overdue is not None:
            result["is_overdue"] = self.is_overdue
        if self.progress_percentage is not None:
            result["progress_percentage"] = self.progress_percentage
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "Task":
        """Create Task from dictionary (e.g., database row)."""
        attachments = parse_json(data.get("attachments"), [])
        estimated = data.get("estimated_hours")

        return cls(
            id=data.get("id"),
            title=data.get("title", ""),
            description=data.get("description"),
            category_id=data.get("category_id"),
            assigned_to=data.get("assigned_to"),
            created_by=data.get("created_by"),
            due_date=parse_datetime(data.get("due_date")),
            priority=data.get("priority", "medium"),
            status=data.get("status", STATUS_PENDING),
            estimated_hours=float(estimated) if estimated is not None else None,
            actual_hours=float(data.get("actual_hours") or 0),
            completed_at=parse_datetime(data.get("completed_at")),
            tags=parse_json(data.get("tags"), []),
            attachments=[Attachment.from_dict(a) for a in attachments],
            is_archived=bool(data.get("is_archived", False)),
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
        )
