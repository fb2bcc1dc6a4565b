"""
Category model for Tasktally.

Categories group tasks. Each task references exactly one category by id.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import uuid4

from tasktally.errors import ValidationError
from tasktally.models.base import as_utc, isoformat, parse_datetime, utc_now


NAME_MAX_LENGTH = 50
DESCRIPTION_MAX_LENGTH = 200
DEFAULT_COLOR = "#3498db"
DEFAULT_ICON = "folder"

HEX_COLOR = re.compile(r"^#([0-9a-f]{3}|[0-9a-f]{6})$", re.IGNORECASE)


@dataclass
class Category:
    """
    A task category.

    Attributes:
        id: Unique identifier (UUID)
        name: Display name, unique across categories
        description: Optional description, at most 200 characters
        color: Hex color (#RGB or #RRGGBB)
        icon: Icon name
        is_active: Whether the category is in use
        created_by: Owning user; never changes after creation
        created_at: When created
        updated_at: When last modified
        task_count: Live count of referencing tasks, filled in by the
            category service on request and never stored
    """

    name: str
    created_by: str
    id: str = field(default_factory=lambda: str(uuid4()))
    description: Optional[str] = None
    color: str = DEFAULT_COLOR
    icon: str = DEFAULT_ICON
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    task_count: Optional[int] = field(default=None, init=False, compare=False)

    def __post_init__(self):
        self.name = (self.name or "").strip()
        if not self.name:
            raise ValidationError("Category name is required", field="name")
        if len(self.name) > NAME_MAX_LENGTH:
            raise ValidationError(
                f"Category name must be at most {NAME_MAX_LENGTH} characters", field="name"
            )

        if not self.created_by:
            raise ValidationError("Category owner is required", field="created_by")

        if self.description is not None:
            self.description = self.description.strip()
            if len(self.description) > DESCRIPTION_MAX_LENGTH:
                raise ValidationError(
                    f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters",
                    field="description",
                )

        self.color = (self.color or DEFAULT_COLOR).strip()
        if not HEX_COLOR.match(self.color):
            raise ValidationError(
                "Color must be a valid hex color (#RGB or #RRGGBB)", field="color"
            )

        self.icon = (self.icon or DEFAULT_ICON).strip() or DEFAULT_ICON

        if self.created_at is None:
            self.created_at = utc_now()
        self.created_at = as_utc(self.created_at)
        if self.updated_at is None:
            self.updated_at = self.created_at
        self.updated_at = as_utc(self.updated_at)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        result = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "icon": self.icon,
            "is_active": self.is_active,
            "created_by": self.created_by,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
        if self.task_count is not None:
            result["task_count"] = self.task_count
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "Category":
        """Create Category from dictionary (e.g., database row)."""
        category = cls(
            id=data.get("id"),
            name=data.get("name", ""),
            created_by=data.get("created_by"),
            description=data.get("description"),
            color=data.get("color") or DEFAULT_COLOR,
            icon=data.get("icon") or DEFAULT_ICON,
            is_active=bool(data.get("is_active", True)),
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
        )
        if data.get("task_count") is not None:
            category.task_count = int(data["task_count"])
        return category
