"""
Error taxonomy for Tasktally.

Every failure surfaced by the core is one of these kinds. Store failures
are not retried internally.
"""

from typing import Optional


class TasktallyError(Exception):
    """Base class for all Tasktally errors."""

    kind = "internal"


class ValidationError(TasktallyError, ValueError):
    """A field is malformed or out of range."""

    kind = "validation"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(TasktallyError, LookupError):
    """A referenced task or category does not exist."""

    kind = "not_found"

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity.capitalize()} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(TasktallyError):
    """A uniqueness constraint would be violated, or a task kept changing under a status write."""

    kind = "conflict"


class InternalError(TasktallyError):
    """The underlying store failed (connection loss, query failure)."""

    kind = "internal"
