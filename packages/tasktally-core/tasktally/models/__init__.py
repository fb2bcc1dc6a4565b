"""
Core data models for Tasktally.
"""

from tasktally.models.category import Category
from tasktally.models.task import Attachment, Task

__all__ = [
    "Task",
    "Attachment",
    "Category",
]
