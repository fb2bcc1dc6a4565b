"""
Query plumbing shared by the services: WHERE-clause building with numbered
placeholders, actor scoping and pagination.
"""

import math
from dataclasses import dataclass, field
from typing import Any, List

from tasktally.errors import ValidationError

SCOPE_INVOLVED = "involved"
SCOPE_CREATED = "created"
SCOPE_ASSIGNED = "assigned"
SCOPE_MODES = (SCOPE_INVOLVED, SCOPE_CREATED, SCOPE_ASSIGNED)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


@dataclass
class QueryBuilder:
    """
    Accumulates AND-ed conditions and their parameters.

    Conditions use "{}" where a parameter goes; each one is rendered as the
    next $n placeholder, so parameters stay in textual order.
    """

    conditions: List[str] = field(default_factory=list)
    params: List[Any] = field(default_factory=list)

    def placeholder(self, value: Any) -> str:
        self.params.append(value)
        return f"${len(self.params)}"

    def add(self, condition: str, *values: Any) -> "QueryBuilder":
        rendered = condition.format(*[self.placeholder(v) for v in values])
        self.conditions.append(rendered)
        return self

    def where_sql(self) -> str:
        if not self.conditions:
            return ""
        return "WHERE " + " AND ".join(self.conditions)


@dataclass(frozen=True)
class TaskScope:
    """
    The set of tasks an actor's reads cover.

    Modes:
        involved: tasks the actor created or is assigned to
        created: tasks the actor created
        assigned: tasks assigned to the actor
    """

    actor_id: str
    mode: str = SCOPE_INVOLVED

    def __post_init__(self):
        if not self.actor_id:
            raise ValidationError("Actor id is required for a task scope", field="actor_id")
        if self.mode not in SCOPE_MODES:
            raise ValidationError(
                f"Invalid scope. Must be one of: {', '.join(SCOPE_MODES)}", field="scope"
            )

    def apply(self, builder: QueryBuilder) -> QueryBuilder:
        if self.mode == SCOPE_CREATED:
            return builder.add("created_by = {}", self.actor_id)
        if self.mode == SCOPE_ASSIGNED:
            return builder.add("assigned_to = {}", self.actor_id)
        return builder.add("(created_by = {} OR assigned_to = {})", self.actor_id, self.actor_id)


@dataclass
class Pagination:
    """Page metadata returned alongside list results."""

    current_page: int
    total_pages: int
    total_items: int
    limit: int

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.current_page > 1

    @property
    def offset(self) -> int:
        return (self.current_page - 1) * self.limit

    def to_dict(self) -> dict:
        return {
            "current_page": self.current_page,
            "total_pages": self.total_pages,
            "total_items": self.total_items,
            "limit": self.limit,
            "has_next": self.has_next,
            "has_prev": self.has_prev,
        }


def check_page(page: int, limit: int) -> None:
    if page < 1:
        raise ValidationError("Page must be 1 or greater", field="page")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValidationError(f"Limit must be between 1 and {MAX_PAGE_SIZE}", field="limit")


def paginate(page: int, limit: int, total_items: int) -> Pagination:
    total_pages = math.ceil(total_items / limit) if total_items else 0
    return Pagination(
        current_page=page,
        total_pages=total_pages,
        total_items=total_items,
        limit=limit,
    )
