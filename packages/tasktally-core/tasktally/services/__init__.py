"""
Business logic services for Tasktally.
"""

from tasktally.services.analytics import AnalyticsService, OverviewStats, StatusCount
from tasktally.services.categories import CategoryPage, CategoryService
from tasktally.services.query import Pagination, TaskScope
from tasktally.services.tasks import TaskFilters, TaskPage, TaskService

__all__ = [
    "TaskService",
    "TaskFilters",
    "TaskPage",
    "CategoryService",
    "CategoryPage",
    "AnalyticsService",
    "OverviewStats",
    "StatusCount",
    "TaskScope",
    "Pagination",
]
