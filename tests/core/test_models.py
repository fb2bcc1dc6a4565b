"""
Tests for tasktally models.
"""

import json
import pytest
from datetime import datetime, timedelta, timezone

from tasktally.errors import ValidationError
from tasktally.models.category import Category
from tasktally.models.task import Attachment, Task

DUE = datetime(2026, 4, 1, 9, 0, tzinfo=timezone.utc)


def make_task(**overrides):
    data = {
        "title": "Write report",
        "category_id": "cat-1",
        "assigned_to": "alice",
        "due_date": DUE,
    }
    data.update(overrides)
    return Task(**data)


class TestTaskModel:
    """Tests for the Task dataclass."""

    def test_task_defaults(self):
        """Test default values."""
        task = make_task()

        assert task.id
        assert task.status == "pending"
        assert task.priority == "medium"
        assert task.actual_hours == 0
        assert task.estimated_hours is None
        assert task.completed_at is None
        assert task.tags == []
        assert task.attachments == []
        assert task.is_archived is False
        assert task.created_at is not None
        assert task.updated_at == task.created_at
        assert task.is_overdue is None
        assert task.progress_percentage is None

    def test_title_is_trimmed(self):
        task = make_task(title="  Write report  ")

        assert task.title == "Write report"

    def test_title_length_limit(self):
        assert make_task(title="x" * 100).title == "x" * 100

        with pytest.raises(ValidationError) as exc_info:
            make_task(title="x" * 101)
        assert exc_info.value.field == "title"

    @pytest.mark.parametrize("title", ["", "   "])
    def test_blank_title_rejected(self, title):
        with pytest.raises(ValidationError):
            make_task(title=title)

    @pytest.mark.parametrize(
        "field,value",
        [
            ("status", "done"),
            ("priority", "urgent"),
            ("estimated_hours", 41),
            ("estimated_hours", -1),
            ("actual_hours", -0.5),
            ("category_id", ""),
            ("assigned_to", None),
            ("due_date", None),
        ],
    )
    def test_invalid_fields_rejected(self, field, value):
        with pytest.raises(ValidationError) as exc_info:
            make_task(**{field: value})
        assert exc_info.value.field == field

    def test_estimated_hours_bounds_inclusive(self):
        assert make_task(estimated_hours=0).estimated_hours == 0
        assert make_task(estimated_hours=40).estimated_hours == 40

    def test_naive_due_date_taken_as_utc(self):
        task = make_task(due_date=datetime(2026, 4, 1, 9, 0))

        assert task.due_date == DUE
        assert task.due_date.tzinfo is not None

    def test_due_date_normalized_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        task = make_task(due_date=datetime(2026, 4, 1, 11, 0, tzinfo=plus_two))

        assert task.due_date == DUE
        assert task.due_date.utcoffset() == timedelta(0)

    def test_to_dict_omits_unset_derived_fields(self):
        result = make_task().to_dict()

        assert "is_overdue" not in result
        assert "progress_percentage" not in result
        assert result["due_date"] == DUE.isoformat()

    def test_to_dict_includes_derived_fields(self):
        task = make_task()
        task.is_overdue = True
        task.progress_percentage = 0

        result = task.to_dict()

        assert result["is_overdue"] is True
        assert result["progress_percentage"] == 0

    def test_from_dict_with_json_strings(self):
        """Rows from SQLite carry JSON text and ISO timestamps."""
        row = {
            "id": "task-1",
            "title": "From row",
            "category_id": "cat-1",
            "assigned_to": "bob",
            "created_by": "alice",
            "due_date": "2026-04-01T09:00:00.000000+00:00",
            "priority": "low",
            "status": "completed",
            "estimated_hours": 3,
            "actual_hours": 2.5,
            "completed_at": "2026-03-30T10:00:00.000000+00:00",
            "tags": json.dumps(["a", "b"]),
            "attachments": json.dumps(
                [{"filename": "spec.pdf", "url": "https://files/spec.pdf", "upload_date": None}]
            ),
            "is_archived": 1,
            "created_at": "2026-03-01T00:00:00.000000+00:00",
            "updated_at": "2026-03-30T10:00:00.000000+00:00",
        }

        task = Task.from_dict(row)

        assert task.id == "task-1"
        assert task.due_date == DUE
        assert task.completed_at == datetime(2026, 3, 30, 10, 0, tzinfo=timezone.utc)
        assert task.tags == ["a", "b"]
        assert task.attachments[0].filename == "spec.pdf"
        assert task.estimated_hours == 3.0
        assert task.is_archived is True

    def test_from_dict_with_decoded_values(self):
        """Rows from PostgreSQL carry lists and datetimes."""
        row = {
            "id": "task-2",
            "title": "From pg",
            "category_id": "cat-1",
            "assigned_to": "bob",
            "due_date": DUE,
            "tags": ["x"],
            "attachments": [],
            "is_archived": False,
        }

        task = Task.from_dict(row)

        assert task.tags == ["x"]
        assert task.due_date == DUE

    def test_attachment_dicts_are_converted(self):
        task = make_task(attachments=[{"filename": "a.png", "url": "https://x/a.png"}])

        assert isinstance(task.attachments[0], Attachment)

    def test_attachment_requires_filename_and_url(self):
        with pytest.raises(ValidationError):
            Attachment(filename="", url="https://x")
        with pytest.raises(ValidationError):
            Attachment(filename="a.png", url=" ")


class TestCategoryModel:
    """Tests for the Category dataclass."""

    def test_category_defaults(self):
        category = Category(name="Work", created_by="alice")

        assert category.color == "#3498db"
        assert category.icon == "folder"
        assert category.is_active is True
        assert category.description is None
        assert category.task_count is None

    def test_name_is_trimmed(self):
        category = Category(name="  Home  ", created_by="alice")

        assert category.name == "Home"

    def test_name_length_limit(self):
        assert Category(name="n" * 50, created_by="alice").name == "n" * 50

        with pytest.raises(ValidationError) as exc_info:
            Category(name="n" * 51, created_by="alice")
        assert exc_info.value.field == "name"

    def test_description_length_limit(self):
        Category(name="Work", created_by="alice", description="d" * 200)

        with pytest.raises(ValidationError):
            Category(name="Work", created_by="alice", description="d" * 201)

    def test_empty_description_is_kept(self):
        category = Category(name="Work", created_by="alice", description="   ")

        assert category.description == ""

    @pytest.mark.parametrize("color", ["#FF5733", "#f57", "#123456", "#abc"])
    def test_valid_colors(self, color):
        assert Category(name="Work", created_by="alice", color=color).color == color

    @pytest.mark.parametrize("color", ["red", "#12345", "#GGGGGG", "123456", "#1234567"])
    def test_invalid_colors(self, color):
        with pytest.raises(ValidationError) as exc_info:
            Category(name="Work", created_by="alice", color=color)
        assert exc_info.value.field == "color"

    def test_owner_required(self):
        with pytest.raises(ValidationError):
            Category(name="Work", created_by="")

    def test_from_dict_reads_task_count(self):
        category = Category.from_dict(
            {"id": "c1", "name": "Work", "created_by": "alice", "is_active": 0, "task_count": 4}
        )

        assert category.is_active is False
        assert category.task_count == 4
        assert category.to_dict()["task_count"] == 4
