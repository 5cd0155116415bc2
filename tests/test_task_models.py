from __future__ import annotations

import datetime

from taskflow.tasks.models import (
    Difficulty,
    Task,
    TaskMetadata,
    is_valid_task_id,
    new_task_id,
)

NOW = datetime.datetime(2026, 3, 10, 12, 0, tzinfo=datetime.timezone.utc)


def _task(**overrides) -> Task:
    fields = {
        "id": new_task_id(),
        "text": "Sample task",
        "created_at": NOW,
        "last_modified": NOW,
    }
    fields.update(overrides)
    return Task(**fields)


def test_new_ids_are_valid_and_unique() -> None:
    first, second = new_task_id(), new_task_id()
    assert is_valid_task_id(first)
    assert first != second
    assert not is_valid_task_id("not-an-id")
    assert not is_valid_task_id(None)


def test_overdue_requires_past_due_date_and_incomplete() -> None:
    past = NOW - datetime.timedelta(hours=1)
    assert _task(due_date=past).is_overdue(NOW)
    assert not _task(due_date=past, completed=True).is_overdue(NOW)
    assert not _task().is_overdue(NOW)
    assert not _task(due_date=NOW + datetime.timedelta(hours=1)).is_overdue(NOW)


def test_days_until_due_counts_calendar_days() -> None:
    assert _task(due_date=NOW + datetime.timedelta(days=3)).days_until_due(NOW) == 3
    assert _task(due_date=NOW - datetime.timedelta(days=2)).days_until_due(NOW) == -2
    assert _task().days_until_due(NOW) is None
    assert _task(due_date=NOW, completed=True).days_until_due(NOW) is None


def test_copy_does_not_share_mutable_fields() -> None:
    original = _task(tags=["a"], metadata=TaskMetadata(estimated_time=10))
    clone = original.copy()

    clone.tags.append("b")
    clone.metadata.actual_time = 5

    assert original.tags == ["a"]
    assert original.metadata.actual_time is None


def test_to_dict_uses_api_field_names() -> None:
    task = _task(
        due_date=NOW + datetime.timedelta(days=1),
        metadata=TaskMetadata(estimated_time=15, difficulty=Difficulty.HARD),
    )

    payload = task.to_dict(NOW)

    assert payload["dueDate"] == "2026-03-11T12:00:00+00:00"
    assert payload["createdAt"] == "2026-03-10T12:00:00+00:00"
    assert payload["metadata"] == {"difficulty": "hard", "estimatedTime": 15}
    assert payload["isOverdue"] is False
    assert payload["daysUntilDue"] == 1
    assert "score" not in payload
    assert _task(score=0.75).to_dict(NOW)["score"] == 0.75
