"""Storage backend interface shared by the MongoDB and in-memory task stores."""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence

from ..errors import MalformedIdentifierError, ValidationError
from ..tasks.models import Task, is_valid_task_id, new_task_id
from ..tasks.query import TaskQuery
from ..tasks.statistics import TaskStatistics
from ..tasks.validation import validate_task_payload


@dataclass(slots=True)
class TaskPage:
    """A page of tasks plus the number of tasks matching the query overall."""

    items: list[Task]
    total: int


@dataclass(slots=True)
class BulkUpdateResult:
    matched_count: int
    modified_count: int

    def to_dict(self) -> dict[str, int]:
        return {"matchedCount": self.matched_count, "modifiedCount": self.modified_count}


class TaskStore(Protocol):
    """Capability set every storage backend provides."""

    name: str

    async def find(self, query: TaskQuery) -> TaskPage: ...

    async def find_by_id(self, task_id: str) -> Optional[Task]: ...

    async def create(self, data: Mapping[str, Any]) -> Task: ...

    async def update(
        self, task_id: str, patch: Mapping[str, Any], *, replace: bool = False
    ) -> Optional[Task]: ...

    async def delete(self, task_id: str) -> Optional[Task]: ...

    async def count_matching(self, query: TaskQuery) -> int: ...

    async def aggregate_statistics(self) -> TaskStatistics: ...

    async def find_overdue(self) -> list[Task]: ...

    async def bulk_update(
        self, task_ids: Sequence[str], patch: Mapping[str, Any]
    ) -> BulkUpdateResult: ...


def ensure_task_id(task_id: str) -> None:
    if not is_valid_task_id(task_id):
        raise MalformedIdentifierError(task_id)


def ensure_task_ids(task_ids: Iterable[str]) -> list[str]:
    ids = list(task_ids)
    if not ids:
        raise ValidationError(["taskIds must be a non-empty list"], error="taskIds array is required")
    invalid = [task_id for task_id in ids if not is_valid_task_id(task_id)]
    if invalid:
        raise MalformedIdentifierError(invalid)
    return ids


def validate_for_create(data: Mapping[str, Any], now: datetime.datetime) -> dict[str, Any]:
    return validate_task_payload(data, today=now.date()).unwrap()


def validate_for_update(
    patch: Mapping[str, Any], now: datetime.datetime, *, replace: bool = False
) -> dict[str, Any]:
    return validate_task_payload(patch, partial=not replace, today=now.date()).unwrap()


def build_task(values: Mapping[str, Any], now: datetime.datetime) -> Task:
    """Assign identity and timestamps to validated values."""

    task = Task(id=new_task_id(), created_at=now, last_modified=now, **values)
    apply_completion_rule(task)
    return task


def merge_task(
    existing: Task, values: Mapping[str, Any], now: datetime.datetime
) -> Task:
    """Apply validated values to a copy of ``existing`` and refresh ``last_modified``."""

    merged = existing.copy()
    for attribute, value in values.items():
        setattr(merged, attribute, value)
    merged.last_modified = max(now, existing.last_modified)
    apply_completion_rule(merged)
    return merged


def apply_completion_rule(task: Task) -> None:
    """Record the estimate as the actual time when a task is completed without one."""

    metadata = task.metadata
    if (
        task.completed
        and metadata is not None
        and metadata.actual_time is None
        and metadata.estimated_time is not None
    ):
        metadata.actual_time = metadata.estimated_time


__all__ = [
    "BulkUpdateResult",
    "TaskPage",
    "TaskStore",
    "apply_completion_rule",
    "build_task",
    "ensure_task_id",
    "ensure_task_ids",
    "merge_task",
    "validate_for_create",
    "validate_for_update",
]
