"""Domain models representing tasks and task-related metadata."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional

from bson import ObjectId


class Priority(str, Enum):
    """Allowed task priorities."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Difficulty(str, Enum):
    """Allowed difficulty levels for task metadata."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


DEFAULT_CATEGORY = "general"


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def new_task_id() -> str:
    """Return a fresh identifier in the same format for both backends."""

    return str(ObjectId())


def is_valid_task_id(value: Any) -> bool:
    return isinstance(value, str) and ObjectId.is_valid(value)


def isoformat(value: Optional[datetime.datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc).isoformat()


@dataclass(slots=True)
class TaskMetadata:
    """Optional effort tracking attached to a task."""

    estimated_time: Optional[float] = None
    actual_time: Optional[float] = None
    difficulty: Difficulty = Difficulty.MEDIUM

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"difficulty": self.difficulty.value}
        if self.estimated_time is not None:
            payload["estimatedTime"] = self.estimated_time
        if self.actual_time is not None:
            payload["actualTime"] = self.actual_time
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Optional["TaskMetadata"]:
        if not data:
            return None
        return cls(
            estimated_time=data.get("estimatedTime"),
            actual_time=data.get("actualTime"),
            difficulty=Difficulty(data.get("difficulty") or Difficulty.MEDIUM.value),
        )


@dataclass(slots=True)
class Task:
    """A single task record as stored by either backend."""

    id: str
    text: str
    created_at: datetime.datetime
    last_modified: datetime.datetime
    completed: bool = False
    priority: Priority = Priority.MEDIUM
    category: str = DEFAULT_CATEGORY
    due_date: Optional[datetime.datetime] = None
    tags: list[str] = field(default_factory=list)
    metadata: Optional[TaskMetadata] = None
    user_id: Optional[str] = None
    score: Optional[float] = None

    def is_overdue(self, now: Optional[datetime.datetime] = None) -> bool:
        """Return True when the task is incomplete and its due date has passed."""

        if self.due_date is None or self.completed:
            return False
        return self.due_date < (now or utcnow())

    def days_until_due(self, now: Optional[datetime.datetime] = None) -> Optional[int]:
        if self.due_date is None or self.completed:
            return None
        today = (now or utcnow()).date()
        return (self.due_date.astimezone(datetime.timezone.utc).date() - today).days

    def copy(self) -> "Task":
        return replace(
            self,
            tags=list(self.tags),
            metadata=replace(self.metadata) if self.metadata else None,
        )

    def to_dict(self, now: Optional[datetime.datetime] = None) -> dict[str, Any]:
        """Convert to the camelCase shape returned by the API."""

        payload: dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "completed": self.completed,
            "priority": self.priority.value,
            "category": self.category,
            "dueDate": isoformat(self.due_date),
            "tags": list(self.tags),
            "createdAt": isoformat(self.created_at),
            "lastModified": isoformat(self.last_modified),
            "metadata": self.metadata.to_dict() if self.metadata else None,
            "userId": self.user_id,
            "isOverdue": self.is_overdue(now),
            "daysUntilDue": self.days_until_due(now),
        }
        if self.score is not None:
            payload["score"] = self.score
        return payload


__all__ = [
    "DEFAULT_CATEGORY",
    "Difficulty",
    "Priority",
    "Task",
    "TaskMetadata",
    "is_valid_task_id",
    "isoformat",
    "new_task_id",
    "utcnow",
]
