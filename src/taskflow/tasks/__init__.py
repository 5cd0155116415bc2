"""Task domain package: entity, validation, query translation and statistics."""

from .models import Difficulty, Priority, Task, TaskMetadata
from .query import TaskQuery, build_pagination, build_search_query, build_task_query
from .statistics import TaskStatistics, compute_statistics
from .validation import ValidationResult, validate_task_payload

__all__ = [
    "Difficulty",
    "Priority",
    "Task",
    "TaskMetadata",
    "TaskQuery",
    "TaskStatistics",
    "ValidationResult",
    "build_pagination",
    "build_search_query",
    "build_task_query",
    "compute_statistics",
    "validate_task_payload",
]
