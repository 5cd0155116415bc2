"""Translate API-level list/search parameters into backend-native queries."""

from __future__ import annotations

import datetime
import math
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from ..errors import ValidationError
from .models import Priority, Task

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
SEARCH_MIN_LENGTH = 2

# API sort key -> Task attribute. Document field names match the API keys.
SORTABLE_FIELDS: dict[str, str] = {
    "createdAt": "created_at",
    "lastModified": "last_modified",
    "dueDate": "due_date",
    "priority": "priority",
    "text": "text",
    "category": "category",
    "completed": "completed",
}

TEXT_SCORE = {"$meta": "textScore"}


@dataclass(slots=True)
class TaskQuery:
    """Backend-neutral description of a filtered, sorted page of tasks."""

    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE
    completed: Optional[bool] = None
    priority: Optional[Priority] = None
    category: Optional[str] = None
    search: Optional[str] = None
    sort_by: str = "createdAt"
    sort_order: str = "desc"
    include_overdue: bool = False
    rank_by_relevance: bool = False

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def descending(self) -> bool:
        return self.sort_order == "desc"


def build_task_query(
    *,
    page: int = 1,
    limit: Optional[int] = None,
    completed: Optional[bool] = None,
    priority: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
    include_overdue: bool = False,
    default_limit: int = DEFAULT_PAGE_SIZE,
    max_limit: int = MAX_PAGE_SIZE,
) -> TaskQuery:
    """Validate list parameters and build a ``TaskQuery``.

    Every invalid parameter is reported in a single ``ValidationError``.
    """

    errors: list[str] = []

    if page < 1:
        errors.append("Page must be at least 1")
    if limit is None:
        limit = default_limit
    if limit < 1 or limit > max_limit:
        errors.append(f"Limit must be between 1 and {max_limit}")

    normalized_priority: Optional[Priority] = None
    if priority:
        try:
            normalized_priority = Priority(priority.strip().lower())
        except ValueError:
            errors.append("Priority must be either low, medium, or high")

    normalized_search: Optional[str] = None
    if search is not None:
        normalized_search = search.strip()
        if len(normalized_search) < SEARCH_MIN_LENGTH:
            errors.append(
                f"Search query must be at least {SEARCH_MIN_LENGTH} characters long"
            )

    sort_by = sort_by or "createdAt"
    if sort_by not in SORTABLE_FIELDS:
        errors.append(
            f"Cannot sort by '{sort_by}'. Sortable fields: {', '.join(SORTABLE_FIELDS)}"
        )

    sort_order = (sort_order or "desc").lower()
    if sort_order not in ("asc", "desc"):
        errors.append("Sort order must be either asc or desc")

    if errors:
        raise ValidationError(errors)

    return TaskQuery(
        page=page,
        limit=limit,
        completed=completed,
        priority=normalized_priority,
        category=category.strip() if category and category.strip() else None,
        search=normalized_search,
        sort_by=sort_by,
        sort_order=sort_order,
        include_overdue=include_overdue,
    )


def build_search_query(
    q: Optional[str],
    *,
    page: int = 1,
    limit: Optional[int] = None,
    default_limit: int = DEFAULT_PAGE_SIZE,
    max_limit: int = MAX_PAGE_SIZE,
) -> TaskQuery:
    """Build a relevance-ranked text search query."""

    if q is None or len(q.strip()) < SEARCH_MIN_LENGTH:
        raise ValidationError(
            [f"Search query must be at least {SEARCH_MIN_LENGTH} characters long"],
            error="Search query too short",
        )
    query = build_task_query(
        page=page,
        limit=limit,
        search=q,
        default_limit=default_limit,
        max_limit=max_limit,
    )
    query.rank_by_relevance = True
    return query


def overdue_filter(now: datetime.datetime) -> dict[str, Any]:
    return {"dueDate": {"$lt": now}, "completed": False}


def to_mongo_filter(query: TaskQuery, now: datetime.datetime) -> dict[str, Any]:
    mongo_filter: dict[str, Any] = {}

    if query.completed is not None:
        mongo_filter["completed"] = query.completed
    if query.priority is not None:
        mongo_filter["priority"] = query.priority.value
    if query.category:
        mongo_filter["category"] = {
            "$regex": re.escape(query.category),
            "$options": "i",
        }
    if query.search:
        mongo_filter["$text"] = {"$search": query.search}
    if query.include_overdue:
        mongo_filter.update(overdue_filter(now))

    return mongo_filter


def to_mongo_sort(query: TaskQuery) -> list[tuple[str, Any]]:
    if query.rank_by_relevance and query.search:
        return [("score", TEXT_SCORE)]
    sort: list[tuple[str, Any]] = [(query.sort_by, -1 if query.descending else 1)]
    if query.search:
        sort.append(("score", TEXT_SCORE))
    return sort


def to_mongo_projection(query: TaskQuery) -> Optional[dict[str, Any]]:
    if query.search:
        return {"score": TEXT_SCORE}
    return None


def _search_haystack(task: Task) -> Iterable[str]:
    yield task.text
    if task.category:
        yield task.category
    yield from task.tags


def matches(task: Task, query: TaskQuery, now: datetime.datetime) -> bool:
    """Apply the query predicates to a single in-memory task."""

    if query.include_overdue:
        if not task.is_overdue(now):
            return False
    elif query.completed is not None and task.completed != query.completed:
        return False

    if query.priority is not None and task.priority != query.priority:
        return False
    if query.category and query.category.lower() not in task.category.lower():
        return False
    if query.search:
        needle = query.search.lower()
        if not any(needle in value.lower() for value in _search_haystack(task)):
            return False
    return True


def _sort_key(attribute: str):
    def key(task: Task) -> tuple[int, Any]:
        value = getattr(task, attribute)
        if value is None:
            return (0, 0)
        if isinstance(value, Priority):
            value = value.value
        return (1, value)

    return key


def sort_tasks(tasks: list[Task], query: TaskQuery) -> list[Task]:
    """Order tasks like the document backend would (nulls sort lowest)."""

    if query.rank_by_relevance:
        return list(tasks)
    return sorted(
        tasks,
        key=_sort_key(SORTABLE_FIELDS[query.sort_by]),
        reverse=query.descending,
    )


def build_pagination(page: int, limit: int, total: int) -> dict[str, Any]:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "currentPage": page,
        "totalPages": total_pages,
        "totalItems": total,
        "itemsPerPage": limit,
        "hasNextPage": page < total_pages,
        "hasPrevPage": page > 1,
    }


__all__ = [
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "SEARCH_MIN_LENGTH",
    "SORTABLE_FIELDS",
    "TaskQuery",
    "build_pagination",
    "build_search_query",
    "build_task_query",
    "matches",
    "overdue_filter",
    "sort_tasks",
    "to_mongo_filter",
    "to_mongo_projection",
    "to_mongo_sort",
]
