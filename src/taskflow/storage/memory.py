"""Process-local task store used when no database connection is available."""

from __future__ import annotations

import asyncio
import datetime
import logging
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from ..tasks.models import Task, utcnow
from ..tasks.query import TaskQuery, matches, sort_tasks
from ..tasks.statistics import TaskStatistics, compute_statistics
from .base import (
    BulkUpdateResult,
    TaskPage,
    build_task,
    ensure_task_id,
    ensure_task_ids,
    merge_task,
    validate_for_create,
    validate_for_update,
)

logger = logging.getLogger(__name__)

SAMPLE_TASKS: tuple[dict[str, Any], ...] = (
    {
        "text": "Complete TaskFlow project deployment",
        "priority": "high",
        "category": "work",
        "tags": ["project", "deployment"],
    },
    {
        "text": "Review MongoDB integration",
        "priority": "medium",
        "category": "development",
        "tags": ["database", "review"],
    },
    {
        "text": "Test frontend-backend integration",
        "priority": "high",
        "category": "testing",
        "tags": ["integration", "testing"],
    },
    {
        "text": "Update documentation",
        "priority": "low",
        "category": "documentation",
        "tags": ["docs", "readme"],
    },
)


class InMemoryTaskStore:
    """Keep tasks in a newest-first list and answer queries by linear scan.

    Search is a case-insensitive substring test over text, category and tags;
    there is no relevance scoring. Paging counts every match, then slices.
    """

    name = "memory"

    def __init__(self, *, clock: Callable[[], datetime.datetime] = utcnow) -> None:
        self._tasks: list[Task] = []
        self._clock = clock
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._tasks)

    def _index_of(self, task_id: str) -> Optional[int]:
        for index, task in enumerate(self._tasks):
            if task.id == task_id:
                return index
        return None

    def _matching(self, query: TaskQuery) -> list[Task]:
        now = self._clock()
        return [task for task in self._tasks if matches(task, query, now)]

    async def find(self, query: TaskQuery) -> TaskPage:
        matched = sort_tasks(self._matching(query), query)
        page = matched[query.skip : query.skip + query.limit]
        return TaskPage(items=[task.copy() for task in page], total=len(matched))

    async def find_by_id(self, task_id: str) -> Optional[Task]:
        ensure_task_id(task_id)
        index = self._index_of(task_id)
        if index is None:
            return None
        return self._tasks[index].copy()

    async def create(self, data: Mapping[str, Any]) -> Task:
        now = self._clock()
        task = build_task(validate_for_create(data, now), now)
        async with self._lock:
            self._tasks.insert(0, task)
        logger.info("Task created: %s (ID: %s)", task.text, task.id)
        return task.copy()

    async def update(
        self, task_id: str, patch: Mapping[str, Any], *, replace: bool = False
    ) -> Optional[Task]:
        ensure_task_id(task_id)
        now = self._clock()
        values = validate_for_update(patch, now, replace=replace)
        async with self._lock:
            index = self._index_of(task_id)
            if index is None:
                return None
            updated = merge_task(self._tasks[index], values, now)
            self._tasks[index] = updated
        logger.info("Task updated: %s (ID: %s)", updated.text, updated.id)
        return updated.copy()

    async def delete(self, task_id: str) -> Optional[Task]:
        ensure_task_id(task_id)
        async with self._lock:
            index = self._index_of(task_id)
            if index is None:
                return None
            removed = self._tasks.pop(index)
        logger.info("Task deleted: %s (ID: %s)", removed.text, removed.id)
        return removed

    async def count_matching(self, query: TaskQuery) -> int:
        return len(self._matching(query))

    async def aggregate_statistics(self) -> TaskStatistics:
        return compute_statistics(self._tasks, self._clock())

    async def find_overdue(self) -> list[Task]:
        now = self._clock()
        overdue = [task for task in self._tasks if task.is_overdue(now)]
        overdue.sort(key=lambda task: task.due_date)
        return [task.copy() for task in overdue]

    async def bulk_update(
        self, task_ids: Sequence[str], patch: Mapping[str, Any]
    ) -> BulkUpdateResult:
        ids = set(ensure_task_ids(task_ids))
        now = self._clock()
        values = validate_for_update(patch, now)
        matched = 0
        async with self._lock:
            for index, task in enumerate(self._tasks):
                if task.id not in ids:
                    continue
                matched += 1
                merged = task.copy()
                for attribute, value in values.items():
                    setattr(merged, attribute, value)
                merged.last_modified = max(now, task.last_modified)
                self._tasks[index] = merged
        # lastModified is refreshed on every matched task, so each one counts as modified.
        logger.info("Bulk update: %d tasks updated", matched)
        return BulkUpdateResult(matched_count=matched, modified_count=matched)

    async def seed(self, payloads: Iterable[Mapping[str, Any]] = SAMPLE_TASKS) -> int:
        """Populate an empty store with sample tasks for local development."""

        if self._tasks:
            return 0
        created = 0
        for payload in payloads:
            await self.create(payload)
            created += 1
        logger.info("Initialized %d sample tasks for development", created)
        return created

    async def clear(self) -> None:
        async with self._lock:
            self._tasks.clear()


__all__ = ["InMemoryTaskStore", "SAMPLE_TASKS"]
