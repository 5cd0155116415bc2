"""Service layer exposing task intents on top of the backend selector."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from ..errors import NotFoundError
from ..storage.base import TaskStore
from ..storage.selector import BackendSelector
from ..tasks.models import Task
from ..tasks.query import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    build_pagination,
    build_search_query,
    build_task_query,
)


@dataclass(slots=True)
class ServiceResult:
    """Outcome of a task intent plus the name of the backend that served it."""

    data: Any
    storage: str
    pagination: Optional[dict[str, Any]] = None


class TaskService:
    """Coordinate validation, query translation and storage for each intent."""

    def __init__(
        self,
        selector: BackendSelector,
        *,
        default_limit: int = DEFAULT_PAGE_SIZE,
        max_limit: int = MAX_PAGE_SIZE,
    ) -> None:
        self._selector = selector
        self._default_limit = default_limit
        self._max_limit = max_limit

    @property
    def selector(self) -> BackendSelector:
        return self._selector

    async def list_tasks(
        self,
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
    ) -> ServiceResult:
        query = build_task_query(
            page=page,
            limit=limit,
            completed=completed,
            priority=priority,
            category=category,
            search=search,
            sort_by=sort_by,
            sort_order=sort_order,
            include_overdue=include_overdue,
            default_limit=self._default_limit,
            max_limit=self._max_limit,
        )
        result, storage = await self._selector.run_read(lambda store: store.find(query))
        return ServiceResult(
            data=result.items,
            storage=storage,
            pagination=build_pagination(query.page, query.limit, result.total),
        )

    async def search_tasks(
        self, q: Optional[str], *, page: int = 1, limit: Optional[int] = None
    ) -> ServiceResult:
        query = build_search_query(
            q,
            page=page,
            limit=limit,
            default_limit=self._default_limit,
            max_limit=self._max_limit,
        )
        result, storage = await self._selector.run_read(lambda store: store.find(query))
        return ServiceResult(
            data=result.items,
            storage=storage,
            pagination=build_pagination(query.page, query.limit, result.total),
        )

    async def get_task(self, task_id: str) -> ServiceResult:
        task, storage = await self._selector.run_read(
            lambda store: store.find_by_id(task_id)
        )
        if task is None:
            raise NotFoundError(task_id)
        return ServiceResult(data=task, storage=storage)

    async def create_task(self, payload: Mapping[str, Any]) -> ServiceResult:
        task, storage = await self._selector.run_write(lambda store: store.create(payload))
        return ServiceResult(data=task, storage=storage)

    async def update_task(
        self, task_id: str, payload: Mapping[str, Any], *, replace: bool = False
    ) -> ServiceResult:
        task, storage = await self._selector.run_write(
            lambda store: store.update(task_id, payload, replace=replace)
        )
        if task is None:
            raise NotFoundError(task_id)
        return ServiceResult(data=task, storage=storage)

    async def toggle_task(self, task_id: str) -> ServiceResult:
        async def _toggle(store: TaskStore) -> Optional[Task]:
            existing = await store.find_by_id(task_id)
            if existing is None:
                return None
            return await store.update(task_id, {"completed": not existing.completed})

        task, storage = await self._selector.run_write(_toggle)
        if task is None:
            raise NotFoundError(task_id)
        return ServiceResult(data=task, storage=storage)

    async def delete_task(self, task_id: str) -> ServiceResult:
        task, storage = await self._selector.run_write(lambda store: store.delete(task_id))
        if task is None:
            raise NotFoundError(task_id)
        return ServiceResult(data=task, storage=storage)

    async def get_statistics(self) -> ServiceResult:
        stats, storage = await self._selector.run_read(
            lambda store: store.aggregate_statistics()
        )
        return ServiceResult(data=stats, storage=storage)

    async def list_overdue(self) -> ServiceResult:
        tasks, storage = await self._selector.run_read(lambda store: store.find_overdue())
        return ServiceResult(data=tasks, storage=storage)

    async def bulk_update(
        self, task_ids: Sequence[str], update_data: Mapping[str, Any]
    ) -> ServiceResult:
        result, storage = await self._selector.run_write(
            lambda store: store.bulk_update(task_ids, update_data)
        )
        return ServiceResult(data=result, storage=storage)


__all__ = ["ServiceResult", "TaskService"]
