"""REST API endpoints for task management."""

from __future__ import annotations

from typing import Any, Iterable, Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from ..schemas.tasks import BulkUpdatePayload, TaskPayload
from ..services.task_service import ServiceResult, TaskService
from ..tasks.models import Task, utcnow

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


def get_task_service(request: Request) -> TaskService:
    service = getattr(request.app.state, "task_service", None)
    if service is None:  # pragma: no cover
        raise RuntimeError("Task service is not configured")
    return service


def _serialize_tasks(tasks: Iterable[Task]) -> list[dict[str, Any]]:
    now = utcnow()
    return [task.to_dict(now) for task in tasks]


def _render(result: ServiceResult, message: str, data: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "success": True,
        "message": message,
        "data": data,
        "storage": result.storage,
    }
    if result.pagination is not None:
        payload["pagination"] = result.pagination
    return payload


@router.get("")
async def list_tasks(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    completed: Optional[bool] = Query(None),
    priority: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    include_overdue: bool = Query(False, alias="includeOverdue"),
    service: TaskService = Depends(get_task_service),
) -> dict[str, Any]:
    """List tasks with filtering, sorting and pagination."""
    result = await service.list_tasks(
        page=page,
        limit=limit,
        completed=completed,
        priority=priority,
        category=category,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        include_overdue=include_overdue,
    )
    return _render(result, f"Retrieved {len(result.data)} tasks", _serialize_tasks(result.data))


@router.get("/search")
async def search_tasks(
    q: Optional[str] = Query(None),
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    service: TaskService = Depends(get_task_service),
) -> dict[str, Any]:
    """Full-text search across task text, category and tags."""
    result = await service.search_tasks(q, page=page, limit=limit)
    return _render(
        result,
        f"Found {len(result.data)} tasks matching '{q.strip() if q else ''}'",
        _serialize_tasks(result.data),
    )


@router.get("/stats")
async def get_statistics(
    service: TaskService = Depends(get_task_service),
) -> dict[str, Any]:
    result = await service.get_statistics()
    return _render(result, "Statistics retrieved successfully", result.data.to_dict())


@router.get("/overdue")
async def list_overdue_tasks(
    service: TaskService = Depends(get_task_service),
) -> dict[str, Any]:
    result = await service.list_overdue()
    return _render(
        result, f"Found {len(result.data)} overdue tasks", _serialize_tasks(result.data)
    )


@router.patch("/bulk")
async def bulk_update_tasks(
    body: BulkUpdatePayload,
    service: TaskService = Depends(get_task_service),
) -> dict[str, Any]:
    """Apply the same update to several tasks; partial success is not rolled back."""
    result = await service.bulk_update(body.task_ids, body.update_data.to_fields())
    return _render(
        result,
        f"Successfully updated {result.data.modified_count} tasks",
        result.data.to_dict(),
    )


@router.get("/{task_id}")
async def get_task(
    task_id: str,
    service: TaskService = Depends(get_task_service),
) -> dict[str, Any]:
    result = await service.get_task(task_id)
    return _render(result, "Task retrieved successfully", result.data.to_dict(utcnow()))


@router.post("", status_code=201)
async def create_task(
    body: TaskPayload,
    service: TaskService = Depends(get_task_service),
) -> dict[str, Any]:
    result = await service.create_task(body.to_fields())
    return _render(result, "Task created successfully", result.data.to_dict(utcnow()))


@router.put("/{task_id}")
async def replace_task(
    task_id: str,
    body: TaskPayload,
    service: TaskService = Depends(get_task_service),
) -> dict[str, Any]:
    """Full update: omitted fields are reset to their defaults."""
    result = await service.update_task(task_id, body.to_fields(), replace=True)
    return _render(result, "Task updated successfully", result.data.to_dict(utcnow()))


@router.patch("/{task_id}")
async def update_task(
    task_id: str,
    body: TaskPayload,
    service: TaskService = Depends(get_task_service),
) -> dict[str, Any]:
    """Partial update: only the fields sent are validated and changed."""
    result = await service.update_task(task_id, body.to_fields())
    return _render(result, "Task updated successfully", result.data.to_dict(utcnow()))


@router.patch("/{task_id}/toggle")
async def toggle_task(
    task_id: str,
    service: TaskService = Depends(get_task_service),
) -> dict[str, Any]:
    result = await service.toggle_task(task_id)
    state = "completed" if result.data.completed else "active"
    return _render(result, f"Task marked as {state}", result.data.to_dict(utcnow()))


@router.delete("/{task_id}", status_code=204)
async def delete_task(
    task_id: str,
    service: TaskService = Depends(get_task_service),
) -> Response:
    await service.delete_task(task_id)
    return Response(status_code=204)


__all__ = ["router", "get_task_service"]
