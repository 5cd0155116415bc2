"""Error taxonomy shared by the storage layer, the service and the routers."""

from __future__ import annotations

from typing import Any, Sequence


class TaskFlowError(Exception):
    """Base error carrying the HTTP status and the public error payload."""

    status_code: int = 500
    error: str = "Internal server error"

    def __init__(
        self,
        error: str | None = None,
        details: str | Sequence[str] | None = None,
    ) -> None:
        self.error = error or self.error
        if details is not None and not isinstance(details, str):
            details = list(details)
        self.details = details
        super().__init__(self.error)

    def to_payload(self, *, include_details: bool = True) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": False, "error": self.error}
        if include_details and self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(TaskFlowError):
    """Raised when one or more field rules are violated."""

    status_code = 400
    error = "Validation failed"

    def __init__(self, messages: Sequence[str], error: str | None = None) -> None:
        self.messages = list(messages)
        super().__init__(error, self.messages)


class NotFoundError(TaskFlowError):
    status_code = 404
    error = "Task not found"

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(details=f"No task found with ID: {task_id}")


class MalformedIdentifierError(TaskFlowError):
    """Raised when an id does not look like a task identifier."""

    status_code = 400
    error = "Invalid task ID format"

    def __init__(self, task_ids: str | Sequence[str]) -> None:
        if isinstance(task_ids, str):
            task_ids = [task_ids]
        self.task_ids = list(task_ids)
        super().__init__(details=f"Invalid IDs: {', '.join(self.task_ids)}")


class DuplicateError(TaskFlowError):
    status_code = 409
    error = "Duplicate entry"

    def __init__(self, details: str = "A task with similar content already exists") -> None:
        super().__init__(details=details)


class StorageConnectionError(TaskFlowError):
    """Raised when the database is unreachable or an operation timed out."""

    status_code = 503
    error = "Database unavailable"


class InternalError(TaskFlowError):
    status_code = 500
    error = "Internal server error"


__all__ = [
    "TaskFlowError",
    "ValidationError",
    "NotFoundError",
    "MalformedIdentifierError",
    "DuplicateError",
    "StorageConnectionError",
    "InternalError",
]
