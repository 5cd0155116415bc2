"""Request bodies accepted by the task endpoints.

Field-level rules (lengths, enums, due dates) are enforced by
``taskflow.tasks.validation`` so that every violation is reported at once;
these models only fix the JSON shape and primitive types. Booleans and
minute counts are strict: ``"yes"`` or ``1`` is not a boolean and ``"30"`` is
not a number.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat


class TaskMetadataPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    estimated_time: Optional[StrictFloat] = Field(default=None, alias="estimatedTime")
    actual_time: Optional[StrictFloat] = Field(default=None, alias="actualTime")
    difficulty: Optional[str] = None


class TaskPayload(BaseModel):
    """Task fields a client may set; server-owned fields are ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    text: Optional[str] = None
    completed: Optional[StrictBool] = None
    priority: Optional[str] = None
    category: Optional[str] = None
    due_date: Optional[str] = Field(
        default=None,
        alias="dueDate",
        description="ISO date or datetime; must not be before today",
    )
    tags: Optional[list[str]] = None
    metadata: Optional[TaskMetadataPayload] = None
    user_id: Optional[str] = Field(default=None, alias="userId")

    def to_fields(self) -> dict[str, Any]:
        """Return only the fields the client sent, keyed by their API names."""

        return self.model_dump(by_alias=True, exclude_unset=True)


class BulkUpdatePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    task_ids: list[str] = Field(..., alias="taskIds")
    update_data: TaskPayload = Field(..., alias="updateData")


__all__ = ["BulkUpdatePayload", "TaskMetadataPayload", "TaskPayload"]
