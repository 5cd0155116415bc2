"""MongoDB-backed task store."""

from __future__ import annotations

import asyncio
import datetime
import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Mapping, Optional, Sequence

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, TEXT, ReturnDocument
from pymongo.errors import (
    ConnectionFailure,
    DuplicateKeyError,
    ExecutionTimeout,
    PyMongoError,
)

from ..errors import DuplicateError, InternalError, StorageConnectionError
from ..tasks.models import DEFAULT_CATEGORY, Priority, Task, TaskMetadata, utcnow
from ..tasks.query import (
    TaskQuery,
    overdue_filter,
    to_mongo_filter,
    to_mongo_projection,
    to_mongo_sort,
)
from ..tasks.statistics import (
    TaskStatistics,
    category_distribution_pipeline,
    completion_rate,
    priority_distribution_pipeline,
    recent_filter,
    summary_pipeline,
)
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

# Task attribute -> document field for values produced by the validator.
_DOCUMENT_FIELDS = {
    "text": "text",
    "completed": "completed",
    "priority": "priority",
    "category": "category",
    "due_date": "dueDate",
    "tags": "tags",
    "metadata": "metadata",
    "user_id": "userId",
}

INDEXES: tuple[tuple[list[tuple[str, Any]], dict[str, Any]], ...] = (
    ([("completed", ASCENDING)], {}),
    ([("createdAt", DESCENDING)], {}),
    ([("completed", ASCENDING), ("createdAt", DESCENDING)], {}),
    ([("priority", ASCENDING), ("dueDate", ASCENDING)], {}),
    ([("category", ASCENDING), ("completed", ASCENDING)], {}),
    ([("userId", ASCENDING), ("completed", ASCENDING), ("createdAt", DESCENDING)], {}),
    ([("dueDate", ASCENDING)], {"sparse": True, "name": "dueDate_sparse"}),
    (
        [("text", TEXT), ("category", TEXT), ("tags", TEXT)],
        {"name": "task_text_search"},
    ),
)


def _as_utc(value: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


def _encode_value(attribute: str, value: Any) -> Any:
    if value is None:
        return None
    if attribute == "priority":
        return value.value
    if attribute == "metadata":
        return value.to_dict()
    if attribute == "user_id":
        return ObjectId(value)
    return value


def values_to_document(values: Mapping[str, Any]) -> dict[str, Any]:
    return {
        _DOCUMENT_FIELDS[attribute]: _encode_value(attribute, value)
        for attribute, value in values.items()
    }


def task_to_document(task: Task) -> dict[str, Any]:
    document = {
        "_id": ObjectId(task.id),
        "createdAt": task.created_at,
        "lastModified": task.last_modified,
    }
    document.update(
        values_to_document(
            {attribute: getattr(task, attribute) for attribute in _DOCUMENT_FIELDS}
        )
    )
    return document


def task_from_document(document: Mapping[str, Any]) -> Task:
    user_id = document.get("userId")
    return Task(
        id=str(document["_id"]),
        text=document["text"],
        completed=bool(document.get("completed", False)),
        priority=Priority(document.get("priority") or Priority.MEDIUM.value),
        category=document.get("category") or DEFAULT_CATEGORY,
        due_date=_as_utc(document.get("dueDate")),
        tags=list(document.get("tags") or []),
        created_at=_as_utc(document["createdAt"]),
        last_modified=_as_utc(document.get("lastModified") or document["createdAt"]),
        metadata=TaskMetadata.from_dict(document.get("metadata")),
        user_id=str(user_id) if user_id is not None else None,
        score=document.get("score"),
    )


@contextmanager
def translate_errors(operation: str) -> Iterator[None]:
    """Map driver exceptions onto the service error taxonomy."""

    try:
        yield
    except DuplicateKeyError as exc:
        raise DuplicateError() from exc
    except (ConnectionFailure, ExecutionTimeout) as exc:
        logger.error("MongoDB %s failed: %s", operation, exc)
        raise StorageConnectionError(details=f"Database {operation} failed: {exc}") from exc
    except PyMongoError as exc:
        logger.error("MongoDB %s failed: %s", operation, exc)
        raise InternalError("Database operation failed", details=str(exc)) from exc


class MongoTaskStore:
    """Persist tasks in a MongoDB collection.

    Text search uses the collection's text index and exposes the relevance
    score; pagination happens server-side through skip/limit.
    """

    name = "mongodb"

    def __init__(self, collection: Any, *, clock: Callable[[], datetime.datetime] = utcnow) -> None:
        self._collection = collection
        self._clock = clock
        self._indexes_ready = False

    async def ensure_indexes(self) -> None:
        """Create the collection indexes once; retried on the next call after a failure."""

        if self._indexes_ready:
            return
        with translate_errors("index creation"):
            for keys, options in INDEXES:
                await self._collection.create_index(keys, **options)
        self._indexes_ready = True
        logger.info("MongoDB indexes ensured (%d)", len(INDEXES))

    async def _aggregate(self, pipeline: list[dict[str, Any]]) -> list[dict[str, Any]]:
        cursor = await self._collection.aggregate(pipeline)
        return await cursor.to_list()

    async def find(self, query: TaskQuery) -> TaskPage:
        await self.ensure_indexes()
        mongo_filter = to_mongo_filter(query, self._clock())
        cursor = (
            self._collection.find(mongo_filter, to_mongo_projection(query))
            .sort(to_mongo_sort(query))
            .skip(query.skip)
            .limit(query.limit)
        )
        with translate_errors("find"):
            documents, total = await asyncio.gather(
                cursor.to_list(),
                self._collection.count_documents(mongo_filter),
            )
        return TaskPage(items=[task_from_document(doc) for doc in documents], total=total)

    async def find_by_id(self, task_id: str) -> Optional[Task]:
        ensure_task_id(task_id)
        await self.ensure_indexes()
        with translate_errors("find"):
            document = await self._collection.find_one({"_id": ObjectId(task_id)})
        return task_from_document(document) if document else None

    async def create(self, data: Mapping[str, Any]) -> Task:
        now = self._clock()
        task = build_task(validate_for_create(data, now), now)
        await self.ensure_indexes()
        with translate_errors("insert"):
            await self._collection.insert_one(task_to_document(task))
        logger.info("Task created: %s (ID: %s)", task.text, task.id)
        return task

    async def update(
        self, task_id: str, patch: Mapping[str, Any], *, replace: bool = False
    ) -> Optional[Task]:
        ensure_task_id(task_id)
        now = self._clock()
        values = validate_for_update(patch, now, replace=replace)
        existing = await self.find_by_id(task_id)
        if existing is None:
            return None

        merged = merge_task(existing, values, now)
        changes = task_to_document(merged)
        changes.pop("_id")
        changes.pop("createdAt")
        with translate_errors("update"):
            document = await self._collection.find_one_and_update(
                {"_id": ObjectId(task_id)},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
        if document is None:
            return None
        updated = task_from_document(document)
        logger.info("Task updated: %s (ID: %s)", updated.text, updated.id)
        return updated

    async def delete(self, task_id: str) -> Optional[Task]:
        ensure_task_id(task_id)
        await self.ensure_indexes()
        with translate_errors("delete"):
            document = await self._collection.find_one_and_delete({"_id": ObjectId(task_id)})
        if document is None:
            return None
        removed = task_from_document(document)
        logger.info("Task deleted: %s (ID: %s)", removed.text, removed.id)
        return removed

    async def count_matching(self, query: TaskQuery) -> int:
        await self.ensure_indexes()
        with translate_errors("count"):
            return await self._collection.count_documents(
                to_mongo_filter(query, self._clock())
            )

    async def aggregate_statistics(self) -> TaskStatistics:
        await self.ensure_indexes()
        now = self._clock()
        with translate_errors("aggregate"):
            summary, priorities, categories, recent = await asyncio.gather(
                self._aggregate(summary_pipeline(now)),
                self._aggregate(priority_distribution_pipeline()),
                self._aggregate(category_distribution_pipeline()),
                self._collection.count_documents(recent_filter(now)),
            )

        counts = summary[0] if summary else {}
        total = counts.get("total", 0)
        completed = counts.get("completed", 0)
        return TaskStatistics(
            total=total,
            completed=completed,
            active=counts.get("active", total - completed),
            overdue=counts.get("overdue", 0),
            completion_rate=completion_rate(completed, total),
            priority_distribution=priorities,
            category_distribution=categories,
            recent_tasks_count=recent,
        )

    async def find_overdue(self) -> list[Task]:
        await self.ensure_indexes()
        cursor = self._collection.find(overdue_filter(self._clock())).sort(
            [("dueDate", ASCENDING)]
        )
        with translate_errors("find"):
            documents = await cursor.to_list()
        return [task_from_document(doc) for doc in documents]

    async def bulk_update(
        self, task_ids: Sequence[str], patch: Mapping[str, Any]
    ) -> BulkUpdateResult:
        ids = ensure_task_ids(task_ids)
        now = self._clock()
        changes = values_to_document(validate_for_update(patch, now))
        await self.ensure_indexes()
        changes["lastModified"] = now
        with translate_errors("bulk update"):
            result = await self._collection.update_many(
                {"_id": {"$in": [ObjectId(task_id) for task_id in ids]}},
                {"$set": changes},
            )
        logger.info("Bulk update: %d tasks updated", result.modified_count)
        return BulkUpdateResult(
            matched_count=result.matched_count,
            modified_count=result.modified_count,
        )


__all__ = [
    "INDEXES",
    "MongoTaskStore",
    "task_from_document",
    "task_to_document",
    "translate_errors",
    "values_to_document",
]
