from __future__ import annotations

import datetime

import pytest
from bson import ObjectId
from pymongo.errors import ConnectionFailure, DuplicateKeyError, OperationFailure

from fakes import FakeClock, FakeCollection
from taskflow.errors import (
    DuplicateError,
    InternalError,
    MalformedIdentifierError,
    StorageConnectionError,
)
from taskflow.storage.mongo import INDEXES, MongoTaskStore, task_from_document
from taskflow.tasks.models import Priority
from taskflow.tasks.query import TEXT_SCORE, build_search_query, build_task_query

START = datetime.datetime(2026, 3, 10, 12, 0, tzinfo=datetime.timezone.utc)


def _document(text: str, **overrides):
    document = {
        "_id": ObjectId(),
        "text": text,
        "completed": False,
        "priority": "medium",
        "category": "general",
        "dueDate": None,
        "tags": [],
        "createdAt": START,
        "lastModified": START,
        "metadata": None,
        "userId": None,
    }
    document.update(overrides)
    return document


@pytest.fixture
def collection() -> FakeCollection:
    return FakeCollection()


@pytest.fixture
def store(collection: FakeCollection, clock: FakeClock) -> MongoTaskStore:
    return MongoTaskStore(collection, clock=clock)


def test_task_from_document_treats_naive_datetimes_as_utc():
    naive = datetime.datetime(2026, 3, 1, 8, 30)
    task = task_from_document(_document("Legacy row", createdAt=naive, lastModified=None))

    assert task.created_at.tzinfo == datetime.timezone.utc
    assert task.last_modified == task.created_at


@pytest.mark.anyio
async def test_find_translates_query(store, collection):
    collection.documents = [_document(f"Task {index}") for index in range(3)]
    query = build_task_query(page=2, limit=2, priority="high", sort_by="dueDate", sort_order="asc")

    page = await store.find(query)

    mongo_filter, projection = collection.called("find")[0]
    assert mongo_filter == {"priority": "high"}
    assert projection is None
    cursor = collection.last_cursor
    assert cursor.sort_spec == [("dueDate", 1)]
    assert cursor.skipped == 2
    assert cursor.limited == 2
    assert page.total == 3
    assert [task.text for task in page.items] == ["Task 2"]


@pytest.mark.anyio
async def test_search_projects_relevance_score(store, collection):
    collection.documents = [_document("Deploy service", score=1.5)]

    page = await store.find(build_search_query("deploy"))

    mongo_filter, projection = collection.called("find")[0]
    assert mongo_filter == {"$text": {"$search": "deploy"}}
    assert projection == {"score": TEXT_SCORE}
    assert collection.last_cursor.sort_spec == [("score", TEXT_SCORE)]
    assert page.items[0].score == 1.5


@pytest.mark.anyio
async def test_create_inserts_document(store, collection):
    task = await store.create({"text": "Ship it", "priority": "HIGH", "userId": str(ObjectId())})

    inserted = collection.called("insert_one")[0]
    assert inserted["_id"] == ObjectId(task.id)
    assert inserted["priority"] == "high"
    assert inserted["createdAt"] == START
    assert isinstance(inserted["userId"], ObjectId)
    assert task.priority is Priority.HIGH


@pytest.mark.anyio
async def test_update_sets_changed_fields(store, collection, clock):
    existing = _document("Old text")
    collection.documents = [existing]
    clock.advance(minutes=10)

    updated = await store.update(str(existing["_id"]), {"text": "New text"})

    mongo_filter, update = collection.called("find_one_and_update")[0]
    assert mongo_filter == {"_id": existing["_id"]}
    assert "_id" not in update["$set"]
    assert "createdAt" not in update["$set"]
    assert update["$set"]["text"] == "New text"
    assert update["$set"]["lastModified"] == START + datetime.timedelta(minutes=10)
    assert updated.text == "New text"
    assert updated.created_at == START


@pytest.mark.anyio
async def test_update_missing_task_returns_none(store, collection):
    assert await store.update(str(ObjectId()), {"completed": True}) is None
    assert collection.called("find_one_and_update") == []


@pytest.mark.anyio
async def test_delete_returns_removed_task(store, collection):
    existing = _document("Remove me")
    collection.documents = [existing]

    removed = await store.delete(str(existing["_id"]))

    assert removed.text == "Remove me"
    assert collection.documents == []
    assert await store.delete(str(existing["_id"])) is None


@pytest.mark.anyio
async def test_malformed_id_never_reaches_collection(store, collection):
    with pytest.raises(MalformedIdentifierError):
        await store.find_by_id("1234")
    assert collection.calls == []


@pytest.mark.anyio
async def test_statistics_from_aggregations(store, collection):
    collection.aggregate_results = [
        [{"total": 4, "completed": 1, "active": 3, "overdue": 2}],
        [{"_id": "high", "count": 3}, {"_id": "low", "count": 1}],
        [{"_id": "work", "count": 4}],
    ]
    collection.count_result = 2

    stats = await store.aggregate_statistics()

    assert stats.total == 4
    assert stats.completed == 1
    assert stats.active == 3
    assert stats.overdue == 2
    assert stats.completion_rate == 25.0
    assert stats.priority_distribution == [
        {"_id": "high", "count": 3},
        {"_id": "low", "count": 1},
    ]
    assert stats.category_distribution == [{"_id": "work", "count": 4}]
    assert stats.recent_tasks_count == 2
    assert len(collection.called("aggregate")) == 3


@pytest.mark.anyio
async def test_statistics_on_empty_collection(store, collection):
    collection.count_result = 0

    stats = await store.aggregate_statistics()

    assert stats.total == 0
    assert stats.completion_rate == 0.0


@pytest.mark.anyio
async def test_find_overdue_sorts_by_due_date(store, collection):
    await store.find_overdue()

    mongo_filter, _ = collection.called("find")[0]
    assert mongo_filter == {"dueDate": {"$lt": START}, "completed": False}
    assert collection.last_cursor.sort_spec == [("dueDate", 1)]


@pytest.mark.anyio
async def test_bulk_update_uses_object_ids(store, collection):
    documents = [_document("One"), _document("Two")]
    collection.documents = documents
    ids = [str(document["_id"]) for document in documents]

    result = await store.bulk_update(ids, {"completed": True})

    mongo_filter, update = collection.called("update_many")[0]
    assert mongo_filter == {"_id": {"$in": [document["_id"] for document in documents]}}
    assert update["$set"] == {"completed": True, "lastModified": START}
    assert result.to_dict() == {"matchedCount": 2, "modifiedCount": 2}


@pytest.mark.anyio
async def test_connection_failure_maps_to_storage_error(store, collection):
    collection.error = ConnectionFailure("connection refused")

    with pytest.raises(StorageConnectionError) as excinfo:
        await store.find(build_task_query())
    assert excinfo.value.status_code == 503


@pytest.mark.anyio
async def test_duplicate_key_maps_to_duplicate_error(store, collection):
    collection.error = DuplicateKeyError("E11000 duplicate key")

    with pytest.raises(DuplicateError) as excinfo:
        await store.create({"text": "Twice"})
    assert excinfo.value.status_code == 409


@pytest.mark.anyio
async def test_other_driver_errors_are_internal(store, collection):
    collection.error = OperationFailure("boom")

    with pytest.raises(InternalError):
        await store.count_matching(build_task_query())


@pytest.mark.anyio
async def test_ensure_indexes_creates_every_index(store, collection):
    await store.ensure_indexes()

    created = collection.called("create_index")
    assert len(created) == len(INDEXES)
    names = [options.get("name") for _, options in created]
    assert "task_text_search" in names


@pytest.mark.anyio
async def test_indexes_are_created_once_on_first_use(store, collection):
    await store.find(build_task_query())
    await store.create({"text": "Second call"})
    await store.find_overdue()

    assert len(collection.called("create_index")) == len(INDEXES)
    assert collection.calls[0][0] == "create_index"


@pytest.mark.anyio
async def test_index_creation_is_retried_after_failure(store, collection):
    collection.error = ConnectionFailure("connection refused")
    with pytest.raises(StorageConnectionError):
        await store.find(build_task_query())

    collection.error = None
    await store.find(build_task_query())

    assert len(collection.called("create_index")) == 1 + len(INDEXES)
