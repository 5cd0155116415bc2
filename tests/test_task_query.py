"""Tests for list/search parameter handling and query translation."""

from __future__ import annotations

import datetime

import pytest

from taskflow.errors import ValidationError
from taskflow.tasks.models import Priority, Task
from taskflow.tasks.query import (
    TEXT_SCORE,
    TaskQuery,
    build_pagination,
    build_search_query,
    build_task_query,
    matches,
    sort_tasks,
    to_mongo_filter,
    to_mongo_projection,
    to_mongo_sort,
)

NOW = datetime.datetime(2026, 3, 10, 12, 0, tzinfo=datetime.timezone.utc)


def _task(text: str, **overrides) -> Task:
    fields = {
        "id": "0" * 24,
        "text": text,
        "created_at": NOW,
        "last_modified": NOW,
    }
    fields.update(overrides)
    return Task(**fields)


class TestBuildTaskQuery:
    def test_defaults(self):
        query = build_task_query()
        assert query.page == 1
        assert query.limit == 10
        assert query.sort_by == "createdAt"
        assert query.descending
        assert query.skip == 0

    def test_skip_follows_page_and_limit(self):
        assert build_task_query(page=3, limit=20).skip == 40

    def test_configured_default_limit(self):
        assert build_task_query(default_limit=25).limit == 25

    def test_priority_and_sort_order_are_normalized(self):
        query = build_task_query(priority=" High ", sort_order="ASC")
        assert query.priority is Priority.HIGH
        assert query.sort_order == "asc"

    def test_blank_category_is_dropped(self):
        assert build_task_query(category="   ").category is None

    def test_all_errors_are_reported_together(self):
        with pytest.raises(ValidationError) as excinfo:
            build_task_query(
                page=0,
                limit=500,
                priority="urgent",
                search="a",
                sort_by="score",
                sort_order="sideways",
            )
        assert len(excinfo.value.details) == 6
        assert "Page must be at least 1" in excinfo.value.details
        assert "Limit must be between 1 and 100" in excinfo.value.details
        assert "Sort order must be either asc or desc" in excinfo.value.details

    def test_short_search_is_rejected(self):
        with pytest.raises(ValidationError) as excinfo:
            build_task_query(search=" a ")
        assert excinfo.value.details == ["Search query must be at least 2 characters long"]


class TestBuildSearchQuery:
    def test_missing_query_is_rejected(self):
        with pytest.raises(ValidationError) as excinfo:
            build_search_query(None)
        assert excinfo.value.error == "Search query too short"

    def test_single_character_is_rejected(self):
        with pytest.raises(ValidationError):
            build_search_query("x")

    def test_search_ranks_by_relevance(self):
        query = build_search_query("  report ", page=2, limit=5)
        assert query.search == "report"
        assert query.rank_by_relevance
        assert query.skip == 5


class TestMongoTranslation:
    def test_filter_combines_predicates(self):
        query = build_task_query(
            completed=False, priority="high", category="work.", search="deploy"
        )
        assert to_mongo_filter(query, NOW) == {
            "completed": False,
            "priority": "high",
            "category": {"$regex": r"work\.", "$options": "i"},
            "$text": {"$search": "deploy"},
        }

    def test_overdue_overrides_completed(self):
        query = build_task_query(completed=True, include_overdue=True)
        assert to_mongo_filter(query, NOW) == {
            "completed": False,
            "dueDate": {"$lt": NOW},
        }

    def test_sort_without_search(self):
        query = build_task_query(sort_by="dueDate", sort_order="asc")
        assert to_mongo_sort(query) == [("dueDate", 1)]
        assert to_mongo_projection(query) is None

    def test_list_search_keeps_requested_sort_then_score(self):
        query = build_task_query(search="deploy")
        assert to_mongo_sort(query) == [("createdAt", -1), ("score", TEXT_SCORE)]
        assert to_mongo_projection(query) == {"score": TEXT_SCORE}

    def test_relevance_search_sorts_by_score_only(self):
        query = build_search_query("deploy")
        assert to_mongo_sort(query) == [("score", TEXT_SCORE)]


class TestInMemoryMatching:
    def test_search_covers_text_category_and_tags(self):
        query = TaskQuery(search="review")
        assert matches(_task("Review the plan"), query, NOW)
        assert matches(_task("Something", category="code-review"), query, NOW)
        assert matches(_task("Something", tags=["review"]), query, NOW)
        assert not matches(_task("Something else"), query, NOW)

    def test_category_is_case_insensitive_partial_match(self):
        query = TaskQuery(category="WORK")
        assert matches(_task("Task one", category="homework"), query, NOW)
        assert not matches(_task("Task two", category="personal"), query, NOW)

    def test_include_overdue_only_keeps_overdue(self):
        query = TaskQuery(include_overdue=True)
        past = NOW - datetime.timedelta(days=1)
        assert matches(_task("Late task", due_date=past), query, NOW)
        assert not matches(_task("Done task", due_date=past, completed=True), query, NOW)
        assert not matches(_task("No due date"), query, NOW)

    def test_sort_places_missing_values_lowest(self):
        later = NOW + datetime.timedelta(days=2)
        sooner = NOW + datetime.timedelta(days=1)
        tasks = [
            _task("No due"),
            _task("Later", due_date=later),
            _task("Sooner", due_date=sooner),
        ]
        ascending = sort_tasks(tasks, TaskQuery(sort_by="dueDate", sort_order="asc"))
        assert [task.text for task in ascending] == ["No due", "Sooner", "Later"]
        descending = sort_tasks(tasks, TaskQuery(sort_by="dueDate", sort_order="desc"))
        assert [task.text for task in descending] == ["Later", "Sooner", "No due"]

    def test_relevance_queries_keep_store_order(self):
        tasks = [_task("b"), _task("a")]
        query = TaskQuery(search="xx", rank_by_relevance=True, sort_by="text", sort_order="asc")
        assert [task.text for task in sort_tasks(tasks, query)] == ["b", "a"]


class TestPagination:
    def test_middle_page(self):
        assert build_pagination(2, 10, 25) == {
            "currentPage": 2,
            "totalPages": 3,
            "totalItems": 25,
            "itemsPerPage": 10,
            "hasNextPage": True,
            "hasPrevPage": True,
        }

    def test_empty_result(self):
        pagination = build_pagination(1, 10, 0)
        assert pagination["totalPages"] == 0
        assert not pagination["hasNextPage"]
        assert not pagination["hasPrevPage"]
