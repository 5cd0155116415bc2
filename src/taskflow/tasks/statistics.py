"""Task statistics computed as a plain reduction or as aggregation pipelines."""

from __future__ import annotations

import datetime
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable

from .models import Task

RECENT_WINDOW = datetime.timedelta(days=7)
TOP_CATEGORIES = 10


@dataclass(slots=True)
class TaskStatistics:
    total: int = 0
    completed: int = 0
    active: int = 0
    overdue: int = 0
    completion_rate: float = 0.0
    priority_distribution: list[dict[str, Any]] = field(default_factory=list)
    category_distribution: list[dict[str, Any]] = field(default_factory=list)
    recent_tasks_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "completed": self.completed,
            "active": self.active,
            "overdue": self.overdue,
            "completionRate": self.completion_rate,
            "priorityDistribution": self.priority_distribution,
            "categoryDistribution": self.category_distribution,
            "recentTasksCount": self.recent_tasks_count,
        }


def completion_rate(completed: int, total: int) -> float:
    """Percentage of completed tasks, rounded to two decimals (0 when empty)."""

    if total == 0:
        return 0.0
    return round(completed / total * 100, 2)


def _priority_buckets(counter: Counter[str]) -> list[dict[str, Any]]:
    return [{"_id": name, "count": counter[name]} for name in sorted(counter)]


def _category_buckets(counter: Counter[str]) -> list[dict[str, Any]]:
    ranked = sorted(counter.items(), key=lambda item: (-item[1], item[0]))
    return [{"_id": name, "count": count} for name, count in ranked[:TOP_CATEGORIES]]


def compute_statistics(tasks: Iterable[Task], now: datetime.datetime) -> TaskStatistics:
    """Reduce a task sequence into ``TaskStatistics`` in a single pass."""

    total = completed = overdue = recent = 0
    priorities: Counter[str] = Counter()
    categories: Counter[str] = Counter()
    recent_cutoff = now - RECENT_WINDOW

    for task in tasks:
        total += 1
        if task.completed:
            completed += 1
        if task.is_overdue(now):
            overdue += 1
        if task.created_at >= recent_cutoff:
            recent += 1
        priorities[task.priority.value] += 1
        categories[task.category] += 1

    return TaskStatistics(
        total=total,
        completed=completed,
        active=total - completed,
        overdue=overdue,
        completion_rate=completion_rate(completed, total),
        priority_distribution=_priority_buckets(priorities),
        category_distribution=_category_buckets(categories),
        recent_tasks_count=recent,
    )


def summary_pipeline(now: datetime.datetime) -> list[dict[str, Any]]:
    """Aggregation pipeline producing total/completed/active/overdue counts."""

    return [
        {
            "$group": {
                "_id": None,
                "total": {"$sum": 1},
                "completed": {"$sum": {"$cond": ["$completed", 1, 0]}},
                "active": {"$sum": {"$cond": ["$completed", 0, 1]}},
                "overdue": {
                    "$sum": {
                        "$cond": [
                            {
                                "$and": [
                                    {"$eq": [{"$type": "$dueDate"}, "date"]},
                                    {"$lt": ["$dueDate", now]},
                                    {"$eq": ["$completed", False]},
                                ]
                            },
                            1,
                            0,
                        ]
                    }
                },
            }
        },
        {"$project": {"_id": 0, "total": 1, "completed": 1, "active": 1, "overdue": 1}},
    ]


def priority_distribution_pipeline() -> list[dict[str, Any]]:
    return [
        {"$group": {"_id": "$priority", "count": {"$sum": 1}}},
        {"$sort": {"_id": 1}},
    ]


def category_distribution_pipeline() -> list[dict[str, Any]]:
    return [
        {"$group": {"_id": "$category", "count": {"$sum": 1}}},
        {"$sort": {"count": -1, "_id": 1}},
        {"$limit": TOP_CATEGORIES},
    ]


def recent_filter(now: datetime.datetime) -> dict[str, Any]:
    return {"createdAt": {"$gte": now - RECENT_WINDOW}}


__all__ = [
    "RECENT_WINDOW",
    "TaskStatistics",
    "category_distribution_pipeline",
    "completion_rate",
    "compute_statistics",
    "priority_distribution_pipeline",
    "recent_filter",
    "summary_pipeline",
]
