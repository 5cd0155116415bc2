"""Field-level validation and normalization for task payloads.

Validation never stops at the first problem: every violated rule is collected
so the caller can report them together. The result is returned as a value;
``ValidationResult.unwrap`` is the single place that turns violations into a
``ValidationError``.
"""

from __future__ import annotations

import datetime
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from ..errors import ValidationError
from .models import DEFAULT_CATEGORY, Difficulty, Priority, TaskMetadata, is_valid_task_id

TEXT_MIN_LENGTH = 3
TEXT_MAX_LENGTH = 255
CATEGORY_MAX_LENGTH = 50
TAG_MAX_LENGTH = 20
MAX_TAGS = 10
ESTIMATED_TIME_MIN = 1
ESTIMATED_TIME_MAX = 1440
ACTUAL_TIME_MIN = 1

_MARKUP_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")

# Keys the server owns; clients may echo them back but they are never applied.
READ_ONLY_FIELDS = frozenset(
    {"id", "_id", "createdAt", "lastModified", "isOverdue", "daysUntilDue", "score"}
)


@dataclass(slots=True)
class ValidationResult:
    """Normalized values keyed by ``Task`` attribute name, plus any violations."""

    values: dict[str, Any] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def unwrap(self) -> dict[str, Any]:
        if self.errors:
            raise ValidationError(self.errors)
        return self.values


def normalize_text(value: str) -> str:
    """Collapse runs of whitespace and trim the ends."""

    return _WHITESPACE_RE.sub(" ", value).strip()


def contains_markup(value: str) -> bool:
    return bool(_MARKUP_RE.search(value))


def start_of_day(today: Optional[datetime.date] = None) -> datetime.datetime:
    day = today or datetime.datetime.now(datetime.timezone.utc).date()
    return datetime.datetime.combine(day, datetime.time.min, tzinfo=datetime.timezone.utc)


def parse_due_date(value: Any) -> datetime.datetime:
    """Coerce a date, datetime or ISO string into an aware UTC datetime."""

    if isinstance(value, datetime.datetime):
        parsed = value
    elif isinstance(value, datetime.date):
        parsed = datetime.datetime.combine(value, datetime.time.min)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            parsed = datetime.datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            parsed = datetime.datetime.combine(
                datetime.date.fromisoformat(text), datetime.time.min
            )
    else:
        raise ValueError(f"Unsupported due date value: {value!r}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed.astimezone(datetime.timezone.utc)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _normalize_enum(value: Any, enum_type: type[Priority] | type[Difficulty]):
    if isinstance(value, enum_type):
        return value
    if not isinstance(value, str):
        return None
    try:
        return enum_type(value.strip().lower())
    except ValueError:
        return None


def _validate_text(value: Any, result: ValidationResult) -> None:
    if value is None:
        result.errors.append("Task text is required")
        return
    if not isinstance(value, str):
        result.errors.append("Task text must be a string")
        return
    text = normalize_text(value)
    if not text:
        result.errors.append("Task text is required")
        return
    if len(text) < TEXT_MIN_LENGTH:
        result.errors.append(
            f"Task text must be at least {TEXT_MIN_LENGTH} characters"
        )
    elif len(text) > TEXT_MAX_LENGTH:
        result.errors.append(
            f"Task text cannot exceed {TEXT_MAX_LENGTH} characters"
        )
    if contains_markup(text):
        result.errors.append("Task text cannot contain markup (HTML tags)")
    result.values["text"] = text


def _validate_tags(value: Any, result: ValidationResult) -> None:
    if value is None:
        result.values["tags"] = []
        return
    if not isinstance(value, (list, tuple)):
        result.errors.append("Tags must be a list of strings")
        return

    tags: list[str] = []
    for raw in value:
        if not isinstance(raw, str):
            result.errors.append("Tags must be a list of strings")
            return
        tag = raw.strip().lower()
        if not tag or tag in tags:
            continue
        if len(tag) > TAG_MAX_LENGTH:
            result.errors.append(
                f"Tag '{tag}' cannot exceed {TAG_MAX_LENGTH} characters"
            )
            continue
        tags.append(tag)

    if len(tags) > MAX_TAGS:
        result.errors.append(f"Cannot have more than {MAX_TAGS} tags per task")
        return
    result.values["tags"] = tags


def _validate_priority(value: Any, result: ValidationResult) -> None:
    if value is None:
        result.values["priority"] = Priority.MEDIUM
        return
    priority = _normalize_enum(value, Priority)
    if priority is None:
        result.errors.append("Priority must be either low, medium, or high")
        return
    result.values["priority"] = priority


def _validate_due_date(
    value: Any, result: ValidationResult, today: Optional[datetime.date]
) -> None:
    if value is None or value == "":
        result.values["due_date"] = None
        return
    try:
        due = parse_due_date(value)
    except ValueError:
        result.errors.append("Due date must be a valid date")
        return
    if due < start_of_day(today):
        result.errors.append("Due date cannot be in the past")
        return
    result.values["due_date"] = due


def _validate_metadata(value: Any, result: ValidationResult) -> None:
    if value is None:
        result.values["metadata"] = None
        return
    if isinstance(value, TaskMetadata):
        value = value.to_dict()
    if not isinstance(value, Mapping):
        result.errors.append("Metadata must be an object")
        return

    errors_before = len(result.errors)

    difficulty = Difficulty.MEDIUM
    if value.get("difficulty") is not None:
        normalized = _normalize_enum(value["difficulty"], Difficulty)
        if normalized is None:
            result.errors.append("Difficulty must be either easy, medium, or hard")
        else:
            difficulty = normalized

    estimated = value.get("estimatedTime")
    if estimated is not None:
        if not _is_number(estimated):
            result.errors.append("Estimated time must be a number of minutes")
        elif estimated < ESTIMATED_TIME_MIN:
            result.errors.append("Estimated time must be at least 1 minute")
        elif estimated > ESTIMATED_TIME_MAX:
            result.errors.append(
                "Estimated time cannot exceed 24 hours (1440 minutes)"
            )

    actual = value.get("actualTime")
    if actual is not None:
        if not _is_number(actual):
            result.errors.append("Actual time must be a number of minutes")
        elif actual < ACTUAL_TIME_MIN:
            result.errors.append("Actual time must be at least 1 minute")

    if len(result.errors) == errors_before:
        result.values["metadata"] = TaskMetadata(
            estimated_time=estimated,
            actual_time=actual,
            difficulty=difficulty,
        )


def _validate_category(value: Any, result: ValidationResult) -> None:
    if value is None:
        result.values["category"] = DEFAULT_CATEGORY
        return
    if not isinstance(value, str):
        result.errors.append("Category must be a string")
        return
    category = value.strip() or DEFAULT_CATEGORY
    if len(category) > CATEGORY_MAX_LENGTH:
        result.errors.append(
            f"Category cannot exceed {CATEGORY_MAX_LENGTH} characters"
        )
        return
    result.values["category"] = category


def _validate_completed(value: Any, result: ValidationResult) -> None:
    if value is None:
        result.values["completed"] = False
    elif isinstance(value, bool):
        result.values["completed"] = value
    else:
        result.errors.append("Completed must be true or false")


def _validate_user_id(value: Any, result: ValidationResult) -> None:
    if value is None:
        result.values["user_id"] = None
    elif is_valid_task_id(value):
        result.values["user_id"] = value
    else:
        result.errors.append("User ID must be a valid identifier")


def validate_task_payload(
    payload: Mapping[str, Any],
    *,
    partial: bool = False,
    today: Optional[datetime.date] = None,
) -> ValidationResult:
    """Validate and normalize a raw task payload.

    Args:
        payload: camelCase field values as received from the client.
        partial: validate only the keys present (patch semantics). When False,
            ``text`` is required and missing fields receive their defaults.
        today: calendar day used for the due-date check (defaults to UTC today).
    """

    result = ValidationResult()
    data = {key: value for key, value in payload.items() if key not in READ_ONLY_FIELDS}

    def wants(key: str) -> bool:
        return not partial or key in data

    if wants("text"):
        _validate_text(data.get("text"), result)
    if wants("tags"):
        _validate_tags(data.get("tags"), result)
    if wants("priority"):
        _validate_priority(data.get("priority"), result)
    if wants("dueDate"):
        _validate_due_date(data.get("dueDate"), result, today)
    if wants("metadata"):
        _validate_metadata(data.get("metadata"), result)
    if wants("category"):
        _validate_category(data.get("category"), result)
    if wants("completed"):
        _validate_completed(data.get("completed"), result)
    if wants("userId"):
        _validate_user_id(data.get("userId"), result)

    return result


__all__ = [
    "READ_ONLY_FIELDS",
    "ValidationResult",
    "contains_markup",
    "normalize_text",
    "parse_due_date",
    "start_of_day",
    "validate_task_payload",
]
