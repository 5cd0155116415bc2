"""Task storage backends and the selector that chooses between them."""

from .base import BulkUpdateResult, TaskPage, TaskStore
from .connection import MongoConnection
from .memory import InMemoryTaskStore
from .mongo import MongoTaskStore
from .selector import BackendSelector

__all__ = [
    "BackendSelector",
    "BulkUpdateResult",
    "InMemoryTaskStore",
    "MongoConnection",
    "MongoTaskStore",
    "TaskPage",
    "TaskStore",
]
