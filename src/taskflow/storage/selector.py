"""Per-request choice between the MongoDB store and the in-memory fallback."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional, Protocol, TypeVar

from ..errors import StorageConnectionError
from .base import TaskStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConnectionProbe(Protocol):
    @property
    def is_connected(self) -> bool: ...


class BackendSelector:
    """Resolve the active task store on every call.

    The database store is used whenever the connection probe reports a live
    connection; otherwise requests go to the in-memory store. Reads that fail
    with a connection error are retried against the in-memory store, writes
    are not.
    """

    def __init__(
        self,
        memory: TaskStore,
        database: Optional[TaskStore] = None,
        connection: Optional[ConnectionProbe] = None,
    ) -> None:
        self._memory = memory
        self._database = database
        self._connection = connection

    def attach_database(self, database: TaskStore, connection: ConnectionProbe) -> None:
        self._database = database
        self._connection = connection

    @property
    def database_available(self) -> bool:
        if self._database is None or self._connection is None:
            return False
        return self._connection.is_connected

    def resolve(self) -> TaskStore:
        if self.database_available:
            assert self._database is not None
            return self._database
        return self._memory

    async def run_read(
        self, operation: Callable[[TaskStore], Awaitable[T]]
    ) -> tuple[T, str]:
        store = self.resolve()
        try:
            return await operation(store), store.name
        except StorageConnectionError as exc:
            if store is self._memory:
                raise
            logger.warning(
                "Database read failed (%s); serving from in-memory store", exc.details
            )
            return await operation(self._memory), self._memory.name

    async def run_write(
        self, operation: Callable[[TaskStore], Awaitable[T]]
    ) -> tuple[T, str]:
        store = self.resolve()
        return await operation(store), store.name


__all__ = ["BackendSelector", "ConnectionProbe"]
