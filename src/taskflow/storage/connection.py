"""MongoDB connection lifecycle and health reporting."""

from __future__ import annotations

import logging
from typing import Any, Optional

from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError

from ..config import Settings

logger = logging.getLogger(__name__)

# Matched against driver error text to give operators a concrete next step.
_TROUBLESHOOTING_HINTS: tuple[tuple[tuple[str, ...], str], ...] = (
    (
        ("ENOTFOUND", "ECONNREFUSED", "Name or service not known", "Connection refused"),
        "Network error: check your internet connection and the cluster status",
    ),
    (
        ("Authentication failed", "bad auth"),
        "Authentication error: check the database credentials in MONGODB_URI",
    ),
    (
        ("not whitelisted", "not allowed to access"),
        "Access error: add this host's IP address to the cluster network access list",
    ),
    (
        ("Server selection timed out", "timed out"),
        "Timeout error: the cluster may be paused or unreachable",
    ),
)


def _log_connection_hints(message: str) -> None:
    for markers, hint in _TROUBLESHOOTING_HINTS:
        if any(marker in message for marker in markers):
            logger.error(hint)
            break
    logger.error(
        "Troubleshooting: verify MONGODB_URI, the cluster status, the IP access "
        "list and the database credentials"
    )


class MongoConnection:
    """Own the MongoDB client for the lifetime of the application.

    The client is kept open even when the first ping fails: the driver keeps
    monitoring the deployment and ``is_connected`` flips back to True once a
    writable server is reachable again.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._client: Optional[AsyncMongoClient] = None

    @property
    def configured(self) -> bool:
        return self._settings.mongodb_configured

    @property
    def client(self) -> Optional[AsyncMongoClient]:
        return self._client

    @property
    def is_connected(self) -> bool:
        """Return True when the driver currently sees a writable server."""

        if self._client is None:
            return False
        return self._client.topology_description.has_writable_server()

    def _create_client(self) -> AsyncMongoClient:
        settings = self._settings
        assert settings.mongodb_uri is not None
        return AsyncMongoClient(
            settings.mongodb_uri.get_secret_value(),
            serverSelectionTimeoutMS=settings.db_server_selection_timeout_ms,
            socketTimeoutMS=settings.db_socket_timeout_ms,
            maxPoolSize=settings.db_max_pool_size,
            minPoolSize=settings.db_min_pool_size,
            maxIdleTimeMS=30000,
            heartbeatFrequencyMS=20000,
            tz_aware=True,
            appname="taskflow",
        )

    async def connect(self) -> bool:
        """Open the client and ping the deployment.

        Returns True when the ping succeeded. When no usable URI is configured
        the application runs against the in-memory store instead.
        """

        if not self.configured:
            logger.warning(
                "MongoDB URI not configured. Using development fallback mode "
                "(in-memory task storage)."
            )
            logger.info("To use MongoDB, set MONGODB_URI in .env and restart the application")
            return False

        if self._client is None:
            self._client = self._create_client()

        try:
            await self._client.admin.command("ping")
        except PyMongoError as exc:
            logger.error("Database connection error: %s", exc)
            _log_connection_hints(str(exc))
            return False

        logger.info(
            "MongoDB connected (database: %s, pool size: min %d / max %d)",
            self._settings.mongodb_database,
            self._settings.db_min_pool_size,
            self._settings.db_max_pool_size,
        )
        return True

    def collection(self) -> Any:
        if self._client is None:
            raise RuntimeError("MongoDB client has not been created")
        database = self._client[self._settings.mongodb_database]
        return database[self._settings.mongodb_collection]

    async def describe(self) -> dict[str, Any]:
        """Summarize connection state and database size for the health endpoint."""

        if self._client is None:
            return {"connectionState": "not configured"}

        if not self.is_connected:
            return {
                "connectionState": "disconnected",
                "database": self._settings.mongodb_database,
            }

        summary: dict[str, Any] = {
            "connectionState": "connected",
            "database": self._settings.mongodb_database,
        }
        try:
            stats = await self._client[self._settings.mongodb_database].command("dbStats")
        except PyMongoError as exc:
            logger.warning("Failed to get database statistics: %s", exc)
            summary["error"] = str(exc)
            return summary

        summary["dbStats"] = {
            "collections": stats.get("collections"),
            "documents": stats.get("objects"),
            "dataSize": f"{stats.get('dataSize', 0) / 1024 / 1024:.2f} MB",
            "indexSize": f"{stats.get('indexSize', 0) / 1024 / 1024:.2f} MB",
            "storageSize": f"{stats.get('storageSize', 0) / 1024 / 1024:.2f} MB",
        }
        return summary

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
            logger.info("MongoDB connection closed")


__all__ = ["MongoConnection"]
