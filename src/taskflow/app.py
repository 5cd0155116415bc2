"""Application factory for the FastAPI service."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .errors import InternalError, TaskFlowError, ValidationError
from .routers.tasks import router as tasks_router
from .services.task_service import TaskService
from .storage.connection import MongoConnection
from .storage.memory import InMemoryTaskStore
from .storage.mongo import MongoTaskStore
from .storage.selector import BackendSelector

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Configure logging based on LOG_LEVEL environment variable."""
    # Load .env file first to ensure LOG_FILE is available
    load_dotenv()

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    log_file = os.getenv("LOG_FILE")
    handlers: list[logging.Handler] = []
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    # Always add console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        force=True,  # Override any existing configuration
    )

    logging.getLogger("taskflow").setLevel(log_level)

    # Also capture uvicorn logs
    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(log_level)
    logging.getLogger("uvicorn.error").setLevel(log_level)

    # The driver logs server monitoring at DEBUG; keep it quiet otherwise
    if log_level > logging.DEBUG:
        logging.getLogger("pymongo").setLevel(logging.WARNING)


def _error_response(exc: TaskFlowError, settings: Settings) -> JSONResponse:
    # 5xx details may hold raw driver messages
    include_details = settings.is_development or exc.status_code < 500
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_payload(include_details=include_details),
    )


def _format_request_error(error: dict[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    message = error.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


def _register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(TaskFlowError)
    async def handle_taskflow_error(request: Request, exc: TaskFlowError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "%s %s failed: %s (%s)",
                request.method,
                request.url.path,
                exc.error,
                exc.details,
            )
        return _error_response(exc, settings)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        messages = [_format_request_error(error) for error in exc.errors()]
        return _error_response(ValidationError(messages), settings)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error during %s %s", request.method, request.url.path)
        return _error_response(InternalError(details=str(exc)), settings)


def create_app() -> FastAPI:
    # Configure logging first thing
    _configure_logging()

    settings = get_settings()

    connection = MongoConnection(settings)
    memory_store = InMemoryTaskStore()
    selector = BackendSelector(memory_store)
    task_service = TaskService(
        selector,
        default_limit=settings.default_page_size,
        max_limit=settings.max_page_size,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        connected = await connection.connect()
        if connection.client is not None:
            database_store = MongoTaskStore(connection.collection())
            selector.attach_database(database_store, connection)
            if connected:
                try:
                    await database_store.ensure_indexes()
                except TaskFlowError as exc:
                    logging.warning("Index creation failed: %s", exc.details)
        if not connected and settings.seed_sample_tasks:
            await memory_store.seed()
        try:
            yield
        finally:
            try:
                await asyncio.wait_for(connection.close(), timeout=10.0)
            except asyncio.TimeoutError:
                logging.warning("MongoDB shutdown timed out after 10s")

    app = FastAPI(
        title="TaskFlow API",
        version="0.1.0",
        description="Task-list CRUD API backed by MongoDB with an in-memory fallback.",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.mongo_connection = connection
    app.state.backend_selector = selector
    app.state.task_service = task_service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app, settings)
    app.include_router(tasks_router)

    @app.get("/health", tags=["health"])
    async def healthcheck() -> dict[str, Any]:
        return {
            "status": "ok",
            "environment": settings.environment,
            "storage": task_service.selector.resolve().name,
            "database": await connection.describe(),
        }

    return app


__all__ = ["create_app"]
