"""
Tive Telemetry Ingestion - FastAPI Application
Main entry point for the API server
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn
import structlog
from contextlib import asynccontextmanager
from typing import Optional

from telemetry_ingest.api.responses import error_response
from telemetry_ingest.api.routes import devices, health, webhook
from telemetry_ingest.core.config import Settings, settings as default_settings
from telemetry_ingest.core.exceptions import StorageError
from telemetry_ingest.core.logging_config import configure_logging
from telemetry_ingest.database.connection import Database
from telemetry_ingest.database.storage import TelemetryStorage
from telemetry_ingest.dispatch.airflow import AirflowDispatcher
from telemetry_ingest.dispatch.base import TaskDispatcher
from telemetry_ingest.dispatch.local import DeadLetter, LocalDispatcher
from telemetry_ingest.notifications.error_notifier import ErrorNotifier
from telemetry_ingest.pipeline.normalizer import EVENT_NAME, TelemetryNormalizer
from telemetry_ingest.pipeline.orchestrator import WebhookIngestor

logger = structlog.get_logger(__name__)


def mark_dead_letter_failed(storage: TelemetryStorage):
    """Dead-letter callback: the audit row of an abandoned task ends up failed"""
    def on_dead_letter(dead: DeadLetter) -> None:
        raw_id = dead.data.get("raw_id")
        if raw_id is None:
            return
        try:
            storage.update_raw_payload_status(
                raw_id, "failed",
                processing_error=f"Normalization failed after {dead.attempts} attempts: {dead.error}",
            )
        except StorageError as e:
            logger.error("Failed to mark dead-lettered payload", raw_id=raw_id, error=str(e))
    return on_dead_letter


def build_dispatcher(settings: Settings, storage: TelemetryStorage) -> TaskDispatcher:
    if settings.dispatcher_backend == "airflow":
        return AirflowDispatcher.from_settings(settings)
    if settings.dispatcher_backend == "local":
        return LocalDispatcher(
            max_attempts=settings.task_max_attempts,
            backoff_seconds=settings.task_backoff_seconds,
            workers=settings.task_workers,
            on_dead_letter=mark_dead_letter_failed(storage),
        )
    raise ValueError(f"Unknown dispatcher backend: {settings.dispatcher_backend}")


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    dispatcher: Optional[TaskDispatcher] = None,
    notifier: Optional[ErrorNotifier] = None,
) -> FastAPI:
    """
    Build the application with its collaborators.

    The database pool is created here, once per process, and reaches the
    routes through ``app.state``.
    """
    settings = settings or default_settings
    configure_logging(settings.log_level)
    database = database or Database.from_settings(settings)
    storage = TelemetryStorage(database)
    dispatcher = dispatcher or build_dispatcher(settings, storage)
    notifier = notifier or ErrorNotifier.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager"""
        logger.info("Starting Tive Telemetry Ingestion API", dispatcher=type(dispatcher).__name__)
        # Startup
        database.create_all()
        dispatcher.register(EVENT_NAME, TelemetryNormalizer(storage))
        yield
        # Shutdown
        logger.info("Shutting down Tive Telemetry Ingestion API")
        dispatcher.shutdown()
        database.dispose()

    # Create FastAPI application
    app = FastAPI(
        title="Tive Telemetry Ingestion API",
        description="Webhook ingestion and latest device state for Tive IoT trackers",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.database = database
    app.state.storage = storage
    app.state.dispatcher = dispatcher
    app.state.ingestor = WebhookIngestor(settings, storage, dispatcher, notifier)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health.router, prefix="/api/v1", tags=["health"])
    app.include_router(webhook.router, prefix="/api/v1", tags=["webhook"])
    app.include_router(devices.router, prefix="/api/v1", tags=["devices"])

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": "Tive Telemetry Ingestion API",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/api/v1/health"
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """Global exception handler"""
        logger.error("Unhandled exception", exc_info=exc, path=request.url.path)
        return JSONResponse(
            status_code=500,
            content=error_response("Internal server error", "Unexpected error processing request")
        )

    return app


if __name__ == "__main__":
    uvicorn.run(
        "telemetry_ingest.main:create_app",
        factory=True,
        host=default_settings.api_host,
        port=default_settings.api_port,
        reload=default_settings.debug,
        log_level="info"
    )
