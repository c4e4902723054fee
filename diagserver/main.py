from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from fastapi import Depends, FastAPI
from fastapi.responses import PlainTextResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from diagserver.api.deps import get_app_settings
from diagserver.api.diag import router as diag_router
from diagserver.config import Settings, get_settings
from diagserver.models.schemas import RootResponse
from diagserver.observability.crash import install_loop_exception_handler
from diagserver.observability.logging import configure_logging, resolve_level
from diagserver.observability.middleware import RequestContextMiddleware
from diagserver.telemetry import AzureMonitorTelemetryClient, TelemetryClient, init_telemetry


logger = structlog.get_logger("server")


def utc_timestamp() -> str:
    """Current UTC time as ``2024-01-31T12:00:00.000Z``."""

    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    install_loop_exception_handler()
    logger.info("server_started", env=settings.env_label)
    yield
    # Drain buffered telemetry; flush() on its own never waits for delivery.
    shutdown = getattr(app.state.telemetry, "shutdown", None)
    if shutdown is not None:
        shutdown()


def create_app(settings: Settings | None = None, telemetry: TelemetryClient | None = None) -> FastAPI:
    """Build the diagnostic server.

    ``telemetry`` overrides the client that would otherwise be built from the
    monitoring connection string in ``settings``.
    """

    settings = settings or get_settings()
    configure_logging(resolve_level(settings.log_level))
    if telemetry is None:
        telemetry = init_telemetry(settings)

    app = FastAPI(title="Diagnostic Server", version="0.1.0", lifespan=_lifespan)
    app.state.settings = settings
    app.state.telemetry = telemetry

    if isinstance(telemetry, AzureMonitorTelemetryClient) and settings.auto_collect_requests:
        FastAPIInstrumentor.instrument_app(app)

    app.add_middleware(RequestContextMiddleware)
    app.include_router(diag_router)

    @app.get("/", response_model=RootResponse)
    async def index(app_settings: Settings = Depends(get_app_settings)) -> RootResponse:
        return RootResponse(
            env=app_settings.env_label,
            deployed_at=utc_timestamp(),
            message=app_settings.message,
            storage_conn_masked=app_settings.storage_conn_masked,
        )

    @app.get("/health", response_class=PlainTextResponse)
    async def health() -> str:
        return "OK"

    return app
