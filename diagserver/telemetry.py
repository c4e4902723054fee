from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from enum import IntEnum
from typing import Protocol

import structlog
from azure.monitor.events.extension import track_event
from azure.monitor.opentelemetry import configure_azure_monitor
from opentelemetry import _logs, metrics, trace

from diagserver.config import Settings


STARTUP_EVENT_NAME = "ManualStartupTest"
TRACE_LOGGER_NAME = "diagserver.telemetry.traces"
FLUSH_TIMEOUT_MS = 5_000

logger = structlog.get_logger("telemetry")

_flush_executor: ThreadPoolExecutor | None = None


class SeverityLevel(IntEnum):
    VERBOSE = 0
    INFORMATION = 1
    WARNING = 2
    ERROR = 3
    CRITICAL = 4


_LOGGING_LEVELS = {
    SeverityLevel.VERBOSE: logging.DEBUG,
    SeverityLevel.INFORMATION: logging.INFO,
    SeverityLevel.WARNING: logging.WARNING,
    SeverityLevel.ERROR: logging.ERROR,
    SeverityLevel.CRITICAL: logging.CRITICAL,
}


def severity_to_logging_level(severity: SeverityLevel | int) -> int:
    return _LOGGING_LEVELS[SeverityLevel(severity)]


class TelemetryClient(Protocol):
    def track_event(self, name: str, properties: dict[str, str] | None = None) -> None: ...

    def track_trace(
        self,
        message: str,
        severity: SeverityLevel = SeverityLevel.INFORMATION,
        properties: dict[str, str] | None = None,
    ) -> None: ...

    def flush(self) -> Future[None] | None: ...


def _force_flush_all(timeout_millis: int) -> None:
    for provider in (trace.get_tracer_provider(), _logs.get_logger_provider(), metrics.get_meter_provider()):
        force_flush = getattr(provider, "force_flush", None)
        if force_flush is not None:
            force_flush(timeout_millis)


def _flush_in_background(timeout_millis: int) -> None:
    try:
        _force_flush_all(timeout_millis)
    except Exception:  # noqa: BLE001
        # A failed flush must not reach threading.excepthook, which ends the process.
        logger.exception("telemetry_flush_failed")


def get_flush_executor() -> ThreadPoolExecutor:
    global _flush_executor
    if _flush_executor is None:
        _flush_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="telemetry-flush")
    return _flush_executor


class AzureMonitorTelemetryClient:
    """Application Insights client on top of the Azure Monitor OpenTelemetry distro.

    Events go through the events extension; traces are records on a dedicated
    logger that ``configure_azure_monitor`` exports. ``flush`` does not block
    the caller: the providers are flushed on a single background worker.
    """

    def __init__(self, trace_logger_name: str = TRACE_LOGGER_NAME) -> None:
        self._trace_logger = logging.getLogger(trace_logger_name)
        self._trace_logger.setLevel(logging.DEBUG)

    def track_event(self, name: str, properties: dict[str, str] | None = None) -> None:
        track_event(name, custom_dimensions=properties)

    def track_trace(
        self,
        message: str,
        severity: SeverityLevel = SeverityLevel.INFORMATION,
        properties: dict[str, str] | None = None,
    ) -> None:
        self._trace_logger.log(severity_to_logging_level(severity), message, extra=dict(properties or {}))

    def flush(self) -> Future[None]:
        return get_flush_executor().submit(_flush_in_background, FLUSH_TIMEOUT_MS)

    def shutdown(self, timeout_millis: int = FLUSH_TIMEOUT_MS) -> None:
        """Blocking flush, used while the server drains on shutdown."""

        _force_flush_all(timeout_millis)


def _instrumentation_options(settings: Settings) -> dict[str, dict[str, bool]]:
    dependencies = settings.auto_collect_dependencies
    return {
        # Inbound requests are instrumented per app in create_app().
        "fastapi": {"enabled": False},
        "django": {"enabled": False},
        "flask": {"enabled": False},
        "psycopg2": {"enabled": False},
        "azure_sdk": {"enabled": dependencies},
        "requests": {"enabled": dependencies},
        "urllib": {"enabled": dependencies},
        "urllib3": {"enabled": dependencies},
    }


def init_telemetry(settings: Settings) -> AzureMonitorTelemetryClient | None:
    """Start the Azure Monitor pipeline and send a startup ping.

    Returns ``None`` when no connection string is configured.
    """

    connection_string = settings.monitoring_connection_string
    if not connection_string:
        logger.info("telemetry_disabled")
        return None

    configure_azure_monitor(
        connection_string=connection_string,
        logger_name=TRACE_LOGGER_NAME,
        enable_live_metrics=settings.enable_live_metrics,
        sampling_ratio=settings.sampling_percentage / 100.0,
        instrumentation_options=_instrumentation_options(settings),
    )
    client = AzureMonitorTelemetryClient()
    logger.info(
        "telemetry_started",
        live_metrics=settings.enable_live_metrics,
        sampling_percentage=settings.sampling_percentage,
        auto_collect_requests=settings.auto_collect_requests,
        auto_collect_dependencies=settings.auto_collect_dependencies,
    )

    # Startup ping, to check that ingestion works end to end.
    client.track_event(STARTUP_EVENT_NAME)
    client.flush()
    logger.info("Telemetry test event sent.")
    return client
