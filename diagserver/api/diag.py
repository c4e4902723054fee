from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from diagserver.api.deps import get_app_settings, get_telemetry_client
from diagserver.config import Settings
from diagserver.models.schemas import DiagError, DiagSent
from diagserver.telemetry import SeverityLevel, TelemetryClient


DIAG_EVENT_NAME = "DiagPing"
DIAG_TRACE_SENT = "manual-trace"
DIAG_TRACE_SOURCE = "diag-endpoint"
NO_CLIENT_ERROR = "no defaultClient"

router = APIRouter(prefix="/diag", tags=["diag"])
logger = structlog.get_logger("diag")


def describe_error(exc: BaseException) -> str:
    text = str(exc)
    name = type(exc).__name__
    return f"{name}: {text}" if text else name


def _error_response(error: str) -> JSONResponse:
    return JSONResponse(status_code=500, content=DiagError(error=error).model_dump())


@router.get("", response_model=DiagSent, responses={500: {"model": DiagError}})
async def diag_ping(client: TelemetryClient | None = Depends(get_telemetry_client)) -> DiagSent | JSONResponse:
    try:
        if client is None:
            return _error_response(NO_CLIENT_ERROR)
        client.track_event(DIAG_EVENT_NAME)
        client.flush()
        return DiagSent(sent=DIAG_EVENT_NAME)
    except Exception as exc:  # noqa: BLE001
        logger.exception("diag_failed", sent=DIAG_EVENT_NAME)
        return _error_response(describe_error(exc))


@router.get("/trace", response_model=DiagSent, responses={500: {"model": DiagError}})
async def diag_trace(
    settings: Settings = Depends(get_app_settings),
    client: TelemetryClient | None = Depends(get_telemetry_client),
) -> DiagSent | JSONResponse:
    try:
        if client is None:
            return _error_response(NO_CLIENT_ERROR)
        client.track_trace(
            settings.message,
            severity=SeverityLevel.INFORMATION,
            properties={"source": DIAG_TRACE_SOURCE},
        )
        client.flush()
        return DiagSent(sent=DIAG_TRACE_SENT)
    except Exception as exc:  # noqa: BLE001
        logger.exception("diag_failed", sent=DIAG_TRACE_SENT)
        return _error_response(describe_error(exc))
