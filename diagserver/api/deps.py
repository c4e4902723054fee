from __future__ import annotations

from fastapi import Request

from diagserver.config import Settings
from diagserver.telemetry import TelemetryClient


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_telemetry_client(request: Request) -> TelemetryClient | None:
    return request.app.state.telemetry
