from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from diagserver.config import Settings, get_settings
from diagserver.main import create_app
from diagserver.telemetry import SeverityLevel


_ENV_VARS = (
    "APPINSIGHTS_CONNECTIONSTRING",
    "APPLICATIONINSIGHTS_CONNECTION_STRING",
    "PORT",
    "HOST",
    "STORAGE_CONN",
    "APP_ENV",
    "APP_MESSAGE",
    "LOG_LEVEL",
    "TELEMETRY_AUTO_COLLECT_REQUESTS",
    "TELEMETRY_AUTO_COLLECT_DEPENDENCIES",
    "TELEMETRY_LIVE_METRICS",
    "TELEMETRY_SAMPLING_PERCENTAGE",
)


class FakeTelemetryClient:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict | None]] = []
        self.traces: list[tuple[str, SeverityLevel, dict | None]] = []
        self.flushes = 0

    def track_event(self, name: str, properties: dict | None = None) -> None:
        self.events.append((name, properties))

    def track_trace(
        self,
        message: str,
        severity: SeverityLevel = SeverityLevel.INFORMATION,
        properties: dict | None = None,
    ) -> None:
        self.traces.append((message, severity, properties))

    def flush(self) -> None:
        self.flushes += 1


class FailingTelemetryClient(FakeTelemetryClient):
    def track_event(self, name: str, properties: dict | None = None) -> None:
        raise RuntimeError("ingestion endpoint unreachable")

    def track_trace(
        self,
        message: str,
        severity: SeverityLevel = SeverityLevel.INFORMATION,
        properties: dict | None = None,
    ) -> None:
        raise RuntimeError("ingestion endpoint unreachable")


def make_settings(**overrides: Any) -> Settings:
    return Settings(_env_file=None, **overrides)


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def telemetry_client() -> FakeTelemetryClient:
    return FakeTelemetryClient()


@pytest.fixture
async def api_client(settings: Settings, telemetry_client: FakeTelemetryClient) -> AsyncIterator[AsyncClient]:
    app = create_app(settings=settings, telemetry=telemetry_client)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def unconfigured_client(settings: Settings) -> AsyncIterator[AsyncClient]:
    app = create_app(settings=settings)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def failing_client() -> FailingTelemetryClient:
    return FailingTelemetryClient()
