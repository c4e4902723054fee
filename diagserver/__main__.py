from __future__ import annotations

import argparse

import uvicorn

from diagserver.config import get_settings
from diagserver.observability.crash import install_crash_handlers
from diagserver.observability.logging import configure_logging, resolve_level


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="HTTP diagnostic server with Application Insights telemetry")
    parser.add_argument("--host", default=settings.host, help="Address to bind (default: HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, default=settings.port, help="Port to listen on (default: PORT or 8080)")
    args = parser.parse_args()

    configure_logging(resolve_level(settings.log_level))
    install_crash_handlers()

    uvicorn.run(
        "diagserver.main:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
