"""Process-fatal error handling.

Anything that escapes a route's own guard is logged to stderr and ends the
process with status 1. Restarting is left to the process supervisor.
"""

from __future__ import annotations

import asyncio
import os
import sys
import threading
from types import TracebackType
from typing import Any

import structlog

from diagserver.observability.logging import CRASH_LOGGER_NAME


EXIT_FAILURE = 1


def _terminate(code: int = EXIT_FAILURE) -> None:
    sys.stdout.flush()
    sys.stderr.flush()
    # os._exit so that exits from worker threads and loop callbacks are honoured.
    os._exit(code)


def handle_uncaught_exception(
    exc_type: type[BaseException],
    exc_value: BaseException,
    exc_tb: TracebackType | None,
) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_tb)
        return

    structlog.get_logger(CRASH_LOGGER_NAME).error(
        "uncaught_exception",
        exc_info=(exc_type, exc_value, exc_tb),
    )
    _terminate()


def handle_thread_exception(args: threading.ExceptHookArgs) -> None:
    if args.exc_type is SystemExit:
        return
    handle_uncaught_exception(args.exc_type, args.exc_value, args.exc_traceback)


def handle_loop_exception(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    """Asyncio counterpart of an unhandled promise rejection."""

    exc = context.get("exception")
    if exc is None:
        # Loop diagnostics without an exception (slow callbacks, unclosed transports) are not fatal.
        structlog.get_logger("asyncio").warning("event_loop_warning", reason=context.get("message"))
        return

    structlog.get_logger(CRASH_LOGGER_NAME).error(
        "unhandled_rejection",
        reason=context.get("message"),
        exc_info=exc,
    )
    _terminate()


def install_crash_handlers() -> None:
    sys.excepthook = handle_uncaught_exception
    threading.excepthook = handle_thread_exception


def install_loop_exception_handler(loop: asyncio.AbstractEventLoop | None = None) -> None:
    (loop or asyncio.get_running_loop()).set_exception_handler(handle_loop_exception)
