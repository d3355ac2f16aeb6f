"""Structured logging configuration using *structlog*.

``setup_logging`` initialises structlog (JSON or console rendering) and
routes the standard-library loggers used by httpx and uvicorn to the same
level.  ``RequestLoggingMiddleware`` logs every HTTP request served by the
host and records the request metrics.
"""

from __future__ import annotations

import logging
import sys
import time
from typing import Callable, TextIO

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from telemetry_mcp.metrics import REQUEST_COUNT, REQUEST_DURATION


def setup_logging(
    log_level: str = "INFO",
    json_output: bool = True,
    stream: TextIO | None = None,
) -> None:
    """Configure structlog and the standard-library root logger.

    Parameters:
        log_level: Minimum log level to emit (e.g. ``"DEBUG"``, ``"INFO"``).
        json_output: Render JSON lines; a human-readable console renderer
                     is used otherwise.
        stream: Where to write log lines; stdout by default.  The STDIO
                MCP transport owns stdout, so it passes stderr.
    """
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            structlog.get_level_from_name(log_level),
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stdout),
        cache_logger_on_first_use=True,
    )
    # httpx logs every request at INFO; keep it quiet unless debugging.
    logging.basicConfig(level=log_level.upper(), format="%(message)s")
    logging.getLogger("httpx").setLevel(
        logging.DEBUG if log_level.upper() == "DEBUG" else logging.WARNING
    )


def _endpoint_label(request: Request) -> str:
    # Use the route template so instance addresses do not become label values.
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that emits a structured log line for every request.

    Each log entry contains ``method``, ``path``, ``status_code`` and
    ``duration_ms``.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        logger = structlog.get_logger("telemetry_mcp.access")
        start = time.perf_counter()

        response: Response = await call_next(request)

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        await logger.ainfo(
            "request_handled",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )

        endpoint = _endpoint_label(request)
        REQUEST_COUNT.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=str(response.status_code),
        ).inc()
        REQUEST_DURATION.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration_ms / 1000.0)

        return response
