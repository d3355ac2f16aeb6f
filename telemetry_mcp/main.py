"""Application entry-point for the Telemetry MCP Server.

Creates the FastAPI application, sets up structured logging, attaches the
request-logging middleware, and mounts the MCP SSE server alongside the
FastAPI routes.

Run modes::

    # HTTP + SSE (FastAPI + MCP SSE transport)
    uvicorn telemetry_mcp.main:app --host 0.0.0.0 --port 8000

    # STDIO (for local MCP clients)
    python -m telemetry_mcp.main --stdio
"""

from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI

from telemetry_mcp import __version__
from telemetry_mcp.api.routes import router
from telemetry_mcp.backend import set_telemetry
from telemetry_mcp.config import settings
from telemetry_mcp.logging_config import RequestLoggingMiddleware, setup_logging
from telemetry_mcp.mcp_server import mcp


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Configure logging on startup; close the telemetry backend on shutdown.

    The backend itself is resolved lazily by the first request that needs
    it, so a missing Prometheus does not prevent the server from starting.
    """
    setup_logging(log_level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
    logger = structlog.get_logger("telemetry_mcp.startup")
    await logger.ainfo(
        "server_starting",
        version=__version__,
        log_level=settings.LOG_LEVEL,
        telemetry_service=settings.TELEMETRY_SERVICE_NAME,
        registry_backend=settings.REGISTRY_BACKEND,
    )
    yield
    set_telemetry(None)
    await logger.ainfo("server_shutting_down")


app = FastAPI(
    title="Telemetry MCP Server",
    description=(
        "Resource metrics of Docker Swarm nodes and services, answered "
        "from the Prometheus instance found through the service registry."
    ),
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)
app.include_router(router)

# The MCP SSE app handles /sse and /messages under /mcp.
app.mount("/mcp", mcp.sse_app())


def _run_stdio() -> None:
    """Run the MCP server over STDIO transport (unauthenticated)."""
    setup_logging(
        log_level=settings.LOG_LEVEL,
        json_output=settings.LOG_JSON,
        stream=sys.stderr,
    )
    mcp.run(transport="stdio")


if __name__ == "__main__":
    if "--stdio" in sys.argv:
        _run_stdio()
    else:
        import uvicorn

        uvicorn.run(
            "telemetry_mcp.main:app",
            host="0.0.0.0",
            port=8000,
            log_level=settings.LOG_LEVEL.lower(),
        )
