"""API route definitions for the Telemetry MCP Server.

All ``/v1/`` endpoints require a valid ``X-API-Key`` header.  The
``/health`` and ``/metrics`` endpoints are unauthenticated so that
load-balancers and Prometheus can probe without credentials.

Telemetry routes are plain ``def`` functions: the adapter blocks on each
query, so FastAPI runs them in its threadpool.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator

import httpx
import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response as StarletteResponse

from telemetry_mcp import __version__
from telemetry_mcp.auth import require_admin_key
from telemetry_mcp.backend import get_telemetry, node_resources, service_usage
from telemetry_mcp.config import settings
from telemetry_mcp.exceptions import (
    ConnectionFailed,
    InvalidIdentifier,
    NoData,
    NotFoundService,
    QueryError,
    UnexpectedResultType,
)
from telemetry_mcp.telemetry import Telemetry

logger = structlog.get_logger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------

@contextmanager
def _translate_errors() -> Iterator[None]:
    """Map telemetry errors onto HTTP status codes."""
    try:
        yield
    except InvalidIdentifier as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except NoData as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except (NotFoundService, ConnectionFailed) as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except (QueryError, UnexpectedResultType, httpx.HTTPError) as exc:
        logger.warning("telemetry_backend_error", error=str(exc))
        raise HTTPException(status_code=502, detail=str(exc)) from exc


def provide_telemetry() -> Telemetry:
    """FastAPI dependency returning the shared telemetry backend."""
    try:
        with _translate_errors():
            return get_telemetry()
    except ValueError as exc:
        logger.error("telemetry_backend_misconfigured", error=str(exc))
        raise HTTPException(status_code=503, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@router.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Unauthenticated liveness probe.

    Returns:
        A JSON object with ``status`` and ``version`` fields.
    """
    return {"status": "ok", "version": __version__}


@router.get("/metrics", tags=["monitoring"])
async def prometheus_metrics() -> StarletteResponse:
    """Prometheus metrics endpoint in text exposition format."""
    return StarletteResponse(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


@router.get("/v1/status", tags=["health"])
def service_status(
    _key: str = Depends(require_admin_key),
) -> dict:
    """Report whether the telemetry backend can be resolved and reached.

    Returns:
        A dict with overall status, timestamp, version, and the backend's
        status and probe latency.
    """
    start = time.perf_counter()
    try:
        get_telemetry().ping()
        check = {
            "status": "up",
            "latency_ms": round((time.perf_counter() - start) * 1000, 2),
        }
    except (
        NotFoundService, ConnectionFailed, httpx.HTTPError, ValueError
    ) as exc:
        logger.warning(
            "health_check_failed",
            service=settings.TELEMETRY_SERVICE_NAME,
            error=str(exc),
        )
        check = {"status": "down", "error": str(exc)}

    return {
        "overall": "healthy" if check["status"] == "up" else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "services": {settings.TELEMETRY_SERVICE_NAME: check},
    }


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------

@router.get("/v1/nodes", tags=["nodes"])
def list_nodes(
    node_id: list[str] = Query(
        [], alias="id", description="Restrict to these Swarm node ids"
    ),
    _key: str = Depends(require_admin_key),
    telemetry: Telemetry = Depends(provide_telemetry),
) -> dict[str, dict]:
    """Node identities keyed by node-exporter instance address."""
    with _translate_errors():
        nodes = telemetry.node_meta(*node_id)
    return {instance: meta.model_dump() for instance, meta in nodes.items()}


@router.get("/v1/nodes/{instance}", tags=["nodes"])
def node_summary(
    instance: str,
    _key: str = Depends(require_admin_key),
    telemetry: Telemetry = Depends(provide_telemetry),
) -> dict:
    """All resource figures of one node."""
    with _translate_errors():
        return node_resources(telemetry, instance)


@router.get("/v1/nodes/{instance}/cpu", tags=["nodes"])
def node_cpu(
    instance: str,
    _key: str = Depends(require_admin_key),
    telemetry: Telemetry = Depends(provide_telemetry),
) -> dict:
    with _translate_errors():
        return {
            "instance": instance,
            "cores": telemetry.node_cpu_core_cnt(instance),
            "used_percent": telemetry.node_cpu_used_rate(instance),
        }


@router.get("/v1/nodes/{instance}/memory", tags=["nodes"])
def node_memory(
    instance: str,
    _key: str = Depends(require_admin_key),
    telemetry: Telemetry = Depends(provide_telemetry),
) -> dict:
    with _translate_errors():
        return {
            "instance": instance,
            "total_bytes": telemetry.node_mem_total_bytes(instance),
            "used_bytes": telemetry.node_mem_used_bytes(instance),
        }


@router.get("/v1/nodes/{instance}/network", tags=["nodes"])
def node_network(
    instance: str,
    _key: str = Depends(require_admin_key),
    telemetry: Telemetry = Depends(provide_telemetry),
) -> dict:
    """Network throughput of a node over the last minute."""
    with _translate_errors():
        return {
            "instance": instance,
            "receive_bytes_per_second": telemetry.node_network_receive_bytes(
                instance
            ),
            "transmit_bytes_per_second": telemetry.node_network_transmit_bytes(
                instance
            ),
        }


@router.get("/v1/nodes/{instance}/filesystem", tags=["nodes"])
def node_filesystem(
    instance: str,
    _key: str = Depends(require_admin_key),
    telemetry: Telemetry = Depends(provide_telemetry),
) -> dict:
    with _translate_errors():
        return {
            "instance": instance,
            "size_bytes": telemetry.node_filesystem_size_bytes(instance),
            "used_bytes": telemetry.node_filesystem_used_bytes(instance),
        }


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

@router.get("/v1/services/{service_name}", tags=["services"])
def list_service_tasks(
    service_name: str,
    _key: str = Depends(require_admin_key),
    telemetry: Telemetry = Depends(provide_telemetry),
) -> list[dict]:
    """Running containers of a service with the node each one runs on."""
    with _translate_errors():
        services = telemetry.service_meta(service_name)
    return [meta.model_dump() for meta in services]


@router.get("/v1/services/{service_name}/usage", tags=["services"])
def service_resource_usage(
    service_name: str,
    node_id: str | None = Query(
        None, description="Restrict the sums to this Swarm node"
    ),
    _key: str = Depends(require_admin_key),
    telemetry: Telemetry = Depends(provide_telemetry),
) -> dict:
    """Summed memory and network usage of a service's containers."""
    with _translate_errors():
        return service_usage(telemetry, service_name, node_id)
