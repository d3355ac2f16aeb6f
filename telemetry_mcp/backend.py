"""Process-wide telemetry backend shared by the HTTP routes and MCP tools.

The backend is created on first use from the application settings, since
resolving it talks to the registry and probes Prometheus.  A failed
creation is not cached; the next call tries again with the same registry.
"""

from __future__ import annotations

import threading

from telemetry_mcp.adapters.prometheus_adapter import create
from telemetry_mcp.config import settings
from telemetry_mcp.registry import Registry, build_registry
from telemetry_mcp.telemetry import Telemetry

_lock = threading.Lock()
_registry: Registry | None = None
_telemetry: Telemetry | None = None


def get_telemetry() -> Telemetry:
    """Return the shared backend, creating it on first use.

    Raises:
        NotFoundService: If the registry has no telemetry service.
        ConnectionFailed: If no registered address is reachable.
        ValueError: If the configured registry backend is invalid.
    """
    global _registry, _telemetry
    with _lock:
        if _telemetry is None:
            if _registry is None:
                _registry = build_registry(settings)
            _telemetry = create(
                settings.TELEMETRY_SERVICE_NAME,
                _registry,
                timeout=settings.QUERY_TIMEOUT,
                probe=settings.PROBE_ON_CONNECT,
            )
        return _telemetry


def set_telemetry(telemetry: Telemetry | None) -> None:
    """Replace the shared backend, closing the previous one.

    Passing ``None`` also closes the registry, so the next
    :func:`get_telemetry` rebuilds both from the settings.
    """
    global _registry, _telemetry
    with _lock:
        if _telemetry is not None and _telemetry is not telemetry:
            _telemetry.close()
        _telemetry = telemetry
        if telemetry is None and _registry is not None:
            _registry.close()
            _registry = None


def node_resources(telemetry: Telemetry, instance: str) -> dict:
    """Collect CPU, memory, network and filesystem figures for one node.

    Parameters:
        telemetry: Backend to query.
        instance: Node exporter instance address (``host:port``).

    Returns:
        A dict with ``cpu``, ``memory``, ``network`` and ``filesystem``
        sections.
    """
    return {
        "instance": instance,
        "cpu": {
            "cores": telemetry.node_cpu_core_cnt(instance),
            "used_percent": telemetry.node_cpu_used_rate(instance),
        },
        "memory": {
            "total_bytes": telemetry.node_mem_total_bytes(instance),
            "used_bytes": telemetry.node_mem_used_bytes(instance),
        },
        "network": {
            "receive_bytes_per_second": telemetry.node_network_receive_bytes(
                instance
            ),
            "transmit_bytes_per_second": telemetry.node_network_transmit_bytes(
                instance
            ),
        },
        "filesystem": {
            "size_bytes": telemetry.node_filesystem_size_bytes(instance),
            "used_bytes": telemetry.node_filesystem_used_bytes(instance),
        },
    }


def service_usage(
    telemetry: Telemetry, service_name: str, node_id: str | None = None
) -> dict:
    """Summed memory and network usage of a service's containers."""
    return {
        "service_name": service_name,
        "node_id": node_id,
        "memory_used_bytes": telemetry.service_mem_used_bytes(
            service_name, node_id
        ),
        "network_receive_bytes": telemetry.service_network_receive_bytes(
            service_name, node_id
        ),
        "network_transmit_bytes": telemetry.service_network_transmit_bytes(
            service_name, node_id
        ),
    }
