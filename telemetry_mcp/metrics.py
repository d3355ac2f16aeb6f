"""Prometheus metrics definitions for the Telemetry MCP Server.

Request metrics are recorded by the request-logging middleware; query
metrics by the Prometheus adapter for every outgoing instant query.  All
of them are scraped via the ``/metrics`` endpoint.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNT = Counter(
    "telemetry_mcp_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "telemetry_mcp_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(
        0.01, 0.025, 0.05, 0.1, 0.25,
        0.5, 1.0, 2.5, 5.0, 10.0,
    ),
)

QUERY_COUNT = Counter(
    "telemetry_mcp_queries_total",
    "Total PromQL instant queries sent to the backing Prometheus",
    ["outcome"],
)

QUERY_DURATION = Histogram(
    "telemetry_mcp_query_duration_seconds",
    "PromQL instant query duration in seconds",
    buckets=(
        0.005, 0.01, 0.025, 0.05, 0.1,
        0.25, 0.5, 1.0, 2.5, 5.0,
    ),
)

ADAPTER_UP = Gauge(
    "telemetry_mcp_adapter_up",
    "Whether the telemetry backend is reachable (1=up, 0=down)",
    ["service_name"],
)
