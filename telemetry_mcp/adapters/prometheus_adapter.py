"""Adapter answering node and service resource questions from Prometheus.

Use :func:`create` to resolve the Prometheus service through a registry and
bind an adapter to the first reachable address.  Every accessor builds one
PromQL expression, runs it as an instant query at the current UTC time and
casts the first sample of the resulting vector.

The queries expect the Docker Swarm monitoring stack: node-exporter series
(``node_*``), a ``node_meta`` info series carrying ``node_id``,
``node_name`` and ``node_ip``, and cAdvisor container series labelled with
the Swarm node id and the ``CDM_SERVICE_NAME`` container environment.
"""

from __future__ import annotations

import json
import math
import time
from datetime import datetime, timezone
from types import TracebackType

import httpx
import structlog

from telemetry_mcp import promql
from telemetry_mcp.exceptions import (
    ConnectionFailed,
    NoData,
    NotFoundService,
    QueryError,
    RegistryNotFound,
    UnexpectedResultType,
)
from telemetry_mcp.metrics import ADAPTER_UP, QUERY_COUNT, QUERY_DURATION
from telemetry_mcp.models import (
    NodeMeta,
    QueryResult,
    Sample,
    ServiceMeta,
    VectorResult,
    parse_result,
)
from telemetry_mcp.registry import Registry

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 5.0

# Labels of the node_meta info series.
LABEL_INSTANCE = "instance"
LABEL_NODE_ID = "node_id"
LABEL_NODE_NAME = "node_name"
LABEL_NODE_IP = "node_ip"

# Labels attached to cAdvisor container series.
LABEL_SWARM_NODE_ID = "container_label_com_docker_swarm_node_id"
LABEL_SERVICE_NAME = "container_env_cdm_service_name"


def normalize_address(address: str) -> str:
    """Return *address* as an absolute URL, prefixing ``http://`` if needed."""
    if address.lower().startswith(("http://", "https://")):
        return address
    return f"http://{address}"


class PrometheusTelemetry:
    """Synchronous Prometheus client bound to a single endpoint.

    The adapter never re-resolves or fails over; build a new one with
    :func:`create` to pick up a different endpoint.

    Parameters:
        base_url: Absolute URL of the Prometheus server.
        timeout: Seconds allowed for each request.
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self._client = httpx.Client(
            base_url=base_url, timeout=timeout, transport=transport
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def ping(self) -> None:
        """Check that the server answers its readiness endpoint.

        Raises:
            httpx.HTTPError: If the server is unreachable or not ready.
        """
        self._client.get("/-/ready").raise_for_status()

    def close(self) -> None:
        """Close the underlying HTTP client and release resources."""
        self._client.close()

    def __enter__(self) -> PrometheusTelemetry:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"PrometheusTelemetry(base_url={self.base_url!r})"

    # ------------------------------------------------------------------
    # Query primitive
    # ------------------------------------------------------------------

    def query(self, expr: str) -> QueryResult:
        """Evaluate *expr* as an instant query at the current UTC time.

        Parameters:
            expr: PromQL expression.

        Returns:
            The typed query result.

        Raises:
            QueryError: If Prometheus reports an evaluation error.
            httpx.HTTPError: On timeouts and transport or HTTP failures.
        """
        deadline = time.monotonic() + self.timeout
        params = {
            "query": expr,
            "time": datetime.now(timezone.utc).isoformat(),
            "timeout": str(self.timeout),
        }
        start = time.perf_counter()
        outcome = "error"
        try:
            with self._client.stream(
                "GET", "/api/v1/query", params=params, timeout=self.timeout
            ) as resp:
                content = _read_before(resp, deadline)
            body = _json_or_none(content)
            if body is not None and body.get("status") == "error":
                raise QueryError(
                    body.get("errorType", "unknown"), body.get("error", "")
                )
            resp.raise_for_status()
            if body is None:
                raise QueryError("bad_response", "response body is not JSON")

            warnings = body.get("warnings") or []
            if warnings:
                logger.warning(
                    "telemetry_query_warnings", query=expr, warnings=warnings
                )

            result = parse_result(body.get("data") or {})
            outcome = "success"
            return result
        finally:
            QUERY_COUNT.labels(outcome=outcome).inc()
            QUERY_DURATION.observe(time.perf_counter() - start)

    def _vector(self, expr: str) -> VectorResult:
        result = self.query(expr)
        if not isinstance(result, VectorResult):
            raise UnexpectedResultType("vector", result.result_type)
        return result

    def _first(self, expr: str) -> Sample:
        vector = self._vector(expr)
        if not vector.samples:
            raise NoData(expr)
        return vector.samples[0]

    def _float(self, expr: str) -> float:
        value = self._first(expr).value
        if math.isnan(value):
            raise NoData(expr)
        return value

    def _int(self, expr: str) -> int:
        value = self._float(expr)
        if math.isinf(value):
            raise NoData(expr)
        return int(value)

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def node_meta(self, *node_ids: str) -> dict[str, NodeMeta]:
        """Return node identities keyed by the ``instance`` label.

        Parameters:
            node_ids: Swarm node ids to restrict the result to.  With no
                      ids, every node currently reporting is returned.
        """
        if node_ids:
            expr = promql.selector(
                "node_meta", promql.regex_match(LABEL_NODE_ID, node_ids)
            )
        else:
            expr = promql.selector("node_meta")

        nodes = {}
        for sample in self._vector(expr).samples:
            nodes[sample.label(LABEL_INSTANCE)] = NodeMeta(
                id=sample.label(LABEL_NODE_ID),
                host_name=sample.label(LABEL_NODE_NAME),
                ip_address=sample.label(LABEL_NODE_IP),
            )
        return nodes

    def node_cpu_core_cnt(self, instance: str) -> int:
        """Number of distinct ``cpu`` label values reported by *instance*."""
        sel = promql.selector(
            "node_cpu_seconds_total", promql.eq(LABEL_INSTANCE, instance)
        )
        return self._int(f"count(count({sel}) by (cpu))")

    def node_cpu_used_rate(self, instance: str) -> float:
        """CPU usage of *instance* in percent, averaged over 5 minutes."""
        sel = promql.selector(
            "node_cpu_seconds_total",
            promql.eq(LABEL_INSTANCE, instance),
            promql.eq("mode", "idle"),
        )
        return self._float(f"100 - (avg(irate({sel}[5m])) * 100)")

    def node_mem_total_bytes(self, instance: str) -> int:
        sel = promql.selector(
            "node_memory_MemTotal_bytes", promql.eq(LABEL_INSTANCE, instance)
        )
        return self._int(f"sum({sel})")

    def node_mem_used_bytes(self, instance: str) -> int:
        """Total memory minus available memory of *instance*."""
        matcher = promql.eq(LABEL_INSTANCE, instance)
        total = promql.selector("node_memory_MemTotal_bytes", matcher)
        available = promql.selector("node_memory_MemAvailable_bytes", matcher)
        return self._int(f"sum({total}) - sum({available})")

    def node_network_receive_bytes(self, instance: str) -> int:
        """Bytes per second received by *instance* over the last minute."""
        return self._node_rate("node_network_receive_bytes_total", instance)

    def node_network_transmit_bytes(self, instance: str) -> int:
        """Bytes per second sent by *instance* over the last minute."""
        return self._node_rate("node_network_transmit_bytes_total", instance)

    def _node_rate(self, metric: str, instance: str) -> int:
        sel = promql.selector(metric, promql.eq(LABEL_INSTANCE, instance))
        return self._int(f"sum(rate({sel}[1m]))")

    def node_filesystem_size_bytes(self, instance: str) -> int:
        """Size of the first filesystem reported by *instance*."""
        return self._int(
            promql.selector(
                "node_filesystem_size_bytes",
                promql.eq(LABEL_INSTANCE, instance),
            )
        )

    def node_filesystem_used_bytes(self, instance: str) -> int:
        """Size minus available bytes of the first filesystem of *instance*."""
        matcher = promql.eq(LABEL_INSTANCE, instance)
        size = promql.selector("node_filesystem_size_bytes", matcher)
        avail = promql.selector("node_filesystem_avail_bytes", matcher)
        return self._int(f"{size} - {avail}")

    # ------------------------------------------------------------------
    # Services
    # ------------------------------------------------------------------

    def service_meta(self, service_name: str) -> list[ServiceMeta]:
        """Containers of *service_name*, one entry per running container."""
        expr = promql.selector(
            "container_start_time_seconds",
            promql.neq("image", ""),
            promql.eq(LABEL_SERVICE_NAME, service_name),
        )
        return [
            ServiceMeta(
                id=sample.label(LABEL_SWARM_NODE_ID),
                name=sample.label(LABEL_SERVICE_NAME),
            )
            for sample in self._vector(expr).samples
        ]

    def service_mem_used_bytes(
        self, service_name: str, node_id: str | None = None
    ) -> int:
        """Memory used by all containers of *service_name*.

        Parameters:
            service_name: Logical service name.
            node_id: Restrict the sum to containers on this Swarm node.
        """
        return self._service_sum(
            "container_memory_usage_bytes", service_name, node_id
        )

    def service_network_receive_bytes(
        self, service_name: str, node_id: str | None = None
    ) -> int:
        return self._service_sum(
            "container_network_receive_bytes_total", service_name, node_id
        )

    def service_network_transmit_bytes(
        self, service_name: str, node_id: str | None = None
    ) -> int:
        return self._service_sum(
            "container_network_transmit_bytes_total", service_name, node_id
        )

    def _service_sum(
        self, metric: str, service_name: str, node_id: str | None
    ) -> int:
        matchers = [
            promql.neq("image", ""),
            promql.eq(LABEL_SERVICE_NAME, service_name),
        ]
        if node_id is not None:
            matchers.append(promql.eq(LABEL_SWARM_NODE_ID, node_id))
        return self._int(f"sum({promql.selector(metric, *matchers)})")


def _read_before(resp: httpx.Response, deadline: float) -> bytes:
    """Read the body of a streamed *resp*, giving up at *deadline*.

    httpx timeouts bound each socket operation separately, so a server
    trickling bytes could otherwise hold the caller indefinitely.
    """
    chunks = []
    for chunk in resp.iter_bytes():
        chunks.append(chunk)
        if time.monotonic() > deadline:
            raise httpx.ReadTimeout(
                "query deadline exceeded", request=resp.request
            )
    return b"".join(chunks)


def _json_or_none(content: bytes) -> dict | None:
    try:
        body = json.loads(content)
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def create(
    service_name: str,
    registry: Registry,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    probe: bool = True,
    transport: httpx.BaseTransport | None = None,
) -> PrometheusTelemetry:
    """Resolve *service_name* and bind an adapter to the first reachable address.

    Parameters:
        service_name: Registry name of the Prometheus service.
        registry: Registry used to look the service up.
        timeout: Seconds allowed for each query.
        probe: Check ``/-/ready`` before accepting an address.  When False
               the first well-formed address wins.
        transport: Optional httpx transport, used by tests.

    Returns:
        An adapter bound to one endpoint.

    Raises:
        ValueError: If *service_name* is empty.
        NotFoundService: If nothing is registered under *service_name*.
        ConnectionFailed: If no registered address accepted a connection.
    """
    if not service_name:
        raise ValueError("service_name must not be empty")

    try:
        instances = registry.lookup(service_name)
    except RegistryNotFound:
        instances = []
    except Exception as exc:
        logger.error(
            "telemetry_registry_lookup_failed",
            service=service_name,
            error=str(exc),
        )
        raise

    if not instances:
        logger.error("telemetry_service_not_found", service=service_name)
        raise NotFoundService(service_name)

    tried = []
    for instance in instances:
        for address in instance.addresses:
            url = normalize_address(address)
            tried.append(url)
            try:
                adapter = PrometheusTelemetry(
                    url, timeout=timeout, transport=transport
                )
            except httpx.InvalidURL as exc:
                logger.debug(
                    "telemetry_connection_failed", address=url, error=str(exc)
                )
                continue

            if probe:
                try:
                    adapter.ping()
                except (httpx.HTTPError, httpx.InvalidURL) as exc:
                    logger.debug(
                        "telemetry_connection_failed",
                        address=url,
                        error=str(exc),
                    )
                    adapter.close()
                    continue

            logger.info(
                "telemetry_connected", service=service_name, address=url
            )
            ADAPTER_UP.labels(service_name=service_name).set(1)
            return adapter

    ADAPTER_UP.labels(service_name=service_name).set(0)
    raise ConnectionFailed(service_name, tried)
