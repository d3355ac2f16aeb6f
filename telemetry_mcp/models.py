"""Typed values returned by the telemetry adapter.

``NodeMeta`` and ``ServiceMeta`` are immutable snapshots rebuilt on every
query.  Query results are a tagged union of :class:`ScalarResult` and
:class:`VectorResult`, parsed from the ``data`` member of a Prometheus
``/api/v1/query`` response.
"""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from telemetry_mcp.exceptions import UnexpectedResultType


class NodeMeta(BaseModel):
    """Identity of a Docker Swarm node as reported by the ``node_meta`` series.

    Attributes:
        id: Swarm node identifier.
        host_name: Host name of the node.
        ip_address: IP address of the node.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    host_name: str
    ip_address: str


class ServiceMeta(BaseModel):
    """A running container of a service.

    Attributes:
        id: Identifier of the Swarm node the container runs on.
        name: Logical service name.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str


class Sample(BaseModel):
    """One point of a time series: its label set and value at an instant."""

    model_config = ConfigDict(frozen=True)

    metric: dict[str, str] = Field(default_factory=dict)
    timestamp: float
    value: float

    def label(self, name: str) -> str:
        """Return the value of label *name*, or ``""`` when absent."""
        return self.metric.get(name, "")


class ScalarResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    result_type: Literal["scalar"] = "scalar"
    timestamp: float
    value: float


class VectorResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    result_type: Literal["vector"] = "vector"
    samples: list[Sample] = Field(default_factory=list)


QueryResult = Union[ScalarResult, VectorResult]


def _point(pair: list[Any]) -> tuple[float, float]:
    # Prometheus encodes sample values as strings ("NaN" and "+Inf" included).
    timestamp, value = pair
    return float(timestamp), float(value)


def parse_result(data: dict[str, Any]) -> QueryResult:
    """Build a typed result from the ``data`` object of a query response.

    Parameters:
        data: Mapping with ``resultType`` and ``result`` keys.

    Returns:
        A :class:`ScalarResult` or :class:`VectorResult`.

    Raises:
        UnexpectedResultType: For ``matrix``, ``string`` or unknown types.
    """
    result_type = data.get("resultType", "")
    result = data.get("result")

    if result_type == "scalar":
        timestamp, value = _point(result)
        return ScalarResult(timestamp=timestamp, value=value)

    if result_type == "vector":
        samples = []
        for item in result or []:
            timestamp, value = _point(item["value"])
            samples.append(
                Sample(
                    metric=item.get("metric", {}),
                    timestamp=timestamp,
                    value=value,
                )
            )
        return VectorResult(samples=samples)

    raise UnexpectedResultType("scalar or vector", result_type or "unknown")
