"""The telemetry capability surface.

Any backend that can answer resource questions about Swarm nodes and
services implements :class:`Telemetry`.  Accessors block until the backend
answers or its query timeout elapses.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from telemetry_mcp.models import NodeMeta, ServiceMeta


@runtime_checkable
class Telemetry(Protocol):
    def node_meta(self, *node_ids: str) -> dict[str, NodeMeta]:
        """Node identities keyed by instance address; all nodes when no ids."""
        ...

    def node_cpu_core_cnt(self, instance: str) -> int:
        ...

    def node_cpu_used_rate(self, instance: str) -> float:
        """CPU usage in percent over the last five minutes."""
        ...

    def node_mem_total_bytes(self, instance: str) -> int:
        ...

    def node_mem_used_bytes(self, instance: str) -> int:
        ...

    def node_network_receive_bytes(self, instance: str) -> int:
        ...

    def node_network_transmit_bytes(self, instance: str) -> int:
        ...

    def node_filesystem_size_bytes(self, instance: str) -> int:
        ...

    def node_filesystem_used_bytes(self, instance: str) -> int:
        ...

    def service_meta(self, service_name: str) -> list[ServiceMeta]:
        ...

    def service_mem_used_bytes(
        self, service_name: str, node_id: str | None = None
    ) -> int:
        ...

    def service_network_receive_bytes(
        self, service_name: str, node_id: str | None = None
    ) -> int:
        ...

    def service_network_transmit_bytes(
        self, service_name: str, node_id: str | None = None
    ) -> int:
        ...

    def ping(self) -> None:
        """Raise if the backend is unreachable."""
        ...

    def close(self) -> None:
        ...
