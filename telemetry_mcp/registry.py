"""Service registries used to resolve a logical name to network addresses.

A registry is any object with a ``lookup(name)`` method returning
:class:`ServiceInstance` records in listing order.  Unknown names raise
:class:`~telemetry_mcp.exceptions.RegistryNotFound`; every other failure is
the registry's own error and is left to propagate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import TracebackType
from typing import TYPE_CHECKING, Mapping, Protocol, Sequence
from urllib.parse import quote

import httpx
import structlog

from telemetry_mcp.exceptions import RegistryNotFound

if TYPE_CHECKING:
    from telemetry_mcp.config import Settings

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ServiceInstance:
    """One registered instance of a service.

    Attributes:
        name: Logical service name.
        addresses: Network addresses, ``host:port`` or absolute URLs.
        metadata: Free-form key/value metadata published by the instance.
    """

    name: str
    addresses: tuple[str, ...]
    metadata: Mapping[str, str] = field(default_factory=dict)


class Registry(Protocol):
    def lookup(self, name: str) -> list[ServiceInstance]:
        ...

    def close(self) -> None:
        ...


class StaticRegistry:
    """In-memory registry built from a ``name -> addresses`` mapping.

    Parameters:
        services: Addresses per service name, in preference order.
    """

    def __init__(self, services: Mapping[str, Sequence[str]]) -> None:
        self._services = {name: tuple(addrs) for name, addrs in services.items()}

    def lookup(self, name: str) -> list[ServiceInstance]:
        addresses = self._services.get(name)
        if not addresses:
            raise RegistryNotFound(name)
        return [ServiceInstance(name=name, addresses=addresses)]

    def close(self) -> None:
        pass


class ConsulRegistry:
    """Registry backed by the Consul HTTP catalog.

    Only instances whose health checks pass are returned.

    Parameters:
        base_url: Root URL of the Consul agent (e.g. ``http://consul:8500``).
        timeout: Request timeout in seconds.
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self._client = httpx.Client(
            base_url=base_url, timeout=timeout, transport=transport
        )

    def lookup(self, name: str) -> list[ServiceInstance]:
        """Return the passing instances registered under *name*.

        Raises:
            RegistryNotFound: On a 404 or when nothing is registered.
            httpx.HTTPError: On any other transport or HTTP failure.
        """
        resp = self._client.get(
            f"/v1/health/service/{quote(name, safe='')}",
            params={"passing": "true"},
        )
        if resp.status_code == 404:
            raise RegistryNotFound(name)
        resp.raise_for_status()

        instances = []
        for entry in resp.json() or []:
            service = entry.get("Service") or {}
            node = entry.get("Node") or {}
            host = service.get("Address") or node.get("Address")
            if not host:
                continue
            port = service.get("Port")
            address = f"{host}:{port}" if port else host
            instances.append(
                ServiceInstance(
                    name=service.get("Service", name),
                    addresses=(address,),
                    metadata=service.get("Meta") or {},
                )
            )

        if not instances:
            raise RegistryNotFound(name)
        logger.debug("consul_lookup", service=name, instances=len(instances))
        return instances

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def __enter__(self) -> ConsulRegistry:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def build_registry(settings: Settings) -> Registry:
    """Create the registry selected by ``settings.REGISTRY_BACKEND``.

    Raises:
        ValueError: For an unknown backend or a Consul backend without URL.
    """
    backend = settings.REGISTRY_BACKEND.lower()
    if backend == "static":
        return StaticRegistry(settings.REGISTRY_STATIC_SERVICES)
    if backend == "consul":
        if not settings.CONSUL_URL:
            raise ValueError("REGISTRY_BACKEND=consul requires CONSUL_URL")
        return ConsulRegistry(settings.CONSUL_URL)
    raise ValueError(f"Unknown registry backend: {settings.REGISTRY_BACKEND}")
