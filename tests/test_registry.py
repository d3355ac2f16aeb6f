"""Tests for the static and Consul service registries."""

from __future__ import annotations

import httpx
import pytest

from telemetry_mcp.config import Settings
from telemetry_mcp.exceptions import RegistryNotFound
from telemetry_mcp.registry import (
    ConsulRegistry,
    StaticRegistry,
    build_registry,
)


def test_static_registry_returns_addresses_in_order() -> None:
    registry = StaticRegistry({"prometheus": ["10.0.0.1:9090", "10.0.0.2:9090"]})

    (instance,) = registry.lookup("prometheus")

    assert instance.name == "prometheus"
    assert instance.addresses == ("10.0.0.1:9090", "10.0.0.2:9090")


def test_static_registry_unknown_name() -> None:
    registry = StaticRegistry({"prometheus": []})

    with pytest.raises(RegistryNotFound):
        registry.lookup("prometheus")
    with pytest.raises(RegistryNotFound):
        registry.lookup("grafana")


def _consul(handler) -> ConsulRegistry:
    return ConsulRegistry(
        "http://consul:8500", transport=httpx.MockTransport(handler)
    )


def test_consul_registry_lists_passing_instances() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200,
            json=[
                {
                    "Node": {"Address": "10.0.0.1"},
                    "Service": {
                        "Service": "prometheus",
                        "Address": "",
                        "Port": 9090,
                        "Meta": {"version": "2.48"},
                    },
                },
                {
                    "Node": {"Address": "10.0.0.9"},
                    "Service": {
                        "Service": "prometheus",
                        "Address": "10.0.0.2",
                        "Port": 9090,
                    },
                },
            ],
        )

    registry = _consul(handler)
    try:
        instances = registry.lookup("prometheus")
    finally:
        registry.close()

    assert requests[0].url.path == "/v1/health/service/prometheus"
    assert requests[0].url.params["passing"] == "true"
    assert [i.addresses for i in instances] == [
        ("10.0.0.1:9090",),
        ("10.0.0.2:9090",),
    ]
    assert instances[0].metadata == {"version": "2.48"}


@pytest.mark.parametrize(
    "response",
    [httpx.Response(404), httpx.Response(200, json=[])],
)
def test_consul_registry_not_found(response: httpx.Response) -> None:
    registry = _consul(lambda request: response)
    with pytest.raises(RegistryNotFound):
        registry.lookup("prometheus")


def test_consul_registry_escapes_service_name() -> None:
    paths: list[bytes] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.raw_path)
        return httpx.Response(404)

    with _consul(handler) as registry:
        with pytest.raises(RegistryNotFound):
            registry.lookup("a/b c")
        with pytest.raises(RegistryNotFound):
            registry.lookup("../../agent/self")

    assert paths == [
        b"/v1/health/service/a%2Fb%20c?passing=true",
        b"/v1/health/service/..%2F..%2Fagent%2Fself?passing=true",
    ]


def test_consul_registry_propagates_server_errors() -> None:
    registry = _consul(lambda request: httpx.Response(500))
    with pytest.raises(httpx.HTTPStatusError):
        registry.lookup("prometheus")


def test_build_registry_selects_backend() -> None:
    static = build_registry(
        Settings(
            REGISTRY_BACKEND="static",
            REGISTRY_STATIC_SERVICES={"prometheus": ["prom:9090"]},
        )
    )
    assert isinstance(static, StaticRegistry)

    consul = build_registry(
        Settings(REGISTRY_BACKEND="consul", CONSUL_URL="http://consul:8500")
    )
    assert isinstance(consul, ConsulRegistry)
    consul.close()


def test_build_registry_rejects_bad_configuration() -> None:
    with pytest.raises(ValueError):
        build_registry(Settings(REGISTRY_BACKEND="consul", CONSUL_URL=None))
    with pytest.raises(ValueError):
        build_registry(Settings(REGISTRY_BACKEND="mdns"))
