"""Shared pytest fixtures for the Telemetry MCP test suite."""

from __future__ import annotations

import os
from typing import AsyncIterator, Iterator

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

# Set the admin key *before* importing the app so that the Settings
# instance picks up the test value from the environment.
os.environ["MCP_ADMIN_KEY"] = "test-key"

from telemetry_mcp.adapters.prometheus_adapter import PrometheusTelemetry  # noqa: E402
from telemetry_mcp.backend import set_telemetry  # noqa: E402
from telemetry_mcp.main import app as _app  # noqa: E402


class FakePrometheus:
    """In-process stand-in for the Prometheus HTTP API.

    Responses are registered per exact PromQL expression; unknown
    expressions answer with an empty vector.  Every evaluated expression is
    recorded in ``queries``.
    """

    def __init__(self) -> None:
        self.ready = True
        self.queries: list[str] = []
        self._bodies: dict[str, tuple[int, dict]] = {}

    def vector(self, expr: str, *samples: tuple[dict, str]) -> None:
        """Answer *expr* with a vector of ``(labels, value)`` samples."""
        self._bodies[expr] = (
            200,
            {
                "status": "success",
                "data": {
                    "resultType": "vector",
                    "result": [
                        {"metric": labels, "value": [1700000000.0, value]}
                        for labels, value in samples
                    ],
                },
            },
        )

    def value(self, expr: str, value: str) -> None:
        """Answer *expr* with a single unlabelled sample."""
        self.vector(expr, ({}, value))

    def respond(self, expr: str, status_code: int, body: dict) -> None:
        self._bodies[expr] = (status_code, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/-/ready":
            return httpx.Response(200 if self.ready else 503, text="ready")
        if request.url.path == "/api/v1/query":
            expr = request.url.params["query"]
            self.queries.append(expr)
            status_code, body = self._bodies.get(
                expr,
                (
                    200,
                    {
                        "status": "success",
                        "data": {"resultType": "vector", "result": []},
                    },
                ),
            )
            return httpx.Response(status_code, json=body)
        return httpx.Response(404)


@pytest.fixture()
def fake_prom() -> FakePrometheus:
    """Return an empty fake Prometheus server."""
    return FakePrometheus()


@pytest.fixture()
def telemetry(fake_prom: FakePrometheus) -> Iterator[PrometheusTelemetry]:
    """Yield an adapter bound to the fake Prometheus server."""
    adapter = PrometheusTelemetry(
        "http://prometheus:9090",
        transport=httpx.MockTransport(fake_prom.handler),
    )
    yield adapter
    adapter.close()


@pytest.fixture()
def installed_telemetry(
    telemetry: PrometheusTelemetry,
) -> Iterator[PrometheusTelemetry]:
    """Install *telemetry* as the shared backend for routes and MCP tools."""
    set_telemetry(telemetry)
    yield telemetry
    set_telemetry(None)


@pytest.fixture()
def app() -> FastAPI:
    """Return the FastAPI application instance for testing."""
    return _app


@pytest_asyncio.fixture()
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    """Yield an async HTTP client wired to the ASGI app.

    Uses ``httpx.ASGITransport`` so that requests are handled in-process
    without starting a real server.
    """
    transport = httpx.ASGITransport(app=app)  # type: ignore[arg-type]
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://testserver",
    ) as ac:
        yield ac
