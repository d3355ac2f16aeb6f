"""Tests for the MCP server tool registration and execution."""

from __future__ import annotations

import json
import os

import pytest

# Ensure the admin key is set before any app import.
os.environ.setdefault("MCP_ADMIN_KEY", "test-key")

from telemetry_mcp.adapters.prometheus_adapter import PrometheusTelemetry  # noqa: E402
from telemetry_mcp.mcp_server import mcp  # noqa: E402

from .conftest import FakePrometheus  # noqa: E402

INSTANCE = "10.0.0.5:9100"
SEL = f'{{instance="{INSTANCE}"}}'


def _get_text(result: object) -> str:
    """Extract the text content from a call_tool result.

    The FastMCP call_tool may return either:
    - A sequence of ContentBlock objects (each with a .text attribute)
    - A tuple of (content_list, structured_dict) when structured output is detected
    """
    if isinstance(result, tuple):
        content_list = result[0]
    else:
        content_list = result
    first = content_list[0]
    return first.text


@pytest.mark.asyncio
async def test_mcp_server_has_tools() -> None:
    """The MCP server should have all expected tools registered."""
    tools = await mcp.list_tools()
    tool_names = {t.name for t in tools}

    expected = {
        "telemetry_list_nodes",
        "telemetry_node_resources",
        "telemetry_list_service_tasks",
        "telemetry_service_usage",
    }
    assert expected.issubset(tool_names), f"Missing tools: {expected - tool_names}"


@pytest.mark.asyncio
async def test_list_nodes_tool(
    fake_prom: FakePrometheus, installed_telemetry: PrometheusTelemetry
) -> None:
    fake_prom.vector(
        "node_meta{}",
        (
            {
                "instance": INSTANCE,
                "node_id": "n1",
                "node_name": "worker-1",
                "node_ip": "10.0.0.5",
            },
            "1",
        ),
    )

    result = await mcp.call_tool("telemetry_list_nodes", {})
    data = json.loads(_get_text(result))

    assert data[INSTANCE]["id"] == "n1"
    assert data[INSTANCE]["host_name"] == "worker-1"


@pytest.mark.asyncio
async def test_node_resources_tool(
    fake_prom: FakePrometheus, installed_telemetry: PrometheusTelemetry
) -> None:
    fake_prom.value(f"count(count(node_cpu_seconds_total{SEL}) by (cpu))", "4")
    fake_prom.value(
        "100 - (avg(irate(node_cpu_seconds_total"
        f'{{instance="{INSTANCE}",mode="idle"}}[5m])) * 100)',
        "25",
    )
    fake_prom.value(f"sum(node_memory_MemTotal_bytes{SEL})", "1000")
    fake_prom.value(
        f"sum(node_memory_MemTotal_bytes{SEL}) - "
        f"sum(node_memory_MemAvailable_bytes{SEL})",
        "400",
    )
    fake_prom.value(f"sum(rate(node_network_receive_bytes_total{SEL}[1m]))", "7")
    fake_prom.value(f"sum(rate(node_network_transmit_bytes_total{SEL}[1m]))", "3")
    fake_prom.value(f"node_filesystem_size_bytes{SEL}", "5000")
    fake_prom.value(
        f"node_filesystem_size_bytes{SEL} - node_filesystem_avail_bytes{SEL}",
        "2000",
    )

    result = await mcp.call_tool(
        "telemetry_node_resources", {"instance": INSTANCE}
    )
    data = json.loads(_get_text(result))

    assert data["cpu"] == {"cores": 4, "used_percent": 25.0}
    assert data["memory"] == {"total_bytes": 1000, "used_bytes": 400}
    assert data["network"]["receive_bytes_per_second"] == 7
    assert data["filesystem"]["used_bytes"] == 2000


@pytest.mark.asyncio
async def test_service_tools(
    fake_prom: FakePrometheus, installed_telemetry: PrometheusTelemetry
) -> None:
    svc = 'image!="",container_env_cdm_service_name="web"'
    fake_prom.vector(
        f"container_start_time_seconds{{{svc}}}",
        (
            {
                "container_label_com_docker_swarm_node_id": "n1",
                "container_env_cdm_service_name": "web",
            },
            "1700000000",
        ),
    )
    fake_prom.value(f"sum(container_memory_usage_bytes{{{svc}}})", "300")
    fake_prom.value(f"sum(container_network_receive_bytes_total{{{svc}}})", "20")
    fake_prom.value(f"sum(container_network_transmit_bytes_total{{{svc}}})", "10")

    tasks = json.loads(
        _get_text(
            await mcp.call_tool(
                "telemetry_list_service_tasks", {"service_name": "web"}
            )
        )
    )
    usage = json.loads(
        _get_text(
            await mcp.call_tool("telemetry_service_usage", {"service_name": "web"})
        )
    )

    assert tasks == [{"id": "n1", "name": "web"}]
    assert usage["memory_used_bytes"] == 300
    assert usage["node_id"] is None
