"""MCP Server module using the official MCP Python SDK.

Registers FastMCP tools that answer node and service resource questions
from the shared telemetry backend.  Tools return JSON text; backend
errors surface to the MCP client as tool errors.
"""

from __future__ import annotations

import json

from mcp.server.fastmcp import FastMCP

from telemetry_mcp.backend import get_telemetry, node_resources, service_usage

# ---------------------------------------------------------------------------
# Create the FastMCP server instance
# ---------------------------------------------------------------------------

mcp = FastMCP("telemetry-mcp")


# ---------------------------------------------------------------------------
# Node tools
# ---------------------------------------------------------------------------


@mcp.tool()
def telemetry_list_nodes(node_ids: list[str] | None = None) -> str:
    """List Swarm nodes reporting to Prometheus.

    Returns a JSON object keyed by node-exporter instance address, each
    value holding id, host_name and ip_address.

    Args:
        node_ids: Optional Swarm node ids to restrict the listing to.
    """
    nodes = get_telemetry().node_meta(*(node_ids or []))
    return json.dumps(
        {instance: meta.model_dump() for instance, meta in nodes.items()},
        indent=2,
    )


@mcp.tool()
def telemetry_node_resources(instance: str) -> str:
    """Get CPU, memory, network and filesystem usage of one node.

    Args:
        instance: Node-exporter instance address, e.g. ``10.0.0.5:9100``.
    """
    return json.dumps(node_resources(get_telemetry(), instance), indent=2)


# ---------------------------------------------------------------------------
# Service tools
# ---------------------------------------------------------------------------


@mcp.tool()
def telemetry_list_service_tasks(service_name: str) -> str:
    """List the running containers of a service and their Swarm nodes.

    Args:
        service_name: Logical service name.
    """
    services = get_telemetry().service_meta(service_name)
    return json.dumps([meta.model_dump() for meta in services], indent=2)


@mcp.tool()
def telemetry_service_usage(service_name: str, node_id: str | None = None) -> str:
    """Get summed memory and network usage of a service's containers.

    Args:
        service_name: Logical service name.
        node_id: Optional Swarm node id to restrict the sums to.
    """
    return json.dumps(
        service_usage(get_telemetry(), service_name, node_id), indent=2
    )
