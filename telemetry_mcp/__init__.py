"""Telemetry MCP: typed Prometheus queries for Docker Swarm nodes and services."""

__version__ = "0.1.0"
