"""Backends implementing the :class:`telemetry_mcp.telemetry.Telemetry` protocol."""
