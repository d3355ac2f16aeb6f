"""API-key authentication for the ``/v1/`` telemetry endpoints.

The key is sent in the ``X-API-Key`` header and compared in constant time
against the configured ``MCP_ADMIN_KEY``.
"""

from __future__ import annotations

import secrets

from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader

from telemetry_mcp.config import settings

_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def require_admin_key(
    api_key: str | None = Security(_api_key_header),
) -> str:
    """Validate the X-API-Key header.

    Raises:
        HTTPException: 403 Forbidden if the key is missing or does not match.
    """
    if api_key is None or not secrets.compare_digest(
        api_key.encode(), settings.MCP_ADMIN_KEY.encode()
    ):
        raise HTTPException(
            status_code=403,
            detail="Invalid or missing API key.",
        )
    return api_key
