"""Application configuration via environment variables and .env file.

Uses pydantic-settings to load configuration from environment variables
with optional fallback to a .env file. All settings can be overridden
by setting the corresponding environment variable.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the Telemetry MCP Server.

    Attributes:
        MCP_ADMIN_KEY: Shared secret used to authenticate API requests.
        TELEMETRY_SERVICE_NAME: Registry name of the Prometheus service.
        REGISTRY_BACKEND: ``static`` or ``consul``.
        REGISTRY_STATIC_SERVICES: JSON mapping of service name to a list
            of addresses, used by the static registry.
        CONSUL_URL: Base URL of the Consul agent for the consul registry.
        QUERY_TIMEOUT: Seconds allowed for each Prometheus query.
        PROBE_ON_CONNECT: Check ``/-/ready`` before accepting an address.
        LOG_LEVEL: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        LOG_JSON: Emit JSON log lines instead of console output.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    MCP_ADMIN_KEY: str = "changeme"
    TELEMETRY_SERVICE_NAME: str = "prometheus"
    REGISTRY_BACKEND: str = "static"
    REGISTRY_STATIC_SERVICES: dict[str, list[str]] = {
        "prometheus": ["localhost:9090"],
    }
    CONSUL_URL: str | None = None
    QUERY_TIMEOUT: float = 5.0
    PROBE_ON_CONNECT: bool = True
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True


settings = Settings()
