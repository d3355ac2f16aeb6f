"""Error taxonomy for the telemetry adapter.

Registry and transport errors (``httpx.HTTPError`` and friends) are not
wrapped; they reach the caller unchanged.
"""

from __future__ import annotations


class TelemetryError(Exception):
    """Base class for all errors raised by this package."""


class NotFoundService(TelemetryError):
    """The registry has no instance registered under the requested name."""

    def __init__(self, service_name: str) -> None:
        super().__init__(f"not found telemetry service: {service_name}")
        self.service_name = service_name


class ConnectionFailed(TelemetryError):
    """Instances exist but none of their addresses accepted a connection."""

    def __init__(self, service_name: str, addresses: list[str]) -> None:
        super().__init__(
            f"could not connect to telemetry service {service_name} "
            f"(tried: {', '.join(addresses) or 'nothing'})"
        )
        self.service_name = service_name
        self.addresses = addresses


class RegistryNotFound(TelemetryError):
    """Raised by a registry when a name has no registrations."""


class NoData(TelemetryError):
    """A query that must yield a sample returned an empty vector."""

    def __init__(self, query: str) -> None:
        super().__init__(f"query returned no usable sample: {query}")
        self.query = query


class UnexpectedResultType(TelemetryError):
    """The query engine answered with a result shape the caller did not expect."""

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(f"expected {expected} result, got {actual}")
        self.expected = expected
        self.actual = actual


class QueryError(TelemetryError):
    """The query engine rejected or failed to evaluate an expression."""

    def __init__(self, error_type: str, message: str) -> None:
        super().__init__(f"{error_type}: {message}")
        self.error_type = error_type
        self.message = message


class InvalidIdentifier(TelemetryError, ValueError):
    """A caller-supplied identifier is not safe to embed in PromQL."""
