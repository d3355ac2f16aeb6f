"""Small PromQL expression builder.

Every caller-supplied identifier passes through :func:`validate_identifier`
before it is embedded in an expression, and is then quoted as a PromQL
string literal.  Values used in regex matchers are additionally RE2-escaped
so that ``10.0.0.5:9100`` matches that instance and nothing else.
"""

from __future__ import annotations

import re
from typing import Iterable

from telemetry_mcp.exceptions import InvalidIdentifier

# Node ids, service names and instance addresses (IPv6 brackets included).
_VALID_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9_.:/@\[\]-]+$")

_RE2_SPECIAL = set("\\.+*?()|[]{}^$")


def validate_identifier(value: str) -> str:
    """Check that *value* only uses characters allowed in identifiers.

    Parameters:
        value: Node id, service name or instance address.

    Returns:
        The value unchanged.

    Raises:
        InvalidIdentifier: If the value is empty or contains characters such
                           as quotes, braces, commas or whitespace.
    """
    if not isinstance(value, str) or not _VALID_IDENTIFIER_RE.match(value):
        raise InvalidIdentifier(
            f"Invalid identifier {value!r}. Only alphanumeric characters, "
            "dots, colons, slashes, brackets, '@', hyphens and underscores "
            "are allowed."
        )
    return value


def quote(value: str) -> str:
    """Render *value* as a double-quoted PromQL string literal."""
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
    )
    return f'"{escaped}"'


def re2_escape(value: str) -> str:
    """Escape RE2 metacharacters in *value*."""
    return "".join(f"\\{ch}" if ch in _RE2_SPECIAL else ch for ch in value)


def regex_union(values: Iterable[str]) -> str:
    """Join validated, escaped *values* into an ``a|b|c`` alternation."""
    return "|".join(re2_escape(validate_identifier(v)) for v in values)


def eq(label: str, value: str) -> str:
    """``label="value"`` with *value* validated."""
    return f"{label}={quote(validate_identifier(value))}"


def neq(label: str, value: str) -> str:
    """``label!="value"``.  *value* is a literal chosen by this package."""
    return f"{label}!={quote(value)}"


def regex_match(label: str, values: Iterable[str]) -> str:
    """``label=~"a|b"`` over validated *values*."""
    return f"{label}=~{quote(regex_union(values))}"


def selector(metric: str, *matchers: str) -> str:
    """Render ``metric{m1,m2}``; ``metric{}`` when there are no matchers."""
    return f"{metric}{{{','.join(matchers)}}}"
