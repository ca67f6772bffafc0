"""Validation helpers for values that end up on the wire."""

from __future__ import annotations

import re
from urllib.parse import urlsplit

from kube_client_config.errors import ErrorKind, KubeConfigError

# RFC 1123 label: lowercase alphanumeric and hyphens, 1-63 chars, starts/ends with alphanumeric
_NAMESPACE_RE = re.compile(r"^[a-z0-9]([a-z0-9\-]{0,61}[a-z0-9])?$")

_VALID_SCHEMES = {"http", "https"}

# Characters that would split or terminate an HTTP header line.
_FORBIDDEN_HEADER_CHARS = ("\r", "\n", "\0")


def validate_server_url(url: str, kind: ErrorKind = ErrorKind.DECODE_ERROR) -> str:
    """Check that ``url`` is an absolute http(s) URL with a host and a numeric port, if any."""
    try:
        parts = urlsplit(url)
        # Accessing .port raises ValueError for non-numeric or out-of-range ports.
        _ = parts.port
    except ValueError as err:
        msg = f"malformed url {url!r}: {err}"
        raise KubeConfigError(kind, msg) from err

    if parts.scheme not in _VALID_SCHEMES:
        valid = ", ".join(sorted(_VALID_SCHEMES))
        msg = f"malformed url {url!r}: scheme must be one of: {valid}"
        raise KubeConfigError(kind, msg)
    if not parts.hostname:
        msg = f"malformed url {url!r}: missing host"
        raise KubeConfigError(kind, msg)
    return url


def validate_header_value(value: str, what: str = "header value") -> str:
    """Reject values that cannot be sent as a single HTTP header."""
    if any(ch in value for ch in _FORBIDDEN_HEADER_CHARS):
        msg = f"Invalid {what}: contains control characters"
        raise KubeConfigError(ErrorKind.DECODE_ERROR, msg)
    return value


def validate_namespace(namespace: str) -> str:
    """Validate a Kubernetes namespace name against RFC 1123."""
    if not _NAMESPACE_RE.match(namespace):
        msg = f"Invalid namespace: {namespace!r}. Must be a valid RFC 1123 label."
        raise KubeConfigError(ErrorKind.CONFIG_INVALID, msg)
    return namespace
