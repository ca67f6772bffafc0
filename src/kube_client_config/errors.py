"""Error taxonomy shared by every resolution step."""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    """Category of a resolution failure."""

    CONFIG_MISSING = "config_missing"
    CONFIG_INVALID = "config_invalid"
    SELECTION_MISSING = "selection_missing"
    NOT_FOUND = "not_found"
    DECODE_ERROR = "decode_error"
    IDENTITY_UNAVAILABLE = "identity_unavailable"
    EXEC_PROTOCOL_ERROR = "exec_protocol_error"


class KubeConfigError(Exception):
    """A resolution step failed.

    Every failure surfaces as this single type. ``kind`` tells callers which
    category it belongs to and ``str(err)`` is the diagnostic meant to be
    reported verbatim.
    """

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"KubeConfigError(kind={self.kind.value!r}, message={self.message!r})"
