"""Shared helpers for decoding inline data and reading referenced files."""

from __future__ import annotations

import base64
import binascii
from datetime import datetime
from pathlib import Path

from kube_client_config.errors import ErrorKind, KubeConfigError


def parse_iso_timestamp(ts_str: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp string to a timezone-aware datetime.

    Returns None for empty/None input or unparseable strings, enabling
    graceful degradation when plugin timestamps are malformed.
    """
    if not ts_str:
        return None
    try:
        return datetime.fromisoformat(ts_str)
    except (ValueError, TypeError):
        return None


def decode_base64(data: str, what: str) -> bytes:
    """Decode standard base64, ignoring embedded whitespace."""
    try:
        return base64.b64decode("".join(data.split()), validate=True)
    except (binascii.Error, ValueError) as err:
        msg = f"Invalid base64 in {what}: {err}"
        raise KubeConfigError(ErrorKind.DECODE_ERROR, msg) from err


def decode_text(data: bytes, what: str) -> str:
    """Decode UTF-8 file contents, stripping surrounding whitespace."""
    try:
        return data.decode("utf-8").strip()
    except UnicodeDecodeError as err:
        msg = f"Invalid {what}: not valid UTF-8 text ({err.reason} at byte {err.start})"
        raise KubeConfigError(ErrorKind.DECODE_ERROR, msg) from err


def resolve_path(path: str, base_dir: Path | None) -> Path:
    """Resolve a kubeconfig-relative path against the kubeconfig's directory."""
    candidate = Path(path).expanduser()
    if base_dir is not None and not candidate.is_absolute():
        return base_dir / candidate
    return candidate


def read_file_bytes(path: Path, what: str) -> bytes:
    try:
        return path.read_bytes()
    except OSError as err:
        msg = f"Unable to read {what} from {path}: {err.strerror or err}"
        raise KubeConfigError(ErrorKind.CONFIG_MISSING, msg) from err


def data_or_file(
    data: str | None,
    file: str | None,
    what: str,
    base_dir: Path | None = None,
    *,
    base64_data: bool = True,
) -> bytes | None:
    """Return inline data if present, else the contents of the referenced file, else None.

    Args:
        data: Inline value from the document.
        file: Path to a file holding the same material.
        what: Human-readable name used in error messages.
        base_dir: Directory relative paths are resolved against.
        base64_data: Whether the inline value is base64 encoded.
    """
    if data:
        return decode_base64(data, what) if base64_data else data.encode("utf-8")
    if file:
        return read_file_bytes(resolve_path(file, base_dir), what)
    return None
