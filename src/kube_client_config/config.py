"""Library settings with environment variable overrides, and kubeconfig file loading."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from kube_client_config.errors import ErrorKind, KubeConfigError
from kube_client_config.models import RawConfig

log = structlog.get_logger()

DEFAULT_KUBECONFIG = Path("~/.kube/config")

# Long enough for watch-style requests to stay open between server-side timeouts.
DEFAULT_TIMEOUT_SECONDS = 295.0

# Longest certificate lifetime (in days) some TLS backends still accept for trust roots.
DEFAULT_CA_MAX_DAYS = 824


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _kubeconfig_from_env() -> Path:
    raw = os.environ.get("KUBECONFIG", "")
    # KUBECONFIG may hold a path list; only the first entry is read.
    for entry in raw.split(os.pathsep):
        if entry.strip():
            return Path(entry.strip()).expanduser()
    return DEFAULT_KUBECONFIG.expanduser()


@dataclass(frozen=True)
class Settings:
    """Resolution settings with environment variable overrides."""

    kubeconfig_path: Path = field(default_factory=_kubeconfig_from_env)
    timeout_seconds: float = field(
        default_factory=lambda: float(os.environ.get("KUBE_CLIENT_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS)))
    )
    relax_long_lived_ca: bool = field(default_factory=lambda: _env_flag("KUBE_CLIENT_RELAX_LONG_LIVED_CA"))
    ca_max_days: int = field(
        default_factory=lambda: int(os.environ.get("KUBE_CLIENT_CA_MAX_DAYS", str(DEFAULT_CA_MAX_DAYS)))
    )


def get_settings() -> Settings:
    """Return settings with environment variable overrides applied."""
    return Settings()


def parse_raw_config(document: Any, source: str = "<memory>") -> RawConfig:
    """Validate an already-parsed kubeconfig mapping into a RawConfig.

    Raises:
        KubeConfigError: DECODE_ERROR if the document does not match the kubeconfig schema.
    """
    if document is None:
        document = {}
    if not isinstance(document, dict):
        msg = f"Kubeconfig {source} must be a mapping, got {type(document).__name__}."
        raise KubeConfigError(ErrorKind.DECODE_ERROR, msg)
    try:
        return RawConfig.model_validate(document)
    except ValidationError as err:
        msg = f"Kubeconfig {source} is malformed: {err}"
        raise KubeConfigError(ErrorKind.DECODE_ERROR, msg) from err


def load_raw_config(path: Path) -> RawConfig:
    """Read and parse a kubeconfig YAML file.

    Args:
        path: Location of the kubeconfig file.

    Returns:
        The parsed, immutable RawConfig.

    Raises:
        KubeConfigError: CONFIG_MISSING if the file does not exist or cannot be read,
            DECODE_ERROR if it is not valid YAML or does not match the schema.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as err:
        msg = f"Kubeconfig file not found or unreadable: {path}. Set KUBECONFIG to point to your config file."
        raise KubeConfigError(ErrorKind.CONFIG_MISSING, msg) from err

    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as err:
        msg = f"Kubeconfig {path} is not valid YAML: {err}"
        raise KubeConfigError(ErrorKind.DECODE_ERROR, msg) from err

    raw = parse_raw_config(document, source=str(path))
    log.debug(
        "kubeconfig_loaded",
        path=str(path),
        clusters=len(raw.clusters),
        contexts=len(raw.contexts),
        users=len(raw.users),
    )
    return raw
