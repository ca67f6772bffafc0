"""In-cluster resolution from service environment variables and the mounted service account."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import structlog
from cryptography import x509

from kube_client_config.certs import parse_certificates
from kube_client_config.errors import ErrorKind, KubeConfigError
from kube_client_config.utils import decode_text
from kube_client_config.validation import validate_namespace, validate_server_url

log = structlog.get_logger()

SERVICE_HOSTENV = "KUBERNETES_SERVICE_HOST"
SERVICE_PORTENV = "KUBERNETES_SERVICE_PORT"

SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")
TOKEN_FILE = "token"
NAMESPACE_FILE = "namespace"
CA_FILE = "ca.crt"


@dataclass(frozen=True)
class InClusterEnvironment:
    """Everything a pod needs to reach its own API server."""

    server_url: str
    namespace: str
    ca_certs: tuple[x509.Certificate, ...]
    token: str


def kube_server(environ: Mapping[str, str] | None = None) -> str | None:
    """Compose the API server URL from the service environment, or None if either variable is unset."""
    env = os.environ if environ is None else environ
    host = env.get(SERVICE_HOSTENV)
    port = env.get(SERVICE_PORTENV)
    if not host or not port:
        return None
    # IPv6 service hosts need brackets to form a valid authority.
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    return f"https://{host}:{port}"


async def _read_mounted(path: Path) -> bytes:
    try:
        return await asyncio.to_thread(path.read_bytes)
    except OSError as err:
        msg = f"Unable to load in-cluster config, failed to read {path}: {err.strerror or err}"
        raise KubeConfigError(ErrorKind.CONFIG_MISSING, msg) from err


async def load_token(service_account_dir: Path = SERVICE_ACCOUNT_DIR) -> str:
    """Read the service-account bearer token. Re-read on every call so rotated tokens are picked up."""
    path = service_account_dir / TOKEN_FILE
    return decode_text(await _read_mounted(path), f"in-cluster token {path}")


async def load_default_ns(service_account_dir: Path = SERVICE_ACCOUNT_DIR) -> str:
    path = service_account_dir / NAMESPACE_FILE
    return validate_namespace(decode_text(await _read_mounted(path), f"in-cluster namespace {path}"))


async def load_cert(service_account_dir: Path = SERVICE_ACCOUNT_DIR) -> list[x509.Certificate]:
    path = service_account_dir / CA_FILE
    data = await _read_mounted(path)
    return parse_certificates(data, what=f"in-cluster CA certificate {path}")


async def resolve_in_cluster(
    environ: Mapping[str, str] | None = None,
    service_account_dir: Path = SERVICE_ACCOUNT_DIR,
) -> InClusterEnvironment:
    """Resolve server URL, namespace, CA and token for a pod running inside the cluster.

    Args:
        environ: Environment to read; defaults to ``os.environ``.
        service_account_dir: Directory holding the mounted service-account files.

    Raises:
        KubeConfigError: CONFIG_MISSING if a variable or mounted file is absent,
            CONFIG_INVALID if the composed server URL is malformed, DECODE_ERROR if
            a mounted file cannot be decoded.
    """
    server = kube_server(environ)
    if server is None:
        msg = f"Unable to load in-cluster config, {SERVICE_HOSTENV} and {SERVICE_PORTENV} must be defined"
        raise KubeConfigError(ErrorKind.CONFIG_MISSING, msg)
    validate_server_url(server, kind=ErrorKind.CONFIG_INVALID)

    ca_certs = await load_cert(service_account_dir)
    token = await load_token(service_account_dir)
    namespace = await load_default_ns(service_account_dir)

    log.debug("incluster_config_resolved", server=server, namespace=namespace, ca_certs=len(ca_certs))
    return InClusterEnvironment(
        server_url=server,
        namespace=namespace,
        ca_certs=tuple(ca_certs),
        token=token,
    )
