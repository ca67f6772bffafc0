"""Kubernetes SDK clients built from a resolved ClientConfig."""

from __future__ import annotations

import atexit
import os
import tempfile

from kubernetes import client as k8s_client

from kube_client_config.client_config import ClientConfig

# Content -> temp file path. The SDK keeps file paths, so files live until exit.
_temp_files: dict[bytes, str] = {}


def _cleanup_temp_files() -> None:
    for path in _temp_files.values():
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
    _temp_files.clear()


def _temp_file_with_content(content: bytes) -> str:
    if not _temp_files:
        atexit.register(_cleanup_temp_files)
    if content in _temp_files:
        return _temp_files[content]
    fd, name = tempfile.mkstemp(prefix="kube-client-")
    with os.fdopen(fd, "wb") as handle:
        handle.write(content)
    os.chmod(name, 0o600)
    _temp_files[content] = name
    return name


def build_configuration(client_config: ClientConfig) -> k8s_client.Configuration:
    """Translate a ClientConfig into a standalone kubernetes SDK Configuration."""
    configuration = k8s_client.Configuration(host=client_config.cluster_url)
    if client_config.authorization is not None:
        configuration.api_key["authorization"] = client_config.authorization
    configuration.verify_ssl = not client_config.accept_invalid_certs
    if client_config.root_certificates:
        configuration.ssl_ca_cert = _temp_file_with_content(client_config.root_certificates_pem().encode("ascii"))
    if client_config.identity is not None:
        configuration.cert_file = _temp_file_with_content(client_config.identity.certificate_chain_pem())
        configuration.key_file = _temp_file_with_content(client_config.identity.private_key_pem())
    return configuration


def new_api_client(client_config: ClientConfig) -> k8s_client.ApiClient:
    """Create an isolated Kubernetes API client for the resolved configuration.

    Nothing touches the SDK's process-wide default Configuration, so clients for
    different clusters can be used side by side.
    """
    return k8s_client.ApiClient(configuration=build_configuration(client_config))
