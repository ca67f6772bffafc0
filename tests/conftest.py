"""Shared test fixtures for all test modules."""

from __future__ import annotations

from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import ec
from factories import cert_pem, make_certificate

from kube_client_config.config import Settings


@pytest.fixture(autouse=True)
def _no_incluster_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the host's service environment and KUBECONFIG out of every test."""
    for var in (
        "KUBERNETES_SERVICE_HOST",
        "KUBERNETES_SERVICE_PORT",
        "KUBECONFIG",
        "KUBE_CLIENT_TIMEOUT_SECONDS",
        "KUBE_CLIENT_RELAX_LONG_LIVED_CA",
        "KUBE_CLIENT_CA_MAX_DAYS",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(scope="session")
def ca_pair() -> tuple[x509.Certificate, ec.EllipticCurvePrivateKey]:
    return make_certificate("test-ca", is_ca=True)


@pytest.fixture(scope="session")
def client_pair(
    ca_pair: tuple[x509.Certificate, ec.EllipticCurvePrivateKey],
) -> tuple[x509.Certificate, ec.EllipticCurvePrivateKey]:
    ca, ca_key = ca_pair
    return make_certificate("bob", issuer=ca, issuer_key=ca_key)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        kubeconfig_path=tmp_path / "config",
        timeout_seconds=295.0,
        relax_long_lived_ca=False,
        ca_max_days=824,
    )


@pytest.fixture
def service_account_dir(tmp_path: Path, ca_pair: tuple[x509.Certificate, ec.EllipticCurvePrivateKey]) -> Path:
    """A populated service-account mount."""
    mount = tmp_path / "serviceaccount"
    mount.mkdir()
    (mount / "token").write_text("sa-token\n")
    (mount / "namespace").write_text("team-a\n")
    (mount / "ca.crt").write_bytes(cert_pem(ca_pair[0]))
    return mount
