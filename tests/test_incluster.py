"""Tests for in-cluster resolution from service environment variables and mounted files."""

from __future__ import annotations

from pathlib import Path

import pytest
from factories import CertPair

from kube_client_config.errors import ErrorKind, KubeConfigError
from kube_client_config.incluster import (
    CA_FILE,
    NAMESPACE_FILE,
    SERVICE_HOSTENV,
    SERVICE_PORTENV,
    TOKEN_FILE,
    kube_server,
    resolve_in_cluster,
)

ENV = {SERVICE_HOSTENV: "10.96.0.1", SERVICE_PORTENV: "443"}


class TestKubeServer:
    def test_composes_https_url(self) -> None:
        assert kube_server(ENV) == "https://10.96.0.1:443"

    def test_brackets_ipv6_host(self) -> None:
        assert kube_server({SERVICE_HOSTENV: "fd00::1", SERVICE_PORTENV: "443"}) == "https://[fd00::1]:443"

    @pytest.mark.parametrize("env", [{}, {SERVICE_HOSTENV: "10.96.0.1"}, {SERVICE_PORTENV: "443"}])
    def test_missing_variable(self, env: dict[str, str]) -> None:
        assert kube_server(env) is None

    def test_reads_process_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(SERVICE_HOSTENV, "kubernetes.default.svc")
        monkeypatch.setenv(SERVICE_PORTENV, "6443")
        assert kube_server() == "https://kubernetes.default.svc:6443"


class TestResolveInCluster:
    async def test_resolves_everything(self, service_account_dir: Path, ca_pair: CertPair) -> None:
        env = await resolve_in_cluster(ENV, service_account_dir)
        assert env.server_url == "https://10.96.0.1:443"
        assert env.token == "sa-token"
        assert env.namespace == "team-a"
        assert env.ca_certs == (ca_pair[0],)

    async def test_only_host_set_names_both_variables(self, service_account_dir: Path) -> None:
        with pytest.raises(KubeConfigError) as exc_info:
            await resolve_in_cluster({SERVICE_HOSTENV: "10.96.0.1"}, service_account_dir)
        assert exc_info.value.kind is ErrorKind.CONFIG_MISSING
        assert SERVICE_HOSTENV in str(exc_info.value)
        assert SERVICE_PORTENV in str(exc_info.value)

    @pytest.mark.parametrize("missing", [TOKEN_FILE, NAMESPACE_FILE, CA_FILE])
    async def test_missing_mounted_file_is_named(self, service_account_dir: Path, missing: str) -> None:
        (service_account_dir / missing).unlink()
        with pytest.raises(KubeConfigError) as exc_info:
            await resolve_in_cluster(ENV, service_account_dir)
        assert exc_info.value.kind is ErrorKind.CONFIG_MISSING
        assert str(service_account_dir / missing) in str(exc_info.value)

    async def test_invalid_port(self, service_account_dir: Path) -> None:
        with pytest.raises(KubeConfigError, match="malformed url") as exc_info:
            await resolve_in_cluster({SERVICE_HOSTENV: "10.96.0.1", SERVICE_PORTENV: "https"}, service_account_dir)
        assert exc_info.value.kind is ErrorKind.CONFIG_INVALID

    async def test_garbage_ca(self, service_account_dir: Path) -> None:
        (service_account_dir / CA_FILE).write_text("not a certificate")
        with pytest.raises(KubeConfigError) as exc_info:
            await resolve_in_cluster(ENV, service_account_dir)
        assert exc_info.value.kind is ErrorKind.DECODE_ERROR

    async def test_rotated_token_is_reread(self, service_account_dir: Path) -> None:
        first = await resolve_in_cluster(ENV, service_account_dir)
        (service_account_dir / TOKEN_FILE).write_text("rotated-token")
        second = await resolve_in_cluster(ENV, service_account_dir)
        assert first.token == "sa-token"
        assert second.token == "rotated-token"

    @pytest.mark.parametrize("name", [TOKEN_FILE, NAMESPACE_FILE])
    async def test_undecodable_mounted_file(self, service_account_dir: Path, name: str) -> None:
        (service_account_dir / name).write_bytes(b"\xff\xfe")
        with pytest.raises(KubeConfigError, match="not valid UTF-8") as exc_info:
            await resolve_in_cluster(ENV, service_account_dir)
        assert exc_info.value.kind is ErrorKind.DECODE_ERROR
        assert str(service_account_dir / name) in str(exc_info.value)
