"""Tests for the Authorization header precedence chain."""

from __future__ import annotations

import base64
from pathlib import Path

import pytest

from kube_client_config.auth import (
    AUTH_ATTEMPTS,
    CredentialSources,
    authorization_header,
    basic_auth,
    exec_token,
    user_token,
)
from kube_client_config.errors import ErrorKind, KubeConfigError
from kube_client_config.models import AuthInfo, ExecCredentialStatus


def _user(**fields: str) -> AuthInfo:
    return AuthInfo.model_validate(fields)


class TestPrecedence:
    def test_attempt_order(self) -> None:
        assert AUTH_ATTEMPTS == (user_token, exec_token, basic_auth)

    async def test_static_token_beats_basic_auth(self) -> None:
        sources = CredentialSources(user=_user(token="abc123", username="bob", password="pw"))
        assert await authorization_header(sources) == "Bearer abc123"

    async def test_static_token_beats_exec_token(self) -> None:
        sources = CredentialSources(user=_user(token="static"), exec_status=ExecCredentialStatus(token="dynamic"))
        assert await authorization_header(sources) == "Bearer static"

    async def test_token_file_beats_exec_token(self, tmp_path: Path) -> None:
        (tmp_path / "token").write_text("file-token\n")
        sources = CredentialSources(
            user=_user(tokenFile="token"),
            exec_status=ExecCredentialStatus(token="dynamic"),
            base_dir=tmp_path,
        )
        assert await authorization_header(sources) == "Bearer file-token"

    async def test_exec_token_beats_basic_auth(self) -> None:
        sources = CredentialSources(
            user=_user(username="bob", password="pw"),
            exec_status=ExecCredentialStatus(token="dynamic"),
        )
        assert await authorization_header(sources) == "Bearer dynamic"

    async def test_basic_auth(self) -> None:
        sources = CredentialSources(user=_user(username="bob", password="s3cret"))
        expected = "Basic " + base64.b64encode(b"bob:s3cret").decode()
        assert await authorization_header(sources) == expected

    async def test_username_without_password_is_ignored(self) -> None:
        assert await authorization_header(CredentialSources(user=_user(username="bob"))) is None

    async def test_nothing_configured(self) -> None:
        assert await authorization_header(CredentialSources(user=_user())) is None

    async def test_exec_status_without_token_falls_through(self) -> None:
        sources = CredentialSources(
            user=_user(username="bob", password="pw"),
            exec_status=ExecCredentialStatus(clientCertificateData="CERT", clientKeyData="KEY"),
        )
        assert (await authorization_header(sources) or "").startswith("Basic ")

    async def test_custom_attempt_chain(self) -> None:
        async def fixed(_: CredentialSources) -> str | None:
            return "Bearer injected"

        sources = CredentialSources(user=_user(token="static"))
        assert await authorization_header(sources, attempts=(fixed, user_token)) == "Bearer injected"


class TestTokenFile:
    async def test_empty_file_falls_through(self, tmp_path: Path) -> None:
        (tmp_path / "token").write_text("\n")
        sources = CredentialSources(user=_user(tokenFile="token", username="u", password="p"), base_dir=tmp_path)
        assert (await authorization_header(sources) or "").startswith("Basic ")

    async def test_unreadable_file_is_surfaced(self, tmp_path: Path) -> None:
        sources = CredentialSources(user=_user(tokenFile="missing"), base_dir=tmp_path)
        with pytest.raises(KubeConfigError, match="token file") as exc_info:
            await authorization_header(sources)
        assert exc_info.value.kind is ErrorKind.CONFIG_MISSING

    async def test_undecodable_file_is_decode_error(self, tmp_path: Path) -> None:
        (tmp_path / "token").write_bytes(b"\xff\xfe")
        sources = CredentialSources(user=_user(tokenFile="token"), base_dir=tmp_path)
        with pytest.raises(KubeConfigError, match="not valid UTF-8") as exc_info:
            await authorization_header(sources)
        assert exc_info.value.kind is ErrorKind.DECODE_ERROR


class TestHeaderValidation:
    async def test_token_with_newline_rejected(self) -> None:
        with pytest.raises(KubeConfigError, match="Invalid authorization header") as exc_info:
            await authorization_header(CredentialSources(user=_user(token="abc\r\nX-Evil: 1")))
        assert exc_info.value.kind is ErrorKind.DECODE_ERROR
