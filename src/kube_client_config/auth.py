"""Authorization header selection.

Each credential source is an independent attempt returning a header value or
None. Attempts run in ``AUTH_ATTEMPTS`` order and the first value wins:

1. static token on the user, or the contents of its token file
2. token returned by the exec plugin
3. username and password as HTTP basic auth
"""

from __future__ import annotations

import asyncio
import base64
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

import structlog

from kube_client_config.models import AuthInfo, ExecCredentialStatus
from kube_client_config.utils import decode_text, read_file_bytes, resolve_path
from kube_client_config.validation import validate_header_value

log = structlog.get_logger()

AUTHORIZATION = "Authorization"


@dataclass(frozen=True)
class CredentialSources:
    user: AuthInfo
    exec_status: ExecCredentialStatus | None = None
    base_dir: Path | None = None


AuthAttempt = Callable[[CredentialSources], Awaitable[str | None]]


def bearer(token: str) -> str:
    return f"Bearer {token}"


def basic(username: str, password: str) -> str:
    encoded = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
    return f"Basic {encoded}"


async def user_token(sources: CredentialSources) -> str | None:
    """Static token, else the token file's contents. An empty file yields None.

    A token file that cannot be read raises CONFIG_MISSING rather than falling
    through to the next source.
    """
    user = sources.user
    if user.token:
        return bearer(user.token)
    if user.token_file:
        path = resolve_path(user.token_file, sources.base_dir)
        data = await asyncio.to_thread(read_file_bytes, path, "token file")
        token = decode_text(data, f"token file {path}")
        if token:
            return bearer(token)
    return None


async def exec_token(sources: CredentialSources) -> str | None:
    if sources.exec_status is not None and sources.exec_status.token:
        return bearer(sources.exec_status.token)
    return None


async def basic_auth(sources: CredentialSources) -> str | None:
    user = sources.user
    if user.username is not None and user.password is not None:
        return basic(user.username, user.password)
    return None


AUTH_ATTEMPTS: tuple[AuthAttempt, ...] = (user_token, exec_token, basic_auth)


async def authorization_header(
    sources: CredentialSources,
    attempts: tuple[AuthAttempt, ...] = AUTH_ATTEMPTS,
) -> str | None:
    """Return the Authorization value from the first attempt that yields one, else None."""
    for attempt in attempts:
        value = await attempt(sources)
        if value is not None:
            log.debug("authorization_selected", source=attempt.__name__)
            return validate_header_value(value, what="authorization header")
    log.debug("authorization_not_configured")
    return None
