"""Select the effective cluster, context and user from a kubeconfig document."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, TypeVar

import structlog
from cryptography import x509

from kube_client_config.certs import ClientIdentity, build_identity, parse_certificates
from kube_client_config.config import load_raw_config
from kube_client_config.errors import ErrorKind, KubeConfigError
from kube_client_config.models import AuthInfo, Cluster, Context, RawConfig, Selectors
from kube_client_config.utils import data_or_file

log = structlog.get_logger()

DEFAULT_NAMESPACE = "default"


class _Named(Protocol):
    name: str


_N = TypeVar("_N", bound=_Named)


def _find(entries: Iterable[_N], kind: str, name: str) -> _N:
    entries = list(entries)
    for entry in entries:
        if entry.name == name:
            return entry
    valid = ", ".join(sorted(e.name for e in entries)) or "none"
    msg = f"{kind} {name!r} not found in kubeconfig. Valid {kind}s: {valid}"
    raise KubeConfigError(ErrorKind.NOT_FOUND, msg)


@dataclass(frozen=True)
class ConfigLoader:
    """The cluster, user and context bound by one resolution, plus derived accessors."""

    context_name: str
    context: Context
    cluster_name: str
    cluster: Cluster
    user_name: str
    user: AuthInfo
    # Directory relative file references are resolved against.
    base_dir: Path | None = None

    @classmethod
    def load(
        cls,
        raw: RawConfig,
        selectors: Selectors | None = None,
        base_dir: Path | None = None,
    ) -> ConfigLoader:
        """Bind exactly one context, cluster and user.

        Each name comes from the explicit selector, else from the current context.

        Raises:
            KubeConfigError: SELECTION_MISSING if a name cannot be determined,
                NOT_FOUND if a named entry is absent from the document.
        """
        selectors = selectors or Selectors()

        context_name = selectors.context or raw.current_context
        if not context_name:
            msg = "Unable to determine context: no context selected and current-context is not set"
            raise KubeConfigError(ErrorKind.SELECTION_MISSING, msg)
        context = _find(raw.contexts, "context", context_name).context

        cluster_name = selectors.cluster or context.cluster
        if not cluster_name:
            msg = f"Unable to determine cluster: none selected and context {context_name!r} names no cluster"
            raise KubeConfigError(ErrorKind.SELECTION_MISSING, msg)

        user_name = selectors.user or context.user
        if not user_name:
            msg = f"Unable to determine user: none selected and context {context_name!r} names no user"
            raise KubeConfigError(ErrorKind.SELECTION_MISSING, msg)

        cluster = _find(raw.clusters, "cluster", cluster_name).cluster
        user = _find(raw.users, "user", user_name).user

        log.debug("kubeconfig_selection_resolved", context=context_name, cluster=cluster_name, user=user_name)
        return cls(
            context_name=context_name,
            context=context,
            cluster_name=cluster_name,
            cluster=cluster,
            user_name=user_name,
            user=user,
            base_dir=base_dir,
        )

    @classmethod
    async def from_file(cls, path: Path, selectors: Selectors | None = None) -> ConfigLoader:
        """Read a kubeconfig file and bind a selection from it."""
        raw = await asyncio.to_thread(load_raw_config, path)
        return cls.load(raw, selectors, base_dir=path.expanduser().resolve().parent)

    @property
    def default_namespace(self) -> str:
        return self.context.namespace or DEFAULT_NAMESPACE

    async def ca_bundle(self) -> list[x509.Certificate] | None:
        """Decode the cluster's CA certificates, preferring inline data over the referenced file.

        Returns None when the cluster configures neither.
        """
        data = await asyncio.to_thread(
            data_or_file,
            self.cluster.certificate_authority_data,
            self.cluster.certificate_authority,
            "certificate authority",
            self.base_dir,
        )
        if data is None:
            return None
        return parse_certificates(data, what=f"certificate authority for cluster {self.cluster_name!r}")

    async def identity(self, passphrase: str | None = None) -> ClientIdentity:
        """Build the user's client identity from inline or file-referenced certificate and key.

        Raises:
            KubeConfigError: IDENTITY_UNAVAILABLE if no client certificate is configured,
                DECODE_ERROR if the material is unreadable or the key does not match.
        """
        if not self.user.has_client_certificate:
            msg = f"No client certificate configured for user {self.user_name!r}"
            raise KubeConfigError(ErrorKind.IDENTITY_UNAVAILABLE, msg)

        cert_data = await asyncio.to_thread(
            data_or_file,
            self.user.client_certificate_data,
            self.user.client_certificate,
            "client certificate",
            self.base_dir,
        )
        key_data = await asyncio.to_thread(
            data_or_file,
            self.user.client_key_data,
            self.user.client_key,
            "client key",
            self.base_dir,
        )
        if cert_data is None or key_data is None:
            msg = f"Client certificate for user {self.user_name!r} has no matching client key"
            raise KubeConfigError(ErrorKind.DECODE_ERROR, msg)
        return build_identity(cert_data, key_data, passphrase)
