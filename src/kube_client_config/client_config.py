"""Assemble the final, immutable client configuration."""

from __future__ import annotations

import ssl
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

import structlog
from cryptography import x509
from cryptography.hazmat.primitives import serialization

from kube_client_config.auth import AUTHORIZATION, CredentialSources, authorization_header, bearer, user_token
from kube_client_config.certs import ClientIdentity, build_identity
from kube_client_config.config import Settings, get_settings
from kube_client_config.errors import ErrorKind, KubeConfigError
from kube_client_config.exec_credential import invoke
from kube_client_config.incluster import SERVICE_ACCOUNT_DIR, resolve_in_cluster
from kube_client_config.loader import ConfigLoader
from kube_client_config.models import ExecCredentialStatus, RawConfig, Selectors
from kube_client_config.trust import TrustPolicy, select_trust_policy
from kube_client_config.validation import validate_header_value, validate_server_url

log = structlog.get_logger()


def _set_authorization(headers: dict[str, str], value: str) -> None:
    # Two credential sources writing Authorization is a bug in the precedence chain.
    assert AUTHORIZATION not in headers, "Authorization header already set"
    headers[AUTHORIZATION] = value


@dataclass(frozen=True)
class ClientConfig:
    """Everything an HTTP client needs to talk to one API server.

    Built once per resolution and never mutated; use ``dataclasses.replace``
    to derive a variant (for example a different ``timeout``).
    """

    cluster_url: str
    default_namespace: str = "default"
    root_certificates: tuple[x509.Certificate, ...] = ()
    identity: ClientIdentity | None = None
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    timeout: float | None = None
    accept_invalid_certs: bool = False

    @property
    def authorization(self) -> str | None:
        return self.headers.get(AUTHORIZATION)

    def root_certificates_pem(self) -> str:
        return "".join(c.public_bytes(serialization.Encoding.PEM).decode("ascii") for c in self.root_certificates)

    def ssl_context(self) -> ssl.SSLContext:
        """Build a client-side SSLContext carrying the trust roots, identity and verification mode."""
        if self.root_certificates:
            context = ssl.create_default_context(cadata=self.root_certificates_pem())
        else:
            context = ssl.create_default_context()

        if self.accept_invalid_certs:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

        if self.identity is not None:
            # load_cert_chain only reads from files; the directory is removed right after.
            with tempfile.TemporaryDirectory(prefix="kube-client-") as tmp:
                cert_path = Path(tmp) / "client.crt"
                key_path = Path(tmp) / "client.key"
                cert_path.write_bytes(self.identity.certificate_chain_pem())
                key_path.write_bytes(self.identity.private_key_pem())
                key_path.chmod(0o600)
                context.load_cert_chain(certfile=str(cert_path), keyfile=str(key_path))
        return context

    @classmethod
    async def from_cluster_env(
        cls,
        environ: Mapping[str, str] | None = None,
        service_account_dir: Path = SERVICE_ACCOUNT_DIR,
    ) -> ClientConfig:
        """Configuration for a pod talking to its own cluster via the mounted service account."""
        env = await resolve_in_cluster(environ, service_account_dir)
        headers: dict[str, str] = {}
        _set_authorization(headers, validate_header_value(bearer(env.token), what="bearer token"))
        return cls(
            cluster_url=env.server_url,
            default_namespace=env.namespace,
            root_certificates=env.ca_certs,
            headers=MappingProxyType(headers),
            timeout=None,
            accept_invalid_certs=False,
        )

    @classmethod
    async def from_raw_config(
        cls,
        raw: RawConfig,
        selectors: Selectors | None = None,
        *,
        base_dir: Path | None = None,
        settings: Settings | None = None,
        trust_policy: TrustPolicy | None = None,
    ) -> ClientConfig:
        """Configuration from an already-parsed kubeconfig document."""
        loader = ConfigLoader.load(raw, selectors, base_dir=base_dir)
        return await _from_loader(loader, settings or get_settings(), trust_policy)

    @classmethod
    async def from_kube_config(
        cls,
        selectors: Selectors | None = None,
        path: Path | None = None,
        *,
        settings: Settings | None = None,
        trust_policy: TrustPolicy | None = None,
    ) -> ClientConfig:
        """Configuration from a kubeconfig file, ``KUBECONFIG`` or ``~/.kube/config`` by default."""
        settings = settings or get_settings()
        loader = await ConfigLoader.from_file(path or settings.kubeconfig_path, selectors)
        return await _from_loader(loader, settings, trust_policy)

    @classmethod
    async def infer(
        cls,
        selectors: Selectors | None = None,
        *,
        settings: Settings | None = None,
        trust_policy: TrustPolicy | None = None,
    ) -> ClientConfig:
        """Try the in-cluster environment first, then fall back to the kubeconfig file."""
        try:
            return await cls.from_cluster_env()
        except KubeConfigError as err:
            log.debug("incluster_config_unavailable", error=str(err), kind=err.kind.value)
        log.debug("falling_back_to_kubeconfig")
        return await cls.from_kube_config(selectors, settings=settings, trust_policy=trust_policy)


async def _from_loader(loader: ConfigLoader, settings: Settings, trust_policy: TrustPolicy | None) -> ClientConfig:
    user = loader.user
    exec_status: ExecCredentialStatus | None = None
    # The plugin only runs when the token and token file yield nothing.
    if user.exec is not None:
        static = await user_token(CredentialSources(user=user, base_dir=loader.base_dir))
        if static is None:
            exec_status = await invoke(user.exec, loader.base_dir)
    return await assemble(
        loader,
        exec_status,
        trust_policy=trust_policy or select_trust_policy(settings),
        timeout=settings.timeout_seconds,
    )


async def _resolve_identity(loader: ConfigLoader, exec_status: ExecCredentialStatus | None) -> ClientIdentity:
    try:
        return await loader.identity()
    except KubeConfigError as err:
        if err.kind is not ErrorKind.IDENTITY_UNAVAILABLE:
            raise
        if exec_status is None or not exec_status.has_client_certificate:
            raise
    # Plugins return PEM text, not base64.
    assert exec_status.client_certificate_data is not None
    assert exec_status.client_key_data is not None
    return build_identity(
        exec_status.client_certificate_data.encode("utf-8"),
        exec_status.client_key_data.encode("utf-8"),
    )


async def assemble(
    loader: ConfigLoader,
    exec_status: ExecCredentialStatus | None = None,
    *,
    trust_policy: TrustPolicy | None = None,
    timeout: float | None = None,
) -> ClientConfig:
    """Combine the bound cluster and user (plus any exec plugin status) into a ClientConfig.

    Args:
        loader: The resolved cluster/user/context selection.
        exec_status: Status returned by the user's exec plugin, if it was run.
        trust_policy: Strategy deciding whether a CA forces relaxed verification.
        timeout: Request timeout in seconds; the settings default when omitted.

    Raises:
        KubeConfigError: DECODE_ERROR for a malformed server URL, CA bundle, client
            identity or header value; CONFIG_MISSING for unreadable referenced files.
    """
    if trust_policy is None:
        trust_policy = select_trust_policy(get_settings())
    if timeout is None:
        timeout = get_settings().timeout_seconds

    cluster_url = validate_server_url(loader.cluster.server)
    accept_invalid_certs = False

    root_certificates: tuple[x509.Certificate, ...] = ()
    ca_bundle = await loader.ca_bundle()
    if ca_bundle is not None:
        root_certificates = tuple(ca_bundle)
        flags = [trust_policy.requires_invalid_certs(ca) for ca in root_certificates]
        accept_invalid_certs = any(flags)

    identity: ClientIdentity | None = None
    try:
        identity = await _resolve_identity(loader, exec_status)
    except KubeConfigError as err:
        log.debug("client_identity_not_loaded", user=loader.user_name, error=str(err))
        # Last resort only when the cluster asks for it.
        if loader.cluster.insecure_skip_tls_verify:
            accept_invalid_certs = True
        elif err.kind is not ErrorKind.IDENTITY_UNAVAILABLE:
            raise

    headers: dict[str, str] = {}
    sources = CredentialSources(user=loader.user, exec_status=exec_status, base_dir=loader.base_dir)
    value = await authorization_header(sources)
    if value is not None:
        _set_authorization(headers, value)

    log.debug(
        "client_config_assembled",
        cluster=loader.cluster_name,
        user=loader.user_name,
        root_certificates=len(root_certificates),
        has_identity=identity is not None,
        accept_invalid_certs=accept_invalid_certs,
    )
    return ClientConfig(
        cluster_url=cluster_url,
        default_namespace=loader.default_namespace,
        root_certificates=root_certificates,
        identity=identity,
        headers=MappingProxyType(headers),
        timeout=timeout,
        accept_invalid_certs=accept_invalid_certs,
    )
