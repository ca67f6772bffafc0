"""Pydantic v2 models for the kubeconfig document and the exec credential protocol."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from kube_client_config.utils import parse_iso_timestamp

# Kubeconfig keys are hyphenated; every model accepts both the wire alias and the field name.
_DOCUMENT_CONFIG = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


def _none_to_empty(value: Any) -> Any:
    # Hand-written kubeconfigs often carry `users: null` or `args: ~`.
    return () if value is None else value


class NamedExtension(BaseModel):
    """A named, free-form extension entry."""

    model_config = _DOCUMENT_CONFIG

    name: str
    extension: Any = None


class Preferences(BaseModel):
    model_config = _DOCUMENT_CONFIG

    colors: bool | None = None
    extensions: tuple[NamedExtension, ...] = ()

    @field_validator("extensions", mode="before")
    @classmethod
    def coerce_null_lists(cls, value: Any) -> Any:
        return _none_to_empty(value)


# --- Clusters ---


class Cluster(BaseModel):
    """Server endpoint and the trust material used to verify it."""

    model_config = _DOCUMENT_CONFIG

    server: str
    certificate_authority: str | None = Field(default=None, alias="certificate-authority")
    certificate_authority_data: str | None = Field(default=None, alias="certificate-authority-data")
    insecure_skip_tls_verify: bool | None = Field(default=None, alias="insecure-skip-tls-verify")
    tls_server_name: str | None = Field(default=None, alias="tls-server-name")
    proxy_url: str | None = Field(default=None, alias="proxy-url")
    extensions: tuple[NamedExtension, ...] = ()

    @field_validator("extensions", mode="before")
    @classmethod
    def coerce_null_lists(cls, value: Any) -> Any:
        return _none_to_empty(value)


class NamedCluster(BaseModel):
    model_config = _DOCUMENT_CONFIG

    name: str
    cluster: Cluster


# --- Contexts ---


class Context(BaseModel):
    """Pairing of a cluster name with a user name."""

    model_config = _DOCUMENT_CONFIG

    cluster: str | None = None
    user: str | None = None
    namespace: str | None = None
    extensions: tuple[NamedExtension, ...] = ()

    @field_validator("extensions", mode="before")
    @classmethod
    def coerce_null_lists(cls, value: Any) -> Any:
        return _none_to_empty(value)


class NamedContext(BaseModel):
    model_config = _DOCUMENT_CONFIG

    name: str
    context: Context


# --- Users ---


class ExecEnvVar(BaseModel):
    model_config = _DOCUMENT_CONFIG

    name: str
    value: str


class ExecConfig(BaseModel):
    """How to run an exec credential plugin."""

    model_config = _DOCUMENT_CONFIG

    command: str
    args: tuple[str, ...] = ()
    env: tuple[ExecEnvVar, ...] = ()
    api_version: str | None = Field(default=None, alias="apiVersion")
    install_hint: str | None = Field(default=None, alias="installHint")
    provide_cluster_info: bool = Field(default=False, alias="provideClusterInfo")

    @field_validator("args", "env", mode="before")
    @classmethod
    def coerce_null_lists(cls, value: Any) -> Any:
        return _none_to_empty(value)


class AuthProviderConfig(BaseModel):
    model_config = _DOCUMENT_CONFIG

    name: str
    config: dict[str, Any] = Field(default_factory=dict)


class AuthInfo(BaseModel):
    """Credential sources for a single user."""

    model_config = _DOCUMENT_CONFIG

    client_certificate: str | None = Field(default=None, alias="client-certificate")
    client_certificate_data: str | None = Field(default=None, alias="client-certificate-data")
    client_key: str | None = Field(default=None, alias="client-key")
    client_key_data: str | None = Field(default=None, alias="client-key-data")
    token: str | None = None
    token_file: str | None = Field(default=None, alias="tokenFile")
    impersonate: str | None = Field(default=None, alias="as")
    impersonate_groups: tuple[str, ...] = Field(default=(), alias="as-groups")
    username: str | None = None
    password: str | None = None
    auth_provider: AuthProviderConfig | None = Field(default=None, alias="auth-provider")
    exec: ExecConfig | None = None
    extensions: tuple[NamedExtension, ...] = ()

    @field_validator("impersonate_groups", "extensions", mode="before")
    @classmethod
    def coerce_null_lists(cls, value: Any) -> Any:
        return _none_to_empty(value)

    @property
    def has_client_certificate(self) -> bool:
        return bool(self.client_certificate_data or self.client_certificate)


class NamedAuthInfo(BaseModel):
    model_config = _DOCUMENT_CONFIG

    name: str
    user: AuthInfo


# --- Document ---


class RawConfig(BaseModel):
    """A parsed kubeconfig document. Immutable once loaded."""

    model_config = _DOCUMENT_CONFIG

    api_version: str | None = Field(default=None, alias="apiVersion")
    kind: str | None = None
    current_context: str | None = Field(default=None, alias="current-context")
    preferences: Preferences = Field(default_factory=Preferences)
    clusters: tuple[NamedCluster, ...] = ()
    contexts: tuple[NamedContext, ...] = ()
    users: tuple[NamedAuthInfo, ...] = ()
    extensions: tuple[NamedExtension, ...] = ()

    @field_validator("clusters", "contexts", "users", "extensions", mode="before")
    @classmethod
    def coerce_null_lists(cls, value: Any) -> Any:
        return _none_to_empty(value)

    @field_validator("preferences", mode="before")
    @classmethod
    def default_preferences(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("current_context", mode="before")
    @classmethod
    def blank_current_context(cls, value: Any) -> Any:
        # `current-context: ""` is what kubectl writes when no context is selected.
        return value or None


@dataclass(frozen=True)
class Selectors:
    """Explicit context, cluster and user names. Unset entries fall back to the current context."""

    context: str | None = None
    cluster: str | None = None
    user: str | None = None


# --- Exec credential protocol ---


class ExecCredentialStatus(BaseModel):
    """Credentials returned by an exec plugin."""

    model_config = _DOCUMENT_CONFIG

    token: str | None = None
    client_certificate_data: str | None = Field(default=None, alias="clientCertificateData")
    client_key_data: str | None = Field(default=None, alias="clientKeyData")
    # Malformed timestamps degrade to None; expiry is informational only.
    expiration_timestamp: datetime | None = Field(default=None, alias="expirationTimestamp")

    @field_validator("expiration_timestamp", mode="before")
    @classmethod
    def parse_expiration(cls, value: Any) -> datetime | None:
        if isinstance(value, datetime):
            return value
        return parse_iso_timestamp(value if isinstance(value, str) else None)

    @property
    def has_client_certificate(self) -> bool:
        return bool(self.client_certificate_data and self.client_key_data)


class ExecCredential(BaseModel):
    """The document an exec plugin writes to stdout."""

    model_config = _DOCUMENT_CONFIG

    api_version: str | None = Field(default=None, alias="apiVersion")
    kind: str | None = None
    status: ExecCredentialStatus | None = None
