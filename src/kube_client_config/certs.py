"""Certificate and private key decoding for trust material and client identities."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes

from kube_client_config.errors import ErrorKind, KubeConfigError

_PEM_MARKER = b"-----BEGIN"


def _is_pem(data: bytes) -> bool:
    return _PEM_MARKER in data


def parse_certificates(data: bytes, what: str = "certificate") -> list[x509.Certificate]:
    """Decode every certificate in a PEM bundle, or a single DER certificate.

    Raises:
        KubeConfigError: DECODE_ERROR if the bytes hold no valid certificate.
    """
    try:
        if _is_pem(data):
            return x509.load_pem_x509_certificates(data)
        return [x509.load_der_x509_certificate(data)]
    except ValueError as err:
        msg = f"Invalid {what}: not a valid PEM or DER certificate ({err})"
        raise KubeConfigError(ErrorKind.DECODE_ERROR, msg) from err


def load_private_key(data: bytes, passphrase: str | None = None, what: str = "client key") -> PrivateKeyTypes:
    """Decode a PEM or DER private key, decrypting it with ``passphrase`` when it is encrypted."""
    # Unencrypted keys must be loaded without a password or cryptography refuses them.
    password = passphrase.encode("utf-8") if passphrase and b"ENCRYPTED" in data else None
    try:
        if _is_pem(data):
            return serialization.load_pem_private_key(data, password=password)
        return serialization.load_der_private_key(data, password=password)
    except (ValueError, TypeError, UnsupportedAlgorithm) as err:
        msg = f"Invalid {what}: {err}"
        raise KubeConfigError(ErrorKind.DECODE_ERROR, msg) from err


def _public_key_der(key: object) -> bytes:
    return key.public_bytes(  # type: ignore[attr-defined]
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def validity_window(cert: x509.Certificate) -> timedelta:
    """Span between notBefore and notAfter."""
    return cert.not_valid_after_utc - cert.not_valid_before_utc


@dataclass(frozen=True)
class ClientIdentity:
    """A client certificate, any chain certificates presented with it, and the matching key."""

    certificate: x509.Certificate
    private_key: PrivateKeyTypes
    chain: tuple[x509.Certificate, ...] = ()

    def certificate_chain_pem(self) -> bytes:
        return b"".join(c.public_bytes(serialization.Encoding.PEM) for c in (self.certificate, *self.chain))

    def private_key_pem(self) -> bytes:
        return self.private_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )


def build_identity(cert_data: bytes, key_data: bytes, passphrase: str | None = None) -> ClientIdentity:
    """Decode a certificate/key pair and check that they belong together.

    Raises:
        KubeConfigError: DECODE_ERROR if either side cannot be parsed or the key
            does not match the certificate's public key.
    """
    certs = parse_certificates(cert_data, what="client certificate")
    key = load_private_key(key_data, passphrase)
    leaf = certs[0]
    if _public_key_der(leaf.public_key()) != _public_key_der(key.public_key()):
        msg = "Invalid client identity: private key does not match the client certificate"
        raise KubeConfigError(ErrorKind.DECODE_ERROR, msg)
    return ClientIdentity(certificate=leaf, private_key=key, chain=tuple(certs[1:]))
