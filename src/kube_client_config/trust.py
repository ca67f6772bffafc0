"""Trust-policy strategies applied to CA certificates during assembly."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import structlog
from cryptography import x509

from kube_client_config.certs import validity_window
from kube_client_config.config import DEFAULT_CA_MAX_DAYS, Settings

log = structlog.get_logger()


class TrustPolicy(Protocol):
    """Decides whether a trusted CA forces certificate verification to be relaxed."""

    def requires_invalid_certs(self, ca: x509.Certificate) -> bool: ...


class StrictTrustPolicy:
    """Never relax verification."""

    def requires_invalid_certs(self, ca: x509.Certificate) -> bool:
        return False


@dataclass(frozen=True)
class LongLivedCaTrustPolicy:
    """Relax verification for CAs valid longer than some TLS backends accept.

    Enabled through the ``KUBE_CLIENT_RELAX_LONG_LIVED_CA`` capability flag on
    hosts whose TLS stack rejects long-lived roots outright.
    """

    max_days: int = DEFAULT_CA_MAX_DAYS

    def requires_invalid_certs(self, ca: x509.Certificate) -> bool:
        lifetime = abs(validity_window(ca))
        if lifetime.days > self.max_days:
            log.warning(
                "long_lived_ca_relaxes_verification",
                subject=ca.subject.rfc4514_string(),
                lifetime_days=lifetime.days,
                max_days=self.max_days,
            )
            return True
        return False


def select_trust_policy(settings: Settings) -> TrustPolicy:
    """Pick the trust policy the configured capability flag asks for."""
    if settings.relax_long_lived_ca:
        return LongLivedCaTrustPolicy(max_days=settings.ca_max_days)
    return StrictTrustPolicy()
