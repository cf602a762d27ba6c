# Copyright (c) MeshPKI Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Certificate Issuance

Signs certificate signing requests into X.509 certificates under the
issuer's validity and signature policy.

The request's self-signature is not re-verified here: proof of possession
must be checked by the caller before a request is handed to the issuer.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import rsa
from dateutil.relativedelta import relativedelta

from meshpki.config import SignaturePolicy, ValidityPolicy
from meshpki.engine import CryptoEngine, default_engine
from meshpki.exceptions import SigningError, ValidationError

logger = logging.getLogger(__name__)


def validity_window(issued_at: datetime, policy: ValidityPolicy) -> tuple[datetime, datetime]:
    """Return ``(not_before, not_after)`` for a certificate issued at *issued_at*.

    ``not_before`` is backdated by the clock-skew tolerance; ``not_after``
    is the validity period after the issuance time, counted in calendar
    years so that leap days do not shorten it.
    """
    not_before = issued_at - timedelta(days=policy.clock_skew_days)
    not_after = issued_at + relativedelta(years=policy.validity_years, days=policy.validity_days)
    return not_before, not_after


class CertificateIssuer:
    """
    Issues certificates from certificate signing requests.

    Certificates are signed with ``SignaturePolicy.certificate_digest``
    (SHA-384 with RSA by default), a stronger tier than the one used for
    request self-signatures.
    """

    def __init__(
        self,
        engine: CryptoEngine | None = None,
        validity: ValidityPolicy | None = None,
        signatures: SignaturePolicy | None = None,
    ) -> None:
        """
        Initialize the issuer.

        Args:
            engine: Crypto engine supplying the clock and digests
            validity: Default validity window policy
            signatures: Digest tiers
        """
        self.engine = engine or default_engine()
        self.validity = validity or ValidityPolicy()
        self.signatures = signatures or SignaturePolicy()

    def issue(
        self,
        request: x509.CertificateSigningRequest,
        issuer_name: x509.Name,
        serial: int,
        issuer_private_key: rsa.RSAPrivateKey,
        policy: ValidityPolicy | None = None,
    ) -> x509.Certificate:
        """
        Sign *request* into a certificate.

        Args:
            request: The certificate signing request
            issuer_name: The issuer's distinguished name
            serial: Serial number; uniqueness per issuer is up to the caller
            issuer_private_key: The issuer's RSA private key
            policy: Validity window override

        Returns:
            The signed certificate

        Raises:
            ValidationError: If the serial number is not a positive integer
            SigningError: If the issuer key cannot sign under the policy
        """
        if not isinstance(serial, int) or isinstance(serial, bool) or serial <= 0:
            raise ValidationError(f"Serial number must be a positive integer, got: {serial!r}")
        if not isinstance(issuer_private_key, rsa.RSAPrivateKey):
            raise SigningError(
                f"Issuer key {type(issuer_private_key).__name__} is not an RSA private key"
            )

        issued_at = self.engine.now()
        not_before, not_after = validity_window(issued_at, policy or self.validity)
        digest = self.engine.hash_algorithm(self.signatures.certificate_digest)

        try:
            cert = (
                x509.CertificateBuilder()
                .subject_name(request.subject)
                .issuer_name(issuer_name)
                .public_key(request.public_key())
                .serial_number(serial)
                .not_valid_before(not_before)
                .not_valid_after(not_after)
                .sign(issuer_private_key, digest)
            )
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise SigningError(f"Cannot sign certificate: {exc}") from exc

        logger.info(
            "Issued certificate serial=%d subject=%s issuer=%s not_after=%s",
            serial,
            request.subject.rfc4514_string(),
            issuer_name.rfc4514_string(),
            not_after.isoformat(),
        )
        return cert
