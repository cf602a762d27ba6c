# Copyright (c) MeshPKI Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Certificate Revocation Lists

Issues signed CRLs for deployments without an active revocation workflow.
Lists never carry revoked entries and stay valid for a century.
"""

from __future__ import annotations

import logging

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import rsa
from dateutil.relativedelta import relativedelta

from meshpki.config import RevocationPolicy, SignaturePolicy
from meshpki.engine import CryptoEngine, default_engine
from meshpki.exceptions import SigningError

logger = logging.getLogger(__name__)


class RevocationListIssuer:
    """Issues empty, signed certificate revocation lists."""

    def __init__(
        self,
        engine: CryptoEngine | None = None,
        policy: RevocationPolicy | None = None,
        signatures: SignaturePolicy | None = None,
    ) -> None:
        self.engine = engine or default_engine()
        self.policy = policy or RevocationPolicy()
        self.signatures = signatures or SignaturePolicy()

    def issue(
        self,
        issuer_name: x509.Name,
        issuer_private_key: rsa.RSAPrivateKey,
        policy: RevocationPolicy | None = None,
    ) -> x509.CertificateRevocationList:
        """Issue a CRL dated now with ``next_update`` per the policy.

        Raises:
            SigningError: If the issuer key cannot sign with the CRL digest.
        """
        if not isinstance(issuer_private_key, rsa.RSAPrivateKey):
            raise SigningError(
                f"Issuer key {type(issuer_private_key).__name__} is not an RSA private key"
            )

        policy = policy or self.policy
        now = self.engine.now()
        next_update = now + relativedelta(years=policy.next_update_years, days=policy.next_update_days)
        digest = self.engine.hash_algorithm(self.signatures.certificate_digest)

        try:
            crl = (
                x509.CertificateRevocationListBuilder()
                .issuer_name(issuer_name)
                .last_update(now)
                .next_update(next_update)
                .sign(issuer_private_key, digest)
            )
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise SigningError(f"Cannot sign revocation list: {exc}") from exc

        logger.info(
            "Issued revocation list issuer=%s next_update=%s",
            issuer_name.rfc4514_string(),
            next_update.isoformat(),
        )
        return crl
