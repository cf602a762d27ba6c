# Copyright (c) MeshPKI Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Certificate Signing Requests

Builds self-signed PKCS#10 requests from a key pair and subject name.
Requests carry no extensions; subject alternative names and other leaf
identity attributes are not supported.
"""

from __future__ import annotations

import logging

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm

from meshpki.config import SignaturePolicy
from meshpki.engine import CryptoEngine, default_engine
from meshpki.exceptions import SigningError
from meshpki.identity.keys import KeyPair

logger = logging.getLogger(__name__)


class RequestBuilder:
    """Builds certificate signing requests.

    The self-signature uses ``SignaturePolicy.request_digest`` (SHA-256 with
    RSA by default) and is verified before the request is returned.
    """

    def __init__(
        self,
        engine: CryptoEngine | None = None,
        policy: SignaturePolicy | None = None,
    ) -> None:
        self.engine = engine or default_engine()
        self.policy = policy or SignaturePolicy()

    def build(self, key_pair: KeyPair, subject_name: x509.Name) -> x509.CertificateSigningRequest:
        """Create a CSR embedding *subject_name* and the pair's public key.

        Raises:
            SigningError: If the key cannot sign with the request digest.
        """
        digest = self.engine.hash_algorithm(self.policy.request_digest)
        try:
            request = (
                x509.CertificateSigningRequestBuilder()
                .subject_name(subject_name)
                .sign(key_pair.private_key, digest)
            )
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise SigningError(f"Cannot sign request with {self.policy.request_digest}: {exc}") from exc

        if not request.is_signature_valid:
            raise SigningError("Request self-signature does not verify")

        logger.debug("Built certificate request for %s", subject_name.rfc4514_string())
        return request
