# Copyright (c) MeshPKI Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Certificate Authority

Groups key generation, request building, certificate and CRL issuance
around a single issuer key pair and name. This is the root of trust for a
MeshPKI deployment; it does not manage intermediates or keep a database
of issued certificates.
"""

from __future__ import annotations

import logging

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa

from meshpki.config import PKIConfig
from meshpki.engine import CryptoEngine, default_engine
from meshpki.identity.keys import KeyGenerator, KeyPair
from meshpki.identity.names import from_common_name
from meshpki.issuance.certificate import CertificateIssuer, validity_window
from meshpki.issuance.crl import RevocationListIssuer
from meshpki.issuance.request import RequestBuilder
from meshpki.pem import encode_to_bytes

logger = logging.getLogger(__name__)


class CertificateAuthority:
    """
    Certificate Authority for MeshPKI.

    Signs requests under the configured policies with one issuer key.
    """

    def __init__(
        self,
        name: x509.Name,
        private_key: rsa.RSAPrivateKey,
        certificate: x509.Certificate | None = None,
        engine: CryptoEngine | None = None,
        config: PKIConfig | None = None,
    ):
        """
        Initialize the Certificate Authority.

        Args:
            name: Issuer distinguished name
            private_key: Issuer private key
            certificate: Issuer certificate (self-signs if None)
            engine: Crypto engine shared by all components
            config: PKI policies
        """
        self.engine = engine or default_engine()
        self.config = config or PKIConfig()
        self.name = name
        self.private_key = private_key

        self.keys = KeyGenerator(self.engine, self.config.keys)
        self.requests = RequestBuilder(self.engine, self.config.signatures)
        self.issuer = CertificateIssuer(self.engine, self.config.validity, self.config.signatures)
        self.crls = RevocationListIssuer(self.engine, self.config.revocation, self.config.signatures)

        if certificate is None:
            certificate = self._generate_ca_certificate()
        self.certificate = certificate

    @classmethod
    def create(
        cls,
        ca_common_name: str,
        bits: int | None = None,
        engine: CryptoEngine | None = None,
        config: PKIConfig | None = None,
    ) -> "CertificateAuthority":
        """Generate a fresh issuer key pair and self-signed CA certificate."""
        engine = engine or default_engine()
        config = config or PKIConfig()
        key_pair = KeyGenerator(engine, config.keys).generate(bits)
        return cls(
            from_common_name(ca_common_name),
            key_pair.private_key,
            engine=engine,
            config=config,
        )

    def _generate_ca_certificate(self) -> x509.Certificate:
        """Generate a self-signed CA certificate."""
        not_before, not_after = validity_window(self.engine.now(), self.config.validity)
        cert = (
            x509.CertificateBuilder()
            .subject_name(self.name)
            .issuer_name(self.name)
            .public_key(self.private_key.public_key())
            .serial_number(self.engine.random_serial())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
            .add_extension(
                x509.BasicConstraints(ca=True, path_length=0),
                critical=True,
            )
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    key_cert_sign=True,
                    crl_sign=True,
                    key_encipherment=False,
                    content_commitment=False,
                    data_encipherment=False,
                    key_agreement=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .sign(
                self.private_key,
                self.engine.hash_algorithm(self.config.signatures.certificate_digest),
            )
        )
        logger.info("Generated self-signed CA certificate for %s", self.name.rfc4514_string())
        return cert

    def sign(self, request: x509.CertificateSigningRequest, serial: int | None = None) -> x509.Certificate:
        """
        Sign a request with the CA key.

        Args:
            request: Certificate signing request; its self-signature is
                not re-verified
            serial: Serial number (random if None)
        """
        if serial is None:
            serial = self.engine.random_serial()
        return self.issuer.issue(request, self.name, serial, self.private_key)

    def issue(
        self, subject_common_name: str, serial: int | None = None, bits: int | None = None
    ) -> tuple[KeyPair, x509.Certificate]:
        """Generate a key pair for *subject_common_name* and certify it."""
        key_pair = self.keys.generate(bits)
        request = self.requests.build(key_pair, from_common_name(subject_common_name))
        return key_pair, self.sign(request, serial)

    def revocation_list(self) -> x509.CertificateRevocationList:
        """Issue a fresh (empty) revocation list for this CA."""
        return self.crls.issue(self.name, self.private_key)

    def certificate_pem(self) -> str:
        """Return the CA certificate PEM-encoded."""
        return encode_to_bytes(self.certificate).decode("ascii")
