# Copyright (c) MeshPKI Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Credential Stores

In-memory, alias-keyed containers for certificates and private keys, and
the assembly of keystore/truststore bundles from PEM inputs.

A private key never enters a store without the certificate that
authenticates it. Single-entry additions overwrite an existing alias;
stream additions use ``<prefix>-<index>`` aliases in stream order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from meshpki.config import CredentialPolicy
from meshpki.engine import CryptoEngine, default_engine
from meshpki.exceptions import FormatError, NotFoundError, ValidationError
from meshpki.pem import PemSource, decode_certificates, decode_private_key

logger = logging.getLogger(__name__)


def _public_der(key) -> bytes:
    return key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


@dataclass(frozen=True)
class CertificateEntry:
    """A trusted certificate."""

    certificate: x509.Certificate


@dataclass(frozen=True)
class PrivateKeyEntry:
    """A private key with its certificate and optional issuer chain."""

    private_key: object
    passphrase: str = field(repr=False)
    certificate: x509.Certificate
    chain: tuple[x509.Certificate, ...] = ()


StoreEntry = Union[CertificateEntry, PrivateKeyEntry]


class CredentialStore:
    """Alias-keyed credential container.

    Mutating methods return the store itself so calls can be chained, and
    validate fully before touching the store: a failed call leaves it as
    it was.

    Example:
        >>> store = CredentialStore.create()
        >>> store.add_certificates_from_stream("CA", "ca-bundle.pem")  # doctest: +SKIP
        >>> store.aliases()  # doctest: +SKIP
        ['CA-0', 'CA-1']
    """

    def __init__(self) -> None:
        self._entries: dict[str, StoreEntry] = {}

    @classmethod
    def create(cls) -> "CredentialStore":
        """Create an empty store."""
        return cls()

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    @staticmethod
    def _check_alias(alias: str) -> None:
        if not isinstance(alias, str) or not alias:
            raise ValidationError("alias must be a non-empty string")

    def add_certificate(self, alias: str, cert: x509.Certificate) -> "CredentialStore":
        """Store *cert* under *alias*, replacing any existing entry."""
        self._check_alias(alias)
        if not isinstance(cert, x509.Certificate):
            raise ValidationError(f"Expected a certificate, got {type(cert).__name__}")
        self._entries[alias] = CertificateEntry(cert)
        return self

    def add_certificates_from_stream(self, prefix: str, source: PemSource) -> "CredentialStore":
        """Add every certificate in *source* as ``prefix-0``, ``prefix-1``, ...

        The stream is fully decoded before the store changes.

        Raises:
            FormatError: If the stream holds anything but certificates.
        """
        self._check_alias(prefix)
        certs = decode_certificates(source)
        for index, cert in enumerate(certs):
            self._entries[f"{prefix}-{index}"] = CertificateEntry(cert)
        logger.debug("Added %d certificates with alias prefix '%s'", len(certs), prefix)
        return self

    def add_private_key(
        self,
        alias: str,
        private_key,
        passphrase: str,
        cert: Optional[x509.Certificate],
        chain: tuple[x509.Certificate, ...] = (),
    ) -> "CredentialStore":
        """Store *private_key* under *alias*, authenticated by *cert*.

        Args:
            alias: Entry alias; an existing entry is replaced.
            private_key: The private key.
            passphrase: Password protecting the key when exported.
            cert: Certificate for the key's public half. Required.
            chain: Issuer certificates presented after *cert*.

        Raises:
            ValidationError: If *cert* is absent or does not match the key,
                or the passphrase is empty.
        """
        self._check_alias(alias)
        if not hasattr(private_key, "private_bytes"):
            raise ValidationError(f"Expected a private key, got {type(private_key).__name__}")
        if cert is None:
            raise ValidationError(
                f"Cannot store private key '{alias}' without a certificate"
            )
        if not isinstance(cert, x509.Certificate):
            raise ValidationError(f"Expected a certificate, got {type(cert).__name__}")
        if not isinstance(passphrase, str) or not passphrase:
            raise ValidationError("passphrase must be a non-empty string")
        if _public_der(private_key.public_key()) != _public_der(cert.public_key()):
            raise ValidationError(
                f"Certificate for '{alias}' does not match the private key"
            )

        self._entries[alias] = PrivateKeyEntry(
            private_key=private_key,
            passphrase=passphrase,
            certificate=cert,
            chain=tuple(chain),
        )
        return self

    def add_private_key_from_stream(
        self,
        alias: str,
        key_source: PemSource,
        passphrase: str,
        cert_source: PemSource,
    ) -> "CredentialStore":
        """Add the single key in *key_source*, authenticated by *cert_source*.

        Raises:
            ValidationError: Unless *cert_source* holds exactly one
                certificate, matching the key.
        """
        private_key = decode_private_key(key_source)
        certs = decode_certificates(cert_source)
        if not certs:
            raise ValidationError(
                f"Cannot store private key '{alias}' without a certificate"
            )
        if len(certs) > 1:
            raise ValidationError(
                f"Certificate stream for '{alias}' contains {len(certs)} certificates, expected one"
            )
        return self.add_private_key(alias, private_key, passphrase, certs[0])

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def __contains__(self, alias: object) -> bool:
        return alias in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def aliases(self) -> list[str]:
        """Return aliases in insertion order."""
        return list(self._entries)

    def entry(self, alias: str) -> StoreEntry:
        try:
            return self._entries[alias]
        except KeyError:
            raise NotFoundError(f"No entry with alias '{alias}'") from None

    def certificate(self, alias: str) -> x509.Certificate:
        """Return the certificate stored under *alias* (for either entry kind)."""
        return self.entry(alias).certificate

    def private_key(self, alias: str):
        entry = self.entry(alias)
        if not isinstance(entry, PrivateKeyEntry):
            raise NotFoundError(f"Entry '{alias}' holds no private key")
        return entry.private_key

    def certificates(self) -> list[x509.Certificate]:
        """Return the certificates of all certificate entries, in order."""
        return [
            e.certificate for e in self._entries.values() if isinstance(e, CertificateEntry)
        ]

    def to_pkcs12(self, alias: str, passphrase: str | None = None) -> bytes:
        """Serialize a private-key entry as a password-protected PKCS#12 blob.

        Args:
            alias: Alias of a private-key entry.
            passphrase: Export password; defaults to the entry's passphrase.
        """
        entry = self.entry(alias)
        if not isinstance(entry, PrivateKeyEntry):
            raise NotFoundError(f"Entry '{alias}' holds no private key")
        password = (passphrase or entry.passphrase).encode("utf-8")
        try:
            return pkcs12.serialize_key_and_certificates(
                name=alias.encode("utf-8"),
                key=entry.private_key,
                cert=entry.certificate,
                cas=list(entry.chain) or None,
                encryption_algorithm=serialization.BestAvailableEncryption(password),
            )
        except (ValueError, TypeError) as exc:
            raise FormatError(f"Cannot export '{alias}' as PKCS#12: {exc}") from exc


@dataclass(frozen=True)
class CredentialBundle:
    """Identity and trust material for one TLS context.

    Attributes:
        keystore: Store holding the identity private-key entry.
        truststore: Store holding the trusted CA certificates.
        passphrase: Freshly generated password for the keystore.
        key_alias: Alias of the identity entry in ``keystore``.
    """

    keystore: CredentialStore
    truststore: CredentialStore
    passphrase: str = field(repr=False)
    key_alias: str = "Private Key"

    @property
    def identity(self) -> PrivateKeyEntry:
        entry = self.keystore.entry(self.key_alias)
        if not isinstance(entry, PrivateKeyEntry):
            raise NotFoundError(f"Entry '{self.key_alias}' holds no private key")
        return entry

    @property
    def trust_anchors(self) -> list[x509.Certificate]:
        return self.truststore.certificates()


def assemble(
    cert_source: PemSource,
    key_source: PemSource,
    ca_cert_source: PemSource,
    engine: CryptoEngine | None = None,
    policy: CredentialPolicy | None = None,
) -> CredentialBundle:
    """Build keystore and truststore from PEM certificate, key and CA inputs.

    The keystore passphrase is generated fresh on every call and never
    derived from the inputs.
    """
    engine = engine or default_engine()
    policy = policy or CredentialPolicy()
    passphrase = engine.new_passphrase(policy.passphrase_bytes)

    keystore = CredentialStore.create().add_private_key_from_stream(
        policy.private_key_alias, key_source, passphrase, cert_source
    )
    truststore = CredentialStore.create().add_certificates_from_stream(
        policy.ca_alias_prefix, ca_cert_source
    )
    logger.info(
        "Assembled credential bundle with %d trusted certificate(s)", len(truststore)
    )
    return CredentialBundle(
        keystore=keystore,
        truststore=truststore,
        passphrase=passphrase,
        key_alias=policy.private_key_alias,
    )
