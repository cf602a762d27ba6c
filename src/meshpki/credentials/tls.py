# Copyright (c) MeshPKI Contributors. All rights reserved.
# Licensed under the MIT License.
"""
TLS Contexts

Builds ``ssl.SSLContext`` objects from credential bundles: mutual contexts
carrying an identity and trust anchors, and trust-only client contexts for
validating a custom CA without presenting a client certificate.
"""

import logging
import os
import ssl
import tempfile

from cryptography.hazmat.primitives import serialization

from meshpki.config import PKIConfig
from meshpki.credentials.store import CredentialBundle, CredentialStore, PrivateKeyEntry, assemble
from meshpki.engine import CryptoEngine, default_engine
from meshpki.exceptions import ConfigurationError, MeshPKIError
from meshpki.pem import PemSource, encode_to_bytes

logger = logging.getLogger(__name__)


class TlsContextFactory:
    """Creates TLS contexts from PEM credential material.

    Every failure while decoding, assembling or loading credentials is
    raised as ``ConfigurationError`` with the original error chained.
    """

    def __init__(
        self,
        engine: CryptoEngine | None = None,
        config: PKIConfig | None = None,
    ) -> None:
        self.engine = engine or default_engine()
        self.config = config or PKIConfig()

    def mutual_context(
        self,
        cert_source: PemSource,
        key_source: PemSource,
        ca_cert_source: PemSource,
        server_side: bool = False,
    ) -> ssl.SSLContext:
        """Create a context presenting an identity and requiring peer certificates.

        Args:
            cert_source: PEM holding exactly one certificate for the key.
            key_source: PEM holding exactly one private key.
            ca_cert_source: PEM trust anchors.
            server_side: Build a server context that requires client certs.
        """
        try:
            bundle = assemble(
                cert_source,
                key_source,
                ca_cert_source,
                engine=self.engine,
                policy=self.config.credentials,
            )
        except (MeshPKIError, ValueError) as exc:
            raise ConfigurationError(f"Cannot assemble TLS credentials: {exc}") from exc
        except OSError as exc:
            raise ConfigurationError(f"Cannot read TLS credentials: {exc}") from exc
        return self.from_bundle(bundle, server_side=server_side)

    def trust_only_context(self, ca_cert_source: PemSource) -> ssl.SSLContext:
        """Create a client context that trusts *ca_cert_source* and has no identity."""
        try:
            truststore = CredentialStore.create().add_certificates_from_stream(
                self.config.credentials.ca_alias_prefix, ca_cert_source
            )
        except (MeshPKIError, ValueError) as exc:
            raise ConfigurationError(f"Cannot load trust anchors: {exc}") from exc
        except OSError as exc:
            raise ConfigurationError(f"Cannot read trust anchors: {exc}") from exc

        ctx = self._new_context(server_side=False)
        self._load_trust(ctx, truststore)
        logger.debug("Created trust-only TLS context with %d anchor(s)", len(truststore))
        return ctx

    def from_bundle(self, bundle: CredentialBundle, server_side: bool = False) -> ssl.SSLContext:
        """Create a mutual TLS context from an assembled bundle."""
        try:
            identity = bundle.identity
        except MeshPKIError as exc:
            raise ConfigurationError(f"Bundle has no identity: {exc}") from exc

        ctx = self._new_context(server_side=server_side)
        self._load_identity(ctx, identity, bundle.passphrase)
        self._load_trust(ctx, bundle.truststore)
        ctx.verify_mode = ssl.CERT_REQUIRED
        logger.debug(
            "Created mutual TLS context (server_side=%s) with %d anchor(s)",
            server_side,
            len(bundle.truststore),
        )
        return ctx

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _new_context(self, server_side: bool) -> ssl.SSLContext:
        if server_side:
            ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        else:
            ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
            ctx.check_hostname = self.config.tls.check_hostname

        ctx.minimum_version = getattr(ssl.TLSVersion, self.config.tls.minimum_version)
        return ctx

    def _load_identity(
        self, ctx: ssl.SSLContext, identity: PrivateKeyEntry, passphrase: str
    ) -> None:
        """Load the identity through temporary files; the key file is encrypted."""
        cert_pem = b"".join(
            encode_to_bytes(c) for c in (identity.certificate, *identity.chain)
        )
        key_pem = identity.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.BestAvailableEncryption(
                passphrase.encode("utf-8")
            ),
        )

        cert_file = key_file = None
        try:
            with tempfile.NamedTemporaryFile(
                delete=False, suffix=".pem", mode="wb"
            ) as cf:
                cert_file = cf.name
                cf.write(cert_pem)
            with tempfile.NamedTemporaryFile(
                delete=False, suffix=".pem", mode="wb"
            ) as kf:
                key_file = kf.name
                kf.write(key_pem)
            ctx.load_cert_chain(cert_file, key_file, password=passphrase)
        except (ssl.SSLError, OSError, ValueError) as exc:
            raise ConfigurationError(f"Cannot load TLS identity: {exc}") from exc
        finally:
            if cert_file:
                os.unlink(cert_file)
            if key_file:
                os.unlink(key_file)

    def _load_trust(self, ctx: ssl.SSLContext, truststore: CredentialStore) -> None:
        anchors = truststore.certificates()
        if not anchors:
            raise ConfigurationError("No trust anchors available")
        cadata = b"".join(encode_to_bytes(c) for c in anchors).decode("ascii")
        try:
            ctx.load_verify_locations(cadata=cadata)
        except (ssl.SSLError, ValueError) as exc:
            raise ConfigurationError(f"Cannot load trust anchors: {exc}") from exc
