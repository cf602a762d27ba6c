# Copyright (c) MeshPKI Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Crypto Engine

Abstract cryptographic capability injected into every MeshPKI component,
with a software implementation backed by the ``cryptography`` library.
Components never resolve providers globally; tests substitute engines
(for instance one with a fixed clock) at construction.
"""

from __future__ import annotations

import abc
import logging
import secrets
from datetime import datetime, timezone

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa

from meshpki.config import MIN_KEY_LENGTH
from meshpki.exceptions import GenerationError, SigningError

logger = logging.getLogger(__name__)

_HASHES = {
    "sha1": hashes.SHA1,
    "sha224": hashes.SHA224,
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}


class CryptoEngine(abc.ABC):
    """Abstract base class for the cryptographic capability.

    Defines key generation, digest resolution, the issuance clock and the
    randomness sources used by the issuers and the credential store.

    Example:
        >>> engine = SoftwareCryptoEngine()
        >>> key = engine.generate_private_key(2048)
        >>> key.key_size
        2048
    """

    @abc.abstractmethod
    def generate_private_key(
        self, bits: int, algorithm: str = "RSA", public_exponent: int = 65537
    ) -> rsa.RSAPrivateKey:
        """Generate a private key.

        Args:
            bits: Key length in bits.
            algorithm: Key algorithm name.
            public_exponent: RSA public exponent.

        Returns:
            The newly generated private key.

        Raises:
            GenerationError: If the algorithm or key length is unsupported.
        """

    @abc.abstractmethod
    def hash_algorithm(self, name: str) -> hashes.HashAlgorithm:
        """Resolve a digest name (e.g. ``"sha256"``) to a hash instance.

        Raises:
            SigningError: If the digest is not supported.
        """

    @abc.abstractmethod
    def now(self) -> datetime:
        """Return the current time as an aware UTC datetime."""

    @abc.abstractmethod
    def random_serial(self) -> int:
        """Return a random positive certificate serial number."""

    @abc.abstractmethod
    def new_passphrase(self, num_bytes: int = 32) -> str:
        """Return a fresh high-entropy passphrase."""


class SoftwareCryptoEngine(CryptoEngine):
    """In-process engine backed by ``cryptography`` and ``secrets`` (default).

    Keys are generated in process memory. The clock is the system UTC clock
    truncated to whole seconds, matching X.509 time resolution.
    """

    def generate_private_key(
        self, bits: int, algorithm: str = "RSA", public_exponent: int = 65537
    ) -> rsa.RSAPrivateKey:
        if algorithm.upper() != "RSA":
            raise GenerationError(f"Unsupported key algorithm: {algorithm}")
        if not isinstance(bits, int) or isinstance(bits, bool) or bits < MIN_KEY_LENGTH:
            raise GenerationError(f"Unsupported key length: {bits!r}")

        try:
            key = rsa.generate_private_key(public_exponent=public_exponent, key_size=bits)
        except (ValueError, UnsupportedAlgorithm) as exc:
            raise GenerationError(f"Key generation failed: {exc}") from exc

        logger.debug("Generated %d-bit %s key", bits, algorithm.upper())
        return key

    def hash_algorithm(self, name: str) -> hashes.HashAlgorithm:
        try:
            return _HASHES[name.lower().replace("-", "")]()
        except KeyError:
            raise SigningError(f"Unsupported digest: {name}") from None

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(microsecond=0)

    def random_serial(self) -> int:
        return x509.random_serial_number()

    def new_passphrase(self, num_bytes: int = 32) -> str:
        return secrets.token_urlsafe(num_bytes)


def default_engine() -> CryptoEngine:
    """Return a new software engine."""
    return SoftwareCryptoEngine()
