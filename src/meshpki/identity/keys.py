# Copyright (c) MeshPKI Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Key Material

RSA key pair generation through the injected crypto engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from cryptography.hazmat.primitives.asymmetric.types import (
    PrivateKeyTypes,
    PublicKeyTypes,
)

from meshpki.config import DEFAULT_KEY_LENGTH, KeyPolicy
from meshpki.engine import CryptoEngine, default_engine


@dataclass(frozen=True)
class KeyPair:
    """Public and private key material.

    ``public_key`` is ``None`` only for legacy PEM "pair" blocks decoded
    without their public half.
    """

    private_key: PrivateKeyTypes
    public_key: Optional[PublicKeyTypes] = None

    @classmethod
    def from_private_key(cls, private_key: PrivateKeyTypes) -> "KeyPair":
        return cls(private_key=private_key, public_key=private_key.public_key())


class KeyGenerator:
    """Generates asymmetric key pairs.

    Args:
        engine: Crypto engine used for generation.
        policy: Key policy (algorithm, default length, exponent).
    """

    def __init__(
        self,
        engine: CryptoEngine | None = None,
        policy: KeyPolicy | None = None,
    ) -> None:
        self.engine = engine or default_engine()
        self.policy = policy or KeyPolicy()

    def generate(self, bits: int | None = None) -> KeyPair:
        """Generate a new key pair.

        Args:
            bits: Key length; defaults to the policy's ``default_bits``.

        Raises:
            GenerationError: If the algorithm or key length is unsupported.
        """
        private_key = self.engine.generate_private_key(
            self.policy.default_bits if bits is None else bits,
            algorithm=self.policy.algorithm,
            public_exponent=self.policy.public_exponent,
        )
        return KeyPair.from_private_key(private_key)


def generate_key_pair(bits: int = DEFAULT_KEY_LENGTH, engine: CryptoEngine | None = None) -> KeyPair:
    """Generate a key pair with the default policy."""
    return KeyGenerator(engine=engine).generate(bits)
