# Copyright (c) MeshPKI Contributors. All rights reserved.
# Licensed under the MIT License.
"""Centralized exception hierarchy for MeshPKI.

All MeshPKI exceptions inherit from MeshPKIError, enabling consistent
error handling across key generation, issuance, the PEM codec and
credential assembly.
"""


class MeshPKIError(Exception):
    """Base exception for all MeshPKI errors."""


class GenerationError(MeshPKIError):
    """Key generation failed (unsupported algorithm or key length)."""


class SigningError(MeshPKIError):
    """Signing failed because the key and digest scheme are incompatible."""


class FormatError(MeshPKIError):
    """Malformed PEM stream, or wrong number or type of decoded objects."""


class ValidationError(MeshPKIError):
    """A PKI policy was violated (e.g. a private key without a certificate)."""


class ConfigurationError(MeshPKIError):
    """Building a TLS context from credential material failed."""


class NotFoundError(MeshPKIError):
    """An expected attribute or store entry is absent."""


__all__ = [
    "MeshPKIError",
    "GenerationError",
    "SigningError",
    "FormatError",
    "ValidationError",
    "ConfigurationError",
    "NotFoundError",
]
