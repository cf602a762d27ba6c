"""
Credentials

Keystore/truststore assembly and TLS context construction.
"""

from .store import (
    CertificateEntry,
    CredentialBundle,
    CredentialStore,
    PrivateKeyEntry,
    assemble,
)
from .tls import TlsContextFactory

__all__ = [
    "CertificateEntry",
    "CredentialBundle",
    "CredentialStore",
    "PrivateKeyEntry",
    "assemble",
    "TlsContextFactory",
]
