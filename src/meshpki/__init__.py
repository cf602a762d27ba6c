"""
MeshPKI - X.509 identity material for mutual TLS

Keys · Requests · Certificates · Revocation lists · Credential bundles

MeshPKI generates key pairs, builds and signs certificate requests, issues
revocation lists, and assembles decoded PEM material into keystores,
truststores and TLS contexts.

Version: 1.0.0-alpha
"""

__version__ = "1.0.0-alpha"

from .config import (
    DEFAULT_KEY_LENGTH,
    CredentialPolicy,
    KeyPolicy,
    PKIConfig,
    RevocationPolicy,
    SignaturePolicy,
    TlsPolicy,
    ValidityPolicy,
)
from .engine import CryptoEngine, SoftwareCryptoEngine

# Identity material
from .identity import (
    KeyGenerator,
    KeyPair,
    generate_key_pair,
    common_name,
    from_common_name,
)

# Codec
from .pem import PemKind, PemObject

# Issuance
from .issuance import (
    CertificateAuthority,
    CertificateIssuer,
    RequestBuilder,
    RevocationListIssuer,
)

# Credentials
from .credentials import (
    CredentialBundle,
    CredentialStore,
    TlsContextFactory,
    assemble,
)

# Exceptions
from .exceptions import (
    MeshPKIError,
    GenerationError,
    SigningError,
    FormatError,
    ValidationError,
    ConfigurationError,
    NotFoundError,
)

__all__ = [
    # Version
    "__version__",

    # Configuration
    "DEFAULT_KEY_LENGTH",
    "CredentialPolicy",
    "KeyPolicy",
    "PKIConfig",
    "RevocationPolicy",
    "SignaturePolicy",
    "TlsPolicy",
    "ValidityPolicy",
    "CryptoEngine",
    "SoftwareCryptoEngine",

    # Identity
    "KeyGenerator",
    "KeyPair",
    "generate_key_pair",
    "common_name",
    "from_common_name",

    # Codec
    "PemKind",
    "PemObject",

    # Issuance
    "CertificateAuthority",
    "CertificateIssuer",
    "RequestBuilder",
    "RevocationListIssuer",

    # Credentials
    "CredentialBundle",
    "CredentialStore",
    "TlsContextFactory",
    "assemble",

    # Exceptions
    "MeshPKIError",
    "GenerationError",
    "SigningError",
    "FormatError",
    "ValidationError",
    "ConfigurationError",
    "NotFoundError",
]
