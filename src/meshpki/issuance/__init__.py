"""
Issuance

Certificate signing requests, certificates, revocation lists and the
certificate authority that ties them to one issuer key.
"""

from .authority import CertificateAuthority
from .certificate import CertificateIssuer, validity_window
from .crl import RevocationListIssuer
from .request import RequestBuilder

__all__ = [
    "CertificateAuthority",
    "CertificateIssuer",
    "validity_window",
    "RevocationListIssuer",
    "RequestBuilder",
]
