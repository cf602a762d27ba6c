# Copyright (c) MeshPKI Contributors. All rights reserved.
# Licensed under the MIT License.
"""
PKI Policy Configuration

Declarative policy models for key generation, signing, validity windows,
revocation lists, credential assembly and TLS contexts. Policies can be
loaded from and saved to YAML files.
"""

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from meshpki.exceptions import ValidationError

DEFAULT_KEY_LENGTH = 4096
MIN_KEY_LENGTH = 1024

# Relative strength of the supported digests; higher is stronger.
DIGEST_STRENGTH = {
    "sha1": 1,
    "sha224": 2,
    "sha256": 3,
    "sha384": 4,
    "sha512": 5,
}


class KeyPolicy(BaseModel):
    """Key pair generation parameters."""

    algorithm: Literal["RSA"] = Field(default="RSA", description="Asymmetric key algorithm")
    default_bits: int = Field(default=DEFAULT_KEY_LENGTH, description="Default key length in bits")
    public_exponent: int = Field(default=65537, description="RSA public exponent")

    @field_validator("default_bits")
    @classmethod
    def validate_default_bits(cls, v: int) -> int:
        if v < MIN_KEY_LENGTH:
            raise ValidationError(f"default_bits must be at least {MIN_KEY_LENGTH}, got: {v}")
        return v


class SignaturePolicy(BaseModel):
    """
    Digest tiers for the two signing operations.

    Certificates are always signed with a strictly stronger digest than the
    one used for the self-signature on requests.
    """

    request_digest: str = Field(default="sha256", description="Digest for CSR self-signatures")
    certificate_digest: str = Field(
        default="sha384", description="Digest for certificate and CRL signatures"
    )

    @field_validator("request_digest", "certificate_digest")
    @classmethod
    def validate_digest(cls, v: str) -> str:
        name = v.lower().replace("-", "")
        if name not in DIGEST_STRENGTH:
            raise ValidationError(f"Unsupported digest: {v}")
        return name

    @model_validator(mode="after")
    def validate_tiers(self) -> "SignaturePolicy":
        if DIGEST_STRENGTH[self.certificate_digest] <= DIGEST_STRENGTH[self.request_digest]:
            raise ValidationError(
                f"certificate_digest ({self.certificate_digest}) must be stronger "
                f"than request_digest ({self.request_digest})"
            )
        return self


class ValidityPolicy(BaseModel):
    """
    Certificate validity window, relative to the issuance time.

    The notAfter offset is calendar years plus days, so a five year window
    ends on the same date five years later regardless of leap days.
    """

    clock_skew_days: int = Field(default=1, ge=0, description="notBefore backdating in days")
    validity_years: int = Field(default=5, ge=0, description="notAfter offset in calendar years")
    validity_days: int = Field(default=0, ge=0, description="Additional notAfter offset in days")

    @model_validator(mode="after")
    def validate_period(self) -> "ValidityPolicy":
        if self.validity_years == 0 and self.validity_days == 0:
            raise ValidationError("Validity period must be positive")
        return self


class RevocationPolicy(BaseModel):
    """Revocation list update window, in calendar years plus days."""

    next_update_years: int = Field(default=100, ge=0, description="nextUpdate offset in calendar years")
    next_update_days: int = Field(default=0, ge=0, description="Additional nextUpdate offset in days")

    @model_validator(mode="after")
    def validate_period(self) -> "RevocationPolicy":
        if self.next_update_years == 0 and self.next_update_days == 0:
            raise ValidationError("Revocation list update period must be positive")
        return self


class CredentialPolicy(BaseModel):
    """Alias and passphrase conventions for assembled credential bundles."""

    private_key_alias: str = Field(default="Private Key", description="Keystore alias for the identity")
    ca_alias_prefix: str = Field(default="CA Certificate", description="Truststore alias prefix")
    passphrase_bytes: int = Field(default=32, ge=16, description="Entropy of generated passphrases")


class TlsPolicy(BaseModel):
    """TLS context parameters."""

    minimum_version: Literal["TLSv1_2", "TLSv1_3"] = Field(
        default="TLSv1_2", description="Lowest negotiable protocol version"
    )
    check_hostname: bool = Field(default=True, description="Verify server hostname (client side)")


class PKIConfig(BaseModel):
    """Aggregate policy for all MeshPKI components."""

    keys: KeyPolicy = Field(default_factory=KeyPolicy)
    signatures: SignaturePolicy = Field(default_factory=SignaturePolicy)
    validity: ValidityPolicy = Field(default_factory=ValidityPolicy)
    revocation: RevocationPolicy = Field(default_factory=RevocationPolicy)
    credentials: CredentialPolicy = Field(default_factory=CredentialPolicy)
    tls: TlsPolicy = Field(default_factory=TlsPolicy)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "PKIConfig":
        """Load a PKIConfig from a YAML file."""
        path = Path(path)
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls(**(data or {}))

    def to_yaml(self, path: str | Path) -> None:
        """Save this PKIConfig to a YAML file."""
        path = Path(path)
        data = self.model_dump(mode="json")
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
