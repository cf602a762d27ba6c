# Copyright (c) MeshPKI Contributors. All rights reserved.
# Licensed under the MIT License.
"""Distinguished names restricted to a single common name."""

from cryptography import x509
from cryptography.x509.oid import NameOID

from meshpki.exceptions import NotFoundError, ValidationError


def from_common_name(common_name: str) -> x509.Name:
    """Build a distinguished name holding one CN attribute."""
    if not isinstance(common_name, str) or not common_name.strip():
        raise ValidationError("common name must be a non-empty string")
    try:
        return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    except ValueError as exc:
        raise ValidationError(f"Invalid common name: {exc}") from exc


def common_name(name: x509.Name) -> str:
    """Return the first CN of *name*.

    Raises:
        NotFoundError: If *name* carries no CN attribute.
    """
    attrs = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attrs:
        raise NotFoundError(f"No common name in {name.rfc4514_string()!r}")
    return str(attrs[0].value)
