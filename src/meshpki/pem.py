# Copyright (c) MeshPKI Contributors. All rights reserved.
# Licensed under the MIT License.
"""
PEM Codec

Decodes RFC 7468 armored text into typed objects and encodes objects back
to armored blocks. The object type is always inferred from the block label.

Sources may be ``bytes`` (PEM content), a path (``str`` or ``os.PathLike``)
or a readable file object in text or binary mode. Paths are opened and
closed by the codec; file objects passed in by the caller stay open.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
import os
import re
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import IO, Any, Iterable, Iterator, Union

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed448, ed25519, rsa
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes, PublicKeyTypes

from meshpki.exceptions import FormatError
from meshpki.identity.keys import KeyPair

logger = logging.getLogger(__name__)

PemSource = Union[bytes, str, os.PathLike, IO]

_PRIVATE_KEY_TYPES = (
    rsa.RSAPrivateKey,
    ec.EllipticCurvePrivateKey,
    dsa.DSAPrivateKey,
    ed25519.Ed25519PrivateKey,
    ed448.Ed448PrivateKey,
)
_PUBLIC_KEY_TYPES = (
    rsa.RSAPublicKey,
    ec.EllipticCurvePublicKey,
    dsa.DSAPublicKey,
    ed25519.Ed25519PublicKey,
    ed448.Ed448PublicKey,
)

_BEGIN = re.compile(r"^-----BEGIN ([A-Z0-9]+(?:[ -][A-Z0-9]+)*)-----$")
_END = re.compile(r"^-----END ([A-Z0-9]+(?:[ -][A-Z0-9]+)*)-----$")


class PemKind(str, Enum):
    """Structural type of a decoded PEM block."""

    CERTIFICATE = "certificate"
    PRIVATE_KEY = "private_key"
    KEY_PAIR = "key_pair"
    PUBLIC_KEY = "public_key"
    CERTIFICATE_REQUEST = "certificate_request"
    REVOCATION_LIST = "revocation_list"
    UNRECOGNIZED = "unrecognized"


_LABELS = {
    "CERTIFICATE": PemKind.CERTIFICATE,
    "X509 CERTIFICATE": PemKind.CERTIFICATE,
    "PRIVATE KEY": PemKind.PRIVATE_KEY,
    "RSA PRIVATE KEY": PemKind.KEY_PAIR,
    "EC PRIVATE KEY": PemKind.KEY_PAIR,
    "DSA PRIVATE KEY": PemKind.KEY_PAIR,
    "PUBLIC KEY": PemKind.PUBLIC_KEY,
    "CERTIFICATE REQUEST": PemKind.CERTIFICATE_REQUEST,
    "NEW CERTIFICATE REQUEST": PemKind.CERTIFICATE_REQUEST,
    "X509 CRL": PemKind.REVOCATION_LIST,
}


@dataclass(frozen=True)
class PemObject:
    """A decoded PEM block.

    Attributes:
        kind: Tag assigned from the block label.
        label: The block label as it appeared in the stream.
        value: The decoded object; raw DER bytes when ``kind`` is UNRECOGNIZED.
    """

    kind: PemKind
    label: str
    value: Any

    @property
    def is_key_bearing(self) -> bool:
        return self.kind in (PemKind.PRIVATE_KEY, PemKind.KEY_PAIR)

    def _expect(self, kind: PemKind) -> Any:
        if self.kind is not kind:
            raise FormatError(f"Expected {kind.value}, found {self.kind.value} ({self.label})")
        return self.value

    def as_certificate(self) -> x509.Certificate:
        return self._expect(PemKind.CERTIFICATE)

    def as_private_key(self) -> PrivateKeyTypes:
        return self._expect(PemKind.PRIVATE_KEY)

    def as_key_pair(self) -> KeyPair:
        return self._expect(PemKind.KEY_PAIR)

    def as_public_key(self) -> PublicKeyTypes:
        return self._expect(PemKind.PUBLIC_KEY)

    def as_request(self) -> x509.CertificateSigningRequest:
        return self._expect(PemKind.CERTIFICATE_REQUEST)

    def as_revocation_list(self) -> x509.CertificateRevocationList:
        return self._expect(PemKind.REVOCATION_LIST)


# ----------------------------------------------------------------------
# Stream handling
# ----------------------------------------------------------------------


@contextmanager
def open_source(source: PemSource) -> Iterator[IO]:
    """Yield a readable stream for *source*, closing it only if opened here."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        yield io.BytesIO(bytes(source))
    elif isinstance(source, (str, os.PathLike)):
        with open(source, "rb") as f:
            yield f
    elif hasattr(source, "read"):
        yield source
    else:
        raise FormatError(f"Unsupported PEM source: {type(source).__name__}")


@contextmanager
def open_sink(sink: Union[str, os.PathLike, IO], append: bool = False) -> Iterator[IO]:
    """Yield a writable stream for *sink*, closing it only if opened here."""
    if isinstance(sink, (str, os.PathLike)):
        with open(sink, "ab" if append else "wb") as f:
            yield f
    elif hasattr(sink, "write"):
        yield sink
    else:
        raise FormatError(f"Unsupported PEM sink: {type(sink).__name__}")


def _describe(source: Any) -> str:
    if isinstance(source, (str, os.PathLike)):
        return os.fspath(source)
    return type(source).__name__


def _text_lines(stream: IO) -> Iterator[tuple[int, str]]:
    lines = iter(stream)
    lineno = 0
    while True:
        try:
            raw = next(lines)
        except StopIteration:
            return
        except UnicodeDecodeError as exc:
            raise FormatError(f"Undecodable data after line {lineno}") from exc
        lineno += 1
        if isinstance(raw, bytes):
            try:
                raw = raw.decode("ascii")
            except UnicodeDecodeError as exc:
                raise FormatError(f"Non-ASCII data at line {lineno}") from exc
        yield lineno, raw.strip()


def _iter_blocks(lines: Iterable[tuple[int, str]]) -> Iterator[tuple[str, bytes]]:
    """Yield ``(label, der)`` for every armored block, in stream order."""
    label = None
    body: list[str] = []
    for lineno, line in lines:
        if label is None:
            begin = _BEGIN.match(line)
            if begin:
                label = begin.group(1)
                body = []
            elif _END.match(line):
                raise FormatError(f"END marker without BEGIN at line {lineno}")
            continue

        end = _END.match(line)
        if end:
            if end.group(1) != label:
                raise FormatError(
                    f"END label {end.group(1)!r} does not match BEGIN label {label!r} at line {lineno}"
                )
            try:
                der = base64.b64decode("".join(body), validate=True)
            except (binascii.Error, ValueError) as exc:
                raise FormatError(f"Invalid base64 in {label} block: {exc}") from exc
            yield label, der
            label = None
        elif _BEGIN.match(line):
            raise FormatError(f"Nested BEGIN marker at line {lineno}")
        elif ":" in line:
            # RFC 1421 encapsulated headers (encrypted legacy keys)
            raise FormatError(f"Unsupported PEM header in {label} block at line {lineno}")
        elif line:
            body.append(line)

    if label is not None:
        raise FormatError(f"Unterminated {label} block")


def _load(label: str, der: bytes) -> PemObject:
    kind = _LABELS.get(label, PemKind.UNRECOGNIZED)
    try:
        if kind is PemKind.CERTIFICATE:
            value: Any = x509.load_der_x509_certificate(der)
        elif kind is PemKind.PRIVATE_KEY:
            value = serialization.load_der_private_key(der, password=None)
        elif kind is PemKind.KEY_PAIR:
            value = KeyPair.from_private_key(serialization.load_der_private_key(der, password=None))
        elif kind is PemKind.PUBLIC_KEY:
            value = serialization.load_der_public_key(der)
        elif kind is PemKind.CERTIFICATE_REQUEST:
            value = x509.load_der_x509_csr(der)
        elif kind is PemKind.REVOCATION_LIST:
            value = x509.load_der_x509_crl(der)
        else:
            value = der
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise FormatError(f"Malformed {label} block: {exc}") from exc
    return PemObject(kind=kind, label=label, value=value)


# ----------------------------------------------------------------------
# Decoding
# ----------------------------------------------------------------------


def decode(source: PemSource) -> Iterator[PemObject]:
    """Lazily decode every armored block in *source*.

    The returned generator consumes the stream once; the underlying file is
    released when iteration finishes, fails, or the generator is closed.

    Raises:
        FormatError: On malformed armor or an undecodable block body.
    """
    with open_source(source) as stream:
        for label, der in _iter_blocks(_text_lines(stream)):
            obj = _load(label, der)
            logger.debug(
                "Loaded PEM object of type '%s' from '%s'", obj.kind.value, _describe(source)
            )
            yield obj


def decode_certificates(source: PemSource) -> list[x509.Certificate]:
    """Decode an ordered list of certificates.

    Raises:
        FormatError: If any block is not a certificate.
    """
    return [obj.as_certificate() for obj in decode(source)]


def to_private_key(obj: PemObject) -> PrivateKeyTypes:
    """Extract the private key from a key-bearing object.

    A key-pair block yields only its private half.
    """
    if obj.kind is PemKind.KEY_PAIR:
        return obj.value.private_key
    return obj.as_private_key()


def decode_private_keys(source: PemSource) -> list[PrivateKeyTypes]:
    """Decode every block as a private key, in stream order.

    Raises:
        FormatError: If any block is not key-bearing.
    """
    return [to_private_key(obj) for obj in decode(source)]


def decode_private_key(source: PemSource) -> PrivateKeyTypes:
    """Decode the single private key held in *source*.

    Blocks that carry no key (certificates in a combined file, for example)
    are skipped.

    Raises:
        FormatError: Unless exactly one key-bearing block is present.
    """
    keys = [to_private_key(obj) for obj in decode(source) if obj.is_key_bearing]
    if len(keys) != 1:
        raise FormatError(f"Expected exactly one private key, found {len(keys)}")
    return keys[0]


def decode_request(source: PemSource) -> x509.CertificateSigningRequest:
    """Decode a PEM stream holding exactly one certificate signing request."""
    objs = list(decode(source))
    if len(objs) != 1:
        raise FormatError(f"Expected exactly one certificate request, found {len(objs)} objects")
    return objs[0].as_request()


# ----------------------------------------------------------------------
# Encoding
# ----------------------------------------------------------------------


def _armor(label: str, der: bytes) -> bytes:
    b64 = base64.b64encode(der).decode("ascii")
    lines = [b64[i : i + 64] for i in range(0, len(b64), 64)]
    return (
        f"-----BEGIN {label}-----\n" + "\n".join(lines) + f"\n-----END {label}-----\n"
    ).encode("ascii")


def encode_to_bytes(obj: Any) -> bytes:
    """Encode one object as a single armored block.

    Raises:
        FormatError: If the object cannot be PEM-encoded.
    """
    if isinstance(obj, PemObject):
        if obj.kind is PemKind.UNRECOGNIZED:
            return _armor(obj.label, obj.value)
        obj = obj.value

    try:
        if isinstance(
            obj,
            (x509.Certificate, x509.CertificateSigningRequest, x509.CertificateRevocationList),
        ):
            return obj.public_bytes(serialization.Encoding.PEM)
        if isinstance(obj, KeyPair):
            return obj.private_key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.TraditionalOpenSSL,
                encryption_algorithm=serialization.NoEncryption(),
            )
        if isinstance(obj, _PRIVATE_KEY_TYPES):
            return obj.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            )
        if isinstance(obj, _PUBLIC_KEY_TYPES):
            return obj.public_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PublicFormat.SubjectPublicKeyInfo,
            )
    except ValueError as exc:
        raise FormatError(f"Cannot PEM-encode {type(obj).__name__}: {exc}") from exc

    raise FormatError(f"Cannot PEM-encode object of type {type(obj).__name__}")


def encode(obj: Any, sink: Union[str, os.PathLike, IO], append: bool = False) -> None:
    """Write *obj* to *sink* as one armored block.

    Args:
        obj: Certificate, request, CRL, key, ``KeyPair`` or ``PemObject``.
        sink: Path or writable file object (text or binary).
        append: For path sinks, append instead of overwriting.
    """
    data = encode_to_bytes(obj)
    with open_sink(sink, append=append) as stream:
        if isinstance(stream, io.TextIOBase):
            stream.write(data.decode("ascii"))
        else:
            stream.write(data)
