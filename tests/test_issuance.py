"""Tests for request building, certificate and revocation list issuance."""

from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, padding

from meshpki.config import PKIConfig, RevocationPolicy, SignaturePolicy, ValidityPolicy
from meshpki.engine import SoftwareCryptoEngine
from meshpki.exceptions import SigningError, ValidationError
from meshpki.identity import KeyGenerator, KeyPair, common_name, from_common_name
from meshpki.issuance import (
    CertificateAuthority,
    CertificateIssuer,
    RequestBuilder,
    RevocationListIssuer,
    validity_window,
)

ISSUED_AT = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FixedClockEngine(SoftwareCryptoEngine):
    """Software engine whose clock never moves."""

    def __init__(self, now: datetime = ISSUED_AT) -> None:
        self._now = now

    def now(self) -> datetime:
        return self._now


@pytest.fixture(scope="module")
def subject_keys() -> KeyPair:
    return KeyGenerator().generate(2048)


@pytest.fixture(scope="module")
def issuer_keys() -> KeyPair:
    return KeyGenerator().generate(2048)


@pytest.fixture(scope="module")
def request_(subject_keys: KeyPair) -> x509.CertificateSigningRequest:
    return RequestBuilder().build(subject_keys, from_common_name("test.example.org"))


def _verify_signature(cert, public_key) -> None:
    public_key.verify(
        cert.signature,
        cert.tbs_certificate_bytes,
        padding.PKCS1v15(),
        cert.signature_hash_algorithm,
    )


class TestRequestBuilder:
    def test_embeds_subject_and_key(self, request_, subject_keys):
        assert common_name(request_.subject) == "test.example.org"
        assert request_.public_key().public_numbers() == subject_keys.public_key.public_numbers()

    def test_self_signature_valid(self, request_):
        assert request_.is_signature_valid

    def test_baseline_digest_is_sha256(self, request_):
        assert isinstance(request_.signature_hash_algorithm, hashes.SHA256)

    def test_upgraded_digest(self, subject_keys):
        builder = RequestBuilder(
            policy=SignaturePolicy(request_digest="sha384", certificate_digest="sha512")
        )
        csr = builder.build(subject_keys, from_common_name("upgraded.example.org"))
        assert isinstance(csr.signature_hash_algorithm, hashes.SHA384)

    def test_no_extensions(self, request_):
        assert len(request_.extensions) == 0

    def test_incompatible_key(self):
        pair = KeyPair.from_private_key(ed25519.Ed25519PrivateKey.generate())
        with pytest.raises(SigningError, match="Cannot sign request"):
            RequestBuilder().build(pair, from_common_name("ed.example.org"))


class TestValidityWindow:
    def test_default_window(self):
        not_before, not_after = validity_window(ISSUED_AT, ValidityPolicy())
        assert not_before == ISSUED_AT - timedelta(days=1)
        assert not_after == datetime(2029, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
        # 2028 is a leap year
        assert not_after - not_before == timedelta(days=5 * 365 + 1 + 1)

    @pytest.mark.parametrize(
        "issued_at, expected",
        [
            (datetime(2026, 10, 17, 12, tzinfo=timezone.utc), datetime(2031, 10, 17, 12, tzinfo=timezone.utc)),
            (datetime(2027, 3, 1, tzinfo=timezone.utc), datetime(2032, 3, 1, tzinfo=timezone.utc)),
            (datetime(2024, 2, 29, tzinfo=timezone.utc), datetime(2029, 2, 28, tzinfo=timezone.utc)),
        ],
    )
    def test_calendar_years_across_leap_days(self, issued_at, expected):
        _, not_after = validity_window(issued_at, ValidityPolicy())
        assert not_after == expected

    def test_custom_window(self):
        not_before, not_after = validity_window(
            ISSUED_AT, ValidityPolicy(clock_skew_days=0, validity_years=0, validity_days=90)
        )
        assert not_before == ISSUED_AT
        assert not_after == ISSUED_AT + timedelta(days=90)


class TestCertificateIssuer:
    def test_end_to_end(self, request_, issuer_keys):
        cert = CertificateIssuer().issue(
            request_, from_common_name("Test CA"), 1, issuer_keys.private_key
        )
        assert common_name(cert.subject) == "test.example.org"
        assert common_name(cert.issuer) == "Test CA"
        assert cert.serial_number == 1
        _verify_signature(cert, issuer_keys.public_key)

    def test_default_policies_build_and_issue(self, issuer_keys):
        pair = KeyGenerator().generate(2048)
        csr = RequestBuilder().build(pair, from_common_name("defaults.example.org"))
        cert = CertificateIssuer().issue(
            csr, from_common_name("Test CA"), 7, issuer_keys.private_key
        )
        assert csr.is_signature_valid
        assert common_name(cert.subject) == "defaults.example.org"
        _verify_signature(cert, issuer_keys.public_key)

    def test_copies_public_key_verbatim(self, request_, issuer_keys, subject_keys):
        cert = CertificateIssuer().issue(
            request_, from_common_name("Test CA"), 2, issuer_keys.private_key
        )
        assert cert.public_key().public_numbers() == subject_keys.public_key.public_numbers()

    def test_signed_with_stronger_digest(self, request_, issuer_keys):
        cert = CertificateIssuer().issue(
            request_, from_common_name("Test CA"), 3, issuer_keys.private_key
        )
        assert isinstance(cert.signature_hash_algorithm, hashes.SHA384)
        assert isinstance(request_.signature_hash_algorithm, hashes.SHA256)

    def test_validity_bounds(self, request_, issuer_keys):
        issuer = CertificateIssuer(engine=FixedClockEngine())
        cert = issuer.issue(request_, from_common_name("Test CA"), 4, issuer_keys.private_key)
        assert cert.not_valid_before_utc < ISSUED_AT < cert.not_valid_after_utc
        assert cert.not_valid_before_utc == ISSUED_AT - timedelta(days=1)
        assert cert.not_valid_after_utc == datetime(2029, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    def test_validity_override(self, request_, issuer_keys):
        issuer = CertificateIssuer(engine=FixedClockEngine())
        cert = issuer.issue(
            request_,
            from_common_name("Test CA"),
            5,
            issuer_keys.private_key,
            policy=ValidityPolicy(validity_years=0, validity_days=30),
        )
        assert cert.not_valid_after_utc == ISSUED_AT + timedelta(days=30)

    def test_does_not_reverify_request(self, request_, issuer_keys, subject_keys):
        der = bytearray(request_.public_bytes(serialization.Encoding.DER))
        der[-1] ^= 0xFF
        tampered = x509.load_der_x509_csr(bytes(der))
        assert not tampered.is_signature_valid

        cert = CertificateIssuer().issue(
            tampered, from_common_name("Test CA"), 6, issuer_keys.private_key
        )
        assert common_name(cert.subject) == "test.example.org"
        assert cert.public_key().public_numbers() == subject_keys.public_key.public_numbers()

    @pytest.mark.parametrize("serial", [0, -1, True, "1", None])
    def test_rejects_bad_serial(self, request_, issuer_keys, serial):
        with pytest.raises(ValidationError, match="Serial number"):
            CertificateIssuer().issue(
                request_, from_common_name("Test CA"), serial, issuer_keys.private_key
            )

    def test_rejects_non_rsa_issuer_key(self, request_):
        key = ec.generate_private_key(ec.SECP256R1())
        with pytest.raises(SigningError, match="not an RSA private key"):
            CertificateIssuer().issue(request_, from_common_name("Test CA"), 1, key)


class TestRevocationListIssuer:
    def test_empty_signed_list(self, issuer_keys):
        crl = RevocationListIssuer().issue(from_common_name("Test CA"), issuer_keys.private_key)
        assert len(crl) == 0
        assert crl.is_signature_valid(issuer_keys.public_key)
        assert isinstance(crl.signature_hash_algorithm, hashes.SHA384)
        assert common_name(crl.issuer) == "Test CA"

    def test_century_window(self, issuer_keys):
        crl = RevocationListIssuer(engine=FixedClockEngine()).issue(
            from_common_name("Test CA"), issuer_keys.private_key
        )
        assert crl.last_update_utc == ISSUED_AT
        assert crl.next_update_utc == datetime(2124, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    def test_century_window_is_calendar_years(self, issuer_keys):
        now = datetime(2026, 10, 17, 12, tzinfo=timezone.utc)
        crl = RevocationListIssuer(engine=FixedClockEngine(now)).issue(
            from_common_name("Test CA"), issuer_keys.private_key
        )
        assert crl.next_update_utc == datetime(2126, 10, 17, 12, tzinfo=timezone.utc)

    def test_policy_override(self, issuer_keys):
        crl = RevocationListIssuer(engine=FixedClockEngine()).issue(
            from_common_name("Test CA"),
            issuer_keys.private_key,
            policy=RevocationPolicy(next_update_years=0, next_update_days=7),
        )
        assert crl.next_update_utc == ISSUED_AT + timedelta(days=7)

    def test_rejects_non_rsa_key(self):
        key = ec.generate_private_key(ec.SECP256R1())
        with pytest.raises(SigningError):
            RevocationListIssuer().issue(from_common_name("Test CA"), key)


class TestCertificateAuthority:
    @pytest.fixture(scope="class")
    def ca(self) -> CertificateAuthority:
        return CertificateAuthority.create("Mesh Root CA", bits=2048)

    def test_self_signed_ca_certificate(self, ca):
        cert = ca.certificate
        assert cert.subject == cert.issuer == ca.name
        cert.verify_directly_issued_by(cert)
        constraints = cert.extensions.get_extension_for_class(x509.BasicConstraints)
        assert constraints.value.ca is True

    def test_sign_request(self, ca, request_):
        cert = ca.sign(request_, serial=42)
        assert cert.serial_number == 42
        assert cert.issuer == ca.name
        cert.verify_directly_issued_by(ca.certificate)

    def test_random_serial_when_omitted(self, ca, request_):
        cert = ca.sign(request_)
        assert cert.serial_number > 0

    def test_issue_generates_key_and_certificate(self, ca):
        pair, cert = ca.issue("svc.example.org", bits=1024)
        assert common_name(cert.subject) == "svc.example.org"
        assert cert.public_key().public_numbers() == pair.public_key.public_numbers()

    def test_revocation_list(self, ca):
        crl = ca.revocation_list()
        assert crl.issuer == ca.name
        assert crl.is_signature_valid(ca.certificate.public_key())

    def test_certificate_pem(self, ca):
        assert ca.certificate_pem().startswith("-----BEGIN CERTIFICATE-----")

    def test_config_flows_to_components(self):
        config = PKIConfig(validity=ValidityPolicy(validity_years=0, validity_days=10))
        ca = CertificateAuthority.create(
            "Short CA", bits=1024, engine=FixedClockEngine(), config=config
        )
        _, cert = ca.issue("short.example.org", serial=1, bits=1024)
        assert cert.not_valid_after_utc == ISSUED_AT + timedelta(days=10)
        assert ca.certificate.not_valid_after_utc == ISSUED_AT + timedelta(days=10)
