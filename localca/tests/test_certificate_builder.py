"""Tests for certificate builder module."""

from datetime import UTC, datetime, timedelta

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from localca.lib.cert_utils import generate_ecdsa_private_key, generate_private_key
from localca.lib.certificate_builder import (
    CertificateBuilder,
    build_subject_alternative_name,
    leaf_extended_key_usage,
)
from localca.lib.config import DistinguishedName
from localca.lib.models import Identifier, IdentifierKind


class TestBuildRootCA:
    """Tests for CertificateBuilder.build_root_ca."""

    def test_key_usage_is_cert_sign_only(self, root_cert: x509.Certificate) -> None:
        """Root CA may sign certificates and nothing else."""
        ku = root_cert.extensions.get_extension_for_class(x509.KeyUsage)
        assert ku.critical is True
        assert ku.value.key_cert_sign is True
        assert ku.value.digital_signature is False
        assert ku.value.crl_sign is False

    def test_has_subject_key_identifier(self, root_cert: x509.Certificate) -> None:
        """Root CA carries a SubjectKeyIdentifier derived from its public key."""
        ski = root_cert.extensions.get_extension_for_class(x509.SubjectKeyIdentifier).value
        expected = x509.SubjectKeyIdentifier.from_public_key(root_cert.public_key())  # type: ignore[arg-type]
        assert ski.digest == expected.digest

    def test_validity_in_years(self, root_key: RSAPrivateKey, root_dn: DistinguishedName) -> None:
        """Validity spans the requested number of years."""
        cert = CertificateBuilder.build_root_ca(root_dn, root_key, validity_years=10)
        span = cert.not_valid_after_utc - cert.not_valid_before_utc
        assert span == timedelta(days=3650)

    def test_subject_fields(self, root_cert: x509.Certificate) -> None:
        """Subject carries O, OU and CN from the distinguished name."""
        subject = root_cert.subject
        assert subject.get_attributes_for_oid(NameOID.ORGANIZATION_NAME)[0].value == "Test Org"
        assert subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value == "Test Root CA"


class TestBuildLeafCertificate:
    """Tests for CertificateBuilder.build_leaf_certificate."""

    def test_leaf_has_no_common_name(
        self, root_cert: x509.Certificate, root_key: RSAPrivateKey
    ) -> None:
        """Leaf subjects identify only the issuing user; names live in the SAN."""
        leaf_key = generate_private_key(key_size=2048)
        leaf = CertificateBuilder.build_leaf_certificate(
            identifiers=[Identifier("example.test", IdentifierKind.HOSTNAME)],
            public_key=leaf_key.public_key(),
            subject_dn=DistinguishedName("Test Org", "tester@testhost"),
            issuer_cert=root_cert,
            issuer_key=root_key,
            validity_days=30,
        )

        assert leaf.subject.get_attributes_for_oid(NameOID.COMMON_NAME) == []
        assert leaf.issuer == root_cert.subject
        leaf.verify_directly_issued_by(root_cert)

    def test_leaf_validity_and_authority_key_id(
        self, root_cert: x509.Certificate, root_key: RSAPrivateKey
    ) -> None:
        """Leaf validity starts now and the AKI points at the CA key."""
        leaf_key = generate_private_key(key_size=2048)
        before = datetime.now(UTC) - timedelta(seconds=5)
        leaf = CertificateBuilder.build_leaf_certificate(
            identifiers=[Identifier("10.0.0.1", IdentifierKind.IP)],
            public_key=leaf_key.public_key(),
            subject_dn=DistinguishedName("Test Org", "tester@testhost"),
            issuer_cert=root_cert,
            issuer_key=root_key,
            validity_days=825,
        )

        assert leaf.not_valid_before_utc >= before.replace(microsecond=0)
        assert leaf.not_valid_after_utc - leaf.not_valid_before_utc == timedelta(days=825)

        aki = leaf.extensions.get_extension_for_class(x509.AuthorityKeyIdentifier).value
        ski = root_cert.extensions.get_extension_for_class(x509.SubjectKeyIdentifier).value
        assert aki.key_identifier == ski.digest


class TestExtendedKeyUsage:
    """Tests for leaf_extended_key_usage()."""

    def test_server_auth_for_hostnames(self) -> None:
        eku = leaf_extended_key_usage([Identifier("a.test", IdentifierKind.HOSTNAME)])
        assert eku is not None
        assert list(eku) == [ExtendedKeyUsageOID.SERVER_AUTH]

    def test_email_only(self) -> None:
        eku = leaf_extended_key_usage([Identifier("a@b.test", IdentifierKind.EMAIL)])
        assert eku is not None
        assert list(eku) == [ExtendedKeyUsageOID.EMAIL_PROTECTION]

    def test_client_first(self) -> None:
        eku = leaf_extended_key_usage([Identifier("a.test", IdentifierKind.HOSTNAME)], client=True)
        assert eku is not None
        assert list(eku) == [ExtendedKeyUsageOID.CLIENT_AUTH, ExtendedKeyUsageOID.SERVER_AUTH]


def test_subject_alternative_name_mapping() -> None:
    """Each identifier kind maps to its GeneralName type."""
    san = build_subject_alternative_name(
        [
            Identifier("::1", IdentifierKind.IP),
            Identifier("x@y.test", IdentifierKind.EMAIL),
            Identifier("https://y.test", IdentifierKind.URL),
            Identifier("y.test", IdentifierKind.HOSTNAME),
        ]
    )
    assert [type(name) for name in san] == [
        x509.IPAddress,
        x509.RFC822Name,
        x509.UniformResourceIdentifier,
        x509.DNSName,
    ]


def test_key_encipherment_only_for_rsa(root_cert: x509.Certificate, root_key: RSAPrivateKey) -> None:
    """ECDSA leaves sign only; RSA leaves may also encipher keys."""
    identifiers = [Identifier("example.test", IdentifierKind.HOSTNAME)]
    dn = DistinguishedName("Test Org", "tester@testhost")
    usages = {}
    for name, key in (("rsa", generate_private_key(key_size=2048)), ("ecdsa", generate_ecdsa_private_key())):
        leaf = CertificateBuilder.build_leaf_certificate(
            identifiers=identifiers,
            public_key=key.public_key(),
            subject_dn=dn,
            issuer_cert=root_cert,
            issuer_key=root_key,
            validity_days=30,
        )
        usages[name] = leaf.extensions.get_extension_for_class(x509.KeyUsage).value

    assert usages["rsa"].digital_signature and usages["rsa"].key_encipherment
    assert usages["ecdsa"].digital_signature and not usages["ecdsa"].key_encipherment
