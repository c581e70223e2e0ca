"""Certificate builder for X.509 certificate construction."""

import ipaddress
from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.types import (
    CertificateIssuerPrivateKeyTypes,
    CertificatePublicKeyTypes,
)
from cryptography.x509.oid import ExtendedKeyUsageOID

from .cert_utils import generate_serial_number
from .config import DistinguishedName
from .models import Identifier, IdentifierKind


def build_subject_alternative_name(identifiers: list[Identifier]) -> x509.SubjectAlternativeName:
    """Map classified identifiers onto SAN entries (IP, email, URI, DNS)."""
    names: list[x509.GeneralName] = []
    for identifier in identifiers:
        if identifier.kind is IdentifierKind.IP:
            names.append(x509.IPAddress(ipaddress.ip_address(identifier.value)))
        elif identifier.kind is IdentifierKind.EMAIL:
            names.append(x509.RFC822Name(identifier.value))
        elif identifier.kind is IdentifierKind.URL:
            names.append(x509.UniformResourceIdentifier(identifier.value))
        else:
            names.append(x509.DNSName(identifier.value))
    return x509.SubjectAlternativeName(names)


def leaf_extended_key_usage(
    identifiers: list[Identifier], client: bool = False
) -> x509.ExtendedKeyUsage | None:
    """Pick extended key usages from the identifier kinds present.

    serverAuth for IPs, DNS names or URIs; clientAuth for client certificates;
    emailProtection for email addresses.
    """
    kinds = {identifier.kind for identifier in identifiers}
    usages = []
    if client:
        usages.append(ExtendedKeyUsageOID.CLIENT_AUTH)
    if kinds & {IdentifierKind.IP, IdentifierKind.HOSTNAME, IdentifierKind.URL}:
        usages.append(ExtendedKeyUsageOID.SERVER_AUTH)
    if IdentifierKind.EMAIL in kinds:
        usages.append(ExtendedKeyUsageOID.EMAIL_PROTECTION)
    if not usages:
        return None
    return x509.ExtendedKeyUsage(usages)


class CertificateBuilder:
    """Builds X.509 certificates for the local CA and the leaf certificates it signs."""

    @staticmethod
    def build_root_ca(
        subject_dn: DistinguishedName,
        private_key: CertificateIssuerPrivateKeyTypes,
        validity_years: int,
    ) -> x509.Certificate:
        """Build self-signed Root CA certificate.

        Args:
            subject_dn: Distinguished name for certificate subject
            private_key: Private key for signing
            validity_years: Certificate validity period in years

        Returns:
            Self-signed X.509 certificate with CA extensions, path length 0
        """
        subject = subject_dn.to_x509_name()
        public_key = private_key.public_key()
        not_before = datetime.now(timezone.utc)
        not_after = not_before + timedelta(days=validity_years * 365)

        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(subject)
            .public_key(public_key)
            .serial_number(generate_serial_number())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
            .add_extension(
                x509.BasicConstraints(ca=True, path_length=0),
                critical=True,
            )
            .add_extension(
                x509.KeyUsage(
                    digital_signature=False,
                    content_commitment=False,
                    key_encipherment=False,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=True,
                    crl_sign=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(
                x509.SubjectKeyIdentifier.from_public_key(public_key),
                critical=False,
            )
        )

        return builder.sign(private_key, hashes.SHA256())

    @staticmethod
    def build_leaf_certificate(
        identifiers: list[Identifier],
        public_key: CertificatePublicKeyTypes,
        subject_dn: DistinguishedName,
        issuer_cert: x509.Certificate,
        issuer_key: CertificateIssuerPrivateKeyTypes,
        validity_days: int,
        client: bool = False,
    ) -> x509.Certificate:
        """Build end-entity certificate for the given identifiers, signed by the local CA.

        Args:
            identifiers: Classified hosts placed in the SubjectAlternativeName
            public_key: Public key of the leaf key pair
            subject_dn: Distinguished name for certificate subject
            issuer_cert: Root CA certificate (issuer)
            issuer_key: Root CA private key for signing
            validity_days: Certificate validity period in days
            client: Add clientAuth extended key usage

        Returns:
            X.509 end-entity certificate signed by the local CA
        """
        not_before = datetime.now(timezone.utc)
        not_after = not_before + timedelta(days=validity_days)

        builder = (
            x509.CertificateBuilder()
            .subject_name(subject_dn.to_x509_name())
            .issuer_name(issuer_cert.subject)
            .public_key(public_key)
            .serial_number(generate_serial_number())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
            .add_extension(
                x509.BasicConstraints(ca=False, path_length=None),
                critical=True,
            )
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=False,
                    key_encipherment=isinstance(public_key, rsa.RSAPublicKey),
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=False,
                    crl_sign=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(
                build_subject_alternative_name(identifiers),
                critical=False,
            )
            .add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_cert.public_key()),
                critical=False,
            )
        )

        extended_key_usage = leaf_extended_key_usage(identifiers, client=client)
        if extended_key_usage is not None:
            builder = builder.add_extension(extended_key_usage, critical=False)

        return builder.sign(issuer_key, hashes.SHA256())
