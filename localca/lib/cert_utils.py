"""Certificate utility functions for key generation, serialization, and file output."""

import getpass
import os
import socket
import uuid
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.asymmetric.types import CertificateIssuerPrivateKeyTypes


def generate_private_key(key_size: int = 2048) -> rsa.RSAPrivateKey:
    """Generate RSA private key with specified size."""
    return rsa.generate_private_key(
        public_exponent=65537,
        key_size=key_size,
    )


def generate_ecdsa_private_key() -> ec.EllipticCurvePrivateKey:
    """Generate ECDSA P-256 private key."""
    return ec.generate_private_key(ec.SECP256R1())


def serialize_private_key(key: CertificateIssuerPrivateKeyTypes) -> bytes:
    """Serialize private key to PEM format (PKCS8, no encryption)."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def deserialize_private_key(pem_data: bytes) -> CertificateIssuerPrivateKeyTypes:
    """Deserialize a PKCS8 private key from PEM bytes.

    Raises:
        ValueError: If the key is not an RSA or ECDSA key
    """
    key = serialization.load_pem_private_key(pem_data, password=None)
    if not isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        raise ValueError("expected RSA or ECDSA private key")
    return key


def serialize_certificate(cert: x509.Certificate) -> bytes:
    """Serialize certificate to PEM format."""
    return cert.public_bytes(serialization.Encoding.PEM)


def deserialize_certificate(pem_data: bytes) -> x509.Certificate:
    """Deserialize certificate from PEM bytes."""
    return x509.load_pem_x509_certificate(pem_data)


def generate_serial_number() -> int:
    """Generate certificate serial number from UUID4.

    Returns:
        Integer serial number for x509.CertificateBuilder.serial_number()
    """
    return uuid.uuid4().int


def user_and_hostname() -> str:
    """Describe the current user as user@host, used in CA and leaf subjects."""
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = "unknown"
    return f"{user}@{socket.gethostname()}"


def write_file(path: Path, data: bytes, mode: int) -> None:
    """Create or truncate path with the given permission bits and write data."""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    os.chmod(path, mode)
