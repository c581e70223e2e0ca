"""Result models for local CA operations."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.types import CertificateIssuerPrivateKeyTypes


class IdentifierKind(Enum):
    """Classification of a host identifier, in matching order."""

    IP = "ip"
    EMAIL = "email"
    URL = "url"
    HOSTNAME = "hostname"


@dataclass(frozen=True)
class Identifier:
    """A validated and normalized host identifier."""

    value: str
    kind: IdentifierKind


@dataclass
class CAHandle:
    """Loaded or freshly created local CA.

    key is None in keyless mode, where the CA can be trusted but not used for signing.
    """

    ca_root: Path
    cert: x509.Certificate
    key: CertificateIssuerPrivateKeyTypes | None = None


@dataclass(frozen=True)
class CertificateArtifact:
    """Output paths of a leaf certificate and its private key."""

    cert_path: Path
    key_path: Path


class ProfileFormat(Enum):
    """NSS database format, used as the certutil -d prefix."""

    SQL = "sql"
    DBM = "dbm"


@dataclass(frozen=True)
class TrustStoreProfile:
    """An NSS security database found on disk."""

    path: Path
    format: ProfileFormat

    @property
    def db_spec(self) -> str:
        """Database argument for certutil -d (e.g. sql:/home/user/.pki/nssdb)."""
        return f"{self.format.value}:{self.path}"


@dataclass
class TrustStoreReport:
    """Per-profile outcome counts of an install or uninstall pass."""

    found: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
