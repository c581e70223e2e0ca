"""Local CA configuration dataclasses and CA root resolution."""

import os
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path

from cryptography import x509
from cryptography.x509 import oid

CAROOT_ENV = "CAROOT"
CAROOT_DIR_NAME = "localca"

ROOT_CERT_NAME = "rootCA.pem"
ROOT_KEY_NAME = "rootCA-key.pem"


@dataclass
class CAConfig:
    """Local CA configuration.

    Optional path fields fall back to platform defaults when left as None.
    """

    ca_root: Path | None = None
    root_key_size: int = 3072
    leaf_key_size: int = 2048
    root_validity_years: int = 10
    # 2 years and 3 months, under the 825 day limit browsers enforce
    leaf_validity_days: int = 825
    use_ecdsa: bool = False
    client_cert: bool = False
    nss_dbs: list[Path] | None = None
    firefox_profile_globs: list[str] | None = None
    certutil_bundle_dir: Path | None = None


@dataclass
class DistinguishedName:
    """X.509 Subject Distinguished Name.

    Only the fields set are rendered, in O, OU, CN order.
    """

    organization: str
    organizational_unit: str
    common_name: str | None = None

    def to_x509_name(self) -> x509.Name:
        """Convert to cryptography x509.Name for certificate generation."""
        attributes = [
            x509.NameAttribute(oid.NameOID.ORGANIZATION_NAME, self.organization),
            x509.NameAttribute(oid.NameOID.ORGANIZATIONAL_UNIT_NAME, self.organizational_unit),
        ]
        if self.common_name:
            attributes.append(x509.NameAttribute(oid.NameOID.COMMON_NAME, self.common_name))
        return x509.Name(attributes)


def get_ca_root() -> Path:
    """Return the directory holding the local CA files.

    Search order:
        1. $CAROOT
        2. %LOCALAPPDATA% on Windows
        3. ~/Library/Application Support on macOS
        4. $XDG_DATA_HOME, then ~/.local/share elsewhere
        5. the system temp directory, when none of the above exists
    """
    env_root = os.environ.get(CAROOT_ENV)
    if env_root:
        return Path(env_root)

    if sys.platform == "win32":
        base = os.environ.get("LOCALAPPDATA")
        return Path(base) / CAROOT_DIR_NAME if base else _fallback_ca_root()

    xdg_data_home = os.environ.get("XDG_DATA_HOME")
    if sys.platform != "darwin" and xdg_data_home:
        return Path(xdg_data_home) / CAROOT_DIR_NAME

    try:
        home = Path.home()
    except RuntimeError:
        return _fallback_ca_root()

    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / CAROOT_DIR_NAME
    return home / ".local" / "share" / CAROOT_DIR_NAME


def _fallback_ca_root() -> Path:
    return Path(tempfile.gettempdir()) / CAROOT_DIR_NAME
