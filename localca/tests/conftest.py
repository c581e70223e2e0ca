"""Test fixtures for localca tests."""

import subprocess
from collections.abc import Generator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from localca.lib.ca_engine import CertificateEngine
from localca.lib.cert_utils import generate_private_key
from localca.lib.certificate_builder import CertificateBuilder
from localca.lib.certutil import CertutilProvisioner
from localca.lib.config import CAConfig, DistinguishedName

FAKE_CERTUTIL = "/opt/nss/bin/certutil"
SUDO_PREFIX = ["sudo", "--prompt=Sudo password:", "--"]


class FakeCertutil:
    """Stand-in for subprocess.run that behaves like certutil against in-memory databases.

    Databases listed in read_only reject -A/-D unless the command runs under sudo;
    databases listed in locked report read-only even under sudo; databases listed
    in broken reject them always.
    """

    def __init__(
        self,
        read_only: set[str] | None = None,
        broken: set[str] | None = None,
        locked: set[str] | None = None,
    ) -> None:
        self.read_only = read_only or set()
        self.locked = locked or set()
        self.broken = broken or set()
        self.trusted: set[str] = set()
        self.calls: list[list[str]] = []

    def __call__(self, args: list[str], **kwargs: object) -> subprocess.CompletedProcess:
        self.calls.append(list(args))
        elevated = args[: len(SUDO_PREFIX)] == SUDO_PREFIX
        command = args[len(SUDO_PREFIX) :] if elevated else args
        operation = command[1]
        db = command[command.index("-d") + 1]

        if operation == "-V":
            returncode = 0 if db in self.trusted else 255
            return subprocess.CompletedProcess(args, returncode, stdout=b"")

        if db in self.broken:
            return subprocess.CompletedProcess(args, 255, stdout=b"SEC_ERROR_BAD_DATABASE")
        if db in self.locked or (db in self.read_only and not elevated):
            return subprocess.CompletedProcess(
                args, 255, stdout=b"certutil: could not change trust: SEC_ERROR_READ_ONLY"
            )

        if operation == "-A":
            self.trusted.add(db)
        elif operation == "-D":
            self.trusted.discard(db)
        return subprocess.CompletedProcess(args, 0, stdout=b"")

    def calls_for(self, operation: str) -> list[list[str]]:
        return [call for call in self.calls if operation in call]


@pytest.fixture(autouse=True)
def isolated_caroot(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Point $CAROOT at a temporary directory for every test."""
    caroot = tmp_path / "env-caroot"
    monkeypatch.setenv("CAROOT", str(caroot))
    return caroot


@pytest.fixture
def temp_output_dir(tmp_path: Path) -> Path:
    """Return temporary directory for test output artifacts."""
    output_dir = tmp_path / "out"
    output_dir.mkdir()
    return output_dir


@pytest.fixture
def ca_config(tmp_path: Path) -> CAConfig:
    """Return test CA configuration with small keys and no real NSS databases."""
    return CAConfig(
        ca_root=tmp_path / "caroot",
        root_key_size=2048,  # Faster for tests
        leaf_key_size=2048,
        nss_dbs=[],
        firefox_profile_globs=[],
    )


@pytest.fixture
def engine(ca_config: CAConfig) -> CertificateEngine:
    """Return certificate engine with a freshly created CA."""
    engine = CertificateEngine(ca_root=ca_config.ca_root, config=ca_config)
    engine.load_ca()
    return engine


@pytest.fixture
def root_key() -> RSAPrivateKey:
    """Generate RSA private key for Root CA."""
    return generate_private_key(key_size=2048)


@pytest.fixture
def root_dn() -> DistinguishedName:
    """Return test Root CA distinguished name."""
    return DistinguishedName(
        organization="Test Org",
        organizational_unit="tester@testhost",
        common_name="Test Root CA",
    )


@pytest.fixture
def root_cert(root_key: RSAPrivateKey, root_dn: DistinguishedName) -> x509.Certificate:
    """Generate self-signed Root CA certificate."""
    return CertificateBuilder.build_root_ca(
        subject_dn=root_dn,
        private_key=root_key,
        validity_years=1,
    )


@pytest.fixture
def nss_layout(tmp_path: Path) -> tuple[list[Path], list[str]]:
    """Create system and Firefox NSS databases on disk.

    Creates:
        {tmp}/nssdb/cert9.db                      (sql:)
        {tmp}/firefox/abcd.default/cert9.db       (sql:)
        {tmp}/firefox/efgh.legacy/cert8.db        (dbm:)
        {tmp}/firefox/ijkl.empty/                 (skipped)

    Returns:
        Tuple of (nss_dbs, firefox_profile_globs)
    """
    system_db = tmp_path / "nssdb"
    system_db.mkdir()
    (system_db / "cert9.db").write_bytes(b"")

    firefox = tmp_path / "firefox"
    for name, marker in (("abcd.default", "cert9.db"), ("efgh.legacy", "cert8.db")):
        profile = firefox / name
        profile.mkdir(parents=True)
        (profile / marker).write_bytes(b"")
    (firefox / "ijkl.empty").mkdir()
    (firefox / "profiles.ini").write_text("[General]\n")

    return [system_db, tmp_path / "missing-nssdb"], [str(firefox / "*")]


@pytest.fixture
def stub_provisioner() -> MagicMock:
    """Provisioner that resolves to a fixed certutil path."""
    provisioner = MagicMock(spec=CertutilProvisioner)
    provisioner.resolve.return_value = FAKE_CERTUTIL
    return provisioner


@pytest.fixture
def fake_certutil() -> Generator[FakeCertutil]:
    """Patch certutil execution and sudo wrapping in the nss module."""
    fake = FakeCertutil()
    with (
        patch("localca.lib.nss.subprocess.run", side_effect=fake),
        patch(
            "localca.lib.nss.command_with_sudo",
            side_effect=lambda args: [*SUDO_PREFIX, *args],
        ),
    ):
        yield fake
