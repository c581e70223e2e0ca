"""NSS security database discovery and CA trust management via certutil."""

import glob
import os
import shutil
import subprocess
import sys
from collections.abc import Callable
from pathlib import Path

from .certutil import CertutilProvisioner, get_default_provisioner
from .config import ROOT_CERT_NAME
from .errors import ToolProvisioningError, TrustStoreError
from .fatal import fatal
from .logging_config import LOGGER
from .models import ProfileFormat, TrustStoreProfile, TrustStoreReport

NSS_BROWSERS = "Firefox and/or Chrome/Chromium" if sys.platform.startswith("linux") else "Firefox"
READ_ONLY_MARKER = b"SEC_ERROR_READ_ONLY"

MODERN_DB_MARKER = "cert9.db"
LEGACY_DB_MARKER = "cert8.db"

FIREFOX_PATHS = [
    "/usr/bin/firefox",
    "/usr/bin/firefox-nightly",
    "/usr/bin/firefox-developer-edition",
    "/snap/firefox",
    "/Applications/Firefox.app",
    "/Applications/FirefoxDeveloperEdition.app",
    "/Applications/Firefox Developer Edition.app",
    "/Applications/Firefox Nightly.app",
    "C:\\Program Files\\Mozilla Firefox",
]


def default_nss_dbs() -> list[Path]:
    """System-level NSS databases (Chrome/Chromium on Linux, CentOS shared DB)."""
    home = Path.home()
    return [
        home / ".pki" / "nssdb",
        home / "snap" / "chromium" / "current" / ".pki" / "nssdb",
        Path("/etc/pki/nssdb"),
    ]


def default_firefox_profile_globs() -> list[str]:
    """Glob patterns matching one directory per Firefox profile."""
    home = Path.home()
    if sys.platform == "darwin":
        return [str(home / "Library" / "Application Support" / "Firefox" / "Profiles" / "*")]
    if sys.platform == "win32":
        return [os.path.join(os.environ.get("APPDATA", ""), "Mozilla", "Firefox", "Profiles", "*")]
    return [
        str(home / ".mozilla" / "firefox" / "*"),
        str(home / "snap" / "firefox" / "common" / ".mozilla" / "firefox" / "*"),
    ]


def command_with_sudo(args: list[str]) -> list[str]:
    """Prefix args with sudo unless already root or sudo is unavailable."""
    if sys.platform == "win32" or os.geteuid() == 0:
        return args
    if shutil.which("sudo") is None:
        LOGGER.warning("sudo is not available, running certutil without elevated privileges")
        return args
    return ["sudo", "--prompt=Sudo password:", "--", *args]


def exec_certutil(args: list[str]) -> subprocess.CompletedProcess:
    """Run certutil, retrying once under sudo if the database is read-only.

    Args:
        args: Full command line, certutil path first

    Returns:
        CompletedProcess with stderr folded into stdout
    """
    result = _run(args)
    if result.returncode != 0 and READ_ONLY_MARKER in result.stdout and sys.platform != "win32":
        LOGGER.info("NSS database is read-only, retrying with elevated privileges")
        result = _run(command_with_sudo(args))
    return result


def _run(args: list[str]) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(args, stdout=subprocess.PIPE, stderr=subprocess.STDOUT)
    except OSError as e:
        return subprocess.CompletedProcess(args, 127, stdout=str(e).encode())


class NSSTrustStore:
    """Installs, verifies and removes the local CA in every NSS database found."""

    def __init__(
        self,
        ca_root: Path,
        unique_name: str,
        nss_dbs: list[Path] | None = None,
        firefox_profile_globs: list[str] | None = None,
        provisioner: CertutilProvisioner | None = None,
    ) -> None:
        """Initialize trust store manager.

        Args:
            ca_root: Directory holding the CA certificate (rootCA.pem)
            unique_name: Nickname the CA is stored under in each database
            nss_dbs: System database directories (default: platform defaults)
            firefox_profile_globs: Profile glob patterns (default: platform defaults)
            provisioner: certutil resolver (default: process-wide provisioner)
        """
        self.ca_root = ca_root
        self.unique_name = unique_name
        self.nss_dbs = nss_dbs if nss_dbs is not None else default_nss_dbs()
        self.firefox_profile_globs = (
            firefox_profile_globs
            if firefox_profile_globs is not None
            else default_firefox_profile_globs()
        )
        self.provisioner = provisioner or get_default_provisioner()

    def has_nss(self) -> bool:
        """Return True if any NSS database location or Firefox install exists."""
        candidates = [str(path) for path in self.nss_dbs] + FIREFOX_PATHS
        return any(os.path.exists(path) for path in candidates)

    def discover_profiles(self) -> list[TrustStoreProfile]:
        """List usable NSS databases without modifying anything.

        cert9.db marks a modern sql: database and cert8.db a legacy dbm: one;
        directories with neither are skipped.
        """
        candidates = list(self.nss_dbs)
        for pattern in self.firefox_profile_globs:
            candidates.extend(Path(match) for match in sorted(glob.glob(pattern)))

        profiles = []
        for candidate in candidates:
            if not candidate.is_dir():
                continue
            if (candidate / MODERN_DB_MARKER).exists():
                profiles.append(TrustStoreProfile(candidate, ProfileFormat.SQL))
            elif (candidate / LEGACY_DB_MARKER).exists():
                profiles.append(TrustStoreProfile(candidate, ProfileFormat.DBM))
        return profiles

    def for_each_profile(self, action: Callable[[TrustStoreProfile], None]) -> int:
        """Apply action to every discovered profile and return how many were found."""
        profiles = self.discover_profiles()
        for profile in profiles:
            action(profile)
        return len(profiles)

    def _certutil(self) -> str:
        try:
            return self.provisioner.resolve()
        except ToolProvisioningError as e:
            fatal(e)

    def _is_trusted(self, certutil: str, profile: TrustStoreProfile) -> bool:
        result = _run([certutil, "-V", "-d", profile.db_spec, "-u", "L", "-n", self.unique_name])
        return result.returncode == 0

    def check(self) -> bool:
        """Return True if the CA is trusted in every profile and at least one exists."""
        certutil = self._certutil()
        trusted = []
        found = self.for_each_profile(lambda profile: trusted.append(self._is_trusted(certutil, profile)))
        return found > 0 and all(trusted)

    def install(self) -> TrustStoreReport:
        """Add the CA as a trusted SSL issuer to every profile, then verify.

        Profiles that fail are logged and counted; the rest are still processed.

        Returns:
            TrustStoreReport with per-profile counts

        Raises:
            TrustStoreError: If no profile exists or verification fails afterwards
        """
        certutil = self._certutil()
        root_cert_path = str(self.ca_root / ROOT_CERT_NAME)
        report = TrustStoreReport()

        def add(profile: TrustStoreProfile) -> None:
            result = exec_certutil(
                [
                    certutil,
                    "-A",
                    "-d",
                    profile.db_spec,
                    "-t",
                    "C,,",
                    "-n",
                    self.unique_name,
                    "-i",
                    root_cert_path,
                ]
            )
            if result.returncode != 0:
                report.failed += 1
                LOGGER.warning(
                    'failed to execute "certutil -A -d %s": %s',
                    profile.db_spec,
                    result.stdout.decode("utf-8", errors="replace").strip(),
                )
                return
            report.succeeded += 1

        report.found = self.for_each_profile(add)
        if report.found == 0:
            raise TrustStoreError(f"no {NSS_BROWSERS} security databases found", report)

        if not self.check():
            raise TrustStoreError(
                f"installing in {NSS_BROWSERS} failed "
                f"({report.failed} of {report.found} databases reported errors). "
                f"Note that if you never started {NSS_BROWSERS}, you need to do that at least once.",
                report,
            )

        LOGGER.info("The local CA is now installed in the %s trust store", NSS_BROWSERS)
        return report

    def uninstall(self) -> TrustStoreReport:
        """Remove the CA from every profile that currently trusts it.

        Returns:
            TrustStoreReport with per-profile counts; untrusted profiles count as skipped

        Raises:
            TrustStoreError: If removal failed for any profile
        """
        certutil = self._certutil()
        report = TrustStoreReport()

        def remove(profile: TrustStoreProfile) -> None:
            if not self._is_trusted(certutil, profile):
                report.skipped += 1
                return
            result = exec_certutil([certutil, "-D", "-d", profile.db_spec, "-n", self.unique_name])
            if result.returncode != 0:
                report.failed += 1
                LOGGER.warning(
                    'failed to execute "certutil -D -d %s": %s',
                    profile.db_spec,
                    result.stdout.decode("utf-8", errors="replace").strip(),
                )
                return
            report.succeeded += 1

        report.found = self.for_each_profile(remove)
        if report.failed:
            raise TrustStoreError(
                f"failed to remove the local CA from {report.failed} of "
                f"{report.found} {NSS_BROWSERS} security databases",
                report,
            )

        LOGGER.info("The local CA is now uninstalled from the %s trust store", NSS_BROWSERS)
        return report
