"""CA manager: library entry point for the local CA and its trust stores."""

import threading
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from .ca_engine import CertificateEngine
from .certutil import CertutilProvisioner, get_default_provisioner
from .config import CAConfig, get_ca_root
from .errors import (
    CAInitializationError,
    IssuanceError,
    LocalCAError,
    TrustStoreError,
)
from .fatal import trap
from .identifiers import validate_hosts
from .models import CAHandle, CertificateArtifact, TrustStoreReport
from .nss import NSSTrustStore

T = TypeVar("T")


class CAManager:
    """Certificate Authority manager for local development certificates.

    Every call into the certificate engine and the NSS trust store goes
    through trap(), so failures surface as LocalCAError subclasses and never
    terminate the calling process.

    Example:
        manager = CAManager.new()
        artifact = manager.make_cert(["example.test", "*.example.test"], Path("certs"))
    """

    def __init__(
        self,
        config: CAConfig | None = None,
        engine: CertificateEngine | None = None,
        provisioner: CertutilProvisioner | None = None,
    ) -> None:
        """Initialize CA manager without loading the CA.

        Args:
            config: CA configuration (default: CAConfig())
            engine: Certificate engine (default: one rooted at the resolved CA root)
            provisioner: certutil resolver (default: one for config.certutil_bundle_dir,
                otherwise the process-wide provisioner)
        """
        self.config = config or CAConfig()
        self.engine = engine or CertificateEngine(
            ca_root=self.config.ca_root or get_ca_root(),
            config=self.config,
        )
        if provisioner is None:
            provisioner = (
                CertutilProvisioner(bundle_dir=self.config.certutil_bundle_dir)
                if self.config.certutil_bundle_dir
                else get_default_provisioner()
            )
        self.provisioner = provisioner
        self._lock = threading.Lock()

    @classmethod
    def new(cls, config: CAConfig | None = None) -> "CAManager":
        """Create a manager and load the CA, creating it on first use.

        Raises:
            CAInitializationError: If the CA cannot be loaded or created
        """
        manager = cls(config)
        manager.initialize()
        return manager

    @property
    def ca_root(self) -> Path | None:
        return self.engine.ca_root

    @property
    def handle(self) -> CAHandle | None:
        return self.engine.handle

    def initialize(self) -> CAHandle:
        """Load or create the CA. Safe to call again after a failure.

        Returns:
            CAHandle for the loaded CA

        Raises:
            CAInitializationError: If the CA cannot be loaded or created
        """
        with self._lock:
            if self.engine.handle is not None:
                return self.engine.handle
            if self.engine.ca_root is None:
                self.engine.ca_root = get_ca_root()
            return self._bridged(self.engine.load_ca, CAInitializationError)

    def cert_file_paths(self, hosts: list[str], output_dir: Path | str) -> CertificateArtifact:
        """Return the paths make_cert() would write for hosts, without writing anything.

        Raises:
            ValidationError: If any host is invalid
        """
        normalized = validate_hosts(hosts)
        return self.engine.file_names(normalized, Path(output_dir))

    def make_cert(self, hosts: list[str], output_dir: Path | str) -> CertificateArtifact:
        """Issue one certificate valid for all hosts into output_dir.

        Hosts may be hostnames (including *. wildcards and internationalized
        names, which are converted to punycode), IP addresses, email addresses
        or absolute URLs. The caller's list is not modified.

        Args:
            hosts: Host identifiers, the first one names the output files
            output_dir: Directory for the certificate and key

        Returns:
            CertificateArtifact with the same paths cert_file_paths() returns

        Raises:
            ValidationError: If any host is invalid; nothing is issued
            IssuanceError: If the CA is not initialized or signing/writing fails
        """
        normalized = validate_hosts(hosts)
        output_path = Path(output_dir)
        artifact = self.engine.file_names(normalized, output_path)
        self._bridged(lambda: self.engine.make_cert(normalized, output_path), IssuanceError)
        return artifact

    def ca_unique_name(self) -> str:
        """Name under which the CA is stored in NSS databases."""
        return self._bridged(self.engine.ca_unique_name, CAInitializationError)

    def trust_store(self) -> NSSTrustStore:
        """Build the NSS trust store manager for the loaded CA.

        Raises:
            CAInitializationError: If initialize() has not succeeded yet
        """
        if self.engine.handle is None:
            raise CAInitializationError("the local CA is not initialized, call initialize() first")
        return NSSTrustStore(
            ca_root=self.engine.handle.ca_root,
            unique_name=self.ca_unique_name(),
            nss_dbs=self.config.nss_dbs,
            firefox_profile_globs=self.config.firefox_profile_globs,
            provisioner=self.provisioner,
        )

    def install_trust(self) -> TrustStoreReport:
        """Install the CA into every NSS database found.

        Raises:
            ToolProvisioningError: If certutil cannot be resolved or extracted
            TrustStoreError: If no database was found or verification failed
        """
        store = self.trust_store()
        return self._bridged(store.install, TrustStoreError)

    def uninstall_trust(self) -> TrustStoreReport:
        """Remove the CA from every NSS database that trusts it.

        Raises:
            ToolProvisioningError: If certutil cannot be resolved or extracted
            TrustStoreError: If removal failed for any database
        """
        store = self.trust_store()
        return self._bridged(store.uninstall, TrustStoreError)

    def check_trust(self) -> bool:
        """Return True if every NSS database found trusts the CA."""
        store = self.trust_store()
        return self._bridged(store.check, TrustStoreError)

    def cleanup(self) -> None:
        """Remove the extracted certutil, if one was extracted."""
        self.provisioner.cleanup()

    @staticmethod
    def _bridged(work: Callable[[], T], error_class: type[LocalCAError]) -> T:
        """Run work under trap(), raising library errors as is and wrapping the rest."""
        results: list[T] = []
        err = trap(lambda: results.append(work()))
        if err is None:
            return results[0]
        if isinstance(err, LocalCAError):
            raise err
        raise error_class(str(err).strip()) from err
