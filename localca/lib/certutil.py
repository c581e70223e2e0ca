"""Resolution of the certutil binary, falling back to a bundled copy.

System certutil is preferred. Otherwise the gzip payloads bundled for the
current platform are extracted into a temporary directory, which is removed
on SIGINT or by an explicit cleanup().
"""

import gzip
import os
import platform
import shutil
import signal
import subprocess
import sys
import tempfile
import threading
import weakref
from pathlib import Path

from .errors import ToolProvisioningError
from .logging_config import LOGGER

CERTUTIL_DIR_NAME = "localca-certutil"
DEFAULT_BUNDLE_DIR = Path(__file__).resolve().parent.parent / "bundled"
HOMEBREW_CERTUTIL = Path("/usr/local/opt/nss/bin/certutil")

_interrupt_lock = threading.Lock()
_interrupt_handler_installed = False
_previous_sigint_handler = None
_interrupt_cleanups: "weakref.WeakSet[CertutilProvisioner]" = weakref.WeakSet()


def bundle_platform() -> str:
    """Payload directory name for this platform, e.g. linux-x86_64 or darwin-arm64."""
    return f"{sys.platform}-{platform.machine().lower()}"


def certutil_binary_name() -> str:
    return "certutil.exe" if sys.platform == "win32" else "certutil"


def find_system_certutil() -> str | None:
    """Locate an installed NSS certutil.

    Windows is skipped: the certutil.exe on its PATH is an unrelated Microsoft tool.

    Returns:
        Path to certutil, or None if not installed
    """
    if sys.platform == "win32":
        return None

    path = shutil.which("certutil")
    if path:
        return path

    if sys.platform == "darwin":
        if os.access(HOMEBREW_CERTUTIL, os.X_OK):
            return str(HOMEBREW_CERTUTIL)
        try:
            result = subprocess.run(
                ["brew", "--prefix", "nss"],
                capture_output=True,
                check=True,
            )
        except (OSError, subprocess.CalledProcessError):
            return None
        candidate = Path(result.stdout.decode().strip()) / "bin" / "certutil"
        if candidate.exists():
            return str(candidate)

    return None


def _handle_interrupt(signum, frame):
    for provisioner in list(_interrupt_cleanups):
        try:
            provisioner.cleanup(blocking=False)
        except ToolProvisioningError as e:
            LOGGER.warning(str(e))

    previous = _previous_sigint_handler
    if callable(previous):
        previous(signum, frame)
    elif previous == signal.SIG_DFL:
        raise KeyboardInterrupt


def _register_interrupt_cleanup(provisioner: "CertutilProvisioner") -> None:
    """Track provisioner for SIGINT cleanup, installing the handler once per process."""
    global _interrupt_handler_installed, _previous_sigint_handler

    with _interrupt_lock:
        _interrupt_cleanups.add(provisioner)
        if _interrupt_handler_installed:
            return
        try:
            _previous_sigint_handler = signal.getsignal(signal.SIGINT)
            signal.signal(signal.SIGINT, _handle_interrupt)
        except ValueError:
            # signal handlers can only be installed from the main thread
            LOGGER.debug("could not register SIGINT cleanup for bundled certutil")
            return
        _interrupt_handler_installed = True


class CertutilProvisioner:
    """Resolve certutil at most once and own the extracted copy, if any."""

    def __init__(self, bundle_dir: Path | None = None, temp_dir: Path | None = None) -> None:
        """Initialize provisioner without resolving anything.

        Args:
            bundle_dir: Directory holding <platform>/*.gz payloads
            temp_dir: Parent of the extraction directory (default: system temp dir)
        """
        self.bundle_dir = bundle_dir or DEFAULT_BUNDLE_DIR
        self.temp_dir = temp_dir
        self.certutil_dir: Path | None = None
        self._path: str | None = None
        self._lock = threading.Lock()
        self._cleanup_pending = False

    @property
    def path(self) -> str | None:
        """Resolved certutil path, None until resolve() succeeds."""
        return self._path

    def resolve(self) -> str:
        """Return the certutil path, extracting the bundled copy if needed.

        Extraction runs under the provisioner lock; an interrupt arriving
        meanwhile defers its cleanup until the lock is released.

        Raises:
            ToolProvisioningError: If no system certutil exists and extraction fails
        """
        with self._lock:
            try:
                if self._path is None:
                    self._path = find_system_certutil() or self._extract()
                    LOGGER.info("Using certutil at %s", self._path)
                return self._path
            finally:
                if self._cleanup_pending:
                    self._cleanup_pending = False
                    self._remove_dir()

    def _extract(self) -> str:
        payload_dir = self.bundle_dir / bundle_platform()
        payloads = sorted(payload_dir.glob("*.gz")) if payload_dir.is_dir() else []
        if not payloads:
            raise ToolProvisioningError(
                f"certutil is not installed and no bundled copy exists for {bundle_platform()}"
            )

        temp_root = self.temp_dir or Path(tempfile.gettempdir())
        certutil_dir = temp_root / CERTUTIL_DIR_NAME
        try:
            certutil_dir.mkdir(mode=0o755, parents=True, exist_ok=True)
        except OSError as e:
            raise ToolProvisioningError(f"error setting up certutil: {e}") from e

        self.certutil_dir = certutil_dir
        _register_interrupt_cleanup(self)

        for payload in payloads:
            target = certutil_dir / payload.name.removesuffix(".gz")
            try:
                with gzip.open(payload, "rb") as src, open(target, "wb") as dst:
                    shutil.copyfileobj(src, dst)
                os.chmod(target, 0o755)
            except OSError as e:
                raise ToolProvisioningError(f"failed to write certutil binary: {e}") from e

        binary = certutil_dir / certutil_binary_name()
        if not binary.exists():
            raise ToolProvisioningError(
                f"bundled payload for {bundle_platform()} does not contain {certutil_binary_name()}"
            )
        return str(binary)

    def cleanup(self, blocking: bool = True) -> None:
        """Remove the extracted certutil directory.

        Args:
            blocking: Wait for an in-progress resolve(); when False and one is
                running, the removal is deferred until it finishes

        Raises:
            ToolProvisioningError: If the directory exists but cannot be removed
        """
        if not self._lock.acquire(blocking=blocking):
            self._cleanup_pending = True
            return
        try:
            self._remove_dir()
        finally:
            self._lock.release()

    def _remove_dir(self) -> None:
        certutil_dir = self.certutil_dir
        if certutil_dir is None:
            return
        try:
            shutil.rmtree(certutil_dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise ToolProvisioningError(
                f"failed to remove bundled certutil at {certutil_dir}: {e}"
            ) from e
        if self._path is not None and Path(self._path).parent == certutil_dir:
            self._path = None
        self.certutil_dir = None


_default_provisioner: CertutilProvisioner | None = None
_default_provisioner_lock = threading.Lock()


def get_default_provisioner() -> CertutilProvisioner:
    """Process-wide provisioner shared by every CAManager that does not bring its own."""
    global _default_provisioner
    with _default_provisioner_lock:
        if _default_provisioner is None:
            _default_provisioner = CertutilProvisioner()
        return _default_provisioner
