"""Exception types raised by the localca library."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import TrustStoreReport


class LocalCAError(Exception):
    """Base class for errors surfaced to library callers."""


class ValidationError(LocalCAError):
    """A host list or one of its identifiers is invalid."""

    def __init__(self, message: str, host: str | None = None) -> None:
        super().__init__(message)
        self.host = host

    @classmethod
    def invalid_host(cls, host: str, reason: str | None = None) -> "ValidationError":
        """Build the error for a host that is not a hostname, IP, URL or email."""
        message = f'"{host}" is not a valid hostname, IP, URL or email'
        if reason:
            message = f"{message}: {reason}"
        return cls(message, host=host)


class CAInitializationError(LocalCAError):
    """The local CA could not be loaded or created."""


class IssuanceError(LocalCAError):
    """A leaf certificate could not be created."""


class TrustStoreError(LocalCAError):
    """Installing or removing the CA from NSS security databases failed.

    report holds the per-profile counts when the failure came after a pass over the profiles.
    """

    def __init__(self, message: str, report: "TrustStoreReport | None" = None) -> None:
        super().__init__(message)
        self.report = report


class ToolProvisioningError(LocalCAError):
    """No usable certutil binary could be found or extracted."""
