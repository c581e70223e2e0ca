"""Locally-trusted development CA with NSS trust store installation."""

from .lib.ca_manager import CAManager
from .lib.config import CAConfig, get_ca_root
from .lib.errors import (
    CAInitializationError,
    IssuanceError,
    LocalCAError,
    ToolProvisioningError,
    TrustStoreError,
    ValidationError,
)
from .lib.logging_config import set_verbose
from .lib.models import CertificateArtifact, TrustStoreReport

__all__ = [
    "CAManager",
    "CAConfig",
    "get_ca_root",
    "set_verbose",
    "CertificateArtifact",
    "TrustStoreReport",
    "LocalCAError",
    "ValidationError",
    "CAInitializationError",
    "IssuanceError",
    "TrustStoreError",
    "ToolProvisioningError",
]
