# Tiered Vault - Main Package
#
# Personal secrets vault with privacy tiers: keyword/category
# classification, per-tier encryption, access proofs for the secret
# tier, and a local mirror backed by a content-addressed store.

__version__ = "0.3.0"
__description__ = "Privacy-tiered personal secrets vault"

from .core import EventSeverity, EventType, VaultConfig, get_audit_logger
from .exceptions import (
    AccessDeniedError,
    AuthenticationError,
    DecryptionError,
    FormatError,
    PreconditionError,
    RecordNotFoundError,
    RemoteUnavailableError,
    VaultError,
)
from .vault import PrivacyTier, Record, VaultManager, VaultState

__all__ = [
    "__version__",
    "VaultManager",
    "VaultState",
    "VaultConfig",
    "PrivacyTier",
    "Record",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
    "VaultError",
    "AuthenticationError",
    "AccessDeniedError",
    "DecryptionError",
    "RecordNotFoundError",
    "RemoteUnavailableError",
    "FormatError",
    "PreconditionError",
]
