# Core Module - Shared Utilities
#
# Core module provides shared functionality across the vault engine:
# - Audit logging
# - Configuration

from .audit_log import (
    AuditLogger,
    EventSeverity,
    EventType,
    get_audit_logger,
)
from .config import RECORD_CATEGORIES, VaultConfig

__all__ = [
    # Audit Logging
    "AuditLogger",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
    # Configuration
    "VaultConfig",
    "RECORD_CATEGORIES",
]
