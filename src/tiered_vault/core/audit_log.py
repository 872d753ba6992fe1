# Core - Audit Logging
#
# Append-only audit log for every vault event (unlock, record access,
# remote degradation, export/import, reset).
# Events are structured JSON lines, one file per day.
# Secret values, notes and master secrets are never passed to the logger.

import logging
import os
import socket
import sys
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog


class EventType(str, Enum):
    """Types of vault events that can be logged."""

    # Vault lifecycle
    VAULT_CREATED = "vault.created"
    VAULT_UNLOCKED = "vault.unlocked"
    VAULT_LOCKED = "vault.locked"
    VAULT_UNLOCK_FAILED = "vault.unlock.failed"
    VAULT_EXPORTED = "vault.exported"
    VAULT_IMPORTED = "vault.imported"
    VAULT_RESET = "vault.reset"
    VAULT_FORCE_RESET = "vault.force_reset"
    VAULT_ERROR = "vault.error"

    # Record events
    RECORD_ADDED = "record.added"
    RECORD_UPDATED = "record.updated"
    RECORD_ACCESSED = "record.accessed"
    RECORD_DELETED = "record.deleted"
    ACCESS_DENIED = "access.denied"

    # Remote store
    REMOTE_DEGRADED = "remote.degraded"
    REMOTE_BACKFILLED = "remote.backfilled"

    # System Events
    SYSTEM_START = "system.start"
    SYSTEM_STOP = "system.stop"


class EventSeverity(str, Enum):
    """
    Severity levels for vault events.

    - INFO: Normal activity (logged only)
    - INVESTIGATE: Something unusual, e.g. remote store degraded
    - ALERT: Access denied or repeated unlock failures
    - CRITICAL: Destructive operation or internal error
    """
    INFO = "info"
    INVESTIGATE = "investigate"
    ALERT = "alert"
    CRITICAL = "critical"


class AuditLogger:
    """
    Append-only audit logger for vault events.

    Features:
    - Structured JSON logging (structlog)
    - Automatic timestamp and event ID
    - Account and host context capture
    """

    def __init__(self, log_dir: Optional[Path] = None):
        """
        Initialize audit logger.

        Args:
            log_dir: Directory for audit logs (default: ./audit_logs)
        """
        self.log_dir = Path(log_dir) if log_dir else Path("./audit_logs")
        self.log_dir.mkdir(parents=True, exist_ok=True)

        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer()
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        self._setup_file_handler()

        self.logger = structlog.get_logger("tiered_vault.audit")

    def _setup_file_handler(self):
        """Attach a daily file handler to the audit logger."""
        today = datetime.now().strftime("%Y-%m-%d")
        self.log_file = self.log_dir / f"audit_{today}.log"

        file_handler = logging.FileHandler(self.log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter('%(message)s'))  # structlog formats

        audit_logger = logging.getLogger("tiered_vault.audit")
        for handler in list(audit_logger.handlers):
            if isinstance(handler, logging.FileHandler):
                audit_logger.removeHandler(handler)
                handler.close()
        audit_logger.addHandler(file_handler)
        audit_logger.setLevel(logging.INFO)

    def log_event(
        self,
        event_type: EventType,
        severity: EventSeverity,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        account_identity: Optional[str] = None,
    ) -> str:
        """
        Log a vault event (append-only).

        Args:
            event_type: Type of event (from EventType enum)
            severity: Severity level (from EventSeverity enum)
            message: Human-readable event description
            details: Additional event details (never secret values!)
            account_identity: Account the event belongs to, if any

        Returns:
            str: Event ID (UUID) for reference
        """
        event_id = str(uuid4())

        event_data = {
            "event_id": event_id,
            "event_type": event_type.value,
            "severity": severity.value,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "account_identity": account_identity,
            "details": details or {},
            "host_context": self._get_host_context(),
        }

        self.logger.info("vault_event", **event_data)

        return event_id

    def _get_host_context(self) -> Dict[str, Any]:
        return {
            "os_user": os.getenv("USERNAME") or os.getenv("USER"),
            "hostname": socket.gethostname(),
            "platform": sys.platform,
        }


# Global logger instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get global audit logger (singleton pattern)."""
    global _audit_logger
    if _audit_logger is None:
        log_dir = os.environ.get("VAULT_AUDIT_LOG_DIR")
        _audit_logger = AuditLogger(Path(log_dir) if log_dir else None)
    return _audit_logger
