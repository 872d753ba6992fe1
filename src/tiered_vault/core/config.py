"""Vault configuration.

Values come from keyword arguments or, via ``VaultConfig.from_env()``, from
environment variables (a ``.env`` file in the working directory is loaded
first).  The proof validity window is fixed (24 hours) and is not
configurable.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import find_dotenv, load_dotenv

from ..exceptions import PreconditionError

DEFAULT_SENSITIVE_KEYWORDS = ["bank", "credit", "social", "ssn", "passport", "medical"]
DEFAULT_PRIVATE_CATEGORIES = ["Banking", "Personal"]

# Standard categories offered to callers for organizing records
RECORD_CATEGORIES = [
    "General",
    "Social Media",
    "Banking",
    "Shopping",
    "Work",
    "Personal",
    "Gaming",
    "Other",
]

MIN_KDF_ITERATIONS = 100_000
DEFAULT_KDF_ITERATIONS = 600_000  # OWASP 2023 for PBKDF2-SHA256
MAX_KDF_ITERATIONS = 10_000_000
MAX_REMOTE_ATTEMPTS = 5

REMOTE_BACKENDS = ("memory", "local", "http")


def _split_list(raw: Optional[str], default: List[str]) -> List[str]:
    if raw is None:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class VaultConfig:
    """Runtime configuration for a vault session."""

    data_dir: Path = Path("./data/vaults")
    audit_log_dir: Path = Path("./audit_logs")
    kdf_iterations: int = DEFAULT_KDF_ITERATIONS
    sensitive_keywords: List[str] = field(
        default_factory=lambda: list(DEFAULT_SENSITIVE_KEYWORDS)
    )
    private_categories: List[str] = field(
        default_factory=lambda: list(DEFAULT_PRIVATE_CATEGORIES)
    )
    remote_backend: str = "memory"
    remote_url: Optional[str] = None
    remote_max_attempts: int = 3
    remote_timeout: float = 30.0

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        self.audit_log_dir = Path(self.audit_log_dir)

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "VaultConfig":
        """Build a config from ``VAULT_*`` environment variables."""
        load_dotenv(dotenv_path=env_file or find_dotenv(usecwd=True))

        remote_url = os.environ.get("VAULT_REMOTE_URL") or None
        backend = os.environ.get("VAULT_REMOTE_BACKEND", "")
        if not backend:
            backend = "http" if remote_url else "memory"

        config = cls(
            data_dir=Path(os.environ.get("VAULT_DATA_DIR", "./data/vaults")),
            audit_log_dir=Path(os.environ.get("VAULT_AUDIT_LOG_DIR", "./audit_logs")),
            kdf_iterations=int(
                os.environ.get("VAULT_KDF_ITERATIONS", DEFAULT_KDF_ITERATIONS)
            ),
            sensitive_keywords=_split_list(
                os.environ.get("VAULT_SENSITIVE_KEYWORDS"), DEFAULT_SENSITIVE_KEYWORDS
            ),
            private_categories=_split_list(
                os.environ.get("VAULT_PRIVATE_CATEGORIES"), DEFAULT_PRIVATE_CATEGORIES
            ),
            remote_backend=backend.lower(),
            remote_url=remote_url,
            remote_max_attempts=int(os.environ.get("VAULT_REMOTE_MAX_ATTEMPTS", 3)),
            remote_timeout=float(os.environ.get("VAULT_REMOTE_TIMEOUT", 30)),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Reject settings that would weaken the vault or misconfigure the store."""
        if not MIN_KDF_ITERATIONS <= self.kdf_iterations <= MAX_KDF_ITERATIONS:
            raise PreconditionError(
                f"kdf_iterations must be between {MIN_KDF_ITERATIONS} and {MAX_KDF_ITERATIONS}"
            )
        if not 1 <= self.remote_max_attempts <= MAX_REMOTE_ATTEMPTS:
            raise PreconditionError(
                f"remote_max_attempts must be between 1 and {MAX_REMOTE_ATTEMPTS}"
            )
        if self.remote_backend not in REMOTE_BACKENDS:
            raise PreconditionError(
                f"Unknown remote backend: {self.remote_backend!r}"
            )
        if self.remote_backend == "http" and not self.remote_url:
            raise PreconditionError("remote_backend 'http' requires remote_url")
