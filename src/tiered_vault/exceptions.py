"""
Tiered Vault exceptions.

Every failure the engine surfaces to a caller is one of these kinds.
Library exceptions (InvalidTag, ValidationError, httpx errors) are
translated at the module that calls the library.
"""


class VaultError(Exception):
    """Base exception for all vault errors."""


class AuthenticationError(VaultError):
    """Wrong master secret, or unlock refused during a lockout period."""

    def __init__(self, message: str = "Incorrect master secret", retry_after: float = 0.0):
        super().__init__(message)
        self.retry_after = retry_after


class AccessDeniedError(VaultError):
    """Proof missing, invalid, expired or bound to another session."""

    def __init__(self, message: str, record_id: str = ""):
        super().__init__(message)
        self.record_id = record_id


class DecryptionError(VaultError):
    """Corrupt ciphertext, tampered payload or rejected proof."""


class RecordNotFoundError(VaultError):
    """Record or remote blob is absent."""

    def __init__(self, message: str, key: str = ""):
        super().__init__(message)
        self.key = key


class RemoteUnavailableError(VaultError):
    """The content store could not complete a call.

    Non-fatal for the vault manager: the local write still stands and the
    failure becomes a warning on the operation result.
    """


class FormatError(VaultError):
    """Malformed mirror document, export file or record payload."""


class PreconditionError(VaultError):
    """Operation attempted in the wrong state (locked, no identity, unconfirmed reset)."""
