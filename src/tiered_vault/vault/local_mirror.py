# Vault - Local Mirror
#
# Fast synchronous copy of each account's vault. Authoritative for reads
# within a session and whenever the content store is degraded.
#
# Whole-vault save/load is atomic: a reader never sees a half-written vault.
# Only the persisted form is stored (encrypted payloads, proof receipts);
# the master secret is never written.

import hashlib
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from ..exceptions import FormatError
from .models import Vault
from .schemas import VaultDocument, parse_document

logger = logging.getLogger(__name__)


def load_vault_document(raw) -> Vault:
    """Validate a serialized vault (JSON text or dict) and build it."""
    document = parse_document(VaultDocument, raw)
    return Vault.from_dict(document.model_dump(mode="json"))


class LocalMirror(ABC):
    """Synchronous local vault storage, one vault per account identity."""

    @abstractmethod
    def load(self, account_identity: str) -> Optional[Vault]:
        """Return the stored vault, or None if the account has none."""

    @abstractmethod
    def save(self, vault: Vault) -> None:
        """Replace the stored vault for ``vault.account_identity``."""

    @abstractmethod
    def clear(self, account_identity: str) -> None:
        """Remove the stored vault for an account (no error if absent)."""

    def exists(self, account_identity: str) -> bool:
        return self.load(account_identity) is not None


class InMemoryMirror(LocalMirror):
    """Mirror kept in process memory as serialized snapshots."""

    def __init__(self):
        self._documents: Dict[str, str] = {}

    def load(self, account_identity: str) -> Optional[Vault]:
        raw = self._documents.get(account_identity)
        if raw is None:
            return None
        return load_vault_document(raw)

    def save(self, vault: Vault) -> None:
        self._documents[vault.account_identity] = json.dumps(vault.to_dict())

    def clear(self, account_identity: str) -> None:
        self._documents.pop(account_identity, None)

    def exists(self, account_identity: str) -> bool:
        return account_identity in self._documents


class JsonFileMirror(LocalMirror):
    """One JSON document per account under ``directory``.

    File names are the SHA-256 of the account identity so identities never
    leak into the filesystem layout.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, account_identity: str) -> Path:
        digest = hashlib.sha256(account_identity.encode("utf-8")).hexdigest()
        return self.directory / f"vault-{digest}.json"

    def load(self, account_identity: str) -> Optional[Vault]:
        path = self.path_for(account_identity)
        if not path.exists():
            return None

        raw = path.read_text(encoding="utf-8")
        vault = load_vault_document(raw)
        if vault.account_identity != account_identity:
            raise FormatError("Mirror document belongs to a different account")
        return vault

    def save(self, vault: Vault) -> None:
        path = self.path_for(vault.account_identity)
        data = json.dumps(vault.to_dict(), indent=2)

        # Write to a temp file in the same directory, then swap it in
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".vault-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            # Owner read/write only
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.debug("Saved vault %s (%d records)", vault.id, vault.metadata.record_count)

    def clear(self, account_identity: str) -> None:
        path = self.path_for(account_identity)
        if path.exists():
            path.unlink()

    def exists(self, account_identity: str) -> bool:
        return self.path_for(account_identity).exists()
