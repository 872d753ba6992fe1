# Vault Manager - Privacy-Tiered Vault Orchestrator
#
# One manager per account session (no process-wide instance).
# Sequences classify → encrypt → proof → mirror save → remote put.
#
# Security:
# - Master secret is held in memory only, never persisted
# - Unlock verifies by decrypting one private/secret record, or the
#   encrypted canary for vaults without one
# - Secret records open only with an access proof bound to this session
# - Failed unlocks lock out for 1, 2, 4, 8, then 16 seconds
#
# Durability:
# - Every mutation saves the whole vault to the local mirror before any
#   remote call; a remote failure leaves the local write standing and is
#   reported as a warning on the result (degraded mode)
# - The next successful remote put backfills missing references

import json
import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..core import RECORD_CATEGORIES, EventSeverity, EventType, VaultConfig, get_audit_logger
from ..exceptions import (
    AccessDeniedError,
    AuthenticationError,
    DecryptionError,
    FormatError,
    PreconditionError,
    RecordNotFoundError,
    RemoteUnavailableError,
)
from .access_proof import AccessProof, AccessProofService
from .classifier import TierClassifier
from .encryption import KeyDerivation, TierCipher
from .local_mirror import JsonFileMirror, LocalMirror
from .models import (
    EDITABLE_FIELDS,
    EncryptedPayload,
    PrivacyTier,
    Record,
    RemoteReference,
    StoredRecord,
    Vault,
    VaultOperationResult,
    new_record_id,
    utc_now,
)
from .remote_store import ContentStore, account_prefix, build_content_store, ref_key, storage_key
from .strength import check_strength, generate_secure_value
from .transfer import build_export, decrypt_export, parse_export

logger = logging.getLogger(__name__)

CANARY_PLAINTEXT = "TIERED_VAULT_OK"
MAX_LOCKOUT_SECONDS = 16


class VaultState(str, Enum):
    LOCKED = "locked"
    UNLOCKING = "unlocking"
    UNLOCKED = "unlocked"
    RESETTING = "resetting"


def sample_records() -> List[Record]:
    """Starter records offered to a brand new vault (pass as ``seed``)."""
    return [
        Record(
            title="Email Account",
            username="user@example.com",
            secret_value=generate_secure_value(16),
            url="https://mail.example.com",
            notes="Main email account",
            category="General",
        ),
        Record(
            title="Code Repository",
            username="developer",
            secret_value=generate_secure_value(16),
            url="https://git.example.com",
            notes="Code repository access",
            category="Work",
        ),
    ]


class VaultManager:
    """
    Manages one account's privacy-tiered vault.

    Tiers:
    - public:  encoded only, local mirror
    - private: AES-256-GCM, local mirror
    - secret:  AES-256-GCM + access proof, local mirror + content store

    Methods that can reach the content store are coroutines; everything
    else is synchronous.
    """

    def __init__(
        self,
        config: Optional[VaultConfig] = None,
        mirror: Optional[LocalMirror] = None,
        store: Optional[ContentStore] = None,
        audit_logger=None,
        classifier: Optional[TierClassifier] = None,
        proof_service: Optional[AccessProofService] = None,
    ):
        """
        Args:
            config: Vault settings (default: built-in defaults)
            mirror: Local mirror (default: JSON files under config.data_dir)
            store: Content store (default: chosen by config.remote_backend)
            audit_logger: AuditLogger (default: process audit logger)
            classifier: Tier policy (default: from config keywords/categories)
            proof_service: Access proof issuer/verifier
        """
        self.config = config or VaultConfig()
        self.config.validate()

        self.mirror = mirror if mirror is not None else JsonFileMirror(self.config.data_dir)
        self.store = store if store is not None else build_content_store(self.config)
        self.classifier = classifier or TierClassifier.from_config(self.config)
        self.proofs = proof_service or AccessProofService()
        self.kdf = KeyDerivation(self.config.kdf_iterations)
        self.cipher = TierCipher(proof_verifier=self.proofs)
        self.logger = audit_logger or get_audit_logger()

        self._state = VaultState.LOCKED
        self._account_identity: Optional[str] = None
        self._vault: Optional[Vault] = None
        self._master_secret: Optional[str] = None
        self._key_cache: Dict[Tuple[bytes, PrivacyTier], bytes] = {}

        # Rate limiting for unlock attempts (prevent brute force)
        self.failed_attempts = 0
        self.lockout_until: Optional[datetime] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> VaultState:
        return self._state

    @property
    def is_unlocked(self) -> bool:
        return self._state == VaultState.UNLOCKED

    @property
    def account_identity(self) -> Optional[str]:
        return self._account_identity

    def set_account_identity(self, account_identity: str) -> None:
        """Scope the manager to an account. Required before unlock."""
        if not isinstance(account_identity, str) or not account_identity.strip():
            raise PreconditionError("Account identity must be a non-empty string")
        if self.is_unlocked and account_identity != self._account_identity:
            raise PreconditionError("Lock the vault before switching account identity")

        if account_identity != self._account_identity:
            self.failed_attempts = 0
            self.lockout_until = None
        self._account_identity = account_identity

    def _require_unlocked(self) -> Vault:
        if not self.is_unlocked or self._vault is None:
            raise PreconditionError("Vault is locked. Unlock vault first.")
        return self._vault

    def _commit(self, candidate: Vault) -> Vault:
        """Save a staged vault, then make it the session vault.

        A failed save leaves the session vault as it was.
        """
        self.mirror.save(candidate)
        self._vault = candidate
        return candidate

    def _audit(self, event_type, severity, message, details=None):
        self.logger.log_event(
            event_type=event_type,
            severity=severity,
            message=message,
            details=details,
            account_identity=self._account_identity,
        )

    # ------------------------------------------------------------------
    # Key and payload helpers
    # ------------------------------------------------------------------

    def _key(self, salt: bytes, tier: PrivacyTier) -> bytes:
        cache_key = (salt, tier)
        key = self._key_cache.get(cache_key)
        if key is None:
            key = self.kdf.derive_key(self._master_secret, self._account_identity, salt, tier)
            self._key_cache[cache_key] = key
        return key

    def _forget_key(self, payload: EncryptedPayload) -> None:
        if payload.tier.is_encrypted:
            self._key_cache.pop((self.cipher.payload_salt(payload), payload.tier), None)

    def _seal(self, secret_value: str, notes: str, tier: PrivacyTier):
        plaintext = json.dumps({"secret_value": secret_value, "notes": notes})
        if not tier.is_encrypted:
            return self.cipher.encrypt(plaintext, tier)
        # Fresh salt per encryption
        salt = self.kdf.generate_salt()
        return self.cipher.encrypt(plaintext, tier, self._key(salt, tier), salt)

    def _open(self, stored: StoredRecord, proof: Optional[AccessProof] = None) -> Tuple[str, str]:
        payload = stored.payload
        key = None
        if payload.tier.is_encrypted:
            key = self._key(self.cipher.payload_salt(payload), payload.tier)
        plaintext = self.cipher.decrypt(payload, stored.privacy_tier, key, proof=proof)

        try:
            fields = json.loads(plaintext)
            return fields["secret_value"], fields["notes"]
        except (ValueError, KeyError, TypeError) as exc:
            raise DecryptionError(f"Record {stored.id}: malformed payload") from exc

    def _open_internal(self, stored: StoredRecord) -> Tuple[str, str]:
        """Decrypt with a session-issued proof (export, update, backfill)."""
        proof = None
        if stored.privacy_tier.requires_proof:
            proof = self.proofs.issue(stored, self._master_secret, self._account_identity)
        return self._open(stored, proof)

    def _proof_accepted(self, stored: StoredRecord, proof) -> bool:
        if not isinstance(proof, AccessProof):
            return False
        if not self.proofs.verify(proof):
            return False
        return self.proofs.is_bound(
            proof, self._master_secret, self._account_identity, stored.id
        )

    def _build_stored(
        self,
        record: Record,
        tier: PrivacyTier,
        record_id: str,
        created_at: str,
        updated_at: str,
    ) -> StoredRecord:
        return StoredRecord(
            id=record_id,
            title=record.title,
            username=record.username or "",
            url=record.url or "",
            category=record.category or "General",
            created_at=created_at,
            updated_at=updated_at,
            privacy_tier=tier,
            payload=self._seal(record.secret_value or "", record.notes or "", tier),
        )

    def _issue_for(self, record_id: str, title: str, secret_value: str) -> AccessProof:
        return self.proofs.issue(
            Record(id=record_id, title=title, secret_value=secret_value),
            self._master_secret,
            self._account_identity,
        )

    def _make_canary(self):
        salt = self.kdf.generate_salt()
        return self.cipher.encrypt(
            CANARY_PLAINTEXT, PrivacyTier.PRIVATE, self._key(salt, PrivacyTier.PRIVATE), salt
        )

    # ------------------------------------------------------------------
    # Remote helpers
    # ------------------------------------------------------------------

    def _remote_blob(self, stored: StoredRecord, proof: AccessProof) -> bytes:
        return json.dumps({
            "record_id": stored.id,
            "account_identity": self._account_identity,
            "payload": stored.payload.to_dict(),
            "proof": proof.receipt().to_dict(),
            "stored_at": utc_now(),
        }).encode("utf-8")

    def _degraded(self, operation: str, record_id: Optional[str], exc: Exception) -> str:
        warning = f"Remote {operation} failed for {record_id or 'vault'}: {exc}"
        logger.warning("Content store unavailable, continuing local-only: %s", exc)
        self._audit(
            EventType.REMOTE_DEGRADED,
            EventSeverity.INVESTIGATE,
            f"Content store {operation} failed; operating in degraded mode",
            details={"record_id": record_id, "operation": operation},
        )
        return warning

    async def _put_remote(self, stored: StoredRecord, proof: AccessProof) -> Optional[str]:
        """Put one record's blob. Returns a warning instead of raising."""
        key = storage_key(self._account_identity, stored.id)
        try:
            ref = await self.store.put(key, self._remote_blob(stored, proof))
        except RemoteUnavailableError as exc:
            return self._degraded("put", stored.id, exc)

        stored.remote_ref = ref
        self._vault.remote_references[stored.id] = RemoteReference(
            storage_key=ref,
            proof_hash=stored.proof_hash or proof.token,
        )
        return None

    async def _delete_remote(self, ref: str, record_id: Optional[str]) -> Optional[str]:
        try:
            await self.store.delete(ref)
        except RemoteUnavailableError as exc:
            return self._degraded("delete", record_id, exc)
        return None

    async def _prune_stale(self, record_id: str) -> Optional[str]:
        """Delete blobs under a record's key other than its current reference.

        Old blobs are left behind when an update replaced a record while
        the store was down.
        """
        key = storage_key(self._account_identity, record_id)
        current = self._vault.remote_references[record_id].storage_key
        try:
            refs = await self.store.list(key)
        except RemoteUnavailableError as exc:
            return self._degraded("list", record_id, exc)

        for ref in refs:
            if ref_key(ref) == key and ref != current:
                warning = await self._delete_remote(ref, record_id)
                if warning:
                    return warning
        return None

    async def _backfill(self) -> Tuple[int, List[str]]:
        """Put every remote-tier record still missing a reference."""
        backfilled = 0
        warnings: List[str] = []

        for stored in self._vault.missing_remote_references():
            secret_value, _notes = self._open_internal(stored)
            proof = self._issue_for(stored.id, stored.title, secret_value)
            stored.proof_hash = proof.token
            warning = await self._put_remote(stored, proof)
            if warning:
                # Store went away again; the rest waits for the next success
                warnings.append(warning)
                break
            backfilled += 1
            warning = await self._prune_stale(stored.id)
            if warning:
                warnings.append(warning)

        if backfilled:
            logger.info("Backfilled %d remote reference(s)", backfilled)
            self._audit(
                EventType.REMOTE_BACKFILLED,
                EventSeverity.INFO,
                f"Backfilled {backfilled} remote reference(s)",
                details={"count": backfilled},
            )
        return backfilled, warnings

    async def _write_remote(
        self,
        stored: StoredRecord,
        proof: AccessProof,
        result: VaultOperationResult,
    ) -> None:
        warning = await self._put_remote(stored, proof)
        if warning:
            result.warnings.append(warning)
            return

        result.remote_stored = True
        _count, warnings = await self._backfill()
        result.warnings.extend(warnings)
        self.mirror.save(self._vault)

    # ------------------------------------------------------------------
    # Lock / unlock
    # ------------------------------------------------------------------

    async def unlock(
        self,
        master_secret: str,
        account_identity: Optional[str] = None,
        seed: Optional[List[Record]] = None,
    ) -> VaultOperationResult:
        """
        Unlock (or create) the vault for the current account identity.

        Security: Rate limiting with exponential backoff.
        - 1st failed attempt: 1 second lockout
        - 2nd failed attempt: 2 seconds
        - 3rd: 4 seconds, 4th: 8 seconds
        - 5th+: 16 seconds

        Args:
            master_secret: User's master secret
            account_identity: Sets the identity first when given
            seed: Records to add when the vault is created

        Returns:
            VaultOperationResult (warnings from seeding remote writes)

        Raises:
            AuthenticationError: wrong master secret or lockout in effect
            PreconditionError: no identity, empty secret, already unlocked
        """
        if account_identity is not None:
            self.set_account_identity(account_identity)
        if not self._account_identity:
            raise PreconditionError("Set an account identity before unlocking")
        if self.is_unlocked:
            raise PreconditionError("Vault is already unlocked")
        if not master_secret:
            raise PreconditionError("Master secret is required")

        # Rate limiting: Check if locked out
        now = datetime.now()
        if self.lockout_until and now < self.lockout_until:
            remaining = (self.lockout_until - now).total_seconds()
            self._audit(
                EventType.VAULT_UNLOCK_FAILED,
                EventSeverity.ALERT,
                f"Unlock attempt during lockout period ({remaining:.0f}s remaining)",
            )
            raise AuthenticationError(
                f"Too many failed attempts. Please wait {remaining:.0f} seconds.",
                retry_after=remaining,
            )

        self._state = VaultState.UNLOCKING
        self._master_secret = master_secret
        try:
            vault = self.mirror.load(self._account_identity)
        except Exception:
            self._clear_session()
            raise

        if vault is None:
            return await self._create_vault(seed)

        try:
            verified = self._verify_master(vault)
        except Exception:
            self._clear_session()
            raise

        if not verified:
            self._clear_session()
            self._handle_failed_unlock()

        self._vault = vault
        self._state = VaultState.UNLOCKED

        # Rate limiting: Reset on successful unlock
        self.failed_attempts = 0
        self.lockout_until = None

        self._audit(
            EventType.VAULT_UNLOCKED,
            EventSeverity.INFO,
            "Vault unlocked successfully",
            details={"vault_id": vault.id, "record_count": vault.metadata.record_count},
        )
        return VaultOperationResult(remote_stored=not vault.missing_remote_references())

    def _verify_master(self, vault: Vault) -> bool:
        """Check the tentative master secret against the stored vault."""
        sample = next((r for r in vault.records if r.privacy_tier.is_encrypted), None)
        try:
            if sample is not None:
                self._open_internal(sample)
                return True

            if vault.metadata.verifier is not None:
                canary = vault.metadata.verifier
                key = self._key(self.cipher.payload_salt(canary), canary.tier)
                return self.cipher.decrypt(canary, canary.tier, key) == CANARY_PLAINTEXT
        except DecryptionError:
            # Wrong secret: the GCM tag does not authenticate
            return False

        # Public-only vault written without a canary: accept once and add one
        vault.metadata.verifier = self._make_canary()
        self.mirror.save(vault)
        self._audit(
            EventType.VAULT_UNLOCKED,
            EventSeverity.INVESTIGATE,
            "Vault had no master secret verifier; one was added",
            details={"vault_id": vault.id},
        )
        return True

    def _handle_failed_unlock(self) -> None:
        """Rate-limited failure response for wrong master secret attempts."""
        self.failed_attempts += 1
        delay_seconds = min(2 ** (self.failed_attempts - 1), MAX_LOCKOUT_SECONDS)
        self.lockout_until = datetime.now() + timedelta(seconds=delay_seconds)

        self._audit(
            EventType.VAULT_UNLOCK_FAILED,
            EventSeverity.ALERT,
            f"Vault unlock failed: incorrect master secret "
            f"(attempt {self.failed_attempts}, {delay_seconds}s lockout)",
        )
        raise AuthenticationError(
            f"Incorrect master secret. Please wait {delay_seconds} seconds before trying again.",
            retry_after=float(delay_seconds),
        )

    async def _create_vault(self, seed: Optional[List[Record]]) -> VaultOperationResult:
        vault = Vault(account_identity=self._account_identity)
        vault.metadata.verifier = self._make_canary()
        try:
            self.mirror.save(vault)
        except Exception:
            self._clear_session()
            raise
        self._vault = vault

        self._state = VaultState.UNLOCKED
        self.failed_attempts = 0
        self.lockout_until = None

        self._audit(
            EventType.VAULT_CREATED,
            EventSeverity.INFO,
            "Vault created for account",
            details={"vault_id": vault.id, "seeded": len(seed or [])},
        )

        result = VaultOperationResult(remote_stored=True)
        for record in seed or []:
            added = await self.add(record)
            result.warnings.extend(added.warnings)
        result.remote_stored = not self._vault.missing_remote_references()
        return result

    def _clear_session(self) -> None:
        self._vault = None
        self._master_secret = None
        self._key_cache.clear()
        self._state = VaultState.LOCKED

    def lock(self) -> None:
        """Forget the vault, master secret and derived keys. Mirror untouched."""
        was_unlocked = self.is_unlocked
        self._clear_session()
        if was_unlocked:
            self._audit(EventType.VAULT_LOCKED, EventSeverity.INFO, "Vault locked")

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def add(self, record: Record) -> VaultOperationResult:
        """
        Add a record.

        Returns:
            VaultOperationResult; for secret records ``proof`` holds the
            access proof issued for the write.
        """
        vault = self._require_unlocked()
        if not isinstance(record, Record):
            raise FormatError("add() expects a Record")
        if not isinstance(record.title, str) or not record.title.strip():
            raise FormatError("Record title is required")

        record_id = record.id or new_record_id()
        if vault.find(record_id) is not None:
            raise PreconditionError(f"Record {record_id} already exists")

        tier = self.classifier.classify(record)
        now = utc_now()
        stored = self._build_stored(record, tier, record_id, now, now)

        proof = None
        if tier.requires_proof:
            proof = self._issue_for(record_id, record.title, record.secret_value or "")
            stored.proof_hash = proof.token

        candidate = vault.copy()
        candidate.records.append(stored)
        candidate.touch()
        self._commit(candidate)

        result = VaultOperationResult(record_id=record_id, tier=tier, proof=proof)
        if tier.requires_remote:
            await self._write_remote(stored, proof, result)

        self._audit(
            EventType.RECORD_ADDED,
            EventSeverity.INFO,
            f"Record added to vault: {record.title}",
            details={"record_id": record_id, "tier": tier.value, "degraded": result.degraded},
        )
        return result

    async def update(self, record_id: str, changes: Dict[str, Any]) -> VaultOperationResult:
        """
        Change editable fields of a record; the tier is recomputed.

        Raises:
            FormatError: unknown field or non-string value
            RecordNotFoundError: no record with ``record_id``
        """
        vault = self._require_unlocked()
        if not isinstance(changes, dict):
            raise FormatError("changes must be a mapping of field names to values")
        unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
        if unknown:
            raise FormatError(f"Fields cannot be updated: {', '.join(unknown)}")
        for name, value in changes.items():
            if not isinstance(value, str):
                raise FormatError(f"Field {name} must be a string")

        index = vault.index_of(record_id)
        if index < 0:
            raise RecordNotFoundError(f"Record not found: {record_id}", key=record_id)
        old = vault.records[index]

        secret_value, notes = self._open_internal(old)
        current = old.to_record(secret_value, notes)
        for name, value in changes.items():
            setattr(current, name, value)
        if not current.title.strip():
            raise FormatError("Record title is required")

        tier = self.classifier.classify(current)
        stored = self._build_stored(current, tier, record_id, old.created_at, utc_now())

        proof = None
        if tier.requires_proof:
            proof = self._issue_for(record_id, current.title, current.secret_value)
            stored.proof_hash = proof.token

        candidate = vault.copy()
        old_ref = candidate.remote_references.pop(record_id, None)
        candidate.records[index] = stored
        candidate.touch()
        self._commit(candidate)
        self._forget_key(old.payload)

        result = VaultOperationResult(record_id=record_id, tier=tier, proof=proof)
        if tier.requires_remote:
            await self._write_remote(stored, proof, result)

        if old_ref is not None and old_ref.storage_key != stored.remote_ref:
            warning = await self._delete_remote(old_ref.storage_key, record_id)
            if warning:
                result.warnings.append(warning)

        self._audit(
            EventType.RECORD_UPDATED,
            EventSeverity.INFO,
            f"Record updated: {current.title}",
            details={
                "record_id": record_id,
                "tier": tier.value,
                "previous_tier": old.privacy_tier.value,
                "fields": sorted(changes),
            },
        )
        return result

    async def delete(self, record_id: str) -> VaultOperationResult:
        """Delete locally (always) and remotely (best effort)."""
        vault = self._require_unlocked()
        index = vault.index_of(record_id)
        if index < 0:
            raise RecordNotFoundError(f"Record not found: {record_id}", key=record_id)

        candidate = vault.copy()
        stored = candidate.records.pop(index)
        ref = candidate.remote_references.pop(record_id, None)
        candidate.touch()
        self._commit(candidate)
        self._forget_key(stored.payload)

        result = VaultOperationResult(record_id=record_id, tier=stored.privacy_tier)
        if ref is not None:
            warning = await self._delete_remote(ref.storage_key, record_id)
            if warning:
                result.warnings.append(warning)
            else:
                result.remote_stored = True

        self._audit(
            EventType.RECORD_DELETED,
            EventSeverity.INFO,
            f"Record deleted: {stored.title}",
            details={"record_id": record_id, "tier": stored.privacy_tier.value},
        )
        return result

    def get(self, record_id: str, proof: Optional[AccessProof] = None) -> Record:
        """
        Retrieve and decrypt a record.

        Secret records need ``proof`` from ``issue_proof()`` (or the one
        returned by add/update); anything else is AccessDeniedError.
        """
        vault = self._require_unlocked()
        stored = vault.find(record_id)
        if stored is None:
            raise RecordNotFoundError(f"Record not found: {record_id}", key=record_id)

        if stored.privacy_tier.requires_proof and not self._proof_accepted(stored, proof):
            self._audit(
                EventType.ACCESS_DENIED,
                EventSeverity.ALERT,
                "Secret record requested without a valid access proof",
                details={"record_id": record_id},
            )
            raise AccessDeniedError(
                "A valid access proof is required for this record", record_id=record_id
            )

        secret_value, notes = self._open(stored, proof)

        self._audit(
            EventType.RECORD_ACCESSED,
            EventSeverity.INFO,
            f"Record accessed: {stored.title}",
            details={"record_id": record_id, "tier": stored.privacy_tier.value},
        )
        return stored.to_record(secret_value, notes)

    def get_all(
        self,
        proofs: Optional[Dict[str, AccessProof]] = None,
        search: Optional[str] = None,
        category: Optional[str] = None,
    ) -> List[Record]:
        """
        All records in insertion order.

        Secret records come back sealed (``secret_value``/``notes`` None)
        unless ``proofs`` holds a valid proof for their id.

        Args:
            proofs: record_id → access proof
            search: Case-insensitive substring of title, username or url
            category: Exact category name
        """
        vault = self._require_unlocked()
        proofs = proofs or {}
        needle = search.lower() if search else None
        records = []
        for stored in vault.records:
            if category and stored.category != category:
                continue
            if needle and not any(
                needle in field.lower() for field in (stored.title, stored.username, stored.url)
            ):
                continue
            proof = proofs.get(stored.id)
            if stored.privacy_tier.requires_proof and not self._proof_accepted(stored, proof):
                records.append(stored.to_record(None, None, sealed=True))
                continue
            secret_value, notes = self._open(stored, proof)
            records.append(stored.to_record(secret_value, notes))
        return records

    def issue_proof(self, record_id: str) -> AccessProof:
        """Issue a fresh access proof for a record of this session."""
        vault = self._require_unlocked()
        stored = vault.find(record_id)
        if stored is None:
            raise RecordNotFoundError(f"Record not found: {record_id}", key=record_id)

        secret_value, _notes = self._open_internal(stored)
        return self._issue_for(record_id, stored.title, secret_value)

    async def sync_remote(self) -> VaultOperationResult:
        """Backfill references for remote-tier records that lack one."""
        vault = self._require_unlocked()
        result = VaultOperationResult()
        if not vault.missing_remote_references():
            result.remote_stored = True
            return result

        _count, warnings = await self._backfill()
        result.warnings.extend(warnings)
        self.mirror.save(vault)
        result.remote_stored = not vault.missing_remote_references()
        return result

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export(self) -> str:
        """Serialize the vault with sensitive fields under export keys."""
        vault = self._require_unlocked()
        sensitive = {stored.id: self._open_internal(stored) for stored in vault.records}
        blob = build_export(vault, sensitive, self._master_secret, self.kdf, self.cipher)

        self._audit(
            EventType.VAULT_EXPORTED,
            EventSeverity.INFO,
            "Vault exported",
            details={"vault_id": vault.id, "record_count": len(vault.records)},
        )
        return blob

    async def import_vault(self, blob) -> VaultOperationResult:
        """
        Replace the vault with the contents of an export file.

        Raises:
            FormatError: document fails validation
            AccessDeniedError: export belongs to another account identity
            DecryptionError: wrong master secret or tampered export
        """
        current = self._require_unlocked()
        document = parse_export(blob)

        if document.vault.account_identity != self._account_identity:
            self._audit(
                EventType.ACCESS_DENIED,
                EventSeverity.ALERT,
                "Import rejected: export belongs to a different account",
            )
            raise AccessDeniedError("Export belongs to a different account identity")

        imported = decrypt_export(document, self._master_secret, self.cipher)

        vault = Vault(account_identity=self._account_identity, id=imported.vault_id)
        vault.metadata.created_at = document.vault.metadata.created_at
        vault.metadata.verifier = self._make_canary()

        proofs: Dict[str, AccessProof] = {}
        for record in imported.records:
            tier = self.classifier.classify(record)
            stored = self._build_stored(record, tier, record.id, record.created_at, record.updated_at)
            if tier.requires_proof:
                proof = self._issue_for(record.id, record.title, record.secret_value)
                stored.proof_hash = proof.token
                proofs[record.id] = proof
            vault.records.append(stored)
        vault.touch()

        old_refs = [ref.storage_key for ref in current.remote_references.values()]
        self._commit(vault)
        for stored in current.records:
            self._forget_key(stored.payload)
        if current.metadata.verifier is not None:
            self._forget_key(current.metadata.verifier)

        result = VaultOperationResult()
        for stored in vault.missing_remote_references():
            warning = await self._put_remote(stored, proofs[stored.id])
            if warning:
                result.warnings.append(warning)
                break

        kept = {ref.storage_key for ref in vault.remote_references.values()}
        for ref in old_refs:
            if ref not in kept:
                warning = await self._delete_remote(ref, None)
                if warning:
                    result.warnings.append(warning)

        self.mirror.save(vault)
        result.remote_stored = not vault.missing_remote_references()

        self._audit(
            EventType.VAULT_IMPORTED,
            EventSeverity.INFO,
            "Vault imported",
            details={"vault_id": vault.id, "record_count": len(vault.records)},
        )
        return result

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    async def reset(self, confirm: bool = False) -> VaultOperationResult:
        """Delete this account's local vault and lock. Requires ``confirm=True``."""
        identity = self._begin_reset(confirm)
        try:
            self.mirror.clear(identity)
        finally:
            self._clear_session()

        self._audit(EventType.VAULT_RESET, EventSeverity.ALERT, "Vault reset (local data cleared)")
        return VaultOperationResult()

    async def force_reset(self, confirm: bool = False) -> VaultOperationResult:
        """Like reset, and also delete every remote blob of this account."""
        identity = self._begin_reset(confirm)
        result = VaultOperationResult()
        deleted = 0
        try:
            self.mirror.clear(identity)
            try:
                refs = await self.store.list(account_prefix(identity))
            except RemoteUnavailableError as exc:
                result.warnings.append(self._degraded("list", None, exc))
                refs = []
            for ref in refs:
                warning = await self._delete_remote(ref, None)
                if warning:
                    result.warnings.append(warning)
                else:
                    deleted += 1
        finally:
            self._clear_session()

        result.remote_stored = not result.warnings
        self._audit(
            EventType.VAULT_FORCE_RESET,
            EventSeverity.CRITICAL,
            "Vault force reset (local and remote data destroyed)",
            details={"remote_blobs_deleted": deleted, "degraded": result.degraded},
        )
        return result

    def _begin_reset(self, confirm: bool) -> str:
        if confirm is not True:
            raise PreconditionError("Reset is destructive and requires confirm=True")
        if not self._account_identity:
            raise PreconditionError("Set an account identity before resetting")
        self._state = VaultState.RESETTING
        self.failed_attempts = 0
        self.lockout_until = None
        return self._account_identity

    # ------------------------------------------------------------------
    # Status and utilities
    # ------------------------------------------------------------------

    def get_vault_metadata(self) -> Dict[str, Any]:
        vault = self._require_unlocked()
        tier_counts = {tier.value: 0 for tier in PrivacyTier}
        for stored in vault.records:
            tier_counts[stored.privacy_tier.value] += 1
        category_counts = {name: 0 for name in RECORD_CATEGORIES}
        for stored in vault.records:
            category_counts[stored.category] = category_counts.get(stored.category, 0) + 1

        return {
            "id": vault.id,
            "account_identity": vault.account_identity,
            "version": vault.metadata.version,
            "created_at": vault.metadata.created_at,
            "updated_at": vault.metadata.updated_at,
            "record_count": vault.metadata.record_count,
            "proof_enabled": vault.metadata.proof_enabled,
            "tier_counts": tier_counts,
            "category_counts": category_counts,
            "remote_reference_count": len(vault.remote_references),
            "remote": self.remote_status(),
        }

    def remote_status(self) -> Dict[str, Any]:
        status = dict(self.store.describe())
        pending = len(self._vault.missing_remote_references()) if self._vault else 0
        status.update({
            "reference_count": len(self._vault.remote_references) if self._vault else 0,
            "pending_backfill": pending,
            "degraded": pending > 0,
        })
        return status

    def generate_secure_value(self, length: int = 16, include_special: bool = True) -> str:
        return generate_secure_value(length, include_special)

    def check_strength(self, value: str) -> Dict[str, Any]:
        """Returns {score, strength, feedback}."""
        return check_strength(value).to_dict()
