# Vault - Data Model
#
# Record      plaintext view handed to callers
# StoredRecord persisted form; secret_value + notes live in an EncryptedPayload
# Vault       one per account identity, mirrored locally as JSON
#
# All timestamps are ISO-8601 strings in UTC.

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

VAULT_FORMAT_VERSION = "1.0.0"

# Record fields that are encrypted at rest and in exports
SENSITIVE_FIELDS = ("secret_value", "notes")

# Record fields a caller may change through update()
EDITABLE_FIELDS = ("title", "username", "secret_value", "url", "notes", "category")


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_record_id() -> str:
    return str(uuid4())


class PrivacyTier(str, Enum):
    """Privacy tier controlling encryption strength and proof requirement."""

    PUBLIC = "public"
    PRIVATE = "private"
    SECRET = "secret"

    @property
    def is_encrypted(self) -> bool:
        """Public records are only encoded; the other tiers use AEAD."""
        return self is not PrivacyTier.PUBLIC

    @property
    def requires_proof(self) -> bool:
        return self is PrivacyTier.SECRET

    @property
    def requires_remote(self) -> bool:
        """Only secret records are written through to the content store."""
        return self is PrivacyTier.SECRET


@dataclass
class EncryptedPayload:
    """Opaque ciphertext; only the cipher interprets it.

    ``ciphertext``, ``iv`` and ``salt`` are base64 text. ``iv`` is empty
    for the public tier.
    """

    ciphertext: str
    iv: str
    salt: str
    tier: PrivacyTier

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ciphertext": self.ciphertext,
            "iv": self.iv,
            "salt": self.salt,
            "tier": self.tier.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EncryptedPayload":
        return cls(
            ciphertext=data["ciphertext"],
            iv=data["iv"],
            salt=data["salt"],
            tier=PrivacyTier(data["tier"]),
        )


@dataclass
class Record:
    """A credential record as callers see it (plaintext).

    ``sealed`` is set when a secret record is listed without a valid
    access proof; ``secret_value`` and ``notes`` are then ``None``.
    """

    title: str
    username: str = ""
    secret_value: Optional[str] = ""
    url: str = ""
    notes: Optional[str] = ""
    category: str = "General"
    id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    privacy_tier: Optional[PrivacyTier] = None
    proof_hash: Optional[str] = None
    remote_ref: Optional[str] = None
    sealed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["privacy_tier"] = self.privacy_tier.value if self.privacy_tier else None
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Record":
        data = dict(data)
        if data.get("privacy_tier"):
            data["privacy_tier"] = PrivacyTier(data["privacy_tier"])
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class StoredRecord:
    """Persisted form of a record. Never holds plaintext secret values."""

    id: str
    title: str
    username: str
    url: str
    category: str
    created_at: str
    updated_at: str
    privacy_tier: PrivacyTier
    payload: EncryptedPayload
    proof_hash: Optional[str] = None
    remote_ref: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "username": self.username,
            "url": self.url,
            "category": self.category,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "privacy_tier": self.privacy_tier.value,
            "payload": self.payload.to_dict(),
            "proof_hash": self.proof_hash,
            "remote_ref": self.remote_ref,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredRecord":
        return cls(
            id=data["id"],
            title=data["title"],
            username=data["username"],
            url=data["url"],
            category=data["category"],
            created_at=data["created_at"],
            updated_at=data["updated_at"],
            privacy_tier=PrivacyTier(data["privacy_tier"]),
            payload=EncryptedPayload.from_dict(data["payload"]),
            proof_hash=data.get("proof_hash"),
            remote_ref=data.get("remote_ref"),
        )

    def to_record(
        self,
        secret_value: Optional[str],
        notes: Optional[str],
        sealed: bool = False,
    ) -> Record:
        return Record(
            id=self.id,
            title=self.title,
            username=self.username,
            secret_value=secret_value,
            url=self.url,
            notes=notes,
            category=self.category,
            created_at=self.created_at,
            updated_at=self.updated_at,
            privacy_tier=self.privacy_tier,
            proof_hash=self.proof_hash,
            remote_ref=self.remote_ref,
            sealed=sealed,
        )


@dataclass
class RemoteReference:
    """Where a record's blob lives in the content store."""

    storage_key: str
    proof_hash: str
    stored_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RemoteReference":
        return cls(
            storage_key=data["storage_key"],
            proof_hash=data["proof_hash"],
            stored_at=data["stored_at"],
        )


@dataclass
class VaultMetadata:
    version: str = VAULT_FORMAT_VERSION
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)
    record_count: int = 0
    proof_enabled: bool = True
    # Encrypted canary: lets unlock verify the master secret of a vault
    # that holds no private or secret records yet.
    verifier: Optional[EncryptedPayload] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "record_count": self.record_count,
            "proof_enabled": self.proof_enabled,
            "verifier": self.verifier.to_dict() if self.verifier else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VaultMetadata":
        verifier = data.get("verifier")
        return cls(
            version=data["version"],
            created_at=data["created_at"],
            updated_at=data["updated_at"],
            record_count=data["record_count"],
            proof_enabled=data["proof_enabled"],
            verifier=EncryptedPayload.from_dict(verifier) if verifier else None,
        )


@dataclass
class Vault:
    """All records of one account identity."""

    account_identity: str
    id: str = field(default_factory=lambda: f"vault-{uuid4().hex[:16]}")
    records: List[StoredRecord] = field(default_factory=list)
    remote_references: Dict[str, RemoteReference] = field(default_factory=dict)
    metadata: VaultMetadata = field(default_factory=VaultMetadata)

    def find(self, record_id: str) -> Optional[StoredRecord]:
        for record in self.records:
            if record.id == record_id:
                return record
        return None

    def index_of(self, record_id: str) -> int:
        for i, record in enumerate(self.records):
            if record.id == record_id:
                return i
        return -1

    def touch(self) -> None:
        """Refresh updated_at and keep record_count in step with records."""
        self.metadata.record_count = len(self.records)
        self.metadata.updated_at = utc_now()

    def copy(self) -> "Vault":
        """Independent deep copy, used to stage a mutation before saving it."""
        return Vault.from_dict(self.to_dict())

    def missing_remote_references(self) -> List[StoredRecord]:
        """Remote-tier records that have no reference yet (degraded mode)."""
        return [
            r for r in self.records
            if r.privacy_tier.requires_remote and r.id not in self.remote_references
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "account_identity": self.account_identity,
            "records": [r.to_dict() for r in self.records],
            "remote_references": {
                record_id: ref.to_dict()
                for record_id, ref in self.remote_references.items()
            },
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Vault":
        """Build a vault from an already validated document."""
        return cls(
            id=data["id"],
            account_identity=data["account_identity"],
            records=[StoredRecord.from_dict(r) for r in data["records"]],
            remote_references={
                record_id: RemoteReference.from_dict(ref)
                for record_id, ref in data["remote_references"].items()
            },
            metadata=VaultMetadata.from_dict(data["metadata"]),
        )


@dataclass
class VaultOperationResult:
    """Outcome of a mutating vault operation.

    Remote failures do not raise; they are listed in ``warnings`` and the
    result is ``degraded``.
    """

    record_id: Optional[str] = None
    tier: Optional[PrivacyTier] = None
    remote_stored: bool = False
    warnings: List[str] = field(default_factory=list)
    proof: Optional[Any] = None  # AccessProof for freshly written secret records

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record_id": self.record_id,
            "tier": self.tier.value if self.tier else None,
            "remote_stored": self.remote_stored,
            "degraded": self.degraded,
            "warnings": list(self.warnings),
        }
