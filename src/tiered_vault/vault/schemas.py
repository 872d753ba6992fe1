"""Schemas for untrusted vault documents.

Mirror files, export files and HTTP bodies are validated here before any
dataclass is built.  A missing or mistyped field is a ``FormatError``;
nothing is defaulted silently.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Type, TypeVar, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
    model_validator,
)

from ..exceptions import FormatError
from .models import PrivacyTier

ENCRYPTED_SENTINEL = "[ENCRYPTED]"

ModelT = TypeVar("ModelT", bound=BaseModel)


def _check_iso(value: str) -> str:
    try:
        datetime.fromisoformat(value)
    except ValueError as exc:
        raise ValueError(f"not an ISO-8601 timestamp: {value!r}") from exc
    return value


class _Document(BaseModel):
    model_config = ConfigDict(extra="forbid")


class EncryptedPayloadModel(_Document):
    ciphertext: StrictStr
    iv: StrictStr
    salt: StrictStr
    tier: PrivacyTier


class _RecordFields(_Document):
    id: StrictStr = Field(min_length=1)
    title: StrictStr
    username: StrictStr
    url: StrictStr
    category: StrictStr
    created_at: StrictStr
    updated_at: StrictStr
    privacy_tier: PrivacyTier
    proof_hash: Optional[StrictStr] = None
    remote_ref: Optional[StrictStr] = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def check_timestamps(cls, value: str) -> str:
        return _check_iso(value)


class StoredRecordModel(_RecordFields):
    payload: EncryptedPayloadModel


class RemoteReferenceModel(_Document):
    storage_key: StrictStr
    proof_hash: StrictStr
    stored_at: StrictStr

    @field_validator("stored_at")
    @classmethod
    def check_timestamps(cls, value: str) -> str:
        return _check_iso(value)


class VaultMetadataModel(_Document):
    version: StrictStr
    created_at: StrictStr
    updated_at: StrictStr
    record_count: StrictInt = Field(ge=0)
    proof_enabled: StrictBool
    verifier: Optional[EncryptedPayloadModel] = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def check_timestamps(cls, value: str) -> str:
        return _check_iso(value)


def _unique_ids(records: List[_RecordFields]) -> None:
    seen = set()
    for record in records:
        if record.id in seen:
            raise ValueError(f"duplicate record id: {record.id}")
        seen.add(record.id)


class VaultDocument(_Document):
    """Persisted local mirror format."""

    id: StrictStr = Field(min_length=1)
    account_identity: StrictStr = Field(min_length=1)
    records: List[StoredRecordModel]
    remote_references: Dict[str, RemoteReferenceModel]
    metadata: VaultMetadataModel

    @model_validator(mode="after")
    def check_consistency(self) -> "VaultDocument":
        _unique_ids(self.records)
        if self.metadata.record_count != len(self.records):
            raise ValueError("metadata.record_count does not match records")
        return self


# ── Export format ───────────────────────────────────────────────────


class ExportBlobModel(_Document):
    ciphertext: StrictStr
    iv: StrictStr
    salt: StrictStr


class ExportedRecordModel(_RecordFields):
    secret_value: Literal["[ENCRYPTED]"]
    notes: Literal["[ENCRYPTED]"]
    encrypted_data: ExportBlobModel


class ExportedVaultModel(_Document):
    id: StrictStr = Field(min_length=1)
    account_identity: StrictStr = Field(min_length=1)
    records: List[ExportedRecordModel]
    remote_references: Dict[str, RemoteReferenceModel]
    metadata: VaultMetadataModel

    @model_validator(mode="after")
    def check_consistency(self) -> "ExportedVaultModel":
        _unique_ids(self.records)
        return self


class EncryptionInfoModel(_Document):
    algorithm: StrictStr
    key_derivation: StrictStr
    iterations: StrictInt = Field(gt=0)
    sensitive_fields: List[StrictStr]
    requires_master_secret: StrictBool


class ExportDocument(_Document):
    version: StrictStr
    exported_at: StrictStr
    vault: ExportedVaultModel
    encryption_info: EncryptionInfoModel

    @field_validator("exported_at")
    @classmethod
    def check_timestamps(cls, value: str) -> str:
        return _check_iso(value)


# ── Helpers ─────────────────────────────────────────────────────────


def _describe(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location or 'document'}: {first.get('msg', 'invalid')}"


def parse_document(model: Type[ModelT], data: Union[str, bytes, Dict[str, Any]]) -> ModelT:
    """Validate raw JSON text or a decoded dict against ``model``.

    Raises:
        FormatError: invalid JSON or any schema violation
    """
    try:
        if isinstance(data, (str, bytes)):
            return model.model_validate_json(data)
        if not isinstance(data, dict):
            raise FormatError(f"Expected a JSON object, got {type(data).__name__}")
        return model.model_validate(data)
    except ValidationError as exc:
        raise FormatError(f"Invalid {model.__name__}: {_describe(exc)}") from exc
    except json.JSONDecodeError as exc:
        raise FormatError(f"Invalid JSON: {exc}") from exc
