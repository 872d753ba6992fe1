"""Vault export and import format.

Export files carry every non-sensitive record field in clear and replace
``secret_value`` and ``notes`` with ``[ENCRYPTED]`` plus a sibling
``encrypted_data`` blob: AES-256-GCM under a per-record key derived from
the master secret with the ``export`` label and a fresh salt.

Import validates the whole document before touching anything and fails
closed on any schema or decryption problem.
"""

import binascii
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Tuple

from ..core.config import MAX_KDF_ITERATIONS, MIN_KDF_ITERATIONS
from ..exceptions import FormatError
from .encryption import KeyDerivation, TierCipher, decode_from_storage
from .models import (
    SENSITIVE_FIELDS,
    EncryptedPayload,
    PrivacyTier,
    Record,
    Vault,
)
from .schemas import ENCRYPTED_SENTINEL, ExportDocument, parse_document

logger = logging.getLogger(__name__)

EXPORT_FORMAT_VERSION = "1.0.0"
EXPORT_ALGORITHM = "AES-256-GCM"
EXPORT_KEY_DERIVATION = "PBKDF2-SHA256"


@dataclass
class ImportedVault:
    """Decrypted content of an export file."""

    vault_id: str
    account_identity: str
    records: List[Record]
    exported_at: str


def build_export(
    vault: Vault,
    sensitive: Dict[str, Tuple[str, str]],
    master_secret: str,
    kdf: KeyDerivation,
    cipher: TierCipher,
) -> str:
    """
    Serialize a vault for export.

    Args:
        vault: Vault to export (persisted form)
        sensitive: record_id → (secret_value, notes) plaintext
        master_secret: Session master secret
        kdf: Key derivation (its iteration count is recorded in the file)
        cipher: Cipher used for the private (AEAD) path

    Returns:
        JSON document text
    """
    records = []
    for stored in vault.records:
        secret_value, notes = sensitive[stored.id]
        salt = kdf.generate_salt()
        key = kdf.derive_export_key(master_secret, vault.account_identity, salt)
        payload = cipher.encrypt(
            json.dumps({"secret_value": secret_value, "notes": notes}),
            PrivacyTier.PRIVATE,
            key,
            salt,
        )

        entry = stored.to_dict()
        del entry["payload"]
        entry["secret_value"] = ENCRYPTED_SENTINEL
        entry["notes"] = ENCRYPTED_SENTINEL
        entry["encrypted_data"] = {
            "ciphertext": payload.ciphertext,
            "iv": payload.iv,
            "salt": payload.salt,
        }
        records.append(entry)

    vault_data = vault.to_dict()
    vault_data["records"] = records
    # The canary is tied to this mirror's salts; import writes a new one
    vault_data["metadata"]["verifier"] = None

    document = {
        "version": EXPORT_FORMAT_VERSION,
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "vault": vault_data,
        "encryption_info": {
            "algorithm": EXPORT_ALGORITHM,
            "key_derivation": EXPORT_KEY_DERIVATION,
            "iterations": kdf.iterations,
            "sensitive_fields": list(SENSITIVE_FIELDS),
            "requires_master_secret": True,
        },
    }
    return json.dumps(document, indent=2)


def parse_export(blob) -> ExportDocument:
    """Validate an export document. Raises FormatError."""
    document = parse_document(ExportDocument, blob)
    info = document.encryption_info
    if info.algorithm != EXPORT_ALGORITHM or info.key_derivation != EXPORT_KEY_DERIVATION:
        raise FormatError(
            f"Unsupported export encryption: {info.algorithm}/{info.key_derivation}"
        )
    if info.iterations < MIN_KDF_ITERATIONS:
        raise FormatError("Export key derivation is weaker than the vault minimum")
    if info.iterations > MAX_KDF_ITERATIONS:
        raise FormatError("Export key derivation work factor exceeds the supported maximum")
    if sorted(info.sensitive_fields) != sorted(SENSITIVE_FIELDS):
        raise FormatError("Export sensitive field list does not match this format")
    return document


def decrypt_export(
    document: ExportDocument,
    master_secret: str,
    cipher: TierCipher,
) -> ImportedVault:
    """
    Recover plaintext records from a validated export.

    Raises:
        DecryptionError: wrong master secret or tampered blob
        FormatError: blob decrypts but is not a sensitive-field object
    """
    vault = document.vault
    kdf = KeyDerivation(document.encryption_info.iterations)
    records = []

    for entry in vault.records:
        blob = entry.encrypted_data
        payload = EncryptedPayload(
            ciphertext=blob.ciphertext,
            iv=blob.iv,
            salt=blob.salt,
            tier=PrivacyTier.PRIVATE,
        )
        salt = cipher.payload_salt(payload)
        try:
            key = kdf.derive_export_key(master_secret, vault.account_identity, salt)
        except ValueError as exc:
            raise FormatError(f"Record {entry.id}: {exc}") from exc
        plaintext = cipher.decrypt(payload, PrivacyTier.PRIVATE, key)

        try:
            fields = json.loads(plaintext)
            secret_value = fields["secret_value"]
            notes = fields["notes"]
        except (ValueError, KeyError, TypeError) as exc:
            raise FormatError(f"Record {entry.id}: malformed encrypted_data") from exc
        if not isinstance(secret_value, str) or not isinstance(notes, str):
            raise FormatError(f"Record {entry.id}: sensitive fields must be strings")

        records.append(Record(
            id=entry.id,
            title=entry.title,
            username=entry.username,
            secret_value=secret_value,
            url=entry.url,
            notes=notes,
            category=entry.category,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
            privacy_tier=entry.privacy_tier,
        ))

    return ImportedVault(
        vault_id=vault.id,
        account_identity=vault.account_identity,
        records=records,
        exported_at=document.exported_at,
    )


def inspect_export(blob) -> Dict[str, object]:
    """
    Describe an export file without decrypting it.

    Returns:
        {is_encrypted, sensitive_fields, algorithm, requires_master_secret,
         record_count}; malformed documents report algorithm "invalid" and
        ciphertext that is not base64 reports is_encrypted False.
    """
    try:
        document = parse_document(ExportDocument, blob)
    except FormatError:
        return {
            "is_encrypted": False,
            "sensitive_fields": [],
            "algorithm": "invalid",
            "requires_master_secret": False,
            "record_count": 0,
        }

    records = document.vault.records
    try:
        encrypted = all(
            r.secret_value == ENCRYPTED_SENTINEL and r.notes == ENCRYPTED_SENTINEL
            and decode_from_storage(r.encrypted_data.ciphertext)
            for r in records
        ) if records else True
    except (binascii.Error, ValueError):
        encrypted = False

    return {
        "is_encrypted": encrypted,
        "sensitive_fields": list(document.encryption_info.sensitive_fields),
        "algorithm": document.encryption_info.algorithm,
        "requires_master_secret": document.encryption_info.requires_master_secret,
        "record_count": len(records),
    }
