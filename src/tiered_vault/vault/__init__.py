# Vault Module - Privacy-Tiered Vault Storage Engine
#
# Records are classified into public / private / secret tiers,
# encrypted per tier (PBKDF2-SHA256 + AES-256-GCM), and secret records
# are gated behind access proofs and written through to a content store.

from .access_proof import AccessProof, AccessProofService, ProofReceipt
from .classifier import TierClassifier, classify
from .encryption import KeyDerivation, TierCipher
from .local_mirror import InMemoryMirror, JsonFileMirror, LocalMirror
from .models import (
    EncryptedPayload,
    PrivacyTier,
    Record,
    RemoteReference,
    StoredRecord,
    Vault,
    VaultMetadata,
    VaultOperationResult,
)
from .remote_store import (
    ContentStore,
    HttpContentStore,
    InMemoryContentStore,
    LocalContentStore,
    build_content_store,
)
from .strength import StrengthReport, check_strength, generate_secure_value
from .transfer import inspect_export
from .vault_manager import VaultManager, VaultState, sample_records

__all__ = [
    "VaultManager",
    "VaultState",
    "sample_records",
    "PrivacyTier",
    "Record",
    "StoredRecord",
    "EncryptedPayload",
    "RemoteReference",
    "Vault",
    "VaultMetadata",
    "VaultOperationResult",
    "TierClassifier",
    "classify",
    "KeyDerivation",
    "TierCipher",
    "AccessProof",
    "AccessProofService",
    "ProofReceipt",
    "ContentStore",
    "InMemoryContentStore",
    "LocalContentStore",
    "HttpContentStore",
    "build_content_store",
    "LocalMirror",
    "InMemoryMirror",
    "JsonFileMirror",
    "StrengthReport",
    "check_strength",
    "generate_secure_value",
    "inspect_export",
]
