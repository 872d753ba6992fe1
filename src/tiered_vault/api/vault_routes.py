# Vault API - RESTful endpoints for the tiered vault
#
# API endpoints for vault operations:
# - Identity / unlock / lock / status
# - CRUD for records (secret records need a server-issued access proof)
# - Export / import, reset, remote sync
# - Secure value generation and strength checks
#
# The VaultManager lives on app.state; every endpoint requires the
# session token. Proof private inputs never leave the process.

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, ConfigDict, Field

from ..core import RECORD_CATEGORIES
from ..exceptions import (
    AccessDeniedError,
    AuthenticationError,
    DecryptionError,
    FormatError,
    PreconditionError,
    RecordNotFoundError,
    RemoteUnavailableError,
    VaultError,
)
from ..vault import Record, VaultManager, inspect_export, sample_records
from ..vault.strength import MAX_GENERATED_LENGTH
from .security import verify_session_token

router = APIRouter(prefix="/api/vault", tags=["vault"])

_STATUS_BY_ERROR = [
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (AccessDeniedError, status.HTTP_403_FORBIDDEN),
    (DecryptionError, status.HTTP_400_BAD_REQUEST),
    (RecordNotFoundError, status.HTTP_404_NOT_FOUND),
    (PreconditionError, status.HTTP_409_CONFLICT),
    (FormatError, 422),
    (RemoteUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def get_vault_manager(request: Request) -> VaultManager:
    return request.app.state.vault_manager


def _http_error(exc: VaultError) -> HTTPException:
    """Translate a vault error into the matching HTTP status."""
    code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, error_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            code = error_code
            break

    headers = None
    if isinstance(exc, AuthenticationError) and exc.retry_after > 0:
        headers = {"Retry-After": str(int(exc.retry_after + 0.999))}
    return HTTPException(status_code=code, detail=str(exc), headers=headers)


# Request Models
class _Request(BaseModel):
    model_config = ConfigDict(extra="forbid")


class IdentityRequest(_Request):
    account_identity: str = Field(..., min_length=1)


class UnlockRequest(_Request):
    master_secret: str = Field(..., min_length=1)
    account_identity: Optional[str] = None
    seed_samples: bool = False


class AddRecordRequest(_Request):
    title: str = Field(..., min_length=1, max_length=200)
    username: str = ""
    secret_value: str = ""
    url: str = ""
    notes: str = ""
    category: str = "General"


class UpdateRecordRequest(_Request):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    username: Optional[str] = None
    secret_value: Optional[str] = None
    url: Optional[str] = None
    notes: Optional[str] = None
    category: Optional[str] = None


class ImportRequest(_Request):
    export: str = Field(..., min_length=2)


class ResetRequest(_Request):
    confirm: bool = False


class GenerateRequest(_Request):
    length: int = Field(16, ge=1, le=MAX_GENERATED_LENGTH)
    include_special: bool = True


class StrengthRequest(_Request):
    value: str


# Endpoints

@router.get("/status")
async def get_vault_status(
    manager: VaultManager = Depends(get_vault_manager),
    token: str = Depends(verify_session_token),
):
    """
    Current vault state for the session.

    Security: Requires valid session token in X-Session-Token header.
    """
    identity = manager.account_identity
    return {
        "state": manager.state.value,
        "is_unlocked": manager.is_unlocked,
        "account_identity": identity,
        "vault_exists": manager.mirror.exists(identity) if identity else False,
        "remote": manager.remote_status(),
    }


@router.post("/identity")
async def set_identity(
    request: IdentityRequest,
    manager: VaultManager = Depends(get_vault_manager),
    token: str = Depends(verify_session_token),
):
    try:
        manager.set_account_identity(request.account_identity)
    except VaultError as exc:
        raise _http_error(exc) from exc
    return {"success": True, "account_identity": manager.account_identity}


@router.post("/unlock")
async def unlock_vault(
    request: UnlockRequest,
    manager: VaultManager = Depends(get_vault_manager),
    token: str = Depends(verify_session_token),
):
    """
    Unlock the vault, creating it on first use.

    ``seed_samples`` adds starter records to a newly created vault.
    """
    seed = sample_records() if request.seed_samples else None
    try:
        result = await manager.unlock(request.master_secret, request.account_identity, seed=seed)
    except VaultError as exc:
        raise _http_error(exc) from exc
    return {"success": True, "state": manager.state.value, "result": result.to_dict()}


@router.post("/lock")
async def lock_vault(
    manager: VaultManager = Depends(get_vault_manager),
    token: str = Depends(verify_session_token),
):
    manager.lock()
    return {"success": True, "state": manager.state.value}


@router.get("/records")
async def list_records(
    search: Optional[str] = None,
    category: Optional[str] = None,
    manager: VaultManager = Depends(get_vault_manager),
    token: str = Depends(verify_session_token),
):
    """All records, optionally filtered; secret records are sealed (use /records/{id}/access)."""
    try:
        records = manager.get_all(search=search, category=category)
    except VaultError as exc:
        raise _http_error(exc) from exc
    return {"records": [r.to_dict() for r in records], "count": len(records)}


@router.post("/records", status_code=status.HTTP_201_CREATED)
async def add_record(
    request: AddRecordRequest,
    manager: VaultManager = Depends(get_vault_manager),
    token: str = Depends(verify_session_token),
):
    try:
        result = await manager.add(Record(**request.model_dump()))
    except VaultError as exc:
        raise _http_error(exc) from exc
    return result.to_dict()


@router.get("/records/{record_id}")
async def get_record(
    record_id: str,
    manager: VaultManager = Depends(get_vault_manager),
    token: str = Depends(verify_session_token),
):
    """Public and private records. Secret records answer 403."""
    try:
        record = manager.get(record_id)
    except VaultError as exc:
        raise _http_error(exc) from exc
    return record.to_dict()


@router.put("/records/{record_id}")
async def update_record(
    record_id: str,
    request: UpdateRecordRequest,
    manager: VaultManager = Depends(get_vault_manager),
    token: str = Depends(verify_session_token),
):
    changes = request.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields to update"
        )
    try:
        result = await manager.update(record_id, changes)
    except VaultError as exc:
        raise _http_error(exc) from exc
    return result.to_dict()


@router.delete("/records/{record_id}")
async def delete_record(
    record_id: str,
    manager: VaultManager = Depends(get_vault_manager),
    token: str = Depends(verify_session_token),
):
    try:
        result = await manager.delete(record_id)
    except VaultError as exc:
        raise _http_error(exc) from exc
    return result.to_dict()


@router.post("/records/{record_id}/access")
async def access_record(
    record_id: str,
    manager: VaultManager = Depends(get_vault_manager),
    token: str = Depends(verify_session_token),
):
    """
    Issue an access proof server-side and return the decrypted record.

    Only the proof receipt (token, verification key, issue time) is
    returned; its private inputs stay in the process.
    """
    try:
        proof = manager.issue_proof(record_id)
        record = manager.get(record_id, proof=proof)
    except VaultError as exc:
        raise _http_error(exc) from exc
    return {"record": record.to_dict(), "proof": proof.receipt().to_dict()}


@router.post("/sync")
async def sync_remote(
    manager: VaultManager = Depends(get_vault_manager),
    token: str = Depends(verify_session_token),
):
    """Backfill remote references missed while the store was unavailable."""
    try:
        result = await manager.sync_remote()
    except VaultError as exc:
        raise _http_error(exc) from exc
    return {"result": result.to_dict(), "remote": manager.remote_status()}


@router.get("/metadata")
async def vault_metadata(
    manager: VaultManager = Depends(get_vault_manager),
    token: str = Depends(verify_session_token),
):
    try:
        return manager.get_vault_metadata()
    except VaultError as exc:
        raise _http_error(exc) from exc


@router.get("/categories")
async def list_categories(token: str = Depends(verify_session_token)):
    return {"categories": RECORD_CATEGORIES}


@router.get("/export")
async def export_vault(
    manager: VaultManager = Depends(get_vault_manager),
    token: str = Depends(verify_session_token),
):
    """Export file text plus a summary of its encryption."""
    try:
        blob = manager.export()
    except VaultError as exc:
        raise _http_error(exc) from exc
    return {"export": blob, "info": inspect_export(blob)}


@router.post("/import")
async def import_vault(
    request: ImportRequest,
    manager: VaultManager = Depends(get_vault_manager),
    token: str = Depends(verify_session_token),
):
    try:
        result = await manager.import_vault(request.export)
    except VaultError as exc:
        raise _http_error(exc) from exc
    return result.to_dict()


@router.post("/reset")
async def reset_vault(
    request: ResetRequest,
    manager: VaultManager = Depends(get_vault_manager),
    token: str = Depends(verify_session_token),
):
    """Delete local vault data for the account. Requires confirm=true."""
    try:
        result = await manager.reset(confirm=request.confirm)
    except VaultError as exc:
        raise _http_error(exc) from exc
    return {"success": True, "state": manager.state.value, "result": result.to_dict()}


@router.post("/force-reset")
async def force_reset_vault(
    request: ResetRequest,
    manager: VaultManager = Depends(get_vault_manager),
    token: str = Depends(verify_session_token),
):
    """Delete local and remote vault data for the account. Requires confirm=true."""
    try:
        result = await manager.force_reset(confirm=request.confirm)
    except VaultError as exc:
        raise _http_error(exc) from exc
    return {"success": True, "state": manager.state.value, "result": result.to_dict()}


@router.post("/generate")
async def generate_value(
    request: GenerateRequest,
    manager: VaultManager = Depends(get_vault_manager),
    token: str = Depends(verify_session_token),
):
    value = manager.generate_secure_value(request.length, request.include_special)
    return {"value": value, "strength": manager.check_strength(value)}


@router.post("/strength")
async def check_strength(
    request: StrengthRequest,
    manager: VaultManager = Depends(get_vault_manager),
    token: str = Depends(verify_session_token),
):
    return manager.check_strength(request.value)
