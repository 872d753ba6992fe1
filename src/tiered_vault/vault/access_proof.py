"""Access proofs for secret-tier records.

An ``AccessProof`` is a possession-capability token: it binds the account
identity and record id (public inputs) to the master secret and the
record's secret value (private inputs) at an issuance time.  It is NOT a
zero-knowledge or succinct proof system and gives no soundness guarantee
beyond "whoever built this held the master secret".  A real proof system
can replace ``AccessProofService`` behind the same ``issue``/``verify``
contract.

Only the ``ProofReceipt`` part (token, verification key, issuance time)
is ever persisted; private inputs live in memory only.
"""

import hashlib
import hmac
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

PROOF_VALIDITY = timedelta(hours=24)

_TOKEN_RE = re.compile(r"^[0-9a-f]{64}$")


@dataclass
class ProofReceipt:
    """Durable part of an access proof."""

    token: str
    verification_key: str
    issued_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token": self.token,
            "verification_key": self.verification_key,
            "issued_at": self.issued_at,
        }


@dataclass
class AccessProof:
    """In-memory capability token for one record."""

    token: str
    public_inputs: List[str] = field(default_factory=list)
    private_inputs: List[str] = field(default_factory=list)
    verification_key: str = ""
    issued_at: str = ""

    def receipt(self) -> ProofReceipt:
        return ProofReceipt(
            token=self.token,
            verification_key=self.verification_key,
            issued_at=self.issued_at,
        )

    def __repr__(self) -> str:
        # private_inputs hold the master secret; keep them out of logs and tracebacks
        return (
            f"AccessProof(token={self.token[:12]}..., "
            f"public_inputs={self.public_inputs!r}, issued_at={self.issued_at!r})"
        )


def _compute_token(public_inputs: List[str], private_inputs: List[str], issued_at: str) -> str:
    canonical = json.dumps(
        {"public": public_inputs, "private": private_inputs, "issued_at": issued_at},
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _binding_key(master_secret: str, account_identity: str) -> bytes:
    return hashlib.sha256(
        f"access-proof\x00{account_identity}\x00{master_secret}".encode("utf-8")
    ).digest()


def _verification_key(master_secret: str, account_identity: str, token: str) -> str:
    return hmac.new(
        _binding_key(master_secret, account_identity),
        token.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


class AccessProofService:
    """Issues and verifies access proofs."""

    def __init__(self, validity: timedelta = PROOF_VALIDITY):
        self.validity = validity

    def issue(
        self,
        record,
        master_secret: str,
        account_identity: str,
        now: Optional[datetime] = None,
    ) -> AccessProof:
        """
        Issue a proof for ``record``.

        Args:
            record: Object with ``id`` and optional ``secret_value``
            master_secret: Session master secret (private input)
            account_identity: Vault owner (public input)
            now: Issuance time (default: current UTC time)
        """
        if not master_secret or not account_identity:
            raise ValueError("master_secret and account_identity are required")
        if not getattr(record, "id", None):
            raise ValueError("record must have an id before a proof is issued")

        issued_at = (now or datetime.now(timezone.utc)).isoformat()
        public_inputs = [account_identity, record.id]
        private_inputs = [master_secret]
        secret_value = getattr(record, "secret_value", None)
        if secret_value:
            private_inputs.append(secret_value)

        token = _compute_token(public_inputs, private_inputs, issued_at)
        return AccessProof(
            token=token,
            public_inputs=public_inputs,
            private_inputs=private_inputs,
            verification_key=_verification_key(master_secret, account_identity, token),
            issued_at=issued_at,
        )

    def verify(self, proof: AccessProof, now: Optional[datetime] = None) -> bool:
        """
        Check a proof. Fails closed: any problem returns False.

        Checks:
        - token well-formed and matching the proof's inputs
        - issued_at within the validity window (inclusive)
        - public and private inputs non-empty
        - verification key non-empty
        """
        try:
            if not isinstance(proof, AccessProof):
                return False
            if not _TOKEN_RE.match(proof.token or ""):
                return False
            if not proof.public_inputs or not proof.private_inputs:
                return False
            if not proof.verification_key:
                return False

            issued = datetime.fromisoformat(proof.issued_at)
            if issued.tzinfo is None:
                issued = issued.replace(tzinfo=timezone.utc)
            current = now or datetime.now(timezone.utc)
            if current < issued or current - issued > self.validity:
                return False

            expected = _compute_token(proof.public_inputs, proof.private_inputs, proof.issued_at)
            return hmac.compare_digest(expected, proof.token)
        except Exception as exc:
            logger.debug("Access proof rejected: %s", type(exc).__name__)
            return False

    def is_bound(
        self,
        proof: AccessProof,
        master_secret: str,
        account_identity: str,
        record_id: str,
    ) -> bool:
        """True when ``proof`` was issued for this record by this session's master secret."""
        if proof.public_inputs != [account_identity, record_id]:
            return False
        expected = _verification_key(master_secret, account_identity, proof.token)
        return hmac.compare_digest(expected, proof.verification_key)
