"""Tests for access proof issuance and verification."""

from datetime import datetime, timedelta, timezone

import pytest

MASTER = "correct horse battery staple"
IDENTITY = "0xalice"
T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def service():
    from tiered_vault.vault.access_proof import AccessProofService

    return AccessProofService()


@pytest.fixture
def record():
    from tiered_vault.vault.models import Record

    return Record(id="rec-1", title="Bank", secret_value="hunter2")


class TestIssue:

    def test_inputs(self, service, record):
        proof = service.issue(record, MASTER, IDENTITY, now=T0)
        assert proof.public_inputs == [IDENTITY, "rec-1"]
        assert proof.private_inputs == [MASTER, "hunter2"]
        assert len(proof.token) == 64
        assert proof.verification_key
        assert proof.issued_at == T0.isoformat()

    def test_record_without_secret_value(self, service):
        from tiered_vault.vault.models import Record

        proof = service.issue(Record(id="rec-2", title="x", secret_value=""), MASTER, IDENTITY)
        assert proof.private_inputs == [MASTER]

    def test_requires_record_id(self, service):
        from tiered_vault.vault.models import Record

        with pytest.raises(ValueError):
            service.issue(Record(title="no id"), MASTER, IDENTITY)

    def test_requires_master_and_identity(self, service, record):
        with pytest.raises(ValueError):
            service.issue(record, "", IDENTITY)
        with pytest.raises(ValueError):
            service.issue(record, MASTER, "")

    def test_receipt_has_no_private_inputs(self, service, record):
        proof = service.issue(record, MASTER, IDENTITY)
        receipt = proof.receipt().to_dict()
        assert set(receipt) == {"token", "verification_key", "issued_at"}
        assert MASTER not in str(receipt)
        assert MASTER not in repr(proof)


class TestVerifyExpiry:
    """Accepted for T..T+24h inclusive, rejected strictly after."""

    def test_accepted_at_issue_time(self, service, record):
        proof = service.issue(record, MASTER, IDENTITY, now=T0)
        assert service.verify(proof, now=T0)

    def test_accepted_at_exactly_24h(self, service, record):
        proof = service.issue(record, MASTER, IDENTITY, now=T0)
        assert service.verify(proof, now=T0 + timedelta(hours=24))

    def test_rejected_just_after_24h(self, service, record):
        proof = service.issue(record, MASTER, IDENTITY, now=T0)
        assert not service.verify(proof, now=T0 + timedelta(hours=24, microseconds=1))

    def test_rejected_before_issue_time(self, service, record):
        proof = service.issue(record, MASTER, IDENTITY, now=T0)
        assert not service.verify(proof, now=T0 - timedelta(seconds=1))


class TestVerifyFailsClosed:

    def test_malformed_token(self, service, record):
        proof = service.issue(record, MASTER, IDENTITY)
        proof.token = "not-a-hex-token"
        assert not service.verify(proof)

    def test_modified_inputs_break_token(self, service, record):
        proof = service.issue(record, MASTER, IDENTITY)
        proof.private_inputs = ["guess"]
        assert not service.verify(proof)

    def test_empty_inputs(self, service, record):
        proof = service.issue(record, MASTER, IDENTITY)
        proof.public_inputs = []
        assert not service.verify(proof)

    def test_empty_verification_key(self, service, record):
        proof = service.issue(record, MASTER, IDENTITY)
        proof.verification_key = ""
        assert not service.verify(proof)

    def test_garbage_timestamp(self, service, record):
        proof = service.issue(record, MASTER, IDENTITY)
        proof.issued_at = "yesterday"
        assert not service.verify(proof)

    @pytest.mark.parametrize("bogus", [None, "token", {"token": "x"}, 42])
    def test_non_proof_objects(self, service, bogus):
        assert service.verify(bogus) is False


class TestBinding:

    def test_bound_to_issuing_session(self, service, record):
        proof = service.issue(record, MASTER, IDENTITY)
        assert service.is_bound(proof, MASTER, IDENTITY, "rec-1")

    def test_other_master_secret(self, service, record):
        proof = service.issue(record, "another secret", IDENTITY)
        assert service.verify(proof)
        assert not service.is_bound(proof, MASTER, IDENTITY, "rec-1")

    def test_other_record(self, service, record):
        proof = service.issue(record, MASTER, IDENTITY)
        assert not service.is_bound(proof, MASTER, IDENTITY, "rec-2")
