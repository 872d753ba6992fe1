"""Tests for vault export / import."""

import json

import pytest

MASTER = "correct horse battery staple"
IDENTITY = "0xalice"


async def _populated(manager):
    from tiered_vault.vault.models import Record

    await manager.unlock(MASTER, IDENTITY)
    await manager.add(Record(title="Forum", username="al", secret_value="pub-pw", notes="hi"))
    await manager.add(Record(title="Home wifi", secret_value="wifi-pw", category="Personal"))
    await manager.add(Record(
        title="Bank", secret_value="hunter2", notes="pin 0000", category="Banking",
    ))
    return manager


def _fresh_manager(vault_config):
    from tiered_vault.vault.local_mirror import InMemoryMirror
    from tiered_vault.vault.remote_store import InMemoryContentStore
    from tiered_vault.vault.vault_manager import VaultManager

    return VaultManager(vault_config, mirror=InMemoryMirror(), store=InMemoryContentStore())


# ── Export ──────────────────────────────────────────────────────────


class TestExport:

    @pytest.mark.asyncio
    async def test_sensitive_fields_replaced(self, manager):
        await _populated(manager)
        blob = manager.export()
        document = json.loads(blob)

        for entry in document["vault"]["records"]:
            assert entry["secret_value"] == "[ENCRYPTED]"
            assert entry["notes"] == "[ENCRYPTED]"
            assert set(entry["encrypted_data"]) == {"ciphertext", "iv", "salt"}
            assert "payload" not in entry

        for plaintext in ("pub-pw", "wifi-pw", "hunter2", "pin 0000", MASTER):
            assert plaintext not in blob

    @pytest.mark.asyncio
    async def test_non_sensitive_fields_in_clear(self, manager):
        await _populated(manager)
        document = json.loads(manager.export())
        titles = [r["title"] for r in document["vault"]["records"]]
        assert titles == ["Forum", "Home wifi", "Bank"]
        assert document["vault"]["records"][0]["username"] == "al"

    @pytest.mark.asyncio
    async def test_encryption_info(self, manager, vault_config):
        await _populated(manager)
        info = json.loads(manager.export())["encryption_info"]
        assert info["algorithm"] == "AES-256-GCM"
        assert info["key_derivation"] == "PBKDF2-SHA256"
        assert info["iterations"] == vault_config.kdf_iterations
        assert info["sensitive_fields"] == ["secret_value", "notes"]
        assert info["requires_master_secret"] is True

    @pytest.mark.asyncio
    async def test_inspect_export(self, manager):
        from tiered_vault.vault import inspect_export

        await _populated(manager)
        info = inspect_export(manager.export())
        assert info == {
            "is_encrypted": True,
            "sensitive_fields": ["secret_value", "notes"],
            "algorithm": "AES-256-GCM",
            "requires_master_secret": True,
            "record_count": 3,
        }

    @pytest.mark.asyncio
    async def test_inspect_non_base64_ciphertext(self, manager):
        from tiered_vault.vault import inspect_export

        await _populated(manager)
        document = json.loads(manager.export())
        document["vault"]["records"][0]["encrypted_data"]["ciphertext"] = "!!not base64!!"

        info = inspect_export(json.dumps(document))
        assert info["is_encrypted"] is False
        assert info["record_count"] == 3

    def test_inspect_invalid(self):
        from tiered_vault.vault import inspect_export

        info = inspect_export("not json at all")
        assert info["algorithm"] == "invalid"
        assert info["is_encrypted"] is False
        assert info["record_count"] == 0


# ── Import ──────────────────────────────────────────────────────────


class TestImport:

    @pytest.mark.asyncio
    async def test_round_trip_into_fresh_manager(self, manager, vault_config):
        await _populated(manager)
        blob = manager.export()

        other = _fresh_manager(vault_config)
        await other.unlock(MASTER, IDENTITY)
        result = await other.import_vault(blob)
        assert result.remote_stored

        original = {r.id: r for r in manager.get_all()}
        imported = {r.id: r for r in other.get_all()}
        assert set(imported) == set(original)
        assert other.get_vault_metadata()["record_count"] == 3

        for record_id, record in original.items():
            proof = None
            if manager._vault.find(record_id).privacy_tier.requires_proof:
                proof = other.issue_proof(record_id)
                record = manager.get(record_id, proof=manager.issue_proof(record_id))
            copy = other.get(record_id, proof=proof)
            for name in ("title", "username", "secret_value", "url", "notes",
                         "category", "created_at", "privacy_tier"):
                assert getattr(copy, name) == getattr(record, name)

    @pytest.mark.asyncio
    async def test_import_replaces_existing_records(self, manager, vault_config):
        from tiered_vault.vault.models import Record

        await _populated(manager)
        blob = manager.export()

        other = _fresh_manager(vault_config)
        await other.unlock(MASTER, IDENTITY)
        await other.add(Record(title="Stale"))
        await other.import_vault(blob)
        assert [r.title for r in other.get_all()] == ["Forum", "Home wifi", "Bank"]

    @pytest.mark.asyncio
    async def test_imported_vault_survives_relock(self, manager, vault_config):
        await _populated(manager)
        blob = manager.export()

        other = _fresh_manager(vault_config)
        await other.unlock(MASTER, IDENTITY)
        await other.import_vault(blob)
        other.lock()
        await other.unlock(MASTER)
        assert len(other.get_all()) == 3

    @pytest.mark.asyncio
    async def test_secret_records_written_remotely(self, manager, vault_config):
        await _populated(manager)
        blob = manager.export()

        other = _fresh_manager(vault_config)
        await other.unlock(MASTER, IDENTITY)
        await other.import_vault(blob)
        assert len(other.store) == 1
        assert other.remote_status()["pending_backfill"] == 0

    @pytest.mark.asyncio
    async def test_wrong_master_secret(self, manager, vault_config):
        from tiered_vault.exceptions import DecryptionError

        await _populated(manager)
        blob = manager.export()

        other = _fresh_manager(vault_config)
        await other.unlock("a different secret", IDENTITY)
        with pytest.raises(DecryptionError):
            await other.import_vault(blob)
        assert other.get_all() == []

    @pytest.mark.asyncio
    async def test_other_account_rejected(self, manager, vault_config):
        from tiered_vault.exceptions import AccessDeniedError

        await _populated(manager)
        blob = manager.export()

        other = _fresh_manager(vault_config)
        await other.unlock(MASTER, "0xbob")
        with pytest.raises(AccessDeniedError):
            await other.import_vault(blob)

    @pytest.mark.asyncio
    async def test_malformed_export(self, manager):
        from tiered_vault.exceptions import FormatError

        await manager.unlock(MASTER, IDENTITY)
        with pytest.raises(FormatError):
            await manager.import_vault("{}")
        with pytest.raises(FormatError):
            await manager.import_vault("{not json")

    @pytest.mark.asyncio
    async def test_missing_sentinel_rejected(self, manager):
        from tiered_vault.exceptions import FormatError

        await _populated(manager)
        document = json.loads(manager.export())
        document["vault"]["records"][0]["secret_value"] = "leaked"
        with pytest.raises(FormatError):
            await manager.import_vault(json.dumps(document))

    @pytest.mark.asyncio
    async def test_weak_iterations_rejected(self, manager):
        from tiered_vault.exceptions import FormatError

        await _populated(manager)
        document = json.loads(manager.export())
        document["encryption_info"]["iterations"] = 1000
        with pytest.raises(FormatError):
            await manager.import_vault(json.dumps(document))

    @pytest.mark.asyncio
    async def test_excessive_iterations_rejected(self, manager):
        from tiered_vault.exceptions import FormatError

        await _populated(manager)
        document = json.loads(manager.export())
        document["encryption_info"]["iterations"] = 2_000_000_000
        with pytest.raises(FormatError):
            await manager.import_vault(json.dumps(document))

    @pytest.mark.asyncio
    async def test_unknown_algorithm_rejected(self, manager):
        from tiered_vault.exceptions import FormatError

        await _populated(manager)
        document = json.loads(manager.export())
        document["encryption_info"]["algorithm"] = "ROT13"
        with pytest.raises(FormatError):
            await manager.import_vault(json.dumps(document))

    @pytest.mark.asyncio
    async def test_tampered_ciphertext(self, manager):
        from tiered_vault.exceptions import DecryptionError

        await _populated(manager)
        document = json.loads(manager.export())
        blob = document["vault"]["records"][1]["encrypted_data"]
        blob["ciphertext"] = ("A" if blob["ciphertext"][0] != "A" else "B") + blob["ciphertext"][1:]
        with pytest.raises(DecryptionError):
            await manager.import_vault(json.dumps(document))
        # Vault untouched on failure
        assert len(manager.get_all()) == 3
