"""Tests for the local mirror and vault document validation."""

import json
import os
import stat

import pytest


def make_vault(identity="0xalice"):
    from tiered_vault.vault.models import (
        EncryptedPayload,
        PrivacyTier,
        RemoteReference,
        StoredRecord,
        Vault,
        utc_now,
    )

    now = utc_now()
    vault = Vault(account_identity=identity)
    vault.records.append(StoredRecord(
        id="rec-1",
        title="Forum",
        username="alice",
        url="https://forum.example.com",
        category="General",
        created_at=now,
        updated_at=now,
        privacy_tier=PrivacyTier.PUBLIC,
        payload=EncryptedPayload("e30=", "", "", PrivacyTier.PUBLIC),
    ))
    vault.records.append(StoredRecord(
        id="rec-2",
        title="Bank",
        username="alice",
        url="",
        category="Banking",
        created_at=now,
        updated_at=now,
        privacy_tier=PrivacyTier.SECRET,
        payload=EncryptedPayload("Y2lwaGVy", "bm9uY2U=", "c2FsdA==", PrivacyTier.SECRET),
        proof_hash="a" * 64,
        remote_ref="0xalice:rec-2#abc",
    ))
    vault.remote_references["rec-2"] = RemoteReference("0xalice:rec-2#abc", "a" * 64)
    vault.touch()
    return vault


@pytest.fixture(params=["memory", "json"])
def mirror(request, tmp_path):
    from tiered_vault.vault.local_mirror import InMemoryMirror, JsonFileMirror

    if request.param == "memory":
        return InMemoryMirror()
    return JsonFileMirror(tmp_path / "vaults")


class TestMirrorContract:

    def test_load_missing(self, mirror):
        assert mirror.load("0xnobody") is None
        assert not mirror.exists("0xnobody")

    def test_save_load(self, mirror):
        vault = make_vault()
        mirror.save(vault)
        loaded = mirror.load("0xalice")
        assert loaded.to_dict() == vault.to_dict()
        assert mirror.exists("0xalice")

    def test_snapshot_is_isolated(self, mirror):
        vault = make_vault()
        mirror.save(vault)
        vault.records.clear()
        assert len(mirror.load("0xalice").records) == 2

    def test_accounts_are_separate(self, mirror):
        mirror.save(make_vault("0xalice"))
        mirror.save(make_vault("0xbob"))
        mirror.clear("0xalice")
        assert mirror.load("0xalice") is None
        assert mirror.load("0xbob") is not None

    def test_clear_missing_is_noop(self, mirror):
        mirror.clear("0xnobody")


class TestJsonFileMirror:

    def test_file_name_hides_identity(self, tmp_path):
        from tiered_vault.vault.local_mirror import JsonFileMirror

        mirror = JsonFileMirror(tmp_path)
        mirror.save(make_vault("0xalice"))
        path = mirror.path_for("0xalice")
        assert path.exists()
        assert "alice" not in path.name

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_owner_only_permissions(self, tmp_path):
        from tiered_vault.vault.local_mirror import JsonFileMirror

        mirror = JsonFileMirror(tmp_path)
        mirror.save(make_vault())
        mode = stat.S_IMODE(mirror.path_for("0xalice").stat().st_mode)
        assert mode == 0o600

    def test_no_temp_files_left(self, tmp_path):
        from tiered_vault.vault.local_mirror import JsonFileMirror

        mirror = JsonFileMirror(tmp_path)
        mirror.save(make_vault())
        mirror.save(make_vault())
        assert [p.name for p in tmp_path.iterdir()] == [mirror.path_for("0xalice").name]

    def test_corrupt_file_is_format_error(self, tmp_path):
        from tiered_vault.exceptions import FormatError
        from tiered_vault.vault.local_mirror import JsonFileMirror

        mirror = JsonFileMirror(tmp_path)
        mirror.path_for("0xalice").write_text("{not json", encoding="utf-8")
        with pytest.raises(FormatError):
            mirror.load("0xalice")

    def test_other_accounts_document_rejected(self, tmp_path):
        from tiered_vault.exceptions import FormatError
        from tiered_vault.vault.local_mirror import JsonFileMirror

        mirror = JsonFileMirror(tmp_path)
        mirror.save(make_vault("0xbob"))
        os.replace(mirror.path_for("0xbob"), mirror.path_for("0xalice"))
        with pytest.raises(FormatError):
            mirror.load("0xalice")


class TestVaultDocumentValidation:
    """Fail closed on any missing or mismatched field."""

    def test_valid_document(self):
        from tiered_vault.vault.local_mirror import load_vault_document

        vault = load_vault_document(json.dumps(make_vault().to_dict()))
        assert vault.metadata.record_count == 2

    @pytest.mark.parametrize("mutate", [
        lambda d: d["records"][0].pop("title"),
        lambda d: d["records"][0].update(privacy_tier="top-secret"),
        lambda d: d["records"][0].update(created_at="last tuesday"),
        lambda d: d["records"][0].update(extra_field=1),
        lambda d: d["metadata"].update(record_count=5),
        lambda d: d["metadata"].update(record_count="2"),
        lambda d: d["records"].append(dict(d["records"][0])),
        lambda d: d.pop("remote_references"),
    ])
    def test_invalid_documents(self, mutate):
        from tiered_vault.exceptions import FormatError
        from tiered_vault.vault.local_mirror import load_vault_document

        data = make_vault().to_dict()
        mutate(data)
        with pytest.raises(FormatError):
            load_vault_document(data)

    def test_non_object(self):
        from tiered_vault.exceptions import FormatError
        from tiered_vault.vault.local_mirror import load_vault_document

        with pytest.raises(FormatError):
            load_vault_document("[1, 2, 3]")
