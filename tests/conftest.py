"""
Shared pytest fixtures for the Tiered Vault test suite.

Autouse fixtures below isolate tests from live application data:
  - Audit logger -> temp directory (prevents test events in ./audit_logs)
"""

import pytest


@pytest.fixture(autouse=True)
def _isolate_audit_logs(tmp_path, monkeypatch):
    """Redirect the global AuditLogger to a temp directory for every test.

    Without this, any test that (directly or indirectly) calls
    ``get_audit_logger().log_event(...)`` writes into the real
    ``./audit_logs/`` directory.
    """
    import tiered_vault.core.audit_log as audit_mod

    # Reset the singleton so the next call to get_audit_logger() creates
    # a fresh instance pointing at the temp directory.
    old_logger = audit_mod._audit_logger
    audit_mod._audit_logger = None

    orig_init = audit_mod.AuditLogger.__init__

    def patched_init(self, log_dir=None):
        orig_init(self, log_dir=log_dir or tmp_path / "audit_logs")

    monkeypatch.setattr(audit_mod.AuditLogger, "__init__", patched_init)

    yield

    audit_mod._audit_logger = old_logger


@pytest.fixture
def vault_config(tmp_path):
    """Config with the minimum KDF work factor to keep tests fast."""
    from tiered_vault.core.config import VaultConfig

    return VaultConfig(
        data_dir=tmp_path / "vaults",
        audit_log_dir=tmp_path / "audit_logs",
        kdf_iterations=100_000,
    )


@pytest.fixture
def content_store():
    from tiered_vault.vault.remote_store import InMemoryContentStore

    return InMemoryContentStore()


@pytest.fixture
def manager(vault_config, content_store):
    """Locked manager over an in-memory mirror and store."""
    from tiered_vault.vault.local_mirror import InMemoryMirror
    from tiered_vault.vault.vault_manager import VaultManager

    return VaultManager(vault_config, mirror=InMemoryMirror(), store=content_store)
