"""Tests for VaultConfig."""

from pathlib import Path

import pytest

ENV_VARS = [
    "VAULT_DATA_DIR",
    "VAULT_AUDIT_LOG_DIR",
    "VAULT_KDF_ITERATIONS",
    "VAULT_SENSITIVE_KEYWORDS",
    "VAULT_PRIVATE_CATEGORIES",
    "VAULT_REMOTE_URL",
    "VAULT_REMOTE_BACKEND",
    "VAULT_REMOTE_MAX_ATTEMPTS",
    "VAULT_REMOTE_TIMEOUT",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        # setenv first so values loaded from .env files are undone afterwards
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    # No stray .env from the working directory
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class TestDefaults:

    def test_defaults(self):
        from tiered_vault.core.config import VaultConfig

        config = VaultConfig()
        assert config.kdf_iterations == 600_000
        assert config.sensitive_keywords == ["bank", "credit", "social", "ssn", "passport", "medical"]
        assert config.private_categories == ["Banking", "Personal"]
        assert config.remote_backend == "memory"
        assert config.remote_max_attempts == 3
        config.validate()

    def test_paths_are_coerced(self):
        from tiered_vault.core.config import VaultConfig

        config = VaultConfig(data_dir="some/dir")
        assert isinstance(config.data_dir, Path)


class TestFromEnv:

    def test_reads_environment(self, clean_env, tmp_path):
        from tiered_vault.core.config import VaultConfig

        clean_env.setenv("VAULT_DATA_DIR", str(tmp_path / "data"))
        clean_env.setenv("VAULT_KDF_ITERATIONS", "200000")
        clean_env.setenv("VAULT_SENSITIVE_KEYWORDS", "pin, seed phrase ,")
        clean_env.setenv("VAULT_REMOTE_URL", "http://blobs.test")
        clean_env.setenv("VAULT_REMOTE_MAX_ATTEMPTS", "5")

        config = VaultConfig.from_env()
        assert config.data_dir == tmp_path / "data"
        assert config.kdf_iterations == 200_000
        assert config.sensitive_keywords == ["pin", "seed phrase"]
        # A remote URL without an explicit backend selects http
        assert config.remote_backend == "http"
        assert config.remote_max_attempts == 5

    def test_reads_dotenv_file(self, clean_env, tmp_path):
        from tiered_vault.core.config import VaultConfig

        env_file = tmp_path / "vault.env"
        env_file.write_text("VAULT_REMOTE_BACKEND=local\nVAULT_PRIVATE_CATEGORIES=Work\n")

        config = VaultConfig.from_env(env_file)
        assert config.remote_backend == "local"
        assert config.private_categories == ["Work"]


class TestValidate:

    @pytest.mark.parametrize("changes", [
        {"kdf_iterations": 99_999},
        {"kdf_iterations": 10_000_001},
        {"remote_max_attempts": 0},
        {"remote_max_attempts": 6},
        {"remote_backend": "s3"},
        {"remote_backend": "http", "remote_url": None},
    ])
    def test_rejects(self, changes):
        from tiered_vault.core.config import VaultConfig
        from tiered_vault.exceptions import PreconditionError

        with pytest.raises(PreconditionError):
            VaultConfig(**changes).validate()

    def test_from_env_validates(self, clean_env):
        from tiered_vault.core.config import VaultConfig
        from tiered_vault.exceptions import PreconditionError

        clean_env.setenv("VAULT_KDF_ITERATIONS", "1000")
        with pytest.raises(PreconditionError):
            VaultConfig.from_env()
