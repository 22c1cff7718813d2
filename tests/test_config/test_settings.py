"""Tests for settings loading."""

import pytest
from pydantic import ValidationError

from finvec.config.settings import Settings, get_settings
from finvec.vectorstore.config import StorageMode, VectorStoreConfig


class TestSettings:
    """Tests for process-level settings."""

    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.environment == "development"
        assert settings.log_level == "INFO"
        assert not settings.is_production

    def test_production(self):
        assert Settings(_env_file=None, environment="production").is_production

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        assert Settings(_env_file=None).log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="LOUD")

    def test_get_settings_cached(self):
        assert get_settings() is get_settings()


class TestVectorStoreConfig:
    """Tests for storage configuration."""

    def test_defaults(self):
        config = VectorStoreConfig(_env_file=None)

        assert config.storage_mode == StorageMode.AUTO
        assert config.storage_strict_mode is True
        assert config.storage_fallback_mode == StorageMode.MEMORY
        assert config.vectorize_index_name == "finance-transactions"
        assert config.embedded_search_slot == "primary"
        assert not config.remote_configured

    def test_remote_configured_needs_both(self):
        assert not VectorStoreConfig(_env_file=None, cf_api_token="t").remote_configured
        assert VectorStoreConfig(
            _env_file=None, cf_account_id="a", cf_api_token="t"
        ).remote_configured

    def test_env_is_case_insensitive(self, monkeypatch):
        monkeypatch.setenv("storage_mode", "memory")
        assert VectorStoreConfig(_env_file=None).storage_mode == StorageMode.MEMORY

    def test_dotenv_file(self, tmp_path):
        env_file = tmp_path / "storage.env"
        env_file.write_text("STORAGE_MODE=embedded\nEMBEDDED_DB_PATH=/tmp/finvec.db\n")

        config = VectorStoreConfig(_env_file=env_file)

        assert config.storage_mode == StorageMode.EMBEDDED
        assert config.embedded_db_path == "/tmp/finvec.db"

    def test_invalid_mode(self):
        with pytest.raises(ValidationError):
            VectorStoreConfig(_env_file=None, storage_mode="cloud")

    def test_timeout_bounds(self):
        with pytest.raises(ValidationError):
            VectorStoreConfig(_env_file=None, vectorize_timeout_seconds=0)
