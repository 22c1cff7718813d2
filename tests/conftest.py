"""Pytest fixtures for finvec tests."""

import pytest

from finvec.config.settings import Settings, get_settings

# Environment variables read by VectorStoreConfig and Settings
STORAGE_ENV_VARS = (
    "STORAGE_MODE",
    "STORAGE_STRICT_MODE",
    "STORAGE_FALLBACK_MODE",
    "CF_ACCOUNT_ID",
    "CF_API_TOKEN",
    "VECTORIZE_INDEX_NAME",
    "VECTORIZE_BASE_URL",
    "VECTORIZE_TIMEOUT_SECONDS",
    "VECTORIZE_CREATE_INDEX",
    "EMBEDDED_DB_PATH",
    "EMBEDDED_SEARCH_SLOT",
    "MEMORY_SEED_EXAMPLES",
    "ENVIRONMENT",
    "LOG_LEVEL",
    "DEBUG",
    "METRICS_PORT",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Isolate every test from the developer's shell and .env file."""
    for name in STORAGE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # No .env in an empty working directory
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def test_settings() -> Settings:
    """Settings configured for testing."""
    return Settings(environment="development", log_level="DEBUG")
