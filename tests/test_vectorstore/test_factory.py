"""Tests for backend selection."""

import pytest

from finvec.vectorstore.base import VectorRecord
from finvec.vectorstore.config import StorageMode, VectorStoreConfig
from finvec.vectorstore.exceptions import BackendUnavailableError
from finvec.vectorstore.factory import (
    build_backend,
    create_vector_store,
    describe_backends,
    recommended_backend,
)
from finvec.vectorstore.memory_store import InMemoryVectorStore
from finvec.vectorstore.remote_store import RemoteVectorStore
from finvec.vectorstore.sqlite_store import SQLiteVectorStore


class TestAutoMode:
    """Tests for auto-detection."""

    def test_falls_back_to_memory_without_credentials(self, memory_config):
        backend = create_vector_store(memory_config)
        assert isinstance(backend, InMemoryVectorStore)

    def test_falls_back_with_one_credential(self):
        config = VectorStoreConfig(_env_file=None, cf_account_id="acct-123")
        assert isinstance(create_vector_store(config), InMemoryVectorStore)

    def test_remote_when_configured(self, remote_config):
        backend = create_vector_store(remote_config)
        assert isinstance(backend, RemoteVectorStore)
        assert backend.name == "remote"

    def test_remote_when_transport_injected(self, memory_config, fake_transport):
        backend = create_vector_store(memory_config, transport=fake_transport)
        assert isinstance(backend, RemoteVectorStore)

    def test_embedded_fallback(self, tmp_path):
        config = VectorStoreConfig(
            _env_file=None,
            storage_fallback_mode="embedded",
            embedded_db_path=str(tmp_path / "finance.db"),
        )
        backend = create_vector_store(config)
        assert isinstance(backend, SQLiteVectorStore)

    @pytest.mark.asyncio
    async def test_fallback_store_is_usable(self, memory_config, transaction_records):
        backend = create_vector_store(memory_config)

        await backend.insert(transaction_records)
        results = await backend.search([1, 0, 0])

        assert results.backend == "memory"
        assert results[0].id == "txn_rent"

    @pytest.mark.asyncio
    async def test_fallback_round_trip(self, memory_config):
        backend = create_vector_store(memory_config)

        await backend.insert([VectorRecord(id="t1", values=[1, 0, 0], metadata={"amount": 35})])
        results = await backend.search([1, 0, 0])

        assert len(results) == 1
        assert results[0].id == "t1"
        assert results[0].score == pytest.approx(1.0)
        assert results[0].metadata["amount"] == 35


class TestForcedMode:
    """Tests for forced backend selection."""

    def test_forced_memory(self, remote_config):
        config = remote_config.model_copy(update={"storage_mode": StorageMode.MEMORY})
        assert isinstance(create_vector_store(config), InMemoryVectorStore)

    def test_forced_embedded(self, tmp_path):
        config = VectorStoreConfig(
            _env_file=None,
            storage_mode="embedded",
            embedded_db_path=str(tmp_path / "x.db"),
            embedded_search_slot="english",
        )
        backend = create_vector_store(config)
        assert isinstance(backend, SQLiteVectorStore)
        assert backend.search_slot == "english"

    def test_forced_remote_strict_fails_fast(self):
        config = VectorStoreConfig(_env_file=None, storage_mode="remote")

        with pytest.raises(BackendUnavailableError) as exc_info:
            create_vector_store(config)

        assert exc_info.value.backend == "remote"

    def test_forced_remote_permissive_falls_back(self):
        config = VectorStoreConfig(
            _env_file=None, storage_mode="remote", storage_strict_mode=False
        )
        assert isinstance(create_vector_store(config), InMemoryVectorStore)

    def test_forced_remote_with_credentials(self, remote_config):
        config = remote_config.model_copy(update={"storage_mode": StorageMode.REMOTE})
        assert isinstance(create_vector_store(config), RemoteVectorStore)


class TestEnvironmentConfig:
    """Tests for configuration read from environment variables."""

    def test_mode_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("STORAGE_MODE", "embedded")
        monkeypatch.setenv("EMBEDDED_DB_PATH", str(tmp_path / "env.db"))

        backend = create_vector_store(VectorStoreConfig(_env_file=None))

        assert isinstance(backend, SQLiteVectorStore)
        assert backend.db_path == tmp_path / "env.db"

    def test_credentials_from_env(self, monkeypatch):
        monkeypatch.setenv("CF_ACCOUNT_ID", "acct-env")
        monkeypatch.setenv("CF_API_TOKEN", "token-env")

        assert isinstance(create_vector_store(VectorStoreConfig(_env_file=None)), RemoteVectorStore)

    def test_remote_fallback_mode_rejected(self):
        with pytest.raises(ValueError, match="storage_fallback_mode"):
            VectorStoreConfig(_env_file=None, storage_fallback_mode="remote")


class TestBuildBackend:
    """Tests for direct construction."""

    def test_auto_has_no_backend(self, memory_config):
        with pytest.raises(ValueError, match="auto"):
            build_backend(StorageMode.AUTO, memory_config)

    def test_memory_seed_examples(self):
        config = VectorStoreConfig(_env_file=None, memory_seed_examples=True)
        backend = build_backend(StorageMode.MEMORY, config)
        assert backend._seed_examples is True


class TestDescribeBackends:
    """Tests for availability reporting."""

    def test_without_credentials(self, memory_config):
        statuses = {s.name: s for s in describe_backends(memory_config)}

        assert set(statuses) == {"remote", "embedded", "memory"}
        assert not statuses["remote"].available
        assert statuses["embedded"].available
        assert statuses["memory"].available

    def test_with_credentials(self, remote_config):
        statuses = {s.name: s for s in describe_backends(remote_config)}
        assert statuses["remote"].available

    def test_recommended_matches_selection(self, memory_config, remote_config):
        assert recommended_backend(memory_config) == "memory"
        assert recommended_backend(remote_config) == "remote"

    def test_recommended_for_forced_mode(self):
        strict = VectorStoreConfig(_env_file=None, storage_mode="remote")
        permissive = VectorStoreConfig(
            _env_file=None, storage_mode="remote", storage_strict_mode=False
        )

        assert recommended_backend(strict) == "remote"
        assert recommended_backend(permissive) == "memory"
