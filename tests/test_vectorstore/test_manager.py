"""Unit tests for VectorStoreManager."""

from unittest.mock import AsyncMock

import pytest

from finvec.vectorstore.base import (
    InsertResult,
    VectorRecord,
    VectorSearchFilter,
    VectorSearchOptions,
    VectorSearchResults,
)
from finvec.vectorstore.config import VectorStoreConfig
from finvec.vectorstore.exceptions import RemoteRequestError
from finvec.vectorstore.manager import VectorStoreManager
from finvec.vectorstore.memory_store import InMemoryVectorStore


class TestVectorStoreManager:
    """Tests for the storage facade."""

    def test_selects_backend_from_config(self, memory_config):
        manager = VectorStoreManager(memory_config)
        assert manager.backend_name == "memory"

    def test_explicit_backend(self):
        backend = InMemoryVectorStore()
        manager = VectorStoreManager(backend=backend)
        assert manager.backend is backend

    def test_transport_selects_remote(self, memory_config, fake_transport):
        manager = VectorStoreManager(memory_config, transport=fake_transport)
        assert manager.backend_name == "remote"

    @pytest.mark.asyncio
    async def test_insert_delegates(self):
        backend = AsyncMock()
        backend.name = "mock"
        backend.insert.return_value = InsertResult(mutation_id="m1", count=1, backend="mock")
        manager = VectorStoreManager(backend=backend)
        records = [VectorRecord(id="a", values=[1.0])]

        result = await manager.insert(records)

        backend.insert.assert_called_once_with(records)
        assert result.mutation_id == "m1"

    @pytest.mark.asyncio
    async def test_search_builds_options_from_keywords(self):
        backend = AsyncMock()
        backend.name = "mock"
        backend.search.return_value = VectorSearchResults(backend="mock")
        manager = VectorStoreManager(backend=backend)
        search_filter = VectorSearchFilter.from_fields(category="fuel")

        await manager.search([1.0, 0.0], top_k=3, min_score=0.2, filter=search_filter)

        query, options = backend.search.call_args.args
        assert query == [1.0, 0.0]
        assert options == VectorSearchOptions(top_k=3, min_score=0.2, filter=search_filter)

    @pytest.mark.asyncio
    async def test_search_passes_options_through(self):
        backend = AsyncMock()
        backend.name = "mock"
        backend.search.return_value = VectorSearchResults(backend="mock")
        manager = VectorStoreManager(backend=backend)
        options = VectorSearchOptions(top_k=7)

        await manager.search([1.0], options)

        backend.search.assert_called_once_with([1.0], options)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "keywords",
        [{"top_k": 3}, {"min_score": 0.5}, {"filter": VectorSearchFilter.from_fields(category="fuel")}],
    )
    async def test_options_and_keywords_rejected(self, keywords):
        backend = AsyncMock()
        backend.name = "mock"
        manager = VectorStoreManager(backend=backend)

        with pytest.raises(TypeError, match="not both"):
            await manager.search([1.0], VectorSearchOptions(top_k=7), **keywords)

        backend.search.assert_not_called()

    @pytest.mark.asyncio
    async def test_errors_propagate_unchanged(self):
        error = RemoteRequestError("boom", backend="remote", status_code=500)
        backend = AsyncMock()
        backend.name = "remote"
        backend.search.side_effect = error
        manager = VectorStoreManager(backend=backend)

        with pytest.raises(RemoteRequestError) as exc_info:
            await manager.search([1.0])

        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_context_manager_closes_backend(self):
        backend = AsyncMock()
        backend.name = "mock"

        async with VectorStoreManager(backend=backend) as manager:
            assert manager.backend_name == "mock"

        backend.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_end_to_end_memory(self, transaction_records):
        config = VectorStoreConfig(_env_file=None, storage_mode="memory")

        async with VectorStoreManager(config) as manager:
            await manager.insert(transaction_records)
            results = await manager.search(
                [0.0, 1.0, 0.0],
                filter=VectorSearchFilter.from_fields(transaction_type="regular"),
            )

        assert [r.id for r in results] == ["txn_fuel", "txn_grocery"]
        assert results.backend == "memory"
