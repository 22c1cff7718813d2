"""
Single entry point for application code that stores or searches vectors.

VectorStoreManager resolves a backend once, at construction, and then
delegates every call to it unchanged. Callers never learn which storage
medium is active unless they ask for backend_name.
"""

from collections.abc import Sequence
from types import TracebackType

import structlog

from finvec.vectorstore.base import (
    DEFAULT_TOP_K,
    InsertResult,
    VectorBackend,
    VectorRecord,
    VectorSearchFilter,
    VectorSearchOptions,
    VectorSearchResults,
)
from finvec.vectorstore.config import VectorStoreConfig
from finvec.vectorstore.factory import create_vector_store
from finvec.vectorstore.remote_store import VectorIndexTransport

logger = structlog.get_logger(__name__)


class VectorStoreManager:
    """
    Backend-agnostic facade over a VectorBackend.

    The backend is fixed for the lifetime of the manager. insert and search
    are pure delegation: no retries, caching or error translation; backend
    errors reach the caller with the backend name attached.

    Usage:
        async with VectorStoreManager(VectorStoreConfig()) as store:
            await store.insert([VectorRecord(id="t1", values=[1, 0, 0])])
            results = await store.search([1, 0, 0], top_k=1)
    """

    def __init__(
        self,
        config: VectorStoreConfig | None = None,
        backend: VectorBackend | None = None,
        transport: VectorIndexTransport | None = None,
    ):
        """
        Initialize the manager.

        Args:
            config: Storage configuration (read from the environment if None)
            backend: Explicit backend, bypassing selection
            transport: Optional transport for the remote backend
        """
        if backend is None:
            backend = create_vector_store(config or VectorStoreConfig(), transport=transport)
        self._backend = backend

        logger.info("VectorStoreManager initialised", backend=backend.name)

    @property
    def backend(self) -> VectorBackend:
        return self._backend

    @property
    def backend_name(self) -> str:
        return self._backend.name

    async def insert(self, records: Sequence[VectorRecord]) -> InsertResult:
        """Insert or overwrite records in the active backend."""
        return await self._backend.insert(records)

    async def search(
        self,
        query_vector: Sequence[float],
        options: VectorSearchOptions | None = None,
        *,
        top_k: int | None = None,
        min_score: float | None = None,
        filter: VectorSearchFilter | None = None,
    ) -> VectorSearchResults:
        """
        Search the active backend.

        Either pass a VectorSearchOptions or the individual keyword options.

        Raises:
            TypeError: If options and keyword options are both given
        """
        keywords_given = top_k is not None or min_score is not None or filter is not None
        if options is not None and keywords_given:
            raise TypeError("Pass either options or top_k/min_score/filter, not both")
        if options is None:
            options = VectorSearchOptions(
                top_k=DEFAULT_TOP_K if top_k is None else top_k,
                min_score=min_score,
                filter=filter,
            )
        return await self._backend.search(query_vector, options)

    async def close(self) -> None:
        await self._backend.close()

    async def __aenter__(self) -> "VectorStoreManager":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
