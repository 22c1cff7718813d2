"""
Vector store abstraction layer for transaction embeddings.

Main components:
- VectorBackend: Abstract base class every storage backend implements
- InMemoryVectorStore / SQLiteVectorStore / RemoteVectorStore: backends
- create_vector_store: Backend selection from VectorStoreConfig
- VectorStoreManager: The facade application code calls
- VectorRecord, VectorSearchFilter, VectorSearchOptions, VectorSearchResult:
  Data models shared by all backends
"""

from finvec.vectorstore.base import (
    InsertResult,
    NumericRange,
    VectorBackend,
    VectorRecord,
    VectorSearchFilter,
    VectorSearchOptions,
    VectorSearchResult,
    VectorSearchResults,
)
from finvec.vectorstore.config import StorageMode, VectorStoreConfig
from finvec.vectorstore.exceptions import (
    BackendUnavailableError,
    DimensionMismatchError,
    MalformedStoredVectorError,
    RemoteRequestError,
    RemoteTimeoutError,
    StorageError,
    VectorStoreError,
)
from finvec.vectorstore.factory import create_vector_store, describe_backends
from finvec.vectorstore.manager import VectorStoreManager
from finvec.vectorstore.memory_store import InMemoryVectorStore
from finvec.vectorstore.remote_store import (
    BindingTransport,
    HttpVectorizeTransport,
    RemoteVectorStore,
    VectorIndexTransport,
)
from finvec.vectorstore.similarity import cosine_similarity
from finvec.vectorstore.sqlite_store import SQLiteVectorStore

__all__ = [
    "VectorBackend",
    "VectorRecord",
    "VectorSearchFilter",
    "VectorSearchOptions",
    "VectorSearchResult",
    "VectorSearchResults",
    "NumericRange",
    "InsertResult",
    "StorageMode",
    "VectorStoreConfig",
    "VectorStoreError",
    "DimensionMismatchError",
    "BackendUnavailableError",
    "RemoteRequestError",
    "RemoteTimeoutError",
    "MalformedStoredVectorError",
    "StorageError",
    "InMemoryVectorStore",
    "SQLiteVectorStore",
    "RemoteVectorStore",
    "VectorIndexTransport",
    "HttpVectorizeTransport",
    "BindingTransport",
    "create_vector_store",
    "describe_backends",
    "VectorStoreManager",
    "cosine_similarity",
]
