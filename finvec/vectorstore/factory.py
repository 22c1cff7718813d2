"""
Vector backend selection.

Usage:
    from finvec.vectorstore.factory import create_vector_store
    backend = create_vector_store(VectorStoreConfig(storage_mode="embedded"))

Selection policy, evaluated once:
    1. A forced mode (memory, embedded, remote) instantiates that backend.
       If it reports unavailable, strict configs raise BackendUnavailableError;
       permissive configs log a warning and use the fallback backend.
    2. auto tries the remote index first and falls back when it is not
       configured.
"""

from dataclasses import dataclass

import structlog

from finvec.vectorstore.base import VectorBackend
from finvec.vectorstore.config import StorageMode, VectorStoreConfig
from finvec.vectorstore.exceptions import BackendUnavailableError
from finvec.vectorstore.memory_store import InMemoryVectorStore
from finvec.vectorstore.remote_store import RemoteVectorStore, VectorIndexTransport
from finvec.vectorstore.sqlite_store import SQLiteVectorStore

logger = structlog.get_logger(__name__)


@dataclass
class BackendStatus:
    """Availability report for one backend."""

    name: str
    available: bool
    reason: str


def build_backend(
    mode: StorageMode,
    config: VectorStoreConfig,
    transport: VectorIndexTransport | None = None,
) -> VectorBackend:
    """
    Instantiate the backend for a concrete mode without checking availability.

    Raises:
        ValueError: If mode is AUTO
    """
    if mode == StorageMode.MEMORY:
        return InMemoryVectorStore(seed_examples=config.memory_seed_examples)
    if mode == StorageMode.EMBEDDED:
        return SQLiteVectorStore(
            path=config.embedded_db_path,
            search_slot=config.embedded_search_slot,
        )
    if mode == StorageMode.REMOTE:
        return RemoteVectorStore(
            account_id=config.cf_account_id,
            api_token=config.cf_api_token,
            index_name=config.vectorize_index_name,
            base_url=config.vectorize_base_url,
            timeout=config.vectorize_timeout_seconds,
            transport=transport,
            create_index=config.vectorize_create_index,
        )
    raise ValueError(f"No backend for storage mode {mode.value!r}")


def create_vector_store(
    config: VectorStoreConfig,
    transport: VectorIndexTransport | None = None,
) -> VectorBackend:
    """
    Choose and instantiate a backend according to the selection policy.

    Args:
        config: Storage configuration
        transport: Optional transport for the remote backend

    Returns:
        The selected backend

    Raises:
        BackendUnavailableError: If a forced backend is unavailable and
            config.storage_strict_mode is set
    """
    mode = config.storage_mode
    logger.info("Selecting vector backend", mode=mode.value)

    if mode != StorageMode.AUTO:
        backend = build_backend(mode, config, transport)
        if backend.is_available():
            logger.info("Using forced vector backend", backend=backend.name)
            return backend

        if config.storage_strict_mode:
            raise BackendUnavailableError(
                f"Storage mode {mode.value!r} was forced but the backend is unavailable",
                backend=backend.name,
            )

        fallback = build_backend(config.storage_fallback_mode, config)
        logger.warning(
            "Forced vector backend unavailable, falling back",
            requested=backend.name,
            backend=fallback.name,
        )
        return fallback

    remote = build_backend(StorageMode.REMOTE, config, transport)
    if remote.is_available():
        logger.info("Using vector backend", backend=remote.name, reason="auto-detected")
        return remote

    fallback = build_backend(config.storage_fallback_mode, config)
    logger.info(
        "Remote index not configured, using fallback",
        backend=fallback.name,
        reason="auto-fallback",
    )
    return fallback


def describe_backends(
    config: VectorStoreConfig,
    transport: VectorIndexTransport | None = None,
) -> list[BackendStatus]:
    """Report which backends could serve requests under this config."""
    remote_available = transport is not None or config.remote_configured
    return [
        BackendStatus(
            name=RemoteVectorStore.name,
            available=remote_available,
            reason=(
                "Vectorize credentials configured"
                if remote_available
                else "CF_ACCOUNT_ID and CF_API_TOKEN not both set"
            ),
        ),
        BackendStatus(
            name=SQLiteVectorStore.name,
            available=bool(config.embedded_db_path),
            reason=f"SQLite file at {config.embedded_db_path}",
        ),
        BackendStatus(
            name=InMemoryVectorStore.name,
            available=True,
            reason="Always available for development",
        ),
    ]


def recommended_backend(
    config: VectorStoreConfig,
    transport: VectorIndexTransport | None = None,
) -> str:
    """Name of the backend create_vector_store would pick, without building it."""
    statuses = {s.name: s for s in describe_backends(config, transport)}
    mode = config.storage_mode

    if mode == StorageMode.AUTO:
        if statuses[RemoteVectorStore.name].available:
            return RemoteVectorStore.name
        return config.storage_fallback_mode.value

    if statuses[mode.value].available or config.storage_strict_mode:
        return mode.value
    return config.storage_fallback_mode.value
