"""
Configuration for vector store selection and backends.

Uses Pydantic BaseSettings for environment variable support. The
resulting object is passed explicitly to the backend selector.
"""

from enum import Enum

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageMode(str, Enum):
    """Which backend the selector should produce."""

    AUTO = "auto"
    MEMORY = "memory"
    EMBEDDED = "embedded"
    REMOTE = "remote"


class VectorStoreConfig(BaseSettings):
    """
    Configuration for backend selection and the individual backends.

    All settings can be overridden via environment variables using the
    field name in upper case (e.g., STORAGE_MODE=embedded, CF_API_TOKEN=...).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Selection policy
    storage_mode: StorageMode = Field(
        default=StorageMode.AUTO,
        description="Force a backend or let the selector pick one",
    )
    storage_strict_mode: bool = Field(
        default=True,
        description="Fail when a forced backend is unavailable instead of falling back",
    )
    storage_fallback_mode: StorageMode = Field(
        default=StorageMode.MEMORY,
        description="Backend used when the remote index is unavailable",
    )

    # Remote vector index (Cloudflare Vectorize)
    cf_account_id: str | None = None
    cf_api_token: str | None = None
    vectorize_index_name: str = "finance-transactions"
    vectorize_base_url: str = "https://api.cloudflare.com/client/v4"
    vectorize_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=300.0,
        description="Deadline for a single remote request",
    )
    vectorize_create_index: bool = Field(
        default=False,
        description="Create the index (cosine metric) before the first insert",
    )

    # Embedded SQLite file
    embedded_db_path: str = "data/finance.db"
    embedded_search_slot: str = Field(
        default="primary",
        min_length=1,
        description="Embedding slot compared against query vectors",
    )

    # In-memory store
    memory_seed_examples: bool = Field(
        default=False,
        description="Return example transactions when the store is empty",
    )

    @model_validator(mode="after")
    def _check_fallback(self) -> "VectorStoreConfig":
        if self.storage_fallback_mode not in (StorageMode.MEMORY, StorageMode.EMBEDDED):
            raise ValueError("storage_fallback_mode must be 'memory' or 'embedded'")
        return self

    @property
    def remote_configured(self) -> bool:
        """Check if both remote credentials are present."""
        return bool(self.cf_account_id) and bool(self.cf_api_token)
