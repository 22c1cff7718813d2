"""
Abstract base class and data models for vector store implementations.

Defines the interface that all vector store backends must implement,
plus shared data structures for records, search options, filters and
results.
"""

import math
import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from finvec.observability.metrics import get_metrics
from finvec.vectorstore.exceptions import DimensionMismatchError

logger = structlog.get_logger(__name__)

MetadataValue = str | int | float | bool | None

# Slot name under which VectorRecord.values is stored
PRIMARY_SLOT = "primary"

DEFAULT_TOP_K = 5
MAX_TOP_K = 20


def _check_vector(values: Sequence[float], label: str) -> list[float]:
    if len(values) == 0:
        raise ValueError(f"{label} must not be empty")
    vector = [float(v) for v in values]
    if not all(math.isfinite(v) for v in vector):
        raise ValueError(f"{label} contains NaN or infinite values")
    return vector


@dataclass
class VectorRecord:
    """
    One embedding vector plus its metadata.

    Attributes:
        id: Primary key within a backend (re-inserting an id overwrites it)
        values: Embedding vector; its length fixes the backend dimensionality
        metadata: Flat mapping of scalar values (summaries, category, amount...)
        named_vectors: Extra embeddings of the same record keyed by slot name
            (e.g. "english"); only the embedded backend persists them
    """

    id: str
    values: list[float]
    metadata: dict[str, MetadataValue] = field(default_factory=dict)
    named_vectors: dict[str, list[float]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate id, vectors and metadata types."""
        if not self.id:
            raise ValueError("VectorRecord.id must be a non-empty string")

        self.values = _check_vector(self.values, f"values of {self.id!r}")

        for key, value in self.metadata.items():
            if value is not None and not isinstance(value, (str, int, float, bool)):
                raise ValueError(
                    f"Metadata field {key!r} must be a str, number, bool or None, "
                    f"got {type(value).__name__}"
                )

        if PRIMARY_SLOT in self.named_vectors:
            raise ValueError(f"Slot name {PRIMARY_SLOT!r} is reserved for values")
        self.named_vectors = {
            slot: _check_vector(vector, f"{slot} vector of {self.id!r}")
            for slot, vector in self.named_vectors.items()
        }

    @classmethod
    def create(
        cls,
        values: Sequence[float],
        metadata: Mapping[str, MetadataValue] | None = None,
        named_vectors: Mapping[str, Sequence[float]] | None = None,
        id: str | None = None,
    ) -> "VectorRecord":
        """Build a record, generating an id when none is supplied."""
        return cls(
            id=id or uuid.uuid4().hex,
            values=list(values),
            metadata=dict(metadata or {}),
            named_vectors={k: list(v) for k, v in (named_vectors or {}).items()},
        )

    @property
    def dimension(self) -> int:
        return len(self.values)

    def vectors(self) -> dict[str, list[float]]:
        """All vectors of this record keyed by slot, primary first."""
        return {PRIMARY_SLOT: self.values, **self.named_vectors}


@dataclass
class NumericRange:
    """Inclusive numeric bounds on one metadata field."""

    field: str = "amount"
    min: float | None = None
    max: float | None = None

    def __post_init__(self) -> None:
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(
                f"numeric_range min ({self.min}) must not exceed max ({self.max})"
            )

    def contains(self, value: Any) -> bool:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True


@dataclass
class VectorSearchFilter:
    """
    Filter criteria for vector searches.

    All constraints are combined with AND logic.

    Attributes:
        equality_fields: Metadata fields that must equal the given values
        numeric_range: Optional inclusive range on one numeric field
    """

    equality_fields: dict[str, MetadataValue] = field(default_factory=dict)
    numeric_range: NumericRange | None = None

    @classmethod
    def from_fields(
        cls,
        transaction_type: str | None = None,
        category: str | None = None,
        min_amount: float | None = None,
        max_amount: float | None = None,
    ) -> "VectorSearchFilter":
        """Build a filter from the transaction search options."""
        equality: dict[str, MetadataValue] = {}
        if transaction_type:
            equality["transactionType"] = transaction_type
        if category:
            equality["category"] = category

        numeric_range = None
        if min_amount is not None or max_amount is not None:
            numeric_range = NumericRange(field="amount", min=min_amount, max=max_amount)

        return cls(equality_fields=equality, numeric_range=numeric_range)

    @property
    def is_empty(self) -> bool:
        """Check if no filters are set."""
        return not self.equality_fields and self.numeric_range is None

    def matches(self, metadata: Mapping[str, Any]) -> bool:
        """Check a metadata mapping against every constraint."""
        for key, expected in self.equality_fields.items():
            if metadata.get(key) != expected:
                return False
        if self.numeric_range is not None:
            return self.numeric_range.contains(metadata.get(self.numeric_range.field))
        return True


@dataclass
class VectorSearchOptions:
    """
    Options for a similarity search.

    Attributes:
        top_k: Maximum number of results (1-20)
        min_score: Drop results scoring below this value (None disables)
        filter: Optional metadata filter
    """

    top_k: int = DEFAULT_TOP_K
    min_score: float | None = None
    filter: VectorSearchFilter | None = None

    def __post_init__(self) -> None:
        """Validate option values."""
        if not 1 <= self.top_k <= MAX_TOP_K:
            raise ValueError(f"top_k must be between 1 and {MAX_TOP_K}, got {self.top_k}")

    def accepts(self, score: float, metadata: Mapping[str, Any]) -> bool:
        """Apply threshold and filter to one candidate."""
        if self.min_score is not None and score < self.min_score:
            return False
        if self.filter is not None and not self.filter.matches(metadata):
            return False
        return True


@dataclass
class VectorSearchResult:
    """
    Result from a vector similarity search.

    Attributes:
        id: Identifier of the matched record
        score: Cosine similarity (higher is more similar; may be negative)
        metadata: Full metadata of the matched record
    """

    id: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


class VectorSearchResults(list):
    """
    Ranked search results plus a report of how they were produced.

    Attributes:
        backend: Name of the backend that answered
        skipped_rows: Stored rows ignored because their vector was
            malformed or had the wrong length
    """

    def __init__(
        self,
        results: Sequence[VectorSearchResult] = (),
        backend: str = "",
        skipped_rows: int = 0,
    ):
        super().__init__(results)
        self.backend = backend
        self.skipped_rows = skipped_rows


@dataclass
class InsertResult:
    """Acknowledgment of an insert; mutation_id is opaque."""

    mutation_id: str
    count: int
    backend: str


class VectorBackend(ABC):
    """
    Abstract base class for vector store backends.

    Implementations provide one storage medium (process memory, an embedded
    file, a remote index) behind a consistent API. The base class owns the
    behaviour every backend shares: dimensionality enforcement, logging and
    metrics. Subclasses implement _insert and _search.

    All I/O methods are async to support non-blocking I/O.
    """

    name: str = "base"

    def __init__(self, dimension: int | None = None):
        self._dimension = dimension
        self._completed_inserts = 0

    @property
    def dimension(self) -> int | None:
        """Established dimensionality, or None before the first insert."""
        return self._dimension

    @abstractmethod
    def is_available(self) -> bool:
        """
        Report whether the backend can serve requests.

        Must be answered from configuration alone, without network I/O.
        """
        ...

    async def insert(self, records: Sequence[VectorRecord]) -> InsertResult:
        """
        Insert or overwrite records.

        Args:
            records: Records to store (all vectors must share one dimensionality)

        Returns:
            InsertResult with the backend's mutation id

        Raises:
            DimensionMismatchError: If any vector disagrees with the
                established dimensionality
        """
        if not records:
            raise ValueError("insert requires at least one record")

        await self._prepare()

        claimed = self._dimension is None
        self._check_records(records)

        started = time.perf_counter()
        try:
            mutation_id = await self._insert(list(records))
        except Exception:
            # Release the claim only while no insert has ever completed
            if claimed and self._completed_inserts == 0:
                self._dimension = None
            get_metrics().record_operation(
                self.name, "insert", "error", time.perf_counter() - started
            )
            raise

        self._dimension = records[0].dimension
        self._completed_inserts += 1
        get_metrics().record_operation(
            self.name, "insert", "success", time.perf_counter() - started
        )
        get_metrics().record_inserted(self.name, len(records))
        logger.debug(
            "Inserted vectors",
            backend=self.name,
            count=len(records),
            mutation_id=mutation_id,
        )
        return InsertResult(mutation_id=mutation_id, count=len(records), backend=self.name)

    async def search(
        self,
        query_vector: Sequence[float],
        options: VectorSearchOptions | None = None,
    ) -> VectorSearchResults:
        """
        Search for records similar to a query vector.

        Args:
            query_vector: Query embedding
            options: top_k, min_score and filter (defaults when None)

        Returns:
            Results sorted by similarity (descending)

        Raises:
            DimensionMismatchError: If the query length disagrees with the
                established dimensionality
        """
        options = options or VectorSearchOptions()
        query = _check_vector(query_vector, "query vector")

        await self._prepare()
        if self._dimension is not None and len(query) != self._dimension:
            raise DimensionMismatchError(self._dimension, len(query), backend=self.name)

        started = time.perf_counter()
        try:
            results = await self._search(query, options)
        except Exception:
            get_metrics().record_operation(
                self.name, "search", "error", time.perf_counter() - started
            )
            raise

        get_metrics().record_operation(
            self.name, "search", "success", time.perf_counter() - started
        )
        get_metrics().record_skipped(self.name, results.skipped_rows)
        logger.debug(
            "Searched vectors",
            backend=self.name,
            top_k=options.top_k,
            returned=len(results),
            skipped=results.skipped_rows,
        )
        return results

    async def close(self) -> None:
        """Release backend resources."""

    async def _prepare(self) -> None:
        """Hook run before every operation (e.g. schema creation)."""

    def _check_records(self, records: Sequence[VectorRecord]) -> None:
        """Validate every vector before any I/O, establishing the dimensionality."""
        expected = self._dimension
        for record in records:
            for vector in record.vectors().values():
                if expected is None:
                    expected = len(vector)
                elif len(vector) != expected:
                    raise DimensionMismatchError(expected, len(vector), backend=self.name)
        self._dimension = expected

    @abstractmethod
    async def _insert(self, records: list[VectorRecord]) -> str:
        """Persist validated records and return a mutation id."""
        ...

    @abstractmethod
    async def _search(
        self,
        query_vector: list[float],
        options: VectorSearchOptions,
    ) -> VectorSearchResults:
        """Return ranked results for a validated query vector."""
        ...
