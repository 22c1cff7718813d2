"""
In-memory implementation of the VectorBackend interface.

Process-local and non-durable: the fallback backend for development
and the test double for code that consumes a vector store.
"""

import asyncio
from datetime import datetime, timezone

import structlog

from finvec.vectorstore.base import (
    VectorBackend,
    VectorRecord,
    VectorSearchOptions,
    VectorSearchResult,
    VectorSearchResults,
)
from finvec.vectorstore.similarity import cosine_similarities, rank

logger = structlog.get_logger(__name__)

# Returned by search() on an empty store when seed_examples is enabled
EXAMPLE_RESULTS: list[tuple[str, float, dict]] = [
    (
        "mock_transaction_1",
        0.92,
        {
            "hebrewSummary": "תשלום חודשי לעירית נתניה בסך 942.55 שקלים עבור תשלומי חובה",
            "englishSummary": "Monthly payment to Netanya Municipality for 942.55 NIS for mandatory payments",
            "transactionType": "monthly",
            "category": "mandatory_payments",
            "amount": 942.55,
            "originalText": "עירית נתניה הוראת קבע 942.55",
            "embeddingModel": "text-embedding-3-small",
        },
    ),
    (
        "mock_transaction_2",
        0.85,
        {
            "hebrewSummary": "רכישה ברמי לוי השקמה בסך 156.80 שקלים עבור קניות מזון",
            "englishSummary": "Purchase at Rami Levy Hashikma for 156.80 NIS for food shopping",
            "transactionType": "regular",
            "category": "food_beverage",
            "amount": 156.80,
            "originalText": "רמי לוי שיווק השקמה 156.80",
            "embeddingModel": "text-embedding-3-small",
        },
    ),
    (
        "mock_transaction_3",
        0.78,
        {
            "hebrewSummary": "תשלום דלק בתחנת פז בסך 280.50 שקלים עבור תדלוק רכב",
            "englishSummary": "Fuel payment at Paz station for 280.50 NIS for car refueling",
            "transactionType": "regular",
            "category": "fuel",
            "amount": 280.50,
            "originalText": "פז תחנת דלק 280.50",
            "embeddingModel": "text-embedding-3-small",
        },
    ),
]


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _copy_record(record: VectorRecord) -> VectorRecord:
    return VectorRecord(
        id=record.id,
        values=list(record.values),
        metadata=dict(record.metadata),
        named_vectors={k: list(v) for k, v in record.named_vectors.items()},
    )


class InMemoryVectorStore(VectorBackend):
    """
    Dictionary-backed vector store.

    Features:
    - Upsert by id (last write wins), insertion order preserved
    - Linear-scan cosine search, O(N) per query
    - Mutations serialized with an asyncio.Lock
    - Optional example results when empty (seed_examples=True)
    """

    name = "memory"

    def __init__(self, dimension: int | None = None, seed_examples: bool = False):
        """
        Initialize the in-memory store.

        Args:
            dimension: Optional fixed dimensionality (otherwise set by first insert)
            seed_examples: Return example transactions when nothing is stored
        """
        super().__init__(dimension=dimension)
        self._records: dict[str, VectorRecord] = {}
        self._lock = asyncio.Lock()
        self._mutations = 0
        self._seed_examples = seed_examples

    def is_available(self) -> bool:
        return True

    def __len__(self) -> int:
        return len(self._records)

    async def get(self, record_id: str) -> VectorRecord | None:
        """Return a copy of a stored record by id."""
        record = self._records.get(record_id)
        return _copy_record(record) if record is not None else None

    async def list_records(self, limit: int | None = None) -> list[VectorRecord]:
        """Return copies of stored records, newest first."""
        records = list(reversed(self._records.values()))
        if limit is not None:
            records = records[:limit]
        return [_copy_record(r) for r in records]

    async def _insert(self, records: list[VectorRecord]) -> str:
        async with self._lock:
            for record in records:
                stored = _copy_record(record)
                stored.metadata.setdefault("createdAt", utc_timestamp())
                # Drop the old entry so an overwrite moves to the end of arrival order
                self._records.pop(record.id, None)
                self._records[record.id] = stored

            self._mutations += 1
            return f"memory_{self._mutations}"

    async def _search(
        self,
        query_vector: list[float],
        options: VectorSearchOptions,
    ) -> VectorSearchResults:
        if not self._records:
            if self._seed_examples:
                logger.info("Store is empty, returning example results", backend=self.name)
                return self._example_results(options)
            return VectorSearchResults(backend=self.name)

        # Snapshot so concurrent inserts cannot change the scan
        records = list(self._records.values())
        scores = cosine_similarities(query_vector, [r.values for r in records])

        matches = [
            VectorSearchResult(id=record.id, score=float(score), metadata=dict(record.metadata))
            for record, score in zip(records, scores)
            if options.accepts(float(score), record.metadata)
        ]

        return VectorSearchResults(rank(matches, options.top_k), backend=self.name)

    def _example_results(self, options: VectorSearchOptions) -> VectorSearchResults:
        created_at = utc_timestamp()
        examples = [
            VectorSearchResult(
                id=example_id,
                score=score,
                metadata={**metadata, "createdAt": created_at},
            )
            for example_id, score, metadata in EXAMPLE_RESULTS
            if options.accepts(score, metadata)
        ]
        return VectorSearchResults(rank(examples, options.top_k), backend=self.name)
