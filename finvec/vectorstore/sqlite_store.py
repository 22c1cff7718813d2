"""
SQLite implementation of the VectorBackend interface.

Durable, single-process store in one file. Each record is one row in
vector_records; each of its embeddings (the primary vector plus any
named slots) is one row in vector_embeddings, serialized as JSON.
Similarity is computed in-process with numpy.

Blocking sqlite3 calls run in worker threads via asyncio.to_thread.
Writes are serialized through a threading.Lock and wrapped in one
transaction per insert; WAL journaling lets readers proceed without
ever observing a partially written record.
"""

import asyncio
import json
import math
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import structlog

from finvec.vectorstore.base import (
    PRIMARY_SLOT,
    VectorBackend,
    VectorRecord,
    VectorSearchOptions,
    VectorSearchResult,
    VectorSearchResults,
)
from finvec.vectorstore.exceptions import MalformedStoredVectorError, StorageError
from finvec.vectorstore.memory_store import utc_timestamp
from finvec.vectorstore.similarity import cosine_similarities, rank

logger = structlog.get_logger(__name__)

CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS vector_records (
    id TEXT PRIMARY KEY,
    metadata TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS vector_embeddings (
    record_id TEXT NOT NULL,
    slot TEXT NOT NULL,
    dimension INTEGER NOT NULL,
    vector TEXT NOT NULL,
    PRIMARY KEY (record_id, slot),
    FOREIGN KEY (record_id) REFERENCES vector_records(id)
);

CREATE TABLE IF NOT EXISTS store_info (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_vector_records_created
    ON vector_records(created_at);
CREATE INDEX IF NOT EXISTS idx_vector_embeddings_slot
    ON vector_embeddings(slot);
"""

DIMENSION_KEY = "dimension"


def decode_vector(record_id: str, raw: Any) -> list[float]:
    """
    Deserialize a stored JSON vector.

    Raises:
        MalformedStoredVectorError: If the value is not a non-empty list of
            finite numbers
    """
    try:
        values = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedStoredVectorError(record_id, f"invalid JSON ({e})") from e

    if not isinstance(values, list) or not values:
        raise MalformedStoredVectorError(record_id, "expected a non-empty list")
    for v in values:
        if isinstance(v, bool) or not isinstance(v, (int, float)) or not math.isfinite(v):
            raise MalformedStoredVectorError(record_id, f"non-numeric element {v!r}")
    return [float(v) for v in values]


def decode_metadata(raw: Any) -> dict[str, Any]:
    """
    Deserialize stored metadata.

    Raises:
        ValueError: If the value is not a JSON object
    """
    metadata = json.loads(raw)
    if not isinstance(metadata, dict):
        raise ValueError(f"expected a JSON object, got {type(metadata).__name__}")
    return metadata


class SQLiteVectorStore(VectorBackend):
    """
    SQLite-backed vector store.

    Features:
    - Upsert by id (last write wins) in a single all-or-nothing transaction
    - Multiple named embeddings per record, one row per slot
    - Equality pre-filter pushed down to SQL via json_extract
    - Malformed or wrong-length stored vectors skipped and counted
    - Dimensionality persisted in the file and enforced across restarts
    """

    name = "embedded"

    def __init__(
        self,
        path: str | Path,
        search_slot: str = PRIMARY_SLOT,
        dimension: int | None = None,
    ):
        """
        Initialize the SQLite store.

        The file and its parent directories are created on first use.

        Args:
            path: Database file location
            search_slot: Embedding slot compared against query vectors
            dimension: Optional fixed dimensionality
        """
        super().__init__(dimension=dimension)
        self.db_path = Path(path)
        self.search_slot = search_slot
        self._write_lock = threading.Lock()
        self._init_lock = asyncio.Lock()
        self._initialized = False

    def is_available(self) -> bool:
        return self.db_path.name != ""

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=30.0)
        except sqlite3.Error as e:
            raise StorageError(
                f"Cannot open {self.db_path}: {e}", backend=self.name
            ) from e

        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(
                f"SQLite operation failed on {self.db_path}: {e}", backend=self.name
            ) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> int | None:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(
                f"Cannot create directory for {self.db_path}: {e}", backend=self.name
            ) from e

        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(CREATE_TABLES)
            row = conn.execute(
                "SELECT value FROM store_info WHERE key = ?", (DIMENSION_KEY,)
            ).fetchone()

        logger.info("SQLite vector store initialized", path=str(self.db_path))
        return int(row["value"]) if row else None

    async def _prepare(self) -> None:
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            stored = await asyncio.to_thread(self._init_db)
            if stored is not None:
                if self._dimension is not None and self._dimension != stored:
                    raise StorageError(
                        f"{self.db_path} holds {stored}-dimensional vectors, "
                        f"store was configured for {self._dimension}",
                        backend=self.name,
                    )
                self._dimension = stored
            self._initialized = True

    # ------------------------------------------------------------------
    # VectorBackend interface
    # ------------------------------------------------------------------

    async def _insert(self, records: list[VectorRecord]) -> str:
        await asyncio.to_thread(self._write_records, records)
        mutation_id = f"sqlite_{utc_timestamp()}"
        logger.info(
            "SQLite insert completed",
            count=len(records),
            mutation_id=mutation_id,
        )
        return mutation_id

    def _write_records(self, records: list[VectorRecord]) -> None:
        now = utc_timestamp()
        with self._write_lock, self._connect() as conn:
            for record in records:
                metadata = dict(record.metadata)
                metadata.setdefault("createdAt", now)
                created_at = str(metadata["createdAt"])

                conn.execute(
                    "DELETE FROM vector_embeddings WHERE record_id = ?", (record.id,)
                )
                conn.execute("DELETE FROM vector_records WHERE id = ?", (record.id,))
                conn.execute(
                    """INSERT INTO vector_records (id, metadata, created_at, updated_at)
                       VALUES (?, ?, ?, ?)""",
                    (record.id, json.dumps(metadata, ensure_ascii=False), created_at, now),
                )
                conn.executemany(
                    """INSERT INTO vector_embeddings (record_id, slot, dimension, vector)
                       VALUES (?, ?, ?, ?)""",
                    [
                        (record.id, slot, len(vector), json.dumps(vector))
                        for slot, vector in record.vectors().items()
                    ],
                )

            conn.execute(
                "INSERT OR REPLACE INTO store_info (key, value) VALUES (?, ?)",
                (DIMENSION_KEY, str(records[0].dimension)),
            )

    async def _search(
        self,
        query_vector: list[float],
        options: VectorSearchOptions,
    ) -> VectorSearchResults:
        rows = await asyncio.to_thread(self._fetch_candidates, options)

        candidates: list[tuple[str, dict[str, Any], list[float]]] = []
        skipped = 0
        for row in rows:
            record_id = row["id"]
            try:
                vector = decode_vector(record_id, row["vector"])
                metadata = decode_metadata(row["metadata"])
            except MalformedStoredVectorError as e:
                logger.warning("Skipping malformed stored vector", record_id=record_id, error=e.message)
                skipped += 1
                continue
            except ValueError as e:
                logger.warning("Skipping row with malformed metadata", record_id=record_id, error=str(e))
                skipped += 1
                continue

            if len(vector) != len(query_vector):
                logger.warning(
                    "Embedding dimension mismatch, skipping row",
                    record_id=record_id,
                    stored=len(vector),
                    query=len(query_vector),
                )
                skipped += 1
                continue

            candidates.append((record_id, metadata, vector))

        scores = cosine_similarities(query_vector, [c[2] for c in candidates])
        matches = [
            VectorSearchResult(id=record_id, score=float(score), metadata=metadata)
            for (record_id, metadata, _), score in zip(candidates, scores)
            if options.accepts(float(score), metadata)
        ]

        return VectorSearchResults(
            rank(matches, options.top_k),
            backend=self.name,
            skipped_rows=skipped,
        )

    def _fetch_candidates(self, options: VectorSearchOptions) -> list[sqlite3.Row]:
        sql = """
            SELECT r.id, r.metadata, e.vector
            FROM vector_records r
            JOIN vector_embeddings e
              ON e.record_id = r.id AND e.slot = ?
        """
        params: list[Any] = [self.search_slot]

        pushdown = self._pushdown_field(options)
        if pushdown is not None:
            field_name, value = pushdown
            sql += " WHERE json_extract(r.metadata, ?) = ?"
            params.extend([f"$.{field_name}", value])

        sql += " ORDER BY r.rowid"

        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()

        if pushdown is not None:
            logger.debug("Filtered candidates in SQL", field=pushdown[0], rows=len(rows))
        return rows

    @staticmethod
    def _pushdown_field(options: VectorSearchOptions) -> tuple[str, Any] | None:
        """Pick one equality constraint SQLite can evaluate."""
        if options.filter is None:
            return None
        for field_name, value in options.filter.equality_fields.items():
            if value is not None and field_name.isidentifier():
                return field_name, value
        return None

    # ------------------------------------------------------------------
    # Inspection helpers
    # ------------------------------------------------------------------

    async def get(self, record_id: str) -> VectorRecord | None:
        """Return a stored record with all of its named vectors."""
        await self._prepare()
        return await asyncio.to_thread(self._read_record, record_id)

    def _read_record(self, record_id: str) -> VectorRecord | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT metadata FROM vector_records WHERE id = ?", (record_id,)
            ).fetchone()
            if row is None:
                return None
            vector_rows = conn.execute(
                "SELECT slot, vector FROM vector_embeddings WHERE record_id = ?",
                (record_id,),
            ).fetchall()

        return self._build_record(
            record_id, row["metadata"], {r["slot"]: r["vector"] for r in vector_rows}
        )

    async def list_records(self, limit: int | None = None) -> list[VectorRecord]:
        """
        Return stored records, newest first.

        Rows that cannot be decoded are logged and left out.

        Args:
            limit: Maximum number of records (all when None)
        """
        await self._prepare()
        return await asyncio.to_thread(self._list_records, limit)

    def _list_records(self, limit: int | None) -> list[VectorRecord]:
        sql = "SELECT id, metadata FROM vector_records ORDER BY created_at DESC, rowid DESC"
        params: list[Any] = []
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
            vector_rows = conn.execute(
                "SELECT record_id, slot, vector FROM vector_embeddings"
            ).fetchall()

        raw_vectors: dict[str, dict[str, str]] = {}
        for r in vector_rows:
            raw_vectors.setdefault(r["record_id"], {})[r["slot"]] = r["vector"]

        records = []
        for row in rows:
            try:
                records.append(
                    self._build_record(row["id"], row["metadata"], raw_vectors.get(row["id"], {}))
                )
            except (MalformedStoredVectorError, ValueError) as e:
                logger.warning("Skipping unreadable record", record_id=row["id"], error=str(e))
        return records

    def _build_record(
        self,
        record_id: str,
        raw_metadata: str,
        raw_vectors: dict[str, str],
    ) -> VectorRecord:
        vectors = {slot: decode_vector(record_id, raw) for slot, raw in raw_vectors.items()}
        if PRIMARY_SLOT not in vectors:
            raise MalformedStoredVectorError(
                record_id, f"no {PRIMARY_SLOT!r} embedding", backend=self.name
            )
        primary = vectors.pop(PRIMARY_SLOT)
        return VectorRecord(
            id=record_id,
            values=primary,
            metadata=decode_metadata(raw_metadata),
            named_vectors=vectors,
        )

    async def count(self) -> int:
        """Return the number of stored records."""
        await self._prepare()
        return await asyncio.to_thread(self._count)

    def _count(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM vector_records").fetchone()[0]
