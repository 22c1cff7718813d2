"""
Remote vector index implementation of the VectorBackend interface.

Targets the Cloudflare Vectorize index service: similarity search and
metadata filtering happen server-side. How requests reach the service is
an injected VectorIndexTransport:

- HttpVectorizeTransport: raw HTTPS calls to the Vectorize v2 REST API
- BindingTransport: a pre-bound index client object supplied by the host

Availability is decided from configuration alone, so the selector can
fall back without ever attempting a network call.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Protocol

import httpx
import structlog

from finvec.vectorstore.base import (
    VectorBackend,
    VectorRecord,
    VectorSearchFilter,
    VectorSearchOptions,
    VectorSearchResult,
    VectorSearchResults,
)
from finvec.vectorstore.exceptions import (
    BackendUnavailableError,
    RemoteRequestError,
    RemoteTimeoutError,
    VectorStoreError,
)
from finvec.vectorstore.similarity import rank

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://api.cloudflare.com/client/v4"
DEFAULT_INDEX_NAME = "finance-transactions"


def build_filter(search_filter: VectorSearchFilter | None) -> dict[str, dict[str, Any]] | None:
    """
    Translate a VectorSearchFilter into a Vectorize filter expression.

    Equality constraints become {"field": {"$eq": value}}; the numeric range
    becomes {"field": {"$gte": min, "$lte": max}} with absent bounds omitted.

    Returns:
        Filter expression, or None when nothing is constrained
    """
    if search_filter is None or search_filter.is_empty:
        return None

    expression: dict[str, dict[str, Any]] = {}
    for field_name, value in search_filter.equality_fields.items():
        expression[field_name] = {"$eq": value}

    numeric_range = search_filter.numeric_range
    if numeric_range is not None:
        bounds: dict[str, Any] = {}
        if numeric_range.min is not None:
            bounds["$gte"] = numeric_range.min
        if numeric_range.max is not None:
            bounds["$lte"] = numeric_range.max
        if bounds:
            expression.setdefault(numeric_range.field, {}).update(bounds)

    return expression or None


class VectorIndexTransport(ABC):
    """How a RemoteVectorStore talks to the index service."""

    @abstractmethod
    async def upsert(self, vectors: list[dict[str, Any]]) -> str:
        """Submit one batch of {id, values, metadata}; return the mutation id."""
        ...

    @abstractmethod
    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter_expression: dict[str, Any] | None,
    ) -> list[dict[str, Any]]:
        """Run a similarity query; return raw matches with full metadata."""
        ...

    async def create_index(self, dimension: int) -> None:
        """Create the index if the service supports it."""

    async def close(self) -> None:
        """Release transport resources."""


class HttpVectorizeTransport(VectorIndexTransport):
    """
    Vectorize v2 REST transport over httpx.

    Example:
        transport = HttpVectorizeTransport(account_id, api_token, "finance-transactions")
        mutation_id = await transport.upsert([{"id": "t1", "values": [...], "metadata": {...}}])
    """

    def __init__(
        self,
        account_id: str,
        api_token: str,
        index_name: str = DEFAULT_INDEX_NAME,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the transport.

        Args:
            account_id: Cloudflare account identifier
            api_token: API token with Vectorize permissions
            index_name: Target index
            base_url: API root
            timeout: Per-request deadline in seconds
            client: Optional pre-configured httpx client (not closed by us)
        """
        self.account_id = account_id
        self.index_name = index_name
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._headers = {"Authorization": f"Bearer {api_token}"}
        self._client = client
        self._owns_client = client is None

    @property
    def indexes_url(self) -> str:
        return f"{self.base_url}/accounts/{self.account_id}/vectorize/v2/indexes"

    @property
    def index_url(self) -> str:
        return f"{self.indexes_url}/{self.index_name}"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def upsert(self, vectors: list[dict[str, Any]]) -> str:
        body = "\n".join(json.dumps(v, ensure_ascii=False) for v in vectors)
        result = await self._post(
            f"{self.index_url}/upsert",
            content=body.encode("utf-8"),
            headers={"Content-Type": "application/x-ndjson"},
        )
        mutation_id = result.get("mutationId") if isinstance(result, dict) else None
        if not isinstance(mutation_id, str):
            raise RemoteRequestError(
                "Upsert response did not include a mutationId",
                response_body=json.dumps(result),
            )
        return mutation_id

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter_expression: dict[str, Any] | None,
    ) -> list[dict[str, Any]]:
        payload: dict[str, Any] = {
            "vector": vector,
            "topK": top_k,
            "returnValues": False,
            "returnMetadata": "all",
        }
        if filter_expression:
            payload["filter"] = filter_expression

        result = await self._post(f"{self.index_url}/query", json_body=payload)
        matches = result.get("matches") if isinstance(result, dict) else None
        if not isinstance(matches, list):
            raise RemoteRequestError(
                "Query response did not include a matches list",
                response_body=json.dumps(result),
            )
        return matches

    async def create_index(self, dimension: int) -> None:
        payload = {
            "name": self.index_name,
            "config": {"dimensions": dimension, "metric": "cosine"},
        }
        try:
            await self._post(self.indexes_url, json_body=payload)
        except RemoteRequestError as e:
            if e.status_code == 409:
                logger.info("Vectorize index already exists", index=self.index_name)
                return
            raise
        logger.info("Created Vectorize index", index=self.index_name, dimension=dimension)

    async def _post(
        self,
        url: str,
        json_body: dict[str, Any] | None = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """
        POST to the API and unwrap the {"success", "result"} envelope.

        Raises:
            RemoteTimeoutError: Deadline exceeded
            BackendUnavailableError: Service could not be reached at all
            RemoteRequestError: Non-2xx, unsuccessful or malformed response
        """
        request_headers = {**self._headers, **(headers or {})}
        try:
            response = await self._get_client().post(
                url,
                json=json_body,
                content=content,
                headers=request_headers,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise RemoteTimeoutError(
                f"Request to {url} timed out after {self.timeout}s"
            ) from e
        except httpx.ConnectError as e:
            raise BackendUnavailableError(f"Cannot reach {url}: {e}") from e
        except httpx.HTTPError as e:
            raise RemoteRequestError(f"Request to {url} failed: {e}") from e

        if response.status_code >= 400:
            raise RemoteRequestError(
                f"Request failed with status {response.status_code}",
                status_code=response.status_code,
                response_body=response.text,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise RemoteRequestError(
                "Response body is not valid JSON",
                status_code=response.status_code,
                response_body=response.text,
            ) from e

        if not isinstance(body, dict) or not body.get("success", False):
            errors = body.get("errors") if isinstance(body, dict) else None
            raise RemoteRequestError(
                f"Service reported failure: {errors or 'unknown error'}",
                status_code=response.status_code,
                response_body=response.text,
            )

        return body.get("result")


class VectorIndexBinding(Protocol):
    """A pre-bound index client, as exposed by an edge runtime."""

    async def upsert(self, vectors: list[dict[str, Any]]) -> dict[str, Any]: ...

    async def query(self, vector: list[float], options: dict[str, Any]) -> dict[str, Any]: ...


class BindingTransport(VectorIndexTransport):
    """Transport that delegates to a pre-bound index client."""

    def __init__(self, binding: VectorIndexBinding):
        self._binding = binding

    async def upsert(self, vectors: list[dict[str, Any]]) -> str:
        result = await self._call(self._binding.upsert(vectors))
        mutation_id = result.get("mutationId") if isinstance(result, dict) else None
        if not isinstance(mutation_id, str):
            raise RemoteRequestError("Binding upsert returned no mutationId")
        return mutation_id

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter_expression: dict[str, Any] | None,
    ) -> list[dict[str, Any]]:
        options: dict[str, Any] = {
            "topK": top_k,
            "returnValues": False,
            "returnMetadata": "all",
        }
        if filter_expression:
            options["filter"] = filter_expression

        result = await self._call(self._binding.query(vector, options))
        matches = result.get("matches") if isinstance(result, dict) else None
        if not isinstance(matches, list):
            raise RemoteRequestError("Binding query returned no matches list")
        return matches

    @staticmethod
    async def _call(awaitable: Any) -> Any:
        try:
            return await awaitable
        except VectorStoreError:
            raise
        except (TimeoutError, asyncio.TimeoutError) as e:
            raise RemoteTimeoutError(f"Binding call timed out: {e}") from e
        except Exception as e:
            raise RemoteRequestError(f"Binding call failed: {e}") from e


class RemoteVectorStore(VectorBackend):
    """
    Vector store backed by a remote Vectorize index.

    Features:
    - Batch upsert (last write wins) with server-issued mutation ids
    - Server-side cosine search with metadata filter expressions
    - Client-side min_score threshold
    - Optional index bootstrap before the first insert
    """

    name = "remote"

    def __init__(
        self,
        account_id: str | None = None,
        api_token: str | None = None,
        index_name: str = DEFAULT_INDEX_NAME,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        transport: VectorIndexTransport | None = None,
        create_index: bool = False,
        dimension: int | None = None,
    ):
        """
        Initialize the remote store.

        Args:
            account_id: Cloudflare account identifier
            api_token: API token
            index_name: Target index
            base_url: API root
            timeout: Per-request deadline in seconds
            transport: Explicit transport (overrides the credential-built HTTP one)
            create_index: Create the index before the first insert
            dimension: Optional fixed dimensionality
        """
        super().__init__(dimension=dimension)
        self._account_id = account_id
        self._api_token = api_token
        self.index_name = index_name
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport
        self._create_index = create_index
        self._index_ready = False

    def is_available(self) -> bool:
        if self._transport is not None:
            return True
        return bool(self._account_id) and bool(self._api_token)

    def _get_transport(self) -> VectorIndexTransport:
        if self._transport is None:
            if not self.is_available():
                raise BackendUnavailableError(
                    "Remote vector index is not configured "
                    "(CF_ACCOUNT_ID and CF_API_TOKEN are both required)",
                    backend=self.name,
                )
            self._transport = HttpVectorizeTransport(
                account_id=self._account_id or "",
                api_token=self._api_token or "",
                index_name=self.index_name,
                base_url=self._base_url,
                timeout=self._timeout,
            )
        return self._transport

    async def close(self) -> None:
        if self._transport is not None:
            await self._transport.close()

    async def _insert(self, records: list[VectorRecord]) -> str:
        transport = self._get_transport()
        vectors = [
            {"id": r.id, "values": r.values, "metadata": dict(r.metadata)}
            for r in records
        ]

        try:
            if self._create_index and not self._index_ready:
                await transport.create_index(self._dimension or len(records[0].values))
                self._index_ready = True
            mutation_id = await transport.upsert(vectors)
        except VectorStoreError as e:
            self._tag(e)
            raise

        logger.info(
            "Inserted vectors into remote index",
            index=self.index_name,
            count=len(vectors),
            mutation_id=mutation_id,
        )
        return mutation_id

    async def _search(
        self,
        query_vector: list[float],
        options: VectorSearchOptions,
    ) -> VectorSearchResults:
        transport = self._get_transport()
        filter_expression = build_filter(options.filter)

        try:
            matches = await transport.query(query_vector, options.top_k, filter_expression)
            results = [self._parse_match(m) for m in matches]
        except VectorStoreError as e:
            self._tag(e)
            raise

        if options.min_score is not None:
            results = [r for r in results if r.score >= options.min_score]

        logger.debug(
            "Remote search completed",
            index=self.index_name,
            matches=len(matches),
            returned=len(results),
        )
        return VectorSearchResults(rank(results, options.top_k), backend=self.name)

    @staticmethod
    def _parse_match(match: Any) -> VectorSearchResult:
        if not isinstance(match, dict):
            raise RemoteRequestError(f"Malformed match: {match!r}")

        match_id = match.get("id")
        score = match.get("score")
        if not isinstance(match_id, str) or isinstance(score, bool) or not isinstance(score, (int, float)):
            raise RemoteRequestError(f"Malformed match: {match!r}")

        metadata = match.get("metadata")
        if metadata is None:
            metadata = {}
        if not isinstance(metadata, dict):
            raise RemoteRequestError(f"Malformed match metadata: {match!r}")
        return VectorSearchResult(id=match_id, score=float(score), metadata=dict(metadata))

    def _tag(self, error: VectorStoreError) -> VectorStoreError:
        if error.backend is None:
            error.backend = self.name
        return error
