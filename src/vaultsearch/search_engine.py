"""Meilisearch index client.

Talks to the Meilisearch REST API with ``httpx``. Every write is an
asynchronous task on the server side; writes wait for their task to
reach a terminal state and report failures.
"""

import asyncio
from collections.abc import AsyncIterator
from typing import Any, Optional

import httpx

from .base import BaseSearchEngine, QueryOptions
from .document import VECTOR_FIELD, DocumentChunk, SearchHit, SearchResponse
from .embeddings import EmbeddingsProvider
from .exceptions import IndexNotFoundError, SearchEngineError, TaskFailedError, TaskTimeoutError
from .utils.logging import get_logger

logger = get_logger(__name__)

TERMINAL_STATUSES = {"succeeded", "failed", "canceled"}


def as_list(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def quote(value: Any) -> str:
    """Quote a value for a filter expression."""
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def eq_filter(value: Any, field: str) -> str:
    return f"{field} = {quote(value)}"


def in_filter(values: Any, field: str) -> str:
    return f"{field} IN [{', '.join(quote(v) for v in as_list(values))}]"


def not_in_filter(values: Any, field: str) -> str:
    return f"{field} NOT IN [{', '.join(quote(v) for v in as_list(values))}]"


def describe_task(task: dict[str, Any]) -> str:
    description = (
        f"task: {task.get('type')}, {task.get('status')}_at: {task.get('finishedAt')}, "
        f"started: {task.get('startedAt')}, took: {task.get('duration')}"
    )
    if task.get("error"):
        description += f", error: {task['error'].get('message')}"
    return f"{{ {description} }}"


class MeiliSearchEngine(BaseSearchEngine):
    """Search index backed by a Meilisearch server.

    Chunks are stored as documents with primary key ``id``. The index is
    provisioned with ``metadata.path`` as filterable attribute and a
    user-provided embedder holding the chunk vectors.
    """

    def __init__(
        self,
        host: str,
        index_uid: str,
        embeddings_provider: EmbeddingsProvider,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        dimensions: int = 512,
        embedder_name: str = VECTOR_FIELD,
        timeout: float = 30.0,
        task_timeout: float = 30.0,
        task_poll_interval: float = 0.05,
    ):
        """Initialize the Meilisearch engine.

        Args:
            host: Meilisearch base URL
            index_uid: Index holding the chunks
            embeddings_provider: Async function embedding search queries
            api_key: Optional API key sent as bearer token
            client: Optional httpx client (for testing with mocks)
            dimensions: Vector size of the user-provided embedder
            embedder_name: Name of the embedder configured on the index
            timeout: HTTP timeout in seconds when no client is given
            task_timeout: Seconds to wait for a task to finish
            task_poll_interval: Seconds between task status polls
        """
        self.host = host.rstrip("/")
        self.index_uid = index_uid
        self.embeddings_provider = embeddings_provider
        self.api_key = api_key
        self.dimensions = dimensions
        self.embedder_name = embedder_name
        self.timeout = timeout
        self.task_timeout = task_timeout
        self.task_poll_interval = task_poll_interval
        self._client = client

    @property
    def _headers(self) -> dict[str, str]:
        if self.api_key:
            return {"Authorization": f"Bearer {self.api_key}"}
        return {}

    @property
    def _index_path(self) -> str:
        return f"/indexes/{self.index_uid}"

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Send a request and decode the JSON response.

        Raises:
            IndexNotFoundError: If the index does not exist
            SearchEngineError: On transport errors and non-2xx responses
        """
        try:
            response = await self._get_client().request(
                method,
                f"{self.host}{path}",
                json=body,
                params=params,
                headers=self._headers,
            )
        except httpx.HTTPError as e:
            raise SearchEngineError(f"{method} {path} failed: {e}") from e

        data: Any = None
        if response.content:
            try:
                data = response.json()
            except ValueError:
                data = None

        if not response.is_success:
            error = data if isinstance(data, dict) else {}
            code = error.get("code")
            if code == "index_not_found":
                raise IndexNotFoundError(self.index_uid)
            raise SearchEngineError(
                error.get("message") or f"{method} {path} returned {response.status_code}",
                code=code,
                status_code=response.status_code,
            )

        return data

    async def wait_for_task(self, task_uid: int) -> dict[str, Any]:
        """Poll a task until it succeeds, fails or is canceled.

        Raises:
            TaskTimeoutError: If the task is still running after task_timeout
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.task_timeout

        while True:
            task = await self._request("GET", f"/tasks/{task_uid}")
            if task.get("status") in TERMINAL_STATUSES:
                return task
            if loop.time() >= deadline:
                raise TaskTimeoutError(task_uid, self.task_timeout)
            await asyncio.sleep(self.task_poll_interval)

    async def _handle_task(self, enqueued: dict[str, Any]) -> dict[str, Any]:
        task = await self.wait_for_task(enqueued["taskUid"])
        if task.get("status") == "succeeded":
            logger.info(describe_task(task))
            return task

        logger.error(describe_task(task))
        raise TaskFailedError(task)

    async def add(self, chunks: list[DocumentChunk]) -> None:
        """Add or replace chunks and wait for the indexing task."""
        if not chunks:
            return

        enqueued = await self._request(
            "POST",
            f"{self._index_path}/documents",
            [chunk.to_index_entry() for chunk in chunks],
            params={"primaryKey": "id"},
        )
        await self._handle_task(enqueued)

    async def delete(self, chunks: list[DocumentChunk]) -> None:
        if not chunks:
            return

        enqueued = await self._request(
            "POST",
            f"{self._index_path}/documents/delete-batch",
            [chunk.id for chunk in chunks],
        )
        await self._handle_task(enqueued)

    async def delete_by(self, value: Any, field: str) -> None:
        values = as_list(value)
        if not values:
            return
        await self.delete_by_filter(in_filter(values, field))

    async def delete_by_filter(self, filter: str) -> None:
        enqueued = await self._request(
            "POST",
            f"{self._index_path}/documents/delete",
            {"filter": filter},
        )
        await self._handle_task(enqueued)

    async def clear(self) -> None:
        enqueued = await self._request("DELETE", f"{self._index_path}/documents")
        await self._handle_task(enqueued)

    async def _fetch(self, options: QueryOptions) -> list[DocumentChunk]:
        body: dict[str, Any] = {"offset": options.offset, "limit": options.limit}
        if options.fields:
            body["fields"] = options.fields
        if options.filter:
            body["filter"] = options.filter
        if options.retrieve_vectors:
            body["retrieveVectors"] = True

        data = await self._request("POST", f"{self._index_path}/documents/fetch", body)
        return [DocumentChunk.from_index_entry(entry) for entry in data.get("results", [])]

    async def find_by(self, value: Any, field: str, limit: int = 1000) -> list[DocumentChunk]:
        return await self._fetch(QueryOptions(limit=limit, filter=eq_filter(value, field)))

    async def all(self, options: Optional[QueryOptions] = None) -> AsyncIterator[list[DocumentChunk]]:
        """Iterate over the index one page at a time.

        Stops at the first empty page. When ``fields`` is set it must keep
        ``id``, ``pageContent`` and ``metadata`` so entries still parse.
        """
        page_options = (options or QueryOptions()).model_copy()

        while True:
            page = await self._fetch(page_options)
            if not page:
                break
            yield page
            page_options.offset += page_options.limit

    async def healthy(self) -> bool:
        try:
            health = await self._request("GET", "/health")
        except SearchEngineError:
            return False
        return isinstance(health, dict) and health.get("status") == "available"

    async def index_exists(self) -> bool:
        try:
            await self._request("GET", self._index_path)
        except IndexNotFoundError:
            return False
        return True

    async def create_index(self) -> bool:
        """Create the index with its settings.

        Returns immediately when the index exists. Provisioning tasks
        that fail are logged, not raised.
        """
        if await self.index_exists():
            return True

        enqueued = [
            await self._request("POST", "/indexes", {"uid": self.index_uid, "primaryKey": "id"}),
            await self._request(
                "PUT",
                f"{self._index_path}/settings/filterable-attributes",
                ["metadata.path"],
            ),
            await self._request(
                "PATCH",
                f"{self._index_path}/settings/embedders",
                {self.embedder_name: {"source": "userProvided", "dimensions": self.dimensions}},
            ),
        ]

        tasks = await asyncio.gather(*(self.wait_for_task(e["taskUid"]) for e in enqueued))
        for task in tasks:
            if task.get("status") != "succeeded":
                logger.error(f"index {task.get('indexUid')}: {describe_task(task)}")

        logger.info(f"Created index '{self.index_uid}'")
        return True

    async def delete_index(self) -> None:
        """Delete the index. An index that does not exist counts as deleted."""
        try:
            enqueued = await self._request("DELETE", self._index_path)
            await self._handle_task(enqueued)
        except SearchEngineError as e:
            if e.code != "index_not_found":
                raise
            logger.info(f"Index '{self.index_uid}' already deleted")

    def _to_response(self, data: dict[str, Any], query: Optional[str]) -> SearchResponse:
        return SearchResponse(
            hits=[
                SearchHit(chunk=DocumentChunk.from_index_entry(hit), score=hit.get("_rankingScore"))
                for hit in data.get("hits", [])
            ],
            query=query,
            processing_time_ms=data.get("processingTimeMs", 0),
            estimated_total_hits=data.get("estimatedTotalHits"),
        )

    async def search(self, query: str, limit: int = 20) -> SearchResponse:
        """Keyword search with ranking scores."""
        data = await self._request(
            "POST",
            f"{self._index_path}/search",
            {
                "q": query,
                "limit": limit,
                "showRankingScore": True,
                "showRankingScoreDetails": True,
            },
        )
        return self._to_response(data, query)

    async def vector_search(self, query: str, limit: int = 10) -> SearchResponse:
        """Embed the query and search the embedder's vectors."""
        vector = await self.embeddings_provider(query)
        if not vector:
            logger.warning(f"No query vector for {query!r}, returning no hits")
            return SearchResponse(query=query)

        data = await self._request(
            "POST",
            f"{self._index_path}/search",
            {
                "vector": vector,
                "hybrid": {"embedder": self.embedder_name, "semanticRatio": 1.0},
                "limit": limit,
                "showRankingScore": True,
            },
        )
        return self._to_response(data, query)
