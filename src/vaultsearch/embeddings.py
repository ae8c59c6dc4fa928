"""Embedding providers and chunk batch embedding."""

import asyncio
import hashlib
import struct
from collections.abc import Awaitable, Callable
from typing import Literal, Optional, Union

import httpx
from pydantic import BaseModel

from .base import BaseEmbedding
from .document import DocumentChunk
from .result import EmbeddingsError, Err, err, is_err
from .utils.logging import get_logger

logger = get_logger(__name__)

ValidDims = Literal[32, 64, 128, 256, 512, 768, 1024]
EmbeddingTask = Literal[
    "retrieval.query",
    "retrieval.passage",
    "separation",
    "classification",
    "text-matching",
]

EmbeddingsProvider = Callable[[str], Awaitable[list[float]]]


class EmbeddingOptions(BaseModel):
    """Options sent with every embeddings request.

    Attributes:
        size: Dimension of the returned vectors
        task: Task the embeddings are tuned for
    """

    size: ValidDims = 1024
    task: EmbeddingTask = "retrieval.query"


DEFAULT_OPTIONS = EmbeddingOptions()


class HttpEmbedding(BaseEmbedding):
    """Embedding service reached over HTTP.

    Posts ``{texts, size, task}`` and expects ``{embeddings}`` back,
    aligned by position with ``texts``.
    """

    def __init__(
        self,
        url: str = "http://localhost:8000/api/v1/embeddings",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        """Initialize the HTTP embedding provider.

        Args:
            url: Embeddings endpoint
            client: Optional httpx client (for testing with mocks)
            timeout: Request timeout in seconds when no client is given
        """
        self.url = url
        self.timeout = timeout
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def embed(
        self,
        texts: list[str],
        options: Optional[EmbeddingOptions] = None,
    ) -> Union[list[list[float]], Err[EmbeddingsError]]:
        """Embed texts with one request."""
        options = options or DEFAULT_OPTIONS
        body = {"texts": texts, **options.model_dump()}

        try:
            response = await self._get_client().post(self.url, json=body)
        except httpx.HTTPError as e:
            return err(EmbeddingsError(type="internal_server_error", message=str(e) or type(e).__name__))

        if not response.is_success:
            return err(EmbeddingsError(
                type="bad_request",
                message=f"bad request: {response.status_code} {response.text[:200]}",
            ))

        try:
            embeddings = response.json()["embeddings"]
        except (ValueError, KeyError, TypeError) as e:
            return err(EmbeddingsError(type="internal_server_error", message=f"invalid response: {e}"))

        if not isinstance(embeddings, list) or len(embeddings) != len(texts):
            return err(EmbeddingsError(
                type="internal_server_error",
                message=f"expected {len(texts)} embeddings in response",
            ))

        return embeddings


class FakeEmbedding(BaseEmbedding):
    """Fake embedding that generates deterministic embeddings from text.

    Useful for testing and offline runs when you want predictable
    embeddings. The embedding is generated from the hash of the text,
    and its dimension follows ``options.size``.
    """

    def __init__(self, seed: int = 42):
        """Initialize the fake embedding.

        Args:
            seed: Seed mixed into the hash for reproducibility
        """
        self.seed = seed

    def _hash_text(self, text: str, dimension: int) -> list[float]:
        """Generate a deterministic embedding from text hash."""
        text_hash = hashlib.sha256(f"{self.seed}:{text}".encode()).digest()

        embedding = []
        for i in range(dimension):
            # Cycle through the hash two bytes at a time
            byte_idx = (i * 2) % (len(text_hash) - 2)
            value = struct.unpack("<h", text_hash[byte_idx : byte_idx + 2])[0]
            embedding.append(value / 32768.0)

        return embedding

    async def embed(
        self,
        texts: list[str],
        options: Optional[EmbeddingOptions] = None,
    ) -> list[list[float]]:
        options = options or DEFAULT_OPTIONS
        return [self._hash_text(text, options.size) for text in texts]


async def embed_chunks(
    embedding: BaseEmbedding,
    chunks: list[DocumentChunk],
    options: Optional[EmbeddingOptions] = None,
    limit: Optional[asyncio.Semaphore] = None,
) -> list[DocumentChunk]:
    """Embed chunks one request per chunk.

    A failed request drops only its own chunk. Each failure is logged.

    Args:
        embedding: Embedding provider
        chunks: Chunks to embed
        options: Vector size and task
        limit: Optional semaphore bounding the requests in flight, shared
            by every caller that uses the same provider

    Returns:
        The chunks that were embedded, vector attached, in input order
    """
    async def embed_one(chunk: DocumentChunk) -> Union[DocumentChunk, Err[EmbeddingsError]]:
        if limit is None:
            vectors = await embedding.embed([chunk.page_content], options)
        else:
            async with limit:
                vectors = await embedding.embed([chunk.page_content], options)
        if is_err(vectors):
            return vectors
        return chunk.model_copy(update={"vector": vectors[0]})

    results = await asyncio.gather(*(embed_one(chunk) for chunk in chunks))

    embedded = []
    for chunk, result in zip(chunks, results):
        if is_err(result):
            logger.error(
                f"Embedding failed for chunk {chunk.id} of {chunk.metadata.path}: "
                f"{result.value.type}: {result.value.message}"
            )
            continue
        embedded.append(result)

    if len(embedded) < len(chunks):
        logger.warning(f"Embedded {len(embedded)}/{len(chunks)} chunks")

    return embedded


def query_embeddings_provider(embedding: BaseEmbedding, size: ValidDims) -> EmbeddingsProvider:
    """Build the query embedder used by vector search.

    The returned function never raises for remote failures; it logs and
    returns an empty vector instead.
    """
    options = EmbeddingOptions(size=size, task="retrieval.query")

    async def provider(query: str) -> list[float]:
        result = await embedding.embed([query], options)
        if is_err(result):
            logger.error(f"Query embedding failed: {result.value.type}: {result.value.message}")
            return []
        return result[0]

    return provider
