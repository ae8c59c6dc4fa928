"""In-memory search engine."""

import math
import re
from collections.abc import AsyncIterator
from typing import Any, Optional

from .base import BaseSearchEngine, QueryOptions
from .document import DocumentChunk, SearchHit, SearchResponse
from .embeddings import EmbeddingsProvider
from .search_engine import as_list
from .utils.logging import get_logger

logger = get_logger(__name__)

_FILTER = re.compile(r"^\s*(?P<field>[\w.]+)\s+(?P<op>NOT IN|IN|=)\s+(?P<value>.+?)\s*$")
_QUOTED = re.compile(r'"((?:[^"\\]|\\.)*)"')


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Calculate cosine similarity between two vectors."""
    if len(a) != len(b):
        raise ValueError("Vectors must have the same dimension")

    dot_product = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(x * x for x in b))

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return dot_product / (norm_a * norm_b)


def _unquote(value: str) -> str:
    return re.sub(r"\\(.)", r"\1", value)


def parse_filter(filter: str) -> tuple[str, str, list[str]]:
    """Parse the single-field filters this package emits.

    Supports ``field = "v"``, ``field IN ["a", "b"]`` and
    ``field NOT IN ["a", "b"]``.

    Raises:
        ValueError: For any other expression
    """
    match = _FILTER.match(filter)
    if not match:
        raise ValueError(f"Unsupported filter: {filter!r}")

    op, raw = match["op"], match["value"]
    if op == "=":
        values = _QUOTED.fullmatch(raw)
        if not values:
            raise ValueError(f"Unsupported filter value: {raw!r}")
        return match["field"], op, [_unquote(values.group(1))]

    if not (raw.startswith("[") and raw.endswith("]")):
        raise ValueError(f"Unsupported filter value: {raw!r}")
    return match["field"], op, [_unquote(v) for v in _QUOTED.findall(raw)]


def _field_value(chunk: DocumentChunk, field: str) -> Any:
    value: Any = chunk.to_index_entry()
    for part in field.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


class MemorySearchEngine(BaseSearchEngine):
    """In-memory search engine for testing and offline use.

    Stores all chunks in memory and performs exact similarity search.
    Not suitable for large-scale production use.
    """

    def __init__(self, embeddings_provider: Optional[EmbeddingsProvider] = None) -> None:
        """Initialize the memory search engine.

        Args:
            embeddings_provider: Async function embedding search queries
        """
        self.embeddings_provider = embeddings_provider
        self.available = True
        self._exists = False
        self._chunks: dict[str, DocumentChunk] = {}

    def _matching(self, filter: str) -> list[DocumentChunk]:
        field, op, values = parse_filter(filter)
        wanted = set(values)
        matches = []
        for chunk in self._chunks.values():
            present = str(_field_value(chunk, field)) in wanted
            if present != (op == "NOT IN"):
                matches.append(chunk)
        return matches

    async def add(self, chunks: list[DocumentChunk]) -> None:
        for chunk in chunks:
            self._chunks[chunk.id] = chunk
        logger.debug(f"Added {len(chunks)} chunks to memory store")

    async def delete(self, chunks: list[DocumentChunk]) -> None:
        for chunk in chunks:
            self._chunks.pop(chunk.id, None)

    async def delete_by(self, value: Any, field: str) -> None:
        values = as_list(value)
        if not values:
            return
        wanted = {str(v) for v in values}
        for chunk in list(self._chunks.values()):
            if str(_field_value(chunk, field)) in wanted:
                del self._chunks[chunk.id]

    async def delete_by_filter(self, filter: str) -> None:
        for chunk in self._matching(filter):
            del self._chunks[chunk.id]

    async def clear(self) -> None:
        self._chunks.clear()

    async def find_by(self, value: Any, field: str, limit: int = 1000) -> list[DocumentChunk]:
        return [
            chunk for chunk in self._chunks.values()
            if _field_value(chunk, field) == value
        ][:limit]

    async def all(self, options: Optional[QueryOptions] = None) -> AsyncIterator[list[DocumentChunk]]:
        options = options or QueryOptions()
        offset = options.offset

        while True:
            chunks = self._matching(options.filter) if options.filter else list(self._chunks.values())
            page = chunks[offset : offset + options.limit]
            if not page:
                break
            yield page
            offset += options.limit

    async def count(self) -> int:
        """Return the number of chunks."""
        return len(self._chunks)

    async def healthy(self) -> bool:
        return self.available

    async def create_index(self) -> bool:
        self._exists = True
        return True

    async def delete_index(self) -> None:
        self._chunks.clear()
        self._exists = False

    async def vector_search(self, query: str, limit: int = 10) -> SearchResponse:
        """Search chunks by cosine similarity to the query vector."""
        if self.embeddings_provider is None:
            raise ValueError("An embeddings provider is required for vector search")

        query_vector = await self.embeddings_provider(query)
        if not query_vector:
            return SearchResponse(query=query)

        scored = [
            (chunk, cosine_similarity(query_vector, chunk.vector))
            for chunk in self._chunks.values()
            if chunk.vector is not None and len(chunk.vector) == len(query_vector)
        ]
        scored.sort(key=lambda x: x[1], reverse=True)

        hits = [SearchHit(chunk=chunk, score=score) for chunk, score in scored[:limit]]
        return SearchResponse(hits=hits, query=query, estimated_total_hits=len(scored))
