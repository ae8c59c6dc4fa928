"""Base classes and abstract interfaces for the indexing pipeline."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any, Optional, Union

from pydantic import BaseModel

if TYPE_CHECKING:
    from .document import Document, DocumentChunk, SearchResponse
    from .embeddings import EmbeddingOptions
    from .result import EmbeddingsError, Err


class QueryOptions(BaseModel):
    """Options for scanning the index page by page.

    Attributes:
        offset: Number of entries to skip before the first page
        limit: Page size
        fields: Attributes to return (all when None)
        filter: Optional filter expression restricting the scan
        retrieve_vectors: Whether to return stored vectors
    """

    offset: int = 0
    limit: int = 20
    fields: Optional[list[str]] = None
    filter: Optional[str] = None
    retrieve_vectors: bool = False


class BaseEmbedding(ABC):
    """Abstract base class for embedding providers.

    Embedding providers convert text into dense vector representations.
    Remote failures are returned as values, never raised.
    """

    @abstractmethod
    async def embed(
        self,
        texts: list[str],
        options: Optional["EmbeddingOptions"] = None,
    ) -> Union[list[list[float]], "Err[EmbeddingsError]"]:
        """Embed a list of texts.

        Args:
            texts: Texts to embed
            options: Vector size and task

        Returns:
            One vector per text, aligned by position, or an error value
        """
        pass

    async def close(self) -> None:
        """Release the resources held by the provider."""
        pass


class BaseChunker(ABC):
    """Abstract base class for document chunkers.

    Chunkers split documents into smaller pieces for indexing.
    """

    @abstractmethod
    def chunk(self, document: "Document") -> list["DocumentChunk"]:
        """Split a document into chunks.

        Args:
            document: Document to chunk

        Returns:
            List of chunks in text order
        """
        pass

    def split_documents(self, documents: list["Document"]) -> list["DocumentChunk"]:
        """Chunk several documents, keeping document order.

        Raises:
            ValueError: If a document has no id
        """
        for document in documents:
            if not document.id:
                raise ValueError(f"document.id undefined for {document.metadata.path!r}")

        chunks: list["DocumentChunk"] = []
        for document in documents:
            chunks.extend(self.chunk(document))
        return chunks


class BaseSearchEngine(ABC):
    """Abstract base class for the search index.

    Each operation maps onto one remote primitive and may fail on its own.
    Entries are DocumentChunks keyed by id and filterable on
    ``metadata.path``.
    """

    @abstractmethod
    async def add(self, chunks: list["DocumentChunk"]) -> None:
        """Add or replace entries by id."""
        pass

    @abstractmethod
    async def delete(self, chunks: list["DocumentChunk"]) -> None:
        """Delete entries by id."""
        pass

    @abstractmethod
    async def delete_by(self, value: Any, field: str) -> None:
        """Delete entries whose ``field`` matches the value or any of the values."""
        pass

    @abstractmethod
    async def delete_by_filter(self, filter: str) -> None:
        """Delete entries matching a filter expression."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Delete every entry, keeping the index and its settings."""
        pass

    @abstractmethod
    async def find_by(self, value: Any, field: str, limit: int = 1000) -> list["DocumentChunk"]:
        """Return entries whose ``field`` equals the value."""
        pass

    @abstractmethod
    def all(self, options: Optional[QueryOptions] = None) -> AsyncIterator[list["DocumentChunk"]]:
        """Iterate over all entries, one page at a time."""
        pass

    @abstractmethod
    async def healthy(self) -> bool:
        """Return True when the index service is available."""
        pass

    @abstractmethod
    async def create_index(self) -> bool:
        """Create the index and its settings unless it already exists."""
        pass

    @abstractmethod
    async def delete_index(self) -> None:
        """Remove the index."""
        pass

    @abstractmethod
    async def vector_search(self, query: str, limit: int = 10) -> "SearchResponse":
        """Embed the query and return the nearest entries."""
        pass

    async def reset(self) -> bool:
        """Drop and recreate the index."""
        await self.delete_index()
        return await self.create_index()

    async def close(self) -> None:
        """Release the connection to the index service."""
        pass
