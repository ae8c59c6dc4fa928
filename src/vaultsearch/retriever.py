"""Retrieval over the index and per-session chat histories."""

import json
from abc import ABC, abstractmethod
from typing import Literal

from pydantic import BaseModel, Field

from .base import BaseSearchEngine
from .document import DocumentChunk


class SearchEngineRetriever:
    """Vector retriever over a search engine.

    Returns the chunks nearest to a query, best first.
    """

    def __init__(self, search_engine: BaseSearchEngine, k: int = 10):
        """Initialize the retriever.

        Args:
            search_engine: Engine to run vector searches against
            k: Number of chunks to return
        """
        self.search_engine = search_engine
        self.k = k

    async def retrieve(self, query: str) -> list[DocumentChunk]:
        response = await self.search_engine.vector_search(query, limit=self.k)
        return [hit.chunk for hit in response.hits]


def format_documents(chunks: list[DocumentChunk]) -> str:
    """Render chunks as ``<document>`` blocks for a prompt context."""
    return "\n".join(
        "<document>\n"
        + json.dumps(chunk.model_dump(by_alias=True, exclude={"vector"}), indent=2)
        + "\n</document>"
        for chunk in chunks
    )


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatHistory(BaseModel):
    """Messages exchanged in one chat session."""

    messages: list[ChatMessage] = Field(default_factory=list)

    async def add_messages(self, messages: list[ChatMessage]) -> None:
        self.messages.extend(messages)

    async def get_messages(self) -> list[ChatMessage]:
        return list(self.messages)


class SessionStore(ABC):
    """Chat histories keyed by session id."""

    @abstractmethod
    async def get_or_create(self, session_id: str) -> ChatHistory:
        """Return the history of a session, creating it on first use."""
        pass


class InMemorySessionStore(SessionStore):
    """Session store kept in process memory.

    Histories are created on first reference and never evicted.
    """

    def __init__(self) -> None:
        self._histories: dict[str, ChatHistory] = {}

    async def get_or_create(self, session_id: str) -> ChatHistory:
        if session_id not in self._histories:
            self._histories[session_id] = ChatHistory()
        return self._histories[session_id]

    def __len__(self) -> int:
        return len(self._histories)
