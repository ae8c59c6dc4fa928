"""Keep a Meilisearch index in sync with a vault of markdown files.

This package provides:
- Document and chunk data structures
- A recursive chunker that keeps line provenance
- Embedding providers (HTTP service, fake)
- Search engines (Meilisearch over HTTP, in-memory)
- The sync engine reconciling the vault with the index
- Poll-until-done retry primitives
- A debounced vault event handler

Example:
    ```python
    from vaultsearch import build_indexer, load_config

    indexer = build_indexer(load_config("vaultsearch.yaml"))
    report = await indexer.start()
    ```
"""

# Data structures
from .document import (
    ChunkMetadata,
    Document,
    DocumentChunk,
    DocumentMetadata,
    SearchHit,
    SearchResponse,
    VaultFile,
)
from .result import DocumentError, EmbeddingsError, Err, is_err, is_ok

# Base classes
from .base import BaseChunker, BaseEmbedding, BaseSearchEngine, QueryOptions

# Chunking
from .chunking import RecursiveChunker

# Embedding providers
from .embeddings import (
    EmbeddingOptions,
    FakeEmbedding,
    HttpEmbedding,
    embed_chunks,
    query_embeddings_provider,
)

# Search engines
from .search_engine import MeiliSearchEngine
from .vectorstore import MemorySearchEngine, cosine_similarity

# Sync
from .service import DocumentService, DocumentServiceConfig, SyncPlan, SyncReport, SyncState
from .retry import PeriodicTask, retry_until, retry_until_done
from .listener import VaultEventHandler

# Retrieval
from .retriever import InMemorySessionStore, SearchEngineRetriever, SessionStore, format_documents

# Application
from .app import SyncStatus, VaultIndexer, build_indexer, scan_vault
from .utils.config import AppConfig, load_config

__version__ = "0.1.0"

__all__ = [
    # Data structures
    "ChunkMetadata",
    "Document",
    "DocumentChunk",
    "DocumentMetadata",
    "SearchHit",
    "SearchResponse",
    "VaultFile",
    "DocumentError",
    "EmbeddingsError",
    "Err",
    "is_err",
    "is_ok",
    # Base classes
    "BaseChunker",
    "BaseEmbedding",
    "BaseSearchEngine",
    "QueryOptions",
    # Chunking
    "RecursiveChunker",
    # Embeddings
    "EmbeddingOptions",
    "FakeEmbedding",
    "HttpEmbedding",
    "embed_chunks",
    "query_embeddings_provider",
    # Search engines
    "MeiliSearchEngine",
    "MemorySearchEngine",
    "cosine_similarity",
    # Sync
    "DocumentService",
    "DocumentServiceConfig",
    "SyncPlan",
    "SyncReport",
    "SyncState",
    "PeriodicTask",
    "retry_until",
    "retry_until_done",
    "VaultEventHandler",
    # Retrieval
    "InMemorySessionStore",
    "SearchEngineRetriever",
    "SessionStore",
    "format_documents",
    # Application
    "SyncStatus",
    "VaultIndexer",
    "build_indexer",
    "scan_vault",
    "AppConfig",
    "load_config",
]
