"""
Document synchronization service.

Keeps the search index in line with the files of the vault: decides what
to create, update, move and delete, and drives the read, chunk, embed and
add steps for each file.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field

from vaultsearch.base import BaseChunker, BaseEmbedding, BaseSearchEngine, QueryOptions
from vaultsearch.chunking import RecursiveChunker
from vaultsearch.document import Document, DocumentChunk, VaultFile
from vaultsearch.embeddings import EmbeddingOptions, embed_chunks
from vaultsearch.exceptions import SearchEngineError, SyncError
from vaultsearch.result import is_err
from vaultsearch.search_engine import eq_filter, not_in_filter
from vaultsearch.utils.files import documents_to_delete_or_create, to_map
from vaultsearch.utils.logging import get_logger

logger = get_logger(__name__)

PATH_FIELD = "metadata.path"


class SyncState(str, Enum):
    """Steps of a reconciliation pass."""
    IDLE = "idle"
    COMPUTING_DELTA = "computing-delta"
    DELETING_STALE = "deleting-stale"
    CREATING_MISSING = "creating-missing"
    DONE = "done"
    FAILED = "failed"


class DocumentServiceConfig(BaseModel):
    """Configuration for the document service."""
    vault_root: str
    chunk_size: int = 3000
    chunk_overlap: int = 500
    embeddings: EmbeddingOptions = Field(
        default_factory=lambda: EmbeddingOptions(size=512, task="retrieval.passage")
    )
    # Embedding requests in flight across all files of a pass
    max_concurrency: int = Field(default=8, gt=0)


class SyncReport(BaseModel):
    """Outcome of one reconciliation pass."""
    state: SyncState = SyncState.DONE
    deleted_filter: Optional[str] = None
    created: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    unsupported: list[str] = Field(default_factory=list)


class SyncPlan(BaseModel):
    """Paths a reconciliation would delete and create."""
    to_delete: list[str] = Field(default_factory=list)
    to_create: list[str] = Field(default_factory=list)


class DocumentService:
    """
    Sync engine between the vault and the search index.

    Entries are matched by path, never by id: ids are regenerated each
    time a file is (re)indexed.
    """

    def __init__(
        self,
        search_engine: BaseSearchEngine,
        embedding: BaseEmbedding,
        config: DocumentServiceConfig,
        chunker: Optional[BaseChunker] = None,
    ):
        self.search_engine = search_engine
        self.embedding = embedding
        self.config = config
        self.chunker = chunker or RecursiveChunker(
            chunk_size=config.chunk_size,
            overlap=config.chunk_overlap,
        )
        self.state = SyncState.IDLE
        self._embed_slots = asyncio.Semaphore(config.max_concurrency)

    @property
    def vault_root(self) -> Path:
        return Path(self.config.vault_root)

    async def _read(self, file: VaultFile) -> Optional[Document]:
        document = (await Document.from_files([file], self.vault_root))[0]
        if is_err(document):
            logger.warning(f"Skipping {file.path}: {document.value.type}: {document.value.message}")
            return None
        return document

    async def _index_document(self, document: Document) -> bool:
        chunks = self.chunker.split_documents([document])
        embedded = await embed_chunks(
            self.embedding, chunks, self.config.embeddings, limit=self._embed_slots
        )

        if chunks and not embedded:
            logger.error(f"No chunk of {document.path} could be embedded")
            return False

        await self.search_engine.add(embedded)
        logger.debug(f"Indexed {document.path}: {len(embedded)}/{len(chunks)} chunks")
        return True

    async def _index_file(self, file: VaultFile) -> bool:
        document = await self._read(file)
        if document is None:
            return False
        return await self._index_document(document)

    async def create(self, file: VaultFile) -> bool:
        """Index one file. Returns False if it could not be indexed."""
        created, _ = await self.create_all([file])
        return bool(created)

    async def create_all(self, files: Iterable[VaultFile]) -> tuple[list[str], list[str]]:
        """
        Index files concurrently.

        A file that cannot be read, embedded or added is logged and
        reported as failed; the other files are still indexed.

        Returns:
            (created paths, failed paths)
        """
        files = list(files)

        async def create_one(file: VaultFile) -> bool:
            try:
                return await self._index_file(file)
            except SearchEngineError as e:
                logger.error(f"Could not index {file.path}: {e}")
                return False

        results = await asyncio.gather(*(create_one(file) for file in files))

        created = [file.path for file, ok in zip(files, results) if ok]
        failed = [file.path for file, ok in zip(files, results) if not ok]
        return created, failed

    async def delete(self, file: VaultFile) -> None:
        await self.delete_all([file])

    async def delete_all(self, files: Iterable[VaultFile]) -> None:
        await self.search_engine.delete_by([file.path for file in files], PATH_FIELD)

    async def delete_by(self, value: Any, field: str) -> None:
        await self.search_engine.delete_by(value, field)

    async def update(self, file: VaultFile) -> bool:
        """Replace the entries of a modified file."""
        await self.delete(file)
        return await self.create(file)

    async def _chunks_at(self, path: str) -> list[DocumentChunk]:
        chunks: list[DocumentChunk] = []
        options = QueryOptions(limit=1000, filter=eq_filter(path, PATH_FIELD), retrieve_vectors=True)
        async for page in self.search_engine.all(options):
            chunks.extend(page)
        return chunks

    async def move(self, old_path: str, file: VaultFile) -> bool:
        """
        Point the entries of a renamed file at its new path.

        Chunks keep their ids and vectors, so nothing is re-embedded. If
        the file content changed since it was indexed, or if nothing is
        indexed under the old path, the file is indexed from scratch.
        """
        chunks = await self._chunks_at(old_path)
        if not chunks:
            logger.info(f"Nothing indexed under {old_path}, indexing {file.path}")
            return await self.create(file)

        document = await self._read(file)
        if document is None:
            await self.search_engine.delete_by(old_path, PATH_FIELD)
            return False

        stale = any(
            chunk.vector is None or chunk.metadata.content_hash != document.content_hash
            for chunk in chunks
        )
        if stale:
            logger.info(f"{old_path} changed while moving to {file.path}, re-indexing")
            await self.search_engine.delete_by(old_path, PATH_FIELD)
            return await self._index_document(document)

        moved = [
            chunk.model_copy(update={
                "metadata": chunk.metadata.model_copy(update={"path": file.path, "filename": file.name}),
            })
            for chunk in chunks
        ]
        await self.search_engine.add(moved)
        logger.info(f"Moved {len(moved)} chunks from {old_path} to {file.path}")
        return True

    async def healthy(self) -> bool:
        return await self.search_engine.healthy()

    async def create_index(self) -> bool:
        return await self.search_engine.create_index()

    async def reset_index(self) -> bool:
        return await self.search_engine.reset()

    async def _check_indexed(self, path: str) -> Optional[bool]:
        try:
            return bool(await self.search_engine.find_by(path, PATH_FIELD, limit=1))
        except SearchEngineError as e:
            logger.error(f"Could not check {path}: {e}")
            return None

    async def reconcile(self, files: Iterable[VaultFile]) -> SyncReport:
        """
        Run one reconciliation pass.

        Deletes entries whose path is not in ``files``, then indexes every
        file that has no entry. Stale deletion happens before creation and
        uses the path list computed at the start of the pass.

        Raises:
            SyncError: If stale entries could not be deleted
        """
        self.state = SyncState.COMPUTING_DELTA
        files = list(to_map(files).values())
        supported = [file for file in files if file.supported]
        paths = [file.path for file in supported]
        report = SyncReport(unsupported=[file.path for file in files if not file.supported])

        self.state = SyncState.DELETING_STALE
        try:
            if paths:
                report.deleted_filter = not_in_filter(paths, PATH_FIELD)
                await self.search_engine.delete_by_filter(report.deleted_filter)
            else:
                await self.search_engine.clear()
        except SearchEngineError as e:
            self.state = SyncState.FAILED
            logger.error(f"Sync failed while deleting stale entries: {e}")
            raise SyncError(f"Could not delete stale entries: {e}", cause=e) from e

        self.state = SyncState.CREATING_MISSING
        checks = await asyncio.gather(*(self._check_indexed(path) for path in paths))

        missing = [file for file, indexed in zip(supported, checks) if indexed is False]
        report.failed = [file.path for file, indexed in zip(supported, checks) if indexed is None]

        created, failed = await self.create_all(missing)
        report.created = created
        report.failed.extend(failed)

        self.state = SyncState.DONE
        logger.info(
            f"Sync done: {len(paths)} files, {len(created)} created, "
            f"{len(report.failed)} failed"
        )
        return report

    def sync(self, files: Iterable[VaultFile]) -> asyncio.Task[SyncReport]:
        """Start a reconciliation pass; await the task for its report."""
        return asyncio.create_task(self.reconcile(list(files)))

    async def plan(self, files: Iterable[VaultFile]) -> SyncPlan:
        """Compute what a pass would delete and create, without writing."""
        indexed: dict[str, dict[str, str]] = {}
        async for page in self.search_engine.all(QueryOptions(limit=1000)):
            for chunk in page:
                indexed.setdefault(chunk.metadata.path, {"path": chunk.metadata.path})

        supported = [file for file in to_map(files).values() if file.supported]
        to_delete, to_create = documents_to_delete_or_create(list(indexed.values()), supported)
        return SyncPlan(
            to_delete=[item["path"] for item in to_delete],
            to_create=[file.path for file in to_create],
        )
