"""
Application wiring: health gate, initial sync and status reporting.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable, Literal, Optional

from pydantic import BaseModel

from vaultsearch.document import SUPPORTED_EXTENSION, VaultFile
from vaultsearch.embeddings import EmbeddingOptions, HttpEmbedding, query_embeddings_provider
from vaultsearch.exceptions import VaultSearchError
from vaultsearch.listener import VaultEventHandler
from vaultsearch.retry import StopFn, retry_until_done
from vaultsearch.search_engine import MeiliSearchEngine
from vaultsearch.service import DocumentService, DocumentServiceConfig, SyncReport
from vaultsearch.utils.config import AppConfig
from vaultsearch.utils.logging import get_logger, set_log_level

logger = get_logger(__name__)


class SyncStatus(BaseModel):
    """What the status indicator shows."""
    state: Literal["waiting", "syncing", "ok", "failed"] = "waiting"
    reason: Optional[str] = None


StatusCallback = Callable[[SyncStatus], None]
FilesProvider = Callable[[], list[VaultFile]]


def scan_vault(root: str | Path, extension: str = SUPPORTED_EXTENSION) -> list[VaultFile]:
    """List the vault files with the given extension, skipping hidden folders."""
    root = Path(root)
    files = []
    for path in sorted(root.rglob(f"*.{extension}")):
        relative = path.relative_to(root)
        if any(part.startswith(".") for part in relative.parts) or not path.is_file():
            continue
        files.append(VaultFile.from_path(relative.as_posix()))
    return files


class VaultIndexer:
    """
    Gates the initial sync on index health and tracks the sync status.

    ``start`` never raises for remote failures: they end in a ``failed``
    status carrying the reason.
    """

    def __init__(
        self,
        service: DocumentService,
        files_provider: FilesProvider,
        health_interval: float = 5.0,
        listener: Optional[VaultEventHandler] = None,
    ):
        self.service = service
        self.files_provider = files_provider
        self.health_interval = health_interval
        self.listener = listener
        self.status = SyncStatus()
        self._observers: list[StatusCallback] = []

    def on_status(self, callback: StatusCallback) -> None:
        self._observers.append(callback)

    def _set_status(self, state: str, reason: Optional[str] = None) -> None:
        self.status = SyncStatus(state=state, reason=reason)
        if reason:
            logger.info(f"Status: {state} ({reason})")
        else:
            logger.info(f"Status: {state}")
        for callback in self._observers:
            callback(self.status)

    async def wait_until_healthy(self) -> None:
        """Poll the index service until it reports available."""
        async def check(done: StopFn) -> None:
            if await self.service.healthy():
                done()
                return
            self._set_status("waiting", "search index unavailable")

        await retry_until_done(check, self.health_interval)

    async def _sync(self) -> Optional[SyncReport]:
        try:
            await self.service.create_index()
            self._set_status("syncing")
            files = await asyncio.get_running_loop().run_in_executor(None, self.files_provider)
            report = await self.service.sync(files)
        except VaultSearchError as e:
            self._set_status("failed", str(e))
            return None

        if report.failed:
            self._set_status("ok", f"{len(report.failed)} files could not be indexed")
        else:
            self._set_status("ok")
        return report

    async def start(self) -> Optional[SyncReport]:
        """Wait for the index, create it if needed and run the initial sync."""
        await self.wait_until_healthy()
        return await self._sync()

    async def reset(self) -> Optional[SyncReport]:
        """Drop the index and rebuild it from the vault."""
        try:
            await self.service.search_engine.delete_index()
        except VaultSearchError as e:
            self._set_status("failed", str(e))
            return None
        return await self._sync()

    async def close(self) -> None:
        """Cancel pending updates and close the remote clients."""
        if self.listener is not None:
            await self.listener.close()
        await self.service.search_engine.close()
        await self.service.embedding.close()


def build_indexer(config: AppConfig) -> VaultIndexer:
    """Wire the Meilisearch-backed indexer described by ``config``."""
    set_log_level(config.log_level)

    embedding = HttpEmbedding(config.embeddings_url)
    search_engine = MeiliSearchEngine(
        host=config.meili_host,
        index_uid=config.index_uid,
        embeddings_provider=query_embeddings_provider(embedding, config.embedding_size),
        api_key=config.meili_master_key,
        dimensions=config.embedding_size,
    )
    service = DocumentService(
        search_engine,
        embedding,
        DocumentServiceConfig(
            vault_root=config.vault_root,
            chunk_size=config.chunk_size,
            chunk_overlap=config.chunk_overlap,
            embeddings=EmbeddingOptions(size=config.embedding_size, task="retrieval.passage"),
            max_concurrency=config.embedding_concurrency,
        ),
    )
    listener = VaultEventHandler(service, debounce=config.debounce_seconds)

    return VaultIndexer(
        service,
        lambda: scan_vault(config.vault_root),
        health_interval=config.health_interval,
        listener=listener,
    )
