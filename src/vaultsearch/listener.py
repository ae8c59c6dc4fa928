"""
Vault event handling.

Turns file tree notifications into sync operations. Modifications are
debounced per file through an explicit timer table: a new modification
of a file replaces its pending update instead of queueing another one.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable

from vaultsearch.document import SUPPORTED_EXTENSION, VaultFile
from vaultsearch.exceptions import VaultSearchError
from vaultsearch.service import PATH_FIELD, DocumentService
from vaultsearch.utils.files import get_extension
from vaultsearch.utils.logging import get_logger

logger = get_logger(__name__)


class VaultEventHandler:
    """
    Receives create, rename, delete and modify events for vault files.

    Only files with the supported extension are handled. Failures are
    logged; they never propagate into the event source.
    """

    def __init__(
        self,
        service: DocumentService,
        debounce: float = 10.0,
        extension: str = SUPPORTED_EXTENSION,
    ):
        self.service = service
        self.debounce = debounce
        self.extension = extension
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._running: set[asyncio.Task[Any]] = set()

    def _accepts(self, path: str) -> bool:
        return get_extension(path) == self.extension

    async def _guard(self, operation: Awaitable[Any], action: str) -> Any:
        try:
            return await operation
        except VaultSearchError as e:
            logger.error(f"Could not {action}: {e}")
            return None

    async def on_create(self, file: VaultFile) -> None:
        if not self._accepts(file.path):
            return
        await self._guard(self.service.create(file), f"index {file.path}")

    async def on_rename(self, file: VaultFile, old_path: str) -> None:
        self.cancel(old_path)

        if self._accepts(file.path):
            await self._guard(self.service.move(old_path, file), f"move {old_path} to {file.path}")
        elif self._accepts(old_path):
            # Renamed to an unsupported type: it leaves the index
            await self._guard(
                self.service.delete_by(old_path, PATH_FIELD),
                f"remove {old_path}",
            )

    async def on_delete(self, file: VaultFile) -> None:
        if not self._accepts(file.path):
            return
        self.cancel(file.path)
        await self._guard(self.service.delete(file), f"remove {file.path}")

    def on_modify(self, file: VaultFile) -> None:
        if not self._accepts(file.path):
            return
        self.arm(file)

    @property
    def pending(self) -> set[str]:
        """Paths with an update waiting for the quiet window to elapse."""
        return set(self._timers)

    def arm(self, file: VaultFile) -> None:
        """Schedule an update of ``file``, replacing any pending one."""
        self.cancel(file.path)
        loop = asyncio.get_running_loop()
        self._timers[file.path] = loop.call_later(self.debounce, self._fire, file)

    def cancel(self, path: str) -> bool:
        """Drop the pending update of ``path``. Returns True if one existed."""
        handle = self._timers.pop(path, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def _fire(self, file: VaultFile) -> None:
        self._timers.pop(file.path, None)
        task = asyncio.create_task(self._guard(self.service.update(file), f"update {file.path}"))
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    async def drain(self) -> None:
        """Wait for updates that already started."""
        if self._running:
            await asyncio.gather(*self._running)

    async def close(self) -> None:
        """Cancel pending updates and wait for running ones."""
        for path in list(self._timers):
            self.cancel(path)
        await self.drain()
