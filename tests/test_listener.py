"""Tests for vault event handling."""

import asyncio
import logging

import pytest

from vaultsearch import VaultEventHandler, VaultFile
from vaultsearch.exceptions import SearchEngineError
from vaultsearch.service import PATH_FIELD

DEBOUNCE = 0.05


class StubService:
    """Records the sync operations the handler asks for."""

    def __init__(self, fail: bool = False):
        self.calls: list[tuple] = []
        self.fail = fail

    async def _record(self, *call):
        self.calls.append(call)
        if self.fail:
            raise SearchEngineError("index unreachable")
        return True

    async def create(self, file):
        return await self._record("create", file.path)

    async def update(self, file):
        return await self._record("update", file.path)

    async def delete(self, file):
        return await self._record("delete", file.path)

    async def move(self, old_path, file):
        return await self._record("move", old_path, file.path)

    async def delete_by(self, value, field):
        return await self._record("delete_by", value, field)


@pytest.fixture
def stub():
    return StubService()


@pytest.fixture
def handler(stub):
    return VaultEventHandler(stub, debounce=DEBOUNCE)


def md(path: str) -> VaultFile:
    return VaultFile.from_path(path)


class TestEvents:
    """Tests for create, rename and delete events."""

    @pytest.mark.asyncio
    async def test_create(self, handler, stub):
        await handler.on_create(md("new.md"))
        await handler.on_create(md("image.png"))

        assert stub.calls == [("create", "new.md")]

    @pytest.mark.asyncio
    async def test_delete(self, handler, stub):
        await handler.on_delete(md("old.md"))
        await handler.on_delete(md("old.pdf"))

        assert stub.calls == [("delete", "old.md")]

    @pytest.mark.asyncio
    async def test_rename(self, handler, stub):
        await handler.on_rename(md("b.md"), "a.md")

        assert stub.calls == [("move", "a.md", "b.md")]

    @pytest.mark.asyncio
    async def test_rename_to_unsupported_type(self, handler, stub):
        await handler.on_rename(md("a.txt"), "a.md")

        assert stub.calls == [("delete_by", "a.md", PATH_FIELD)]

    @pytest.mark.asyncio
    async def test_rename_between_unsupported_types(self, handler, stub):
        await handler.on_rename(md("a.txt"), "a.csv")

        assert stub.calls == []

    @pytest.mark.asyncio
    async def test_failures_are_logged(self, caplog):
        handler = VaultEventHandler(StubService(fail=True), debounce=DEBOUNCE)

        with caplog.at_level(logging.ERROR, logger="vaultsearch.listener"):
            await handler.on_create(md("new.md"))

        assert "Could not index new.md" in caplog.text


class TestDebounce:
    """Tests for debounced modifications."""

    @pytest.mark.asyncio
    async def test_rapid_saves_coalesce(self, handler, stub):
        file = md("note.md")

        for _ in range(3):
            handler.on_modify(file)
            await asyncio.sleep(DEBOUNCE / 5)

        assert handler.pending == {"note.md"}
        assert stub.calls == []

        await asyncio.sleep(DEBOUNCE * 2)
        await handler.drain()

        assert stub.calls == [("update", "note.md")]
        assert handler.pending == set()

    @pytest.mark.asyncio
    async def test_files_are_debounced_separately(self, handler, stub):
        handler.on_modify(md("a.md"))
        handler.on_modify(md("b.md"))

        await asyncio.sleep(DEBOUNCE * 2)
        await handler.drain()

        assert sorted(stub.calls) == [("update", "a.md"), ("update", "b.md")]

    @pytest.mark.asyncio
    async def test_unsupported_modifications_are_ignored(self, handler):
        handler.on_modify(md("photo.png"))

        assert handler.pending == set()

    @pytest.mark.asyncio
    async def test_delete_cancels_pending_update(self, handler, stub):
        handler.on_modify(md("note.md"))
        await handler.on_delete(md("note.md"))

        await asyncio.sleep(DEBOUNCE * 2)

        assert stub.calls == [("delete", "note.md")]

    @pytest.mark.asyncio
    async def test_rename_cancels_pending_update(self, handler, stub):
        handler.on_modify(md("a.md"))
        await handler.on_rename(md("b.md"), "a.md")

        await asyncio.sleep(DEBOUNCE * 2)

        assert stub.calls == [("move", "a.md", "b.md")]

    @pytest.mark.asyncio
    async def test_close_drops_pending_updates(self, handler, stub):
        handler.on_modify(md("note.md"))

        await handler.close()
        await asyncio.sleep(DEBOUNCE * 2)

        assert stub.calls == []
        assert not handler.cancel("note.md")
