"""
Test configuration and fixtures.
"""

import json
import re
from pathlib import Path
from typing import Any

import httpx
import pytest

from vaultsearch import (
    DocumentService,
    DocumentServiceConfig,
    EmbeddingOptions,
    FakeEmbedding,
    MemorySearchEngine,
    query_embeddings_provider,
)
from vaultsearch.vectorstore import parse_filter

NOTES = {
    "Reading.md": "# Reading\n\nBooks to read this year.\n\n- Dune\n- Hyperion\n",
    "projects/garden.md": "# Garden\n\nPlant tomatoes in May. Water every morning.\n",
    "projects/house.md": "# House\n\nFix the roof before winter.\n",
    "attachments/photo.png": "not really a png",
}


class FakeMeili:
    """A tiny Meilisearch stand-in served through httpx.MockTransport.

    Tasks complete immediately; task types listed in ``fail_types`` end
    in the ``failed`` state.
    """

    def __init__(self, index_uid: str = "test-index"):
        self.index_uid = index_uid
        self.indexes: set[str] = set()
        self.documents: dict[str, dict[str, Any]] = {}
        self.tasks: dict[int, dict[str, Any]] = {}
        self.requests: list[tuple[str, str, Any]] = []
        self.fail_types: set[str] = set()
        self.available = True
        self.search_hits: list[dict[str, Any]] = []

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def _task(self, type: str, error: dict[str, Any] | None = None) -> httpx.Response:
        uid = len(self.tasks)
        if type in self.fail_types:
            error = {"message": f"{type} broke", "code": "internal"}
        failed = error is not None
        self.tasks[uid] = {
            "uid": uid,
            "indexUid": self.index_uid,
            "type": type,
            "status": "failed" if failed else "succeeded",
            "error": error,
            "duration": "PT0.001S",
            "startedAt": "2026-01-01T00:00:00Z",
            "finishedAt": "2026-01-01T00:00:01Z",
        }
        return httpx.Response(202, json={"taskUid": uid, "indexUid": self.index_uid, "status": "enqueued", "type": type})

    def _matches(self, entry: dict[str, Any], filter: str) -> bool:
        field, op, values = parse_filter(filter)
        value: Any = entry
        for part in field.split("."):
            value = value.get(part) if isinstance(value, dict) else None
        present = value in values
        return present != (op == "NOT IN")

    def handler(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path
        body = json.loads(request.content) if request.content else None
        self.requests.append((method, path, body))

        if path == "/health":
            if self.available:
                return httpx.Response(200, json={"status": "available"})
            return httpx.Response(503, json={"message": "unavailable"})

        if path.startswith("/tasks/"):
            return httpx.Response(200, json=self.tasks[int(path.rsplit("/", 1)[-1])])

        if path == "/indexes" and method == "POST":
            self.indexes.add(body["uid"])
            return self._task("indexCreation")

        match = re.match(r"^/indexes/([^/]+)(/.*)?$", path)
        if not match:
            return httpx.Response(404, json={"code": "not_found"})
        uid, rest = match.group(1), match.group(2) or ""

        if rest == "":
            if method == "GET":
                if uid in self.indexes:
                    return httpx.Response(200, json={"uid": uid, "primaryKey": "id"})
                return httpx.Response(404, json={"code": "index_not_found", "message": f"Index `{uid}` not found."})
            if method == "DELETE":
                if uid not in self.indexes:
                    return self._task("indexDeletion", {"message": f"Index `{uid}` not found.", "code": "index_not_found"})
                self.indexes.discard(uid)
                self.documents.clear()
                return self._task("indexDeletion")

        if rest == "/documents":
            if method == "POST":
                for entry in body:
                    self.documents[entry["id"]] = entry
                return self._task("documentAdditionOrUpdate")
            if method == "DELETE":
                self.documents.clear()
                return self._task("documentDeletion")

        if rest == "/documents/delete-batch":
            for id in body:
                self.documents.pop(id, None)
            return self._task("documentDeletion")

        if rest == "/documents/delete":
            for id, entry in list(self.documents.items()):
                if self._matches(entry, body["filter"]):
                    del self.documents[id]
            return self._task("documentDeletion")

        if rest == "/documents/fetch":
            entries = list(self.documents.values())
            if body.get("filter"):
                entries = [e for e in entries if self._matches(e, body["filter"])]
            offset, limit = body.get("offset", 0), body.get("limit", 20)
            return httpx.Response(200, json={
                "results": entries[offset : offset + limit],
                "offset": offset,
                "limit": limit,
                "total": len(entries),
            })

        if rest == "/search":
            return httpx.Response(200, json={
                "hits": self.search_hits,
                "processingTimeMs": 3,
                "estimatedTotalHits": len(self.search_hits),
            })

        if rest.startswith("/settings/"):
            return self._task("settingsUpdate")

        return httpx.Response(404, json={"code": "not_found", "message": path})


def write_vault(root: Path, notes: dict[str, str]) -> Path:
    for relative, content in notes.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def vault(tmp_path):
    """A vault with three markdown notes and one image."""
    return write_vault(tmp_path / "vault", NOTES)


@pytest.fixture
def fake_meili():
    return FakeMeili()


@pytest.fixture
def embedding():
    return FakeEmbedding()


@pytest.fixture
def memory_engine(embedding):
    return MemorySearchEngine(query_embeddings_provider(embedding, 32))


@pytest.fixture
def service_config(vault):
    return DocumentServiceConfig(
        vault_root=str(vault),
        chunk_size=200,
        chunk_overlap=50,
        embeddings=EmbeddingOptions(size=32, task="retrieval.passage"),
    )


@pytest.fixture
def service(memory_engine, embedding, service_config):
    return DocumentService(memory_engine, embedding, service_config)
