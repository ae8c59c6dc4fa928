"""Tests for documents, chunks and error values."""

import pytest

from vaultsearch import (
    ChunkMetadata,
    Document,
    DocumentChunk,
    DocumentError,
    VaultFile,
    is_err,
    is_ok,
)
from vaultsearch.document import VECTOR_FIELD, Lines, Loc
from vaultsearch.result import err, unwrap


def make_chunk(vector=None) -> DocumentChunk:
    return DocumentChunk(
        id="chunk-1",
        page_content="Plant tomatoes in May.",
        metadata=ChunkMetadata(
            document_id="doc-1",
            filename="garden.md",
            path="projects/garden.md",
            extension="md",
            loc=Loc(lines=Lines(from_=3, to=3)),
            content_hash="abc",
        ),
        vector=vector,
    )


class TestVaultFile:
    """Tests for VaultFile."""

    def test_from_path(self):
        file = VaultFile.from_path("projects/garden.md")

        assert file.name == "garden.md"
        assert file.extension == "md"
        assert file.path == "projects/garden.md"
        assert file.supported

    def test_unsupported(self):
        assert not VaultFile.from_path("photo.png").supported
        assert VaultFile.from_path("Makefile").extension == ""


class TestDocument:
    """Tests for reading documents."""

    @pytest.mark.asyncio
    async def test_from_files(self, vault):
        files = [VaultFile.from_path("Reading.md"), VaultFile.from_path("projects/house.md")]

        documents = await Document.from_files(files, vault)

        assert all(is_ok(d) for d in documents)
        assert [d.path for d in documents] == ["Reading.md", "projects/house.md"]
        assert documents[1].page_content == "# House\n\nFix the roof before winter.\n"
        assert documents[1].metadata.filename == "house.md"
        assert documents[0].id != documents[1].id

    @pytest.mark.asyncio
    async def test_new_id_on_every_read(self, vault):
        file = VaultFile.from_path("Reading.md")

        first = (await Document.from_files([file], vault))[0]
        second = (await Document.from_files([file], vault))[0]

        assert first.id != second.id
        assert first.content_hash == second.content_hash

    @pytest.mark.asyncio
    async def test_unsupported_extension_is_error_value(self, vault):
        documents = await Document.from_files([VaultFile.from_path("attachments/photo.png")], vault)

        assert is_err(documents[0])
        assert documents[0].value.type == "extension"

    @pytest.mark.asyncio
    async def test_unreadable_file_is_error_value(self, vault):
        files = [VaultFile.from_path("missing.md"), VaultFile.from_path("Reading.md")]

        documents = await Document.from_files(files, vault)

        assert is_err(documents[0])
        assert documents[0].value.type == "read"
        assert is_ok(documents[1])

    def test_alias(self):
        doc = Document.model_validate({
            "id": "d",
            "pageContent": "text",
            "metadata": {"filename": "a.md", "extension": "md", "path": "a.md"},
        })

        assert doc.page_content == "text"
        assert doc.path == "a.md"
        assert "a.md" in repr(doc)


class TestDocumentChunk:
    """Tests for the index entry layout of chunks."""

    def test_to_index_entry(self):
        entry = make_chunk(vector=[0.1, 0.2]).to_index_entry()

        assert entry["pageContent"] == "Plant tomatoes in May."
        assert entry["metadata"]["documentId"] == "doc-1"
        assert entry["metadata"]["contentHash"] == "abc"
        assert entry["metadata"]["loc"] == {"lines": {"from": 3, "to": 3}}
        assert entry["_vectors"] == {VECTOR_FIELD: [0.1, 0.2]}
        assert "vector" not in entry

    def test_to_index_entry_without_vector(self):
        assert "_vectors" not in make_chunk().to_index_entry()

    def test_from_index_entry_with_retrieved_vectors(self):
        entry = make_chunk().to_index_entry()
        entry["_vectors"] = {VECTOR_FIELD: {"embeddings": [[0.5, 0.5]], "regenerate": False}}

        chunk = DocumentChunk.from_index_entry(entry)

        assert chunk.vector == [0.5, 0.5]
        assert chunk.metadata.loc.lines.from_ == 3
        assert chunk.metadata.path == "projects/garden.md"

    def test_from_index_entry_without_vectors(self):
        chunk = DocumentChunk.from_index_entry(make_chunk().to_index_entry())

        assert chunk.vector is None
        assert chunk.id == "chunk-1"


class TestResult:
    """Tests for error values."""

    def test_narrowing(self):
        failure = err(DocumentError(type="read", message="gone"))

        assert is_err(failure)
        assert not is_ok(failure)
        assert is_ok("value")

    def test_unwrap(self):
        assert unwrap(3) == 3
        with pytest.raises(ValueError):
            unwrap(err(DocumentError(type="extension", message="png")))
