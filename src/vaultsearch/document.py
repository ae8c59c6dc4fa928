"""Document and chunk data structures for the vault index."""

import asyncio
import hashlib
import uuid
from pathlib import Path
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .result import DocumentError, Err, err
from .utils.files import get_extension, get_file_name

SUPPORTED_EXTENSION = "md"

# Name of the user-provided embedder configured on the index.
VECTOR_FIELD = "pageContent_embeddings"


class VaultFile(BaseModel):
    """A file in the vault as reported by the file tree.

    Attributes:
        name: File name including extension
        extension: Extension without the leading dot
        path: Vault-relative path, the key used for reconciliation
    """

    model_config = ConfigDict(frozen=True)

    name: str
    extension: str
    path: str

    @classmethod
    def from_path(cls, path: str) -> "VaultFile":
        name = get_file_name(path)
        return cls(name=name, extension=get_extension(name) or "", path=path)

    @property
    def supported(self) -> bool:
        return self.extension == SUPPORTED_EXTENSION


class DocumentMetadata(BaseModel):
    filename: str
    extension: Literal["md"]
    path: str


class Document(BaseModel):
    """The full text of one vault file.

    A Document never changes. When the file changes, a new Document with a
    new id is read and the old one is dropped from the index.

    Attributes:
        id: Identifier generated on read
        page_content: The text content of the file
        metadata: File name, extension and vault-relative path
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    page_content: str = Field(alias="pageContent")
    metadata: DocumentMetadata

    @property
    def path(self) -> str:
        return self.metadata.path

    @property
    def content_hash(self) -> str:
        return hashlib.sha256(self.page_content.encode("utf-8")).hexdigest()

    def __repr__(self) -> str:
        return f"Document(id={self.id!r}, path={self.metadata.path!r})"

    @classmethod
    async def from_files(
        cls,
        files: list[VaultFile],
        vault_root: Union[str, Path],
    ) -> list[Union["Document", Err[DocumentError]]]:
        """Read vault files into Documents.

        Args:
            files: Files to read
            vault_root: Directory the file paths are relative to

        Returns:
            One entry per file, in order: a Document or an error value
        """
        return list(await asyncio.gather(
            *(cls._from_file(file, Path(vault_root)) for file in files)
        ))

    @classmethod
    async def _from_file(
        cls,
        file: VaultFile,
        vault_root: Path,
    ) -> Union["Document", Err[DocumentError]]:
        if file.extension != SUPPORTED_EXTENSION:
            return err(DocumentError(
                type="extension",
                message=f"unsupported extension '{file.extension}'",
            ))

        abs_path = vault_root / file.path
        loop = asyncio.get_running_loop()
        try:
            content = await loop.run_in_executor(
                None,
                lambda: abs_path.read_text(encoding="utf-8"),
            )
        except (OSError, UnicodeDecodeError):
            return err(DocumentError(type="read", message=f"could not read {abs_path}"))

        return cls(
            id=str(uuid.uuid4()),
            page_content=content,
            metadata=DocumentMetadata(
                filename=file.name,
                extension=SUPPORTED_EXTENSION,
                path=file.path,
            ),
        )


class Lines(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: int = Field(alias="from")
    to: int


class Loc(BaseModel):
    lines: Lines


class ChunkMetadata(BaseModel):
    """Provenance of a chunk.

    ``document_id`` points back at the Document the chunk was cut from in
    the same pipeline run. It is optional only so that entries read back
    from the index validate even when written by older versions.
    """

    model_config = ConfigDict(populate_by_name=True)

    document_id: Optional[str] = Field(default=None, alias="documentId")
    filename: str
    path: str
    extension: str
    loc: Loc
    content_hash: Optional[str] = Field(default=None, alias="contentHash")


class DocumentChunk(BaseModel):
    """A piece of a Document, the unit stored in the index.

    Attributes:
        id: Unique identifier of the chunk, also the index primary key
        page_content: The chunk text, an exact substring of the document
        metadata: Provenance, see ChunkMetadata
        vector: Embedding vector, set once the chunk has been embedded
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    page_content: str = Field(alias="pageContent")
    metadata: ChunkMetadata
    vector: Optional[list[float]] = None

    def __repr__(self) -> str:
        preview = self.page_content[:30] + "..." if len(self.page_content) > 30 else self.page_content
        return f"DocumentChunk(id={self.id!r}, path={self.metadata.path!r}, content={preview!r})"

    def to_index_entry(self) -> dict[str, Any]:
        """Serialize into the document layout stored in the index."""
        entry = self.model_dump(by_alias=True, exclude={"vector"}, exclude_none=True)
        if self.vector is not None:
            entry["_vectors"] = {VECTOR_FIELD: self.vector}
        return entry

    @classmethod
    def from_index_entry(cls, entry: dict[str, Any]) -> "DocumentChunk":
        """Parse a document returned by the index.

        Vectors come back either as a plain list or, when requested with
        ``retrieveVectors``, as ``{"embeddings": [[...]], "regenerate": false}``.
        """
        data = dict(entry)
        vectors = data.pop("_vectors", None) or {}
        vector = vectors.get(VECTOR_FIELD)
        if isinstance(vector, dict):
            embeddings = vector.get("embeddings") or []
            vector = embeddings[0] if embeddings else None
        data["vector"] = vector
        return cls.model_validate(data)


class SearchHit(BaseModel):
    """A chunk returned by a search, with its ranking score when known."""

    chunk: DocumentChunk
    score: Optional[float] = None


class SearchResponse(BaseModel):
    hits: list[SearchHit] = Field(default_factory=list)
    query: Optional[str] = None
    processing_time_ms: int = 0
    estimated_total_hits: Optional[int] = None
