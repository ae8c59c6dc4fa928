"""Document chunking."""

import uuid
from typing import Optional

from .base import BaseChunker
from .document import ChunkMetadata, Document, DocumentChunk, Lines, Loc

Span = tuple[int, int]


class RecursiveChunker(BaseChunker):
    """Recursively chunk documents using multiple separators.

    Tries to split on larger separators first (paragraphs), then
    progressively smaller ones (lines, sentences, words, characters)
    for pieces that still do not fit. The resulting pieces are merged
    greedily into windows of at most ``chunk_size`` characters, and each
    window starts ``overlap`` characters before the end of the previous
    one, fewer only when the next piece would not fit otherwise.

    Separators stay attached to the piece they end, so every chunk is an
    exact substring of the document and consecutive chunks never leave a
    gap between them.
    """

    DEFAULT_SEPARATORS = ["\n\n", "\n", ". ", " ", ""]

    def __init__(
        self,
        chunk_size: int = 3000,
        overlap: int = 500,
        separators: Optional[list[str]] = None,
    ):
        """Initialize the recursive chunker.

        Args:
            chunk_size: Maximum characters per chunk
            overlap: Characters shared by consecutive chunks
            separators: List of separators to try (in order of preference)
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if overlap < 0:
            raise ValueError("Overlap must not be negative")
        if overlap >= chunk_size:
            raise ValueError("Overlap must be less than chunk_size")

        self.chunk_size = chunk_size
        self.overlap = overlap
        self.separators = separators or self.DEFAULT_SEPARATORS

    def chunk(self, document: Document) -> list[DocumentChunk]:
        """Split a document into chunks carrying their line span."""
        text = document.page_content
        content_hash = document.content_hash
        chunks = []

        for start, end in self.split_text(text):
            content = text[start:end]
            if not content.strip():
                continue

            chunks.append(DocumentChunk(
                id=str(uuid.uuid4()),
                page_content=content,
                metadata=ChunkMetadata(
                    document_id=document.id,
                    filename=document.metadata.filename,
                    path=document.metadata.path,
                    extension=document.metadata.extension,
                    loc=Loc(lines=Lines(
                        from_=text.count("\n", 0, start) + 1,
                        to=text.count("\n", 0, end - 1) + 1,
                    )),
                    content_hash=content_hash,
                ),
            ))

        return chunks

    def split_text(self, text: str) -> list[Span]:
        """Return the ``(start, end)`` offsets of each chunk in text order."""
        if not text:
            return []
        return self._merge(self._split(text, 0, len(text), self.separators))

    def _split(self, text: str, start: int, end: int, separators: list[str]) -> list[Span]:
        """Cut a range into contiguous pieces of at most ``chunk_size``."""
        # First separator present in this range; the rest are kept for
        # pieces that are still too large.
        separator, remaining = separators[-1], []
        for i, sep in enumerate(separators):
            if sep == "" or text.find(sep, start, end) != -1:
                separator, remaining = sep, separators[i + 1:]
                break

        pieces: list[Span] = []

        for piece in self._pieces(text, start, end, separator):
            if piece[1] - piece[0] <= self.chunk_size:
                pieces.append(piece)
            elif remaining:
                pieces.extend(self._split(text, piece[0], piece[1], remaining))
            else:
                pieces.extend(
                    (i, min(i + self.chunk_size, piece[1]))
                    for i in range(piece[0], piece[1], self.chunk_size)
                )

        return pieces

    @staticmethod
    def _pieces(text: str, start: int, end: int, separator: str) -> list[Span]:
        """Cut a range after each occurrence of the separator."""
        if separator == "":
            return [(i, i + 1) for i in range(start, end)]

        pieces = []
        position = start
        while True:
            index = text.find(separator, position, end)
            if index == -1:
                break
            pieces.append((position, index + len(separator)))
            position = index + len(separator)

        if position < end:
            pieces.append((position, end))

        return pieces

    def _merge(self, pieces: list[Span]) -> list[Span]:
        """Greedily merge contiguous pieces into overlapping windows."""
        spans = []
        start = end = pieces[0][0]

        for _, piece_end in pieces:
            if end > start and piece_end - start > self.chunk_size:
                spans.append((start, end))
                # The next window repeats the last ``overlap`` characters,
                # less when the incoming piece would not fit otherwise.
                start = max(end - self.overlap, piece_end - self.chunk_size, start)
            end = piece_end

        if end > start:
            spans.append((start, end))

        return spans
