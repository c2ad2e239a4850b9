"""Collaborator contracts consumed by the retrieval pipeline.

Concrete adapters (BM25, FAISS, cross-encoder, JSON chunk store) live in
their own modules; tests substitute hand-written fakes.

Author: Hay Hoffman
"""

from collections.abc import Iterable, Sequence
from typing import Protocol

from models.chunk import ChunkRecord

__all__ = [
    "VectorChannel",
    "LexicalChannel",
    "Reranker",
    "ChunkStore",
]


class VectorChannel(Protocol):
    def search(
        self,
        query: str,
        limit: int,
        language_filter: Sequence[str] | None = None,
    ) -> list[tuple[str, float]]:
        """Return (chunk_id, distance) pairs, nearest first."""
        ...


class LexicalChannel(Protocol):
    def search(
        self,
        query: str,
        limit: int,
        language_filter: Sequence[str] | None = None,
    ) -> list[tuple[str, float]]:
        """Return (chunk_id, score) pairs, best first."""
        ...


class Reranker(Protocol):
    def rerank(self, query: str, texts: Sequence[str]) -> list[float]:
        """Return relevance scores aligned with ``texts``."""
        ...


class ChunkStore(Protocol):
    def get_chunks(self, chunk_ids: Iterable[str]) -> list[ChunkRecord]:
        """Records for the known ids, in input order (unknown ids skipped)."""
        ...

    def get_file_chunks(self, file_path: str) -> list[ChunkRecord]:
        """All chunks of a file ordered by chunk_index.

        Raises:
            ChunkLookupError: If the file is not indexed
        """
        ...

    def get_file_content(self, file_path: str) -> str:
        """Full text of a file.

        Raises:
            OSError: If the file cannot be read
            UnicodeDecodeError: If the file is not valid UTF-8
        """
        ...

    def all_file_paths(self) -> set[str]:
        ...
