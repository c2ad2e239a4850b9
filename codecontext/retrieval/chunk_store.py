"""JSON-backed chunk store.

Loads chunk records produced by the indexing path from a JSON file and reads
file content from the repository working tree.

Author: Hay Hoffman
"""

import json
import logging
import threading
from collections.abc import Iterable
from pathlib import Path

from codecontext.exceptions import ChunkLookupError
from models.chunk import ChunkRecord

logger = logging.getLogger(__name__)

__all__ = ["JSONChunkStore"]


class JSONChunkStore:
    """Chunk metadata in memory, file content read lazily from disk.

    Chunks are stored in one JSON array (or ``{"chunks": [...]}``). The store
    keeps an id index and a per-file index (ordered by chunk_index) and caches
    file contents after the first read.

    Attributes:
        repo_root: Repository root that chunk file paths are relative to
        chunk_cache: chunk_id -> ChunkRecord
        chunks_by_file: file_path -> chunks ordered by chunk_index
    """

    def __init__(self, records: Iterable[ChunkRecord], repo_root: Path):
        """Initialize chunk store.

        Args:
            records: Chunk records to index
            repo_root: Repository root for reading file content
        """
        self.repo_root = Path(repo_root)
        self.chunk_cache: dict[str, ChunkRecord] = {}
        self.chunks_by_file: dict[str, list[ChunkRecord]] = {}
        self._content_cache: dict[str, str] = {}
        self._content_lock = threading.Lock()

        self._index_records(records)

    @classmethod
    def from_file(cls, chunks_file: Path, repo_root: Path) -> "JSONChunkStore":
        """Load chunk records from a JSON file.

        Raises:
            OSError: If the file cannot be read
            ValueError: If the JSON or a record is invalid
        """
        chunks_file = Path(chunks_file)
        logger.info(f"Loading chunks from {chunks_file}")
        try:
            with open(chunks_file, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load chunks from {chunks_file}: {e}")
            raise

        if isinstance(data, dict):
            data = data.get("chunks", [])

        store = cls((ChunkRecord.model_validate(item) for item in data), repo_root)
        logger.info(
            f"Loaded {len(store.chunk_cache)} chunks across "
            f"{len(store.chunks_by_file)} files from {chunks_file.name}"
        )
        return store

    def _index_records(self, records: Iterable[ChunkRecord]) -> None:
        for record in records:
            self.chunk_cache[record.chunk_id] = record
            self.chunks_by_file.setdefault(record.file_path, []).append(record)

        for chunks in self.chunks_by_file.values():
            chunks.sort(key=lambda c: c.chunk_index)

    def get_chunk(self, chunk_id: str) -> ChunkRecord:
        """Load a single chunk by ID.

        Raises:
            ChunkLookupError: If chunk_id not found
        """
        if chunk_id not in self.chunk_cache:
            raise ChunkLookupError(
                f"Chunk {chunk_id} not found. Available chunks: {len(self.chunk_cache)}"
            )
        return self.chunk_cache[chunk_id]

    def get_chunks(self, chunk_ids: Iterable[str]) -> list[ChunkRecord]:
        records = []
        for chunk_id in chunk_ids:
            record = self.chunk_cache.get(chunk_id)
            if record is None:
                logger.debug(f"Skipping unknown chunk id: {chunk_id}")
                continue
            records.append(record)
        return records

    def get_file_chunks(self, file_path: str) -> list[ChunkRecord]:
        if file_path not in self.chunks_by_file:
            raise ChunkLookupError(f"File not indexed: {file_path}")
        return list(self.chunks_by_file[file_path])

    def get_file_content(self, file_path: str) -> str:
        with self._content_lock:
            cached = self._content_cache.get(file_path)
        if cached is not None:
            return cached

        content = (self.repo_root / file_path).read_text(encoding="utf-8")
        with self._content_lock:
            self._content_cache[file_path] = content
        return content

    def all_file_paths(self) -> set[str]:
        return set(self.chunks_by_file)
