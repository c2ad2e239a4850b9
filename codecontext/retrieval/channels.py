"""Default retrieval channels: BM25 lexical search and FAISS vector search.

Both channels return ranked (chunk_id, value) pairs and accept an optional
language filter; the search service only consumes the id order.

Author: Hay Hoffman
"""

import json
import logging
import re
import threading
from collections.abc import Iterable, Sequence
from pathlib import Path

import numpy as np
from rank_bm25 import BM25Okapi

from models.chunk import ChunkRecord
from settings import (
    BM25_MIN_TOKEN_LENGTH,
    BM25_SPLIT_CAMELCASE,
    BM25_SPLIT_SNAKE_CASE,
    EMBEDDING_MODEL,
)

logger = logging.getLogger(__name__)

__all__ = [
    "tokenize_code",
    "BM25LexicalChannel",
    "FAISSVectorChannel",
    "INDEX_FILE_NAME",
    "ID_MAPPING_FILE_NAME",
]

INDEX_FILE_NAME = "chunks_faiss.index"
ID_MAPPING_FILE_NAME = "chunks_id_mapping.json"

# Symbol tokens (from the breadcrumb) are counted this many times per chunk
SYMBOL_FIELD_WEIGHT = 2

# Pre-compiled regex patterns for tokenization
_CAMEL_CASE_PATTERN_1 = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")  # getUser -> get User
_CAMEL_CASE_PATTERN_2 = re.compile(r"(?<=[A-Z])(?=[A-Z][a-z])")  # HTTPServer -> HTTP Server
_UNDERSCORE_PATTERN = re.compile(r"_+")
_NON_ALPHANUM_PATTERN = re.compile(r"[^a-zA-Z0-9_\s]")


def tokenize_code(text: str) -> list[str]:
    """Code-aware tokenization for BM25.

    Examples:
    - "HTTPClient" -> ["http", "client"]
    - "get_user_by_id" -> ["get", "user", "by", "id"]

    Args:
        text: Input text to tokenize

    Returns:
        list of lowercase tokens
    """
    text = _NON_ALPHANUM_PATTERN.sub(" ", text)

    if BM25_SPLIT_CAMELCASE:
        text = _CAMEL_CASE_PATTERN_1.sub(" ", text)
        text = _CAMEL_CASE_PATTERN_2.sub(" ", text)

    if BM25_SPLIT_SNAKE_CASE:
        text = _UNDERSCORE_PATTERN.sub(" ", text)

    return [t for t in text.lower().split() if len(t) >= BM25_MIN_TOKEN_LENGTH]


class BM25LexicalChannel:
    """In-memory BM25 index over chunk symbols and bodies.

    Attributes:
        chunk_ids: Chunk ids in corpus order
        languages: Language tag per corpus position
        bm25: BM25Okapi index (None for an empty corpus)
    """

    def __init__(self, records: Iterable[ChunkRecord]):
        """Build the BM25 index.

        Args:
            records: Chunk records to index
        """
        self.chunk_ids: list[str] = []
        self.languages: list[str] = []
        corpus: list[list[str]] = []

        for record in records:
            symbol_tokens = tokenize_code(record.breadcrumb)
            body_tokens = tokenize_code(record.display_code or record.vector_text)
            corpus.append(symbol_tokens * SYMBOL_FIELD_WEIGHT + body_tokens)
            self.chunk_ids.append(record.chunk_id)
            self.languages.append(record.language)

        # BM25Okapi divides by the corpus size
        self.bm25 = BM25Okapi(corpus) if corpus else None
        logger.info(f"Built BM25 index: {len(self.chunk_ids)} chunks")

    def search(
        self,
        query: str,
        limit: int,
        language_filter: Sequence[str] | None = None,
    ) -> list[tuple[str, float]]:
        """BM25 search.

        Args:
            query: Lexical query text
            limit: Max results
            language_filter: Keep only these languages (None = all)

        Returns:
            list of (chunk_id, score) tuples sorted by BM25 score; chunks with
            a zero score are omitted
        """
        tokens = tokenize_code(query)
        if self.bm25 is None or not tokens or limit <= 0:
            return []

        allowed = set(language_filter) if language_filter else None
        scores = self.bm25.get_scores(tokens)

        results = [
            (chunk_id, float(score))
            for chunk_id, language, score in zip(self.chunk_ids, self.languages, scores)
            if score > 0 and (allowed is None or language in allowed)
        ]
        results.sort(key=lambda x: x[1], reverse=True)
        return results[:limit]


class FAISSVectorChannel:
    """FAISS vector search over chunk embeddings.

    The index and embedding model are loaded lazily on first search and shared
    by concurrent searches.

    Attributes:
        index_dir: Directory containing the FAISS index and id mapping
        model_name: sentence-transformers model used for query embeddings
        language_by_id: chunk_id -> language, for language filtering
    """

    # Results fetched per requested result when a language filter is active
    FILTER_OVERSAMPLE = 4

    def __init__(
        self,
        index_dir: Path,
        language_by_id: dict[str, str] | None = None,
        model_name: str = EMBEDDING_MODEL,
    ):
        """Initialize FAISS vector channel.

        Args:
            index_dir: Directory written by scripts/build_vector_index.py
            language_by_id: chunk_id -> language mapping
            model_name: Embedding model name
        """
        self.index_dir = Path(index_dir)
        self.model_name = model_name
        self.language_by_id = language_by_id or {}
        self._index = None
        self._position_to_id: dict[int, str] = {}
        self._model = None
        self._lock = threading.Lock()

    def _load(self):
        """Load index, id mapping and embedding model once."""
        with self._lock:
            if self._index is None:
                import faiss

                index_path = self.index_dir / INDEX_FILE_NAME
                mapping_path = self.index_dir / ID_MAPPING_FILE_NAME
                logger.info(f"Loading FAISS index from {index_path}")
                index = faiss.read_index(str(index_path))

                with open(mapping_path, encoding="utf-8") as f:
                    # JSON keys are strings, convert position keys to int
                    self._position_to_id = {int(pos): cid for pos, cid in json.load(f).items()}

                logger.info(f"Loaded FAISS index: {index.ntotal} vectors, dim={index.d}")
                self._index = index

            if self._model is None:
                from sentence_transformers import SentenceTransformer

                logger.info(f"Loading embedding model: {self.model_name}")
                self._model = SentenceTransformer(self.model_name)

        return self._index, self._model

    def search(
        self,
        query: str,
        limit: int,
        language_filter: Sequence[str] | None = None,
    ) -> list[tuple[str, float]]:
        """Nearest chunks to the query embedding.

        Args:
            query: Vector query text
            limit: Max results
            language_filter: Keep only these languages (None = all)

        Returns:
            list of (chunk_id, cosine_distance) tuples, nearest first
        """
        if limit <= 0:
            return []

        index, model = self._load()
        if index.ntotal == 0:
            return []

        embedding = model.encode([query], convert_to_numpy=True, normalize_embeddings=True)
        fetch = limit * self.FILTER_OVERSAMPLE if language_filter else limit
        similarities, positions = index.search(
            np.asarray(embedding, dtype=np.float32), min(fetch, index.ntotal)
        )

        allowed = set(language_filter) if language_filter else None
        results: list[tuple[str, float]] = []
        for similarity, position in zip(similarities[0], positions[0]):
            chunk_id = self._position_to_id.get(int(position))
            if position < 0 or chunk_id is None:
                continue
            if allowed is not None and self.language_by_id.get(chunk_id) not in allowed:
                continue
            # Inner product of normalized vectors -> cosine distance
            results.append((chunk_id, float(1.0 - similarity)))
            if len(results) >= limit:
                break

        return results
