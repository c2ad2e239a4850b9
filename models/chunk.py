"""Pydantic models for chunk data structures.

This module defines the chunk record schema produced by the upstream chunker
and the scored candidate wrapper that flows through the retrieval pipeline.
Chunk records are treated as read-only metadata; only their spans and
breadcrumbs drive expansion and packing.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__ = [
    "ChunkRecord",
    "ScoredChunk",
    "ChunkSource",
    "chunk_key",
]

ChunkSource = Literal["vector", "lexical", "rerank", "neighbor", "breadcrumb", "import"]


def chunk_key(file_path: str, chunk_index: int) -> str:
    """Build the identity key of a chunk ("file_path#chunk_index")."""
    return f"{file_path}#{chunk_index}"


class ChunkRecord(BaseModel):
    """Chunk metadata as stored by the indexing path.

    Spans are character offsets into the file's full text. The raw span covers
    the exact source region; the vector span covers the (possibly
    context-padded) text that was embedded.
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "chunk_id": "a1b2c3d4",
                "file_path": "src/auth/auth_service.py",
                "file_hash": "9f86d081884c7d65",
                "chunk_index": 3,
                "language": "python",
                "breadcrumb": "auth_service.py > class AuthService > def login",
                "display_code": "def login(self, user):\n    ...",
                "vector_text": "class AuthService:\n    def login(self, user):\n    ...",
                "raw_start": 120,
                "raw_end": 164,
                "vec_start": 96,
                "vec_end": 164,
            }
        },
    )

    # Core identification
    chunk_id: str = Field(..., description="Unique chunk identifier")
    file_path: str = Field(..., description="Relative path from repository root")
    file_hash: str = Field(default="", description="Content hash of the file at index time")
    chunk_index: int = Field(..., ge=0, description="Zero-based position of the chunk within its file")

    # Context
    language: str = Field(default="", description="Language tag (python, typescript, ...)")
    breadcrumb: str = Field(default="", description="Enclosing symbol path, e.g. 'file > class A > method run'")

    # Content
    display_code: str = Field(default="", description="Raw source text of the chunk")
    vector_text: str = Field(default="", description="Text that was embedded for vector search")

    # Spans (character offsets)
    raw_start: int = Field(..., ge=0, description="Start offset of the raw span")
    raw_end: int = Field(..., ge=0, description="End offset of the raw span (exclusive)")
    vec_start: int = Field(default=0, ge=0, description="Start offset of the vectorized span")
    vec_end: int = Field(default=0, ge=0, description="End offset of the vectorized span")

    @field_validator("raw_end")
    @classmethod
    def validate_raw_span(cls, v: int, info) -> int:
        """Ensure raw_end >= raw_start."""
        raw_start = info.data.get("raw_start", 0)
        if v < raw_start:
            raise ValueError(f"raw_end ({v}) must be >= raw_start ({raw_start})")
        return v

    @field_validator("vec_end")
    @classmethod
    def validate_vec_span(cls, v: int, info) -> int:
        """Ensure vec_end >= vec_start."""
        vec_start = info.data.get("vec_start", 0)
        if v < vec_start:
            raise ValueError(f"vec_end ({v}) must be >= vec_start ({vec_start})")
        return v

    @property
    def key(self) -> str:
        return chunk_key(self.file_path, self.chunk_index)


class ScoredChunk(BaseModel):
    """A candidate chunk with a relevance score and provenance tag.

    Several ScoredChunks may exist for the same chunk while candidates are
    being fused or expanded; they are de-duplicated by ``key``.

    Attributes:
        file_path: Relative path of the chunk's file
        chunk_index: Zero-based chunk index within the file
        score: Relevance score (higher is better)
        source: Stage that produced the candidate
        record: Underlying chunk record
    """

    model_config = ConfigDict(frozen=True)

    file_path: str
    chunk_index: int = Field(..., ge=0)
    score: float
    source: ChunkSource
    record: ChunkRecord

    @classmethod
    def from_record(cls, record: ChunkRecord, score: float, source: ChunkSource) -> "ScoredChunk":
        return cls(
            file_path=record.file_path,
            chunk_index=record.chunk_index,
            score=score,
            source=source,
            record=record,
        )

    @property
    def key(self) -> str:
        """Identity key shared by every candidate of the same chunk."""
        return chunk_key(self.file_path, self.chunk_index)

    @property
    def chunk_id(self) -> str:
        return self.record.chunk_id
