"""Retrieval models for the Code Context Retrieval Engine.

This module defines the configuration and output structures of the retrieval
pipeline: fusion parameters, per-request search configuration and filters,
the three query texts sent to the channels, and the packed context bundle.

Author: Hay Hoffman
Version: 2.0
"""

import json
import math
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from models.chunk import ScoredChunk
from settings import (
    BREADCRUMB_EXPAND_LIMIT,
    CHANNEL_TIMEOUT,
    CHUNKS_PER_IMPORT_FILE,
    ENABLE_SMART_CUTOFF,
    FUSION_RRF_K0,
    FUSION_TOP_M,
    FUSION_W_VEC,
    IMPORT_FILES_PER_SEED,
    LEXICAL_TOP_K,
    MAX_SEGMENTS_PER_FILE,
    MAX_TOTAL_CHARS,
    NEIGHBOR_HOPS,
    PRE_RERANK_PER_FILE_CAP,
    RERANK_TIMEOUT,
    RERANK_TOP_N,
    VECTOR_TOP_K,
)

__all__ = [
    "FusionConfig",
    "SearchConfig",
    "SearchFilters",
    "QueryChannels",
    "Segment",
    "PackedFile",
    "ContextPack",
]

WEIGHT_SUM_TOLERANCE = 1e-6


class FusionConfig(BaseModel):
    """Weighted reciprocal-rank fusion parameters.

    Attributes:
        w_vec: Weight of the vector channel
        w_lex: Weight of the lexical channel (w_vec + w_lex must equal 1)
        rrf_k0: Smoothing constant added to the 0-based rank
        fused_top_m: Number of fused ids kept
    """

    model_config = ConfigDict(frozen=True)

    w_vec: float = Field(..., ge=0.0, le=1.0, description="Vector channel weight")
    w_lex: float = Field(..., ge=0.0, le=1.0, description="Lexical channel weight")
    rrf_k0: float = Field(..., gt=0, description="RRF smoothing constant")
    fused_top_m: int = Field(..., gt=0, description="Fused list truncation size")

    @model_validator(mode="after")
    def validate_weights_sum(self) -> "FusionConfig":
        """Ensure the channel weights sum to one."""
        if not all(math.isfinite(v) for v in (self.w_vec, self.w_lex, self.rrf_k0)):
            raise ValueError("Fusion parameters must be finite numbers")
        if abs(self.w_vec + self.w_lex - 1.0) > WEIGHT_SUM_TOLERANCE:
            raise ValueError(
                f"w_vec + w_lex must equal 1 (got {self.w_vec} + {self.w_lex})"
            )
        return self

    @classmethod
    def from_vector_weight(cls, w_vec: float, rrf_k0: float, fused_top_m: int) -> "FusionConfig":
        """Build a config deriving w_lex as round(1 - w_vec, 6)."""
        return cls(
            w_vec=w_vec,
            w_lex=round(1.0 - w_vec, 6),
            rrf_k0=rrf_k0,
            fused_top_m=fused_top_m,
        )

    @classmethod
    def default(cls) -> "FusionConfig":
        """Static default from settings (FUSION_W_VEC, FUSION_RRF_K0, FUSION_TOP_M)."""
        return cls.from_vector_weight(FUSION_W_VEC, FUSION_RRF_K0, FUSION_TOP_M)

    @classmethod
    def load(cls, path: Path) -> "FusionConfig":
        """Load a config written by ``save`` (e.g. the auto-tune winner).

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the stored values are invalid
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls.model_validate(data)

    @classmethod
    def load_or_default(cls, path: Path) -> "FusionConfig":
        if path.exists():
            return cls.load(path)
        return cls.default()

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.model_dump(), f, indent=2)


class SearchConfig(BaseModel):
    """Per-service retrieval configuration.

    Defaults come from settings.py; every stage limit can be overridden when
    constructing the search service.
    """

    model_config = ConfigDict(frozen=True)

    fusion: FusionConfig = Field(default_factory=FusionConfig.default)

    # Channels
    vector_top_k: int = Field(default=VECTOR_TOP_K, gt=0)
    lexical_top_k: int = Field(default=LEXICAL_TOP_K, gt=0)

    # Rerank
    pre_rerank_per_file_cap: int = Field(
        default=PRE_RERANK_PER_FILE_CAP,
        description="Max candidates per file before rerank (<= 0 means unlimited)"
    )
    rerank_top_n: int = Field(default=RERANK_TOP_N, gt=0)
    enable_smart_cutoff: bool = ENABLE_SMART_CUTOFF

    # Expansion
    neighbor_hops: int = Field(default=NEIGHBOR_HOPS, ge=0)
    breadcrumb_expand_limit: int = Field(default=BREADCRUMB_EXPAND_LIMIT, ge=0)
    import_files_per_seed: int = Field(default=IMPORT_FILES_PER_SEED, ge=0)
    chunks_per_import_file: int = Field(default=CHUNKS_PER_IMPORT_FILE, ge=0)

    # Packing
    max_segments_per_file: int = Field(default=MAX_SEGMENTS_PER_FILE, gt=0)
    max_total_chars: int = Field(default=MAX_TOTAL_CHARS, gt=0)

    # Timeouts (seconds)
    channel_timeout_s: float = Field(default=CHANNEL_TIMEOUT, gt=0)
    rerank_timeout_s: float = Field(default=RERANK_TIMEOUT, gt=0)


class SearchFilters(BaseModel):
    """Candidate filters for one search request.

    Attributes:
        include_globs: Keep only files matching at least one pattern (empty = all)
        exclude_globs: Drop files matching any pattern
        source_code_only: Drop documentation/config languages
        include_languages: Keep only these languages (empty = all)
        exclude_languages: Drop these languages
    """

    include_globs: list[str] = Field(default_factory=list)
    exclude_globs: list[str] = Field(default_factory=list)
    source_code_only: bool = False
    include_languages: list[str] = Field(default_factory=list)
    exclude_languages: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.include_globs
            or self.exclude_globs
            or self.source_code_only
            or self.include_languages
            or self.exclude_languages
        )


class QueryChannels(BaseModel):
    """Query texts for the three retrieval stages.

    The vector and lexical queries may differ from the rerank query: the
    lexical channel benefits from exact identifiers up front while the
    reranker scores against the full natural-language request.
    """

    vector_query: str
    lexical_query: str
    rerank_query: str

    @field_validator("vector_query", "lexical_query", "rerank_query")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        """Ensure query text is not empty after stripping."""
        if not v.strip():
            raise ValueError("Query text cannot be empty")
        return v.strip()


class Segment(BaseModel):
    """A merged, non-overlapping character range of one file.

    Attributes:
        file_path: File the segment belongs to
        raw_start: Start offset (inclusive)
        raw_end: End offset (exclusive)
        start_line: 1-based line of raw_start
        end_line: 1-based line of the last character before raw_end
        score: Maximum score of the chunks merged into the segment
        breadcrumb: Breadcrumb of the top-scoring merged chunk
        text: File content between raw_start and raw_end
    """

    model_config = ConfigDict(frozen=True)

    file_path: str
    raw_start: int = Field(..., ge=0)
    raw_end: int = Field(..., ge=0)
    start_line: int = Field(..., ge=1)
    end_line: int = Field(..., ge=1)
    score: float
    breadcrumb: str = ""
    text: str = ""

    @property
    def citation(self) -> str:
        """Citation in format: "file_path:start_line-end_line"."""
        return f"{self.file_path}:{self.start_line}-{self.end_line}"


class PackedFile(BaseModel):
    """Packed segments of one file, in position order."""

    file_path: str
    score: float = Field(..., description="Best chunk score in the file")
    segments: list[Segment] = Field(default_factory=list)

    @property
    def total_chars(self) -> int:
        return sum(len(segment.text) for segment in self.segments)


class ContextPack(BaseModel):
    """Final result bundle of one search request.

    Attributes:
        seeds: Ranked chunks selected by fusion/rerank
        expanded: Chunks added by graph expansion
        files: Packed files, best file first
        timing_ms: Elapsed milliseconds per pipeline stage
    """

    seeds: list[ScoredChunk] = Field(default_factory=list)
    expanded: list[ScoredChunk] = Field(default_factory=list)
    files: list[PackedFile] = Field(default_factory=list)
    timing_ms: dict[str, float] = Field(default_factory=dict)

    @property
    def total_segments(self) -> int:
        return sum(len(f.segments) for f in self.files)
