"""Data models for the code context retrieval engine.

This package contains all Pydantic models used throughout the application.
"""

from .chunk import ChunkRecord, ChunkSource, ScoredChunk, chunk_key
from .evaluation import (
    AutoTuneCandidate,
    AutoTuneCase,
    AutoTuneGrid,
    AutoTuneResult,
    BenchmarkCase,
    BenchmarkSummary,
)
from .feedback import (
    FeedbackSeed,
    FeedbackSummary,
    InferredSignal,
    RecordEventResult,
    RetrievalEvent,
    SignalBreakdown,
    SignalType,
    TopFile,
)
from .retrieval import (
    ContextPack,
    FusionConfig,
    PackedFile,
    QueryChannels,
    SearchConfig,
    SearchFilters,
    Segment,
)

__all__ = [
    # Chunks
    "ChunkRecord",
    "ChunkSource",
    "ScoredChunk",
    "chunk_key",
    # Retrieval
    "FusionConfig",
    "SearchConfig",
    "SearchFilters",
    "QueryChannels",
    "Segment",
    "PackedFile",
    "ContextPack",
    # Feedback
    "SignalType",
    "FeedbackSeed",
    "RetrievalEvent",
    "InferredSignal",
    "RecordEventResult",
    "SignalBreakdown",
    "TopFile",
    "FeedbackSummary",
    # Evaluation
    "BenchmarkCase",
    "AutoTuneCase",
    "BenchmarkSummary",
    "AutoTuneGrid",
    "AutoTuneCandidate",
    "AutoTuneResult",
]
