"""Feedback models for implicit retrieval signals.

Retrieval events are append-only records of executed searches. Signals are
inferred once, when an event is recorded, by comparing it with the previous
event of the same session.

Author: Hay Hoffman
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.chunk import ChunkSource

__all__ = [
    "SignalType",
    "FeedbackSeed",
    "RetrievalEvent",
    "InferredSignal",
    "RecordEventResult",
    "SignalBreakdown",
    "TopFile",
    "FeedbackSummary",
]

SignalType = Literal["path_pin", "anchor_reuse", "no_hit_rewrite"]


class FeedbackSeed(BaseModel):
    """Reference to one seed chunk returned by a search."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    file_path: str
    chunk_index: int = Field(..., ge=0)
    score: float
    source: ChunkSource = "vector"


class RetrievalEvent(BaseModel):
    """One recorded search execution.

    Attributes:
        query: Free-text information request
        technical_terms: Exact identifiers supplied with the request
        seeds: Ordered seed references (rank = position)
        session_id: Caller/session scope; None is the shared global session
        created_at_ms: Creation timestamp in epoch milliseconds (None = now)
    """

    model_config = ConfigDict(frozen=True)

    query: str
    technical_terms: list[str] = Field(default_factory=list)
    seeds: list[FeedbackSeed] = Field(default_factory=list)
    session_id: str | None = None
    created_at_ms: int | None = None

    @field_validator("query")
    @classmethod
    def validate_query_not_empty(cls, v: str) -> str:
        """Ensure query is not empty after stripping."""
        if not v.strip():
            raise ValueError("Query cannot be empty")
        return v


class InferredSignal(BaseModel):
    """Directional relevance judgement derived from two consecutive events.

    Attributes:
        type: Signal kind
        weight: Signed weight (positive reinforces, negative penalizes)
        target_chunk_id: Chunk the signal refers to, if any
        target_file_path: File the signal refers to, if any
        evidence: Serialized JSON evidence
    """

    model_config = ConfigDict(frozen=True)

    type: SignalType
    weight: float
    target_chunk_id: str | None = None
    target_file_path: str | None = None
    evidence: str = "{}"


class RecordEventResult(BaseModel):
    event_id: int
    inferred_signals: list[InferredSignal] = Field(default_factory=list)


class SignalBreakdown(BaseModel):
    type: SignalType
    count: int
    total_weight: float


class TopFile(BaseModel):
    file_path: str
    total_weight: float
    hit_count: int


class FeedbackSummary(BaseModel):
    """Aggregate feedback statistics over a trailing window.

    Attributes:
        window_days: Window length in days
        since_ms: Window start (epoch milliseconds)
        total_events: Events recorded in the window
        zero_hit_events: Events that returned no seeds
        zero_hit_rate: zero_hit_events / total_events
        implicit_success_rate: Distinct events with a positive follow-up signal / total_events
        positive_signal_count: Signals with weight > 0
        negative_signal_count: Signals with weight < 0
        signal_breakdown: Count and summed weight per signal type
        top_files: Files ordered by accumulated positive weight
    """

    window_days: int
    since_ms: int
    total_events: int = 0
    zero_hit_events: int = 0
    zero_hit_rate: float = 0.0
    implicit_success_rate: float = 0.0
    positive_signal_count: int = 0
    negative_signal_count: int = 0
    signal_breakdown: list[SignalBreakdown] = Field(default_factory=list)
    top_files: list[TopFile] = Field(default_factory=list)
