"""Evaluation models for offline benchmarking and fusion auto-tuning.

Dataset rows are accepted in both snake_case and camelCase
(``vectorRetrieved``, ``lexicalRetrieved``) so that replay files exported by
other tooling load unchanged.

Author: Hay Hoffman
"""

import math

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.retrieval import FusionConfig

__all__ = [
    "BenchmarkCase",
    "AutoTuneCase",
    "BenchmarkSummary",
    "AutoTuneGrid",
    "AutoTuneCandidate",
    "AutoTuneResult",
]


def _validate_gains(v: dict[str, float]) -> dict[str, float]:
    for chunk_id, gain in v.items():
        if not math.isfinite(gain) or gain < 0:
            raise ValueError(f"relevant['{chunk_id}'] must be a non-negative number, got {gain}")
    return v


class BenchmarkCase(BaseModel):
    """A labeled query with one ranked result list.

    Attributes:
        id: Case identifier
        query: Query text
        retrieved: Ranked chunk ids
        relevant: Ground-truth chunk id -> graded gain
    """

    id: str = Field(..., min_length=1)
    query: str = Field(..., min_length=1)
    retrieved: list[str]
    relevant: dict[str, float]

    @field_validator("relevant")
    @classmethod
    def validate_relevant(cls, v: dict[str, float]) -> dict[str, float]:
        """Ensure every gain is a finite, non-negative number."""
        return _validate_gains(v)


class AutoTuneCase(BaseModel):
    """A labeled query with the stored rankings of both channels.

    Attributes:
        id: Case identifier
        query: Query text
        vector_retrieved: Ranked ids returned by the vector channel
        lexical_retrieved: Ranked ids returned by the lexical channel
        relevant: Ground-truth chunk id -> graded gain
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    query: str = Field(..., min_length=1)
    vector_retrieved: list[str] = Field(..., alias="vectorRetrieved")
    lexical_retrieved: list[str] = Field(..., alias="lexicalRetrieved")
    relevant: dict[str, float]

    @field_validator("vector_retrieved", "lexical_retrieved")
    @classmethod
    def validate_ids_not_empty(cls, v: list[str]) -> list[str]:
        """Ensure ranked ids are non-empty strings."""
        if any(not item.strip() for item in v):
            raise ValueError("ranked ids must be non-empty strings")
        return v

    @field_validator("relevant")
    @classmethod
    def validate_relevant(cls, v: dict[str, float]) -> dict[str, float]:
        """Ensure every gain is a finite, non-negative number."""
        return _validate_gains(v)


class BenchmarkSummary(BaseModel):
    """Mean rank-quality metrics over a set of cases.

    ``recall_at_k`` and ``ndcg_at_k`` are keyed by the k value as a string.
    """

    query_count: int
    mrr: float
    recall_at_k: dict[str, float] = Field(default_factory=dict)
    ndcg_at_k: dict[str, float] = Field(default_factory=dict)


class AutoTuneGrid(BaseModel):
    """Candidate values for each fusion parameter (empty list = default values)."""

    model_config = ConfigDict(populate_by_name=True)

    w_vec: list[float] = Field(default_factory=list, alias="wVec")
    rrf_k0: list[float] = Field(default_factory=list, alias="rrfK0")
    fused_top_m: list[float] = Field(default_factory=list, alias="fusedTopM")


class AutoTuneCandidate(BaseModel):
    """One evaluated grid point."""

    config: FusionConfig
    summary: BenchmarkSummary
    target_score: float


class AutoTuneResult(BaseModel):
    """Outcome of a grid search.

    Attributes:
        target: Normalized target metric (mrr, recall@k, ndcg@k)
        k_values: Normalized k values used for evaluation
        total_candidates: Number of evaluated grid points
        best: Top candidate
        leaderboard: Top-N candidates, best first
    """

    target: str
    k_values: list[int]
    total_candidates: int
    best: AutoTuneCandidate
    leaderboard: list[AutoTuneCandidate] = Field(default_factory=list)
