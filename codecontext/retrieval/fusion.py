"""Weighted reciprocal-rank fusion of the vector and lexical rankings.

Formula: score(id) = w_vec / (rrf_k0 + rank_vec) + w_lex / (rrf_k0 + rank_lex)

Ranks are 0-based; an id missing from a list gets no contribution from it.
Ties keep first-insertion order (vector list first) because Python's sort is
stable.

Author: Hay Hoffman
"""

from collections.abc import Sequence

from models.retrieval import FusionConfig

__all__ = ["rrf_scores", "fuse"]


def rrf_scores(
    vector_ranked: Sequence[str],
    lexical_ranked: Sequence[str],
    config: FusionConfig,
) -> list[tuple[str, float]]:
    """Fused (id, score) pairs sorted by score, truncated to fused_top_m.

    Args:
        vector_ranked: Ids from the vector channel, best first
        lexical_ranked: Ids from the lexical channel, best first
        config: Fusion weights, smoothing constant and truncation size

    Returns:
        list of (chunk_id, rrf_score) tuples, best first
    """
    scores: dict[str, float] = {}

    for rank, chunk_id in enumerate(vector_ranked):
        scores[chunk_id] = scores.get(chunk_id, 0.0) + config.w_vec / (config.rrf_k0 + rank)

    for rank, chunk_id in enumerate(lexical_ranked):
        scores[chunk_id] = scores.get(chunk_id, 0.0) + config.w_lex / (config.rrf_k0 + rank)

    ranked = sorted(scores.items(), key=lambda x: x[1], reverse=True)
    return ranked[:config.fused_top_m]


def fuse(
    vector_ranked: Sequence[str],
    lexical_ranked: Sequence[str],
    config: FusionConfig,
) -> list[str]:
    """Fused id ranking (see ``rrf_scores``)."""
    return [chunk_id for chunk_id, _ in rrf_scores(vector_ranked, lexical_ranked, config)]
