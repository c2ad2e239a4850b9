"""Rank-quality metrics for offline evaluation.

All metrics operate on ranked chunk ids and count each id once (its first
occurrence), so duplicated ids in a ranking never inflate a score.

Author: Hay Hoffman
"""

import logging
import math
from collections.abc import Iterable, Sequence

from models.evaluation import BenchmarkCase, BenchmarkSummary

logger = logging.getLogger(__name__)

__all__ = [
    "normalize_k",
    "normalize_k_values",
    "take_top_unique",
    "recall_at_k",
    "reciprocal_rank",
    "dcg_at_k",
    "ideal_dcg_at_k",
    "ndcg_at_k",
    "evaluate_benchmark_cases",
]


def normalize_k(k: float) -> int:
    """Return floor(k) for a finite positive k, otherwise 0."""
    if not math.isfinite(k) or k <= 0:
        return 0
    return int(math.floor(k))


def normalize_k_values(k_values: Iterable[float]) -> list[int]:
    """Positive integer k values, deduplicated and sorted ascending."""
    return sorted({k for k in (normalize_k(v) for v in k_values) if k > 0})


def take_top_unique(ranked_ids: Sequence[str], k: int) -> list[str]:
    """First k distinct ids of a ranking, in rank order."""
    if k <= 0:
        return []

    results: list[str] = []
    seen: set[str] = set()
    for chunk_id in ranked_ids:
        if chunk_id in seen:
            continue
        seen.add(chunk_id)
        results.append(chunk_id)
        if len(results) >= k:
            break
    return results


def _positive_gains(relevance: dict[str, float]) -> dict[str, float]:
    return {
        chunk_id: gain
        for chunk_id, gain in relevance.items()
        if math.isfinite(gain) and gain > 0
    }


def recall_at_k(ranked_ids: Sequence[str], relevant_ids: Iterable[str], k: float) -> float:
    """Fraction of relevant ids found in the top-k unique ids.

    Args:
        ranked_ids: Ranked chunk ids (best first)
        relevant_ids: Ground-truth relevant ids
        k: Cutoff

    Returns:
        hits / |relevant|, or 0.0 when k <= 0 or nothing is relevant
    """
    normalized_k = normalize_k(k)
    relevant = set(relevant_ids)
    if normalized_k == 0 or not relevant:
        return 0.0

    hits = sum(1 for chunk_id in take_top_unique(ranked_ids, normalized_k) if chunk_id in relevant)
    return hits / len(relevant)


def reciprocal_rank(ranked_ids: Sequence[str], relevant_ids: Iterable[str]) -> float:
    """1 / rank of the first relevant id (ranks over unique ids), 0.0 if none."""
    relevant = set(relevant_ids)
    if not relevant:
        return 0.0

    seen: set[str] = set()
    for chunk_id in ranked_ids:
        if chunk_id in seen:
            continue
        seen.add(chunk_id)
        if chunk_id in relevant:
            return 1.0 / len(seen)
    return 0.0


def dcg_at_k(ranked_ids: Sequence[str], relevance: dict[str, float], k: float) -> float:
    """Discounted cumulative gain with a log2(position + 2) discount."""
    normalized_k = normalize_k(k)
    if normalized_k == 0:
        return 0.0

    gains = _positive_gains(relevance)
    dcg = 0.0
    for index, chunk_id in enumerate(take_top_unique(ranked_ids, normalized_k)):
        gain = gains.get(chunk_id, 0.0)
        if gain <= 0:
            continue
        dcg += gain / math.log2(index + 2)
    return dcg


def ideal_dcg_at_k(relevance: dict[str, float], k: float) -> float:
    """DCG of the best possible ordering of the positive gains."""
    normalized_k = normalize_k(k)
    if normalized_k == 0:
        return 0.0

    sorted_gains = sorted(_positive_gains(relevance).values(), reverse=True)[:normalized_k]
    return sum(gain / math.log2(index + 2) for index, gain in enumerate(sorted_gains))


def ndcg_at_k(ranked_ids: Sequence[str], relevance: dict[str, float], k: float) -> float:
    """Normalized DCG; 0.0 when the ideal DCG is 0."""
    idcg = ideal_dcg_at_k(relevance, k)
    if idcg == 0:
        return 0.0
    return dcg_at_k(ranked_ids, relevance, k) / idcg


def evaluate_benchmark_cases(
    cases: Sequence[BenchmarkCase],
    k_values: Iterable[float],
) -> BenchmarkSummary:
    """Mean MRR, recall@k and nDCG@k over labeled cases.

    Only ids with a positive gain count as relevant for MRR and recall.

    Args:
        cases: Labeled cases with one ranking each
        k_values: Cutoffs (normalized to positive unique ints)

    Returns:
        BenchmarkSummary with per-k dicts keyed by str(k)
    """
    ks = normalize_k_values(k_values)
    recall_sums = {str(k): 0.0 for k in ks}
    ndcg_sums = {str(k): 0.0 for k in ks}

    if not cases:
        return BenchmarkSummary(query_count=0, mrr=0.0, recall_at_k=recall_sums, ndcg_at_k=ndcg_sums)

    mrr_sum = 0.0
    for case in cases:
        relevant_ids = set(_positive_gains(case.relevant))
        mrr_sum += reciprocal_rank(case.retrieved, relevant_ids)
        for k in ks:
            recall_sums[str(k)] += recall_at_k(case.retrieved, relevant_ids, k)
            ndcg_sums[str(k)] += ndcg_at_k(case.retrieved, case.relevant, k)

    query_count = len(cases)
    logger.debug(f"Evaluated {query_count} cases at k={ks}")

    return BenchmarkSummary(
        query_count=query_count,
        mrr=mrr_sum / query_count,
        recall_at_k={key: total / query_count for key, total in recall_sums.items()},
        ndcg_at_k={key: total / query_count for key, total in ndcg_sums.items()},
    )
