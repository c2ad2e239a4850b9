"""Tests for rank-quality metrics.

Author: Hay Hoffman
"""

import math

import pytest

from codecontext.evaluation.metrics import (
    evaluate_benchmark_cases,
    ndcg_at_k,
    normalize_k_values,
    recall_at_k,
    reciprocal_rank,
    take_top_unique,
)
from models.evaluation import BenchmarkCase


class TestRecallAndRank:
    """Tests for recall_at_k and reciprocal_rank."""

    @pytest.mark.parametrize("k,expected", [(1, 0.0), (2, 0.5), (4, 1.0), (2.7, 0.5), (0, 0.0)])
    def test_recall_at_k(self, k, expected):
        ranked = ["x", "r1", "y", "r2"]

        assert recall_at_k(ranked, {"r1", "r2"}, k) == pytest.approx(expected)

    def test_duplicates_counted_once(self):
        assert take_top_unique(["a", "a", "b", "c"], 2) == ["a", "b"]
        assert recall_at_k(["r1", "r1", "r2"], {"r1", "r2"}, 2) == pytest.approx(1.0)

    def test_recall_without_relevant_ids(self):
        assert recall_at_k(["a"], set(), 5) == 0.0

    def test_reciprocal_rank_uses_unique_positions(self):
        assert reciprocal_rank(["x", "x", "r"], {"r"}) == pytest.approx(0.5)
        assert reciprocal_rank(["x"], {"r"}) == 0.0

    def test_normalize_k_values(self):
        assert normalize_k_values([3, 1.9, 0, -2, 3, float("inf")]) == [1, 3]


class TestNDCG:
    """Tests for ndcg_at_k."""

    def test_graded_gains(self):
        relevance = {"a": 3.0, "b": 1.0}
        dcg = 1.0 / math.log2(2) + 3.0 / math.log2(3)
        idcg = 3.0 / math.log2(2) + 1.0 / math.log2(3)

        assert ndcg_at_k(["b", "a"], relevance, 2) == pytest.approx(dcg / idcg)

    def test_perfect_ordering(self):
        assert ndcg_at_k(["a", "b", "z"], {"a": 2.0, "b": 1.0}, 3) == pytest.approx(1.0)

    def test_no_positive_gain(self):
        assert ndcg_at_k(["a"], {"a": 0.0}, 3) == 0.0


class TestEvaluateBenchmarkCases:
    """Tests for evaluate_benchmark_cases."""

    def test_means_over_cases(self):
        cases = [
            BenchmarkCase(id="1", query="q1", retrieved=["a", "b"], relevant={"a": 1.0}),
            BenchmarkCase(id="2", query="q2", retrieved=["c", "d"], relevant={"d": 1.0, "z": 0.0}),
        ]

        summary = evaluate_benchmark_cases(cases, [1, 2])

        assert summary.query_count == 2
        assert summary.mrr == pytest.approx(0.75)
        assert summary.recall_at_k == pytest.approx({"1": 0.5, "2": 1.0})
        assert summary.ndcg_at_k["1"] == pytest.approx(0.5)

    def test_empty_cases(self):
        summary = evaluate_benchmark_cases([], [5, 1])

        assert summary.query_count == 0
        assert summary.mrr == 0.0
        assert list(summary.recall_at_k) == ["1", "5"]

    def test_negative_gain_rejected(self):
        with pytest.raises(ValueError):
            BenchmarkCase(id="1", query="q", retrieved=[], relevant={"a": -1.0})
