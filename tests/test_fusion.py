"""Tests for weighted reciprocal-rank fusion and fusion configuration.

Author: Hay Hoffman
"""

import pytest
from pydantic import ValidationError

from codecontext.retrieval.fusion import fuse, rrf_scores
from models.retrieval import FusionConfig


@pytest.fixture
def config() -> FusionConfig:
    return FusionConfig(w_vec=0.6, w_lex=0.4, rrf_k0=20, fused_top_m=60)


class TestRRFScores:
    """Tests for rrf_scores / fuse."""

    def test_scores_use_zero_based_ranks(self, config):
        scores = dict(rrf_scores(["a", "b"], ["b", "c"], config))

        assert scores["a"] == pytest.approx(0.6 / 20)
        assert scores["b"] == pytest.approx(0.6 / 21 + 0.4 / 20)
        assert scores["c"] == pytest.approx(0.4 / 21)

    def test_id_in_both_lists_ranks_first(self, config):
        assert fuse(["a", "b"], ["b", "c"], config)[0] == "b"

    def test_fusing_twice_is_identical(self, config):
        vector = ["a", "b", "c", "d"]
        lexical = ["d", "x", "a"]

        assert fuse(vector, lexical, config) == fuse(vector, lexical, config)

    def test_presence_in_both_lists_never_lowers_score(self, config):
        only_vector = dict(rrf_scores(["a", "b"], [], config))
        both = dict(rrf_scores(["a", "b"], ["z", "b"], config))

        assert both["b"] >= only_vector["b"]

    def test_ties_keep_insertion_order_vector_first(self):
        balanced = FusionConfig(w_vec=0.5, w_lex=0.5, rrf_k0=10, fused_top_m=10)

        assert fuse(["v"], ["l"], balanced) == ["v", "l"]

    def test_truncates_to_fused_top_m(self):
        small = FusionConfig(w_vec=0.6, w_lex=0.4, rrf_k0=20, fused_top_m=2)

        assert fuse(["a", "b", "c"], ["d"], small) == ["a", "b"]

    def test_empty_inputs(self, config):
        assert fuse([], [], config) == []


class TestFusionConfig:
    """Tests for FusionConfig validation and persistence."""

    def test_weights_must_sum_to_one(self):
        with pytest.raises(ValidationError):
            FusionConfig(w_vec=0.6, w_lex=0.6, rrf_k0=20, fused_top_m=60)

    def test_rrf_k0_must_be_positive(self):
        with pytest.raises(ValidationError):
            FusionConfig(w_vec=0.5, w_lex=0.5, rrf_k0=0, fused_top_m=60)

    def test_from_vector_weight_derives_lexical_weight(self):
        config = FusionConfig.from_vector_weight(0.7, 10, 40)

        assert config.w_lex == pytest.approx(0.3)

    def test_save_and_load(self, tmp_path, config):
        path = tmp_path / "nested" / "fusion.json"
        config.save(path)

        assert FusionConfig.load(path) == config

    def test_load_or_default_without_file(self, tmp_path):
        assert FusionConfig.load_or_default(tmp_path / "missing.json") == FusionConfig.default()
