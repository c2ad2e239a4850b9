"""Tests for fusion grid search.

Author: Hay Hoffman
"""

import pytest

from codecontext.evaluation.auto_tune import expand_configs, normalize_grid, normalize_target, run_auto_tune
from codecontext.exceptions import AutoTuneConfigError
from models.evaluation import AutoTuneCase, AutoTuneGrid


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def lexical_wins_cases() -> list[AutoTuneCase]:
    """The relevant chunk ranks first lexically but third in the vector channel."""
    return [
        AutoTuneCase(
            id="q1",
            query="where is the token refreshed",
            vector_retrieved=["v1", "v2", "rel"],
            lexical_retrieved=["rel", "l1"],
            relevant={"rel": 1.0},
        )
    ]


@pytest.fixture
def small_grid() -> AutoTuneGrid:
    return AutoTuneGrid(w_vec=[0.7, 0.3], rrf_k0=[1], fused_top_m=[10])


# =============================================================================
# Option normalization
# =============================================================================


class TestNormalizeOptions:
    """Tests for normalize_grid / normalize_target."""

    def test_empty_axes_use_defaults(self):
        axes = normalize_grid(AutoTuneGrid(w_vec=[0.7, 0.5, 0.7]))

        assert axes["w_vec"] == [0.5, 0.7]
        assert axes["rrf_k0"] == [10, 20, 40]
        assert axes["fused_top_m"] == [40, 60]

    @pytest.mark.parametrize(
        "grid,field",
        [
            (AutoTuneGrid(w_vec=[1.5]), "grid.w_vec"),
            (AutoTuneGrid(w_vec=[0.0]), "grid.w_vec"),
            (AutoTuneGrid(rrf_k0=[-1]), "grid.rrf_k0"),
            (AutoTuneGrid(fused_top_m=[10.5]), "grid.fused_top_m"),
        ],
    )
    def test_invalid_grid_values(self, grid, field):
        with pytest.raises(AutoTuneConfigError) as exc_info:
            normalize_grid(grid)

        assert exc_info.value.field == field

    def test_camel_case_grid_keys(self):
        grid = AutoTuneGrid.model_validate({"wVec": [0.4], "rrfK0": [5], "fusedTopM": [30]})

        assert normalize_grid(grid) == {"w_vec": [0.4], "rrf_k0": [5], "fused_top_m": [30]}

    @pytest.mark.parametrize(
        "target,expected",
        [("MRR", "mrr"), ("recall", "recall@5"), ("ndcg", "ndcg@5"), ("ndcg@3", "ndcg@3")],
    )
    def test_targets(self, target, expected):
        assert normalize_target(target, [1, 3, 5]) == expected

    @pytest.mark.parametrize("target", ["recall@7", "precision", "ndcg@x"])
    def test_invalid_targets(self, target):
        with pytest.raises(AutoTuneConfigError) as exc_info:
            normalize_target(target, [1, 3, 5])

        assert exc_info.value.field == "target"

    def test_expand_configs_order(self):
        configs = expand_configs({"w_vec": [0.4, 0.6], "rrf_k0": [10], "fused_top_m": [20, 40]})

        assert [(c.w_vec, c.fused_top_m) for c in configs] == [(0.4, 20), (0.4, 40), (0.6, 20), (0.6, 40)]
        assert configs[0].w_lex == pytest.approx(0.6)


# =============================================================================
# Grid search
# =============================================================================


class TestRunAutoTune:
    """Tests for run_auto_tune."""

    def test_selects_lower_vector_weight_when_lexical_is_better(self, lexical_wins_cases, small_grid):
        result = run_auto_tune(lexical_wins_cases, target="mrr", grid=small_grid)

        assert result.best.config.w_vec == pytest.approx(0.3)
        assert result.best.target_score == pytest.approx(1.0)
        assert result.leaderboard[1].target_score == pytest.approx(0.5)

    def test_ties_prefer_higher_vector_weight(self, small_grid):
        cases = [
            AutoTuneCase(id="q", query="q", vector_retrieved=["rel"], lexical_retrieved=["rel"], relevant={"rel": 1.0})
        ]

        result = run_auto_tune(cases, grid=small_grid)

        assert result.best.config.w_vec == pytest.approx(0.7)

    def test_leaderboard_size_and_totals(self, lexical_wins_cases):
        grid = AutoTuneGrid(w_vec=[0.3, 0.5, 0.7], rrf_k0=[1, 10], fused_top_m=[10])

        result = run_auto_tune(lexical_wins_cases, target="recall", k_values=[1, 2], grid=grid, top_n=2)

        assert result.total_candidates == 6
        assert len(result.leaderboard) == 2
        assert result.target == "recall@2"
        assert result.k_values == [1, 2]

    def test_empty_dataset_rejected(self):
        with pytest.raises(AutoTuneConfigError) as exc_info:
            run_auto_tune([])

        assert exc_info.value.field == "cases"

    def test_k_values_must_be_positive(self, lexical_wins_cases):
        with pytest.raises(AutoTuneConfigError) as exc_info:
            run_auto_tune(lexical_wins_cases, k_values=[0, -3])

        assert exc_info.value.field == "k_values"

    def test_process_pool_matches_in_process_leaderboard(self, lexical_wins_cases):
        grid = AutoTuneGrid(w_vec=[0.3, 0.5, 0.7], rrf_k0=[1, 20], fused_top_m=[2, 10])

        in_process = run_auto_tune(lexical_wins_cases, grid=grid, top_n=12)
        pooled = run_auto_tune(lexical_wins_cases, grid=grid, top_n=12, max_workers=2)

        assert pooled.model_dump() == in_process.model_dump()
        assert pooled.total_candidates == 12
