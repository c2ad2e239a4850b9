"""Grid search over fusion parameters against labeled replay cases.

Each case stores the vector and lexical rankings captured at query time, so a
candidate FusionConfig is evaluated by re-fusing those rankings offline; no
channel is queried. Candidates are ranked by the target metric, then MRR,
then w_vec (descending).

Author: Hay Hoffman
"""

import logging
import math
from collections.abc import Iterable, Sequence
from concurrent.futures import ProcessPoolExecutor
from itertools import product

from codecontext.evaluation.metrics import evaluate_benchmark_cases, normalize_k_values
from codecontext.exceptions import AutoTuneConfigError
from codecontext.retrieval.fusion import fuse
from models.evaluation import (
    AutoTuneCandidate,
    AutoTuneCase,
    AutoTuneGrid,
    AutoTuneResult,
    BenchmarkCase,
    BenchmarkSummary,
)
from models.retrieval import FusionConfig
from settings import AUTO_TUNE_DEFAULT_GRID, AUTO_TUNE_DEFAULT_K_VALUES

logger = logging.getLogger(__name__)

__all__ = [
    "run_auto_tune",
    "normalize_grid",
    "normalize_target",
    "expand_configs",
    "evaluate_config",
]

DEFAULT_LEADERBOARD_SIZE = 5


def normalize_grid(grid: AutoTuneGrid | None) -> dict[str, list[float]]:
    """Fill empty axes with defaults, validate, dedupe and sort each axis.

    Raises:
        AutoTuneConfigError: If a value is not finite or out of range
    """
    grid = grid or AutoTuneGrid()
    axes = {
        "w_vec": grid.w_vec or AUTO_TUNE_DEFAULT_GRID["w_vec"],
        "rrf_k0": grid.rrf_k0 or AUTO_TUNE_DEFAULT_GRID["rrf_k0"],
        "fused_top_m": grid.fused_top_m or AUTO_TUNE_DEFAULT_GRID["fused_top_m"],
    }

    for value in axes["w_vec"]:
        if not math.isfinite(value) or not 0 < value < 1:
            raise AutoTuneConfigError(f"Invalid w_vec value {value}: must be in (0, 1)", field="grid.w_vec")

    for value in axes["rrf_k0"]:
        if not math.isfinite(value) or value <= 0:
            raise AutoTuneConfigError(f"Invalid rrf_k0 value {value}: must be positive", field="grid.rrf_k0")

    for value in axes["fused_top_m"]:
        if not math.isfinite(value) or value <= 0 or not float(value).is_integer():
            raise AutoTuneConfigError(
                f"Invalid fused_top_m value {value}: must be a positive integer",
                field="grid.fused_top_m",
            )

    return {name: sorted(set(values)) for name, values in axes.items()}


def normalize_target(target: str, k_values: Sequence[int]) -> str:
    """Canonical target name: 'mrr', 'recall@k' or 'ndcg@k'.

    A bare 'recall' / 'ndcg' uses the largest k.

    Raises:
        AutoTuneConfigError: If the target is not supported or its k is not evaluated
    """
    normalized = target.strip().lower()
    if normalized == "mrr":
        return normalized

    if normalized in ("recall", "ndcg"):
        return f"{normalized}@{k_values[-1]}"

    metric, _, k = normalized.partition("@")
    if metric in ("recall", "ndcg") and k.isdigit():
        if int(k) not in k_values:
            raise AutoTuneConfigError(
                f"Target {normalized} requires k={k} in k_values {list(k_values)}", field="target"
            )
        return f"{metric}@{int(k)}"

    raise AutoTuneConfigError(
        f"Unsupported target '{target}': use mrr, recall[@k] or ndcg[@k]", field="target"
    )


def _target_score(summary: BenchmarkSummary, target: str) -> float:
    if target == "mrr":
        return summary.mrr
    metric, _, k = target.partition("@")
    scores = summary.recall_at_k if metric == "recall" else summary.ndcg_at_k
    return scores.get(k, 0.0)


def expand_configs(grid: dict[str, list[float]]) -> list[FusionConfig]:
    """Cartesian product of the grid axes (w_vec outermost)."""
    return [
        FusionConfig.from_vector_weight(w_vec, rrf_k0, int(fused_top_m))
        for w_vec, rrf_k0, fused_top_m in product(grid["w_vec"], grid["rrf_k0"], grid["fused_top_m"])
    ]


def evaluate_config(
    config: FusionConfig,
    cases: Sequence[AutoTuneCase],
    k_values: Sequence[int],
    target: str,
) -> AutoTuneCandidate:
    """Re-fuse every case with ``config`` and score the fused rankings."""
    benchmark_cases = [
        BenchmarkCase(
            id=case.id,
            query=case.query,
            retrieved=fuse(case.vector_retrieved, case.lexical_retrieved, config),
            relevant=case.relevant,
        )
        for case in cases
    ]
    summary = evaluate_benchmark_cases(benchmark_cases, k_values)
    return AutoTuneCandidate(config=config, summary=summary, target_score=_target_score(summary, target))


def run_auto_tune(
    cases: Sequence[AutoTuneCase],
    target: str = "mrr",
    k_values: Iterable[float] = AUTO_TUNE_DEFAULT_K_VALUES,
    grid: AutoTuneGrid | None = None,
    top_n: int = DEFAULT_LEADERBOARD_SIZE,
    max_workers: int | None = None,
) -> AutoTuneResult:
    """Grid-search fusion parameters.

    All options are validated before any case is scored.

    Args:
        cases: Labeled replay cases
        target: mrr, recall[@k] or ndcg[@k]
        k_values: Cutoffs evaluated for recall/nDCG
        grid: Candidate values per parameter (empty axes use defaults)
        top_n: Leaderboard size (non-positive -> 5)
        max_workers: Evaluate candidates on a process pool of this size
            (None or 1 = in-process)

    Returns:
        AutoTuneResult with the best candidate and the leaderboard

    Raises:
        AutoTuneConfigError: If the dataset is empty or an option is malformed
    """
    if not cases:
        raise AutoTuneConfigError("Auto-tune dataset is empty", field="cases")

    ks = normalize_k_values(k_values)
    if not ks:
        raise AutoTuneConfigError("k_values must contain at least one positive integer", field="k_values")

    axes = normalize_grid(grid)
    target = normalize_target(target, ks)
    top_n = int(top_n) if top_n and top_n > 0 else DEFAULT_LEADERBOARD_SIZE
    configs = expand_configs(axes)

    logger.info(
        f"Auto-tune: {len(configs)} candidates x {len(cases)} cases, target={target}, k={ks}"
    )

    if max_workers and max_workers > 1:
        with ProcessPoolExecutor(max_workers=max_workers) as executor:
            candidates = list(
                executor.map(
                    evaluate_config,
                    configs,
                    [cases] * len(configs),
                    [ks] * len(configs),
                    [target] * len(configs),
                )
            )
    else:
        candidates = [evaluate_config(config, cases, ks, target) for config in configs]

    candidates.sort(key=lambda c: (-c.target_score, -c.summary.mrr, -c.config.w_vec))

    best = candidates[0]
    logger.info(
        f"Best config: w_vec={best.config.w_vec}, rrf_k0={best.config.rrf_k0}, "
        f"fused_top_m={best.config.fused_top_m}, {target}={best.target_score:.4f}"
    )

    return AutoTuneResult(
        target=target,
        k_values=ks,
        total_candidates=len(candidates),
        best=best,
        leaderboard=candidates[:top_n],
    )
