"""Offline evaluation: rank metrics, labeled datasets and fusion auto-tuning.

Author: Hay Hoffman
"""

from codecontext.evaluation.auto_tune import run_auto_tune
from codecontext.evaluation.datasets import load_auto_tune_dataset, load_benchmark_dataset
from codecontext.evaluation.metrics import evaluate_benchmark_cases

__all__ = [
    "run_auto_tune",
    "load_auto_tune_dataset",
    "load_benchmark_dataset",
    "evaluate_benchmark_cases",
]
