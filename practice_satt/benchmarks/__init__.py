"""Ground truth, synthetic panels and evaluation for SATT estimates."""

from .datasets import (
    METADATA_DIMENSIONS,
    SyntheticPanelSource,
    SyntheticPracticePanel,
    load_ground_truth,
    normalize_ground_truth,
)
from .evaluation import EvaluationReport, Evaluator, rmse

__all__ = [
    # Datasets
    "METADATA_DIMENSIONS",
    "SyntheticPanelSource",
    "SyntheticPracticePanel",
    "load_ground_truth",
    "normalize_ground_truth",
    # Evaluation
    "EvaluationReport",
    "Evaluator",
    "rmse",
]
