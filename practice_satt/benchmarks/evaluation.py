"""Evaluation of SATT estimates against ground truth.

Estimates and truths are inner-joined on the exact key
(dataset_id, variable, level, year). Keys present on only one side are
counted and logged, then excluded from the RMSE tables.

Metrics:
- RMSE by variable/level across datasets
- RMSE of the Overall estimate by each dataset metadata dimension
"""

from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from practice_satt.causal.errors import JoinMismatchError
from practice_satt.causal.panel import format_dataset_id
from practice_satt.logging_config.structured import get_logger

from .datasets import METADATA_DIMENSIONS

logger = get_logger(__name__)

KEY_COLUMNS = ["dataset_id", "variable", "level", "year"]
_MISSING = "NA"


def rmse(errors) -> float:
    """Root mean squared error of a vector of (estimate - truth) differences."""
    errors = np.asarray(errors, dtype=float)
    return float(np.sqrt(np.mean(errors ** 2)))


def _join_keys(frame: pd.DataFrame) -> pd.DataFrame:
    """Add string join keys; missing level/year map to one sentinel on both sides."""
    keyed = frame.copy()
    keyed["_dataset"] = keyed["dataset_id"].map(format_dataset_id)
    keyed["_variable"] = keyed["variable"].astype(str)
    keyed["_level"] = keyed["level"].map(lambda v: _MISSING if pd.isna(v) else str(v))
    keyed["_year"] = keyed["year"].map(lambda v: _MISSING if pd.isna(v) else str(int(v)))
    return keyed


@dataclass
class EvaluationReport:
    """Grouped RMSE tables plus join diagnostics."""

    by_subgroup: pd.DataFrame
    by_metadata: dict[str, pd.DataFrame] = field(default_factory=dict)
    joined: pd.DataFrame = field(default_factory=pd.DataFrame)
    n_matched: int = 0
    n_unmatched_estimates: int = 0
    n_unmatched_truth: int = 0

    @property
    def n_excluded(self) -> int:
        return self.n_unmatched_estimates + self.n_unmatched_truth

    def overall_rmse(self) -> float | None:
        """RMSE of the Overall estimate across datasets, if any matched."""
        overall = self.by_subgroup[self.by_subgroup["variable"] == "Overall"]
        if overall.empty:
            return None
        return float(overall["rmse"].iloc[0])

    def summary(self) -> str:
        """Human-readable summary."""
        lines = [f"Matched: {self.n_matched}"]
        if self.n_excluded:
            lines.append(
                f"Excluded: {self.n_unmatched_estimates} estimate(s), {self.n_unmatched_truth} truth(s)"
            )
        overall = self.overall_rmse()
        if overall is not None:
            lines.append(f"Overall RMSE: {overall:.4f}")
        return " | ".join(lines)


class Evaluator:
    """Scores SATT estimates against ground-truth SATT."""

    def __init__(self):
        """Initialize evaluator."""
        self.logger = get_logger("satt_evaluator")

    def join(self, estimates: pd.DataFrame, truth: pd.DataFrame) -> tuple[pd.DataFrame, int, int]:
        """Inner-join estimates to truth on the exact key.

        Truth rows for datasets with no estimates at all are outside the
        comparison and are not counted as unmatched.

        Returns:
            Tuple of (joined rows, unmatched estimate count, unmatched truth count)
        """
        est = _join_keys(estimates)
        tru = _join_keys(truth)
        tru = tru[tru["_dataset"].isin(set(est["_dataset"]))]

        join_on = ["_dataset", "_variable", "_level", "_year"]
        merged = est.merge(
            tru.drop(columns=KEY_COLUMNS),
            on=join_on,
            how="outer",
            suffixes=("_est", "_true"),
            indicator=True,
        )
        n_unmatched_est = int((merged["_merge"] == "left_only").sum())
        n_unmatched_truth = int((merged["_merge"] == "right_only").sum())

        joined = merged[merged["_merge"] == "both"].copy()
        joined["dataset_id"] = joined["_dataset"]
        joined["variable"] = joined["_variable"]
        joined["level"] = joined["_level"].where(joined["_level"] != _MISSING, None)
        joined["year"] = pd.to_numeric(joined["_year"].where(joined["_year"] != _MISSING), errors="coerce").astype("Int64")
        joined["error"] = joined["satt_est"] - joined["satt_true"]
        joined = joined.drop(columns=join_on + ["_merge"]).reset_index(drop=True)
        return joined, n_unmatched_est, n_unmatched_truth

    def evaluate(
        self,
        estimates: pd.DataFrame,
        truth: pd.DataFrame,
        strict: bool = False,
    ) -> EvaluationReport:
        """Compute grouped RMSE of estimates against truth.

        Args:
            estimates: Results table (dataset_id, variable, level, year, satt)
            truth: Normalized ground truth (see ``normalize_ground_truth``)
            strict: Raise instead of excluding unmatched keys

        Returns:
            EvaluationReport

        Raises:
            JoinMismatchError: If ``strict`` and any key is unmatched
        """
        joined, n_unmatched_est, n_unmatched_truth = self.join(estimates, truth)

        if n_unmatched_est or n_unmatched_truth:
            self.logger.warning(
                "evaluation_unmatched_keys",
                unmatched_estimates=n_unmatched_est,
                unmatched_truth=n_unmatched_truth,
            )
            if strict:
                raise JoinMismatchError(n_unmatched_est, n_unmatched_truth)

        by_subgroup = (
            joined.groupby(["variable", "level"], dropna=False, sort=False)["error"]
            .agg(rmse=rmse, n="size")
            .reset_index()
        )

        overall = joined[joined["variable"] == "Overall"]
        by_metadata = {}
        for dimension in METADATA_DIMENSIONS:
            if dimension not in overall.columns:
                continue
            by_metadata[dimension] = (
                overall.groupby(dimension, dropna=False)["error"]
                .agg(rmse=rmse, n="size")
                .reset_index()
            )

        report = EvaluationReport(
            by_subgroup=by_subgroup,
            by_metadata=by_metadata,
            joined=joined,
            n_matched=len(joined),
            n_unmatched_estimates=n_unmatched_est,
            n_unmatched_truth=n_unmatched_truth,
        )
        self.logger.info(
            "evaluation_complete",
            n_matched=report.n_matched,
            n_excluded=report.n_excluded,
            overall_rmse=report.overall_rmse(),
        )
        return report
