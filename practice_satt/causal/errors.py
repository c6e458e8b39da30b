"""Structured error types for the SATT pipeline.

Each error carries the pipeline stage and, where known, the dataset id so
that a batch run can log the failure and keep processing sibling datasets.
"""


class SATTPipelineError(Exception):
    """Base error for all pipeline failures."""

    def __init__(
        self,
        stage: str,
        message: str,
        dataset_id: str | None = None,
    ) -> None:
        self.stage = stage
        self.dataset_id = dataset_id
        self.detail = message
        prefix = f"[{dataset_id}:{stage}]" if dataset_id else f"[{stage}]"
        super().__init__(f"{prefix} {message}")


class DataIntegrityError(SATTPipelineError):
    """Raised for duplicate/missing join keys, out-of-domain transform inputs,
    or a treatment indicator that varies within a practice."""


class EstimationError(SATTPipelineError):
    """Raised when the propensity model separates perfectly or an effect
    model fails to fit."""


class AggregationError(SATTPipelineError):
    """Raised when a cohort that must be non-empty has no patients."""

    def __init__(
        self,
        stage: str,
        message: str,
        dataset_id: str | None = None,
        variable: str | None = None,
        level: str | None = None,
    ) -> None:
        self.variable = variable
        self.level = level
        super().__init__(stage, message, dataset_id=dataset_id)


class JoinMismatchError(SATTPipelineError):
    """Raised by strict evaluation when estimates and ground truth keys disagree."""

    def __init__(self, n_unmatched_estimates: int, n_unmatched_truth: int) -> None:
        self.n_unmatched_estimates = n_unmatched_estimates
        self.n_unmatched_truth = n_unmatched_truth
        super().__init__(
            "evaluation",
            f"{n_unmatched_estimates} estimate key(s) without ground truth, "
            f"{n_unmatched_truth} ground-truth key(s) without estimate",
        )
