"""Greedy backward elimination of covariates by held-out error."""

from dataclasses import dataclass, field
from typing import Callable, Sequence

import numpy as np

from practice_satt.logging_config.structured import get_logger

from ..design import CovariateView
from ..errors import EstimationError
from ..methods.base import EffectModel
from ..panel import OUTCOME
from ..transforms import VariableTransform

logger = get_logger(__name__)


@dataclass(frozen=True)
class SelectionStep:
    """Outcome of trying to drop one candidate covariate."""

    candidate: str
    accepted: bool
    rmse: float | None = None
    reason: str | None = None


@dataclass
class SelectionResult:
    """Selected model together with the view it was trained on."""

    model: EffectModel
    view: CovariateView
    baseline_rmse: float
    final_rmse: float
    steps: list[SelectionStep] = field(default_factory=list)

    @property
    def dropped(self) -> tuple[str, ...]:
        return self.view.dropped

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "baseline_rmse": self.baseline_rmse,
            "final_rmse": self.final_rmse,
            "dropped": list(self.dropped),
            "n_covariates": len(self.view.subset),
            "steps": [step.__dict__ for step in self.steps],
        }


class ModelSelector:
    """One pass over a fixed candidate list, keeping a drop only on strict improvement.

    Each candidate is evaluated against the current best view: the challenger
    is that view minus the candidate, refit on the same training rows and
    scored on the same test rows. Held-out RMSE is measured in original
    outcome units, predicting every test row under its recorded treatment.
    """

    def __init__(
        self,
        model_factory: Callable[[], EffectModel],
        candidates: Sequence[str],
        transform: VariableTransform | None = None,
        dataset_id: str | None = None,
    ):
        """Initialize the selector.

        Args:
            model_factory: Returns a fresh, unfitted EffectModel
            candidates: Covariates to try dropping, in order
            transform: Used to back-transform outcomes before scoring
            dataset_id: For log context only
        """
        self.model_factory = model_factory
        self.candidates = list(candidates)
        self.transform = transform or VariableTransform()
        self.dataset_id = dataset_id

    def fit(self, view: CovariateView) -> EffectModel:
        """Fit a fresh model on the view's training rows."""
        X, y, z, ps = view.arrays(view.train_rows)
        return self.model_factory().fit(X, y, z, ps)

    def held_out_rmse(self, model: EffectModel, view: CovariateView) -> float:
        """RMSE on the view's test rows, in original outcome units."""
        X, y, z, ps = view.arrays(view.test_rows)
        predicted = self.transform.invert(OUTCOME, model.predict(X, z, ps))
        observed = self.transform.invert(OUTCOME, y)
        return float(np.sqrt(np.mean((predicted - observed) ** 2)))

    def select(self, view: CovariateView) -> SelectionResult:
        """Run the elimination pass starting from ``view``.

        Raises:
            EstimationError: If the baseline (full-covariate) model cannot be fit
        """
        log = logger.bind(dataset_id=self.dataset_id, stage="model_selection")

        try:
            best_model = self.fit(view)
        except EstimationError as e:
            raise EstimationError(
                "model_selection", f"baseline fit failed: {e.detail}", dataset_id=self.dataset_id
            ) from e
        best_view = view
        best_rmse = baseline_rmse = self.held_out_rmse(best_model, best_view)
        log.info("baseline_fitted", rmse=baseline_rmse, n_covariates=len(view.subset))

        steps: list[SelectionStep] = []
        for candidate in self.candidates:
            if candidate not in best_view.subset:
                log.warning("candidate_skipped", candidate=candidate, reason="not in subset")
                steps.append(SelectionStep(candidate, accepted=False, reason="not in subset"))
                continue

            challenger_view = best_view.without(candidate)
            try:
                challenger = self.fit(challenger_view)
                challenger_rmse = self.held_out_rmse(challenger, challenger_view)
            except EstimationError as e:
                log.warning("candidate_rejected", candidate=candidate, reason="fit_failed", error=e.detail)
                steps.append(SelectionStep(candidate, accepted=False, reason=f"fit failed: {e.detail}"))
                continue

            if challenger_rmse < best_rmse:
                log.info(
                    "candidate_accepted",
                    candidate=candidate,
                    rmse=challenger_rmse,
                    previous_rmse=best_rmse,
                )
                best_model, best_view, best_rmse = challenger, challenger_view, challenger_rmse
                steps.append(SelectionStep(candidate, accepted=True, rmse=challenger_rmse))
            else:
                log.info(
                    "candidate_rejected",
                    candidate=candidate,
                    reason="no_improvement",
                    rmse=challenger_rmse,
                    current_rmse=best_rmse,
                )
                steps.append(
                    SelectionStep(candidate, accepted=False, rmse=challenger_rmse, reason="no improvement")
                )

        return SelectionResult(
            model=best_model,
            view=best_view,
            baseline_rmse=baseline_rmse,
            final_rmse=best_rmse,
            steps=steps,
        )
