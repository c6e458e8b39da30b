"""Propensity score estimation for practice-level treatment."""

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd
from sklearn.linear_model import LogisticRegression

from ..design import encode_covariates
from ..errors import EstimationError
from ..panel import PROPENSITY_COVARIATES, TREATMENT

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PropensityModel:
    """A fitted treatment-assignment model bound to its covariate list."""

    model: LogisticRegression
    covariates: tuple[str, ...]

    def predict(self, units: pd.DataFrame, dataset_id: str | None = None) -> np.ndarray:
        """Return P(Z=1 | covariates) for every unit.

        Raises:
            EstimationError: If any score is exactly 0 or 1 (separation)
        """
        X = encode_covariates(units, self.covariates).to_numpy(dtype=float)
        scores = self.model.predict_proba(X)[:, 1]

        separated = (scores <= 0.0) | (scores >= 1.0)
        if separated.any():
            raise EstimationError(
                "propensity",
                f"perfect separation: {int(separated.sum())} unit(s) scored exactly 0 or 1",
                dataset_id=dataset_id,
            )
        return scores


class PropensityEstimator:
    """Logistic regression of treatment on pre-treatment covariates.

    The outcome never enters the model. Scores are not clipped: a score of
    exactly 0 or 1 is surfaced as an ``EstimationError`` rather than
    trimmed away.
    """

    def __init__(
        self,
        covariates: Sequence[str] = PROPENSITY_COVARIATES,
        max_iter: int = 1000,
    ):
        """Initialize the estimator.

        Args:
            covariates: Pre-treatment covariate columns
            max_iter: Solver iteration cap
        """
        self.covariates = tuple(covariates)
        self.max_iter = max_iter

    def fit(self, units: pd.DataFrame, dataset_id: str | None = None) -> PropensityModel:
        """Fit the treatment-assignment model.

        Args:
            units: Unit table holding the covariates and the treatment indicator
            dataset_id: Used in error messages only

        Returns:
            Fitted PropensityModel
        """
        missing = [c for c in self.covariates if c not in units.columns]
        if missing:
            raise EstimationError(
                "propensity", f"missing covariates {missing}", dataset_id=dataset_id
            )

        T = units[TREATMENT].to_numpy(dtype=int)
        if len(np.unique(T)) < 2:
            raise EstimationError(
                "propensity",
                "treatment indicator has a single value; both arms are required",
                dataset_id=dataset_id,
            )

        X = encode_covariates(units, self.covariates).to_numpy(dtype=float)
        ps_model = LogisticRegression(max_iter=self.max_iter, random_state=42)
        try:
            ps_model.fit(X, T)
        except ValueError as e:
            raise EstimationError(
                "propensity", f"logistic fit failed: {e}", dataset_id=dataset_id
            ) from e

        logger.debug(
            "Propensity model fitted on %d units with %d features", len(T), X.shape[1]
        )
        return PropensityModel(model=ps_model, covariates=self.covariates)

    def predict(self, model: PropensityModel, units: pd.DataFrame) -> np.ndarray:
        """Score units with a fitted model."""
        return model.predict(units)
