"""Base class for causal outcome models."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np

from ..errors import EstimationError


@dataclass(frozen=True)
class EffectModelConfig:
    """Sampling configuration for an effect model.

    ``n_burn`` warm-up iterations are discarded and ``n_samples`` iterations
    are averaged into each prediction. More samples lower the Monte-Carlo
    variance of predictions; neither count changes what is being estimated.
    """

    n_burn: int = 100
    n_samples: int = 200
    seed: int = 42


class EffectModel(ABC):
    """Abstract base class for potential-outcome regression models.

    Each model implements:
    1. fit() - Fit outcome surfaces from covariates, treatment and propensity
    2. predict() - Predict outcomes for covariate rows under a treatment assignment

    Predictions are on the scale of the ``y`` passed to ``fit``; callers
    back-transform them.
    """

    MODEL_NAME: str = "base"

    def __init__(self, config: EffectModelConfig | None = None):
        """Initialize the model.

        Args:
            config: Warm-up/sampling counts and random seed
        """
        self.config = config or EffectModelConfig()
        self._fitted = False

    @abstractmethod
    def fit(
        self,
        X: np.ndarray,
        y: np.ndarray,
        z: np.ndarray,
        propensity: np.ndarray,
    ) -> "EffectModel":
        """Fit the outcome model.

        Args:
            X: Covariate matrix (n_rows, n_covariates)
            y: Outcome (transformed scale)
            z: Treatment indicator (0/1)
            propensity: Propensity score per row

        Returns:
            Self for chaining

        Raises:
            EstimationError: If the inputs are malformed or the fit fails
        """
        pass

    @abstractmethod
    def predict(
        self,
        X: np.ndarray,
        z: np.ndarray | int,
        propensity: np.ndarray,
    ) -> np.ndarray:
        """Predict outcomes for ``X`` under treatment assignment ``z``.

        Args:
            X: Covariate matrix
            z: Per-row treatment assignment, or a scalar 0/1 applied to every row
            propensity: Propensity score per row

        Returns:
            Predicted outcome per row
        """
        pass

    def _prepare(
        self,
        X: np.ndarray,
        z: np.ndarray | int,
        propensity: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Validate shapes and broadcast a scalar treatment assignment."""
        X = np.asarray(X, dtype=float)
        if X.ndim == 1:
            X = X.reshape(-1, 1)
        n = X.shape[0]
        z = np.broadcast_to(np.asarray(z, dtype=float), (n,)).copy()
        propensity = np.asarray(propensity, dtype=float).reshape(-1)

        if len(propensity) != n:
            raise EstimationError(
                "effect_model",
                f"{self.MODEL_NAME}: {n} covariate rows but {len(propensity)} propensity scores",
            )
        if not np.isin(z, (0.0, 1.0)).all():
            raise EstimationError("effect_model", f"{self.MODEL_NAME}: treatment must be 0/1")
        if not (np.isfinite(X).all() and np.isfinite(propensity).all()):
            raise EstimationError("effect_model", f"{self.MODEL_NAME}: non-finite inputs")
        return X, z, propensity

    def _check_outcome(self, y: np.ndarray, n: int) -> np.ndarray:
        y = np.asarray(y, dtype=float).reshape(-1)
        if len(y) != n:
            raise EstimationError(
                "effect_model", f"{self.MODEL_NAME}: {n} covariate rows but {len(y)} outcomes"
            )
        if not np.isfinite(y).all():
            raise EstimationError("effect_model", f"{self.MODEL_NAME}: non-finite outcomes")
        return y

    def _require_fitted(self) -> None:
        if not self._fitted:
            raise ValueError("Model must be fitted before predicting")

    @property
    def is_fitted(self) -> bool:
        """Check if model is fitted."""
        return self._fitted
