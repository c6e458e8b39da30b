"""Per-arm random forest outcome model."""

import numpy as np
from sklearn.ensemble import RandomForestRegressor

from ..errors import EstimationError
from .base import EffectModel, EffectModelConfig


class ForestEffectModel(EffectModel):
    """T-Learner with random forests, one surface per treatment arm.

    The propensity score is appended to the covariates of both surfaces.
    ``config.n_samples`` sets the trees per arm; forests have no warm-up
    phase, so ``config.n_burn`` is unused.
    """

    MODEL_NAME = "Random Forest T-Learner"

    def __init__(
        self,
        config: EffectModelConfig | None = None,
        min_samples_leaf: int = 5,
        max_depth: int | None = None,
    ):
        """Initialize the model.

        Args:
            config: Sampling count and random seed
            min_samples_leaf: Minimum samples per leaf
            max_depth: Maximum tree depth (None for unlimited)
        """
        super().__init__(config)
        self.min_samples_leaf = min_samples_leaf
        self.max_depth = max_depth
        self._model_treated: RandomForestRegressor | None = None
        self._model_control: RandomForestRegressor | None = None

    def _forest(self) -> RandomForestRegressor:
        return RandomForestRegressor(
            n_estimators=self.config.n_samples,
            min_samples_leaf=self.min_samples_leaf,
            max_depth=self.max_depth,
            random_state=self.config.seed,
        )

    def fit(self, X, y, z, propensity) -> "ForestEffectModel":
        X, z, propensity = self._prepare(X, z, propensity)
        y = self._check_outcome(y, X.shape[0])

        treated_idx = z == 1
        control_idx = z == 0
        if treated_idx.sum() == 0 or control_idx.sum() == 0:
            raise EstimationError(
                "effect_model",
                f"{self.MODEL_NAME}: both treatment arms need training rows "
                f"(treated={int(treated_idx.sum())}, control={int(control_idx.sum())})",
            )

        design = np.column_stack([X, propensity])
        self._model_treated = self._forest()
        self._model_control = self._forest()
        try:
            self._model_treated.fit(design[treated_idx], y[treated_idx])
            self._model_control.fit(design[control_idx], y[control_idx])
        except ValueError as e:
            raise EstimationError("effect_model", f"{self.MODEL_NAME} fit failed: {e}") from e

        self._fitted = True
        return self

    def predict(self, X, z, propensity) -> np.ndarray:
        self._require_fitted()
        X, z, propensity = self._prepare(X, z, propensity)
        design = np.column_stack([X, propensity])

        predictions = np.empty(X.shape[0])
        treated_idx = z == 1
        if treated_idx.any():
            predictions[treated_idx] = self._model_treated.predict(design[treated_idx])
        if (~treated_idx).any():
            predictions[~treated_idx] = self._model_control.predict(design[~treated_idx])
        return predictions
