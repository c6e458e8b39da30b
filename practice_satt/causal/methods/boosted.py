"""Stochastic gradient-boosted sum-of-trees outcome model."""

from itertools import islice

import numpy as np
from sklearn.ensemble import GradientBoostingRegressor

from ..errors import EstimationError
from .base import EffectModel, EffectModelConfig


class BoostedEffectModel(EffectModel):
    """Single sum-of-trees surface over covariates, treatment and propensity.

    The treatment indicator and the propensity score enter as features, so
    potential outcomes are obtained by predicting the same rows with ``z``
    fixed at 0 or 1.

    ``n_burn + n_samples`` boosting stages are grown on row subsamples. The
    first ``n_burn`` staged predictions are discarded and the remaining
    ``n_samples`` are averaged, in the manner of a posterior mean over
    post-warm-up sum-of-trees draws.
    """

    MODEL_NAME = "Boosted Trees"

    def __init__(
        self,
        config: EffectModelConfig | None = None,
        learning_rate: float = 0.05,
        max_depth: int = 3,
        subsample: float = 0.5,
        min_samples_leaf: int = 5,
    ):
        """Initialize the model.

        Args:
            config: Warm-up/sampling counts and random seed
            learning_rate: Shrinkage per stage
            max_depth: Depth of each tree
            subsample: Row fraction drawn per stage
            min_samples_leaf: Minimum rows per leaf
        """
        super().__init__(config)
        self.learning_rate = learning_rate
        self.max_depth = max_depth
        self.subsample = subsample
        self.min_samples_leaf = min_samples_leaf
        self._model: GradientBoostingRegressor | None = None

    def fit(self, X, y, z, propensity) -> "BoostedEffectModel":
        X, z, propensity = self._prepare(X, z, propensity)
        y = self._check_outcome(y, X.shape[0])
        if X.shape[0] < 2:
            raise EstimationError("effect_model", f"{self.MODEL_NAME}: need at least 2 rows")

        self._model = GradientBoostingRegressor(
            n_estimators=self.config.n_burn + self.config.n_samples,
            learning_rate=self.learning_rate,
            max_depth=self.max_depth,
            subsample=self.subsample,
            min_samples_leaf=self.min_samples_leaf,
            random_state=self.config.seed,
        )
        try:
            self._model.fit(np.column_stack([X, z, propensity]), y)
        except ValueError as e:
            raise EstimationError("effect_model", f"{self.MODEL_NAME} fit failed: {e}") from e

        self._fitted = True
        return self

    def predict(self, X, z, propensity) -> np.ndarray:
        self._require_fitted()
        X, z, propensity = self._prepare(X, z, propensity)
        design = np.column_stack([X, z, propensity])

        total = np.zeros(X.shape[0])
        draws = 0
        for stage in islice(self._model.staged_predict(design), self.config.n_burn, None):
            total += stage
            draws += 1
        return total / draws
