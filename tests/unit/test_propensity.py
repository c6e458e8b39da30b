"""Unit tests for propensity score estimation."""

import numpy as np
import pytest

from practice_satt.causal.errors import EstimationError
from practice_satt.causal.methods.propensity import PropensityEstimator, PropensityModel
from practice_satt.causal.panel import PROPENSITY_COVARIATES
from practice_satt.causal.transforms import VariableTransform


class _SeparatingClassifier:
    """Scores every unit as certainly treated."""

    def predict_proba(self, X):
        n = np.asarray(X).shape[0]
        return np.column_stack([np.zeros(n), np.ones(n)])


class TestPropensityEstimator:
    """Test logistic treatment-assignment model."""

    def test_scores_in_open_interval(self, panel):
        units = VariableTransform().apply(panel.units)
        model = PropensityEstimator().fit(units, dataset_id="0001")
        scores = model.predict(units)

        assert scores.shape == (len(units),)
        assert ((scores > 0) & (scores < 1)).all()

    def test_treated_score_higher_on_average(self, panel):
        """Treatment is driven by X6/X1, so treated units score higher."""
        estimator = PropensityEstimator()
        model = estimator.fit(panel.units)
        scores = estimator.predict(model, panel.units)

        treated = panel.units["Z"].to_numpy() == 1
        assert scores[treated].mean() > scores[~treated].mean()

    def test_outcome_not_used(self, panel):
        units = panel.units
        shuffled = units.assign(Y=units["Y"].sample(frac=1.0, random_state=0).to_numpy())

        original = PropensityEstimator().fit(units).predict(units)
        permuted = PropensityEstimator().fit(shuffled).predict(shuffled)
        np.testing.assert_allclose(original, permuted)

    def test_single_arm_rejected(self, panel):
        units = panel.units.assign(Z=1)

        with pytest.raises(EstimationError, match="single value") as exc_info:
            PropensityEstimator().fit(units, dataset_id="0001")
        assert exc_info.value.stage == "propensity"

    def test_missing_covariate_rejected(self, panel):
        with pytest.raises(EstimationError, match="missing covariates"):
            PropensityEstimator().fit(panel.units.drop(columns=["X9"]))

    def test_perfect_separation_rejected(self, panel):
        """Scores of exactly 0 or 1 are surfaced, not clipped."""
        model = PropensityModel(
            model=_SeparatingClassifier(), covariates=tuple(PROPENSITY_COVARIATES)
        )

        with pytest.raises(EstimationError, match="separation") as exc_info:
            model.predict(panel.units, dataset_id="0007")
        assert exc_info.value.dataset_id == "0007"
