"""Unit tests for potential-outcome models."""

import numpy as np
import pytest

from practice_satt.causal.errors import EstimationError
from practice_satt.causal.methods import (
    EFFECT_MODELS,
    BoostedEffectModel,
    EffectModelConfig,
    ForestEffectModel,
    create_effect_model,
)

FAST = EffectModelConfig(n_burn=5, n_samples=30, seed=11)


def make_effect_data(n=300, effect=2.0, seed=42):
    """y = X0 + 0.5*X1 + effect*z + noise, with confounded z."""
    rng = np.random.RandomState(seed)
    X = rng.normal(0, 1, (n, 3))
    ps = 1 / (1 + np.exp(-0.7 * X[:, 0]))
    z = rng.binomial(1, ps).astype(float)
    y = X[:, 0] + 0.5 * X[:, 1] + effect * z + rng.normal(0, 0.1, n)
    return X, y, z, ps


@pytest.fixture(params=["boosted", "forest"])
def model_name(request):
    return request.param


class TestEffectModels:
    """Shared behaviour of every registered model."""

    def test_fit_predict_shape(self, model_name):
        X, y, z, ps = make_effect_data()
        model = create_effect_model(model_name, FAST).fit(X, y, z, ps)

        assert model.is_fitted
        assert model.predict(X, z, ps).shape == (len(y),)

    def test_deterministic_for_fixed_seed(self, model_name):
        X, y, z, ps = make_effect_data()
        first = create_effect_model(model_name, FAST).fit(X, y, z, ps).predict(X, 1, ps)
        second = create_effect_model(model_name, FAST).fit(X, y, z, ps).predict(X, 1, ps)
        np.testing.assert_array_equal(first, second)

    def test_treatment_raises_prediction(self, model_name):
        X, y, z, ps = make_effect_data(effect=3.0)
        model = create_effect_model(model_name, FAST).fit(X, y, z, ps)

        diff = model.predict(X, 1, ps) - model.predict(X, 0, ps)
        assert diff.mean() > 0.3

    def test_scalar_treatment_broadcast(self, model_name):
        X, y, z, ps = make_effect_data()
        model = create_effect_model(model_name, FAST).fit(X, y, z, ps)
        np.testing.assert_array_equal(
            model.predict(X, 0, ps), model.predict(X, np.zeros(len(y)), ps)
        )

    def test_predict_before_fit(self, model_name):
        X, _, z, ps = make_effect_data()
        with pytest.raises(ValueError, match="fitted"):
            create_effect_model(model_name, FAST).predict(X, z, ps)

    def test_non_finite_inputs_rejected(self, model_name):
        X, y, z, ps = make_effect_data()
        X[4, 1] = np.nan
        with pytest.raises(EstimationError) as exc_info:
            create_effect_model(model_name, FAST).fit(X, y, z, ps)
        assert exc_info.value.stage == "effect_model"

    def test_non_binary_treatment_rejected(self, model_name):
        X, y, z, ps = make_effect_data()
        z = z.copy()
        z[0] = 0.5
        with pytest.raises(EstimationError, match="0/1"):
            create_effect_model(model_name, FAST).fit(X, y, z, ps)

    def test_misaligned_propensity_rejected(self, model_name):
        X, y, z, ps = make_effect_data()
        with pytest.raises(EstimationError, match="propensity"):
            create_effect_model(model_name, FAST).fit(X, y, z, ps[:-1])


class TestBoostedEffectModel:
    """Test the boosted sum-of-trees model."""

    def test_stage_count(self):
        X, y, z, ps = make_effect_data()
        model = BoostedEffectModel(FAST).fit(X, y, z, ps)
        assert model._model.n_estimators_ == FAST.n_burn + FAST.n_samples

    def test_zero_burn(self):
        X, y, z, ps = make_effect_data()
        config = EffectModelConfig(n_burn=0, n_samples=10, seed=1)
        predictions = BoostedEffectModel(config).fit(X, y, z, ps).predict(X, z, ps)
        assert np.isfinite(predictions).all()

    def test_too_few_rows(self):
        X, y, z, ps = make_effect_data(n=300)
        with pytest.raises(EstimationError, match="at least 2 rows"):
            BoostedEffectModel(FAST).fit(X[:1], y[:1], z[:1], ps[:1])


class TestForestEffectModel:
    """Test the per-arm forest model."""

    def test_recovers_constant_effect(self):
        X, y, z, ps = make_effect_data(n=600, effect=2.0)
        model = ForestEffectModel(FAST).fit(X, y, z, ps)

        diff = model.predict(X, 1, ps) - model.predict(X, 0, ps)
        assert abs(diff.mean() - 2.0) < 0.5

    def test_empty_arm_rejected(self):
        X, y, _, ps = make_effect_data()
        with pytest.raises(EstimationError, match="both treatment arms"):
            ForestEffectModel(FAST).fit(X, y, np.ones(len(y)), ps)

    def test_trees_per_arm(self):
        X, y, z, ps = make_effect_data()
        model = ForestEffectModel(FAST).fit(X, y, z, ps)
        assert len(model._model_treated.estimators_) == FAST.n_samples
        assert len(model._model_control.estimators_) == FAST.n_samples


class TestRegistry:
    """Test the effect model registry."""

    def test_registered_models(self):
        assert set(EFFECT_MODELS) == {"boosted", "forest"}

    def test_create_by_name(self):
        assert isinstance(create_effect_model("Forest"), ForestEffectModel)
        assert isinstance(create_effect_model("boosted", FAST), BoostedEffectModel)
        assert create_effect_model("boosted", FAST).config == FAST

    def test_unknown_model(self):
        with pytest.raises(ValueError, match="Unknown effect model"):
            create_effect_model("bart")
