"""Unit tests for backward-elimination model selection.

The outcome is held constant at 100 so that an offset model predicting
``100 + offset`` scores a held-out RMSE of exactly ``offset``; offsets
are keyed by design-matrix width, i.e. by how many columns were dropped.
"""

import numpy as np
import pytest

from practice_satt.causal.design import CovariateView
from practice_satt.causal.errors import EstimationError
from practice_satt.causal.estimators.model_selection import ModelSelector
from practice_satt.causal.panel import MODEL_COVARIATES
from practice_satt.causal.splitting import split
from practice_satt.causal.transforms import VariableTransform

CANDIDATES = ["V5_C_avg", "V3_avg", "X9"]
FULL_WIDTH = 24


class OffsetModel:
    """Predicts sqrt(100 + offset) for every row; offset depends on width."""

    def __init__(self, offsets, default=50.0, fail_widths=()):
        self.offsets = offsets
        self.default = default
        self.fail_widths = set(fail_widths)
        self.width = None

    def fit(self, X, y, z, propensity):
        self.width = X.shape[1]
        if self.width in self.fail_widths:
            raise EstimationError("effect_model", f"cannot fit width {self.width}")
        return self

    def predict(self, X, z, propensity):
        offset = self.offsets.get(self.width, self.default)
        return np.full(X.shape[0], np.sqrt(100.0 + offset))


def factory(offsets, **kwargs):
    return lambda: OffsetModel(offsets, **kwargs)


@pytest.fixture
def view(panel):
    units = VariableTransform().apply(panel.units.assign(Y=100.0))
    n = len(units)
    train, test = split(n, 0.33, seed=0)
    return CovariateView.build(units, MODEL_COVARIATES, np.full(n, 0.5), train, test)


def select(view, offsets, candidates=CANDIDATES, **kwargs):
    selector = ModelSelector(factory(offsets, **kwargs), candidates, dataset_id="0001")
    return selector.select(view)


class TestModelSelector:
    """Test the single elimination pass."""

    def test_held_out_rmse_in_original_units(self, view):
        selector = ModelSelector(factory({}), CANDIDATES)
        model = selector.fit(view)
        assert selector.held_out_rmse(model, view) == pytest.approx(50.0)

    def test_all_candidates_accepted(self, view):
        result = select(
            view,
            {FULL_WIDTH: 10.0, FULL_WIDTH - 1: 8.0, FULL_WIDTH - 2: 6.0, FULL_WIDTH - 3: 4.0},
        )

        assert result.dropped == tuple(CANDIDATES)
        assert result.baseline_rmse == pytest.approx(10.0)
        assert result.final_rmse == pytest.approx(4.0)
        assert [step.accepted for step in result.steps] == [True, True, True]
        for covariate in CANDIDATES:
            assert covariate not in result.view.units.columns

    def test_no_candidate_improves(self, view):
        result = select(view, {FULL_WIDTH: 5.0}, default=7.0)

        assert result.dropped == ()
        assert result.view is view
        assert result.final_rmse == pytest.approx(result.baseline_rmse)
        assert not any(step.accepted for step in result.steps)

    def test_ties_rejected(self, view):
        """Only a strict improvement removes a covariate."""
        result = select(view, {}, default=5.0)
        assert result.dropped == ()

    def test_rejected_candidate_stays_for_later_steps(self, view):
        result = select(view, {FULL_WIDTH: 10.0, FULL_WIDTH - 1: 8.0, FULL_WIDTH - 2: 9.0})

        assert result.dropped == ("V5_C_avg",)
        assert result.final_rmse == pytest.approx(8.0)
        assert "V3_avg" in result.view.subset
        assert "X9" in result.view.subset
        assert [step.rmse for step in result.steps] == pytest.approx([8.0, 9.0, 9.0])

    def test_challenger_fit_failure_rejected(self, view):
        result = select(view, {FULL_WIDTH: 10.0}, default=1.0, fail_widths={FULL_WIDTH - 1})

        assert result.dropped == ()
        assert result.final_rmse == pytest.approx(10.0)
        assert all(step.reason.startswith("fit failed") for step in result.steps)

    def test_baseline_fit_failure_is_fatal(self, view):
        with pytest.raises(EstimationError, match="baseline") as exc_info:
            select(view, {}, fail_widths={FULL_WIDTH})
        assert exc_info.value.stage == "model_selection"
        assert exc_info.value.dataset_id == "0001"

    def test_candidate_not_in_subset_skipped(self, view):
        result = select(view, {FULL_WIDTH: 10.0}, candidates=["X99", "X9"], default=3.0)

        assert result.steps[0].reason == "not in subset"
        assert result.dropped == ("X9",)

    def test_final_never_worse_than_baseline(self, view):
        for offsets in (
            {FULL_WIDTH: 3.0},
            {FULL_WIDTH: 3.0, FULL_WIDTH - 1: 2.0, FULL_WIDTH - 2: 2.5},
            {FULL_WIDTH - 1: 1.0},
        ):
            result = select(view, offsets, default=4.0)
            assert result.final_rmse <= result.baseline_rmse

    def test_input_view_unchanged(self, view):
        select(view, {FULL_WIDTH: 10.0}, default=1.0)

        assert view.version == 0
        assert view.subset == tuple(MODEL_COVARIATES)
        assert all(c in view.units.columns for c in CANDIDATES)

    def test_to_dict(self, view):
        summary = select(view, {FULL_WIDTH: 10.0, FULL_WIDTH - 1: 8.0}).to_dict()

        assert summary["dropped"] == ["V5_C_avg"]
        assert summary["n_covariates"] == len(MODEL_COVARIATES) - 1
        assert len(summary["steps"]) == 3
