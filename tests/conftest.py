"""Pytest configuration and shared fixtures."""

import os

import numpy as np
import pandas as pd
import pytest

# Set test environment
os.environ["ENVIRONMENT"] = "development"
os.environ.setdefault("LOG_LEVEL", "WARNING")


class LookupEffectModel:
    """Deterministic effect model for exact-value tests.

    The first covariate column holds an integer code; predictions are
    looked up per code and returned on the square-root scale, so the
    caller's back-transform recovers the tabulated outcomes exactly.
    """

    MODEL_NAME = "lookup"

    def __init__(self, treated: dict[int, float], control: dict[int, float]):
        self.treated = treated
        self.control = control
        self._fitted = False

    def fit(self, X, y, z, propensity):
        self._fitted = True
        return self

    def predict(self, X, z, propensity):
        codes = np.asarray(X, dtype=float)[:, 0].astype(int)
        z = np.broadcast_to(np.asarray(z, dtype=float), codes.shape)
        outcomes = np.where(
            z == 1,
            [self.treated[c] for c in codes],
            [self.control[c] for c in codes],
        )
        return np.sqrt(outcomes)

    @property
    def is_fitted(self):
        return self._fitted


@pytest.fixture
def lookup_model():
    """Factory for LookupEffectModel instances."""
    return LookupEffectModel


def make_practice_tables(n_practices=40, seed=42):
    """Raw ACIC-format practice and practice-year tables with confounded Z."""
    rng = np.random.RandomState(seed)
    ids = np.arange(1, n_practices + 1)
    practice = pd.DataFrame(
        {
            "id.practice": ids,
            "X1": rng.binomial(1, 0.5, n_practices),
            "X2": rng.choice(["A", "B", "C"], n_practices),
            "X3": rng.binomial(1, 0.5, n_practices),
            "X4": rng.choice(["A", "B", "C"], n_practices),
            "X5": rng.binomial(1, 0.5, n_practices),
            "X6": rng.normal(0, 1, n_practices),
            "X7": rng.normal(0, 1, n_practices),
            "X8": rng.gamma(2.0, 1.0, n_practices),
            "X9": rng.uniform(0, 1, n_practices),
        }
    )
    ps = 1 / (1 + np.exp(-(0.8 * practice["X6"] + 0.5 * practice["X1"] - 0.25)))
    Z = rng.binomial(1, ps)
    Z[0], Z[1] = 1, 0

    rows = []
    for p, pid in enumerate(ids):
        for year in (1, 2, 3, 4):
            post = int(year >= 3)
            v5 = rng.dirichlet([3, 2, 1])
            rows.append(
                {
                    "id.practice": pid,
                    "year": year,
                    "Y": 800 + 50 * practice["X6"].iloc[p] + 10 * year + 40 * Z[p] * post + rng.normal(0, 20),
                    "n.patients": rng.poisson(40) + 5,
                    "V1_avg": rng.normal(0, 1),
                    "V2_avg": rng.gamma(2.0, 1.0),
                    "V3_avg": rng.uniform(0.2, 0.8),
                    "V4_avg": rng.gamma(2.0, 1.0),
                    "V5_A_avg": v5[0],
                    "V5_B_avg": v5[1],
                    "V5_C_avg": v5[2],
                    "Z": int(Z[p]),
                    "post": post,
                }
            )
    return practice, pd.DataFrame(rows)


@pytest.fixture
def practice_tables():
    """(practice, practice_year) raw tables."""
    return make_practice_tables()


@pytest.fixture
def panel(practice_tables):
    """A validated AnalysisPanel built from the raw tables."""
    from practice_satt.causal.panel import load_panel

    practice, practice_year = practice_tables
    return load_panel(practice, practice_year, dataset_id="0001")


@pytest.fixture
def fast_settings():
    """Settings with small sampling counts for quick end-to-end runs."""
    from practice_satt.config.settings import Settings

    return Settings(n_burn=5, n_samples=25, max_workers=2, random_seed=7)
