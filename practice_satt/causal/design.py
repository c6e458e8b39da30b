"""Versioned covariate views over a transformed unit table.

A ``CovariateView`` binds a covariate subset to the live unit table, the
propensity scores and a train/test split. Dropping a covariate returns a
new view whose table no longer carries that column; the previous view is
left as it was.
"""

from dataclasses import dataclass, field
from typing import Sequence

import numpy as np
import pandas as pd

from .panel import OUTCOME, PATIENTS, PRACTICE_ID, TREATMENT, YEAR
from .subgroups import CATEGORICAL_LEVELS, level_values

CovariateSubset = tuple[str, ...]

# Identity and response columns that travel with every view
_BASE_COLUMNS = [PRACTICE_ID, YEAR, TREATMENT, PATIENTS, OUTCOME]


def encode_covariates(units: pd.DataFrame, covariates: Sequence[str]) -> pd.DataFrame:
    """Build a numeric design matrix for ``covariates``.

    Categorical covariates are one-hot encoded against their full enumerated
    level set, so any row subset yields the same columns in the same order.
    """
    blocks = []
    for covariate in covariates:
        if covariate in CATEGORICAL_LEVELS:
            categorical = pd.Categorical(units[covariate], categories=level_values(covariate))
            dummies = pd.get_dummies(categorical, prefix=covariate, dtype=float)
            dummies.index = units.index
            blocks.append(dummies)
        else:
            blocks.append(units[[covariate]].astype(float))
    if not blocks:
        return pd.DataFrame(index=units.index)
    return pd.concat(blocks, axis=1)


@dataclass(frozen=True)
class CovariateView:
    """Covariate subset plus the unit table, propensity and split it applies to."""

    subset: CovariateSubset
    units: pd.DataFrame
    propensity: pd.Series
    train_index: np.ndarray
    test_index: np.ndarray
    version: int = 0
    dropped: tuple[str, ...] = field(default=())

    @classmethod
    def build(
        cls,
        units: pd.DataFrame,
        covariates: Sequence[str],
        propensity: np.ndarray,
        train_index: np.ndarray,
        test_index: np.ndarray,
    ) -> "CovariateView":
        """Create the full-covariate view for a transformed unit table.

        ``train_index``/``test_index`` are positions into ``units``.
        """
        if len(propensity) != len(units):
            raise ValueError("Propensity scores must align with units")
        columns = _BASE_COLUMNS + [c for c in covariates if c not in _BASE_COLUMNS]
        return cls(
            subset=tuple(covariates),
            units=units[columns].copy(),
            propensity=pd.Series(np.asarray(propensity, dtype=float), index=units.index),
            train_index=np.asarray(train_index),
            test_index=np.asarray(test_index),
        )

    def without(self, covariate: str) -> "CovariateView":
        """Return a new view with ``covariate`` removed from the subset and the table."""
        if covariate not in self.subset:
            raise KeyError(f"{covariate} is not in the current covariate subset")
        return CovariateView(
            subset=tuple(c for c in self.subset if c != covariate),
            units=self.units.drop(columns=[covariate]),
            propensity=self.propensity,
            train_index=self.train_index,
            test_index=self.test_index,
            version=self.version + 1,
            dropped=self.dropped + (covariate,),
        )

    def features(self, rows: pd.Index | None = None) -> np.ndarray:
        """Design matrix for the given row labels (all rows if None)."""
        frame = self.units if rows is None else self.units.loc[rows]
        return encode_covariates(frame, self.subset).to_numpy(dtype=float)

    def _rows(self, positions: np.ndarray) -> pd.Index:
        return self.units.index[positions]

    @property
    def train_rows(self) -> pd.Index:
        return self._rows(self.train_index)

    @property
    def test_rows(self) -> pd.Index:
        return self._rows(self.test_index)

    def arrays(self, rows: pd.Index) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """Return (X, y, z, propensity) for the given row labels."""
        frame = self.units.loc[rows]
        return (
            self.features(rows),
            frame[OUTCOME].to_numpy(dtype=float),
            frame[TREATMENT].to_numpy(dtype=float),
            self.propensity.loc[rows].to_numpy(dtype=float),
        )
