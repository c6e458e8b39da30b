"""Practice panel ingestion.

Joins the practice-level table to the practice-year table and validates
the result into an ``AnalysisPanel``: one row per (practice, year) with a
practice-level treatment indicator and enumerated categorical covariates.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import numpy as np
import pandas as pd

from practice_satt.logging_config.structured import get_logger

from .errors import DataIntegrityError
from .subgroups import CATEGORICAL_LEVELS, level_values

logger = get_logger(__name__)

PRACTICE_ID = "id_practice"
YEAR = "year"
TREATMENT = "Z"
POST = "post"
PATIENTS = "n_patients"
OUTCOME = "Y"

VALID_YEARS = (1, 2, 3, 4)

CATEGORICAL_COVARIATES = list(CATEGORICAL_LEVELS)
CONTINUOUS_PRACTICE_COVARIATES = ["X6", "X7", "X8", "X9"]
V_COVARIATES = ["V1_avg", "V2_avg", "V3_avg", "V4_avg", "V5_A_avg", "V5_B_avg", "V5_C_avg"]

# Pre-treatment covariates used for treatment assignment
PROPENSITY_COVARIATES = CATEGORICAL_COVARIATES + CONTINUOUS_PRACTICE_COVARIATES + V_COVARIATES

# Outcome model inputs; treatment, outcome and patient count are never features
MODEL_COVARIATES = PROPENSITY_COVARIATES + [YEAR]

_RENAMES = {
    "id.practice": PRACTICE_ID,
    "n.patients": PATIENTS,
}


def _normalize_columns(frame: pd.DataFrame) -> pd.DataFrame:
    return frame.rename(columns=_RENAMES)


@dataclass(frozen=True)
class AnalysisPanel:
    """Validated practice-year units for one simulated dataset."""

    dataset_id: str
    units: pd.DataFrame

    @property
    def n_units(self) -> int:
        return len(self.units)

    @property
    def n_practices(self) -> int:
        return int(self.units[PRACTICE_ID].nunique())

    @property
    def n_treated_practices(self) -> int:
        treated = self.units[self.units[TREATMENT] == 1]
        return int(treated[PRACTICE_ID].nunique())


def _integrity(dataset_id: str, message: str) -> DataIntegrityError:
    return DataIntegrityError("ingestion", message, dataset_id=dataset_id)


def _coerce_categorical(
    series: pd.Series, covariate: str, dataset_id: str
) -> pd.Series:
    """Map raw codes (ints, floats or strings) onto the covariate's enum values."""
    if series.isna().any():
        raise _integrity(dataset_id, f"missing values in categorical covariate {covariate}")
    if pd.api.types.is_numeric_dtype(series):
        if pd.api.types.is_float_dtype(series):
            fractional = series != series.round()
            if fractional.any():
                raise _integrity(
                    dataset_id,
                    f"covariate {covariate} has {int(fractional.sum())} non-integer code(s)",
                )
        coerced = series.astype("int64").astype(str)
    else:
        coerced = series.astype(str).str.strip()

    allowed = set(level_values(covariate))
    unexpected = sorted(set(coerced) - allowed)
    if unexpected:
        raise _integrity(
            dataset_id,
            f"covariate {covariate} has levels {unexpected} outside {sorted(allowed)}",
        )
    return coerced


def load_panel(
    practice: pd.DataFrame,
    practice_year: pd.DataFrame,
    dataset_id: str,
) -> AnalysisPanel:
    """Join and validate the practice and practice-year tables.

    Args:
        practice: One row per practice with static covariates
        practice_year: One row per (practice, year) with Z, post, patient count and Y
        dataset_id: Zero-padded dataset identifier

    Returns:
        AnalysisPanel sorted by practice and year

    Raises:
        DataIntegrityError: On duplicate or orphaned keys, a treatment indicator
            that varies within a practice, or out-of-domain values
    """
    practice = _normalize_columns(practice)
    practice_year = _normalize_columns(practice_year)

    for name, frame, required in (
        ("practice", practice, [PRACTICE_ID]),
        ("practice_year", practice_year, [PRACTICE_ID, YEAR, TREATMENT, POST, PATIENTS, OUTCOME]),
    ):
        missing = [c for c in required if c not in frame.columns]
        if missing:
            raise _integrity(dataset_id, f"{name} table is missing columns {missing}")

    if practice[PRACTICE_ID].duplicated().any():
        n_dup = int(practice[PRACTICE_ID].duplicated().sum())
        raise _integrity(dataset_id, f"{n_dup} duplicate practice id(s) in practice table")

    if practice_year.duplicated(subset=[PRACTICE_ID, YEAR]).any():
        n_dup = int(practice_year.duplicated(subset=[PRACTICE_ID, YEAR]).sum())
        raise _integrity(dataset_id, f"{n_dup} duplicate (practice, year) key(s)")

    orphans = ~practice_year[PRACTICE_ID].isin(practice[PRACTICE_ID])
    if orphans.any():
        raise _integrity(
            dataset_id,
            f"{int(orphans.sum())} practice-year row(s) reference unknown practices",
        )

    # Columns present in both tables keep the practice-year version
    overlap = [c for c in practice.columns if c in practice_year.columns and c != PRACTICE_ID]
    units = practice_year.merge(
        practice.drop(columns=overlap), on=PRACTICE_ID, how="inner", validate="many_to_one"
    )

    missing_covs = [c for c in PROPENSITY_COVARIATES if c not in units.columns]
    if missing_covs:
        raise _integrity(dataset_id, f"joined table is missing covariates {missing_covs}")

    if not units[YEAR].isin(VALID_YEARS).all():
        bad = sorted(set(units.loc[~units[YEAR].isin(VALID_YEARS), YEAR]))
        raise _integrity(dataset_id, f"years {bad} outside {list(VALID_YEARS)}")

    for col in (TREATMENT, POST):
        if not units[col].isin([0, 1]).all():
            raise _integrity(dataset_id, f"{col} must be binary 0/1")

    z_per_practice = units.groupby(PRACTICE_ID)[TREATMENT].nunique()
    varying = z_per_practice[z_per_practice > 1]
    if not varying.empty:
        raise _integrity(
            dataset_id,
            f"treatment varies across years for {len(varying)} practice(s), e.g. {varying.index[0]}",
        )

    units = units.copy()
    for covariate in CATEGORICAL_COVARIATES:
        units[covariate] = _coerce_categorical(units[covariate], covariate, dataset_id)

    numeric = CONTINUOUS_PRACTICE_COVARIATES + V_COVARIATES + [OUTCOME, PATIENTS]
    units[numeric] = units[numeric].astype(float)
    if units[numeric].isna().any().any():
        cols = units[numeric].columns[units[numeric].isna().any()].tolist()
        raise _integrity(dataset_id, f"missing values in {cols}")

    units[YEAR] = units[YEAR].astype(int)
    units[TREATMENT] = units[TREATMENT].astype(int)
    units[POST] = units[POST].astype(int)
    units = units.sort_values([PRACTICE_ID, YEAR]).reset_index(drop=True)

    panel = AnalysisPanel(dataset_id=dataset_id, units=units)
    logger.debug(
        "panel_loaded",
        dataset_id=dataset_id,
        stage="ingestion",
        n_units=panel.n_units,
        n_practices=panel.n_practices,
        n_treated_practices=panel.n_treated_practices,
    )
    return panel


def format_dataset_id(dataset_num: int | str) -> str:
    """Zero-pad a dataset number to the 4-digit identifier used in file names."""
    return f"{int(dataset_num):04d}"


def sample_dataset_ids(n: int, universe: int = 3400, seed: int = 42) -> list[str]:
    """Draw ``n`` distinct dataset ids from 1..universe, reproducibly."""
    if not 1 <= n <= universe:
        raise ValueError(f"Cannot sample {n} datasets from a universe of {universe}")
    rng = np.random.default_rng(seed)
    nums = rng.choice(np.arange(1, universe + 1), size=n, replace=False)
    return [format_dataset_id(num) for num in sorted(nums)]


class PanelSource(Protocol):
    """Anything that can produce the analysis panel for a dataset id."""

    def load(self, dataset_id: str) -> AnalysisPanel: ...


class PracticeDataLoader:
    """Reads ACIC-style practice and practice-year CSV files from disk."""

    def __init__(self, data_dir: str | Path):
        self.data_dir = Path(data_dir)

    def paths(self, dataset_id: str) -> tuple[Path, Path]:
        """Return the (practice, practice_year) file paths for a dataset."""
        dataset_id = format_dataset_id(dataset_id)
        return (
            self.data_dir / "practice" / f"acic_practice_{dataset_id}.csv",
            self.data_dir / "practice_year" / f"acic_practice_year_{dataset_id}.csv",
        )

    def load(self, dataset_id: str) -> AnalysisPanel:
        dataset_id = format_dataset_id(dataset_id)
        practice_path, practice_year_path = self.paths(dataset_id)
        for path in (practice_path, practice_year_path):
            if not path.exists():
                raise _integrity(dataset_id, f"input file not found: {path}")
        try:
            practice = pd.read_csv(practice_path)
            practice_year = pd.read_csv(practice_year_path)
        except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as e:
            raise _integrity(dataset_id, f"unreadable input file: {e}") from e
        return load_panel(practice, practice_year, dataset_id=dataset_id)
