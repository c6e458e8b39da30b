"""Ground truth and synthetic practice panels for SATT evaluation.

The simulated panels follow the ACIC 2022 Data Challenge layout: a
practice table (X1-X9), a practice-year table (Y, Z, post, n.patients,
V-family averages) and a population-level ground-truth table keyed by
dataset number, variable, level and year.

References:
- Thal, D. and Finucane, M. (2023). Causal Methods Madness: Lessons
  Learned from the 2022 ACIC Competition to Estimate Health Policy Impacts
"""

from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd

from practice_satt.causal.panel import (
    AnalysisPanel,
    POST,
    PRACTICE_ID,
    TREATMENT,
    YEAR,
    format_dataset_id,
    load_panel,
)
from practice_satt.causal.subgroups import SUBGROUPS

METADATA_DIMENSIONS = (
    "confounding_strength",
    "confounding_source",
    "impact_heterogeneity",
    "idiosyncrasy_impacts",
)

TRUTH_COLUMNS = ["dataset_id", "variable", "level", "year", "satt", *METADATA_DIMENSIONS]


def _snake(column: str) -> str:
    return column.strip().lower().replace(".", "_").replace(" ", "_")


def normalize_ground_truth(raw: pd.DataFrame, yearly_label: str = "Yearly") -> pd.DataFrame:
    """Normalize a raw ground-truth table to population-level truth records.

    - column names are snake_cased (``dataset.num`` becomes ``dataset_id``)
    - dataset ids are zero-padded to four digits
    - rows carrying a practice id (practice-specific truths) are dropped
    - yearly truths (``Overall`` with a year) are relabelled ``yearly_label``

    Args:
        raw: Ground-truth rows as read from disk
        yearly_label: Variable label used for per-year SATT records

    Returns:
        DataFrame with ``TRUTH_COLUMNS`` (metadata columns only if present)
    """
    truth = raw.rename(columns=_snake).rename(
        columns={"dataset_num": "dataset_id", "id_practice": PRACTICE_ID}
    )
    missing = [c for c in ("dataset_id", "variable", "level", "year", "satt") if c not in truth]
    if missing:
        raise ValueError(f"Ground truth is missing columns {missing}")

    if PRACTICE_ID in truth.columns:
        truth = truth[truth[PRACTICE_ID].isna()]

    truth = truth.copy()
    truth["dataset_id"] = truth["dataset_id"].map(format_dataset_id)
    truth["variable"] = truth["variable"].astype(str)
    truth["level"] = truth["level"].astype(object).where(truth["level"].notna(), None)
    truth.loc[truth["level"].notna(), "level"] = truth.loc[truth["level"].notna(), "level"].map(
        lambda v: str(int(v)) if isinstance(v, float) and v.is_integer() else str(v)
    )
    truth["year"] = pd.to_numeric(truth["year"], errors="coerce").astype("Int64")
    truth["satt"] = truth["satt"].astype(float)

    yearly = (truth["variable"] == "Overall") & truth["year"].notna()
    truth.loc[yearly, "variable"] = yearly_label

    columns = [c for c in TRUTH_COLUMNS if c in truth.columns]
    return truth[columns].reset_index(drop=True)


def load_ground_truth(path: str | Path, yearly_label: str = "Yearly") -> pd.DataFrame:
    """Read and normalize a ground-truth CSV."""
    raw = pd.read_csv(path, dtype={"level": str, "variable": str})
    return normalize_ground_truth(raw, yearly_label=yearly_label)


@dataclass
class SyntheticPracticePanel:
    """Simulated practice panels with known patient-weighted SATT.

    Allows testing with:
    - Practice-level treatment confounded by X1, X6 and the V-family
    - Post-period effects that vary with X1/X2 when heterogeneous
    - Per-practice idiosyncratic effect noise
    """

    n_practices: int = 80
    base_effect: float = 40.0
    confounding_strength: str = "Strong"  # "Strong" or "Weak"
    confounding_source: str = "Scenario 1"
    impact_heterogeneity: str = "Small"  # "None", "Small" or "Large"
    idiosyncrasy_impacts: str = "Small"  # "None" or "Small"

    _HETEROGENEITY = {"None": 0.0, "Small": 0.5, "Large": 1.0}
    _IDIOSYNCRASY = {"None": 0.0, "Small": 0.15}

    def _rng(self, dataset_id: str, seed: int) -> np.random.Generator:
        return np.random.default_rng([seed, int(dataset_id)])

    def generate(
        self, dataset_id: str, seed: int = 42
    ) -> tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
        """Generate one dataset.

        Returns:
            Tuple of (practice, practice_year, unit_effects); the first two
            use raw ACIC column names, the last holds the true effect of each
            treated post-year unit.
        """
        dataset_id = format_dataset_id(dataset_id)
        rng = self._rng(dataset_id, seed)
        n = self.n_practices
        ids = np.arange(1, n + 1)

        practice = pd.DataFrame(
            {
                "id.practice": ids,
                "X1": rng.binomial(1, 0.5, n),
                "X2": rng.choice(["A", "B", "C"], n),
                "X3": rng.binomial(1, 0.4, n),
                "X4": rng.choice(["A", "B", "C"], n, p=[0.5, 0.3, 0.2]),
                "X5": rng.binomial(1, 0.6, n),
                "X6": rng.normal(0.0, 1.0, n),
                "X7": rng.normal(0.0, 1.0, n),
                "X8": rng.gamma(2.0, 1.0, n),
                "X9": rng.uniform(0.0, 1.0, n),
            }
        )

        strength = 1.0 if self.confounding_strength == "Strong" else 0.3
        logit = strength * (0.8 * practice["X1"] + 0.6 * practice["X6"] - 0.4) + rng.normal(0, 0.5, n)
        Z = rng.binomial(1, 1 / (1 + np.exp(-logit)))
        # Both arms must be present
        Z[0], Z[1] = 1, 0

        hetero = self._HETEROGENEITY[self.impact_heterogeneity]
        idio = self._IDIOSYNCRASY[self.idiosyncrasy_impacts]
        practice_effect = self.base_effect * (
            1
            + hetero * (practice["X1"].to_numpy() - 0.5)
            + hetero * 0.5 * (practice["X2"].to_numpy() == "A")
            + idio * rng.normal(0, 1, n)
        )
        level = 900 + 60 * practice["X6"].to_numpy() + 40 * practice["X1"].to_numpy()

        rows = []
        effects = []
        for p in range(n):
            for year in (1, 2, 3, 4):
                post = int(year >= 3)
                v = rng.dirichlet([4, 3, 2])
                n_patients = int(rng.poisson(60)) + 5
                y0 = level[p] + 15 * year + 20 * strength * Z[p] + rng.normal(0, 25)
                y0 = max(y0, 50.0)
                effect = practice_effect[p] * Z[p] * post
                y = y0 + effect
                rows.append(
                    {
                        "id.practice": ids[p],
                        "year": year,
                        "Y": y,
                        "n.patients": n_patients,
                        "V1_avg": rng.normal(0.0, 1.0),
                        "V2_avg": rng.gamma(3.0, 1.0),
                        "V3_avg": rng.uniform(0.2, 0.8),
                        "V4_avg": rng.gamma(2.0, 2.0),
                        "V5_A_avg": v[0],
                        "V5_B_avg": v[1],
                        "V5_C_avg": v[2],
                        "Z": int(Z[p]),
                        "post": post,
                    }
                )
                if Z[p] == 1 and post:
                    effects.append(
                        {
                            PRACTICE_ID: ids[p],
                            YEAR: year,
                            "n_patients": n_patients,
                            "effect": effect,
                        }
                    )

        return practice, pd.DataFrame(rows), pd.DataFrame(effects)

    def ground_truth(self, dataset_id: str, seed: int = 42) -> pd.DataFrame:
        """Raw ACIC-format ground truth for one dataset.

        Includes Overall, yearly (``Overall`` with a year), the 12 subgroups
        and one practice-specific Overall row per treated practice.
        """
        dataset_id = format_dataset_id(dataset_id)
        practice, _, effects = self.generate(dataset_id, seed=seed)
        practice = practice.rename(columns={"id.practice": PRACTICE_ID})
        effects = effects.merge(practice, on=PRACTICE_ID)

        def weighted(frame: pd.DataFrame) -> float:
            return float((frame["n_patients"] * frame["effect"]).sum() / frame["n_patients"].sum())

        rows = [{"variable": "Overall", "level": None, "year": None, "satt": weighted(effects)}]
        for subgroup in SUBGROUPS:
            cohort = effects[effects[subgroup.variable].astype(str) == subgroup.label]
            if cohort.empty:
                continue
            rows.append(
                {"variable": subgroup.variable, "level": subgroup.label, "year": None, "satt": weighted(cohort)}
            )
        for year in (3, 4):
            rows.append(
                {"variable": "Overall", "level": None, "year": year, "satt": weighted(effects[effects[YEAR] == year])}
            )

        truth = pd.DataFrame(rows)
        truth["id.practice"] = np.nan
        practice_rows = pd.DataFrame(
            [
                {"variable": "Overall", "level": None, "year": None, "id.practice": pid, "satt": weighted(group)}
                for pid, group in effects.groupby(PRACTICE_ID)
            ]
        )
        truth = pd.concat([truth, practice_rows], ignore_index=True)
        truth.insert(0, "dataset.num", int(dataset_id))
        truth["confounding.strength"] = self.confounding_strength
        truth["confounding.source"] = self.confounding_source
        truth["impact.heterogeneity"] = self.impact_heterogeneity
        truth["idiosyncrasy.impacts"] = self.idiosyncrasy_impacts
        return truth

    def load(self, dataset_id: str, seed: int = 42) -> AnalysisPanel:
        """Generate and validate one dataset as an AnalysisPanel."""
        dataset_id = format_dataset_id(dataset_id)
        practice, practice_year, _ = self.generate(dataset_id, seed=seed)
        return load_panel(practice, practice_year, dataset_id=dataset_id)

    def write(self, directory: str | Path, dataset_ids: list[str], seed: int = 42) -> Path:
        """Write practice/practice-year CSVs and a ground-truth CSV under ``directory``.

        Returns:
            Path of the written ground-truth file
        """
        directory = Path(directory)
        (directory / "practice").mkdir(parents=True, exist_ok=True)
        (directory / "practice_year").mkdir(parents=True, exist_ok=True)

        truths = []
        for dataset_id in map(format_dataset_id, dataset_ids):
            practice, practice_year, _ = self.generate(dataset_id, seed=seed)
            practice.to_csv(directory / "practice" / f"acic_practice_{dataset_id}.csv", index=False)
            practice_year.to_csv(
                directory / "practice_year" / f"acic_practice_year_{dataset_id}.csv", index=False
            )
            truths.append(self.ground_truth(dataset_id, seed=seed))

        truth_path = directory / "ground_truth.csv"
        pd.concat(truths, ignore_index=True).to_csv(truth_path, index=False)
        return truth_path


class SyntheticPanelSource:
    """PanelSource backed by a SyntheticPracticePanel (no files involved)."""

    def __init__(self, generator: SyntheticPracticePanel | None = None, seed: int = 42):
        self.generator = generator or SyntheticPracticePanel()
        self.seed = seed

    def load(self, dataset_id: str) -> AnalysisPanel:
        return self.generator.load(dataset_id, seed=self.seed)
