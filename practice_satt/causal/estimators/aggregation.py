"""Patient-weighted SATT aggregation.

Every treated practice-year in a post year contributes
``n_patients * (Y(1) - Y(0))`` to the effect sum and ``n_patients`` to the
patient total, with both potential outcomes predicted by the selected
model and back-transformed to original units. A granularity's SATT is the
ratio of the two sums, so the Overall estimate is exactly the patient
weighted combination of the per-year estimates.
"""

from dataclasses import dataclass
from typing import Any, Sequence

import numpy as np
import pandas as pd

from practice_satt.logging_config.structured import get_logger

from ..design import CovariateView
from ..errors import AggregationError
from ..methods.base import EffectModel
from ..panel import OUTCOME, PATIENTS, TREATMENT, YEAR
from ..subgroups import SUBGROUPS, SubgroupDefinition
from ..transforms import VariableTransform

logger = get_logger(__name__)

RESULT_COLUMNS = ["dataset_id", "variable", "level", "year", "satt"]
OVERALL = "Overall"


@dataclass(frozen=True)
class SATTRecord:
    """One estimated SATT, keyed by (dataset_id, variable, level, year)."""

    dataset_id: str
    variable: str
    level: str | None
    year: int | None
    satt: float

    @property
    def key(self) -> tuple[str, str, str | None, int | None]:
        return (self.dataset_id, self.variable, self.level, self.year)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "dataset_id": self.dataset_id,
            "variable": self.variable,
            "level": self.level,
            "year": self.year,
            "satt": self.satt,
        }


def records_to_frame(records: Sequence[SATTRecord]) -> pd.DataFrame:
    """Results table with exactly the result columns, one row per record."""
    frame = pd.DataFrame([r.to_dict() for r in records], columns=RESULT_COLUMNS)
    frame["year"] = frame["year"].astype("Int64")
    return frame


@dataclass(frozen=True)
class SATTAccumulator:
    """Running patient-weighted effect sum; combine with ``+``."""

    effect_sum: float = 0.0
    patient_total: float = 0.0
    n_units: int = 0

    def add(self, patients, treated_outcome, control_outcome) -> "SATTAccumulator":
        """Return a new accumulator including the given unit contributions."""
        patients = np.asarray(patients, dtype=float)
        effect = np.asarray(treated_outcome, dtype=float) - np.asarray(control_outcome, dtype=float)
        return SATTAccumulator(
            effect_sum=self.effect_sum + float(np.sum(patients * effect)),
            patient_total=self.patient_total + float(np.sum(patients)),
            n_units=self.n_units + int(patients.size),
        )

    def __add__(self, other: "SATTAccumulator") -> "SATTAccumulator":
        return SATTAccumulator(
            effect_sum=self.effect_sum + other.effect_sum,
            patient_total=self.patient_total + other.patient_total,
            n_units=self.n_units + other.n_units,
        )

    def finalize(self) -> float:
        """Patient-weighted mean effect.

        Raises:
            AggregationError: If the cohort holds no patients
        """
        if self.patient_total <= 0:
            raise AggregationError("aggregation", "empty cohort: patient total is zero")
        return self.effect_sum / self.patient_total


class EffectAggregator:
    """Computes Overall, per-subgroup and per-year SATT for one dataset.

    Predictions use the selected model's view, so any covariate dropped
    during selection is absent from every prediction row. Subgroup
    membership and patient weights are read from the untransformed units,
    which share the view's row index. Those units keep every covariate,
    so a subgroup defined on a covariate dropped during selection is still
    filtered; the drop only removes it from the model's inputs.
    """

    def __init__(
        self,
        model: EffectModel,
        view: CovariateView,
        units: pd.DataFrame,
        dataset_id: str,
        transform: VariableTransform | None = None,
        post_years: Sequence[int] = (3, 4),
        subgroups: Sequence[SubgroupDefinition] = SUBGROUPS,
        yearly_label: str = "Yearly",
    ):
        """Initialize the aggregator.

        Args:
            model: Fitted effect model selected for this dataset
            view: Covariate view the model was trained on
            units: Untransformed analysis units (same index as ``view.units``)
            dataset_id: Dataset identifier written into every record
            transform: Used to back-transform predicted outcomes
            post_years: Years summarized (pooled for Overall and subgroups)
            subgroups: Subgroup definitions, in output order
            yearly_label: Variable label of the per-year records
        """
        if not units.index.equals(view.units.index):
            raise ValueError("Units and view must share the same row index")
        self.model = model
        self.view = view
        self.units = units
        self.dataset_id = dataset_id
        self.transform = transform or VariableTransform()
        self.post_years = list(post_years)
        self.subgroups = list(subgroups)
        self.yearly_label = yearly_label
        self._effects: pd.DataFrame | None = None

    def unit_effects(self) -> pd.DataFrame:
        """Back-transformed potential outcomes for treated post-year units."""
        if self._effects is None:
            cohort = self.units[
                (self.units[TREATMENT] == 1) & self.units[YEAR].isin(self.post_years)
            ]
            rows = cohort.index
            if len(rows) == 0:
                self._effects = pd.DataFrame(
                    columns=[YEAR, PATIENTS, "treated_outcome", "control_outcome"]
                )
            else:
                X = self.view.features(rows)
                ps = self.view.propensity.loc[rows].to_numpy(dtype=float)
                treated = self.transform.invert(OUTCOME, self.model.predict(X, 1, ps))
                control = self.transform.invert(OUTCOME, self.model.predict(X, 0, ps))
                self._effects = pd.DataFrame(
                    {
                        YEAR: cohort[YEAR].to_numpy(),
                        PATIENTS: cohort[PATIENTS].to_numpy(dtype=float),
                        "treated_outcome": treated,
                        "control_outcome": control,
                    },
                    index=rows,
                )
        return self._effects

    def _accumulate(self, effects: pd.DataFrame) -> SATTAccumulator:
        return SATTAccumulator().add(
            effects[PATIENTS], effects["treated_outcome"], effects["control_outcome"]
        )

    def yearly_accumulators(self, mask: pd.Series | None = None) -> dict[int, SATTAccumulator]:
        """One accumulator per post year, optionally restricted by a unit mask."""
        effects = self.unit_effects()
        if mask is not None:
            effects = effects[mask.reindex(effects.index, fill_value=False).to_numpy(dtype=bool)]
        return {
            year: self._accumulate(effects[effects[YEAR] == year]) for year in self.post_years
        }

    def _record(
        self,
        variable: str,
        accumulator: SATTAccumulator,
        level: str | None = None,
        year: int | None = None,
    ) -> SATTRecord | None:
        try:
            satt = accumulator.finalize()
        except AggregationError:
            logger.warning(
                "subgroup_missing",
                dataset_id=self.dataset_id,
                stage="aggregation",
                variable=variable,
                level=level,
                year=year,
                reason="empty cohort",
            )
            return None
        return SATTRecord(self.dataset_id, variable, level, year, float(satt))

    def aggregate(self) -> list[SATTRecord]:
        """Overall, then each subgroup, then each post year.

        Granularities whose cohort is empty are logged and omitted rather
        than written as zero or NaN.
        """
        by_year = self.yearly_accumulators()
        records = [self._record(OVERALL, sum(by_year.values(), SATTAccumulator()))]

        for subgroup in self.subgroups:
            pooled = sum(
                self.yearly_accumulators(subgroup.mask(self.units)).values(), SATTAccumulator()
            )
            records.append(self._record(subgroup.variable, pooled, level=subgroup.label))

        for year in self.post_years:
            records.append(self._record(self.yearly_label, by_year[year], year=year))

        kept = [r for r in records if r is not None]
        logger.info(
            "satt_aggregated",
            dataset_id=self.dataset_id,
            stage="aggregation",
            n_records=len(kept),
            n_missing=len(records) - len(kept),
            n_treated_units=len(self.unit_effects()),
        )
        return kept
