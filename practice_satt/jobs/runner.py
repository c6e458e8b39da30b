"""SATT pipeline runner.

Each dataset runs transform -> propensity -> split -> model selection ->
aggregation on its own, sharing no mutable state with other datasets.
Datasets are processed concurrently in worker threads; results are merged
after all workers finish. A dataset that fails for any reason is
logged and left out of the results without affecting the others.
"""

import asyncio
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable

import pandas as pd

from practice_satt.benchmarks.evaluation import EvaluationReport
from practice_satt.causal.design import CovariateView
from practice_satt.causal.errors import SATTPipelineError
from practice_satt.causal.estimators import (
    EffectAggregator,
    ModelSelector,
    SATTRecord,
    SelectionResult,
    records_to_frame,
)
from practice_satt.causal.methods import (
    EffectModel,
    EffectModelConfig,
    PropensityEstimator,
    create_effect_model,
)
from practice_satt.causal.panel import MODEL_COVARIATES, PanelSource, format_dataset_id
from practice_satt.causal.splitting import split
from practice_satt.causal.transforms import VariableTransform
from practice_satt.config import Settings, get_settings
from practice_satt.logging_config.structured import get_logger

logger = get_logger(__name__)


@dataclass
class DatasetResult:
    """Records and model-selection trace for one dataset."""

    dataset_id: str
    records: list[SATTRecord]
    selection: SelectionResult
    runtime_seconds: float = 0.0


@dataclass
class BatchResult:
    """Merged output of a batch run."""

    records: list[SATTRecord] = field(default_factory=list)
    selections: dict[str, SelectionResult] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)

    def results_frame(self) -> pd.DataFrame:
        """Results table: dataset_id, variable, level, year, satt."""
        return records_to_frame(self.records)

    @property
    def n_succeeded(self) -> int:
        return len(self.selections)


class SATTPipelineRunner:
    """Runs the estimation pipeline for one or many datasets."""

    def __init__(
        self,
        source: PanelSource,
        settings: Settings | None = None,
        model_factory: Callable[[], EffectModel] | None = None,
        transform: VariableTransform | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            source: Produces the AnalysisPanel for a dataset id
            settings: Pipeline settings (defaults to ``get_settings()``)
            model_factory: Returns a fresh EffectModel; defaults to the model
                named by ``settings.effect_model``
            transform: Variable transform table (defaults to the standard table)
        """
        self.source = source
        self.settings = settings or get_settings()
        self.transform = transform or VariableTransform()
        self.model_factory = model_factory or self._default_model_factory

    def _default_model_factory(self) -> EffectModel:
        config = EffectModelConfig(
            n_burn=self.settings.n_burn,
            n_samples=self.settings.n_samples,
            seed=self.settings.random_seed,
        )
        return create_effect_model(self.settings.effect_model, config)

    def run_dataset(self, dataset_id: str) -> DatasetResult:
        """Run the full pipeline for one dataset.

        Raises:
            DataIntegrityError: On invalid input data
            EstimationError: On propensity separation or a baseline fit failure
        """
        dataset_id = format_dataset_id(dataset_id)
        log = logger.bind(dataset_id=dataset_id)
        start_time = time.time()
        log.info("dataset_started", stage="ingestion")

        panel = self.source.load(dataset_id)
        units = self.transform.apply(panel.units, dataset_id=dataset_id)

        ps_model = PropensityEstimator().fit(units, dataset_id=dataset_id)
        scores = ps_model.predict(units, dataset_id=dataset_id)
        log.info(
            "propensity_fitted",
            stage="propensity",
            ps_min=float(scores.min()),
            ps_max=float(scores.max()),
        )

        train_idx, test_idx = split(
            len(units), self.settings.test_fraction, self.settings.random_seed
        )
        view = CovariateView.build(units, MODEL_COVARIATES, scores, train_idx, test_idx)

        selector = ModelSelector(
            self.model_factory,
            self.settings.selection_candidates,
            transform=self.transform,
            dataset_id=dataset_id,
        )
        selection = selector.select(view)

        aggregator = EffectAggregator(
            selection.model,
            selection.view,
            panel.units,
            dataset_id=dataset_id,
            transform=self.transform,
            post_years=self.settings.post_years,
            yearly_label=self.settings.yearly_variable_label,
        )
        records = aggregator.aggregate()

        runtime = time.time() - start_time
        log.info(
            "dataset_completed",
            stage="aggregation",
            n_records=len(records),
            dropped=list(selection.dropped),
            baseline_rmse=selection.baseline_rmse,
            final_rmse=selection.final_rmse,
            runtime_seconds=round(runtime, 3),
        )
        return DatasetResult(dataset_id, records, selection, runtime_seconds=runtime)

    async def run(self, dataset_ids: Iterable[str]) -> BatchResult:
        """Process datasets concurrently, at most ``settings.max_workers`` at a time."""
        dataset_ids = [format_dataset_id(d) for d in dataset_ids]
        semaphore = asyncio.Semaphore(self.settings.max_workers)

        async def _guarded(dataset_id: str) -> DatasetResult | Exception:
            async with semaphore:
                try:
                    return await asyncio.to_thread(self.run_dataset, dataset_id)
                except SATTPipelineError as e:
                    logger.error(
                        "dataset_failed",
                        dataset_id=dataset_id,
                        stage=e.stage,
                        error=str(e),
                    )
                    return e
                except Exception as e:
                    logger.exception(
                        "dataset_failed",
                        dataset_id=dataset_id,
                        stage="unknown",
                        error=str(e),
                    )
                    return e

        logger.info("batch_started", n_datasets=len(dataset_ids), max_workers=self.settings.max_workers)
        outcomes = await asyncio.gather(*(_guarded(d) for d in dataset_ids))

        batch = BatchResult()
        for dataset_id, outcome in zip(dataset_ids, outcomes):
            if isinstance(outcome, Exception):
                batch.failures[dataset_id] = str(outcome) or type(outcome).__name__
                continue
            batch.records.extend(outcome.records)
            batch.selections[dataset_id] = outcome.selection

        logger.info(
            "batch_completed",
            n_succeeded=batch.n_succeeded,
            n_failed=len(batch.failures),
            n_records=len(batch.records),
        )
        return batch


def write_outputs(
    batch: BatchResult,
    output_dir: str | Path,
    report: EvaluationReport | None = None,
) -> list[Path]:
    """Write the results table and, if given, the RMSE tables as CSV.

    Returns:
        Paths of the files written
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    results_path = output_dir / "satt_results.csv"
    batch.results_frame().to_csv(results_path, index=False)
    written = [results_path]

    if report is not None:
        subgroup_path = output_dir / "rmse_by_subgroup.csv"
        report.by_subgroup.to_csv(subgroup_path, index=False)
        written.append(subgroup_path)
        for dimension, table in report.by_metadata.items():
            path = output_dir / f"rmse_by_{dimension}.csv"
            table.to_csv(path, index=False)
            written.append(path)

    logger.info("outputs_written", output_dir=str(output_dir), n_files=len(written))
    return written
