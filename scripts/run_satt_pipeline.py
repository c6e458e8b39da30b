#!/usr/bin/env python3
"""Script to estimate SATT for a batch of practice datasets and score them.

Usage:
    python scripts/run_satt_pipeline.py --data-dir data/track1 --n-datasets 10
    python scripts/run_satt_pipeline.py --datasets 0001,0042 --ground-truth data/truth.csv
    python scripts/run_satt_pipeline.py --synthetic 5 --output results/synthetic
"""

import argparse
import asyncio
import sys
from pathlib import Path


async def main():
    parser = argparse.ArgumentParser(description="Run the practice SATT pipeline")
    parser.add_argument(
        "--datasets",
        type=str,
        help="Comma-separated dataset ids (e.g. 0001,0042); overrides --n-datasets",
    )
    parser.add_argument(
        "--n-datasets",
        type=int,
        help="Number of dataset ids to sample from the universe",
    )
    parser.add_argument("--data-dir", type=str, help="Directory with practice/ and practice_year/")
    parser.add_argument("--ground-truth", type=str, help="Ground-truth CSV for evaluation")
    parser.add_argument("--output", type=str, help="Output directory for results")
    parser.add_argument("--seed", type=int, help="Random seed")
    parser.add_argument("--workers", type=int, help="Datasets processed concurrently")
    parser.add_argument(
        "--synthetic",
        type=int,
        metavar="N",
        help="Generate N synthetic datasets (with ground truth) into the data directory first",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Verbose output",
    )

    args = parser.parse_args()

    from practice_satt.benchmarks import Evaluator, SyntheticPracticePanel, load_ground_truth
    from practice_satt.causal import PracticeDataLoader, sample_dataset_ids
    from practice_satt.config import get_settings
    from practice_satt.jobs import SATTPipelineRunner, write_outputs
    from practice_satt.logging_config import get_logger, setup_logging

    setup_logging("DEBUG" if args.verbose else None)
    logger = get_logger("run_satt_pipeline")

    overrides = {
        key: value
        for key, value in {
            "data_dir": args.data_dir,
            "ground_truth_path": args.ground_truth,
            "output_dir": args.output,
            "random_seed": args.seed,
            "max_workers": args.workers,
            "n_datasets": args.n_datasets,
        }.items()
        if value is not None
    }
    settings = get_settings().model_copy(update=overrides)

    if args.datasets:
        dataset_ids = [d.strip() for d in args.datasets.split(",") if d.strip()]
    elif args.synthetic:
        dataset_ids = [f"{i:04d}" for i in range(1, args.synthetic + 1)]
    else:
        dataset_ids = sample_dataset_ids(
            settings.n_datasets, settings.dataset_universe, settings.random_seed
        )

    if args.synthetic:
        truth_path = SyntheticPracticePanel().write(
            settings.data_dir, dataset_ids, seed=settings.random_seed
        )
        settings = settings.model_copy(update={"ground_truth_path": str(truth_path)})
        logger.info("synthetic_data_written", data_dir=settings.data_dir, n_datasets=len(dataset_ids))

    runner = SATTPipelineRunner(PracticeDataLoader(settings.data_dir), settings=settings)
    batch = await runner.run(dataset_ids)

    if not batch.records:
        print("No dataset produced estimates")
        for dataset_id, error in batch.failures.items():
            print(f"  {dataset_id}: {error}")
        sys.exit(1)

    report = None
    if settings.ground_truth_path:
        truth = load_ground_truth(
            settings.ground_truth_path, yearly_label=settings.yearly_variable_label
        )
        report = Evaluator().evaluate(batch.results_frame(), truth)

    written = write_outputs(batch, Path(settings.output_dir), report=report)

    print(f"\nDatasets: {batch.n_succeeded} succeeded, {len(batch.failures)} failed")
    for dataset_id, error in batch.failures.items():
        print(f"  FAILED {dataset_id}: {error}")
    if report is not None:
        print(report.summary())
        print(report.by_subgroup.to_string(index=False))
    print(f"Wrote {len(written)} file(s) to {settings.output_dir}")


if __name__ == "__main__":
    asyncio.run(main())
