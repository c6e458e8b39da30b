"""Causal estimation: ingestion, propensity, model selection and SATT aggregation."""

from .design import CovariateView, encode_covariates
from .errors import (
    AggregationError,
    DataIntegrityError,
    EstimationError,
    JoinMismatchError,
    SATTPipelineError,
)
from .estimators import (
    EffectAggregator,
    ModelSelector,
    SATTAccumulator,
    SATTRecord,
    SelectionResult,
    records_to_frame,
)
from .methods import (
    BoostedEffectModel,
    EffectModel,
    EffectModelConfig,
    ForestEffectModel,
    PropensityEstimator,
    create_effect_model,
)
from .panel import AnalysisPanel, PracticeDataLoader, load_panel, sample_dataset_ids
from .splitting import split
from .subgroups import SUBGROUPS, SubgroupDefinition
from .transforms import TransformKind, VariableTransform

__all__ = [
    # Errors
    "SATTPipelineError",
    "DataIntegrityError",
    "EstimationError",
    "AggregationError",
    "JoinMismatchError",
    # Data
    "AnalysisPanel",
    "PracticeDataLoader",
    "load_panel",
    "sample_dataset_ids",
    "TransformKind",
    "VariableTransform",
    "SUBGROUPS",
    "SubgroupDefinition",
    "split",
    "CovariateView",
    "encode_covariates",
    # Models
    "EffectModel",
    "EffectModelConfig",
    "BoostedEffectModel",
    "ForestEffectModel",
    "PropensityEstimator",
    "create_effect_model",
    # Estimators
    "ModelSelector",
    "SelectionResult",
    "EffectAggregator",
    "SATTAccumulator",
    "SATTRecord",
    "records_to_frame",
]
