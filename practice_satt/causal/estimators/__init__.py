"""Model selection and SATT aggregation."""

from .aggregation import (
    RESULT_COLUMNS,
    EffectAggregator,
    SATTAccumulator,
    SATTRecord,
    records_to_frame,
)
from .model_selection import ModelSelector, SelectionResult, SelectionStep

__all__ = [
    "RESULT_COLUMNS",
    "EffectAggregator",
    "SATTAccumulator",
    "SATTRecord",
    "records_to_frame",
    "ModelSelector",
    "SelectionResult",
    "SelectionStep",
]
