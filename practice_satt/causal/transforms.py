"""Variance-stabilizing transforms for skewed covariates and the outcome."""

import logging
from enum import Enum
from types import MappingProxyType
from typing import Mapping

import numpy as np
import pandas as pd

from .errors import DataIntegrityError

logger = logging.getLogger(__name__)


class TransformKind(str, Enum):
    """Supported per-field transforms."""

    SQRT = "sqrt"  # right-skewed, non-negative
    SQUARE = "square"  # left-skewed
    LOG = "log"  # strictly positive counts


# Static table; never inferred from the data being transformed
DEFAULT_TRANSFORMS: Mapping[str, TransformKind] = MappingProxyType(
    {
        "Y": TransformKind.SQRT,
        "V2_avg": TransformKind.SQRT,
        "V4_avg": TransformKind.SQRT,
        "V1_avg": TransformKind.SQUARE,
        "V3_avg": TransformKind.SQUARE,
        "n_patients": TransformKind.LOG,
    }
)


def forward(kind: TransformKind, values, field: str = "value") -> np.ndarray:
    """Apply a transform, rejecting inputs outside its domain.

    Raises:
        DataIntegrityError: On missing values, negative input to ``sqrt``,
            or non-positive input to ``log``
    """
    arr = np.asarray(values, dtype=float)
    if np.isnan(arr).any():
        raise DataIntegrityError("transform", f"{field} contains missing values")

    if kind is TransformKind.SQRT:
        if (arr < 0).any():
            raise DataIntegrityError(
                "transform",
                f"{field} has {int((arr < 0).sum())} negative value(s); sqrt is undefined",
            )
        return np.sqrt(arr)
    if kind is TransformKind.SQUARE:
        return np.square(arr)
    if kind is TransformKind.LOG:
        if (arr <= 0).any():
            raise DataIntegrityError(
                "transform",
                f"{field} has {int((arr <= 0).sum())} non-positive count(s); log is undefined",
            )
        return np.log(arr)
    raise ValueError(f"Unknown transform: {kind}")


def inverse(kind: TransformKind, values) -> np.ndarray:
    """Map transformed values back to the original scale.

    ``SQUARE`` is only invertible for non-negative originals; its inverse
    returns the non-negative root.
    """
    arr = np.asarray(values, dtype=float)
    if kind is TransformKind.SQRT:
        return np.square(arr)
    if kind is TransformKind.SQUARE:
        return np.sqrt(arr)
    if kind is TransformKind.LOG:
        return np.exp(arr)
    raise ValueError(f"Unknown transform: {kind}")


class VariableTransform:
    """Applies a fixed field -> transform table to a unit table."""

    def __init__(self, table: Mapping[str, TransformKind] | None = None):
        self.table = MappingProxyType(dict(table if table is not None else DEFAULT_TRANSFORMS))

    def apply(self, units: pd.DataFrame, dataset_id: str | None = None) -> pd.DataFrame:
        """Return a transformed copy of ``units``; the input is left untouched."""
        transformed = units.copy()
        for field, kind in self.table.items():
            if field not in transformed.columns:
                logger.debug("Field %s not present; skipping %s transform", field, kind.value)
                continue
            try:
                transformed[field] = forward(kind, transformed[field], field=field)
            except DataIntegrityError as e:
                raise DataIntegrityError("transform", e.detail, dataset_id=dataset_id) from e
        return transformed

    def invert(self, field: str, values) -> np.ndarray:
        """Back-transform ``values`` of ``field``; untransformed fields pass through."""
        kind = self.table.get(field)
        if kind is None:
            return np.asarray(values, dtype=float)
        return inverse(kind, values)
