"""Categorical covariate levels and the fixed subgroup enumeration.

Categorical practice covariates are validated against these enums at
ingestion, so a subgroup predicate compares against a typed level rather
than a free-form string read at run time.
"""

from dataclasses import dataclass
from enum import Enum
from operator import itemgetter
from typing import Callable

import pandas as pd


class BinaryLevel(str, Enum):
    """Levels of the binary practice covariates X1, X3, X5."""

    ZERO = "0"
    ONE = "1"


class TernaryLevel(str, Enum):
    """Levels of the three-way practice covariates X2, X4."""

    A = "A"
    B = "B"
    C = "C"


CATEGORICAL_LEVELS: dict[str, type[Enum]] = {
    "X1": BinaryLevel,
    "X2": TernaryLevel,
    "X3": BinaryLevel,
    "X4": TernaryLevel,
    "X5": BinaryLevel,
}


def level_values(covariate: str) -> list[str]:
    """Return the allowed string levels of a categorical covariate."""
    return [level.value for level in CATEGORICAL_LEVELS[covariate]]


@dataclass(frozen=True)
class SubgroupDefinition:
    """A (covariate, level) filter over analysis units."""

    variable: str
    level: Enum
    accessor: Callable[[pd.DataFrame], pd.Series]

    @property
    def label(self) -> str:
        """Level as written to the results table."""
        return self.level.value

    def mask(self, units: pd.DataFrame) -> pd.Series:
        """Boolean mask of the units that belong to this subgroup."""
        return self.accessor(units) == self.level.value

    def __str__(self) -> str:
        return f"{self.variable}=={self.label}"


def build_subgroups() -> tuple[SubgroupDefinition, ...]:
    """Enumerate every level of every categorical covariate, in column order."""
    return tuple(
        SubgroupDefinition(variable=covariate, level=level, accessor=itemgetter(covariate))
        for covariate, levels in CATEGORICAL_LEVELS.items()
        for level in levels
    )


SUBGROUPS = build_subgroups()
