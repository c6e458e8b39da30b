"""Train/test partitioning of analysis units."""

import logging

import numpy as np
from sklearn.model_selection import train_test_split

logger = logging.getLogger(__name__)


def split(
    n_units: int,
    test_fraction: float,
    seed: int,
) -> tuple[np.ndarray, np.ndarray]:
    """Partition unit positions ``0..n_units-1`` into train and test sets.

    Args:
        n_units: Number of units to partition
        test_fraction: Target share of units in the test set, in (0, 1)
        seed: Random seed; the same seed always yields the same split

    Returns:
        Tuple of (train_indices, test_indices), each sorted ascending

    Raises:
        ValueError: If the fraction is out of range or there are fewer than two units
    """
    if not 0.0 < test_fraction < 1.0:
        raise ValueError(f"test_fraction must be in (0, 1), got {test_fraction}")

    if n_units < 2:
        raise ValueError(
            f"Cannot split {n_units} unit(s) with at least one unit on each side"
        )

    # Rounding can empty a side for small n; keep at least one unit on each
    n_test = min(max(int(round(n_units * test_fraction)), 1), n_units - 1)

    train_idx, test_idx = train_test_split(
        np.arange(n_units),
        test_size=n_test,
        random_state=seed,
        shuffle=True,
    )
    logger.debug("Split %d units into %d train / %d test", n_units, len(train_idx), n_test)
    return np.sort(train_idx), np.sort(test_idx)
