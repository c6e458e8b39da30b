"""Unit tests for train/test splitting."""

import numpy as np
import pytest

from practice_satt.causal.splitting import split


class TestSplit:
    """Test the unit partition."""

    @pytest.mark.parametrize("n_units", [2, 4, 10, 37, 320])
    @pytest.mark.parametrize("test_fraction", [0.1, 0.33, 0.5, 0.9])
    def test_partition(self, n_units, test_fraction):
        """Train and test are disjoint, non-empty and cover every unit."""
        train, test = split(n_units, test_fraction, seed=42)

        assert len(train) > 0
        assert len(test) > 0
        assert len(np.intersect1d(train, test)) == 0
        np.testing.assert_array_equal(np.union1d(train, test), np.arange(n_units))

    def test_test_share_follows_fraction(self):
        train, test = split(300, 0.33, seed=1)
        assert len(test) == 99
        assert len(train) == 201

    def test_reproducible(self):
        first = split(120, 0.33, seed=7)
        second = split(120, 0.33, seed=7)
        np.testing.assert_array_equal(first[0], second[0])
        np.testing.assert_array_equal(first[1], second[1])

    def test_seed_changes_split(self):
        _, test_a = split(200, 0.33, seed=1)
        _, test_b = split(200, 0.33, seed=2)
        assert not np.array_equal(test_a, test_b)

    def test_indices_sorted(self):
        train, test = split(50, 0.33, seed=3)
        assert (np.diff(train) > 0).all()
        assert (np.diff(test) > 0).all()

    @pytest.mark.parametrize("n_units", [0, 1])
    def test_too_few_units(self, n_units):
        with pytest.raises(ValueError, match="Cannot split"):
            split(n_units, 0.33, seed=42)

    @pytest.mark.parametrize("test_fraction", [0.0, 1.0, -0.2, 1.5])
    def test_fraction_out_of_range(self, test_fraction):
        with pytest.raises(ValueError, match="test_fraction"):
            split(10, test_fraction, seed=42)
