"""
Shared fixtures: small paired designs with known correlation structure.
"""

from __future__ import annotations

import numpy as np
import pytest


def paired_design(n_units: int, shuffle: bool = False, seed: int = 0) -> np.ndarray:
    """Design with condition labels in row 1 and unit ids in row 2."""
    design = np.vstack([
        np.repeat([1, 2], n_units),
        np.tile(np.arange(1, n_units + 1), 2),
    ])
    if shuffle:
        order = np.random.default_rng(seed).permutation(2 * n_units)
        design = design[:, order]
    return design


def paired_data(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    """Stack condition-1 (x) and condition-2 (y) samples as replications."""
    return np.hstack([np.atleast_2d(x), np.atleast_2d(y)]).astype(float)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def random_pair(rng):
    """20 observations x 10 units, independent conditions."""
    n_units = 10
    x = rng.standard_normal((20, n_units))
    y = rng.standard_normal((20, n_units))
    return paired_data(x, y), paired_design(n_units), x, y
