import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from moeprimer.data import simulate_counties


@pytest.fixture
def counties():
    return simulate_counties(n_rows=4, n_cols=5, seed=3)


@pytest.fixture
def series():
    """Twenty counties with a clear positive income / schooling relationship."""
    rng = np.random.default_rng(0)
    x = np.linspace(30, 90, 20)
    x_se = np.full(20, 3.0)
    y = 0.05 + 0.004 * x + rng.normal(0, 0.01, 20)
    y_se = np.full(20, 0.01)
    return x, x_se, y, y_se
