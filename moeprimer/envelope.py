"""
Section 6: Monte Carlo regression envelope

Where the bootstrap resamples *observations*, here every observation is
kept and its *value* is resampled: each trial replaces both series with
bounded normal draws (see sampler.py), refits the line, and records it.
The band swept out by the lines shows how much of the fitted relationship
survives sampling error in the inputs.
"""

from collections import namedtuple
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from .moe import Z90
from .sampler import MAX_ATTEMPTS, bounded_normal
from .utils import (
    InvalidInput, SingularFit, add_const, check_multiplier, check_series, ols_fit,
)

RegressionLine = namedtuple("RegressionLine", ["slope", "intercept"])


def _trial(x, x_se, y, y_se, k, scale, seed_seq, max_attempts):
    rng = np.random.default_rng(seed_seq)
    xi = bounded_normal(x, x_se, k, rng=rng, max_attempts=max_attempts)
    yi = bounded_normal(y, y_se, k, rng=rng, max_attempts=max_attempts)
    try:
        b = ols_fit(add_const(xi), yi * scale)[0]
    except SingularFit:
        return RegressionLine(np.nan, np.nan), True
    return RegressionLine(b[1], b[0]), False


def simulate_envelope(x, x_se, y, y_se, k=Z90, n_trials=1000, seed=None,
                      scale=1.0, n_jobs=1, max_attempts=MAX_ATTEMPTS):
    """
    Refit y*scale ~ x on n_trials bounded-normal resamples of both series.

    Parameters
    ----------
    x, x_se : array_like, shape (n,)
        Regressor estimates and their standard errors.
    y, y_se : array_like, shape (n,)
        Outcome estimates and their standard errors.
    k : float
        Bound multiplier for the resampling interval.
    n_trials : int
        Number of Monte Carlo trials.
    seed : int, SeedSequence or None
        Root seed. Trial t draws from the t-th child of
        SeedSequence(seed), so results do not depend on n_jobs.
    scale : float
        Multiplier applied to the simulated y before fitting.
    n_jobs : int
        Worker threads used to run trials.

    Returns
    -------
    dict with keys:
        lines      : list of n_trials RegressionLine, in trial order;
                     singular trials hold RegressionLine(nan, nan)
        slopes     : array of slopes
        intercepts : array of intercepts
        singular   : bool array, True where the trial's fit was singular
        n_singular : number of singular trials
    """
    x, x_se = check_series(x, x_se)
    y, y_se = check_series(y, y_se)
    if x.size != y.size:
        raise InvalidInput(f"x has {x.size} estimates but y has {y.size}")
    k = check_multiplier(k)
    if not np.isfinite(n_trials) or int(n_trials) != n_trials or n_trials <= 0:
        raise InvalidInput(f"n_trials must be a positive integer, got {n_trials}")
    if n_jobs < 1:
        raise InvalidInput(f"n_jobs must be at least 1, got {n_jobs}")
    n_trials = int(n_trials)

    root = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
    children = root.spawn(n_trials)

    def run(child):
        return _trial(x, x_se, y, y_se, k, scale, child, max_attempts)

    if n_jobs == 1:
        outcomes = [run(child) for child in children]
    else:
        with ThreadPoolExecutor(max_workers=n_jobs) as pool:
            outcomes = list(pool.map(run, children))

    lines = [line for line, _ in outcomes]
    singular = np.array([flag for _, flag in outcomes], dtype=bool)
    n_singular = int(singular.sum())
    if n_singular:
        print(f"  [Envelope] {n_singular} of {n_trials} trials had a singular "
              f"fit and are recorded as NaN")

    return dict(
        lines=lines,
        slopes=np.array([line.slope for line in lines]),
        intercepts=np.array([line.intercept for line in lines]),
        singular=singular,
        n_singular=n_singular,
    )


def envelope_band(result, x_grid, q=(5, 95)):
    """
    Pointwise percentile band of the simulated lines over x_grid.

    Singular trials are ignored.

    Returns
    -------
    dict with keys:
        x      : the grid
        lower  : q[0]-th percentile of fitted values at each x
        median : median fitted value at each x
        upper  : q[1]-th percentile of fitted values at each x
    """
    x_grid = np.asarray(x_grid, dtype=float)
    keep = ~result["singular"]
    if not keep.any():
        raise SingularFit("every trial was singular; no envelope to summarise")
    fits = (result["intercepts"][keep][:, None]
            + result["slopes"][keep][:, None] * x_grid[None, :])
    lower, median, upper = np.percentile(fits, [q[0], 50, q[1]], axis=0)
    return dict(x=x_grid, lower=lower, median=median, upper=upper)


def slope_summary(result, q=(5, 95)):
    """Mean, standard deviation and percentile interval of the simulated slopes."""
    slopes = result["slopes"][~result["singular"]]
    if slopes.size == 0:
        raise SingularFit("every trial was singular; no slopes to summarise")
    lo, hi = np.percentile(slopes, q)
    return dict(mean=np.mean(slopes), std=np.std(slopes), lo=lo, hi=hi,
                n=slopes.size)
