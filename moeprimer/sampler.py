"""
Bounded normal resampling of survey estimates.

A published estimate x with standard error se is one realisation of a
sampling distribution. To ask "what might a different survey sample
have reported?" we draw from N(x, se^2) but keep only draws inside the
published interval

    [ max(0, x - k*se),  x + k*se ]

so that simulated values stay plausible (inside the MoE) and
non-negative. Draws are accepted or rejected element by element; the
loop below redraws only the still-invalid subset on each pass.
"""

import numpy as np
from scipy import stats

from .utils import SamplingStalled, check_multiplier, check_series

MAX_ATTEMPTS = 10_000


def bounded_normal(values, errors, k, rng=None, max_attempts=MAX_ATTEMPTS):
    """
    Draw one simulated value per estimate from a normal truncated to its interval.

    Parameters
    ----------
    values : array_like, shape (n,)
        Point estimates.
    errors : array_like, shape (n,)
        Standard errors (>= 0).
    k : float
        Bound multiplier, e.g. 1.645 for a 90% interval.
    rng : numpy.random.Generator, SeedSequence, int or None
        Random source. Pass a Generator to continue an existing stream,
        or a seed for a fresh reproducible one.
    max_attempts : int
        Maximum number of candidate draws per element.

    Returns
    -------
    draws : ndarray, shape (n,)
        max(0, values - k*errors) <= draws <= values + k*errors elementwise.
        Where errors == 0 the draw is the value itself.

    Raises
    ------
    InvalidInput
        Mismatched lengths, negative errors or a non-positive k.
    SamplingStalled
        An element has an empty admissible interval, or did not accept a
        draw within max_attempts.
    """
    values, errors = check_series(values, errors)
    k = check_multiplier(k)
    rng = np.random.default_rng(rng)

    lo = np.maximum(values - k * errors, 0.0)
    hi = values + k * errors

    empty = lo > hi
    if empty.any():
        raise SamplingStalled(
            f"no non-negative value within {k} standard errors at index "
            f"{np.flatnonzero(empty).tolist()}",
            indices=np.flatnonzero(empty),
        )

    draws = values.copy()
    pending = np.flatnonzero(errors > 0)
    attempts = 0
    while pending.size and attempts < max_attempts:
        candidate = rng.normal(values[pending], errors[pending])
        ok = (candidate >= lo[pending]) & (candidate <= hi[pending])
        draws[pending[ok]] = candidate[ok]
        pending = pending[~ok]
        attempts += 1

    if pending.size:
        raise SamplingStalled(
            f"{pending.size} element(s) produced no admissible draw in "
            f"{max_attempts} attempts",
            indices=pending,
        )
    return draws


def bounded_normal_matrix(values, errors, k, n_draws, rng=None,
                          max_attempts=MAX_ATTEMPTS):
    """
    Repeat bounded_normal n_draws times on a single stream.

    Returns
    -------
    ndarray, shape (n_draws, n)
    """
    rng = np.random.default_rng(rng)
    return np.vstack([
        bounded_normal(values, errors, k, rng=rng, max_attempts=max_attempts)
        for _ in range(int(n_draws))
    ])


def truncated_moments(values, errors, k):
    """
    Analytic mean and standard deviation of the bounded normal.

    Uses scipy.stats.truncnorm with the same clamped bounds as
    bounded_normal. Where errors == 0 the mean is the value and the
    standard deviation is 0.

    Returns
    -------
    dict with keys:
        mean : ndarray
        std  : ndarray
        lo   : lower bounds  max(0, x - k*se)
        hi   : upper bounds  x + k*se
    """
    values, errors = check_series(values, errors)
    k = check_multiplier(k)
    lo = np.maximum(values - k * errors, 0.0)
    hi = values + k * errors

    mean = values.copy()
    std = np.zeros_like(values)
    pos = errors > 0
    if pos.any():
        a = (lo[pos] - values[pos]) / errors[pos]
        b = (hi[pos] - values[pos]) / errors[pos]
        dist = stats.truncnorm(a, b, loc=values[pos], scale=errors[pos])
        mean[pos] = dist.mean()
        std[pos] = dist.std()

    return dict(mean=mean, std=std, lo=lo, hi=hi)
