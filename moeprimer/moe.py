"""
Margin-of-error arithmetic for survey estimates.

American Community Survey (ACS) tables publish a margin of error (MoE)
next to every estimate: the half-width of a 90% confidence interval.
Everything else in this package works with standard errors, so this
module converts between the two, builds intervals, grades reliability,
approximates MoEs of derived estimates, and classifies how an interval
straddles the class breaks of a choropleth map.
"""

import numpy as np

from .utils import InvalidInput, check_multiplier

Z90 = 1.645
Z95 = 1.960
Z99 = 2.576

# CV cut points commonly used for ACS reliability flags
CV_HIGH = 0.12
CV_LOW = 0.40

HATCHES = {
    "within": "",
    "below": "\\\\",
    "above": "//",
    "both": "xx",
}


def moe_to_se(moe, z=Z90):
    """Standard error implied by a published margin of error:  SE = MoE / z."""
    return np.asarray(moe, dtype=float) / z


def se_to_moe(se, z=Z90):
    """Margin of error for a standard error:  MoE = z * SE."""
    return np.asarray(se, dtype=float) * z


def confidence_interval(values, errors, k=Z90, clamp=True):
    """
    Symmetric interval  [x - k*se, x + k*se]  around each estimate.

    Parameters
    ----------
    values : array_like
        Point estimates.
    errors : array_like
        Standard errors.
    k : float
        Multiplier (1.645 for a 90% interval).
    clamp : bool
        If True, the lower end is clamped at 0 since counts, incomes and
        percentages cannot be negative.

    Returns
    -------
    lo, hi : ndarray
    """
    k = check_multiplier(k)
    values = np.asarray(values, dtype=float)
    errors = np.asarray(errors, dtype=float)
    lo = values - k * errors
    hi = values + k * errors
    if clamp:
        lo = np.maximum(lo, 0.0)
    return lo, hi


def coefficient_of_variation(values, errors):
    """CV = SE / estimate; NaN where the estimate is zero."""
    values = np.asarray(values, dtype=float)
    errors = np.asarray(errors, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        cv = np.where(values != 0, errors / np.abs(values), np.nan)
    return cv


def reliability(cv):
    """
    Grade estimates by coefficient of variation.

    Returns
    -------
    ndarray of str
        "high" (CV < 0.12), "medium" (0.12 <= CV <= 0.40) or "low"
        (CV > 0.40, or CV undefined).
    """
    cv = np.asarray(cv, dtype=float)
    labels = np.full(cv.shape, "low", dtype=object)
    labels[cv <= CV_LOW] = "medium"
    labels[cv < CV_HIGH] = "high"
    return labels


def moe_sum(moes, axis=None):
    """
    Approximate MoE of a sum (or difference) of estimates.

    MoE = sqrt( sum_i MoE_i^2 )
    """
    moes = np.asarray(moes, dtype=float)
    return np.sqrt(np.sum(moes ** 2, axis=axis))


def _check_denominator(den):
    den = np.asarray(den, dtype=float)
    if np.any(den == 0):
        raise InvalidInput("denominator estimate is zero")
    return den


def moe_ratio(num, moe_num, den, moe_den):
    """
    Approximate MoE of a ratio r = num / den where num is NOT a subset of den.

    MoE(r) = sqrt( MoE_num^2 + r^2 * MoE_den^2 ) / den
    """
    den = _check_denominator(den)
    num = np.asarray(num, dtype=float)
    r = num / den
    return np.sqrt(np.asarray(moe_num, dtype=float) ** 2
                   + r ** 2 * np.asarray(moe_den, dtype=float) ** 2) / np.abs(den)


def moe_proportion(num, moe_num, den, moe_den):
    """
    Approximate MoE of a proportion p = num / den where num is a subset of den.

    MoE(p) = sqrt( MoE_num^2 - p^2 * MoE_den^2 ) / den

    Where the quantity under the root is negative the ratio formula is
    used instead, as the ACS handbook recommends.
    """
    den = _check_denominator(den)
    num = np.asarray(num, dtype=float)
    moe_num = np.asarray(moe_num, dtype=float)
    moe_den = np.asarray(moe_den, dtype=float)
    p = num / den
    radicand = moe_num ** 2 - p ** 2 * moe_den ** 2
    radicand = np.where(radicand < 0, moe_num ** 2 + p ** 2 * moe_den ** 2, radicand)
    return np.sqrt(radicand) / np.abs(den)


def assign_class(values, breaks):
    """
    Map values to choropleth classes.

    Parameters
    ----------
    values : array_like
    breaks : array_like
        Increasing interior class breaks b_1 < ... < b_{m-1} for m classes.
        A value equal to a break belongs to the upper class.

    Returns
    -------
    ndarray of int, class index in 0..m-1
    """
    breaks = np.asarray(breaks, dtype=float)
    if breaks.ndim != 1 or np.any(np.diff(breaks) <= 0):
        raise InvalidInput("class breaks must be a strictly increasing 1-d sequence")
    return np.searchsorted(breaks, np.asarray(values, dtype=float), side="right")


def class_overlap(values, errors, breaks, k=Z90):
    """
    Classify how each estimate's confidence interval relates to its map class.

    Returns
    -------
    ndarray of str
        "within" -- the whole interval lies in the estimate's class
        "below"  -- the interval reaches into a lower class only
        "above"  -- the interval reaches into a higher class only
        "both"   -- the interval spans classes on both sides
    """
    lo, hi = confidence_interval(values, errors, k=k)
    own = assign_class(values, breaks)
    down = assign_class(lo, breaks) < own
    up = assign_class(hi, breaks) > own

    labels = np.full(own.shape, "within", dtype=object)
    labels[down & ~up] = "below"
    labels[up & ~down] = "above"
    labels[down & up] = "both"
    return labels
