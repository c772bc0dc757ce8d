"""
Section 4: Bivariate regression with uncertain estimates

Fits  y*scale = a + b*x  by OLS and shows how far the fitted line can
move when every estimate is replaced by an end of its confidence interval.
"""

import numpy as np

from .moe import Z90, confidence_interval
from .utils import InvalidInput, add_const, check_series, ols_fit


def estimate(x, y, scale=1.0):
    """
    OLS of y*scale on x with an intercept.

    Parameters
    ----------
    x : array_like, shape (n,)
        Regressor (e.g. median household income).
    y : array_like, shape (n,)
        Outcome (e.g. share of adults with a bachelor's degree).
    scale : float
        Multiplier applied to y before fitting (100 turns a proportion
        into percentage points).

    Returns
    -------
    dict with keys:
        intercept, slope : fitted coefficients
        se        : standard errors [intercept, slope]
        r2        : coefficient of determination
        residuals : OLS residuals
        fitted    : fitted values
        n         : number of observations
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float) * scale
    if x.shape != y.shape or x.ndim != 1:
        raise InvalidInput(
            f"x and y must be 1-d and of equal length, got {x.shape} and {y.shape}"
        )
    X = add_const(x)
    b, se, e, _ = ols_fit(X, y)
    tss = np.sum((y - y.mean()) ** 2)
    r2 = 1 - (e @ e) / tss if tss > 0 else np.nan
    return dict(
        intercept=b[0],
        slope=b[1],
        se=se,
        r2=r2,
        residuals=e,
        fitted=X @ b,
        n=len(y),
    )


def bound_regressions(x, x_se, y, y_se, k=Z90, scale=1.0):
    """
    Naive sensitivity check: refit using interval ends instead of estimates.

    Three fits are returned -- on the point estimates, on every estimate's
    lower bound, and on every estimate's upper bound. The lower/upper
    fits are not a confidence band; they only show that the published
    numbers admit visibly different lines.

    Returns
    -------
    dict with keys "point", "lower", "upper", each an estimate() result.
    """
    x, x_se = check_series(x, x_se)
    y, y_se = check_series(y, y_se)
    if x.size != y.size:
        raise InvalidInput(f"x has {x.size} estimates but y has {y.size}")
    x_lo, x_hi = confidence_interval(x, x_se, k=k)
    y_lo, y_hi = confidence_interval(y, y_se, k=k)
    return dict(
        point=estimate(x, y, scale=scale),
        lower=estimate(x_lo, y_lo, scale=scale),
        upper=estimate(x_hi, y_hi, scale=scale),
    )
