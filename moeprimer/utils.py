"""
Shared utility functions and error types used across the moeprimer modules.
"""

import numpy as np


class UncertaintyError(Exception):
    """Base class for every error raised by moeprimer."""


class InvalidInput(UncertaintyError, ValueError):
    """Input series or parameters are unusable; raised before any sampling."""


class SingularFit(UncertaintyError, np.linalg.LinAlgError):
    """The regression design matrix is rank deficient."""


class SamplingStalled(UncertaintyError, RuntimeError):
    """
    Rejection sampling could not find an admissible draw.

    Attributes
    ----------
    indices : ndarray
        Positions of the elements that never produced an accepted draw.
    """

    def __init__(self, message, indices=()):
        super().__init__(message)
        self.indices = np.asarray(indices, dtype=int)


def ols_fit(X, y):
    """
    OLS estimation via the normal equations.

    Parameters
    ----------
    X : ndarray, shape (n, k)
        Design matrix (should include a constant column if an intercept is desired).
    y : ndarray, shape (n,)
        Outcome vector.

    Returns
    -------
    b : ndarray, shape (k,)
        Coefficient estimates  beta_hat = (X'X)^{-1} X'y.
    se : ndarray, shape (k,)
        Homoskedastic standard errors (NaN when n <= k).
    e : ndarray, shape (n,)
        Residuals  y - X @ b.
    s2 : float
        Estimated error variance  e'e / (n - k)  (NaN when n <= k).

    Raises
    ------
    SingularFit
        If X does not have full column rank (e.g. a constant regressor).
    """
    n, k = X.shape
    if np.linalg.matrix_rank(X) < k:
        raise SingularFit(f"design matrix has rank < {k}; regressor has no variance")
    b = np.linalg.lstsq(X, y, rcond=None)[0]
    e = y - X @ b
    if n <= k:
        return b, np.full(k, np.nan), e, np.nan
    s2 = (e @ e) / (n - k)
    se = np.sqrt(np.diag(s2 * np.linalg.inv(X.T @ X)))
    return b, se, e, s2


def add_const(x):
    """
    Prepend a column of ones (intercept) to the design matrix.

    Parameters
    ----------
    x : ndarray
        1-d array or 2-d matrix of regressors.

    Returns
    -------
    X : ndarray, shape (n, k+1)
        Design matrix with leading ones column.
    """
    x = np.atleast_2d(x).T if x.ndim == 1 else x
    return np.column_stack([np.ones(x.shape[0]), x])


def check_series(values, errors):
    """
    Coerce a (values, standard errors) pair to float arrays and validate it.

    Returns
    -------
    values, errors : ndarray, shape (n,)

    Raises
    ------
    InvalidInput
        On mismatched lengths, non 1-d or empty input, non-finite entries,
        or negative standard errors.
    """
    values = np.asarray(values, dtype=float)
    errors = np.asarray(errors, dtype=float)
    if values.ndim != 1 or errors.ndim != 1:
        raise InvalidInput("values and errors must be 1-d sequences")
    if values.shape != errors.shape:
        raise InvalidInput(
            f"values has length {values.size} but errors has length {errors.size}"
        )
    if values.size == 0:
        raise InvalidInput("series is empty")
    if not (np.all(np.isfinite(values)) and np.all(np.isfinite(errors))):
        raise InvalidInput("values and errors must be finite")
    if np.any(errors < 0):
        bad = np.flatnonzero(errors < 0)
        raise InvalidInput(f"negative standard error at index {bad.tolist()}")
    return values, errors


def check_multiplier(k):
    """Validate a bound multiplier (e.g. 1.645 for a 90% interval)."""
    k = float(k)
    if not np.isfinite(k) or k <= 0:
        raise InvalidInput(f"bound multiplier must be positive, got {k}")
    return k
