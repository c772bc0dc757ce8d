import numpy as np
import pytest

from moeprimer import regression
from moeprimer.utils import InvalidInput, SingularFit, add_const, ols_fit


def test_exact_line_is_recovered():
    x = np.array([1.0, 2.0, 3.0, 4.0, 5.0])
    res = regression.estimate(x, (2 + 3 * x) / 100, scale=100)
    assert res["slope"] == pytest.approx(3.0)
    assert res["intercept"] == pytest.approx(2.0)
    assert res["r2"] == pytest.approx(1.0)
    assert res["n"] == 5
    np.testing.assert_allclose(res["residuals"], 0, atol=1e-9)


def test_standard_errors_match_textbook_formula():
    rng = np.random.default_rng(1)
    x = rng.normal(50, 10, 200)
    y = 0.1 + 0.01 * x + rng.normal(0, 0.05, 200)
    res = regression.estimate(x, y)
    s2 = res["residuals"] @ res["residuals"] / (200 - 2)
    se_slope = np.sqrt(s2 / np.sum((x - x.mean()) ** 2))
    assert res["se"][1] == pytest.approx(se_slope)
    assert 0 < res["r2"] < 1


def test_constant_regressor_raises_singular_fit():
    with pytest.raises(SingularFit):
        regression.estimate(np.full(4, 3.0), np.arange(4.0))


def test_singular_fit_is_a_linalg_error():
    with pytest.raises(np.linalg.LinAlgError):
        ols_fit(add_const(np.ones(3)), np.arange(3.0))


def test_two_points_have_undefined_standard_errors():
    b, se, e, s2 = ols_fit(add_const(np.array([1.0, 2.0])), np.array([3.0, 5.0]))
    np.testing.assert_allclose(b, [1.0, 2.0])
    assert np.isnan(se).all() and np.isnan(s2)


def test_mismatched_lengths():
    with pytest.raises(InvalidInput):
        regression.estimate([1, 2, 3], [1, 2])


def test_bound_regressions_with_exact_estimates_agree():
    x = np.array([10.0, 20.0, 30.0, 40.0])
    y = np.array([0.1, 0.25, 0.3, 0.5])
    zeros = np.zeros(4)
    fits = regression.bound_regressions(x, zeros, y, zeros, scale=100)
    assert set(fits) == {"point", "lower", "upper"}
    for key in ("lower", "upper"):
        assert fits[key]["slope"] == pytest.approx(fits["point"]["slope"])


def test_bound_regressions_shift_the_line():
    x = np.array([10.0, 20.0, 30.0, 40.0])
    y = np.array([0.1, 0.25, 0.3, 0.5])
    fits = regression.bound_regressions(x, np.full(4, 2.0), y, np.full(4, 0.02))
    # equal errors shift every point by the same amount: slope kept, intercept moved
    assert fits["lower"]["slope"] == pytest.approx(fits["point"]["slope"])
    assert fits["lower"]["intercept"] != pytest.approx(fits["upper"]["intercept"])
