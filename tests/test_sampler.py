import numpy as np
import pytest

from moeprimer.sampler import bounded_normal, bounded_normal_matrix, truncated_moments
from moeprimer.utils import InvalidInput, SamplingStalled

K = 1.645


def test_draws_stay_inside_published_interval():
    draws = bounded_normal_matrix([100, 50], [10, 5], K, 500, rng=1)
    assert draws.shape == (500, 2)
    assert np.all(draws[:, 0] >= 83.55 - 1e-9) and np.all(draws[:, 0] <= 116.45 + 1e-9)
    assert np.all(draws[:, 1] >= 41.775 - 1e-9) and np.all(draws[:, 1] <= 58.225 + 1e-9)


def test_zero_error_returns_value_exactly():
    values = np.array([12.5, 0.0, 7.25])
    draws = bounded_normal(values, [0, 0, 0], K, rng=7)
    assert np.array_equal(draws, values)


def test_mixed_zero_and_positive_errors():
    draws = bounded_normal([10.0, 20.0], [0.0, 2.0], K, rng=7)
    assert draws[0] == 10.0
    assert 20 - K * 2 <= draws[1] <= 20 + K * 2


def test_fixed_seed_is_reproducible():
    values, errors = np.linspace(5, 50, 30), np.linspace(1, 8, 30)
    a = bounded_normal(values, errors, K, rng=123)
    b = bounded_normal(values, errors, K, rng=123)
    c = bounded_normal(values, errors, K, rng=124)
    assert np.array_equal(a, b)
    assert not np.array_equal(a, c)


def test_generator_stream_advances_between_calls():
    rng = np.random.default_rng(5)
    a = bounded_normal([10.0], [2.0], K, rng=rng)
    b = bounded_normal([10.0], [2.0], K, rng=rng)
    assert a[0] != b[0]


def test_lower_bound_clamped_at_zero():
    values = np.full(20000, 1.0)
    errors = np.full(20000, 2.0)
    draws = bounded_normal(values, errors, K, rng=11)
    assert draws.min() >= 0.0
    assert draws.max() <= 1.0 + K * 2.0
    # mass below zero is rejected, so the mean moves above the estimate
    mom = truncated_moments([1.0], [2.0], K)
    assert mom["mean"][0] > 1.0
    assert draws.mean() == pytest.approx(mom["mean"][0], abs=0.05)


def test_symmetric_interval_mean_converges_to_value():
    draws = bounded_normal(np.full(20000, 100.0), np.full(20000, 10.0), K, rng=2)
    assert draws.mean() == pytest.approx(100.0, abs=0.5)
    mom = truncated_moments([100.0], [10.0], K)
    assert mom["mean"][0] == pytest.approx(100.0)
    assert draws.std() == pytest.approx(mom["std"][0], rel=0.05)
    assert mom["std"][0] < 10.0


def test_truncated_moments_zero_error():
    mom = truncated_moments([4.0, 9.0], [0.0, 1.0], K)
    assert mom["mean"][0] == 4.0
    assert mom["std"][0] == 0.0
    assert mom["lo"][1] == pytest.approx(9 - K)
    assert mom["hi"][1] == pytest.approx(9 + K)


def test_length_mismatch_is_invalid_input():
    with pytest.raises(InvalidInput):
        bounded_normal([1, 2, 3], [1, 1], K, rng=0)


@pytest.mark.parametrize("errors", [[1.0, -0.5], [np.nan, 1.0]])
def test_bad_errors_are_invalid_input(errors):
    with pytest.raises(InvalidInput):
        bounded_normal([1.0, 2.0], errors, K, rng=0)


@pytest.mark.parametrize("k", [0, -1.645, np.inf])
def test_non_positive_multiplier_is_invalid_input(k):
    with pytest.raises(InvalidInput):
        bounded_normal([1.0], [1.0], k, rng=0)


def test_invalid_input_is_a_value_error():
    with pytest.raises(ValueError):
        bounded_normal([], [], K)


def test_empty_interval_stalls_immediately():
    with pytest.raises(SamplingStalled) as exc:
        bounded_normal([5.0, -5.0], [1.0, 1.0], K, rng=0)
    assert exc.value.indices.tolist() == [1]


def test_negative_value_with_zero_error_stalls():
    with pytest.raises(SamplingStalled):
        bounded_normal([-1.0], [0.0], K, rng=0)


def test_attempt_cap_raises_sampling_stalled():
    # admissible mass is roughly 3e-5 of the normal
    with pytest.raises(SamplingStalled) as exc:
        bounded_normal([3.0, -4.0], [1.0, 1.0], 4.5, rng=0, max_attempts=5)
    assert exc.value.indices.tolist() == [1]
    assert isinstance(exc.value, RuntimeError)
