from __future__ import annotations

import math

import numpy as np
import pytest
from scipy.stats import binom

from ea_restart.metrics.binomial import (
    Z_ALPHA,
    binomial_tail,
    log_binomial_coefficient,
    proportion_upper_bound,
)


def test_tail_matches_scipy_reference():
    for n, p, x in [(1000, 0.5, 500), (1000, 0.5, 560), (1000, 2 ** -0.5, 520), (1000, 2 ** -3, 200), (10, 0.3, 4)]:
        expected = float(binom.sf(x - 1, n, p))
        assert binomial_tail(n, p, x) == pytest.approx(expected, rel=1e-9, abs=1e-12)


def test_tail_small_probabilities_are_relatively_accurate():
    expected = float(binom.sf(599, 1000, 0.5))
    assert expected < 1e-9
    assert binomial_tail(1000, 0.5, 600) == pytest.approx(expected, rel=1e-9)


def test_tail_does_not_overflow_for_large_trial_counts():
    tail = binomial_tail(100_000, 0.5, 50_000)
    assert math.isfinite(tail)
    assert tail == pytest.approx(float(binom.sf(49_999, 100_000, 0.5)), rel=1e-9)


def test_tail_far_below_the_mean_is_one():
    assert binomial_tail(1000, 0.9, 1) == pytest.approx(1.0)


def test_tail_is_monotone_and_bounded():
    for p in (2 ** -0.5, 0.5, 2 ** -8):
        tails = [binomial_tail(1000, p, x) for x in range(0, 1002)]
        assert all(0.0 <= t <= 1.0 for t in tails)
        assert all(a >= b - 1e-12 for a, b in zip(tails, tails[1:]))


def test_tail_edge_cases():
    assert binomial_tail(1000, 0.5, 0) == 1.0
    assert binomial_tail(1000, 0.5, -3) == 1.0
    assert binomial_tail(1000, 0.5, 1001) == 0.0
    assert binomial_tail(1000, 0.5, 1002) == 0.0
    assert binomial_tail(1000, 1.0, 1000) == 1.0
    assert binomial_tail(1000, 0.0, 1) == 0.0
    assert binomial_tail(1000, 0.5, 1000) == pytest.approx(0.5 ** 1000)


@pytest.mark.parametrize("p", [-0.1, 1.5, float("nan")])
def test_tail_rejects_invalid_probability(p):
    with pytest.raises(ValueError):
        binomial_tail(10, p, 3)


def test_tail_rejects_negative_trials():
    with pytest.raises(ValueError):
        binomial_tail(-1, 0.5, 0)


def test_log_binomial_coefficient():
    assert log_binomial_coefficient(10, 3) == pytest.approx(math.log(120))
    assert log_binomial_coefficient(1000, 500) == pytest.approx(math.lgamma(1001) - 2 * math.lgamma(501))
    assert log_binomial_coefficient(5, 6) == -math.inf


def test_proportion_upper_bound():
    assert Z_ALPHA == pytest.approx(2.5758293035489, rel=1e-12)
    assert proportion_upper_bound(1.0, 100, Z_ALPHA) == 1.0
    assert proportion_upper_bound(0.5, 1, Z_ALPHA) == 1.0
    bound = proportion_upper_bound(0.5, 1_000_000, Z_ALPHA)
    assert bound == pytest.approx(0.5 + Z_ALPHA * math.sqrt(0.25 / 999_999))
    assert np.isclose(proportion_upper_bound(0.0, 10, Z_ALPHA), 0.0)
