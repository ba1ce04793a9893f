from __future__ import annotations

import math
from collections import Counter

import numpy as np
import pytest

from ea_restart.estimators import entropic, predictors, tuples
from ea_restart.estimators.most_common import most_common_value
from ea_restart.metrics.binomial import Z_ALPHA


def _alternating(n: int) -> np.ndarray:
    return (np.arange(n) % 2).astype(np.uint8)


def test_most_common_value_matches_formula():
    data = np.array([0, 1, 1, 2, 1, 0, 1, 3] * 100, dtype=np.uint8)
    p_hat = 400 / 800
    expected = -math.log2(p_hat + Z_ALPHA * math.sqrt(p_hat * (1 - p_hat) / 799))
    assert most_common_value(data, 4) == pytest.approx(expected)


@pytest.mark.parametrize("alphabet_size", [2, 3, 17, 255, 256])
def test_most_common_value_never_exceeds_word_size(rng, alphabet_size):
    data = rng.integers(0, alphabet_size, size=50_000).astype(np.uint8)
    estimate = most_common_value(data, alphabet_size)
    assert 0.0 < estimate <= math.log2(alphabet_size) <= 8


def test_most_common_value_constant_data(constant_bits):
    assert most_common_value(constant_bits, 2) == pytest.approx(0.0, abs=1e-12)


def test_random_bits_score_high(random_bits):
    assert entropic.collision(random_bits) > 0.6
    assert entropic.markov(random_bits) > 0.9
    assert entropic.compression(random_bits) > 0.5
    estimate = tuples.t_tuple(random_bits, 2)
    assert estimate.entropy > 0.7
    assert estimate.u > 1
    assert tuples.lrs(random_bits, 2, estimate.u) > 0.6
    for predictor in (predictors.multi_mcw, predictors.lag, predictors.multi_mmc, predictors.lz78y):
        assert predictor(random_bits, 2) > 0.8


def test_constant_bits_score_zero(constant_bits):
    data = constant_bits[:5000]
    assert entropic.collision(data) == pytest.approx(0.0, abs=1e-9)
    assert entropic.markov(data) == pytest.approx(0.0, abs=1e-9)
    assert entropic.compression(constant_bits[:12_000]) == pytest.approx(0.0, abs=1e-6)
    estimate = tuples.t_tuple(data, 2)
    assert estimate.entropy == pytest.approx(0.0, abs=1e-9)
    assert tuples.lrs(data, 2, estimate.u) == pytest.approx(0.0, abs=1e-9)
    for predictor in (predictors.multi_mcw, predictors.lag, predictors.multi_mmc, predictors.lz78y):
        assert predictor(data, 2) == pytest.approx(0.0, abs=1e-9)


def test_lag_catches_periodic_data():
    assert predictors.lag(_alternating(10_000), 2) < 0.05


def test_markov_catches_periodic_data():
    assert entropic.markov(_alternating(10_000)) < 0.05


def test_estimators_decline_tiny_inputs():
    one = np.array([1], dtype=np.uint8)
    assert most_common_value(one, 2) is None
    assert entropic.collision(one) is None
    assert entropic.markov(one) is None
    assert entropic.compression(np.zeros(600, dtype=np.uint8)) is None
    assert predictors.multi_mcw(np.zeros(64, dtype=np.uint8), 2) is None
    assert predictors.lag(np.zeros(2, dtype=np.uint8), 2) is None
    assert predictors.multi_mmc(np.zeros(3, dtype=np.uint8), 2) is None
    assert predictors.lz78y(np.zeros(18, dtype=np.uint8), 2) is None


def test_suffix_array_orders_suffixes(rng):
    data = rng.integers(0, 3, size=300).astype(np.uint8)
    sa = tuples.suffix_array(data).tolist()
    text = data.tolist()
    assert sa == sorted(range(len(text)), key=lambda i: text[i:])


def test_suffix_array_edge_cases():
    assert tuples.suffix_array(np.zeros(0, dtype=np.uint8)).size == 0
    assert tuples.suffix_array(np.array([5], dtype=np.uint8)).tolist() == [0]
    assert tuples.suffix_array(np.zeros(4, dtype=np.uint8)).tolist() == [3, 2, 1, 0]


def test_tuple_counts_match_brute_force(rng):
    data = rng.integers(0, 2, size=400).astype(np.uint8)
    counts = tuples.tuple_counts(data)
    text = tuple(data.tolist())
    assert counts.max_count[-1] == 1 and counts.pair_count[-1] == 0
    for w in range(1, counts.max_count.size):
        tally = Counter(text[i:i + w] for i in range(len(text) - w + 1))
        assert counts.max_count[w] == max(tally.values())
        assert counts.pair_count[w] == sum(c * (c - 1) // 2 for c in tally.values())


def test_t_tuple_without_frequent_tuples():
    data = np.arange(30, dtype=np.uint8)
    estimate = tuples.t_tuple(data, 30)
    assert estimate.entropy is None
    assert estimate.u == 1


def test_lrs_not_applicable_when_u_exceeds_longest_repeat():
    data = np.array([0, 1, 0, 1, 1, 0], dtype=np.uint8)
    assert tuples.lrs(data, 2, 10) is None


def test_local_probability_grows_with_the_longest_run():
    short = predictors.local_probability(10_000, 5)
    long = predictors.local_probability(10_000, 40)
    assert 0.0 < short < long < 1.0


def test_prediction_entropy_is_floored_by_alphabet():
    # a terrible predictor still cannot claim more than log2(k) bits
    assert predictors.prediction_entropy(0, 1000, 0, 4) == pytest.approx(2.0)
    assert predictors.prediction_entropy(1000, 1000, 999, 4) == pytest.approx(0.0, abs=1e-12)
