"""Prediction estimators (SP 800-90B 6.3.7 - 6.3.10).

Each predictor walks the data once, guessing every symbol from the ones before
it. The guesses are then turned into a min-entropy bound from the global hit
rate and from the longest run of consecutive hits.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Optional, Sequence

import numpy as np

from ea_restart.metrics.binomial import Z_ALPHA, proportion_upper_bound
from ea_restart.metrics.search import bisect_decreasing

logger = logging.getLogger(__name__)

MCW_WINDOWS = (63, 255, 1023, 4095)
LAG_DEPTH = 128
MMC_DEPTH = 16
MMC_MAX_ENTRIES = 100_000
LZ78Y_DEPTH = 16
LZ78Y_MAX_DICTIONARY = 65_536

RUN_CONFIDENCE = 0.99
RUN_ROOT_ITERATIONS = 10


def _no_run_probability(p: float, r: int, n: int) -> float:
    """Probability that ``n`` trials with success rate ``p`` contain no run of ``r`` successes."""
    q = 1.0 - p
    try:
        x = 1.0
        for _ in range(RUN_ROOT_ITERATIONS):
            x = 1.0 + q * p**r * x ** (r + 1)
        denominator = (r + 1.0 - r * x) * q
        if denominator <= 0.0:
            return 0.0
        return (1.0 - p * x) / denominator / x ** (n + 1)
    except OverflowError:
        return 0.0


def local_probability(n: int, longest_run: int) -> float:
    """Success rate at which a run longer than ``longest_run`` is 99% unlikely."""
    r = longest_run + 1
    return bisect_decreasing(lambda p: _no_run_probability(p, r, n), RUN_CONFIDENCE, 0.0, 1.0)


def prediction_entropy(correct: int, n: int, longest_run: int, alphabet_size: int) -> float:
    if correct > 0:
        p_global = proportion_upper_bound(correct / n, n, Z_ALPHA)
    else:
        p_global = 1.0 - 0.01 ** (1.0 / n)
    p_local = local_probability(n, longest_run)
    logger.debug(
        "predictions: N=%d C=%d r=%d P_global'=%.6f P_local=%.6f",
        n, correct, longest_run + 1, p_global, p_local,
    )
    return -math.log2(max(p_global, p_local, 1.0 / alphabet_size))


def _score(hits: Sequence[bool], alphabet_size: int) -> float:
    h = np.asarray(hits, dtype=np.int8)
    edges = np.diff(np.concatenate(([0], h, [0])))
    starts = np.flatnonzero(edges == 1)
    ends = np.flatnonzero(edges == -1)
    longest = int((ends - starts).max()) if starts.size else 0
    return prediction_entropy(int(h.sum()), h.size, longest, alphabet_size)


def _update_scoreboard(scores: List[int], winner: int, guesses: Sequence, actual: int) -> int:
    for j, guess in enumerate(guesses):
        if guess == actual:
            scores[j] += 1
            if scores[j] >= scores[winner]:
                winner = j
    return winner


def _context_keys(s: Sequence[int], end: int, depth: int, alphabet_size: int) -> List[int]:
    """Integer keys for the contexts of length 1..depth ending at ``end``."""
    keys = []
    key = 0
    weight = 1
    for d in range(1, depth + 1):
        key += s[end - d + 1] * weight
        weight *= alphabet_size
        keys.append(key)
    return keys


class _Successors:
    """Counts of symbols seen after one context, with a running argmax."""

    __slots__ = ("counts", "best", "best_count")

    def __init__(self):
        self.counts: Dict[int, int] = {}
        self.best = -1
        self.best_count = 0

    def add(self, y: int) -> None:
        c = self.counts.get(y, 0) + 1
        self.counts[y] = c
        # ties go to the larger symbol
        if c > self.best_count or (c == self.best_count and y > self.best):
            self.best = y
            self.best_count = c


def multi_mcw(data: np.ndarray, alphabet_size: int) -> Optional[float]:
    """Multi Most Common in Window prediction estimate."""
    s = np.asarray(data).tolist()
    n = len(s)
    start = MCW_WINDOWS[0]
    if n - start < 2:
        return None

    k = alphabet_size
    n_windows = len(MCW_WINDOWS)
    counts = [[0] * k for _ in MCW_WINDOWS]
    modes = [s[0]] * n_windows
    last_seen = [-1] * k
    scores = [0] * n_windows
    winner = 0
    hits = []

    for t in range(1, n):
        added = s[t - 1]
        last_seen[added] = t - 1
        for j, w in enumerate(MCW_WINDOWS):
            window_counts = counts[j]
            window_counts[added] += 1
            if window_counts[added] >= window_counts[modes[j]]:
                modes[j] = added
            if t - 1 - w >= 0:
                removed = s[t - 1 - w]
                window_counts[removed] -= 1
                if removed == modes[j]:
                    # most frequent, ties to the most recent occurrence
                    modes[j] = max(range(k), key=lambda a: (window_counts[a], last_seen[a]))
        if t < start:
            continue

        guesses = [modes[j] if t >= w else None for j, w in enumerate(MCW_WINDOWS)]
        actual = s[t]
        hits.append(guesses[winner] == actual)
        winner = _update_scoreboard(scores, winner, guesses, actual)

    return _score(hits, alphabet_size)


def lag(data: np.ndarray, alphabet_size: int) -> Optional[float]:
    """Lag prediction estimate: predict by repeating the symbol d steps back."""
    s = np.asarray(data, dtype=np.int64)
    n = s.size
    if n - 1 < 2:
        return None

    scores = np.zeros(LAG_DEPTH, dtype=np.int64)
    winner = 0
    hits = []
    for t in range(1, n):
        depth = min(LAG_DEPTH, t)
        window = s[t - depth:t][::-1]  # window[d - 1] == s[t - d]
        actual = s[t]
        hits.append(bool(window[winner] == actual))
        matched = np.flatnonzero(window == actual)
        if matched.size:
            scores[matched] += 1
            matched_scores = scores[matched]
            top = matched_scores.max()
            # same winner as scanning lags in order with a >= comparison
            if top >= scores[winner]:
                winner = int(matched[matched_scores == top][-1])

    return _score(hits, alphabet_size)


def multi_mmc(data: np.ndarray, alphabet_size: int) -> Optional[float]:
    """Multi Markov Model with Counting prediction estimate, orders 1..16."""
    s = np.asarray(data).tolist()
    n = len(s)
    if n - 2 < 2:
        return None

    k = alphabet_size
    models: List[Dict[int, _Successors]] = [{} for _ in range(MMC_DEPTH)]
    scores = [0] * MMC_DEPTH
    winner = 0
    hits = []
    previous = _context_keys(s, 0, 1, k)

    for t in range(2, n):
        follower = s[t - 1]
        for d, key in enumerate(previous):
            model = models[d]
            entry = model.get(key)
            if entry is None:
                if len(model) >= MMC_MAX_ENTRIES:
                    continue
                entry = model[key] = _Successors()
            entry.add(follower)

        current = _context_keys(s, t - 1, min(MMC_DEPTH, t), k)
        guesses: List[Optional[int]] = [None] * MMC_DEPTH
        for d, key in enumerate(current):
            entry = models[d].get(key)
            if entry is not None:
                guesses[d] = entry.best
        actual = s[t]
        hits.append(guesses[winner] == actual)
        winner = _update_scoreboard(scores, winner, guesses, actual)
        previous = current

    return _score(hits, alphabet_size)


def lz78y(data: np.ndarray, alphabet_size: int) -> Optional[float]:
    """LZ78Y prediction estimate with a bounded dictionary of contexts up to length 16."""
    s = np.asarray(data).tolist()
    n = len(s)
    b = LZ78Y_DEPTH
    if n - b - 1 < 2:
        return None

    k = alphabet_size
    dictionary: Dict[tuple, _Successors] = {}
    hits = []
    previous = _context_keys(s, b - 1, b, k)

    for t in range(b + 1, n):
        follower = s[t - 1]
        for j in range(b, 0, -1):
            entry = dictionary.get((j, previous[j - 1]))
            if entry is None:
                if len(dictionary) >= LZ78Y_MAX_DICTIONARY:
                    continue
                entry = dictionary[(j, previous[j - 1])] = _Successors()
            entry.add(follower)

        current = _context_keys(s, t - 1, b, k)
        prediction = None
        max_count = 0
        for j in range(b, 0, -1):
            entry = dictionary.get((j, current[j - 1]))
            if entry is not None and entry.best_count > max_count:
                prediction = entry.best
                max_count = entry.best_count
        hits.append(prediction == s[t])
        previous = current

    return _score(hits, alphabet_size)
