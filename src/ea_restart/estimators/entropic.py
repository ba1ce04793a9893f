"""Estimators that only apply to bit strings (SP 800-90B 6.3.2 - 6.3.4).

Each takes a sequence of 0/1 symbols and returns min-entropy per bit, or
``None`` when the input is too short for the statistic to exist.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

import numpy as np

from ea_restart.metrics.binomial import Z_ALPHA
from ea_restart.metrics.search import bisect_decreasing

logger = logging.getLogger(__name__)

MARKOV_SEQUENCE_LENGTH = 128
COMPRESSION_BLOCK_BITS = 6
COMPRESSION_DICTIONARY_BLOCKS = 1000
COMPRESSION_SIGMA_FACTOR = 0.5907


def _log2(x: float) -> float:
    return math.log2(x) if x > 0.0 else -math.inf


def collision(data: np.ndarray) -> Optional[float]:
    """Collision estimate from the mean time to the first repeated bit."""
    bits = np.asarray(data, dtype=np.uint8).tolist()
    n = len(bits)
    times = []
    i = 0
    while i < n - 1:
        if bits[i] == bits[i + 1]:
            t = 2
        elif i < n - 2:
            t = 3
        else:
            break
        times.append(t)
        i += t
    v = len(times)
    if v < 2:
        return None

    times = np.asarray(times, dtype=float)
    x_bar = float(times.mean()) - Z_ALPHA * float(times.std(ddof=1)) / math.sqrt(v)
    x_bar = max(x_bar, 2.0)
    # E[t] = 2 + 2p - 2p^2 for a biased bit, solved for p >= 1/2
    p = 0.5 + math.sqrt(1.25 - 0.5 * x_bar) if x_bar < 2.5 else 0.5
    logger.debug("collision: v=%d X'=%.6f p=%.6f", v, x_bar, p)
    return -math.log2(p)


def markov(data: np.ndarray) -> Optional[float]:
    """First-order Markov estimate over the most likely 128-bit sequence."""
    bits = np.asarray(data, dtype=np.uint8)
    n = bits.size
    if n < 2:
        return None
    p0 = float(np.count_nonzero(bits == 0)) / n
    p1 = 1.0 - p0

    prev, nxt = bits[:-1], bits[1:]
    transitions = np.bincount(prev.astype(np.int64) * 2 + nxt, minlength=4)
    c00, c01, c10, c11 = (int(c) for c in transitions)
    p00 = c00 / (c00 + c01) if c00 + c01 else 0.0
    p01 = c01 / (c00 + c01) if c00 + c01 else 0.0
    p10 = c10 / (c10 + c11) if c10 + c11 else 0.0
    p11 = c11 / (c10 + c11) if c10 + c11 else 0.0

    k = MARKOV_SEQUENCE_LENGTH
    half = k // 2
    log_candidates = [
        _log2(p0) + (k - 1) * _log2(p00),
        _log2(p0) + half * _log2(p01) + (half - 1) * _log2(p10),
        _log2(p0) + _log2(p01) + (k - 2) * _log2(p11),
        _log2(p1) + _log2(p10) + (k - 2) * _log2(p00),
        _log2(p1) + half * _log2(p10) + (half - 1) * _log2(p01),
        _log2(p1) + (k - 1) * _log2(p11),
    ]
    return min(-max(log_candidates) / k, 1.0)


def _block_values(bits: np.ndarray, b: int) -> np.ndarray:
    n_blocks = bits.size // b
    weights = 1 << np.arange(b - 1, -1, -1, dtype=np.int64)
    return bits[: n_blocks * b].reshape(n_blocks, b).astype(np.int64) @ weights


def _expected_log_distance(n_blocks: int, d: int):
    """Return G(z) of the compression estimate for ``n_blocks`` blocks after ``d`` warm-up blocks."""
    v = n_blocks - d
    u = np.arange(1, n_blocks, dtype=float)
    weighted_log_u = (n_blocks - np.maximum(u, d)) * np.log2(u)
    t = np.arange(d + 1, n_blocks + 1, dtype=float)
    log_t = np.log2(t)

    def g(z: float) -> float:
        q = 1.0 - z
        inner = z * z * float(np.sum(weighted_log_u * np.power(q, u - 1)))
        last = z * float(np.sum(log_t * np.power(q, t - 1)))
        return (inner + last) / v

    return g


def compression(data: np.ndarray) -> Optional[float]:
    """Maurer-statistic compression estimate over 6-bit blocks."""
    b = COMPRESSION_BLOCK_BITS
    d = COMPRESSION_DICTIONARY_BLOCKS
    blocks = _block_values(np.asarray(data, dtype=np.uint8), b).tolist()
    n_blocks = len(blocks)
    v = n_blocks - d
    if v < 2:
        return None

    last_seen = [0] * (1 << b)
    for i in range(1, d + 1):
        last_seen[blocks[i - 1]] = i
    distances = []
    for i in range(d + 1, n_blocks + 1):
        s = blocks[i - 1]
        distances.append(i - last_seen[s] if last_seen[s] else i)
        last_seen[s] = i

    log_d = np.log2(np.asarray(distances, dtype=float))
    x_bar = float(log_d.mean())
    variance = max(0.0, float(np.sum(log_d * log_d)) / (v - 1) - x_bar * x_bar)
    sigma = COMPRESSION_SIGMA_FACTOR * math.sqrt(variance)
    x_prime = x_bar - Z_ALPHA * sigma / math.sqrt(v)

    g = _expected_log_distance(n_blocks, d)
    others = (1 << b) - 1

    def expected(p: float) -> float:
        return g(p) + others * g((1.0 - p) / others)

    p_lo = 1.0 / (1 << b)
    if x_prime >= expected(p_lo):
        p = p_lo
    else:
        p = bisect_decreasing(expected, x_prime, p_lo, 1.0)
    logger.debug("compression: v=%d X'=%.6f p=%.6f", v, x_prime, p)
    return -math.log2(p) / b
