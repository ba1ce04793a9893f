from __future__ import annotations

import math

import numpy as np
from scipy.special import logsumexp
from scipy.stats import norm


def log_binomial_coefficient(n: int, k: int) -> float:
    """log C(n, k), built as a ratio product over i = 0..k-1."""
    if k < 0 or k > n:
        return -math.inf
    k = min(k, n - k)
    i = np.arange(k, dtype=float)
    return float(np.sum(np.log(n - i) - np.log(k - i)))


def binomial_tail(n: int, p: float, x: int) -> float:
    """Return P(X >= x) for X ~ Binomial(n, p).

    The coefficient for ``x`` is advanced by the forward recurrence
    C(n, j) = C(n, j-1) * (n-j+1)/j while sweeping j = x..n. Terms are kept in
    log space and summed with log-sum-exp, so nothing overflows for large n.
    """
    if n < 0:
        raise ValueError(f"trial count must be non-negative, got {n}")
    if not 0.0 <= p <= 1.0:
        raise ValueError(f"success probability must be in [0, 1], got {p}")
    if x <= 0:
        return 1.0
    if x > n:
        return 0.0
    if p == 0.0:
        return 0.0
    if p == 1.0:
        return 1.0

    j = np.arange(x, n + 1, dtype=float)
    steps = np.log(n - j[1:] + 1) - np.log(j[1:])
    log_coeff = log_binomial_coefficient(n, x) + np.concatenate(([0.0], np.cumsum(steps)))
    log_terms = log_coeff + j * math.log(p) + (n - j) * math.log1p(-p)
    tail = float(np.exp(logsumexp(log_terms)))
    return min(1.0, max(0.0, tail))


def proportion_upper_bound(p_hat: float, n: int, z: float) -> float:
    """Normal-approximation upper confidence bound on a proportion, capped at 1."""
    if n <= 1:
        return 1.0
    return min(1.0, p_hat + z * math.sqrt(p_hat * (1.0 - p_hat) / (n - 1)))


# two-sided 99% normal quantile used by every SP 800-90B confidence bound
Z_ALPHA = float(norm.ppf(0.995))
