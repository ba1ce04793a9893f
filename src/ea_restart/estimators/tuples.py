"""t-Tuple and longest-repeated-substring estimates (SP 800-90B 6.3.5, 6.3.6).

Both read their tuple counts off one suffix array. Every group of positions
that share a W-symbol prefix is an lcp-interval of the suffix array, so a
single stack pass over the LCP array yields, for every length W, the largest
group size and the number of colliding pairs.
"""

from __future__ import annotations

import logging
import math
from typing import List, NamedTuple, Optional

import numpy as np

from ea_restart.metrics.binomial import Z_ALPHA, proportion_upper_bound

logger = logging.getLogger(__name__)

TUPLE_CUTOFF = 35


class TupleEstimate(NamedTuple):
    entropy: Optional[float]
    u: int


class TupleCounts(NamedTuple):
    max_count: np.ndarray  # max_count[W]: occurrences of the most common W-tuple
    pair_count: np.ndarray  # pair_count[W]: sum over distinct W-tuples of C(count, 2)


def suffix_array(data: np.ndarray) -> np.ndarray:
    """Suffix array by prefix doubling."""
    n = data.size
    rank = np.asarray(data, dtype=np.int64)
    if n == 0:
        return np.zeros(0, dtype=np.int64)
    k = 1
    while True:
        second = np.full(n, -1, dtype=np.int64)
        if k < n:
            second[: n - k] = rank[k:]
        sa = np.lexsort((second, rank))
        first_sorted, second_sorted = rank[sa], second[sa]
        changed = np.empty(n, dtype=bool)
        changed[0] = True
        changed[1:] = (first_sorted[1:] != first_sorted[:-1]) | (second_sorted[1:] != second_sorted[:-1])
        new_rank = np.empty(n, dtype=np.int64)
        new_rank[sa] = np.cumsum(changed) - 1
        rank = new_rank
        if rank.max() == n - 1 or k >= n:
            return sa
        k *= 2


def lcp_array(data: np.ndarray, sa: np.ndarray) -> List[int]:
    """Kasai's algorithm; ``lcp[i]`` is the common prefix of suffixes ``sa[i-1]`` and ``sa[i]``."""
    s = np.asarray(data).tolist()
    order = sa.tolist()
    n = len(s)
    rank = [0] * n
    for i, pos in enumerate(order):
        rank[pos] = i
    lcp = [0] * n
    h = 0
    for pos in range(n):
        r = rank[pos]
        if r == 0:
            h = 0
            continue
        other = order[r - 1]
        while pos + h < n and other + h < n and s[pos + h] == s[other + h]:
            h += 1
        lcp[r] = h
        if h:
            h -= 1
    return lcp


def tuple_counts(data: np.ndarray) -> TupleCounts:
    data = np.asarray(data)
    n = data.size
    lcp = lcp_array(data, suffix_array(data))
    longest = max(lcp) if n > 1 else 0

    best = [1] * (longest + 2)
    pairs = [0] * (longest + 2)
    stack = [(0, 0)]  # (lcp value, left bound)
    for i in range(1, n + 1):
        current = lcp[i] if i < n else 0
        left = i - 1
        while current < stack[-1][0]:
            value, left = stack.pop()
            size = i - left
            parent = max(current, stack[-1][0])
            if size > best[value]:
                best[value] = size
            # the interval is the group of every tuple length in (parent, value]
            weight = size * (size - 1) // 2
            pairs[parent + 1] += weight
            pairs[value + 1] -= weight
        if current > stack[-1][0]:
            stack.append((current, left))

    max_count = np.maximum.accumulate(np.asarray(best, dtype=np.int64)[::-1])[::-1]
    pair_count = np.cumsum(np.asarray(pairs, dtype=np.int64))
    return TupleCounts(max_count=max_count, pair_count=pair_count)


def t_tuple(data: np.ndarray, alphabet_size: int, counts: Optional[TupleCounts] = None) -> TupleEstimate:
    """t-Tuple estimate paired with ``u``, the first length whose tuples are all rarer than the cutoff."""
    data = np.asarray(data)
    n = data.size
    if counts is None:
        counts = tuple_counts(data)
    max_count = counts.max_count
    t = 0
    while t + 1 < max_count.size and max_count[t + 1] >= TUPLE_CUTOFF:
        t += 1
    if t == 0:
        return TupleEstimate(None, 1)

    p_max = max((max_count[i] / (n - i + 1)) ** (1.0 / i) for i in range(1, t + 1))
    p_u = proportion_upper_bound(p_max, n, Z_ALPHA)
    logger.debug("t-tuple: t=%d p_max=%.6f", t, p_max)
    return TupleEstimate(-math.log2(p_u), t + 1)


def lrs(data: np.ndarray, alphabet_size: int, u: int, counts: Optional[TupleCounts] = None) -> Optional[float]:
    """Longest repeated substring estimate over tuple lengths ``u..v``."""
    data = np.asarray(data)
    n = data.size
    if counts is None:
        counts = tuple_counts(data)
    pair_count = counts.pair_count
    v = 0
    for w in range(pair_count.size - 1, 0, -1):
        if pair_count[w] > 0:
            v = w
            break
    if u > v:
        logger.debug("lrs: u=%d exceeds longest repeated length v=%d", u, v)
        return None

    p_max = 0.0
    for w in range(u, v + 1):
        total_pairs = (n - w + 1) * (n - w) // 2
        p_w = float(pair_count[w]) / total_pairs
        p_max = max(p_max, p_w ** (1.0 / w))
    p_u = proportion_upper_bound(p_max, n, Z_ALPHA)
    logger.debug("lrs: u=%d v=%d p_max=%.6f", u, v, p_max)
    return -math.log2(p_u)
