from __future__ import annotations

from typing import Callable

ITERATIONS = 64


def bisect_decreasing(
    f: Callable[[float], float], target: float, lo: float, hi: float, iterations: int = ITERATIONS
) -> float:
    """Return p in [lo, hi] with f(p) ~= target, for f non-increasing on the interval."""
    for _ in range(iterations):
        mid = 0.5 * (lo + hi)
        if f(mid) > target:
            lo = mid
        else:
            hi = mid
    return 0.5 * (lo + hi)
