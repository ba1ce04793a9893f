from __future__ import annotations

import math
from typing import Optional

import numpy as np

from ea_restart.metrics.binomial import Z_ALPHA, proportion_upper_bound


def most_common_value(data: np.ndarray, alphabet_size: int) -> Optional[float]:
    """Most Common Value estimate (SP 800-90B 6.3.1)."""
    data = np.asarray(data)
    if data.size < 2:
        return None
    counts = np.bincount(data, minlength=alphabet_size)
    p_hat = counts.max() / data.size
    p_u = proportion_upper_bound(p_hat, data.size, Z_ALPHA)
    return -math.log2(p_u)
