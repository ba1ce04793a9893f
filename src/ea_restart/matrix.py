"""Row/column views of restart data.

Row ``i`` of the restart matrix holds samples ``[i*C, (i+1)*C)`` and is read as
one restart; column ``j`` holds sample ``j`` of every restart.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from ea_restart.errors import SampleInputError

logger = logging.getLogger(__name__)

ALPHABET_BOUND = 256


@dataclass(frozen=True)
class RestartMatrix:
    rows: np.ndarray
    columns: np.ndarray

    @classmethod
    def from_samples(cls, symbols: np.ndarray, n_rows: int, n_cols: int) -> "RestartMatrix":
        symbols = np.asarray(symbols, dtype=np.uint8)
        if symbols.size != n_rows * n_cols:
            raise SampleInputError(
                f"restart matrix needs exactly {n_rows * n_cols} samples, got {symbols.size}"
            )
        rows = symbols.reshape(n_rows, n_cols)
        rows.flags.writeable = False
        # column[j*R + i] = row[i*C + j], as an independent buffer
        columns = np.ascontiguousarray(rows.T)
        columns.flags.writeable = False
        logger.debug("built %dx%d restart matrix", n_rows, n_cols)
        return cls(rows=rows, columns=columns)

    @property
    def row_data(self) -> np.ndarray:
        """Row-major buffer, identical to the input samples."""
        return self.rows.reshape(-1)

    @property
    def column_data(self) -> np.ndarray:
        """Column-major buffer."""
        return self.columns.reshape(-1)


def mode_count(buffer: np.ndarray) -> int:
    """Max over rows of ``buffer`` of the row's most frequent symbol count.

    Every row gets its own ``ALPHABET_BOUND``-wide frequency table. Pass the
    column buffer to count columns.
    """
    buffer = np.asarray(buffer)
    if buffer.ndim != 2 or buffer.size == 0:
        raise ValueError("mode_count expects a non-empty 2-D buffer")
    n_lines = buffer.shape[0]
    offsets = np.arange(n_lines, dtype=np.int64)[:, None] * ALPHABET_BOUND
    tables = np.bincount(
        (buffer.astype(np.int64) + offsets).reshape(-1),
        minlength=n_lines * ALPHABET_BOUND,
    ).reshape(n_lines, ALPHABET_BOUND)
    return int(tables.max(axis=1).max())
