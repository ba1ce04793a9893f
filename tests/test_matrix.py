from __future__ import annotations

import numpy as np
import pytest

from ea_restart.errors import SampleInputError
from ea_restart.matrix import RestartMatrix, mode_count


def test_column_buffer_is_the_transpose(rng):
    r = c = 20
    row = rng.integers(0, 5, size=r * c, dtype=np.uint8)
    matrix = RestartMatrix.from_samples(row, r, c)
    column = matrix.column_data
    for i in range(r):
        for j in range(c):
            assert column[j * c + i] == row[i * r + j]
    assert np.array_equal(matrix.row_data, row)


def test_reshape_involution(rng):
    n = 37
    row = rng.integers(0, 256, size=n * n, dtype=np.uint8)
    once = RestartMatrix.from_samples(row, n, n)
    twice = RestartMatrix.from_samples(once.column_data, n, n)
    assert np.array_equal(twice.column_data, row)


def test_rectangular_layout(rng):
    row = rng.integers(0, 4, size=6 * 4, dtype=np.uint8)
    matrix = RestartMatrix.from_samples(row, 6, 4)
    assert matrix.rows.shape == (6, 4)
    assert matrix.columns.shape == (4, 6)
    column = matrix.column_data
    for i in range(6):
        for j in range(4):
            assert column[j * 6 + i] == row[i * 4 + j]


def test_buffers_are_read_only(rng):
    matrix = RestartMatrix.from_samples(rng.integers(0, 2, size=16, dtype=np.uint8), 4, 4)
    with pytest.raises(ValueError):
        matrix.rows[0, 0] = 1
    with pytest.raises(ValueError):
        matrix.columns[0, 0] = 1


def test_wrong_sample_count_is_rejected():
    with pytest.raises(SampleInputError):
        RestartMatrix.from_samples(np.zeros(15, dtype=np.uint8), 4, 4)


def test_mode_count_per_orientation():
    rows = np.array(
        [
            [0, 0, 0, 1],
            [1, 2, 3, 4],
            [5, 5, 6, 6],
            [0, 2, 3, 4],
        ],
        dtype=np.uint8,
    )
    matrix = RestartMatrix.from_samples(rows.reshape(-1), 4, 4)
    assert mode_count(matrix.rows) == 3
    # column 0 is (0, 1, 5, 0)
    assert mode_count(matrix.columns) == 2


def test_mode_count_handles_full_byte_alphabet():
    rows = np.full((3, 5), 255, dtype=np.uint8)
    rows[1] = [0, 1, 2, 3, 4]
    assert mode_count(rows) == 5


def test_mode_count_rejects_flat_buffers():
    with pytest.raises(ValueError):
        mode_count(np.zeros(10, dtype=np.uint8))
