"""Shared fixtures for the restart-test suite."""

from __future__ import annotations

import numpy as np
import pytest


@pytest.fixture
def rng() -> np.random.Generator:
    """A seeded generator so every statistical test is reproducible."""
    return np.random.default_rng(20240601)


@pytest.fixture
def random_bits(rng) -> np.ndarray:
    return rng.integers(0, 2, size=20_000, dtype=np.uint8)


@pytest.fixture
def constant_bits() -> np.ndarray:
    return np.zeros(20_000, dtype=np.uint8)


@pytest.fixture
def balanced_bits(rng):
    """Factory for restart data whose every row and column holds exactly half ones."""

    def make(n_rows: int, n_cols: int) -> np.ndarray:
        checkerboard = (np.add.outer(np.arange(n_rows), np.arange(n_cols)) % 2).astype(np.uint8)
        shuffled = checkerboard[rng.permutation(n_rows)][:, rng.permutation(n_cols)]
        return shuffled.reshape(-1)

    return make
