"""Loading restart samples from disk.

Samples are packed one per byte; the rightmost ``word_size`` bits of each byte
form the sample. If fewer than ``2**word_size`` distinct symbols occur, the
alphabet is mapped down to ``0..alphabet_size-1`` in ascending order of the
original values, e.g. with ``word_size=4`` the symbols 0x7, 0x3, 0xA become
0x1, 0x0, 0x2.
"""

from __future__ import annotations

import hashlib
import logging
import pathlib
from dataclasses import dataclass

import numpy as np

from ea_restart.errors import SampleInputError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SampleSet:
    symbols: np.ndarray
    alphabet_size: int
    word_size: int
    raw_data_hash: str = ""

    def __len__(self) -> int:
        return int(self.symbols.size)

    @property
    def remapped(self) -> bool:
        return self.alphabet_size < (1 << self.word_size)

    def truncated(self, length: int) -> "SampleSet":
        """Return the first ``length`` samples; fails if there are fewer."""
        if len(self) < length:
            raise SampleInputError(f"data contains less than {length} samples")
        symbols = self.symbols[:length]
        symbols.flags.writeable = False
        return SampleSet(
            symbols=symbols,
            alphabet_size=self.alphabet_size,
            word_size=self.word_size,
            raw_data_hash=self.raw_data_hash,
        )


def compact_alphabet(words: np.ndarray, word_size: int) -> SampleSet:
    """Mask ``words`` to ``word_size`` bits and remap them to a dense alphabet."""
    masked = np.asarray(words, dtype=np.uint8) & np.uint8((1 << word_size) - 1)
    if masked.size == 0:
        raise SampleInputError("no samples found")
    originals, symbols = np.unique(masked, return_inverse=True)
    symbols = symbols.astype(np.uint8).reshape(-1)
    symbols.flags.writeable = False
    return SampleSet(
        symbols=symbols,
        alphabet_size=int(originals.size),
        word_size=word_size,
    )


def load_samples(path: pathlib.Path, word_size: int) -> SampleSet:
    """Read a binary sample file, one sample per byte."""
    path = pathlib.Path(path)
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise SampleInputError(f"error reading file {path}: {exc}") from exc
    samples = compact_alphabet(np.frombuffer(raw, dtype=np.uint8), word_size)
    logger.debug(
        "loaded %d samples from %s, alphabet size %d", len(samples), path, samples.alphabet_size
    )
    return SampleSet(
        symbols=samples.symbols,
        alphabet_size=samples.alphabet_size,
        word_size=word_size,
        raw_data_hash=hashlib.sha256(raw).hexdigest(),
    )
