"""The estimator battery run over each orientation of the restart matrix.

Every estimator returns a min-entropy estimate or ``None`` when it does not
apply to the input. Each orientation folds its results into its own
``EntropyAccumulator``; the two accumulators never share state, so the
orientations may run on separate threads.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from ea_restart.estimators import entropic, predictors, tuples
from ea_restart.estimators.most_common import most_common_value

logger = logging.getLogger(__name__)

ROWS = "Rows"
COLS = "Cols"


@dataclass(frozen=True)
class EstimatorOutcome:
    name: str
    label: str
    group: str
    value: Optional[float]

    @property
    def applicable(self) -> bool:
        return self.value is not None


@dataclass
class EntropyAccumulator:
    """Running min-entropy for one orientation, starting at ``word_size``."""

    orientation: str
    word_size: int
    value: float = field(init=False)
    outcomes: List[EstimatorOutcome] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.value = float(self.word_size)

    def fold(self, outcome: EstimatorOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.value is not None:
            self.value = min(self.value, outcome.value)


@dataclass
class _BatteryState:
    alphabet_size: int
    tuple_counts: Optional[tuples.TupleCounts] = None
    u: Optional[int] = None


EstimatorFn = Callable[[np.ndarray, _BatteryState], Optional[float]]


@dataclass(frozen=True)
class Estimator:
    name: str
    label: str
    group: str
    run: EstimatorFn
    non_iid_only: bool = True
    bits_only: bool = False

    def selected(self, iid: bool, word_size: int) -> bool:
        if self.non_iid_only and iid:
            return False
        return not self.bits_only or word_size == 1


def _counts(data: np.ndarray, state: _BatteryState) -> tuples.TupleCounts:
    if state.tuple_counts is None:
        state.tuple_counts = tuples.tuple_counts(data)
    return state.tuple_counts


def _t_tuple(data: np.ndarray, state: _BatteryState) -> Optional[float]:
    result = tuples.t_tuple(data, state.alphabet_size, _counts(data, state))
    state.u = result.u
    return result.entropy


def _lrs(data: np.ndarray, state: _BatteryState) -> Optional[float]:
    if state.u is None:
        raise RuntimeError("the t-tuple estimate must run before LRS")
    return tuples.lrs(data, state.alphabet_size, state.u, _counts(data, state))


MOST_COMMON_GROUP = "Most Common Value Estimate"
ENTROPIC_GROUP = "Entropic Statistic Estimates (bit strings only)"
TUPLE_GROUP = "Tuple Estimates"
PREDICTOR_GROUP = "Predictor Estimates"

ESTIMATORS: Tuple[Estimator, ...] = (
    Estimator(
        "most_common_value", "Most Common Value Estimate", MOST_COMMON_GROUP,
        lambda data, st: most_common_value(data, st.alphabet_size), non_iid_only=False,
    ),
    Estimator(
        "collision", "Collision Test Estimate", ENTROPIC_GROUP,
        lambda data, st: entropic.collision(data), bits_only=True,
    ),
    Estimator(
        "markov", "Markov Test Estimate", ENTROPIC_GROUP,
        lambda data, st: entropic.markov(data), bits_only=True,
    ),
    Estimator(
        "compression", "Compression Test Estimate", ENTROPIC_GROUP,
        lambda data, st: entropic.compression(data), bits_only=True,
    ),
    Estimator("t_tuple", "T-Tuple Test Estimate", TUPLE_GROUP, _t_tuple),
    Estimator("lrs", "LRS Test Estimate", TUPLE_GROUP, _lrs),
    Estimator(
        "multi_mcw", "Multi Most Common in Window (MultiMCW) Prediction Test Estimate", PREDICTOR_GROUP,
        lambda data, st: predictors.multi_mcw(data, st.alphabet_size),
    ),
    Estimator(
        "lag", "Lag Prediction Test Estimate", PREDICTOR_GROUP,
        lambda data, st: predictors.lag(data, st.alphabet_size),
    ),
    Estimator(
        "multi_mmc", "Multi Markov Model with Counting (MultiMMC) Prediction Test Estimate", PREDICTOR_GROUP,
        lambda data, st: predictors.multi_mmc(data, st.alphabet_size),
    ),
    Estimator(
        "lz78y", "LZ78Y Prediction Test Estimate", PREDICTOR_GROUP,
        lambda data, st: predictors.lz78y(data, st.alphabet_size),
    ),
)


def select_estimators(iid: bool, word_size: int) -> List[Estimator]:
    return [e for e in ESTIMATORS if e.selected(iid, word_size)]


def run_battery(
    data: np.ndarray,
    alphabet_size: int,
    word_size: int,
    iid: bool,
    orientation: str,
    estimators: Optional[List[Estimator]] = None,
) -> EntropyAccumulator:
    """Run the selected estimators over one orientation's buffer."""
    if estimators is None:
        estimators = select_estimators(iid, word_size)
    accumulator = EntropyAccumulator(orientation, word_size)
    state = _BatteryState(alphabet_size)
    for estimator in estimators:
        started = time.perf_counter()
        value = estimator.run(data, state)
        logger.debug(
            "%s (%s) = %s in %.2fs", estimator.name, orientation, value, time.perf_counter() - started
        )
        accumulator.fold(EstimatorOutcome(estimator.name, estimator.label, estimator.group, value))
    return accumulator


def run_orientations(
    row_data: np.ndarray,
    column_data: np.ndarray,
    alphabet_size: int,
    word_size: int,
    iid: bool,
    workers: int = 1,
) -> Dict[str, EntropyAccumulator]:
    """Run the battery over rows and columns, optionally on two threads."""
    estimators = select_estimators(iid, word_size)
    jobs = ((ROWS, row_data), (COLS, column_data))
    if workers <= 1:
        return {
            name: run_battery(data, alphabet_size, word_size, iid, name, estimators)
            for name, data in jobs
        }
    with ThreadPoolExecutor(max_workers=min(workers, len(jobs))) as pool:
        futures = {
            name: pool.submit(run_battery, data, alphabet_size, word_size, iid, name, estimators)
            for name, data in jobs
        }
        return {name: future.result() for name, future in futures.items()}
