"""Restart test orchestration (SP 800-90B 3.1.4).

The data is read as R restarts of C samples. Rows and columns of the restart
matrix are checked for implausibly frequent symbols (the sanity check, 3.1.4.3)
and then run through the estimator battery; the validation test (3.1.4.2)
accepts the claimed entropy H_I when min(H_r, H_c) >= H_I / 2.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ea_restart.battery import COLS, ROWS, EntropyAccumulator, run_orientations
from ea_restart.certificate import sha256_hex, stable_dumps
from ea_restart.config import RestartConfig, check_run_parameters
from ea_restart.errors import SampleInputError, SanityCheckFailed
from ea_restart.matrix import RestartMatrix, mode_count
from ea_restart.metrics.binomial import binomial_tail
from ea_restart.samples import SampleSet

logger = logging.getLogger(__name__)


class RestartStage(enum.Enum):
    INIT = "init"
    MATRIX_BUILT = "matrix_built"
    SANITY_CHECKED = "sanity_checked"
    ABORTED = "aborted"
    BATTERY_RUN = "battery_run"
    CERTIFIED = "certified"
    REJECTED = "rejected"


@dataclass(frozen=True)
class SanityResult:
    x_rows: int
    x_cols: int
    x_max: int
    alpha: float
    tail_probability: float

    @property
    def passed(self) -> bool:
        return self.tail_probability >= self.alpha


@dataclass(frozen=True)
class ValidationResult:
    h_rows: float
    h_cols: float
    h_initial: float
    accepted: bool
    certified_bound: Optional[float]


def sanity_check(
    x_rows: int, x_cols: int, n_rows: int, n_cols: int, h_initial: float, alpha_level: float = 0.01
) -> SanityResult:
    """Tail probability of the largest row/column mode count under p = 2**-H_I.

    A row holds ``n_cols`` samples and a column ``n_rows``; each count is
    measured against its own trial count and the smaller tail governs. With
    R == C this is P(X >= max(X_r, X_c)) for X ~ Binomial(R, p).
    """
    p = 2.0 ** (-h_initial)
    alpha = alpha_level / (n_rows + n_cols)
    tail = min(binomial_tail(n_cols, p, x_rows), binomial_tail(n_rows, p, x_cols))
    result = SanityResult(
        x_rows=x_rows, x_cols=x_cols, x_max=max(x_rows, x_cols), alpha=alpha, tail_probability=tail
    )
    logger.debug("sanity check: X_r=%d X_c=%d alpha=%g tail=%g", x_rows, x_cols, alpha, tail)
    return result


def validate(h_rows: float, h_cols: float, h_initial: float) -> ValidationResult:
    h_min = min(h_rows, h_cols)
    if h_min < h_initial / 2.0:
        return ValidationResult(h_rows, h_cols, h_initial, False, None)
    return ValidationResult(h_rows, h_cols, h_initial, True, min(h_min, h_initial))


@dataclass
class RestartReport:
    """Everything a restart run produced, in the order it was produced."""

    config: RestartConfig
    word_size: int
    alphabet_size: int
    h_initial: float
    iid: bool
    stage: RestartStage = RestartStage.INIT
    raw_data_hash: str = ""
    sanity: Optional[SanityResult] = None
    accumulators: Dict[str, EntropyAccumulator] = field(default_factory=dict)
    validation: Optional[ValidationResult] = None

    def to_payload(self) -> Dict[str, Any]:
        """Return a dict ready for JSON serialization."""
        estimates: Dict[str, List[Dict[str, Any]]] = {}
        for orientation, acc in self.accumulators.items():
            estimates[orientation] = [
                {"name": o.name, "value": o.value, "applicable": o.applicable} for o in acc.outcomes
            ]
        return {
            "config": asdict(self.config),
            "word_size": self.word_size,
            "alphabet_size": self.alphabet_size,
            "h_initial": self.h_initial,
            "iid": self.iid,
            "stage": self.stage.value,
            "raw_data_hash": self.raw_data_hash,
            "sanity": None if self.sanity is None else {**asdict(self.sanity), "passed": self.sanity.passed},
            "estimates": estimates,
            "validation": None if self.validation is None else asdict(self.validation),
        }

    def compute_hash(self) -> str:
        """SHA-256 hex digest of the canonical payload."""
        return sha256_hex(stable_dumps(self.to_payload()))


def run_restart_test(
    samples: SampleSet,
    h_initial: float,
    iid: bool,
    config: Optional[RestartConfig] = None,
    on_sanity_passed: Optional[Callable[[RestartReport], None]] = None,
) -> RestartReport:
    """Run the full restart test over ``samples``.

    Raises ``SanityCheckFailed`` when the restart data is statistically
    implausible; no estimate exists in that case. A failed validation is
    returned as ``report.validation.accepted == False``.

    ``on_sanity_passed`` is called with the partial report once the sanity
    check has passed, before the estimator battery starts.
    """
    config = config or RestartConfig()
    check_run_parameters(samples.word_size, h_initial)
    if samples.alphabet_size < 2:
        raise SampleInputError("Symbol alphabet consists of 1 symbol. No entropy awarded...")
    samples = samples.truncated(config.sample_count)

    report = RestartReport(
        config=config,
        word_size=samples.word_size,
        alphabet_size=samples.alphabet_size,
        h_initial=h_initial,
        iid=iid,
        raw_data_hash=samples.raw_data_hash,
    )

    matrix = RestartMatrix.from_samples(samples.symbols, config.rows, config.cols)
    report.stage = RestartStage.MATRIX_BUILT

    sanity = sanity_check(
        mode_count(matrix.rows),
        mode_count(matrix.columns),
        config.rows,
        config.cols,
        h_initial,
        config.alpha_level,
    )
    report.sanity = sanity
    if not sanity.passed:
        report.stage = RestartStage.ABORTED
        raise SanityCheckFailed(sanity.x_max, sanity.alpha, sanity.tail_probability)
    report.stage = RestartStage.SANITY_CHECKED
    if on_sanity_passed is not None:
        on_sanity_passed(report)

    report.accumulators = run_orientations(
        matrix.row_data,
        matrix.column_data,
        samples.alphabet_size,
        samples.word_size,
        iid,
        workers=config.workers,
    )
    report.stage = RestartStage.BATTERY_RUN

    report.validation = validate(report.accumulators[ROWS].value, report.accumulators[COLS].value, h_initial)
    report.stage = RestartStage.CERTIFIED if report.validation.accepted else RestartStage.REJECTED
    return report
