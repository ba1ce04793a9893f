"""Exception hierarchy for the restart test.

Library code raises these; only the command line turns them into messages and
exit codes. A failed validation inequality is a result, not an exception.
"""

from __future__ import annotations


class RestartError(Exception):
    """Base class for every error raised by the restart test."""


class ConfigurationError(RestartError, ValueError):
    """Bad arguments or configuration values, detected before any data is read."""


class SampleInputError(RestartError, ValueError):
    """Unreadable input, degenerate alphabet, or too few samples."""


class SanityCheckFailed(RestartError):
    """The row/column mode counts are implausible for the claimed H_I.

    Fatal: no entropy estimate may be reported after this.
    """

    def __init__(self, x_max: int, alpha: float, tail_probability: float):
        self.x_max = x_max
        self.alpha = alpha
        self.tail_probability = tail_probability
        super().__init__(
            f"restart sanity check failed: P(X >= {x_max}) = {tail_probability:g} < alpha = {alpha:g}"
        )
