"""Restart-test configuration.

Defaults follow the standard restart layout: 1000 restarts of 1000 samples.
A TOML file with a ``[restart]`` table may override them::

    [restart]
    rows = 1000
    cols = 1000
    alpha_level = 0.01
    workers = 2
"""

from __future__ import annotations

import pathlib
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping

# TOML shim for 3.10
try:
    import tomllib
except ImportError:
    import tomli as tomllib

from ea_restart.errors import ConfigurationError

DEFAULT_ROWS = 1000
DEFAULT_COLS = 1000
MAX_WORD_SIZE = 8


@dataclass(frozen=True)
class RestartConfig:
    rows: int = DEFAULT_ROWS
    cols: int = DEFAULT_COLS
    alpha_level: float = 0.01
    workers: int = 1

    def __post_init__(self) -> None:
        for name in ("rows", "cols", "workers"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
        if not 0.0 < float(self.alpha_level) < 1.0:
            raise ConfigurationError(f"alpha_level must be in (0, 1), got {self.alpha_level!r}")

    @property
    def sample_count(self) -> int:
        return self.rows * self.cols

    def with_overrides(self, overrides: Mapping[str, Any]) -> "RestartConfig":
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ConfigurationError(f"unknown configuration keys: {', '.join(unknown)}")
        return replace(self, **dict(overrides))


def load_config(path: pathlib.Path | None = None) -> RestartConfig:
    """Return the default config, updated from the ``[restart]`` table of ``path``."""
    config = RestartConfig()
    if path is None:
        return config
    try:
        with open(path, "rb") as f:
            document = tomllib.load(f)
    except OSError as exc:
        raise ConfigurationError(f"cannot read config file {path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"invalid TOML in {path}: {exc}") from exc
    table = document.get("restart", {})
    if not isinstance(table, dict):
        raise ConfigurationError(f"[restart] in {path} must be a table")
    return config.with_overrides(table)


def check_run_parameters(word_size: int, h_initial: float) -> None:
    """Validate the per-run command-line parameters."""
    if not 1 <= word_size <= MAX_WORD_SIZE:
        raise ConfigurationError(f"bits per word must be between 1 and {MAX_WORD_SIZE}, got {word_size}")
    if not 0.0 <= h_initial <= word_size:
        raise ConfigurationError("H_I must be nonnegative and at most 'bits_per_word'")
