from __future__ import annotations

import pytest

from ea_restart.config import RestartConfig, check_run_parameters, load_config
from ea_restart.errors import ConfigurationError


def test_defaults_follow_the_standard_layout():
    config = load_config()
    assert (config.rows, config.cols) == (1000, 1000)
    assert config.sample_count == 1_000_000
    assert config.alpha_level == 0.01
    assert config.workers == 1


def test_toml_overrides(tmp_path):
    path = tmp_path / "restart.toml"
    path.write_text("[restart]\nrows = 100\ncols = 100\nworkers = 2\n")
    config = load_config(path)
    assert (config.rows, config.cols, config.workers) == (100, 100, 2)
    assert config.alpha_level == 0.01


def test_unknown_keys_are_rejected(tmp_path):
    path = tmp_path / "restart.toml"
    path.write_text("[restart]\nrestarts = 10\n")
    with pytest.raises(ConfigurationError):
        load_config(path)


def test_invalid_toml_is_a_configuration_error(tmp_path):
    path = tmp_path / "restart.toml"
    path.write_text("[restart\nrows = 1")
    with pytest.raises(ConfigurationError):
        load_config(path)


def test_missing_config_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(tmp_path / "absent.toml")


@pytest.mark.parametrize(
    "kwargs",
    [{"rows": 0}, {"cols": -1}, {"workers": 0}, {"rows": 2.5}, {"alpha_level": 0.0}, {"alpha_level": 1.5}],
)
def test_invalid_values(kwargs):
    with pytest.raises(ConfigurationError):
        RestartConfig(**kwargs)


def test_run_parameters():
    check_run_parameters(1, 1.0)
    check_run_parameters(8, 0.0)
    for word_size, h_initial in [(0, 0.5), (9, 1.0), (4, -0.1), (4, 4.5)]:
        with pytest.raises(ConfigurationError):
            check_run_parameters(word_size, h_initial)
