"""Tests for SchedulerConfig validation and JSON I/O."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from mpmsched.config import SchedulerConfig


class TestSchedulerConfig:
    """Field constraints and cross-field validation."""

    def test_defaults(self, small_config):
        """Unspecified fields take their documented defaults."""
        cfg = SchedulerConfig(sim_res=[64, 64], base_delta_t=1e-4)
        assert cfg.block_size == 8
        assert cfg.cfl == pytest.approx(0.5)
        assert cfg.strength_dt_mul == pytest.approx(1.0)
        assert cfg.dt_multiplier == 2
        assert cfg.initial_max_dt_int == 1

    def test_res_has_extra_block(self, small_config):
        """res = sim_res // block_size + 1 so the last node row is covered."""
        assert small_config.res == (5, 5)

    def test_res_non_square(self, sample_config_dict):
        cfg = SchedulerConfig(**{**sample_config_dict, "sim_res": [64, 20]})
        assert cfg.res == (9, 3)

    def test_block_larger_than_grid_rejected(self, sample_config_dict):
        with pytest.raises(ValidationError, match="block_size"):
            SchedulerConfig(**{**sample_config_dict, "block_size": 64})

    def test_non_positive_base_dt_rejected(self, sample_config_dict):
        with pytest.raises(ValidationError):
            SchedulerConfig(**{**sample_config_dict, "base_delta_t": 0.0})

    def test_cfl_range(self, sample_config_dict):
        with pytest.raises(ValidationError):
            SchedulerConfig(**{**sample_config_dict, "cfl": 0.0})
        with pytest.raises(ValidationError):
            SchedulerConfig(**{**sample_config_dict, "cfl": 1.5})

    def test_multiplier_must_be_power_of_two(self, sample_config_dict):
        with pytest.raises(ValidationError, match="dt_multiplier"):
            SchedulerConfig(**{**sample_config_dict, "dt_multiplier": 3})

    def test_initial_step_must_be_power_of_two(self, sample_config_dict):
        with pytest.raises(ValidationError, match="initial_max_dt_int"):
            SchedulerConfig(**{**sample_config_dict, "initial_max_dt_int": 6})

    def test_sim_res_length(self, sample_config_dict):
        with pytest.raises(ValidationError):
            SchedulerConfig(**{**sample_config_dict, "sim_res": [32, 32, 32]})


class TestConfigIO:
    """JSON round trip."""

    def test_round_trip(self, small_config, tmp_path):
        """to_json then from_file reproduces the configuration."""
        path = tmp_path / "scheduler.json"
        text = small_config.to_json(path)
        assert path.read_text() == text
        loaded = SchedulerConfig.from_file(path)
        assert loaded == small_config
