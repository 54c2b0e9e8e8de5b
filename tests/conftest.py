"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import numpy as np
import pytest

from mpmsched.config import SchedulerConfig
from mpmsched.particles.store import ParticleStore

# Exactly representable base unit so that step arithmetic is exact
BASE_DT = 2.0**-10


@pytest.fixture
def sample_config_dict():
    """Minimal valid SchedulerConfig as a dictionary (5x5 blocks)."""
    return {
        "sim_res": [32, 32],
        "block_size": 8,
        "base_delta_t": BASE_DT,
        "cfl": 0.5,
        "strength_dt_mul": 1.0,
    }


@pytest.fixture
def small_config(sample_config_dict):
    """Small SchedulerConfig for fast unit tests."""
    return SchedulerConfig(**sample_config_dict)


@pytest.fixture
def tiny_config(sample_config_dict):
    """3x3 block grid."""
    return SchedulerConfig(**{**sample_config_dict, "sim_res": [16, 16]})


@pytest.fixture
def make_store():
    """Factory for a ParticleStore from lists of positions/velocities/allowed_dt."""

    def _make(positions, velocities=None, allowed_dt=None):
        positions = np.asarray(positions, dtype=np.float64).reshape(-1, 2)
        n = positions.shape[0]
        if velocities is None:
            velocities = np.zeros((n, 2))
        if allowed_dt is None:
            allowed_dt = np.ones(n)
        return ParticleStore(
            positions=positions,
            velocities=np.asarray(velocities, dtype=np.float64).reshape(-1, 2),
            allowed_dt=np.asarray(allowed_dt, dtype=np.float64),
        )

    return _make


@pytest.fixture
def random_store():
    """200 particles scattered over a 32x32 domain with mixed stiffness."""
    rng = np.random.default_rng(1234)
    n = 200
    return ParticleStore(
        positions=rng.uniform(0.0, 32.0, size=(n, 2)),
        velocities=rng.normal(0.0, 20.0, size=(n, 2)),
        allowed_dt=rng.uniform(1e-3, 1e-1, size=n),
    )
