"""Adaptive multi-rate time-step scheduler for 2D MPM particle simulations.

Exports the most commonly used symbols so that callers can write
``from mpmsched import MPMScheduler, SchedulerConfig``.
"""

from mpmsched.config import SchedulerConfig
from mpmsched.core.bases import BlockState, LevelSet2D, ParticleState
from mpmsched.particles import ParticleIndex, ParticleStore
from mpmsched.scheduler import MPMScheduler

__version__ = "0.1.0"

__all__ = [
    "BlockState",
    "LevelSet2D",
    "MPMScheduler",
    "ParticleIndex",
    "ParticleState",
    "ParticleStore",
    "SchedulerConfig",
]
