"""Core data structures shared by the scheduler components."""

from mpmsched.core.bases import (
    BlockSnapshot,
    BlockState,
    LevelSet2D,
    ParticleState,
    StepStatistics,
)
from mpmsched.core.grid import Grid2D

__all__ = [
    "BlockSnapshot",
    "BlockState",
    "Grid2D",
    "LevelSet2D",
    "ParticleState",
    "StepStatistics",
]
