"""Core enums, interfaces and shared result dataclasses.

Defines the contracts between the scheduler and its collaborators:
- ``BlockState`` / ``ParticleState``: activity classification
- ``LevelSet2D``: ABC for the external boundary distance field
- ``BlockSnapshot``: read-only copy of one block's attributes
- ``StepStatistics``: min/max step summary over occupied blocks
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np


class BlockState(enum.IntEnum):
    """Per-block activity. Transitions are driven by the integrator."""

    INACTIVE = 0
    BUFFER = 1
    UPDATING = 2


class ParticleState(enum.IntEnum):
    """Per-particle classification stamped by the scheduler."""

    INACTIVE = 0
    BUFFER = 1
    UPDATING = 2


class LevelSet2D(ABC):
    """Abstract boundary distance field, consumed read-only.

    ``sample`` returns the distance from ``position`` to the nearest solid
    boundary at time ``t`` (in fine-grid cells), or :attr:`INF` when no
    boundary is nearby.
    """

    INF = 1e7

    @abstractmethod
    def sample(self, position: np.ndarray, t: float) -> float:
        """Distance to the boundary at ``position`` and time ``t``.

        Args:
            position: Continuous position ``(x, y)`` in fine-grid units.
            t: Simulation time [s].

        Returns:
            Boundary distance, or ``LevelSet2D.INF`` if unconstrained.
        """


@dataclass
class BlockSnapshot:
    """Copy of a single block's scheduling attributes.

    Attributes:
        index: Block coordinate ``(i, j)``.
        state: Activity classification.
        max_dt_int: Current allowed step [base units].
        max_dt_int_cfl: CFL step ceiling [base units].
        max_dt_int_strength: Material-strength step ceiling [base units].
        min_max_vel: ``(vx_min, vy_min, vx_max, vy_max)`` of the block's particles.
        min_max_vel_expanded: Same envelope after 1-ring dilation.
        updated: Dirty flag; limits are recomputed on the next pass.
        n_particles: Number of indexed particles in the block.
    """

    index: tuple[int, int]
    state: BlockState
    max_dt_int: int
    max_dt_int_cfl: int
    max_dt_int_strength: int
    min_max_vel: tuple[float, float, float, float]
    min_max_vel_expanded: tuple[float, float, float, float]
    updated: bool
    n_particles: int


@dataclass
class StepStatistics:
    """Step range over blocks that hold particles.

    Attributes:
        min_dt: Smallest block step [base units].
        max_dt: Largest block step [base units].
        dynamic_range: ``max_dt // min_dt``.
        n_blocks: Number of occupied blocks considered.
    """

    min_dt: int
    max_dt: int
    dynamic_range: int
    n_blocks: int = 0
