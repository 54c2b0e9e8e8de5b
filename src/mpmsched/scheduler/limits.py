"""Per-block step ceilings from material strength and CFL constraints.

Both limits are expressed as integer multiples of ``base_delta_t`` rounded
down to a power of two, so that every block step divides the coarser ones
and sub-steps nest on a common temporal mesh.

Strength limit:
    ``pot(max(1, int(strength_dt_mul * dt_particle / base_delta_t)))``,
    minimised over the block's particles.

CFL limit:
    ``pot(max(1, int(cfl / v_rel / base_delta_t)))`` where ``v_rel`` is the
    width of the dilated velocity envelope.  Near a boundary the remaining
    distance ``max(d - 0.75 * block_size, 0.5)`` travelled at the
    envelope's absolute speed bounds the step as well.
"""

from __future__ import annotations

import logging
import math

import numpy as np

from mpmsched.config import SchedulerConfig
from mpmsched.constants import (
    BOUNDARY_MARGIN,
    MIN_BOUNDARY_DISTANCE,
    MIN_STEP,
    UNBOUNDED_STEP,
)
from mpmsched.core.bases import LevelSet2D
from mpmsched.particles.store import ParticleStore

logger = logging.getLogger(__name__)


def get_largest_pot(n: int) -> int:
    """Largest power of two ``<= n``.  ``n`` must be at least 1."""
    return 1 << (int(n).bit_length() - 1)


def largest_pot_array(values: np.ndarray) -> np.ndarray:
    """Vectorised :func:`get_largest_pot` for an int64 array of values ``>= 1``."""
    v = np.asarray(values, dtype=np.int64)
    exponent = np.floor(np.log2(v.astype(np.float64))).astype(np.int64)
    pot = np.left_shift(np.int64(1), exponent)
    # log2 of large int64 values can round across a power of two
    pot = np.where(pot > v, np.right_shift(pot, 1), pot)
    pot = np.where(pot * 2 <= v, pot * 2, pot)
    return pot


def _truncate_step(value: float) -> int:
    """Truncate a step count toward zero, capped at UNBOUNDED_STEP."""
    if math.isnan(value):
        return 0
    return int(min(value, float(UNBOUNDED_STEP)))


class StepLimitEngine:
    """Computes strength and CFL step ceilings for individual blocks.

    Parameters
    ----------
    config : SchedulerConfig
        Provides ``block_size``, ``base_delta_t``, ``cfl`` and
        ``strength_dt_mul``.
    levelset : LevelSet2D
        Boundary distance field sampled at block centres.
    """

    def __init__(self, config: SchedulerConfig, levelset: LevelSet2D) -> None:
        self.block_size = config.block_size
        self.base_delta_t = config.base_delta_t
        self.cfl = config.cfl
        self.strength_dt_mul = config.strength_dt_mul
        self.levelset = levelset

    def block_center(self, i: int, j: int) -> np.ndarray:
        """Continuous centre of block ``(i, j)`` [cells]."""
        return np.array([(i + 0.5) * self.block_size, (j + 0.5) * self.block_size])

    # -----------------------------------------------------------------
    # Strength
    # -----------------------------------------------------------------

    def strength_steps(
        self,
        particles: ParticleStore,
        handles: np.ndarray,
        block: tuple[int, int] | None = None,
    ) -> np.ndarray:
        """Power-of-two strength step of each particle in ``handles``."""
        allowed_dt = particles.get_allowed_dt(handles)
        raw = self.strength_dt_mul * allowed_dt / self.base_delta_t
        raw = np.nan_to_num(raw, nan=0.0, posinf=float(UNBOUNDED_STEP), neginf=0.0)
        increments = np.minimum(raw, float(UNBOUNDED_STEP)).astype(np.int64)

        bad = increments <= 0
        if np.any(bad):
            logger.warning(
                "Non-positive strength step increment in block %s "
                "(%d particle(s), min raw value %.3e); clamping to %d",
                block, int(np.count_nonzero(bad)), float(raw[bad].min()), MIN_STEP,
            )
            increments[bad] = MIN_STEP
        return largest_pot_array(increments)

    def strength_limit(
        self,
        particles: ParticleStore,
        handles: np.ndarray,
        block: tuple[int, int] | None = None,
    ) -> int:
        """Minimum strength step over ``handles``.

        Also stamps each particle's ``march_interval`` with its own step.
        Returns UNBOUNDED_STEP for an empty block.
        """
        handles = np.asarray(handles, dtype=np.int64)
        if handles.size == 0:
            return UNBOUNDED_STEP
        steps = self.strength_steps(particles, handles, block)
        particles.march_interval[handles] = steps
        return int(steps.min())

    # -----------------------------------------------------------------
    # CFL
    # -----------------------------------------------------------------

    def cfl_limit(
        self,
        relative_speed: float,
        absolute_speed: float,
        center: np.ndarray,
        t: float,
        block: tuple[int, int] | None = None,
    ) -> int:
        """Power-of-two CFL step for a block.

        Args:
            relative_speed: Width of the dilated velocity envelope [cells/s].
            absolute_speed: Largest velocity magnitude in the envelope [cells/s].
            center: Block centre [cells], where the level set is sampled.
            t: Simulation time [s].
            block: Block coordinate, used for logging only.

        Returns:
            Step ceiling [base units], a power of two >= 1.
        """
        limit = _truncate_step(self.cfl / relative_speed / self.base_delta_t)
        if limit <= 0:
            logger.warning(
                "Non-positive CFL step %d in block %s (v_rel=%.3e); clamping to %d",
                limit, block, relative_speed, MIN_STEP,
            )
            limit = MIN_STEP

        distance = self.levelset.sample(center, t)
        if distance < self.levelset.INF:
            distance_to_boundary = max(
                distance - self.block_size * BOUNDARY_MARGIN, MIN_BOUNDARY_DISTANCE
            )
            boundary_limit = _truncate_step(
                self.cfl * distance_to_boundary / absolute_speed / self.base_delta_t
            )
            if boundary_limit <= 0:
                logger.warning(
                    "Non-positive boundary step %d in block %s (d=%.3e, |v|=%.3e); "
                    "clamping to %d",
                    boundary_limit, block, distance_to_boundary, absolute_speed, MIN_STEP,
                )
                boundary_limit = MIN_STEP
            limit = min(limit, boundary_limit)

        return get_largest_pot(limit)
