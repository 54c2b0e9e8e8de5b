"""Adaptive multi-rate block scheduler.

Partitions the fine simulation grid into ``block_size``-wide blocks and
assigns each block a power-of-two sub-step (in units of ``base_delta_t``)
that respects the material-strength and CFL limits of its particles,
grows only on aligned doubling points, and differs from its active
neighbours by at most 2x.

Call order per simulation tick (not enforced):

    1. ``update_particle_groups()``  re-bucket active particles
    2. ``update_dt_limits(t)``       strength + CFL ceilings for dirty blocks
    3. ``update_max_dt_int(t_int)``  grow/clamp steps, get next global step
    4. ``enforce_smoothness(...)``   optional, one relaxation pass per call
    5. ``update()``                  active sets and particle classification

Block states are written by the integrator (or by ``mark_due_blocks``);
particle positions and velocities must not change between steps 1 and 2.
"""

from __future__ import annotations

import logging

import numpy as np
from numba import njit

from mpmsched.config import SchedulerConfig
from mpmsched.constants import (
    COLOR_BUFFER,
    COLOR_INACTIVE,
    COLOR_UPDATING,
    DEFAULT_GRADES,
    UNBOUNDED_STEP,
)
from mpmsched.core.bases import (
    BlockSnapshot,
    BlockState,
    LevelSet2D,
    ParticleState,
    StepStatistics,
)
from mpmsched.core.grid import Grid2D
from mpmsched.diagnostics.dump import debug_blocks, format_limits, format_max_dt_int
from mpmsched.geometry.levelset import EmptyLevelSet2D
from mpmsched.particles.index import ParticleIndex
from mpmsched.particles.store import ParticleStore
from mpmsched.scheduler.blocks import BlockGrid
from mpmsched.scheduler.expansion import VelocityBoundsTracker, dilate_states
from mpmsched.scheduler.limits import StepLimitEngine

logger = logging.getLogger(__name__)


@njit(cache=True)
def _smoothness_kernel(steps: np.ndarray, active: np.ndarray, out: np.ndarray) -> int:
    """Clamp each active block to twice the smallest active 8-neighbour step.

    Reads ``steps`` only and writes ``out`` (a copy of ``steps``), so the
    pass is a single Jacobi-style relaxation.  Returns the number of
    blocks whose step was reduced.
    """
    w = steps.shape[0]
    h = steps.shape[1]
    changed = 0
    for i in range(w):
        for j in range(h):
            if not active[i, j]:
                continue
            limit = steps[i, j]
            for di in range(-1, 2):
                for dj in range(-1, 2):
                    ni = i + di
                    nj = j + dj
                    if ni < 0 or ni >= w or nj < 0 or nj >= h:
                        continue
                    if not active[ni, nj]:
                        continue
                    bound = steps[ni, nj] * 2
                    if bound < limit:
                        limit = bound
            if limit < steps[i, j]:
                changed += 1
            out[i, j] = limit
    return changed


class MPMScheduler:
    """Per-block adaptive time-step scheduler.

    Parameters
    ----------
    config : SchedulerConfig
        Grid resolution, block size and step parameters.
    particles : ParticleStore
        Externally owned particle arena; only ``march_interval``, ``state``
        and ``color`` are written.
    levelset : LevelSet2D or None
        Boundary distance field for the CFL limiter.  None means no boundary.
    """

    def __init__(
        self,
        config: SchedulerConfig,
        particles: ParticleStore,
        levelset: LevelSet2D | None = None,
    ) -> None:
        self.config = config
        self.particles = particles
        self.levelset = levelset if levelset is not None else EmptyLevelSet2D()

        self.sim_res = (int(config.sim_res[0]), int(config.sim_res[1]))
        self.block_size = config.block_size
        self.res = config.res

        self.blocks = BlockGrid(self.res, config.initial_max_dt_int)
        self.velocity_bounds = VelocityBoundsTracker(self.res)
        self.particle_groups = ParticleIndex(self.res, self.block_size)
        self.limits = StepLimitEngine(config, self.levelset)

        self.active_particles = np.empty(0, dtype=np.int64)
        self.active_grid_points = np.empty((0, 2), dtype=np.int64)

        logger.info(
            "Scheduler created: sim_res=%s block_size=%d res=%s particles=%d",
            self.sim_res, self.block_size, self.res, particles.n_particles(),
        )

    # -----------------------------------------------------------------
    # Block attribute views
    # -----------------------------------------------------------------

    @property
    def states(self) -> Grid2D:
        return self.blocks.states

    @property
    def max_dt_int(self) -> Grid2D:
        return self.blocks.max_dt_int

    @property
    def max_dt_int_cfl(self) -> Grid2D:
        return self.blocks.max_dt_int_cfl

    @property
    def max_dt_int_strength(self) -> Grid2D:
        return self.blocks.max_dt_int_strength

    @property
    def updated(self) -> Grid2D:
        return self.blocks.updated

    @property
    def min_max_vel(self) -> Grid2D:
        return self.velocity_bounds.min_max_vel

    @property
    def min_max_vel_expanded(self) -> Grid2D:
        return self.velocity_bounds.min_max_vel_expanded

    def has_particle(self, ind: tuple[int, int]) -> bool:
        """True iff block ``ind`` holds at least one indexed particle."""
        return self.particle_groups.has_particle(*ind)

    def get_active_particles(self) -> np.ndarray:
        """Handles of particles in non-inactive blocks, as of the last ``update()``."""
        return self.active_particles

    def block(self, i: int, j: int) -> BlockSnapshot:
        """Copy of block ``(i, j)``'s attributes."""
        return BlockSnapshot(
            index=(i, j),
            state=BlockState(int(self.states[i, j])),
            max_dt_int=int(self.max_dt_int[i, j]),
            max_dt_int_cfl=int(self.max_dt_int_cfl[i, j]),
            max_dt_int_strength=int(self.max_dt_int_strength[i, j]),
            min_max_vel=tuple(float(v) for v in self.min_max_vel[i, j]),
            min_max_vel_expanded=tuple(float(v) for v in self.min_max_vel_expanded[i, j]),
            updated=bool(self.updated[i, j]),
            n_particles=len(self.particle_groups.particles_in(i, j)),
        )

    # -----------------------------------------------------------------
    # Frame lifecycle
    # -----------------------------------------------------------------

    def reset(self) -> None:
        """Reset every block attribute and empty the particle groups."""
        self.blocks.reset()
        self.velocity_bounds.reset()
        self.particle_groups.clear()
        self.active_particles = np.empty(0, dtype=np.int64)
        self.active_grid_points = np.empty((0, 2), dtype=np.int64)
        logger.info("Scheduler reset: res=%s", self.res)

    def rebuild_particle_groups(self) -> None:
        """Re-index every particle in the store from scratch.

        Blocks that held particles before, and blocks receiving particles,
        are marked dirty.
        """
        self.updated.data[self.particle_groups.occupancy()] = 1
        self.particle_groups.clear()
        for handle in self.particles.handles():
            self.insert_particle(handle)
        logger.debug(
            "Rebuilt particle groups: %d of %d particles indexed",
            len(self.particle_groups), self.particles.n_particles(),
        )

    # -----------------------------------------------------------------
    # Activity
    # -----------------------------------------------------------------

    def expand(self, expand_vel: bool, expand_state: bool) -> None:
        """1-ring dilation of the velocity envelopes and/or block states.

        Args:
            expand_vel: Recompute ``min_max_vel_expanded`` from ``min_max_vel``.
            expand_state: Dilate ``states``: nonzero blocks become UPDATING,
                their inactive ring becomes BUFFER.
        """
        if expand_vel:
            self.velocity_bounds.expand()
        if expand_state:
            self.states.data[...] = dilate_states(self.states.data)

    def mark_due_blocks(self, t_int: int) -> int:
        """Classify blocks for the sub-step starting at ``t_int``.

        Blocks holding particles whose step divides ``t_int`` become
        UPDATING; their 1-ring becomes BUFFER; all others INACTIVE.

        Returns:
            Number of UPDATING blocks.
        """
        occupied = self.particle_groups.occupancy()
        due = occupied & (t_int % self.max_dt_int.data == 0)
        self.states.data[...] = due.astype(np.int64)
        self.expand(False, True)
        n_updating = int(np.count_nonzero(self.states.data == BlockState.UPDATING))
        logger.debug("t_int=%d: %d updating blocks", t_int, n_updating)
        return n_updating

    def update(self) -> None:
        """Recompute active particles and grid nodes from block states."""
        active = self.blocks.active_mask()
        bs = self.block_size

        # grid_res = sim_res + 1 nodes per axis
        ii, jj = np.meshgrid(
            np.arange(self.sim_res[0] + 1), np.arange(self.sim_res[1] + 1), indexing="ij"
        )
        node_active = active[ii // bs, jj // bs]
        self.active_grid_points = np.stack([ii[node_active], jj[node_active]], axis=1)

        groups = [
            self.particle_groups.particles_in(i, j)
            for i, j in self.states.region()
            if active[i, j]
        ]
        if groups:
            self.active_particles = np.fromiter(
                (h for group in groups for h in group), dtype=np.int64
            )
        else:
            self.active_particles = np.empty(0, dtype=np.int64)

        logger.debug(
            "Active set: %d particles, %d grid points",
            self.active_particles.size, self.active_grid_points.shape[0],
        )
        self.update_particle_states()

    # -----------------------------------------------------------------
    # Particle groups
    # -----------------------------------------------------------------

    def insert_particle(self, handle: int) -> bool:
        """Bucket one particle by position and mark its block dirty.

        Returns:
            False if the particle lies outside the grid (not indexed).
        """
        block = self.particle_groups.insert(handle, self.particles.positions[handle])
        if block is None:
            return False
        self.updated[block] = 1
        return True

    def update_particle_groups(self) -> None:
        """Empty every active block and re-insert the active particles."""
        active = self.blocks.active_mask()
        for i, j in self.states.region():
            if not active[i, j]:
                continue
            self.particle_groups.clear_block(i, j)
            self.updated[i, j] = 1
        for handle in self.active_particles:
            self.insert_particle(handle)

    # -----------------------------------------------------------------
    # Step limits
    # -----------------------------------------------------------------

    def update_dt_limits(self, t: float) -> None:
        """Recompute strength limits of dirty blocks and CFL limits of all
        blocks with particles in their neighbourhood.

        Args:
            t: Simulation time [s], passed to the level set.
        """
        velocities = self.particles.velocities
        n_dirty = 0
        for i, j in self.states.region():
            if not self.updated[i, j]:
                continue
            n_dirty += 1
            self.updated[i, j] = 0
            self.max_dt_int_strength[i, j] = UNBOUNDED_STEP
            self.max_dt_int_cfl[i, j] = UNBOUNDED_STEP
            self.velocity_bounds.reset_block(i, j)

            handles = np.asarray(self.particle_groups.particles_in(i, j), dtype=np.int64)
            if handles.size == 0:
                continue
            self.max_dt_int_strength[i, j] = self.limits.strength_limit(
                self.particles, handles, (i, j)
            )
            self.velocity_bounds.include(i, j, velocities[handles])

        self.expand(True, False)

        for i, j in self.states.region():
            relative_speed = self.velocity_bounds.relative_speed(i, j)
            if relative_speed < 0:
                # No particles in the neighbourhood; keep the prior limit
                continue
            self.max_dt_int_cfl[i, j] = self.limits.cfl_limit(
                relative_speed,
                self.velocity_bounds.absolute_speed(i, j),
                self.limits.block_center(i, j),
                t,
                (i, j),
            )
        logger.debug("update_dt_limits(t=%.4e): %d dirty blocks", t, n_dirty)

    def update_max_dt_int(self, t_int: int) -> int:
        """Grow or clamp every block step and return the next global step.

        A block may grow by ``dt_multiplier`` only when ``t_int`` is a
        multiple of its current step; the result never exceeds
        ``min(cfl, strength)``.

        Args:
            t_int: Current global time [base units].

        Returns:
            Smallest new step over blocks holding particles, or
            UNBOUNDED_STEP if there are none.
        """
        multiplier = self.config.dt_multiplier
        current = self.max_dt_int.data
        ceiling = self.blocks.step_ceiling()

        aligned = (t_int % current) == 0
        grown = np.where(
            current <= UNBOUNDED_STEP // multiplier, current * multiplier, UNBOUNDED_STEP
        )
        new = np.minimum(np.where(aligned, grown, current), ceiling)
        self.max_dt_int.data[...] = new

        occupied = self.particle_groups.occupancy()
        ret = int(new[occupied].min()) if np.any(occupied) else UNBOUNDED_STEP
        logger.debug("update_max_dt_int(t_int=%d): global step %d", t_int, ret)
        return ret

    def enforce_smoothness(self, t_int_increment: int) -> int:
        """One relaxation pass of the 2x neighbour rule over active blocks.

        Each active block's step is clamped to twice the smallest step among
        its active 8-neighbours.  A single pass does not always reach a
        fixed point; call repeatedly until the return value is zero when
        full convergence is needed.

        Args:
            t_int_increment: Global step about to be taken [base units].
                Only logged; the relaxation does not depend on it.

        Returns:
            Number of blocks whose step was reduced.
        """
        steps = self.max_dt_int.data
        out = steps.copy()
        changed = _smoothness_kernel(steps, self.blocks.active_mask(), out)
        self.max_dt_int.data[...] = out
        logger.debug(
            "enforce_smoothness(increment=%d): %d blocks clamped", t_int_increment, changed
        )
        return int(changed)

    # -----------------------------------------------------------------
    # Particle classification
    # -----------------------------------------------------------------

    def update_particle_states(self) -> None:
        """Stamp ``march_interval``, ``state`` and ``color`` on active particles."""
        handles = self.active_particles
        if handles.size == 0:
            return
        positions = self.particles.positions[handles]
        finite = np.all(np.isfinite(positions), axis=1)
        handles = handles[finite]
        cells = np.floor(positions[finite] / self.block_size).astype(np.int64)
        inside = (
            (cells[:, 0] >= 0) & (cells[:, 0] < self.res[0])
            & (cells[:, 1] >= 0) & (cells[:, 1] < self.res[1])
        )
        handles = handles[inside]
        cells = cells[inside]

        block_states = self.states.data[cells[:, 0], cells[:, 1]]
        self.particles.march_interval[handles] = self.max_dt_int.data[cells[:, 0], cells[:, 1]]

        updating = block_states == BlockState.UPDATING
        buffer = block_states == BlockState.BUFFER
        self.particles.state[handles] = np.select(
            [updating, buffer],
            [int(ParticleState.UPDATING), int(ParticleState.BUFFER)],
            default=int(ParticleState.INACTIVE),
        )
        brightness = np.select(
            [updating, buffer], [COLOR_UPDATING, COLOR_BUFFER], default=COLOR_INACTIVE
        )
        self.particles.color[handles] = brightness[:, np.newaxis]

    def reset_particle_states(self) -> None:
        """Mark every active particle INACTIVE with the dim display color."""
        handles = self.active_particles
        self.particles.state[handles] = int(ParticleState.INACTIVE)
        self.particles.color[handles] = COLOR_INACTIVE

    # -----------------------------------------------------------------
    # Diagnostics
    # -----------------------------------------------------------------

    def step_statistics(self) -> StepStatistics:
        """Min/max block step over blocks holding particles."""
        occupied = self.particle_groups.occupancy()
        if not np.any(occupied):
            return StepStatistics(
                min_dt=UNBOUNDED_STEP, max_dt=0, dynamic_range=0, n_blocks=0
            )
        steps = self.max_dt_int.data[occupied]
        min_dt = int(steps.min())
        max_dt = int(steps.max())
        return StepStatistics(
            min_dt=min_dt,
            max_dt=max_dt,
            dynamic_range=max_dt // min_dt,
            n_blocks=int(np.count_nonzero(occupied)),
        )

    def visualize(self, debug_input: tuple[float, float] = (0.0, 0.0)) -> np.ndarray:
        """Debug color buffer grading strength and CFL limits per block.

        Args:
            debug_input: ``(minimum, grades)``.  ``minimum == 0`` uses the
                smallest step over occupied blocks; ``grades == 0`` uses 10.

        Returns:
            Array of shape ``(res[0], res[1], 4)``.
        """
        minimum = int(debug_input[0])
        if minimum == 0:
            minimum = self.step_statistics().min_dt
            if minimum >= UNBOUNDED_STEP:
                minimum = 1
        minimum = max(minimum, 1)
        grades = int(debug_input[1]) or DEFAULT_GRADES
        return debug_blocks(
            self.max_dt_int_strength.data, self.max_dt_int_cfl.data, minimum, grades
        )

    def print_limits(self) -> str:
        """Print (and return) the velocity, strength and CFL dump."""
        text = format_limits(
            self.min_max_vel.data,
            self.max_dt_int.data,
            self.max_dt_int_strength.data,
            self.max_dt_int_cfl.data,
            self.states.data,
            int(self.active_particles.size),
        )
        print(text)
        return text

    def print_max_dt_int(self) -> str:
        """Print (and return) the per-block step dump."""
        text = format_max_dt_int(
            self.max_dt_int.data,
            self.states.data,
            self.particle_groups.occupancy(),
            self.step_statistics(),
        )
        print(text)
        return text

    # -----------------------------------------------------------------
    # Checkpoint/restart
    # -----------------------------------------------------------------

    def checkpoint(self) -> dict[str, np.ndarray]:
        """Copy of every block attribute array."""
        data = self.blocks.checkpoint()
        data["min_max_vel"] = self.min_max_vel.data.copy()
        data["min_max_vel_expanded"] = self.min_max_vel_expanded.data.copy()
        return data

    def restart(self, data: dict[str, np.ndarray]) -> None:
        """Restore block attributes saved by :meth:`checkpoint`.

        Particle groups are not part of the checkpoint; call
        :meth:`rebuild_particle_groups` afterwards.
        """
        self.blocks.restart(data)
        for name in ("min_max_vel", "min_max_vel_expanded"):
            arr = np.asarray(data[name])
            if arr.shape != (*self.res, 4):
                raise ValueError(
                    f"checkpoint field '{name}' has shape {arr.shape}, "
                    f"expected {(*self.res, 4)}"
                )
            getattr(self, name).data[...] = arr
