"""Externally owned particle arena.

The scheduler never owns particles: it holds integer handles (row indices)
into a :class:`ParticleStore` and only ever writes the ``march_interval``,
``state`` and ``color`` columns.  Positions, velocities and the intrinsic
allowed step are maintained by the integrator and the material models.

Units: positions in fine-grid cells, velocities in cells per second,
``allowed_dt`` in seconds.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from mpmsched.constants import COLOR_INACTIVE
from mpmsched.core.bases import ParticleState


@dataclass
class ParticleStore:
    """Structure-of-arrays container for a fixed particle population.

    Attributes
    ----------
    positions : ndarray, shape (N, 2)
        Particle positions [cells].
    velocities : ndarray, shape (N, 2)
        Particle velocities [cells/s].
    allowed_dt : ndarray, shape (N,)
        Material-intrinsic stable step of each particle [s].
    march_interval : ndarray of int64, shape (N,)
        Sub-step interval assigned by the scheduler [base units].
    state : ndarray of int8, shape (N,)
        :class:`ParticleState` assigned by the scheduler.
    color : ndarray, shape (N, 3)
        Display hint assigned by the scheduler.
    """

    positions: np.ndarray
    velocities: np.ndarray
    allowed_dt: np.ndarray
    march_interval: np.ndarray | None = None
    state: np.ndarray | None = None
    color: np.ndarray | None = None

    def __post_init__(self) -> None:
        self.positions = np.asarray(self.positions, dtype=np.float64)
        self.velocities = np.asarray(self.velocities, dtype=np.float64)
        self.allowed_dt = np.asarray(self.allowed_dt, dtype=np.float64)
        n = self.positions.shape[0] if self.positions.ndim == 2 else -1

        if self.positions.shape != (n, 2):
            raise ValueError(f"positions must have shape (N, 2), got {self.positions.shape}")
        if self.velocities.shape != (n, 2):
            raise ValueError(
                f"velocities must have shape ({n}, 2), got {self.velocities.shape}"
            )
        if self.allowed_dt.shape != (n,):
            raise ValueError(f"allowed_dt must have shape ({n},), got {self.allowed_dt.shape}")

        if self.march_interval is None:
            self.march_interval = np.ones(n, dtype=np.int64)
        else:
            self.march_interval = np.asarray(self.march_interval, dtype=np.int64)
        if self.state is None:
            self.state = np.full(n, int(ParticleState.INACTIVE), dtype=np.int8)
        else:
            self.state = np.asarray(self.state, dtype=np.int8)
        if self.color is None:
            self.color = np.full((n, 3), COLOR_INACTIVE, dtype=np.float64)
        else:
            self.color = np.asarray(self.color, dtype=np.float64)

        if self.march_interval.shape != (n,) or self.state.shape != (n,):
            raise ValueError("march_interval and state must have shape (N,)")
        if self.color.shape != (n, 3):
            raise ValueError(f"color must have shape ({n}, 3), got {self.color.shape}")

    def n_particles(self) -> int:
        """Return the number of particles in the arena."""
        return int(self.positions.shape[0])

    def handles(self) -> np.ndarray:
        """Return every particle handle, in arena order."""
        return np.arange(self.n_particles(), dtype=np.int64)

    def get_allowed_dt(self, handles: np.ndarray) -> np.ndarray:
        """Intrinsic allowed step [s] of the particles in ``handles``.

        Subclasses backed by a live material model override this.
        """
        return self.allowed_dt[np.asarray(handles, dtype=np.int64)]
