"""Boundary distance fields.

The scheduler only ever calls :meth:`LevelSet2D.sample`; these classes
cover the common sources of that distance:

- ``EmptyLevelSet2D``: no boundary anywhere.
- ``FunctionLevelSet2D``: wraps an analytic ``f(position, t)``.
- ``GridLevelSet2D``: bilinear sampling of a precomputed node-centred
  signed distance array (static in time).
"""

from __future__ import annotations

from collections.abc import Callable

import numpy as np

from mpmsched.core.bases import LevelSet2D


class EmptyLevelSet2D(LevelSet2D):
    """Level set with no boundary: every sample is ``INF``."""

    def sample(self, position: np.ndarray, t: float) -> float:
        return self.INF


class FunctionLevelSet2D(LevelSet2D):
    """Level set defined by a callable ``f(position, t) -> distance``."""

    def __init__(self, func: Callable[[np.ndarray, float], float]) -> None:
        self.func = func

    def sample(self, position: np.ndarray, t: float) -> float:
        return float(self.func(np.asarray(position, dtype=np.float64), t))


class GridLevelSet2D(LevelSet2D):
    """Signed distance sampled from node values with bilinear interpolation.

    Parameters
    ----------
    values : ndarray, shape (nx, ny)
        Distance at node ``(i, j)``, located at ``(i * spacing, j * spacing)``.
    spacing : float
        Node spacing [cells].

    Positions outside the sampled domain return ``INF``.
    """

    def __init__(self, values: np.ndarray, spacing: float = 1.0) -> None:
        self.values = np.asarray(values, dtype=np.float64)
        if self.values.ndim != 2 or min(self.values.shape) < 2:
            raise ValueError(
                f"values must be a 2D array with at least 2x2 nodes, got {self.values.shape}"
            )
        if spacing <= 0:
            raise ValueError(f"spacing must be positive, got {spacing}")
        self.spacing = float(spacing)

    def sample(self, position: np.ndarray, t: float) -> float:
        nx, ny = self.values.shape
        px = position[0] / self.spacing
        py = position[1] / self.spacing
        if not (0.0 <= px <= nx - 1 and 0.0 <= py <= ny - 1):
            return self.INF

        x0 = min(int(px), nx - 2)
        y0 = min(int(py), ny - 2)
        fx = px - x0
        fy = py - y0

        v = self.values
        v0 = v[x0, y0] * (1.0 - fx) + v[x0 + 1, y0] * fx
        v1 = v[x0, y0 + 1] * (1.0 - fx) + v[x0 + 1, y0 + 1] * fx
        return float(v0 * (1.0 - fy) + v1 * fy)
