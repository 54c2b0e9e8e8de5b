"""Geometry module: boundary distance fields consumed by the CFL limiter.

Provides concrete :class:`~mpmsched.core.bases.LevelSet2D` implementations.
"""

from mpmsched.geometry.levelset import EmptyLevelSet2D, FunctionLevelSet2D, GridLevelSet2D

__all__ = ["EmptyLevelSet2D", "FunctionLevelSet2D", "GridLevelSet2D"]
