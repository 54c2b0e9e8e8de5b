"""Velocity envelopes and 1-ring dilation of block properties.

A particle near a block boundary can interact with the neighbouring block
within one step, so both the velocity envelope and the activity mask are
dilated by one block (Chebyshev distance 1) before use.

The dilation is separable: an x pass followed by a y pass over the output
of the x pass, which equals a full 3x3 structuring element at
O(blocks) cost.  Out-of-bounds neighbours are skipped (no wraparound).
"""

from __future__ import annotations

import numpy as np
from numba import njit

from mpmsched.constants import SPEED_EPSILON, VELOCITY_SENTINEL
from mpmsched.core.bases import BlockState
from mpmsched.core.grid import Grid2D

# (vx_min, vy_min, vx_max, vy_max) of a block with no particles
EMPTY_ENVELOPE = np.array(
    [VELOCITY_SENTINEL, VELOCITY_SENTINEL, -VELOCITY_SENTINEL, -VELOCITY_SENTINEL]
)

# =====================================================================
# Numba-accelerated kernels
# =====================================================================

@njit(cache=True)
def _dilate_bounds_axis_kernel(src: np.ndarray, dst: np.ndarray, axis: int) -> None:
    """Union each envelope into its axis neighbours (and itself) in ``dst``.

    Parameters
    ----------
    src : ndarray, shape (w, h, 4)
        Input envelopes.
    dst : ndarray, shape (w, h, 4)
        Output envelopes, pre-filled with the empty envelope.
    axis : int
        0 for the x pass, 1 for the y pass.
    """
    w = src.shape[0]
    h = src.shape[1]
    for i in range(w):
        for j in range(h):
            for d in range(-1, 2):
                ni = i
                nj = j
                if axis == 0:
                    ni = i + d
                else:
                    nj = j + d
                if ni < 0 or ni >= w or nj < 0 or nj >= h:
                    continue
                # min of mins, max of maxes
                if src[i, j, 0] < dst[ni, nj, 0]:
                    dst[ni, nj, 0] = src[i, j, 0]
                if src[i, j, 1] < dst[ni, nj, 1]:
                    dst[ni, nj, 1] = src[i, j, 1]
                if src[i, j, 2] > dst[ni, nj, 2]:
                    dst[ni, nj, 2] = src[i, j, 2]
                if src[i, j, 3] > dst[ni, nj, 3]:
                    dst[ni, nj, 3] = src[i, j, 3]


@njit(cache=True)
def _dilate_mask_axis_kernel(src: np.ndarray, dst: np.ndarray, axis: int) -> None:
    """Flag in ``dst`` every axis neighbour (and self) of a nonzero ``src`` cell."""
    w = src.shape[0]
    h = src.shape[1]
    for i in range(w):
        for j in range(h):
            if src[i, j] == 0:
                continue
            for d in range(-1, 2):
                ni = i
                nj = j
                if axis == 0:
                    ni = i + d
                else:
                    nj = j + d
                if ni < 0 or ni >= w or nj < 0 or nj >= h:
                    continue
                dst[ni, nj] = 1


# =====================================================================
# Dilation wrappers
# =====================================================================

def dilate_bounds(bounds: np.ndarray) -> np.ndarray:
    """1-ring interval-union dilation of velocity envelopes.

    Parameters
    ----------
    bounds : ndarray, shape (w, h, 4)
        ``(vx_min, vy_min, vx_max, vy_max)`` per block.

    Returns
    -------
    expanded : ndarray, shape (w, h, 4)
        Componentwise min of mins / max of maxes over each block's 3x3
        neighbourhood.
    """
    src = np.ascontiguousarray(bounds, dtype=np.float64)
    tmp = np.empty_like(src)
    tmp[...] = EMPTY_ENVELOPE
    _dilate_bounds_axis_kernel(src, tmp, 0)
    out = np.empty_like(src)
    out[...] = EMPTY_ENVELOPE
    _dilate_bounds_axis_kernel(tmp, out, 1)
    return out


def dilate_states(states: np.ndarray) -> np.ndarray:
    """1-ring dilation of the block activity mask.

    The dilated mask (1 within one block of any nonzero block) is summed
    with the input and clamped to UPDATING, so nonzero input blocks
    become UPDATING, their ring becomes BUFFER, and activity never shrinks.

    Parameters
    ----------
    states : ndarray of int, shape (w, h)

    Returns
    -------
    new_states : ndarray of int64, shape (w, h)
    """
    src = np.ascontiguousarray(states, dtype=np.int64)
    tmp = np.zeros_like(src)
    _dilate_mask_axis_kernel(src, tmp, 0)
    mask = np.zeros_like(src)
    _dilate_mask_axis_kernel(tmp, mask, 1)
    return np.minimum(mask + src, int(BlockState.UPDATING))


# =====================================================================
# VelocityBoundsTracker
# =====================================================================

class VelocityBoundsTracker:
    """Per-block velocity envelope and its 1-ring dilated version.

    Parameters
    ----------
    res : tuple of 2 ints
        Block grid resolution.
    """

    def __init__(self, res: tuple[int, int]) -> None:
        self.min_max_vel = Grid2D(res, EMPTY_ENVELOPE, item_shape=(4,))
        self.min_max_vel_expanded = Grid2D(res, EMPTY_ENVELOPE, item_shape=(4,))

    def reset(self) -> None:
        self.min_max_vel.fill(EMPTY_ENVELOPE)
        self.min_max_vel_expanded.fill(EMPTY_ENVELOPE)

    def reset_block(self, i: int, j: int) -> None:
        self.min_max_vel[i, j] = EMPTY_ENVELOPE

    def include(self, i: int, j: int, velocities: np.ndarray) -> None:
        """Grow block ``(i, j)``'s envelope to cover ``velocities`` (shape (K, 2))."""
        v = np.asarray(velocities, dtype=np.float64)
        if v.shape[0] == 0:
            return
        env = self.min_max_vel[i, j]
        env[0] = min(env[0], v[:, 0].min())
        env[1] = min(env[1], v[:, 1].min())
        env[2] = max(env[2], v[:, 0].max())
        env[3] = max(env[3], v[:, 1].max())

    def expand(self) -> None:
        """Recompute the dilated envelopes from the current ones."""
        self.min_max_vel_expanded.data[...] = dilate_bounds(self.min_max_vel.data)

    def relative_speed(self, i: int, j: int) -> float:
        """Envelope width ``max(dvx, dvy) + eps`` of the dilated envelope.

        Negative for blocks whose neighbourhood holds no particles.
        """
        e = self.min_max_vel_expanded[i, j]
        return float(max(e[2] - e[0], e[3] - e[1])) + SPEED_EPSILON

    def absolute_speed(self, i: int, j: int) -> float:
        """Largest velocity component magnitude in the dilated envelope."""
        e = self.min_max_vel_expanded[i, j]
        return max(SPEED_EPSILON, float(np.max(np.abs(e))))
