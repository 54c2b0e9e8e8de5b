"""Dense 2D grid with bounds-checked indexing and neighbour iteration.

Every per-block attribute of the scheduler lives in a :class:`Grid2D`.
The backing store is a plain numpy array of shape ``(width, height)`` or
``(width, height, *item_shape)`` so that numba kernels can operate on
``grid.data`` directly.

``neighbours`` serves Python-level callers; the numba kernels in
:mod:`mpmsched.scheduler` walk the same 8-ring with explicit offset loops
because they cannot call Python generators.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import numpy as np

# 8-ring offsets in (di, dj) order, i-major
_RING_OFFSETS = tuple(
    (di, dj) for di in (-1, 0, 1) for dj in (-1, 0, 1) if (di, dj) != (0, 0)
)


class Grid2D:
    """Dense ``width x height`` array indexed by integer ``(i, j)``.

    Parameters
    ----------
    shape : tuple of 2 ints
        ``(width, height)`` of the grid.
    fill : scalar or array-like
        Initial value of every cell.
    dtype : numpy dtype
        Element type of the backing array.
    item_shape : tuple of ints
        Trailing shape of each cell (``()`` for scalars, ``(4,)`` for a
        velocity envelope).
    """

    def __init__(
        self,
        shape: tuple[int, int],
        fill: Any = 0,
        dtype: Any = np.float64,
        item_shape: tuple[int, ...] = (),
    ) -> None:
        self.width, self.height = int(shape[0]), int(shape[1])
        self.data = np.empty((self.width, self.height, *item_shape), dtype=dtype)
        self.data[...] = fill

    @classmethod
    def from_array(cls, array: np.ndarray) -> Grid2D:
        """Wrap a copy of ``array``; the first two axes become ``(i, j)``."""
        arr = np.asarray(array)
        if arr.ndim < 2:
            raise ValueError(f"Grid2D needs at least 2 dimensions, got shape {arr.shape}")
        grid = cls(arr.shape[:2], dtype=arr.dtype, item_shape=arr.shape[2:])
        grid.data[...] = arr
        return grid

    @property
    def shape(self) -> tuple[int, int]:
        return (self.width, self.height)

    def inside(self, i: int, j: int) -> bool:
        """True iff ``(i, j)`` addresses a cell of this grid."""
        return 0 <= i < self.width and 0 <= j < self.height

    def flat_index(self, i: int, j: int) -> int:
        """Row-major flattened index ``height * i + j``."""
        return self.height * i + j

    def _check(self, ind: tuple[int, int]) -> tuple[int, int]:
        i, j = ind
        if not self.inside(i, j):
            raise IndexError(f"index ({i}, {j}) outside grid of shape {self.shape}")
        return i, j

    def __getitem__(self, ind: tuple[int, int]) -> Any:
        i, j = self._check(ind)
        return self.data[i, j]

    def __setitem__(self, ind: tuple[int, int], value: Any) -> None:
        i, j = self._check(ind)
        self.data[i, j] = value

    def region(self) -> Iterator[tuple[int, int]]:
        """Iterate over every ``(i, j)`` in i-major order."""
        for i in range(self.width):
            for j in range(self.height):
                yield i, j

    def neighbours(
        self, i: int, j: int, include_self: bool = False
    ) -> Iterator[tuple[int, int]]:
        """Iterate over the in-bounds cells at Chebyshev distance 1.

        Out-of-bounds offsets are skipped; there is no wraparound.
        """
        if include_self:
            yield i, j
        for di, dj in _RING_OFFSETS:
            ni, nj = i + di, j + dj
            if self.inside(ni, nj):
                yield ni, nj

    def fill(self, value: Any) -> None:
        self.data[...] = value

    def copy(self) -> Grid2D:
        return Grid2D.from_array(self.data)
