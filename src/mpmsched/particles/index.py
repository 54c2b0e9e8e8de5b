"""Block-to-particle index (particle groups).

Maps the flattened block index ``res[1] * i + j`` to the ordered list of
particle handles currently residing in that block.
"""

from __future__ import annotations

import math

import numpy as np


class ParticleIndex:
    """Per-block buckets of particle handles.

    Parameters
    ----------
    res : tuple of 2 ints
        Block grid resolution.
    block_size : int
        Fine cells per block along each axis.
    """

    def __init__(self, res: tuple[int, int], block_size: int) -> None:
        self.res = (int(res[0]), int(res[1]))
        self.block_size = int(block_size)
        self._groups: list[list[int]] = [[] for _ in range(self.res[0] * self.res[1])]

    def flat_index(self, i: int, j: int) -> int:
        return self.res[1] * i + j

    def block_of(self, position: np.ndarray) -> tuple[int, int] | None:
        """Block containing ``position``, or None when outside the grid.

        Non-finite positions are treated as outside the grid.
        """
        if not (np.isfinite(position[0]) and np.isfinite(position[1])):
            return None
        i = math.floor(position[0] / self.block_size)
        j = math.floor(position[1] / self.block_size)
        if 0 <= i < self.res[0] and 0 <= j < self.res[1]:
            return i, j
        return None

    def insert(self, handle: int, position: np.ndarray) -> tuple[int, int] | None:
        """Bucket a particle by position.

        Out-of-grid particles are not indexed.

        Returns:
            The block the particle was inserted into, or None.
        """
        block = self.block_of(position)
        if block is not None:
            self._groups[self.flat_index(*block)].append(int(handle))
        return block

    def clear_block(self, i: int, j: int) -> None:
        self._groups[self.flat_index(i, j)].clear()

    def clear(self) -> None:
        for group in self._groups:
            group.clear()

    def particles_in(self, i: int, j: int) -> list[int]:
        """Handles bucketed in block ``(i, j)``, in insertion order."""
        return self._groups[self.flat_index(i, j)]

    def has_particle(self, i: int, j: int) -> bool:
        return len(self._groups[self.flat_index(i, j)]) > 0

    def counts(self) -> np.ndarray:
        """Particle count per block, shape ``res``."""
        return np.array([len(g) for g in self._groups], dtype=np.int64).reshape(self.res)

    def occupancy(self) -> np.ndarray:
        """Boolean mask of blocks holding at least one particle."""
        return self.counts() > 0

    def __len__(self) -> int:
        return sum(len(g) for g in self._groups)
