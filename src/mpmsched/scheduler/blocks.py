"""Per-block scheduling attributes stored as a grid of structs.

Each attribute is a :class:`~mpmsched.core.grid.Grid2D` over the block
resolution ``res``.  Arrays are allocated once and reset per frame.
"""

from __future__ import annotations

import numpy as np

from mpmsched.constants import UNBOUNDED_STEP
from mpmsched.core.bases import BlockState
from mpmsched.core.grid import Grid2D

_FIELDS = ("states", "max_dt_int", "max_dt_int_cfl", "max_dt_int_strength", "updated")


class BlockGrid:
    """Activity state, step values and dirty flags of every block.

    Attributes:
        states: :class:`BlockState` per block.
        max_dt_int: Current allowed step [base units], always a power of two.
        max_dt_int_cfl: CFL ceiling [base units].
        max_dt_int_strength: Material-strength ceiling [base units].
        updated: Dirty flag; set when particle membership changes.
    """

    def __init__(self, res: tuple[int, int], initial_max_dt_int: int = 1) -> None:
        self.res = (int(res[0]), int(res[1]))
        self.initial_max_dt_int = int(initial_max_dt_int)
        self.states = Grid2D(self.res, int(BlockState.INACTIVE), dtype=np.int64)
        self.max_dt_int = Grid2D(self.res, self.initial_max_dt_int, dtype=np.int64)
        self.max_dt_int_cfl = Grid2D(self.res, UNBOUNDED_STEP, dtype=np.int64)
        self.max_dt_int_strength = Grid2D(self.res, UNBOUNDED_STEP, dtype=np.int64)
        self.updated = Grid2D(self.res, 0, dtype=np.int8)

    def reset(self) -> None:
        self.states.fill(int(BlockState.INACTIVE))
        self.max_dt_int.fill(self.initial_max_dt_int)
        self.max_dt_int_cfl.fill(UNBOUNDED_STEP)
        self.max_dt_int_strength.fill(UNBOUNDED_STEP)
        self.updated.fill(0)

    def step_ceiling(self) -> np.ndarray:
        """Combined stability ceiling ``min(cfl, strength)`` per block."""
        return np.minimum(self.max_dt_int_cfl.data, self.max_dt_int_strength.data)

    def active_mask(self) -> np.ndarray:
        """Blocks in BUFFER or UPDATING state."""
        return self.states.data != int(BlockState.INACTIVE)

    # --- Checkpoint/restart ---

    def checkpoint(self) -> dict[str, np.ndarray]:
        return {name: getattr(self, name).data.copy() for name in _FIELDS}

    def restart(self, data: dict[str, np.ndarray]) -> None:
        for name in _FIELDS:
            arr = np.asarray(data[name])
            if arr.shape != self.res:
                raise ValueError(
                    f"checkpoint field '{name}' has shape {arr.shape}, expected {self.res}"
                )
            getattr(self, name).data[...] = arr
