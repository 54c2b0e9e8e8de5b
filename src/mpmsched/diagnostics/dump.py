"""Text dumps and debug color buffers of per-block steps.

None of this feeds back into the stability algorithm.  Text grids are
printed one row per block row, top (largest ``j``) to bottom, with
fixed-width fields and a one-character suffix:

    ``*``  updating block
    ``+``  buffer block
    ``#``  block without particles (replaces the whole field)
    ``.``  unconstrained strength limit
"""

from __future__ import annotations

import numpy as np

from mpmsched.constants import DEFAULT_GRADES, UNBOUNDED_STEP
from mpmsched.core.bases import BlockState, StepStatistics

_FIELD_WIDTH = 6


def _marker(state: int) -> str:
    if state == BlockState.UPDATING:
        return "*"
    if state == BlockState.BUFFER:
        return "+"
    return " "


def _step_grid(
    steps: np.ndarray,
    states: np.ndarray,
    blank: np.ndarray,
    blank_char: str,
) -> list[str]:
    width, height = steps.shape
    lines = []
    for j in range(height - 1, -1, -1):
        row = []
        for i in range(width):
            if blank[i, j]:
                row.append(blank_char.rjust(_FIELD_WIDTH + 1))
            else:
                row.append(f"{int(steps[i, j]):{_FIELD_WIDTH}d}{_marker(states[i, j])}")
        lines.append("".join(row))
    return lines


def format_limits(
    min_max_vel: np.ndarray,
    max_dt_int: np.ndarray,
    max_dt_int_strength: np.ndarray,
    max_dt_int_cfl: np.ndarray,
    states: np.ndarray,
    n_active_particles: int,
) -> str:
    """Dump of ``vx_min``, strength limits and CFL limits per block."""
    width, height = max_dt_int.shape
    lines = []
    for j in range(height - 1, -1, -1):
        lines.append("".join(f" {min_max_vel[i, j, 0]:f}" for i in range(width)))
    lines.append("")
    lines.append(f"active_particles {n_active_particles}")

    unbounded = max_dt_int >= UNBOUNDED_STEP
    lines.append("strength")
    lines.extend(_step_grid(max_dt_int_strength, states, unbounded, "."))
    lines.append("")
    lines.append("cfl")
    lines.extend(_step_grid(max_dt_int_cfl, states, unbounded, "#"))
    lines.append("")
    return "\n".join(lines)


def format_max_dt_int(
    max_dt_int: np.ndarray,
    states: np.ndarray,
    occupied: np.ndarray,
    stats: StepStatistics,
) -> str:
    """Dump of the current step per block with a min/max header."""
    lines = [
        f"min_dt {stats.min_dt} max_dt {stats.max_dt} "
        f"dynamic_range {stats.dynamic_range}"
    ]
    lines.extend(_step_grid(max_dt_int, states, ~occupied, "#"))
    lines.append("")
    return "\n".join(lines)


def step_grades(steps: np.ndarray, minimum: int, grades: int) -> np.ndarray:
    """Log-scale brightness ``1 - log2(step / minimum) / grades`` in [0, 1]."""
    ratio = np.asarray(steps, dtype=np.float64) / float(max(minimum, 1))
    r = 1.0 - np.log2(np.maximum(ratio, 1e-300)) / grades
    return np.clip(r, 0.0, 1.0)


def debug_blocks(
    max_dt_int_strength: np.ndarray,
    max_dt_int_cfl: np.ndarray,
    minimum: int,
    grades: int = DEFAULT_GRADES,
) -> np.ndarray:
    """Debug color buffer ``(strength_grade, cfl_grade, 0, 1)`` per block.

    Returns
    -------
    colors : ndarray, shape (w, h, 4)
    """
    w, h = max_dt_int_strength.shape
    out = np.zeros((w, h, 4))
    out[..., 0] = step_grades(max_dt_int_strength, minimum, grades)
    out[..., 1] = step_grades(max_dt_int_cfl, minimum, grades)
    out[..., 3] = 1.0
    return out
