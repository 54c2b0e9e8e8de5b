"""Read-only diagnostic dumps of the block step hierarchy."""

from mpmsched.diagnostics.dump import (
    debug_blocks,
    format_limits,
    format_max_dt_int,
    step_grades,
)

__all__ = ["debug_blocks", "format_limits", "format_max_dt_int", "step_grades"]
