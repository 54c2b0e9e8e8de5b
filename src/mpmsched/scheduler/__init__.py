"""Block scheduler package.

Exports all public symbols from the scheduler submodules.
"""

from mpmsched.scheduler.blocks import BlockGrid
from mpmsched.scheduler.expansion import (
    EMPTY_ENVELOPE,
    VelocityBoundsTracker,
    dilate_bounds,
    dilate_states,
)
from mpmsched.scheduler.limits import StepLimitEngine, get_largest_pot, largest_pot_array
from mpmsched.scheduler.scheduler import MPMScheduler

__all__ = [
    "EMPTY_ENVELOPE",
    "BlockGrid",
    "MPMScheduler",
    "StepLimitEngine",
    "VelocityBoundsTracker",
    "dilate_bounds",
    "dilate_states",
    "get_largest_pot",
    "largest_pot_array",
]
