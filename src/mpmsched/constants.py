"""Scheduler constants: single source of truth for sentinels and margins.

Import from here instead of defining local constants.
"""

# Step sentinels (integer multiples of base_delta_t)
UNBOUNDED_STEP = 1 << 60      # "No constraint" step; a power of two
MIN_STEP = 1                  # Smallest representable step

# Velocity envelope sentinel: an empty envelope is (+S, +S, -S, -S)
VELOCITY_SENTINEL = 1e30

# Added to block speeds so that a motionless block never divides by zero
SPEED_EPSILON = 1e-7

# Boundary CFL: safety margin subtracted from the boundary distance [blocks],
# and the floor applied to the remaining distance [fine cells]
BOUNDARY_MARGIN = 0.75
MIN_BOUNDARY_DISTANCE = 0.5

# Particle display brightness per classification
COLOR_UPDATING = 1.0
COLOR_BUFFER = 0.7
COLOR_INACTIVE = 0.3

# Debug visualisation defaults
DEFAULT_GRADES = 10
