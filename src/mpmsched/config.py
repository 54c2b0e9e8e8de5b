"""Pydantic v2 configuration for the block time-step scheduler.

Provides validated, typed configuration with cross-field validation and
JSON I/O.  Loading is done by the caller; the scheduler only consumes
an already-validated :class:`SchedulerConfig`.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, Field, model_validator


def _is_power_of_two(n: int) -> bool:
    return n >= 1 and (n & (n - 1)) == 0


class SchedulerConfig(BaseModel):
    """Top-level scheduler configuration."""

    sim_res: list[int] = Field(
        ..., min_length=2, max_length=2, description="Fine grid resolution (nx, ny) in cells"
    )
    block_size: int = Field(8, gt=0, description="Fine cells per block along each axis")
    base_delta_t: float = Field(..., gt=0, description="Smallest time unit [s]")
    cfl: float = Field(0.5, gt=0, le=1.0, description="Courant number")
    strength_dt_mul: float = Field(
        1.0, gt=0, description="Safety multiplier on the material-intrinsic particle step"
    )
    dt_multiplier: int = Field(
        2, ge=2, description="Growth factor applied to a block step at aligned doubling points"
    )
    initial_max_dt_int: int = Field(
        1, ge=1, description="Step assigned to every block at construction and reset"
    )

    @model_validator(mode="after")
    def validate_grid(self) -> SchedulerConfig:
        if any(n <= 0 for n in self.sim_res):
            raise ValueError("sim_res values must be positive integers")
        if self.block_size > min(self.sim_res):
            raise ValueError(
                f"block_size ({self.block_size}) must not exceed sim_res {self.sim_res}"
            )
        return self

    @model_validator(mode="after")
    def validate_steps(self) -> SchedulerConfig:
        if not _is_power_of_two(self.dt_multiplier):
            raise ValueError(f"dt_multiplier must be a power of two, got {self.dt_multiplier}")
        if not _is_power_of_two(self.initial_max_dt_int):
            raise ValueError(
                f"initial_max_dt_int must be a power of two, got {self.initial_max_dt_int}"
            )
        return self

    @property
    def res(self) -> tuple[int, int]:
        """Block grid resolution; one extra block covers the last node row."""
        return (
            self.sim_res[0] // self.block_size + 1,
            self.sim_res[1] // self.block_size + 1,
        )

    # --- I/O helpers ---

    @classmethod
    def from_file(cls, path: str | Path) -> SchedulerConfig:
        """Load configuration from a JSON file."""
        path = Path(path)
        with path.open() as f:
            data = json.load(f)
        return cls(**data)

    def to_json(self, path: str | Path | None = None) -> str:
        """Serialize to JSON string, optionally writing to file."""
        out = self.model_dump_json(indent=2)
        if path is not None:
            Path(path).write_text(out)
        return out
