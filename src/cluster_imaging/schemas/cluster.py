"""Input schemas: calorimeter cells and the clusters that group them."""

from __future__ import annotations

import math

from pydantic import BaseModel, Field, field_validator


class Cell(BaseModel, frozen=True):
    """A single calorimeter energy deposit."""

    sampling: int
    energy: float
    eta: float
    phi: float


class Cluster(BaseModel, frozen=True):
    """A cluster of cells with its reference direction.

    ``eta``/``phi`` define the image centre.  ``eng_calib_tot`` is the truth
    calibration energy when the input carries one.
    """

    index: int
    energy: float
    eta: float
    phi: float
    pt: float | None = None
    eng_calib_tot: float | None = None
    cells: list[Cell] = Field(default_factory=list)

    @field_validator("eta", "phi")
    @classmethod
    def _finite_direction(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("cluster direction must be finite")
        return v

    @property
    def n_cells(self) -> int:
        return len(self.cells)
