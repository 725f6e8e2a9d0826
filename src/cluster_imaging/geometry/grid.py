"""Per-sampling image grids.

Each barrel sampling gets a fixed ``(rows, cols)`` grid covering the same
0.4 x 0.4 window in (eta, phi) around the cluster direction.  Rows run along
eta, columns along phi.
"""

from __future__ import annotations

from collections.abc import Iterator
from enum import IntEnum

from pydantic import BaseModel, Field

ETA_WINDOW = 0.4
PHI_WINDOW = 0.4


class Sampling(IntEnum):
    """Imaged calorimeter samplings, in fixed iteration order."""

    PSB = 0
    EMB1 = 1
    EMB2 = 2
    EMB3 = 3
    TileBar0 = 4
    TileBar1 = 5
    TileBar2 = 6


# (rows, cols) per sampling, in Sampling order
_DEFAULT_SHAPES: dict[Sampling, tuple[int, int]] = {
    Sampling.PSB: (16, 4),
    Sampling.EMB1: (128, 4),
    Sampling.EMB2: (16, 16),
    Sampling.EMB3: (8, 16),
    Sampling.TileBar0: (4, 4),
    Sampling.TileBar1: (4, 4),
    Sampling.TileBar2: (2, 4),
}


class SamplingGrid(BaseModel, frozen=True):
    """Image grid of a single sampling."""

    sampling: Sampling
    rows: int = Field(gt=0)
    cols: int = Field(gt=0)
    eta_window: float = Field(default=ETA_WINDOW, gt=0.0)
    phi_window: float = Field(default=PHI_WINDOW, gt=0.0)

    @property
    def shape(self) -> tuple[int, int]:
        return (self.rows, self.cols)

    @property
    def name(self) -> str:
        return self.sampling.name


class GridDefinition:
    """Immutable set of sampling grids, built once and passed to consumers.

    Args:
        grids: One grid per sampling.  Iteration follows ``Sampling`` order
            regardless of the order given here.
    """

    def __init__(self, grids: list[SamplingGrid]) -> None:
        by_sampling = {g.sampling: g for g in grids}
        if len(by_sampling) != len(grids):
            raise ValueError("GridDefinition received duplicate samplings")
        self._grids: tuple[SamplingGrid, ...] = tuple(
            by_sampling[s] for s in sorted(by_sampling)
        )
        self._lookup: dict[int, SamplingGrid] = {
            int(g.sampling): g for g in self._grids
        }

    @classmethod
    def default(cls) -> GridDefinition:
        """The seven barrel samplings with their standard granularity."""
        return cls(
            [
                SamplingGrid(sampling=s, rows=rows, cols=cols)
                for s, (rows, cols) in _DEFAULT_SHAPES.items()
            ]
        )

    def get(self, sampling: int) -> SamplingGrid | None:
        """Grid for ``sampling``, or ``None`` if that sampling is not imaged."""
        return self._lookup.get(int(sampling))

    def __getitem__(self, sampling: int) -> SamplingGrid:
        grid = self.get(sampling)
        if grid is None:
            raise KeyError(f"No grid defined for sampling {sampling!r}")
        return grid

    def __iter__(self) -> Iterator[SamplingGrid]:
        return iter(self._grids)

    def __len__(self) -> int:
        return len(self._grids)

    @property
    def samplings(self) -> tuple[Sampling, ...]:
        return tuple(g.sampling for g in self._grids)
