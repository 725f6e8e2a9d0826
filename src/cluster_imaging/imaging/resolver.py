"""Per-sampling energy image with duplicate bookkeeping."""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike

from cluster_imaging.geometry.grid import SamplingGrid


class SamplingImage:
    """Dense energy image of one sampling for the current cluster.

    Cells landing in an occupied bin are summed into it, never overwrite it.
    ``hits`` counts contributing cells per bin; a bin hit by ``n`` cells has a
    duplicate count of ``n - 1``.

    Args:
        grid: Grid fixing the image shape at construction time.
    """

    def __init__(self, grid: SamplingGrid) -> None:
        self.grid = grid
        self.energy = np.zeros(grid.shape, dtype=np.float32)
        self.hits = np.zeros(grid.shape, dtype=np.int32)

    @property
    def shape(self) -> tuple[int, int]:
        return self.grid.shape

    def fill(
        self,
        rows: ArrayLike,
        cols: ArrayLike,
        energies: ArrayLike,
    ) -> None:
        """Fold cell energies into their bins."""
        r = np.asarray(rows, dtype=np.int64)
        c = np.asarray(cols, dtype=np.int64)
        e = np.asarray(energies, dtype=np.float32)
        if not (r.shape == c.shape == e.shape):
            raise ValueError(
                f"rows/cols/energies length mismatch: {r.shape}, {c.shape}, {e.shape}"
            )
        # unbuffered: repeated indices accumulate in input order
        np.add.at(self.energy, (r, c), e)
        np.add.at(self.hits, (r, c), 1)

    @property
    def duplicates(self) -> np.ndarray:  # type: ignore[type-arg]
        """Per-bin duplicate count: contributing cells beyond the first."""
        return np.maximum(self.hits - 1, 0)

    @property
    def n_duplicate_bins(self) -> int:
        """Number of bins touched by more than one cell."""
        return int(np.count_nonzero(self.hits > 1))

    @property
    def total(self) -> float:
        return float(self.energy.sum(dtype=np.float64))
