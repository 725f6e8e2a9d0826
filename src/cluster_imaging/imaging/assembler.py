"""Build per-sampling images for a cluster and stitch them into model inputs.

Combined images are channel-last ``(rows, cols, channels)``:

- ``EMB1``: EMB1 with a trivial channel axis, ``(128, 4, 1)``.
- ``EMB23``: EMB2 and EMB3, ``(16, 16, 2)``.
- ``Tiles``: TileBar0, TileBar1 and TileBar2, ``(4, 4, 3)``.

A constituent with fewer eta rows than the combined grid (EMB3, TileBar2) is
expanded by repeating each row k times, so combined row j reads source row
j // k. Energy is not divided across the copies: an expanded channel sums to
k times its layer total, which is the input the calibration models were
trained on. Equal-shape constituents are copied as is.
"""

from __future__ import annotations

from collections.abc import Iterator

import numpy as np
from loguru import logger
from pydantic import BaseModel

from cluster_imaging.geometry.binner import bin_cells
from cluster_imaging.geometry.grid import GridDefinition, Sampling
from cluster_imaging.imaging.resolver import SamplingImage
from cluster_imaging.schemas.cluster import Cell, Cluster


class CombinedImageSpec(BaseModel, frozen=True):
    """Channel schema of one stitched image."""

    name: str
    channels: tuple[Sampling, ...]
    rows: int
    cols: int

    @property
    def shape(self) -> tuple[int, int, int]:
        return (self.rows, self.cols, len(self.channels))


COMBINED_IMAGES: tuple[CombinedImageSpec, ...] = (
    CombinedImageSpec(name="EMB1", channels=(Sampling.EMB1,), rows=128, cols=4),
    CombinedImageSpec(
        name="EMB23", channels=(Sampling.EMB2, Sampling.EMB3), rows=16, cols=16
    ),
    CombinedImageSpec(
        name="Tiles",
        channels=(Sampling.TileBar0, Sampling.TileBar1, Sampling.TileBar2),
        rows=4,
        cols=4,
    ),
)


def _expand_rows(
    image: np.ndarray,  # type: ignore[type-arg]
    rows: int,
    cols: int,
) -> np.ndarray:  # type: ignore[type-arg]
    """Repeat eta rows so ``image`` fills a ``(rows, cols)`` grid.

    Row j of the result is row ``j // k`` of ``image`` with
    ``k = rows // image.shape[0]``; cell values are copied, not split.
    """
    if image.shape[0] == rows:
        return image
    return np.repeat(image, rows // image.shape[0], axis=0)


class ClusterImages:
    """Images of one cluster, keyed by sampling, plus the stitched inputs.

    Attributes:
        images: ``Sampling -> SamplingImage`` for every imaged sampling.
        order: Iteration order over ``images``.
        combined: Stitched channel-last arrays keyed by combined image name.
        cells: Cells that passed the cell-energy threshold.
    """

    def __init__(
        self,
        images: dict[Sampling, SamplingImage],
        order: tuple[Sampling, ...],
        combined: dict[str, np.ndarray],  # type: ignore[type-arg]
        cells: list[Cell],
    ) -> None:
        self.images = images
        self.order = order
        self.combined = combined
        self.cells = cells

    def __getitem__(self, sampling: Sampling) -> SamplingImage:
        return self.images[sampling]

    def __iter__(self) -> Iterator[SamplingImage]:
        for s in self.order:
            yield self.images[s]

    @property
    def duplicates(self) -> dict[str, int]:
        """Bins touched more than once, per sampling name."""
        return {s.name: self.images[s].n_duplicate_bins for s in self.order}

    @property
    def total_energy(self) -> float:
        return sum(img.total for img in self)


class ImageAssembler:
    """Turn clusters into fixed-shape images.

    Args:
        grid: Injected grid definition; shapes never depend on the data.
        cell_e_threshold: Cells with energy below this are dropped before
            binning.
        combined: Stitching schema; defaults to :data:`COMBINED_IMAGES`.
    """

    def __init__(
        self,
        grid: GridDefinition,
        cell_e_threshold: float = 0.0,
        combined: tuple[CombinedImageSpec, ...] = COMBINED_IMAGES,
    ) -> None:
        self.grid = grid
        self.cell_e_threshold = cell_e_threshold
        self.combined = combined
        for spec in combined:
            for s in spec.channels:
                rows, cols = grid[s].shape
                if cols != spec.cols or spec.rows % rows != 0:
                    msg = (
                        f"{s.name} grid {rows}x{cols} cannot be stitched into "
                        f"{spec.name} {spec.rows}x{spec.cols}"
                    )
                    raise ValueError(msg)

    def select_cells(self, cluster: Cluster) -> list[Cell]:
        return [c for c in cluster.cells if c.energy >= self.cell_e_threshold]

    def assemble(self, cluster: Cluster) -> ClusterImages:
        """Bin every selected cell of ``cluster`` and stitch the results."""
        cells = self.select_cells(cluster)
        images = {g.sampling: SamplingImage(g) for g in self.grid}

        by_sampling: dict[int, list[Cell]] = {}
        for cell in cells:
            by_sampling.setdefault(cell.sampling, []).append(cell)

        outside = 0
        for sampling, members in by_sampling.items():
            sampling_grid = self.grid.get(sampling)
            if sampling_grid is None:
                continue
            rows, cols, in_window = bin_cells(
                [c.eta for c in members],
                [c.phi for c in members],
                cluster.eta,
                cluster.phi,
                sampling_grid,
            )
            energies = np.array([c.energy for c in members], dtype=np.float32)
            images[sampling_grid.sampling].fill(rows, cols, energies[in_window])
            outside += int(np.count_nonzero(~in_window))

        if outside:
            logger.debug(
                f"Cluster {cluster.index}: {outside} cell(s) outside the image window"
            )

        return ClusterImages(
            images=images,
            order=self.grid.samplings,
            combined=self.stitch(images),
            cells=cells,
        )

    def stitch(
        self, images: dict[Sampling, SamplingImage]
    ) -> dict[str, np.ndarray]:  # type: ignore[type-arg]
        """Stack per-sampling images along a trailing channel axis."""
        combined: dict[str, np.ndarray] = {}  # type: ignore[type-arg]
        for spec in self.combined:
            channels = [
                _expand_rows(images[s].energy, spec.rows, spec.cols)
                for s in spec.channels
            ]
            combined[spec.name] = np.stack(channels, axis=-1).astype(
                np.float32, copy=False
            )
        return combined
