"""Sampling grids and cell binning."""

from cluster_imaging.geometry.binner import bin_cell, bin_cells, wrap_phi
from cluster_imaging.geometry.grid import (
    ETA_WINDOW,
    PHI_WINDOW,
    GridDefinition,
    Sampling,
    SamplingGrid,
)

__all__ = [
    "ETA_WINDOW",
    "PHI_WINDOW",
    "GridDefinition",
    "Sampling",
    "SamplingGrid",
    "bin_cell",
    "bin_cells",
    "wrap_phi",
]
