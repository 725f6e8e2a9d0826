"""Output schema: one persisted row per processed cluster."""

from __future__ import annotations

from pydantic import BaseModel


class ClusterRecord(BaseModel):
    """Per-cluster scalars handed to the persistence layer.

    The field set is fixed; clusters without selected cells carry zeros and
    ``center_cell_layer == -1``.
    """

    cluster_index: int
    n_cells: int
    energy: float
    pt: float | None = None
    eta: float
    phi: float
    sum_cell_e: float
    eng_calib_tot: float | None = None
    eng_pred: float
    duplicates: dict[str, int]
    cell_deta_min: float
    cell_deta_max: float
    cell_dphi_min: float
    cell_dphi_max: float
    cell_dr_min: float
    cell_dr_max: float
    center_cell_eta: float
    center_cell_phi: float
    center_cell_layer: int
    cell_e_norm: list[float]
    images: dict[str, list[float]] | None = None
