"""Assemble the persisted row for a processed cluster."""

from __future__ import annotations

import numpy as np

from cluster_imaging.geometry.binner import wrap_phi
from cluster_imaging.imaging.assembler import ClusterImages
from cluster_imaging.schemas.cluster import Cluster
from cluster_imaging.schemas.record import ClusterRecord


class ResultCollector:
    """Package per-cluster scalars into :class:`ClusterRecord` rows.

    Cell quantities (sums, extrema, centre cell) use the cells that passed
    the cell-energy threshold, whether or not they fell inside the image
    window.  The centre cell is the most energetic one.

    Args:
        store_images: Also attach every sampling image, flattened row-major.
    """

    def __init__(self, store_images: bool = False) -> None:
        self.store_images = store_images

    def collect(
        self,
        cluster: Cluster,
        images: ClusterImages,
        prediction: float,
    ) -> ClusterRecord:
        cells = images.cells
        energies = np.array([c.energy for c in cells], dtype=np.float64)
        sum_cell_e = float(energies.sum())

        if cells:
            deta = np.array([c.eta for c in cells], dtype=np.float64) - cluster.eta
            dphi = wrap_phi(
                np.array([c.phi for c in cells], dtype=np.float64) - cluster.phi
            )
            dr = np.hypot(deta, dphi)
            center = cells[int(np.argmax(energies))]
            extrema = {
                "cell_deta_min": float(deta.min()),
                "cell_deta_max": float(deta.max()),
                "cell_dphi_min": float(dphi.min()),
                "cell_dphi_max": float(dphi.max()),
                "cell_dr_min": float(dr.min()),
                "cell_dr_max": float(dr.max()),
            }
            center_fields = {
                "center_cell_eta": center.eta,
                "center_cell_phi": center.phi,
                "center_cell_layer": center.sampling,
            }
        else:
            extrema = dict.fromkeys(
                (
                    "cell_deta_min",
                    "cell_deta_max",
                    "cell_dphi_min",
                    "cell_dphi_max",
                    "cell_dr_min",
                    "cell_dr_max",
                ),
                0.0,
            )
            center_fields = {
                "center_cell_eta": 0.0,
                "center_cell_phi": 0.0,
                "center_cell_layer": -1,
            }

        if sum_cell_e != 0.0:
            cell_e_norm = (energies / sum_cell_e).tolist()
        else:
            cell_e_norm = [0.0] * len(cells)

        stored = None
        if self.store_images:
            stored = {img.grid.name: img.energy.ravel().tolist() for img in images}

        return ClusterRecord(
            cluster_index=cluster.index,
            n_cells=cluster.n_cells,
            energy=cluster.energy,
            pt=cluster.pt,
            eta=cluster.eta,
            phi=cluster.phi,
            sum_cell_e=sum_cell_e,
            eng_calib_tot=cluster.eng_calib_tot,
            eng_pred=float(prediction),
            duplicates=images.duplicates,
            cell_e_norm=cell_e_norm,
            images=stored,
            **extrema,
            **center_fields,
        )
