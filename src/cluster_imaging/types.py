"""Type aliases and TypedDicts for cluster_imaging inter-module contracts."""

from typing import TypedDict

import numpy as np


class PackedBatch(TypedDict):
    """Model-ready tensors for a group of clusters.

    inputs: Float32 arrays of shape (N, rows, cols, channels), keyed by
        combined image name.
    valid: Bool array of shape (N,); False marks zero padding.
    cluster_indices: Cluster index per row, -1 for padding.
    """

    inputs: dict[str, np.ndarray]  # type: ignore[type-arg]
    valid: np.ndarray  # type: ignore[type-arg]
    cluster_indices: list[int]
