"""Cluster input and record output schemas."""

from cluster_imaging.schemas.cluster import Cell, Cluster
from cluster_imaging.schemas.record import ClusterRecord

__all__ = [
    "Cell",
    "Cluster",
    "ClusterRecord",
]
