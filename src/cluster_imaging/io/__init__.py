"""Cluster input and record output."""

from cluster_imaging.io.clusters import read_clusters
from cluster_imaging.io.records import ClusterRecordWriter

__all__ = [
    "ClusterRecordWriter",
    "read_clusters",
]
