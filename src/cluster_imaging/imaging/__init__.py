"""Cluster image construction."""

from cluster_imaging.imaging.assembler import (
    COMBINED_IMAGES,
    ClusterImages,
    CombinedImageSpec,
    ImageAssembler,
)
from cluster_imaging.imaging.resolver import SamplingImage

__all__ = [
    "COMBINED_IMAGES",
    "ClusterImages",
    "CombinedImageSpec",
    "ImageAssembler",
    "SamplingImage",
]
