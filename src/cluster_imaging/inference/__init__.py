"""Tensor packing and calibrated-energy inference."""

from cluster_imaging.inference.base import BaseCalibrationInferencer
from cluster_imaging.inference.onnx_inferencer import ONNXCalibrationInferencer
from cluster_imaging.inference.packer import (
    BatchAccumulator,
    InputSpec,
    TensorLayout,
    TensorPacker,
)

__all__ = [
    "BaseCalibrationInferencer",
    "BatchAccumulator",
    "InputSpec",
    "ONNXCalibrationInferencer",
    "TensorLayout",
    "TensorPacker",
]
