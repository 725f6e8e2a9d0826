"""Calorimeter cluster imaging and ONNX energy calibration."""

__version__ = "0.0.1"
