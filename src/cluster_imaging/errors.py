"""Exception hierarchy for cluster_imaging.

Geometric and selection exclusions are never errors; only integrity and
engine failures surface to the caller of the pipeline.
"""


class ClusterImagingError(Exception):
    """Base class for all cluster_imaging failures."""


class PackingError(ClusterImagingError, ValueError):
    """Packed buffer does not match the declared tensor layout."""


class InferenceIntegrityError(ClusterImagingError, RuntimeError):
    """Model output does not line up with the submitted examples."""


class ModelLoadError(ClusterImagingError, RuntimeError):
    """The ONNX model could not be opened."""


class InferenceError(ClusterImagingError, RuntimeError):
    """The inference engine failed while running a call."""
