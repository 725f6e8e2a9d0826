"""Abstract base class for calibration inferencers."""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np


class BaseCalibrationInferencer(ABC):
    """Base class for calibrated-energy inferencers.

    Subclasses must implement ``predict_batch``; ``predict`` runs a single
    packed example through it.  Inputs are the packed tensors keyed by
    name, each with a leading example dimension.
    """

    @abstractmethod
    def predict_batch(
        self,
        inputs: dict[str, np.ndarray],  # type: ignore[type-arg]
    ) -> np.ndarray:  # type: ignore[type-arg]
        """Run inference on N packed examples.

        Returns a float32 array of shape ``(N,)``, in input order.
        """

    def predict(self, inputs: dict[str, np.ndarray]) -> float:  # type: ignore[type-arg]
        """Run inference on exactly one packed example."""
        leading = {arr.shape[0] for arr in inputs.values()}
        if leading != {1}:
            raise ValueError(f"predict expects one example, got leading dims {leading}")
        return float(self.predict_batch(inputs)[0])

    def close(self) -> None:
        """Release engine resources.  No-op by default."""

    def __enter__(self) -> BaseCalibrationInferencer:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
