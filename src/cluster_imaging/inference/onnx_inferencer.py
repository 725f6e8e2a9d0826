"""ONNX-based calibrated-energy inferencer."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import numpy as np
import onnxruntime as ort
from loguru import logger

from cluster_imaging.errors import (
    InferenceError,
    InferenceIntegrityError,
    ModelLoadError,
)
from cluster_imaging.inference.base import BaseCalibrationInferencer

_FLOAT_TENSOR = "tensor(float)"


def _dims_match(declared: list[Any], actual: tuple[int, ...]) -> bool:
    """Compare per-example dims; symbolic or missing dims match anything."""
    if len(declared) != len(actual):
        return False
    return all(not isinstance(d, int) or d == a for d, a in zip(declared, actual))


class ONNXCalibrationInferencer(BaseCalibrationInferencer):
    """Run the calibration regression with an ONNX model.

    The session is opened once here and reused for every call; nothing is
    carried over from one call to the next.  Packed tensors are bound to
    model inputs by name, or, when the names differ, by their unique
    per-example shape.

    Args:
        model_path: Path to the ``.onnx`` file.
        providers: Execution providers; all available ones when ``None``.
    """

    def __init__(
        self,
        model_path: str | Path,
        providers: list[str] | None = None,
    ) -> None:
        model_path = Path(model_path)
        if not model_path.is_file():
            raise ModelLoadError(f"Model file not found: {model_path}")

        try:
            self.session: ort.InferenceSession | None = ort.InferenceSession(
                str(model_path),
                providers=providers or ort.get_available_providers(),
            )
        except Exception as e:
            raise ModelLoadError(f"Failed to load {model_path}: {e}") from e

        self.model_inputs = list(self.session.get_inputs())
        self.model_outputs = list(self.session.get_outputs())
        if not self.model_outputs:
            raise ModelLoadError(f"{model_path} declares no outputs")
        self.output_name: str = self.model_outputs[0].name

        for node in self.model_inputs:
            logger.info(f"Model input {node.name}: shape={node.shape} type={node.type}")
        logger.info(
            f"Model output {self.output_name}: shape={self.model_outputs[0].shape}"
        )

    def predict_batch(
        self,
        inputs: dict[str, np.ndarray],  # type: ignore[type-arg]
    ) -> np.ndarray:  # type: ignore[type-arg]
        """Run N packed examples through one ``session.run``."""
        if self.session is None:
            raise InferenceError("Inference session has been closed")

        leading = {arr.shape[0] for arr in inputs.values()}
        if len(leading) != 1:
            raise InferenceIntegrityError(
                f"Input tensors disagree on example count: {sorted(leading)}"
            )
        n = leading.pop()

        feed = self._bind(inputs)
        try:
            outputs = self.session.run([self.output_name], feed)
        except Exception as e:
            raise InferenceError(f"Inference failed for {n} example(s): {e}") from e

        return self._decode(outputs[0], n)

    def close(self) -> None:
        """Drop the session; later calls fail with :class:`InferenceError`."""
        if self.session is not None:
            logger.debug("Releasing ONNX inference session")
            self.session = None

    def _bind(
        self,
        inputs: dict[str, np.ndarray],  # type: ignore[type-arg]
    ) -> dict[str, np.ndarray]:  # type: ignore[type-arg]
        """Map packed tensors onto model input names."""
        if len(inputs) != len(self.model_inputs):
            raise InferenceIntegrityError(
                f"Model expects {len(self.model_inputs)} inputs, got {len(inputs)}"
            )

        feed: dict[str, np.ndarray] = {}  # type: ignore[type-arg]
        by_name = {node.name: node for node in self.model_inputs}
        for name, arr in inputs.items():
            if name in by_name:
                node = by_name[name]
            else:
                candidates = [
                    node
                    for node in self.model_inputs
                    if node.name not in feed
                    and node.name not in inputs
                    and _dims_match(list(node.shape)[1:], arr.shape[1:])
                ]
                if len(candidates) != 1:
                    raise InferenceIntegrityError(
                        f"Cannot bind input {name!r} with per-example shape "
                        f"{arr.shape[1:]} to a unique model input"
                    )
                node = candidates[0]

            if not _dims_match(list(node.shape)[1:], arr.shape[1:]):
                raise InferenceIntegrityError(
                    f"Input {node.name!r} declares {node.shape}, got {arr.shape}"
                )
            if node.type != _FLOAT_TENSOR:
                raise InferenceIntegrityError(
                    f"Input {node.name!r} has type {node.type}, expected float32"
                )
            feed[node.name] = np.ascontiguousarray(arr, dtype=np.float32)
        return feed

    @staticmethod
    def _decode(raw: Any, n: int) -> np.ndarray:  # type: ignore[type-arg]
        """Exactly one scalar per example, in input order."""
        out = np.asarray(raw)
        if out.ndim == 0 or out.shape[0] != n:
            raise InferenceIntegrityError(
                f"Output shape {out.shape} does not match {n} submitted example(s)"
            )
        per_example = out.reshape(n, -1)
        if per_example.shape[1] != 1:
            raise InferenceIntegrityError(
                f"Expected one value per example, got {per_example.shape[1]}"
            )
        return per_example[:, 0].astype(np.float32)
