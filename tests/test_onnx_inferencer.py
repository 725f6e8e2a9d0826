"""Tests for ONNXCalibrationInferencer."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from cluster_imaging.errors import (
    InferenceError,
    InferenceIntegrityError,
    ModelLoadError,
)
from cluster_imaging.geometry.grid import Sampling
from cluster_imaging.imaging.assembler import ImageAssembler
from cluster_imaging.inference.onnx_inferencer import ONNXCalibrationInferencer
from cluster_imaging.inference.packer import TensorPacker
from cluster_imaging.schemas.cluster import Cluster

from conftest import SumSession

_SESSION = "cluster_imaging.inference.onnx_inferencer.ort.InferenceSession"


def _model_path(tmp_path: Path) -> Path:
    path = tmp_path / "model.onnx"
    path.touch()
    return path


def _packed_clusters(
    assembler: ImageAssembler,
    make_cluster: Callable[..., Cluster],
    energies: list[float],
) -> tuple[dict[str, np.ndarray], list[float]]:
    """Pack one EMB2-only cluster per energy; returns inputs and image sums."""
    images = [
        assembler.assemble(make_cluster([(Sampling.EMB2, e, 0.0, 0.0)], index=i))
        for i, e in enumerate(energies)
    ]
    packed = TensorPacker().pack(images)
    return packed["inputs"], [img[Sampling.EMB2].total for img in images]


class TestONNXCalibrationInferencer:
    @patch(_SESSION)
    def test_returns_image_sum_in_order(
        self,
        mock_session_cls: MagicMock,
        tmp_path: Path,
        assembler: ImageAssembler,
        make_cluster: Callable[..., Cluster],
    ) -> None:
        mock_session_cls.return_value = SumSession()
        inferencer = ONNXCalibrationInferencer(_model_path(tmp_path))

        inputs, sums = _packed_clusters(assembler, make_cluster, [3.0, 1.5, 7.25])
        preds = inferencer.predict_batch(inputs)

        assert preds.dtype == np.float32
        assert preds.tolist() == sums

    @patch(_SESSION)
    def test_predict_single(
        self,
        mock_session_cls: MagicMock,
        tmp_path: Path,
        assembler: ImageAssembler,
        make_cluster: Callable[..., Cluster],
    ) -> None:
        mock_session_cls.return_value = SumSession()
        inferencer = ONNXCalibrationInferencer(_model_path(tmp_path))
        inputs, _ = _packed_clusters(assembler, make_cluster, [2.5])
        assert inferencer.predict(inputs) == 2.5

    @patch(_SESSION)
    def test_predict_rejects_batches(
        self,
        mock_session_cls: MagicMock,
        tmp_path: Path,
        assembler: ImageAssembler,
        make_cluster: Callable[..., Cluster],
    ) -> None:
        mock_session_cls.return_value = SumSession()
        inferencer = ONNXCalibrationInferencer(_model_path(tmp_path))
        inputs, _ = _packed_clusters(assembler, make_cluster, [1.0, 2.0])
        with pytest.raises(ValueError):
            inferencer.predict(inputs)

    @patch(_SESSION)
    def test_binds_by_shape_when_names_differ(
        self,
        mock_session_cls: MagicMock,
        tmp_path: Path,
        assembler: ImageAssembler,
        make_cluster: Callable[..., Cluster],
    ) -> None:
        session = SumSession(input_names=("input_1", "input_2", "input_3"))
        mock_session_cls.return_value = session
        inferencer = ONNXCalibrationInferencer(_model_path(tmp_path))
        inputs, _ = _packed_clusters(assembler, make_cluster, [1.0])

        inferencer.predict_batch(inputs)

        feed = session.feeds[-1]
        assert set(feed) == {"input_1", "input_2", "input_3"}
        assert feed["input_1"].shape == (1, 128, 4, 1)
        assert feed["input_2"].shape == (1, 16, 16, 2)
        assert feed["input_3"].shape == (1, 4, 4, 3)

    @patch(_SESSION)
    def test_leading_dim_mismatch_is_fatal(
        self,
        mock_session_cls: MagicMock,
        tmp_path: Path,
        assembler: ImageAssembler,
        make_cluster: Callable[..., Cluster],
    ) -> None:
        mock_session_cls.return_value = SumSession(
            output_fn=lambda feed: np.zeros((1, 1), dtype=np.float32)
        )
        inferencer = ONNXCalibrationInferencer(_model_path(tmp_path))
        inputs, _ = _packed_clusters(assembler, make_cluster, [1.0, 2.0])
        with pytest.raises(InferenceIntegrityError, match="2 submitted"):
            inferencer.predict_batch(inputs)

    @patch(_SESSION)
    def test_multiple_values_per_example_is_fatal(
        self,
        mock_session_cls: MagicMock,
        tmp_path: Path,
        assembler: ImageAssembler,
        make_cluster: Callable[..., Cluster],
    ) -> None:
        mock_session_cls.return_value = SumSession(
            output_fn=lambda feed: np.zeros((2, 3), dtype=np.float32)
        )
        inferencer = ONNXCalibrationInferencer(_model_path(tmp_path))
        inputs, _ = _packed_clusters(assembler, make_cluster, [1.0, 2.0])
        with pytest.raises(InferenceIntegrityError):
            inferencer.predict_batch(inputs)

    @patch(_SESSION)
    def test_flat_output_accepted(
        self,
        mock_session_cls: MagicMock,
        tmp_path: Path,
        assembler: ImageAssembler,
        make_cluster: Callable[..., Cluster],
    ) -> None:
        mock_session_cls.return_value = SumSession(
            output_fn=lambda feed: np.array([4.0, 5.0], dtype=np.float64)
        )
        inferencer = ONNXCalibrationInferencer(_model_path(tmp_path))
        inputs, _ = _packed_clusters(assembler, make_cluster, [1.0, 2.0])
        assert inferencer.predict_batch(inputs).tolist() == [4.0, 5.0]

    @patch(_SESSION)
    def test_run_failure_does_not_poison_session(
        self,
        mock_session_cls: MagicMock,
        tmp_path: Path,
        assembler: ImageAssembler,
        make_cluster: Callable[..., Cluster],
    ) -> None:
        calls = {"n": 0}

        def flaky(feed: dict[str, np.ndarray]) -> np.ndarray:
            calls["n"] += 1
            if calls["n"] == 1:
                raise RuntimeError("engine exploded")
            return np.ones((1, 1), dtype=np.float32)

        mock_session_cls.return_value = SumSession(output_fn=flaky)
        inferencer = ONNXCalibrationInferencer(_model_path(tmp_path))
        inputs, _ = _packed_clusters(assembler, make_cluster, [1.0])

        with pytest.raises(InferenceError, match="engine exploded"):
            inferencer.predict_batch(inputs)
        assert inferencer.predict_batch(inputs).tolist() == [1.0]

    @patch(_SESSION)
    def test_unbindable_input_is_fatal(
        self, mock_session_cls: MagicMock, tmp_path: Path
    ) -> None:
        mock_session_cls.return_value = SumSession(input_names=("a", "b", "c"))
        inferencer = ONNXCalibrationInferencer(_model_path(tmp_path))
        inputs = {
            "x": np.zeros((1, 3, 3, 1), dtype=np.float32),
            "y": np.zeros((1, 16, 16, 2), dtype=np.float32),
            "z": np.zeros((1, 4, 4, 3), dtype=np.float32),
        }
        with pytest.raises(InferenceIntegrityError, match="'x'"):
            inferencer.predict_batch(inputs)

    @patch(_SESSION)
    def test_missing_input_is_fatal(
        self, mock_session_cls: MagicMock, tmp_path: Path
    ) -> None:
        mock_session_cls.return_value = SumSession()
        inferencer = ONNXCalibrationInferencer(_model_path(tmp_path))
        with pytest.raises(InferenceIntegrityError):
            inferencer.predict_batch({"EMB1": np.zeros((1, 128, 4, 1), np.float32)})

    @patch(_SESSION)
    def test_load_failure(self, mock_session_cls: MagicMock, tmp_path: Path) -> None:
        mock_session_cls.side_effect = RuntimeError("corrupt protobuf")
        with pytest.raises(ModelLoadError, match="corrupt protobuf"):
            ONNXCalibrationInferencer(_model_path(tmp_path))

    def test_missing_model_file(self, tmp_path: Path) -> None:
        with pytest.raises(ModelLoadError, match="not found"):
            ONNXCalibrationInferencer(tmp_path / "absent.onnx")

    @patch(_SESSION)
    def test_session_opened_once_and_closed(
        self,
        mock_session_cls: MagicMock,
        tmp_path: Path,
        assembler: ImageAssembler,
        make_cluster: Callable[..., Cluster],
    ) -> None:
        mock_session_cls.return_value = SumSession()
        inputs, _ = _packed_clusters(assembler, make_cluster, [1.0])
        with ONNXCalibrationInferencer(_model_path(tmp_path)) as inferencer:
            inferencer.predict_batch(inputs)
            inferencer.predict_batch(inputs)
        assert mock_session_cls.call_count == 1
        with pytest.raises(InferenceError, match="closed"):
            inferencer.predict_batch(inputs)
