"""Shared pytest fixtures for cluster_imaging tests."""

from __future__ import annotations

from collections.abc import Callable
from types import SimpleNamespace
from typing import Any

import numpy as np
import pytest

from cluster_imaging.errors import InferenceError
from cluster_imaging.geometry.grid import GridDefinition
from cluster_imaging.imaging.assembler import ImageAssembler
from cluster_imaging.inference.base import BaseCalibrationInferencer
from cluster_imaging.schemas.cluster import Cell, Cluster

# Bin centres of the 16x16 EMB2 grid: bin k spans [-0.2 + k*0.025, -0.2 + (k+1)*0.025)
EMB2_STEP = 0.4 / 16


def emb2_center(row: int, col: int) -> tuple[float, float]:
    """(deta, dphi) of the centre of EMB2 bin ``(row, col)``."""
    return (-0.2 + (row + 0.5) * EMB2_STEP, -0.2 + (col + 0.5) * EMB2_STEP)


def sum_per_example(inputs: dict[str, np.ndarray]) -> np.ndarray:
    """output[i] = sum of every input element of example i."""
    n = next(iter(inputs.values())).shape[0]
    total = np.zeros(n, dtype=np.float64)
    for arr in inputs.values():
        total += arr.reshape(n, -1).sum(axis=1, dtype=np.float64)
    return total.astype(np.float32)


class SumInferencer(BaseCalibrationInferencer):
    """In-process model stub returning the per-example input sum.

    Records the example count of every call; ``fail_on`` lists 1-based call
    numbers that raise :class:`InferenceError`.
    """

    def __init__(self, fail_on: tuple[int, ...] = ()) -> None:
        self.calls: list[int] = []
        self.fail_on = fail_on
        self.closed = False

    def predict_batch(self, inputs: dict[str, np.ndarray]) -> np.ndarray:
        n = next(iter(inputs.values())).shape[0]
        self.calls.append(n)
        if len(self.calls) in self.fail_on:
            raise InferenceError("stub failure")
        return sum_per_example(inputs)

    def close(self) -> None:
        self.closed = True


class SumSession:
    """Stand-in for ``ort.InferenceSession`` with channel-last float inputs."""

    def __init__(
        self,
        input_names: tuple[str, ...] = ("EMB1", "EMB23", "Tiles"),
        output_fn: Callable[[dict[str, np.ndarray]], Any] | None = None,
    ) -> None:
        shapes = ((128, 4, 1), (16, 16, 2), (4, 4, 3))
        self._inputs = [
            SimpleNamespace(name=name, shape=["N", *shape], type="tensor(float)")
            for name, shape in zip(input_names, shapes)
        ]
        self._outputs = [SimpleNamespace(name="eng_pred", shape=["N", 1])]
        self.output_fn = output_fn or (lambda feed: sum_per_example(feed)[:, None])
        self.feeds: list[dict[str, np.ndarray]] = []

    def get_inputs(self) -> list[SimpleNamespace]:
        return self._inputs

    def get_outputs(self) -> list[SimpleNamespace]:
        return self._outputs

    def run(
        self, output_names: list[str], feed: dict[str, np.ndarray]
    ) -> list[Any]:
        self.feeds.append(feed)
        return [self.output_fn(feed)]


@pytest.fixture()
def grid() -> GridDefinition:
    return GridDefinition.default()


@pytest.fixture()
def assembler(grid: GridDefinition) -> ImageAssembler:
    return ImageAssembler(grid)


@pytest.fixture()
def make_cluster() -> Callable[..., Cluster]:
    """Factory: cluster at ``(eta0, phi0)`` from ``(sampling, energy, deta, dphi)``."""

    def _make(
        cells: list[tuple[int, float, float, float]] | None = None,
        index: int = 0,
        eta0: float = 0.0,
        phi0: float = 0.0,
        energy: float | None = None,
        eng_calib_tot: float | None = None,
    ) -> Cluster:
        members = [
            Cell(sampling=s, energy=e, eta=eta0 + deta, phi=phi0 + dphi)
            for s, e, deta, dphi in (cells or [])
        ]
        return Cluster(
            index=index,
            energy=energy if energy is not None else sum(c.energy for c in members),
            eta=eta0,
            phi=phi0,
            eng_calib_tot=eng_calib_tot,
            cells=members,
        )

    return _make
