"""Pack cluster images into contiguous model input buffers.

Every input tensor is float32 ``(N, rows, cols, channels)`` with examples
laid out row-major, one after the other.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np
from pydantic import BaseModel

from cluster_imaging.errors import PackingError
from cluster_imaging.imaging.assembler import COMBINED_IMAGES, ClusterImages
from cluster_imaging.schemas.cluster import Cluster
from cluster_imaging.types import PackedBatch


class InputSpec(BaseModel, frozen=True):
    """One model input: tensor name, source combined image, per-example shape."""

    name: str
    image: str
    shape: tuple[int, ...]

    @property
    def per_example_size(self) -> int:
        return math.prod(self.shape)


class TensorLayout(BaseModel, frozen=True):
    """Ordered set of model inputs."""

    inputs: tuple[InputSpec, ...]

    @classmethod
    def default(cls) -> TensorLayout:
        """One input per combined image, named after it."""
        return cls(
            inputs=tuple(
                InputSpec(name=spec.name, image=spec.name, shape=spec.shape)
                for spec in COMBINED_IMAGES
            )
        )

    @property
    def names(self) -> list[str]:
        return [spec.name for spec in self.inputs]


class TensorPacker:
    """Serialise ``ClusterImages`` into model-shaped buffers.

    Args:
        layout: Declared input tensors; defaults to :meth:`TensorLayout.default`.
    """

    def __init__(self, layout: TensorLayout | None = None) -> None:
        self.layout = layout or TensorLayout.default()

    def pack(
        self,
        examples: Sequence[ClusterImages],
        cluster_indices: Sequence[int] | None = None,
        expected: int | None = None,
        pad_to: int | None = None,
    ) -> PackedBatch:
        """Pack ``examples`` in order.

        Args:
            examples: Assembled images, one per cluster.
            cluster_indices: Cluster index per example, carried through.
            expected: If set, the exact number of examples required.
            pad_to: If set, append all-zero examples up to this count and
                mark them invalid.

        Raises:
            PackingError: On an empty or wrongly sized group, or when an
                example does not hold exactly the declared element count.
        """
        n = len(examples)
        if n == 0:
            raise PackingError("Cannot pack an empty group of clusters")
        if expected is not None and n != expected:
            raise PackingError(f"Expected {expected} examples, got {n}")
        if pad_to is not None and n > pad_to:
            raise PackingError(f"{n} examples do not fit a batch of {pad_to}")
        if cluster_indices is None:
            cluster_indices = list(range(n))
        if len(cluster_indices) != n:
            raise PackingError(
                f"{len(cluster_indices)} cluster indices for {n} examples"
            )

        total = pad_to if pad_to is not None else n
        inputs: dict[str, np.ndarray] = {}  # type: ignore[type-arg]
        for spec in self.layout.inputs:
            size = spec.per_example_size
            flat = np.zeros(total * size, dtype=np.float32)
            for i, example in enumerate(examples):
                values = example.combined[spec.image]
                if values.size != size:
                    msg = (
                        f"Input {spec.name!r}: example {i} has {values.size} "
                        f"elements, layout declares {size}"
                    )
                    raise PackingError(msg)
                flat[i * size : (i + 1) * size] = values.ravel()
            inputs[spec.name] = flat.reshape((total, *spec.shape))

        valid = np.zeros(total, dtype=bool)
        valid[:n] = True
        indices = list(cluster_indices) + [-1] * (total - n)
        return PackedBatch(inputs=inputs, valid=valid, cluster_indices=indices)


class BatchAccumulator:
    """Buffer clusters until enough are collected for a flush.

    Each added cluster is handed back exactly once, either from :meth:`add`
    when the buffer reaches capacity or from :meth:`drain` at end of input.
    The buffer is emptied before the groups are returned.

    Args:
        size_of_batch: Clusters per model call.
        number_of_batches: Full batches collected before a flush.
    """

    def __init__(self, size_of_batch: int, number_of_batches: int = 1) -> None:
        if size_of_batch < 1 or number_of_batches < 1:
            raise ValueError("size_of_batch and number_of_batches must be >= 1")
        self.size_of_batch = size_of_batch
        self.number_of_batches = number_of_batches
        self._pending: list[tuple[Cluster, ClusterImages]] = []

    @property
    def capacity(self) -> int:
        return self.size_of_batch * self.number_of_batches

    def __len__(self) -> int:
        return len(self._pending)

    def add(
        self, cluster: Cluster, images: ClusterImages
    ) -> list[list[tuple[Cluster, ClusterImages]]]:
        """Buffer one cluster; return the full batches once capacity is reached."""
        self._pending.append((cluster, images))
        if len(self._pending) < self.capacity:
            return []
        full = len(self._pending) - len(self._pending) % self.size_of_batch
        return self._take(full)

    def requeue(self, groups: list[list[tuple[Cluster, ClusterImages]]]) -> None:
        """Put untouched groups back at the front of the buffer."""
        self._pending[:0] = [item for group in groups for item in group]

    def drain(self) -> list[list[tuple[Cluster, ClusterImages]]]:
        """Return whatever is buffered; the last batch may be short."""
        return self._take(len(self._pending))

    def _take(self, count: int) -> list[list[tuple[Cluster, ClusterImages]]]:
        pending, self._pending = self._pending[:count], self._pending[count:]
        return [
            pending[i : i + self.size_of_batch]
            for i in range(0, len(pending), self.size_of_batch)
        ]
