"""Per-cluster calibration pipeline.

select -> assemble images -> pack -> infer -> collect, one cluster at a time
or one accumulated group of batches at a time.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from loguru import logger
from tqdm import tqdm

from cluster_imaging.collector import ResultCollector
from cluster_imaging.config import BatchConfig, PipelineConfig, SelectionConfig
from cluster_imaging.geometry.grid import GridDefinition
from cluster_imaging.imaging.assembler import ClusterImages, ImageAssembler
from cluster_imaging.inference.base import BaseCalibrationInferencer
from cluster_imaging.inference.onnx_inferencer import ONNXCalibrationInferencer
from cluster_imaging.inference.packer import BatchAccumulator, TensorPacker
from cluster_imaging.schemas.cluster import Cluster
from cluster_imaging.schemas.record import ClusterRecord


class ClusterPipeline:
    """Drive clusters through imaging and inference.

    The pipeline owns ``inferencer`` and closes it in :meth:`close`.  Integrity
    and engine errors propagate to the caller and the failed cluster or
    batch is dropped.  Batches of the same flush that were not reached stay
    buffered; records already completed come back from the next call.

    Args:
        inferencer: Opened inference client.
        assembler: Image builder carrying the grid and cell threshold.
        selection: Cluster acceptance cuts.
        batching: Single or batched inference settings.
        packer: Tensor packer; default layout when ``None``.
        collector: Result collector; default when ``None``.
    """

    def __init__(
        self,
        inferencer: BaseCalibrationInferencer,
        assembler: ImageAssembler,
        selection: SelectionConfig | None = None,
        batching: BatchConfig | None = None,
        packer: TensorPacker | None = None,
        collector: ResultCollector | None = None,
    ) -> None:
        self.inferencer = inferencer
        self.assembler = assembler
        self.selection = selection or SelectionConfig()
        self.batching = batching or BatchConfig()
        self.packer = packer or TensorPacker()
        self.collector = collector or ResultCollector()
        self._accumulator: BatchAccumulator | None = None
        if self.batching.do_batches:
            self._accumulator = BatchAccumulator(
                size_of_batch=self.batching.size_of_batch,
                number_of_batches=self.batching.number_of_batches,
            )
        self._ready: list[ClusterRecord] = []
        self.n_processed = 0
        self.n_rejected = 0
        self.n_failed = 0

    @classmethod
    def from_config(cls, cfg: PipelineConfig) -> ClusterPipeline:
        """Open the model and wire the default components."""
        assembler = ImageAssembler(
            GridDefinition.default(),
            cell_e_threshold=cfg.selection.cell_e_threshold,
        )
        inferencer = ONNXCalibrationInferencer(cfg.model_path, providers=cfg.providers)
        return cls(
            inferencer=inferencer,
            assembler=assembler,
            selection=cfg.selection,
            batching=cfg.batching,
            collector=ResultCollector(store_images=cfg.store_images),
        )

    def accepts(self, cluster: Cluster) -> bool:
        """Apply the cluster energy and |eta| cuts."""
        sel = self.selection
        return (
            sel.cluster_e_min <= cluster.energy <= sel.cluster_e_max
            and abs(cluster.eta) <= sel.cluster_eta_abs_max
        )

    def process(self, cluster: Cluster) -> list[ClusterRecord]:
        """Feed one cluster; return the records completed by it.

        In single mode that is this cluster's record.  In batch mode it is
        empty until the buffer fills, then every buffered cluster's record.
        """
        if not self.accepts(cluster):
            self.n_rejected += 1
            return []

        images = self.assembler.assemble(cluster)
        if self._accumulator is None:
            return self._run_group([(cluster, images)], pad_to=None)
        return self._run_groups(self._accumulator.add(cluster, images))

    def finish(self) -> list[ClusterRecord]:
        """Flush the trailing partial batch according to the partial policy."""
        if self._accumulator is None:
            return []
        if not len(self._accumulator):
            ready, self._ready = self._ready, []
            return ready
        groups = self._accumulator.drain()
        logger.info(
            f"Flushing {sum(len(g) for g in groups)} buffered cluster(s) "
            f"(policy={self.batching.partial_policy})"
        )
        return self._run_groups(groups)

    def run(self, clusters: Iterable[Cluster]) -> Iterator[ClusterRecord]:
        """Process a whole stream, flushing the remainder at the end."""
        for cluster in tqdm(clusters, desc="clusters", unit="cluster"):
            yield from self.process(cluster)
        yield from self.finish()
        logger.info(
            f"Processed {self.n_processed} cluster(s), rejected {self.n_rejected}, "
            f"failed {self.n_failed}"
        )

    def close(self) -> None:
        self.inferencer.close()

    def __enter__(self) -> ClusterPipeline:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _run_groups(
        self, groups: list[list[tuple[Cluster, ClusterImages]]]
    ) -> list[ClusterRecord]:
        pad_to = (
            self.batching.size_of_batch
            if self.batching.partial_policy == "pad"
            else None
        )
        for i, group in enumerate(groups):
            try:
                self._ready.extend(self._run_group(group, pad_to=pad_to))
            except Exception:
                if self._accumulator is not None:
                    self._accumulator.requeue(groups[i + 1 :])
                raise
        ready, self._ready = self._ready, []
        return ready

    def _run_group(
        self,
        group: list[tuple[Cluster, ClusterImages]],
        pad_to: int | None,
    ) -> list[ClusterRecord]:
        clusters = [c for c, _ in group]
        packed = self.packer.pack(
            [images for _, images in group],
            cluster_indices=[c.index for c in clusters],
            expected=None if pad_to is not None else len(group),
            pad_to=pad_to,
        )
        try:
            predictions = self.inferencer.predict_batch(packed["inputs"])
        except Exception:
            self.n_failed += len(group)
            logger.error(
                f"Inference failed for cluster(s) {[c.index for c in clusters]}"
            )
            raise

        valid_predictions = predictions[packed["valid"]]
        records = [
            self.collector.collect(cluster, images, float(pred))
            for (cluster, images), pred in zip(group, valid_predictions)
        ]
        self.n_processed += len(records)
        return records
