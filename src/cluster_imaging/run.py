"""Calibration entrypoint for cluster_imaging.

Usage:
    cluster-calibrate model_path=calib.onnx input_path=clusters.jsonl
    cluster-calibrate ... batching.do_batches=true batching.size_of_batch=64
    cluster-calibrate ... selection.cell_e_threshold=0.005 store_images=true
"""

import sys
from pathlib import Path
from typing import Any

import hydra
from hydra.utils import to_absolute_path
from loguru import logger
from omegaconf import DictConfig, OmegaConf

from cluster_imaging.config import PipelineConfig
from cluster_imaging.errors import ClusterImagingError
from cluster_imaging.io.clusters import read_clusters
from cluster_imaging.io.records import ClusterRecordWriter
from cluster_imaging.pipeline import ClusterPipeline


@hydra.main(version_base=None, config_path="conf", config_name="run")
def main(cfg: DictConfig) -> None:
    """Image every cluster of ``input_path``, run the model, write records."""
    # Setup logging
    logger.remove()
    logger.add(sys.stderr, level=cfg.get("log_level", "INFO"))

    logger.info(f"Configuration:\n{OmegaConf.to_yaml(cfg)}")

    raw: dict[str, Any] = OmegaConf.to_container(cfg, resolve=True)  # type: ignore[assignment]
    input_path = Path(to_absolute_path(raw.pop("input_path")))
    output_path = Path(to_absolute_path(raw.pop("output_path")))
    raw["model_path"] = to_absolute_path(raw["model_path"])
    pipeline_cfg = PipelineConfig(**raw)

    try:
        with (
            ClusterPipeline.from_config(pipeline_cfg) as pipeline,
            ClusterRecordWriter(output_path) as writer,
        ):
            for record in pipeline.run(read_clusters(input_path)):
                writer.write(record)
    except ClusterImagingError as e:
        logger.error(f"Calibration run aborted: {e}")
        raise


if __name__ == "__main__":
    main()
