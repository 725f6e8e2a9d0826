#!/usr/bin/env python3
"""Check that an ONNX calibration model accepts the packed cluster images.

Prints the model's declared inputs and outputs next to the packer layout,
then runs one all-zero cluster (and optionally a batch of them) through it.

Usage::

    python scripts/inspect_model.py --model-path models/calib.onnx
    python scripts/inspect_model.py --model-path models/calib.onnx --batch-size 8
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from loguru import logger
from rich.console import Console
from rich.table import Table

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from cluster_imaging.errors import ClusterImagingError  # noqa: E402
from cluster_imaging.geometry.grid import GridDefinition  # noqa: E402
from cluster_imaging.imaging.assembler import ImageAssembler  # noqa: E402
from cluster_imaging.inference.onnx_inferencer import (  # noqa: E402
    ONNXCalibrationInferencer,
)
from cluster_imaging.inference.packer import TensorPacker  # noqa: E402
from cluster_imaging.schemas.cluster import Cluster  # noqa: E402


def print_layout(inferencer: ONNXCalibrationInferencer, packer: TensorPacker) -> None:
    console = Console()

    table = Table(title="Model inputs")
    table.add_column("Name", style="cyan")
    table.add_column("Declared shape")
    table.add_column("Type")
    for node in inferencer.model_inputs:
        table.add_row(node.name, str(node.shape), node.type)
    console.print(table)

    table = Table(title="Packer layout")
    table.add_column("Name", style="cyan")
    table.add_column("Image")
    table.add_column("Per-example shape")
    table.add_column("Elements", justify="right")
    for spec in packer.layout.inputs:
        table.add_row(
            spec.name, spec.image, str(spec.shape), str(spec.per_example_size)
        )
    console.print(table)

    table = Table(title="Model outputs")
    table.add_column("Name", style="cyan")
    table.add_column("Declared shape")
    for node in inferencer.model_outputs:
        table.add_row(node.name, str(node.shape))
    console.print(table)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Inspect an ONNX calibration model against the packer layout"
    )
    parser.add_argument(
        "--model-path", type=Path, required=True, help="Path to the .onnx file"
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=1,
        help="Also run a batch of this many empty clusters (default: 1)",
    )
    args = parser.parse_args()

    packer = TensorPacker()
    assembler = ImageAssembler(GridDefinition.default())
    empty = assembler.assemble(Cluster(index=0, energy=0.0, eta=0.0, phi=0.0))

    try:
        with ONNXCalibrationInferencer(args.model_path) as inferencer:
            print_layout(inferencer, packer)  # type: ignore[arg-type]
            single = packer.pack([empty], expected=1)
            logger.info(f"Empty cluster prediction: {inferencer.predict(single['inputs'])}")
            if args.batch_size > 1:
                batch = packer.pack([empty] * args.batch_size)
                preds = inferencer.predict_batch(batch["inputs"])
                logger.info(f"Batch of {args.batch_size}: {preds.tolist()}")
    except ClusterImagingError as e:
        logger.error(f"Model check failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
