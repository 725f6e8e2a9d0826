"""Stream clusters from a JSONL file using orjson."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import orjson
from loguru import logger

from cluster_imaging.schemas.cluster import Cluster


def read_clusters(path: Path) -> Iterator[Cluster]:
    """Yield one :class:`Cluster` per non-empty line of ``path``.

    Each line is a JSON object with the cluster fields and a ``cells`` list
    of ``{"sampling", "energy", "eta", "phi"}`` objects.
    """
    count = 0
    with open(path, "rb") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            yield Cluster.model_validate(orjson.loads(line))
            count += 1
    logger.debug(f"Read {count} cluster(s) from {path}")
