"""Cluster record writer using orjson."""

from __future__ import annotations

from pathlib import Path
from typing import IO

import orjson
from loguru import logger

from cluster_imaging.schemas.record import ClusterRecord


class ClusterRecordWriter:
    """Append one JSON line per :class:`ClusterRecord` to ``output_path``.

    The parent directory is created if needed.  Use as a context manager or
    call :meth:`close` when done.
    """

    def __init__(self, output_path: Path) -> None:
        self.output_path = output_path
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self._fh: IO[bytes] | None = open(output_path, "wb")
        self._written = 0

    def write(self, record: ClusterRecord) -> None:
        if self._fh is None:
            raise ValueError(f"Writer for {self.output_path} is closed")
        self._fh.write(orjson.dumps(record.model_dump()))
        self._fh.write(b"\n")
        self._written += 1

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None
            logger.info(f"Wrote {self._written} cluster record(s) to {self.output_path}")

    @property
    def num_written(self) -> int:
        """Number of records written so far."""
        return self._written

    def __enter__(self) -> ClusterRecordWriter:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
