"""Pydantic frozen configuration models for cluster_imaging."""

from typing import Literal

from pydantic import BaseModel, Field, model_validator


class SelectionConfig(BaseModel, frozen=True):
    """Cluster and cell acceptance cuts.

    Clusters outside ``[cluster_e_min, cluster_e_max]`` or beyond
    ``cluster_eta_abs_max`` are skipped.  Cells below ``cell_e_threshold``
    never reach the images.
    """

    cluster_e_min: float = 0.0
    cluster_e_max: float = 1.0e12
    cluster_eta_abs_max: float = Field(default=0.7, gt=0.0)
    cell_e_threshold: float = 0.0

    @model_validator(mode="after")
    def _energy_range_ordered(self) -> "SelectionConfig":
        if self.cluster_e_min > self.cluster_e_max:
            msg = (
                f"cluster_e_min ({self.cluster_e_min}) exceeds "
                f"cluster_e_max ({self.cluster_e_max})"
            )
            raise ValueError(msg)
        return self


class BatchConfig(BaseModel, frozen=True):
    """Batched inference settings.

    With ``do_batches`` off every cluster is run alone (batch size 1).
    Otherwise clusters are buffered until ``number_of_batches`` full batches
    of ``size_of_batch`` are available, and each batch is one model call.

    partial_policy:
        flush: send the trailing short batch as is.
        pad: zero-pad it to ``size_of_batch``; padding rows are discarded.
    """

    do_batches: bool = False
    number_of_batches: int = Field(default=1, ge=1)
    size_of_batch: int = Field(default=1, ge=1)
    partial_policy: Literal["flush", "pad"] = "flush"

    @model_validator(mode="after")
    def _single_mode_uses_unit_batches(self) -> "BatchConfig":
        """Batch sizes are meaningless when batching is disabled."""
        if not self.do_batches:
            # Use object.__setattr__ because model is frozen
            object.__setattr__(self, "size_of_batch", 1)
            object.__setattr__(self, "number_of_batches", 1)
        return self

    @property
    def capacity(self) -> int:
        """Clusters buffered before a flush."""
        return self.size_of_batch * self.number_of_batches


class PipelineConfig(BaseModel, frozen=True):
    """Top-level configuration for a cluster calibration run."""

    model_path: str
    providers: list[str] | None = None
    selection: SelectionConfig = SelectionConfig()
    batching: BatchConfig = BatchConfig()
    store_images: bool = False
    log_level: str = "INFO"
