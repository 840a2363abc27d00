"""Configuration loading utilities for pointhub."""

from .schema import (
    PipelineConfig,
    SinkConfig,
    SourceConfig,
    load_config,
    parse_pipeline_config,
)

__all__ = ["PipelineConfig", "SinkConfig", "SourceConfig", "load_config", "parse_pipeline_config"]
