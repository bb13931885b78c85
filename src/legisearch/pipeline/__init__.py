"""Pipeline orchestration."""

from .service import IngestionPipeline, PipelineConfig, build_payload, build_pipeline

__all__ = ["IngestionPipeline", "PipelineConfig", "build_payload", "build_pipeline"]
