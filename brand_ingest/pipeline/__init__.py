"""Pipeline module for the brand ingestion pipeline."""

from brand_ingest.pipeline.fallback import build_fallback_profile
from brand_ingest.pipeline.orchestrator import (
    IngestionPipeline,
    IngestionState,
    RunContext,
    get_pipeline,
    ingest,
    shutdown,
)

__all__ = [
    "IngestionPipeline",
    "IngestionState",
    "RunContext",
    "build_fallback_profile",
    "get_pipeline",
    "ingest",
    "shutdown",
]
