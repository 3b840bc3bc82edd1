"""
Brand Ingest.

Turns a merchant website URL into a structured brand profile (name, logo,
hero image, palette, typography, voice and a small product catalog) within
a fixed wall-clock budget, using a headless browser and LangGraph.
"""

__version__ = "1.0.0"


# Lazy imports to avoid pulling in the browser stack on package import
def get_pipeline():
    """Get the IngestionPipeline class (lazy import)."""
    from brand_ingest.pipeline.orchestrator import IngestionPipeline
    return IngestionPipeline


async def ingest(url: str):
    """Ingest a brand website with the shared pipeline. Never raises."""
    from brand_ingest.pipeline.orchestrator import ingest as _ingest
    return await _ingest(url)


__all__ = ["get_pipeline", "ingest", "__version__"]
