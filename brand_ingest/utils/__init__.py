"""Utils module for the brand ingestion pipeline."""

from brand_ingest.utils.logger import (
    EventSink,
    LogContext,
    RecordingEventSink,
    StructlogEventSink,
    get_logger,
    setup_logging,
)
from brand_ingest.utils.retry import (
    BlockedUrlError,
    ErrorHandler,
    ExtractionFailedError,
    InvalidUrlError,
    NavigationFailedError,
    ParseFailedError,
    ScrapeTimeoutError,
    ScraperError,
    with_retries,
)
from brand_ingest.utils.budget import TimeBudget
from brand_ingest.utils.scoring import CandidatePool, ScoreCandidate, rank_candidates, select_best

__all__ = [
    "get_logger",
    "setup_logging",
    "LogContext",
    "EventSink",
    "StructlogEventSink",
    "RecordingEventSink",
    "ScraperError",
    "InvalidUrlError",
    "BlockedUrlError",
    "ScrapeTimeoutError",
    "NavigationFailedError",
    "ParseFailedError",
    "ExtractionFailedError",
    "ErrorHandler",
    "with_retries",
    "TimeBudget",
    "ScoreCandidate",
    "CandidatePool",
    "rank_candidates",
    "select_best",
]
