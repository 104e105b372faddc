"""
DailyTrends Models

Pydantic models and dataclasses shared by the ingestion pipeline.
"""

from .feed import (
    NewsSource,
    FeedItemCreate,
    FeedItem,
    SourceConfig,
    IngestOutcome,
    ScrapingResult,
    ScheduleConfig,
    SchedulerStats,
)

__all__ = [
    "NewsSource",
    "FeedItemCreate",
    "FeedItem",
    "SourceConfig",
    "IngestOutcome",
    "ScrapingResult",
    "ScheduleConfig",
    "SchedulerStats",
]
