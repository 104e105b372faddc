"""
Feed Models for the DailyTrends ingestion core.

Supports:
- NewsSource: the fixed set of known newspapers plus the manual sentinel
- FeedItemCreate / FeedItem: a news item before and after persistence
- SourceConfig: one configured source for an ingestion run
- ScrapingResult: aggregate counters for a batch of URLs or a source
- ScheduleConfig / SchedulerStats: scheduler configuration and run counters

Database Table: feeds
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NewsSource(str, Enum):
    """Known news origins."""

    EL_PAIS = "El País"
    EL_MUNDO = "El Mundo"
    MANUAL = "Manual"


class FeedItemCreate(BaseModel):
    """A news item ready to go through the dedupe gate."""

    title: str = Field(..., min_length=1, description="Headline")
    description: str = Field(..., min_length=1, description="Standfirst / summary")
    url: str = Field(..., min_length=1, description="Canonical article URL (unique)")
    source: NewsSource
    published_at: datetime = Field(default_factory=_utcnow)
    image_url: Optional[str] = None
    category: Optional[str] = None
    is_manual: bool = False

    @field_validator("title", "description")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class FeedItem(FeedItemCreate):
    """A persisted news item with store-assigned id and timestamps."""

    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v)


@dataclass
class SourceConfig:
    """Configuration for one news source in an ingestion run."""

    name: str
    source: NewsSource
    web_urls: Optional[List[str]] = None
    enabled: bool = True


class IngestOutcome(str, Enum):
    """Tagged per-item outcome of a scraping batch."""

    CREATED = "created"
    DUPLICATE = "duplicate"
    FAILED = "failed"


@dataclass
class ScrapingResult:
    """Outcome of scraping a batch of URLs or a whole source.

    ``success + duplicates`` counts items that reached the persistence gate;
    ``failed`` counts URLs that never produced an item. ``items`` holds one
    slot per gated item (``None`` for a duplicate) and ``outcomes`` holds the
    tagged outcome of every URL, failures included.
    """

    success: int = 0
    failed: int = 0
    duplicates: int = 0
    items: List[Optional[FeedItem]] = field(default_factory=list)
    outcomes: List[IngestOutcome] = field(default_factory=list)

    @classmethod
    def failure(cls, failed: int = 1) -> "ScrapingResult":
        return cls(failed=failed, outcomes=[IngestOutcome.FAILED] * failed)

    @property
    def total(self) -> int:
        return self.success + self.failed + self.duplicates


class ScheduleConfig(BaseModel):
    """Scheduler configuration. Replaced as a whole, never mutated."""

    interval_minutes: float = Field(30, gt=0, description="Minutes between cycles")
    max_retries: int = Field(3, ge=0, description="Extra attempts after a failed cycle")
    retry_delay_minutes: float = Field(5, ge=0, description="Wait between attempts")
    enabled: bool = True

    model_config = ConfigDict(frozen=True, extra="forbid")


@dataclass
class SchedulerStats:
    """Run counters owned by the scheduler."""

    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None
    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    total_items_scraped: int = 0
    total_duplicates: int = 0
