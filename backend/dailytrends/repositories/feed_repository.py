"""
Feed persistence for the ingestion core.

``FeedStore`` is the contract the ingestion service depends on; the core only
calls ``find_by_url``, ``create`` and ``count``. The remaining operations serve
the HTTP API layer.

``FeedRepository`` implements it over SQLAlchemy async sessions. Each call
runs in its own short-lived session so concurrent sources never share one.
The unique index on ``feeds.url`` is the final guard against duplicates: a
create that loses a race raises ``IntegrityError`` to the caller.

Usage:
    from dailytrends.repositories import FeedRepository

    repository = FeedRepository(session_factory)
    existing = await repository.find_by_url(url)
"""

import logging
import uuid
from datetime import datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Protocol, Union

from sqlalchemy import delete as sa_delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dailytrends.models.db.feed import FeedItemRecord
from dailytrends.models.feed import FeedItem, FeedItemCreate, NewsSource

logger = logging.getLogger(__name__)

FRONT_PAGE_LIMIT = 10

_UPDATABLE_FIELDS = {
    "title",
    "description",
    "url",
    "source",
    "published_at",
    "image_url",
    "category",
    "is_manual",
}


class FeedStore(Protocol):
    """Persistence operations consumed by the ingestion service."""

    async def find_by_url(self, url: str) -> Optional[FeedItem]: ...

    async def create(self, item: FeedItemCreate) -> FeedItem: ...

    async def count(self) -> int: ...


def _parse_id(item_id: Union[str, uuid.UUID]) -> Optional[uuid.UUID]:
    if isinstance(item_id, uuid.UUID):
        return item_id
    try:
        return uuid.UUID(str(item_id))
    except ValueError:
        return None


class FeedRepository:
    """SQLAlchemy-backed store for news items."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(self, item: FeedItemCreate) -> FeedItem:
        record = FeedItemRecord(
            title=item.title,
            description=item.description,
            url=item.url,
            source=item.source.value,
            published_at=item.published_at,
            image_url=item.image_url,
            category=item.category,
            is_manual=item.is_manual,
        )
        async with self._session_factory() as session:
            session.add(record)
            await session.commit()
            await session.refresh(record)
        return FeedItem.model_validate(record)

    async def find_by_id(self, item_id: Union[str, uuid.UUID]) -> Optional[FeedItem]:
        parsed = _parse_id(item_id)
        if parsed is None:
            return None
        async with self._session_factory() as session:
            record = await session.get(FeedItemRecord, parsed)
        return FeedItem.model_validate(record) if record else None

    async def find_by_url(self, url: str) -> Optional[FeedItem]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(FeedItemRecord).where(FeedItemRecord.url == url).limit(1)
            )
            record = result.scalar_one_or_none()
        return FeedItem.model_validate(record) if record else None

    async def find_by_source(self, source: NewsSource) -> List[FeedItem]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(FeedItemRecord)
                .where(FeedItemRecord.source == source.value)
                .order_by(FeedItemRecord.published_at.desc())
            )
            records = result.scalars().all()
        return [FeedItem.model_validate(r) for r in records]

    async def find_todays_front_page(self, source: NewsSource) -> List[FeedItem]:
        """Scraped (non-manual) items of ``source`` published today (UTC)."""
        today = datetime.combine(
            datetime.now(timezone.utc).date(), time.min, tzinfo=timezone.utc
        )
        tomorrow = today + timedelta(days=1)

        async with self._session_factory() as session:
            result = await session.execute(
                select(FeedItemRecord)
                .where(
                    FeedItemRecord.source == source.value,
                    FeedItemRecord.is_manual == False,  # noqa: E712
                    FeedItemRecord.published_at >= today,
                    FeedItemRecord.published_at < tomorrow,
                )
                .order_by(FeedItemRecord.published_at.desc())
                .limit(FRONT_PAGE_LIMIT)
            )
            records = result.scalars().all()
        return [FeedItem.model_validate(r) for r in records]

    async def update(
        self, item_id: Union[str, uuid.UUID], changes: Dict[str, Any]
    ) -> Optional[FeedItem]:
        parsed = _parse_id(item_id)
        if parsed is None:
            return None

        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        async with self._session_factory() as session:
            record = await session.get(FeedItemRecord, parsed)
            if record is None:
                return None
            for key, value in changes.items():
                if key == "source" and isinstance(value, NewsSource):
                    value = value.value
                setattr(record, key, value)
            await session.commit()
            await session.refresh(record)
        return FeedItem.model_validate(record)

    async def delete(self, item_id: Union[str, uuid.UUID]) -> bool:
        parsed = _parse_id(item_id)
        if parsed is None:
            return False
        async with self._session_factory() as session:
            result = await session.execute(
                sa_delete(FeedItemRecord).where(FeedItemRecord.id == parsed)
            )
            await session.commit()
        return (result.rowcount or 0) > 0

    async def count(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count()).select_from(FeedItemRecord)
            )
            return int(result.scalar_one())

    async def exists(self, url: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                select(FeedItemRecord.id).where(FeedItemRecord.url == url).limit(1)
            )
            return result.scalar_one_or_none() is not None
