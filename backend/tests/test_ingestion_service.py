"""
Unit Tests for the Content Ingestion Service

Tests the dedupe gate and the batch/source/multi-source fan-out:
- save_if_new idempotence and sequential batch processing
- Per-URL failure counting and tagged outcomes
- Disabled sources, seed URLs vs. extractor discovery
- Per-source failure isolation and total statistics

Usage:
    cd backend && pytest tests/test_ingestion_service.py -v
"""

import os
import sys
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from dailytrends.ingestion_service import (
    ContentIngestionService,
    calculate_total_stats,
    merge_results,
)
from dailytrends.models.feed import (
    FeedItem,
    FeedItemCreate,
    IngestOutcome,
    NewsSource,
    ScrapingResult,
    SourceConfig,
)
from dailytrends.source_fetchers.document_fetcher import ScrapedDocument


# ============================================================================
# FIXTURES AND TEST DATA FACTORIES
# ============================================================================

PUBLISHED = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


def make_document(url: str) -> ScrapedDocument:
    return ScrapedDocument(
        title=f"Headline for {url}",
        description="Standfirst",
        url=url,
        published_at=PUBLISHED,
    )


def make_item(url: str = "https://elpais.com/espana/a.html") -> FeedItemCreate:
    return FeedItemCreate(
        title="Headline",
        description="Standfirst",
        url=url,
        source=NewsSource.EL_PAIS,
        published_at=PUBLISHED,
    )


class InMemoryFeedStore:
    """Minimal FeedStore keyed by url, recording create calls."""

    def __init__(self, existing_urls=()):
        self.items = {}
        self.create_calls = []
        for url in existing_urls:
            self.items[url] = self._stored(make_item(url))

    @staticmethod
    def _stored(item: FeedItemCreate) -> FeedItem:
        return FeedItem(id=str(uuid4()), **item.model_dump())

    async def find_by_url(self, url):
        return self.items.get(url)

    async def create(self, item):
        self.create_calls.append(item)
        stored = self._stored(item)
        self.items[item.url] = stored
        return stored

    async def count(self):
        return len(self.items)


def make_fetcher(documents: dict = None) -> MagicMock:
    """Mock DocumentFetcher returning documents by url (None when absent)."""
    documents = documents or {}
    fetcher = MagicMock()
    fetcher.fetch = AsyncMock(side_effect=lambda url: documents.get(url))
    return fetcher


def make_service(store=None, fetcher=None, extractor_factory=None) -> ContentIngestionService:
    kwargs = {}
    if extractor_factory is not None:
        kwargs["extractor_factory"] = extractor_factory
    return ContentIngestionService(
        store if store is not None else InMemoryFeedStore(),
        fetcher if fetcher is not None else make_fetcher(),
        **kwargs,
    )


# ============================================================================
# DEDUPE GATE
# ============================================================================

class TestSaveIfNew:
    """Tests for the lookup-then-create persistence gate."""

    @pytest.mark.asyncio
    async def test_new_item_is_created(self):
        store = InMemoryFeedStore()
        service = make_service(store)

        saved = await service.save_if_new(make_item())

        assert saved is not None
        assert saved.url == "https://elpais.com/espana/a.html"
        assert len(store.create_calls) == 1

    @pytest.mark.asyncio
    async def test_second_save_is_duplicate(self):
        store = InMemoryFeedStore()
        service = make_service(store)

        first = await service.save_if_new(make_item())
        second = await service.save_if_new(make_item())

        assert first is not None
        assert second is None
        assert len(store.create_calls) == 1
        assert await store.count() == 1

    @pytest.mark.asyncio
    async def test_existing_url_never_reaches_create(self):
        repository = MagicMock()
        repository.find_by_url = AsyncMock(return_value=MagicMock())
        repository.create = AsyncMock()
        service = make_service(repository)

        assert await service.save_if_new(make_item()) is None
        repository.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_batch_dedupes_within_itself(self):
        store = InMemoryFeedStore()
        service = make_service(store)

        results = await service.process_feed_batch([make_item(), make_item()])

        assert results[0] is not None
        assert results[1] is None
        assert len(store.create_calls) == 1

    @pytest.mark.asyncio
    async def test_batch_propagates_store_errors(self):
        repository = MagicMock()
        repository.find_by_url = AsyncMock(return_value=None)
        repository.create = AsyncMock(side_effect=RuntimeError("database unavailable"))
        service = make_service(repository)

        with pytest.raises(RuntimeError):
            await service.process_feed_batch([make_item()])


# ============================================================================
# SCRAPE FROM URLS
# ============================================================================

class TestScrapeFromUrls:
    """Tests for scrape_from_urls."""

    @pytest.mark.asyncio
    async def test_partial_failure_counts(self):
        ok_url = "https://elpais.com/espana/ok.html"
        bad_url = "https://elpais.com/espana/bad.html"
        store = InMemoryFeedStore()
        service = make_service(store, make_fetcher({ok_url: make_document(ok_url)}))

        result = await service.scrape_from_urls([ok_url, bad_url], NewsSource.EL_PAIS)

        assert (result.success, result.failed, result.duplicates) == (1, 1, 0)
        assert result.outcomes == [IngestOutcome.CREATED, IngestOutcome.FAILED]
        assert result.items[0].source == NewsSource.EL_PAIS

    @pytest.mark.asyncio
    async def test_duplicates_are_counted(self):
        new_url = "https://elpais.com/espana/new.html"
        old_url = "https://elpais.com/espana/old.html"
        store = InMemoryFeedStore(existing_urls=[old_url])
        fetcher = make_fetcher({u: make_document(u) for u in (old_url, new_url)})
        service = make_service(store, fetcher)

        result = await service.scrape_from_urls([old_url, new_url], NewsSource.EL_PAIS)

        assert (result.success, result.failed, result.duplicates) == (1, 0, 1)
        assert result.items[0] is None
        assert result.outcomes == [IngestOutcome.DUPLICATE, IngestOutcome.CREATED]
        assert result.total == 2

    @pytest.mark.asyncio
    async def test_nothing_extracted_skips_persistence(self):
        repository = MagicMock()
        repository.find_by_url = AsyncMock()
        repository.create = AsyncMock()
        service = make_service(repository, make_fetcher())

        urls = ["https://elpais.com/espana/a.html", "https://elpais.com/espana/b.html"]
        result = await service.scrape_from_urls(urls, NewsSource.EL_PAIS)

        assert (result.success, result.failed, result.duplicates) == (0, 2, 0)
        assert result.items == []
        repository.find_by_url.assert_not_called()
        repository.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_raising_fetch_counts_as_failed(self):
        ok_url = "https://elpais.com/espana/ok.html"

        async def fetch(url):
            if url == ok_url:
                return make_document(url)
            raise RuntimeError("connection reset")

        fetcher = MagicMock()
        fetcher.fetch = AsyncMock(side_effect=fetch)
        service = make_service(InMemoryFeedStore(), fetcher)

        result = await service.scrape_from_urls(
            [ok_url, "https://elpais.com/espana/reset.html"], NewsSource.EL_PAIS
        )

        assert (result.success, result.failed) == (1, 1)


# ============================================================================
# SCRAPE FROM SOURCE
# ============================================================================

class TestScrapeFromSource:
    """Tests for scrape_from_source."""

    @pytest.mark.asyncio
    async def test_disabled_source_short_circuits(self):
        fetcher = make_fetcher()
        factory = MagicMock()
        service = make_service(fetcher=fetcher, extractor_factory=factory)
        config = SourceConfig(
            name="El País",
            source=NewsSource.EL_PAIS,
            web_urls=["https://elpais.com/espana/a.html"],
            enabled=False,
        )

        result = await service.scrape_from_source(config)

        assert (result.success, result.failed, result.duplicates) == (0, 0, 0)
        fetcher.fetch.assert_not_called()
        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_seed_urls_are_used_directly(self):
        url = "https://elpais.com/espana/a.html"
        factory = MagicMock()
        service = make_service(
            fetcher=make_fetcher({url: make_document(url)}), extractor_factory=factory
        )
        config = SourceConfig(name="El País", source=NewsSource.EL_PAIS, web_urls=[url])

        result = await service.scrape_from_source(config)

        assert result.success == 1
        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_seed_urls_uses_extractor_discovery(self):
        url = "https://elmundo.es/espana/a.html"
        extractor = MagicMock()
        extractor.name = "El Mundo"
        extractor.is_enabled.return_value = True
        extractor.discover_urls = AsyncMock(return_value=[url])
        factory = MagicMock(return_value=extractor)
        fetcher = make_fetcher({url: make_document(url)})
        service = make_service(fetcher=fetcher, extractor_factory=factory)
        config = SourceConfig(name="El Mundo", source=NewsSource.EL_MUNDO)

        result = await service.scrape_from_source(config)

        factory.assert_called_once_with(NewsSource.EL_MUNDO, fetcher)
        assert result.success == 1
        assert result.items[0].source == NewsSource.EL_MUNDO

    @pytest.mark.asyncio
    async def test_no_seed_urls_and_no_extractor(self):
        factory = MagicMock(return_value=None)
        service = make_service(extractor_factory=factory)
        config = SourceConfig(name="Manual", source=NewsSource.MANUAL)

        result = await service.scrape_from_source(config)

        assert result.total == 0


# ============================================================================
# MULTIPLE SOURCES
# ============================================================================

class TestScrapeFromMultipleSources:
    """Tests for scrape_from_multiple_sources and the stats helpers."""

    @pytest.mark.asyncio
    async def test_source_exception_is_isolated(self):
        service = make_service()

        async def scrape(config):
            if config.name == "El País":
                raise RuntimeError("database unavailable")
            return ScrapingResult(success=3, duplicates=1)

        service.scrape_from_source = AsyncMock(side_effect=scrape)
        configs = ContentIngestionService.default_source_configs()

        results = await service.scrape_from_multiple_sources(configs)

        assert list(results) == ["El País", "El Mundo"]
        assert (results["El País"].success, results["El País"].failed) == (0, 1)
        assert results["El Mundo"].success == 3

    @pytest.mark.asyncio
    async def test_empty_config_list(self):
        service = make_service()

        assert await service.scrape_from_multiple_sources([]) == {}

    def test_default_source_configs(self):
        configs = ContentIngestionService.default_source_configs()

        assert [(c.name, c.source, c.enabled) for c in configs] == [
            ("El País", NewsSource.EL_PAIS, True),
            ("El Mundo", NewsSource.EL_MUNDO, True),
        ]
        assert all(not c.web_urls for c in configs)

    def test_calculate_total_stats(self):
        results = {
            "a": ScrapingResult(success=2, failed=1, duplicates=3),
            "b": ScrapingResult(success=1, failed=0, duplicates=1),
        }

        total = calculate_total_stats(results)

        assert (total.success, total.failed, total.duplicates) == (3, 1, 4)

    def test_merge_results_concatenates_outcomes(self):
        merged = merge_results(
            ScrapingResult(success=1, outcomes=[IngestOutcome.CREATED]),
            ScrapingResult.failure(2),
        )

        assert merged.failed == 2
        assert merged.outcomes == [
            IngestOutcome.CREATED,
            IngestOutcome.FAILED,
            IngestOutcome.FAILED,
        ]
