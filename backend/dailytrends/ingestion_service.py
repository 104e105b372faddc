"""
Content Ingestion Service for DailyTrends.

Fans article scraping out across URLs and across sources, runs every scraped
item through the dedupe gate and rolls the outcomes up into per-source and
total statistics.

Usage:
    from dailytrends.ingestion_service import ContentIngestionService

    service = ContentIngestionService(repository, fetcher)
    results = await service.scrape_from_multiple_sources(
        ContentIngestionService.default_source_configs()
    )
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional, Sequence

from dailytrends.models.feed import (
    FeedItem,
    FeedItemCreate,
    IngestOutcome,
    NewsSource,
    ScrapingResult,
    SourceConfig,
)
from dailytrends.repositories.feed_repository import FeedStore
from dailytrends.source_fetchers.document_fetcher import DocumentFetcher, to_feed_item
from dailytrends.source_fetchers.extractors import SourceExtractor, create_extractor

logger = logging.getLogger(__name__)

ExtractorFactory = Callable[[NewsSource, DocumentFetcher], Optional[SourceExtractor]]


def merge_results(first: ScrapingResult, second: ScrapingResult) -> ScrapingResult:
    return ScrapingResult(
        success=first.success + second.success,
        failed=first.failed + second.failed,
        duplicates=first.duplicates + second.duplicates,
        items=[*first.items, *second.items],
        outcomes=[*first.outcomes, *second.outcomes],
    )


def calculate_total_stats(results: Dict[str, ScrapingResult]) -> ScrapingResult:
    total = ScrapingResult()
    for result in results.values():
        total = merge_results(total, result)
    return total


class ContentIngestionService:
    """
    Scrapes news sources and stores the new items.

    Responsibilities:
      - Fetch article URLs concurrently, tolerating individual failures
      - Resolve a source's URLs from its seed list or its front-page extractor
      - Persist items through the dedupe gate (lookup by url, create if absent)
      - Keep one source's failure from aborting a multi-source batch
    """

    def __init__(
        self,
        repository: FeedStore,
        fetcher: DocumentFetcher,
        extractor_factory: ExtractorFactory = create_extractor,
    ):
        self.repository = repository
        self.fetcher = fetcher
        self.extractor_factory = extractor_factory

    # -----------------------------------------------------------------------
    # Dedupe gate
    # -----------------------------------------------------------------------

    async def save_if_new(self, item: FeedItemCreate) -> Optional[FeedItem]:
        """Create ``item`` unless its url is already stored.

        Returns the stored item, or None for a duplicate. The lookup and the
        insert are not atomic; a concurrent writer of the same url makes the
        create raise from the store's unique constraint.
        """
        existing = await self.repository.find_by_url(item.url)
        if existing:
            logger.debug(f"Duplicate url skipped: {item.url}")
            return None
        return await self.repository.create(item)

    async def process_feed_batch(
        self, items: Sequence[FeedItemCreate]
    ) -> List[Optional[FeedItem]]:
        """Run every item through the dedupe gate, in order.

        Persistence errors propagate to the caller.
        """
        results: List[Optional[FeedItem]] = []
        for item in items:
            results.append(await self.save_if_new(item))
        return results

    # -----------------------------------------------------------------------
    # Scraping
    # -----------------------------------------------------------------------

    async def _scrape_url(self, url: str, source: NewsSource) -> Optional[FeedItemCreate]:
        try:
            document = await self.fetcher.fetch(url)
            return to_feed_item(document, source) if document else None
        except Exception as e:
            logger.error(f"Error scraping URL {url}: {e}")
            return None

    async def scrape_from_urls(
        self, urls: Sequence[str], source: NewsSource
    ) -> ScrapingResult:
        """
        Scrape a list of article URLs and store the new items.

        Args:
            urls: Article URLs, fetched concurrently
            source: Source the items are attributed to

        Returns:
            ScrapingResult where ``failed`` counts URLs that produced no item
            and ``success``/``duplicates`` classify the gated items
        """
        logger.info(f"Starting web scraping from {len(urls)} URLs for {source.value}")

        scraped = await asyncio.gather(*(self._scrape_url(url, source) for url in urls))
        feed_items = [item for item in scraped if item is not None]

        if not feed_items:
            logger.warning("No items scraped from web URLs")
            return ScrapingResult.failure(len(urls))

        saved = await self.process_feed_batch(feed_items)

        outcomes: List[IngestOutcome] = []
        saved_iter = iter(saved)
        for item in scraped:
            if item is None:
                outcomes.append(IngestOutcome.FAILED)
            elif next(saved_iter) is not None:
                outcomes.append(IngestOutcome.CREATED)
            else:
                outcomes.append(IngestOutcome.DUPLICATE)

        success = sum(1 for item in saved if item is not None)
        return ScrapingResult(
            success=success,
            failed=len(urls) - len(feed_items),
            duplicates=len(saved) - success,
            items=saved,
            outcomes=outcomes,
        )

    async def _discover_urls(self, config: SourceConfig) -> List[str]:
        extractor = self.extractor_factory(config.source, self.fetcher)
        if extractor is None:
            return []
        if not extractor.is_enabled():
            logger.info(f"Skipping disabled extractor: {extractor.name}")
            return []

        urls = await extractor.discover_urls()
        if not urls:
            logger.warning(f"No URLs found for {config.name}")
        return urls

    async def scrape_from_source(self, config: SourceConfig) -> ScrapingResult:
        """
        Scrape one configured source.

        Uses the seed URLs when the config lists any, otherwise the URLs the
        source's front-page extractor discovers.
        """
        if not config.enabled:
            logger.info(f"Skipping disabled source: {config.name}")
            return ScrapingResult()

        logger.info(f"Starting content scraping for source: {config.name}")

        total_result = ScrapingResult()

        urls = list(config.web_urls or []) or await self._discover_urls(config)
        if urls:
            web_result = await self.scrape_from_urls(urls, config.source)
            total_result = merge_results(total_result, web_result)

        logger.info(
            f"Completed scraping for {config.name}: {total_result.success} success, "
            f"{total_result.failed} failed, {total_result.duplicates} duplicates"
        )
        return total_result

    async def _scrape_source_safely(self, config: SourceConfig) -> ScrapingResult:
        try:
            return await self.scrape_from_source(config)
        except Exception as e:
            logger.error(f"Error scraping source {config.name}: {e}")
            return ScrapingResult.failure(1)

    async def scrape_from_multiple_sources(
        self, configs: Sequence[SourceConfig]
    ) -> Dict[str, ScrapingResult]:
        """
        Scrape every source concurrently.

        A source that raises is reported as ``{failed: 1}`` and never aborts
        the others. Results are keyed by config name, in config order.
        """
        logger.info(f"Starting batch scraping from {len(configs)} sources")

        scraped = await asyncio.gather(
            *(self._scrape_source_safely(config) for config in configs)
        )
        results = {config.name: result for config, result in zip(configs, scraped)}

        total = calculate_total_stats(results)
        logger.info(
            f"Batch scraping completed: {total.success} total success, "
            f"{total.failed} total failed, {total.duplicates} total duplicates"
        )
        return results

    @staticmethod
    def default_source_configs() -> List[SourceConfig]:
        """The known newspapers, all enabled, discovered from their front pages."""
        return [
            SourceConfig(name="El País", source=NewsSource.EL_PAIS, enabled=True),
            SourceConfig(name="El Mundo", source=NewsSource.EL_MUNDO, enabled=True),
        ]
