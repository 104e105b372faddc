"""
Front-page extractors for the supported newspapers.

Every newspaper is described by a ``NewspaperConfig`` value (base URL and the
section paths that hold real articles) and served by a ``FrontPageExtractor``.
A registry keyed by ``NewsSource`` resolves a source to its extractor; new
newspapers are added with ``register_extractor`` rather than by subclassing.

Usage:
    from dailytrends.source_fetchers.extractors import create_extractor

    extractor = create_extractor(NewsSource.EL_PAIS, fetcher)
    urls = await extractor.discover_urls()
    items = await extractor.extract_news()
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence
from urllib.parse import urldefrag, urljoin, urlparse

from bs4 import BeautifulSoup

from dailytrends.models.feed import FeedItemCreate, NewsSource
from dailytrends.source_fetchers.document_fetcher import (
    DocumentFetcher,
    ScrapedDocument,
    make_soup,
    to_feed_item,
)

logger = logging.getLogger(__name__)

# Bound on article URLs taken from one front page
MAX_FRONT_PAGE_URLS = 20


@dataclass(frozen=True)
class NewspaperConfig:
    """Where a newspaper's front page lives and which sections to follow."""

    name: str
    source: NewsSource
    base_url: str
    front_page_url: str
    section_prefixes: Sequence[str]
    enabled: bool = True


class SourceExtractor(Protocol):
    """Capabilities the ingestion service expects from an extractor."""

    name: str
    source: NewsSource

    def is_enabled(self) -> bool: ...

    async def discover_urls(self) -> List[str]: ...

    async def extract_news(self) -> List[FeedItemCreate]: ...


def _same_site(netloc: str, domain: str) -> bool:
    netloc = netloc.lower()
    return netloc == domain or netloc.endswith("." + domain)


def select_article_urls(
    soup: BeautifulSoup,
    config: NewspaperConfig,
    limit: int = MAX_FRONT_PAGE_URLS,
) -> List[str]:
    """
    Pick article links out of a parsed front page.

    Relative links are resolved against the newspaper's base URL; only links
    on the newspaper's own domain whose path starts with a known section are
    kept. Order of first appearance is preserved.
    """
    domain = urlparse(config.base_url).netloc.lower()
    if domain.startswith("www."):
        domain = domain[4:]

    urls: List[str] = []
    seen = set()

    for link in soup.find_all("a", href=True):
        href = link["href"].strip()
        if not href or href.startswith(("#", "javascript:", "mailto:")):
            continue

        absolute, _ = urldefrag(urljoin(config.base_url, href))
        parsed = urlparse(absolute)
        if parsed.scheme not in ("http", "https") or not _same_site(parsed.netloc, domain):
            continue
        if not any(parsed.path.startswith(prefix) for prefix in config.section_prefixes):
            continue

        if absolute in seen:
            continue
        seen.add(absolute)
        urls.append(absolute)

        if len(urls) >= limit:
            break

    return urls


class FrontPageExtractor:
    """Discovers and scrapes the articles linked from one front page."""

    def __init__(self, config: NewspaperConfig, fetcher: DocumentFetcher):
        self.config = config
        self.fetcher = fetcher

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def source(self) -> NewsSource:
        return self.config.source

    def is_enabled(self) -> bool:
        return self.config.enabled

    async def discover_urls(self) -> List[str]:
        """Article URLs on the front page, at most ``MAX_FRONT_PAGE_URLS``."""
        html = await self.fetcher.fetch_html(self.config.front_page_url)
        if not html:
            return []

        try:
            soup = make_soup(html)
            return select_article_urls(soup, self.config)
        except Exception as e:
            logger.error(f"Error extracting {self.name} URLs: {e}")
            return []

    async def _scrape_article(self, url: str) -> Optional[ScrapedDocument]:
        try:
            return await self.fetcher.fetch(url)
        except Exception as e:
            logger.error(f"Error scraping article {url}: {e}")
            return None

    async def extract_news(self) -> List[FeedItemCreate]:
        """Scrape every discovered article, dropping the ones that fail."""
        try:
            logger.info(f"Extracting front page URLs for {self.name}")
            urls = await self.discover_urls()

            if not urls:
                logger.warning(f"No URLs found for {self.name}")
                return []

            logger.info(f"Found {len(urls)} articles for {self.name}")
            documents = await asyncio.gather(*(self._scrape_article(u) for u in urls))

            return [to_feed_item(doc, self.source) for doc in documents if doc]
        except Exception as e:
            logger.error(f"Error extracting news for {self.name}: {e}")
            return []


# ============================================================================
# Registry
# ============================================================================

EL_PAIS = NewspaperConfig(
    name="El País",
    source=NewsSource.EL_PAIS,
    base_url="https://elpais.com",
    front_page_url="https://elpais.com",
    section_prefixes=("/politica/", "/economia/", "/sociedad/", "/internacional/", "/espana/"),
)

EL_MUNDO = NewspaperConfig(
    name="El Mundo",
    source=NewsSource.EL_MUNDO,
    base_url="https://elmundo.es",
    front_page_url="https://elmundo.es",
    section_prefixes=("/espana/", "/internacional/", "/economia/", "/sociedad/", "/politica/"),
)

_REGISTRY: Dict[NewsSource, NewspaperConfig] = {}


def register_extractor(config: NewspaperConfig) -> None:
    """Register (or replace) the newspaper served for ``config.source``."""
    if config.source is NewsSource.MANUAL:
        raise ValueError("Manual items have no front page to extract")
    _REGISTRY[config.source] = config


def registered_sources() -> List[NewsSource]:
    return list(_REGISTRY)


def create_extractor(
    source: NewsSource, fetcher: DocumentFetcher
) -> Optional[FrontPageExtractor]:
    """Extractor for ``source``, or None when no newspaper is registered."""
    config = _REGISTRY.get(source)
    if config is None:
        logger.warning(f"No extractor available for source: {getattr(source, 'value', source)}")
        return None
    return FrontPageExtractor(config, fetcher)


def get_all_extractors(fetcher: DocumentFetcher) -> List[FrontPageExtractor]:
    """One extractor per registered newspaper, in registration order."""
    return [FrontPageExtractor(config, fetcher) for config in _REGISTRY.values()]


register_extractor(EL_PAIS)
register_extractor(EL_MUNDO)
