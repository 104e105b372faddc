"""
Article document fetcher with BeautifulSoup metadata extraction.

This module fetches single article pages using aiohttp and extracts the
canonical metadata every news item needs: title, description and publish
time. Each field is read through an ordered fallback chain of meta tags;
a page without a usable title or description is discarded entirely.

Usage:
    from dailytrends.source_fetchers.document_fetcher import DocumentFetcher

    async with DocumentFetcher() as fetcher:
        document = await fetcher.fetch("https://elpais.com/espana/...")
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence, Tuple

import aiohttp
from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from dailytrends.models.feed import FeedItemCreate, NewsSource

logger = logging.getLogger(__name__)

# ============================================================================
# Configuration
# ============================================================================

# Default timeout for HTTP requests (seconds)
DEFAULT_TIMEOUT = 30

# Upper bound on requests in flight through one fetcher
DEFAULT_MAX_CONCURRENT = 10

USER_AGENT = "Mozilla/5.0 (compatible; DailyTrends/1.0)"

REQUEST_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}

# (attribute, value) pairs tried in order for each field
TITLE_METAS: Sequence[Tuple[str, str]] = (
    ("property", "og:title"),
    ("name", "twitter:title"),
)

DESCRIPTION_METAS: Sequence[Tuple[str, str]] = (
    ("property", "og:description"),
    ("name", "twitter:description"),
    ("name", "description"),
)

DATE_METAS: Sequence[Tuple[str, str]] = (
    ("property", "article:published_time"),
    ("name", "pubdate"),
)

# Two defaults differing in year, month and day; a date part missing from
# the parsed value shows up as a difference between the two results
_DATE_SENTINELS = (datetime(2000, 1, 1), datetime(2001, 2, 2))


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class ScrapedDocument:
    """Metadata extracted from one article page. Never persisted."""
    title: str
    description: str
    url: str
    published_at: datetime


# ============================================================================
# Parsing helpers
# ============================================================================

def make_soup(html: str) -> BeautifulSoup:
    try:
        return BeautifulSoup(html, "lxml")
    except Exception as e:
        logger.debug(f"lxml parser unavailable, falling back to html.parser: {e}")
        return BeautifulSoup(html, "html.parser")


def _meta_content(soup: BeautifulSoup, attr: str, value: str) -> Optional[str]:
    """Return the stripped ``content`` of the first matching meta tag.

    Publishers mix ``property`` and ``name`` for OpenGraph and Twitter cards,
    so both attributes are accepted for the same key.
    """
    for key in (attr, "name" if attr == "property" else "property"):
        meta = soup.find("meta", attrs={key: value})
        if meta and meta.get("content"):
            content = meta["content"].strip()
            if content:
                return content
    return None


def extract_title(soup: BeautifulSoup) -> Optional[str]:
    """og:title, then twitter:title, then the <title> element."""
    for attr, value in TITLE_METAS:
        content = _meta_content(soup, attr, value)
        if content:
            return content

    title_elem = soup.find("title")
    if title_elem:
        title = title_elem.get_text(strip=True)
        if title:
            return title

    return None


def extract_description(soup: BeautifulSoup) -> Optional[str]:
    """og:description, then twitter:description, then meta description."""
    for attr, value in DESCRIPTION_METAS:
        content = _meta_content(soup, attr, value)
        if content:
            return content
    return None


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse a timestamp string; naive values are taken as UTC.

    The value must carry a full calendar date. Fragments such as "Monday"
    or "May 2024", which dateutil would complete from today's date, are
    rejected.
    """
    try:
        parsed = date_parser.parse(value, default=_DATE_SENTINELS[0])
        check = date_parser.parse(value, default=_DATE_SENTINELS[1])
    except (ValueError, TypeError, OverflowError):
        return None
    if parsed.date() != check.date():
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def extract_published_date(soup: BeautifulSoup) -> Optional[datetime]:
    """First parseable of article:published_time, pubdate, <time datetime>."""
    candidates = [_meta_content(soup, attr, value) for attr, value in DATE_METAS]

    time_elem = soup.find("time", attrs={"datetime": True})
    if time_elem:
        candidates.append(time_elem.get("datetime"))

    for candidate in candidates:
        if not candidate:
            continue
        parsed = parse_timestamp(candidate)
        if parsed is not None:
            return parsed

    return None


def parse_document(html: str, url: str) -> Optional[ScrapedDocument]:
    """
    Extract article metadata from raw HTML.

    Args:
        html: Response body
        url: URL the body was fetched from

    Returns:
        ScrapedDocument, or None when the title or description is missing
    """
    try:
        soup = make_soup(html)
    except Exception as e:
        logger.error(f"Error parsing HTML for {url}: {e}")
        return None

    title = extract_title(soup)
    if not title:
        logger.warning(f"No title found for {url}")
        return None

    description = extract_description(soup)
    if not description:
        logger.warning(f"No description found for {url}")
        return None

    published_at = extract_published_date(soup) or datetime.now(timezone.utc)

    return ScrapedDocument(
        title=title.strip(),
        description=description.strip(),
        url=url,
        published_at=published_at,
    )


def to_feed_item(document: ScrapedDocument, source: NewsSource) -> FeedItemCreate:
    """Convert scraped metadata into a news item for ``source``."""
    return FeedItemCreate(
        title=document.title,
        description=document.description,
        url=document.url,
        source=source,
        published_at=document.published_at,
        is_manual=False,
    )


# ============================================================================
# Document Fetcher Class
# ============================================================================

class DocumentFetcher:
    """
    Fetches article pages and extracts their metadata.

    Features:
    - Async HTTP requests with a shared aiohttp session
    - Concurrency limiter shared by every caller of this fetcher
    - Soft failures: non-2xx responses and transport errors are logged and
      reported as None, never raised
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
    ):
        """
        Initialize the document fetcher.

        Args:
            timeout: Total request timeout in seconds
            max_concurrent: Maximum requests in flight at once
        """
        self.timeout = timeout
        self.max_concurrent = max(1, max_concurrent)
        self._semaphore = asyncio.Semaphore(self.max_concurrent)
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        """Async context manager entry."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure an aiohttp session exists."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(
                timeout=timeout, headers=REQUEST_HEADERS
            )
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def fetch_html(self, url: str) -> Optional[str]:
        """
        GET a URL and return its body.

        Args:
            url: URL to fetch

        Returns:
            Response text, or None on a non-2xx status or transport error
        """
        session = await self._ensure_session()

        async with self._semaphore:
            try:
                async with session.get(url, headers=REQUEST_HEADERS) as response:
                    if not 200 <= response.status < 300:
                        logger.error(
                            f"Failed to fetch {url}: {response.status} {response.reason or ''}".rstrip()
                        )
                        return None
                    return await response.text()
            except asyncio.TimeoutError:
                logger.error(f"Timeout fetching {url}")
            except aiohttp.ClientError as e:
                logger.error(f"Error scraping {url}: {e}")
            except UnicodeDecodeError as e:
                logger.error(f"Could not decode response from {url}: {e}")

        return None

    async def fetch(self, url: str) -> Optional[ScrapedDocument]:
        """
        Fetch and parse a single article.

        Args:
            url: Article URL

        Returns:
            ScrapedDocument or None on failure
        """
        html = await self.fetch_html(url)
        if not html:
            return None
        return parse_document(html, url)
