"""
Source fetchers for front-page news ingestion.

This module provides:
1. DocumentFetcher - fetches one article page and extracts its metadata
2. Front-page extractors - discover article URLs per newspaper, resolved
   through a registry keyed by NewsSource

Each extractor returns FeedItemCreate records ready for the dedupe gate.
"""

from .document_fetcher import (
    DocumentFetcher,
    ScrapedDocument,
    parse_document,
    to_feed_item,
)

from .extractors import (
    FrontPageExtractor,
    NewspaperConfig,
    SourceExtractor,
    create_extractor,
    get_all_extractors,
    register_extractor,
    MAX_FRONT_PAGE_URLS,
)

__all__ = [
    # Document fetcher
    "DocumentFetcher",
    "ScrapedDocument",
    "parse_document",
    "to_feed_item",
    # Extractors
    "FrontPageExtractor",
    "NewspaperConfig",
    "SourceExtractor",
    "create_extractor",
    "get_all_extractors",
    "register_extractor",
    "MAX_FRONT_PAGE_URLS",
]
