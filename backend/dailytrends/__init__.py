"""
DailyTrends Ingestion Package

This package contains the news ingestion core for DailyTrends:

- source_fetchers/: document fetching and per-newspaper front-page extractors
- ingestion_service.py: concurrent multi-source scraping with dedupe-gated persistence
- scheduler.py: recurring ingestion cycles with retry and overlap protection
- worker.py: standalone process entrypoint
"""

__version__ = "1.0.0"
