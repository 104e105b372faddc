"""
DailyTrends Ingestion Worker.

Standalone process that keeps the news feed fresh: it connects to the
database, starts the scraping scheduler and runs until SIGINT/SIGTERM, then
waits for the in-flight cycle before exiting.

Run locally:
  cd backend
  python -m dailytrends.worker
"""

import asyncio
import logging
import signal

from dailytrends.config import Settings
from dailytrends.database import create_session_factory, create_tables
from dailytrends.ingestion_service import ContentIngestionService
from dailytrends.repositories.feed_repository import FeedRepository
from dailytrends.scheduler import IngestionScheduler
from dailytrends.source_fetchers.document_fetcher import DocumentFetcher

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


async def run_worker(settings: Settings) -> None:
    engine, session_factory = create_session_factory(
        settings.database_url, echo=settings.sqlalchemy_echo
    )
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows / limited environments
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop_event.set))

    try:
        await create_tables(engine)
        logger.info("Database connected")

        repository = FeedRepository(session_factory)

        async with DocumentFetcher(
            timeout=settings.fetch_timeout_seconds,
            max_concurrent=settings.max_concurrent_fetches,
        ) as fetcher:
            service = ContentIngestionService(repository, fetcher)
            scheduler = IngestionScheduler(service, settings.schedule_config())

            scheduler.start()
            logger.info("Scraping scheduler started successfully")
            logger.info(f"Initial scheduler stats: {scheduler.get_stats()}")

            await stop_event.wait()

            await scheduler.shutdown()
            logger.info("Scraping scheduler stopped")
    finally:
        await engine.dispose()
        logger.info("Database disconnected")


def main() -> int:
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    try:
        asyncio.run(run_worker(settings))
    except Exception:
        logger.exception("Failed to run scraper")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
