"""APScheduler-driven ingestion cycles for DailyTrends.

``IngestionScheduler`` runs one scraping cycle immediately on ``start()`` and
then every ``interval_minutes`` via an APScheduler interval job.  A cycle
retries the whole multi-source scrape up to ``max_retries`` extra times and
records the outcome in ``SchedulerStats``.  Overlapping triggers are dropped,
never queued.
"""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from dailytrends.ingestion_service import ContentIngestionService
from dailytrends.models.feed import (
    ScheduleConfig,
    SchedulerStats,
    ScrapingResult,
    SourceConfig,
)

logger = logging.getLogger(__name__)

SCRAPING_JOB_ID = "scraping_cycle"


class SourceConfigNotFoundError(LookupError):
    """Raised when a single-source run names an unknown source."""


class IngestionScheduler:
    """Recurring scraping cycles with retry, single-flight and stats."""

    def __init__(
        self,
        ingestion_service: ContentIngestionService,
        config: Optional[ScheduleConfig] = None,
        source_configs: Optional[List[SourceConfig]] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
        shutdown_poll_seconds: float = 1.0,
    ):
        self.ingestion_service = ingestion_service
        self.source_configs = (
            source_configs
            if source_configs is not None
            else ContentIngestionService.default_source_configs()
        )
        self._config = config or ScheduleConfig()
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self._shutdown_poll_seconds = shutdown_poll_seconds
        self._job = None
        self._cycle_running = False
        self._tasks: Set[asyncio.Task] = set()
        self._stats = SchedulerStats()

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    def start(self) -> None:
        """Run a cycle now and arm the interval job.

        Must be called from within a running event loop.
        """
        if self._job is not None or not self._config.enabled:
            logger.warning("Scraping scheduler is already running or disabled")
            return

        logger.info(
            f"Starting scraping scheduler with {self._config.interval_minutes} minute intervals"
        )

        if not self._scheduler.running:
            self._scheduler.start()

        self._job = self._scheduler.add_job(
            self.run_scraping_cycle,
            "interval",
            minutes=self._config.interval_minutes,
            id=SCRAPING_JOB_ID,
            name="News scraping cycle",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._update_next_run_time()

        task = asyncio.get_running_loop().create_task(self.run_scraping_cycle())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def stop(self) -> None:
        """Disarm the interval job. An in-flight cycle runs to completion."""
        if self._job is None:
            return

        try:
            self._scheduler.remove_job(SCRAPING_JOB_ID)
        except JobLookupError:
            pass
        self._job = None
        self._stats.next_run = None
        logger.info("Scraping scheduler stopped")

    async def shutdown(self) -> None:
        """Stop scheduling and wait for the current cycle to finish."""
        logger.info("Shutting down scraping scheduler...")

        self.stop()

        while self._cycle_running:
            logger.info("Waiting for current scraping cycle to complete...")
            await asyncio.sleep(self._shutdown_poll_seconds)

        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

        logger.info("Scraping scheduler shutdown complete")

    # -----------------------------------------------------------------------
    # Cycles
    # -----------------------------------------------------------------------

    async def run_scraping_cycle(self) -> None:
        """Scrape every configured source, retrying whole-cycle failures."""
        if self._cycle_running:
            logger.warning("Scraping cycle already in progress, skipping this run")
            return

        self._cycle_running = True
        try:
            self._stats.total_runs += 1
            self._stats.last_run = datetime.now(timezone.utc)
            logger.info(f"Starting scraping cycle #{self._stats.total_runs}")

            attempts = self._config.max_retries + 1
            for attempt in range(1, attempts + 1):
                try:
                    results = await self.ingestion_service.scrape_from_multiple_sources(
                        self.source_configs
                    )
                except Exception as e:
                    logger.error(
                        f"Scraping cycle failed (attempt {attempt}/{attempts}): {e}"
                    )
                    if attempt < attempts:
                        logger.info(
                            f"Retrying in {self._config.retry_delay_minutes} minutes..."
                        )
                        await asyncio.sleep(self._config.retry_delay_minutes * 60)
                    continue

                self._record_success(results)
                break
            else:
                self._stats.failed_runs += 1
                logger.error(f"Scraping cycle failed after {attempts} attempts")
        finally:
            self._cycle_running = False
            self._update_next_run_time()

    def _record_success(self, results: Dict[str, ScrapingResult]) -> None:
        total_success = 0
        total_duplicates = 0

        for source_name, result in results.items():
            total_success += result.success
            total_duplicates += result.duplicates
            logger.info(
                f"{source_name}: {result.success} new, {result.duplicates} duplicates, "
                f"{result.failed} failed"
            )

        self._stats.total_items_scraped += total_success
        self._stats.total_duplicates += total_duplicates
        self._stats.successful_runs += 1

        logger.info(
            f"Scraping cycle completed successfully: {total_success} new items, "
            f"{total_duplicates} duplicates"
        )

    async def run_single_source(self, source_name: str) -> ScrapingResult:
        """Scrape one configured source by name, outside the schedule.

        Raises:
            SourceConfigNotFoundError: No source is configured under that name.
        """
        logger.info(f"Running single source scraping for: {source_name}")

        config = next((c for c in self.source_configs if c.name == source_name), None)
        if config is None:
            raise SourceConfigNotFoundError(
                f"Source configuration not found: {source_name}"
            )

        try:
            result = await self.ingestion_service.scrape_from_source(config)
        except Exception as e:
            logger.error(f"Single source scraping failed for {source_name}: {e}")
            raise

        logger.info(
            f"Single source scraping completed for {source_name}: {result.success} new, "
            f"{result.duplicates} duplicates, {result.failed} failed"
        )
        return result

    # -----------------------------------------------------------------------
    # Config & stats
    # -----------------------------------------------------------------------

    def get_stats(self) -> SchedulerStats:
        return replace(self._stats)

    def get_config(self) -> ScheduleConfig:
        return self._config

    def update_config(self, **changes) -> ScheduleConfig:
        """Replace the config with ``changes`` merged in.

        A running scheduler is stopped and, if the merged config is still
        enabled, restarted with the new interval.
        """
        new_config = ScheduleConfig(**{**self._config.model_dump(), **changes})

        was_running = self._job is not None
        if was_running:
            self.stop()

        self._config = new_config
        logger.info(f"Scraping scheduler configuration updated: {new_config.model_dump()}")

        if was_running and self._config.enabled:
            self.start()
        return self._config

    def is_scheduler_running(self) -> bool:
        return self._job is not None

    def is_cycle_running(self) -> bool:
        return self._cycle_running

    def reset_stats(self) -> None:
        """Zero every counter and ``last_run``; ``next_run`` is kept."""
        self._stats = SchedulerStats(next_run=self._stats.next_run)
        logger.info("Scraping scheduler statistics reset")

    def _update_next_run_time(self) -> None:
        if self._job is not None:
            self._stats.next_run = datetime.now(timezone.utc) + timedelta(
                minutes=self._config.interval_minutes
            )
