"""Market scheduler service."""
import logging
from typing import Callable, Optional
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError
from urlcoin.core.config import get_settings
from urlcoin.services.document_store import DocumentStore, get_document_store
from urlcoin.services.market_clock import MarketClock
from urlcoin.services.ranking import RankingService, SnapshotOutcome

logger = logging.getLogger(__name__)
settings = get_settings()


class MarketScheduler:
    """Drives the market clock and the daily ranking snapshot."""

    def __init__(self, store_factory: Callable[[], DocumentStore] = get_document_store):
        """Initialize the scheduler.

        Args:
            store_factory: Returns the document store the jobs run against
        """
        self.store_factory = store_factory
        self.scheduler: Optional[BackgroundScheduler] = None
        self._clock: Optional[MarketClock] = None
        self._ranking: Optional[RankingService] = None

    @property
    def clock(self) -> MarketClock:
        if self._clock is None:
            self._clock = MarketClock(self.store_factory())
        return self._clock

    @property
    def ranking(self) -> RankingService:
        if self._ranking is None:
            self._ranking = RankingService(self.store_factory())
        return self._ranking

    def start(self):
        """Start the scheduler."""
        if not settings.scheduler_enabled:
            logger.info("Scheduler is disabled in settings")
            return

        if self.scheduler and self.scheduler.running:
            logger.warning("Scheduler is already running")
            return

        self.scheduler = BackgroundScheduler(timezone=settings.scheduler_timezone)

        self.scheduler.add_job(
            func=self.run_market_tick,
            trigger=IntervalTrigger(seconds=settings.market_poll_seconds),
            id="market_tick_job",
            name="Advance the market clock",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self.scheduler.add_job(
            func=self.run_ranking_snapshot,
            trigger=IntervalTrigger(seconds=settings.ranking_poll_seconds),
            id="ranking_snapshot_job",
            name="Take the daily ranking snapshot",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )

        self.scheduler.start()
        logger.info(
            f"Scheduler started. Market tick every {settings.market_poll_seconds}s, "
            f"ranking check every {settings.ranking_poll_seconds}s"
        )

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Scheduler stopped")

    def run_market_tick(self) -> bool:
        """Advance the market if a new slot has begun.

        Returns:
            True if the market moved
        """
        try:
            return self.clock.tick()
        except (SQLAlchemyError, ValueError) as e:
            logger.error(f"Market tick failed: {e}")
            return False

    def run_ranking_snapshot(self) -> SnapshotOutcome:
        """Take the daily ranking snapshot if today's has not been taken."""
        try:
            return self.ranking.try_daily_snapshot()
        except (SQLAlchemyError, ValueError) as e:
            logger.error(f"Ranking snapshot failed: {e}")
            return SnapshotOutcome.FAILED


# Global scheduler instance
market_scheduler = MarketScheduler()
