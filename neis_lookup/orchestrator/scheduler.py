"""
Cache Sweep Scheduler.

APScheduler-based periodic eviction of expired cache entries, so one-shot
queries that are never repeated do not accumulate in memory.
"""

import logging
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from neis_lookup.config import CacheConfig
from neis_lookup.orchestrator.cache_manager import CacheManager

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "sweep_cache"


class CacheSweeper:
    """
    Background scheduler running CacheManager.sweep() on a fixed interval.

    The sweep is independent of request traffic. Lazy expiry in
    CacheManager.get() still applies between sweeps.

    Example:
        >>> cache = CacheManager()
        >>> with CacheSweeper(cache, interval_seconds=60):
        ...     ...  # serve lookups
    """

    def __init__(
        self,
        cache: CacheManager,
        interval_seconds: Optional[int] = None,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        """
        Initialize cache sweeper.

        Args:
            cache: Cache to sweep
            interval_seconds: Sweep interval (defaults to CacheConfig.SWEEP_INTERVAL_SECONDS)
            scheduler: APScheduler instance (a daemon BackgroundScheduler by default)
        """
        self.cache = cache
        self.interval_seconds = (
            CacheConfig.SWEEP_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        )
        self.scheduler = scheduler or BackgroundScheduler(daemon=True)

        self._is_running = False
        self._last_sweep: Optional[datetime] = None
        self._stats = {
            "sweeps": 0,
            "entries_removed": 0,
            "failed_sweeps": 0,
        }

        logger.info(f"CacheSweeper initialized with {self.interval_seconds}s interval")

    def start(self) -> None:
        """Start the scheduler with the periodic sweep job."""
        if self._is_running:
            logger.warning("Cache sweeper is already running")
            return

        self.scheduler.add_job(
            func=self.run_once,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=SWEEP_JOB_ID,
            name="Cache Sweep",
            replace_existing=True,
            max_instances=1,  # Prevent overlapping executions
        )

        self.scheduler.start()
        self._is_running = True

        logger.info(
            "CacheSweeper started",
            extra={
                "interval_seconds": self.interval_seconds,
                "jobs": [job.id for job in self.scheduler.get_jobs()],
            },
        )

    def stop(self, wait: bool = False) -> None:
        """
        Stop the scheduler.

        Args:
            wait: If True, wait for a running sweep to complete
        """
        if not self._is_running:
            logger.warning("Cache sweeper is not running")
            return

        self.scheduler.shutdown(wait=wait)
        self._is_running = False
        logger.info("CacheSweeper stopped")

    def run_once(self) -> int:
        """
        Sweep expired entries now.

        Called automatically by the scheduler on every interval.

        Returns:
            Number of entries removed (0 if the sweep failed)
        """
        try:
            removed = self.cache.sweep()
        except Exception as e:
            self._stats["failed_sweeps"] += 1
            logger.error(f"Error during cache sweep: {e}", exc_info=True)
            return 0

        self._last_sweep = datetime.now()
        self._stats["sweeps"] += 1
        self._stats["entries_removed"] += removed
        return removed

    @property
    def is_running(self) -> bool:
        """Check if the sweeper is currently running."""
        return self._is_running

    def get_statistics(self) -> dict:
        """Get sweeper state and counters."""
        job = self.scheduler.get_job(SWEEP_JOB_ID) if self._is_running else None
        return {
            "is_running": self._is_running,
            "interval_seconds": self.interval_seconds,
            "last_sweep": self._last_sweep.isoformat() if self._last_sweep else None,
            "next_sweep": (
                job.next_run_time.isoformat() if job and job.next_run_time else None
            ),
            **self._stats,
        }

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"CacheSweeper(interval={self.interval_seconds}s, "
            f"running={self._is_running}, sweeps={self._stats['sweeps']})"
        )

    def __enter__(self):
        """Context manager entry - starts sweeper."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - stops sweeper."""
        self.stop()
