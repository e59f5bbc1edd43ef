"""
Scheduler Driver
Tickers that decide when the overdue sweep and reconciliation run.

PeriodicTicker runs the job on a fixed interval in a background thread.
OnDemandTicker never runs anything in the background; trackers are then
refreshed lazily when their dose history is read or written.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional, Any

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import TrackerConstants


logger = logging.getLogger(__name__)


class TickerMode:
    PERIODIC = "periodic"
    ON_DEMAND = "on_demand"


class Ticker(ABC):
    """
    stopped --start()--> running --stop()--> stopped

    Both transitions are idempotent.
    """

    mode: str = ""

    def __init__(self):
        self._is_running = False
        self._state_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._is_running

    def start(self) -> None:
        """Start ticking; no-op when already running"""
        with self._state_lock:
            if self._is_running:
                logger.warning(f"{self.__class__.__name__} already running")
                return
            self._start()
            self._is_running = True

    def stop(self) -> None:
        """Stop ticking; no-op when already stopped"""
        with self._state_lock:
            if not self._is_running:
                return
            self._stop()
            self._is_running = False

    def status(self) -> dict:
        return {"mode": self.mode, "running": self._is_running}

    @abstractmethod
    def _start(self) -> None:
        ...

    @abstractmethod
    def _stop(self) -> None:
        ...


class PeriodicTicker(Ticker):
    """Invokes the job every `interval_minutes` on an APScheduler background thread"""

    mode = TickerMode.PERIODIC
    JOB_ID = "medicine_tracker_refresh"

    def __init__(
        self,
        job: Callable[[], Any],
        interval_minutes: int = TrackerConstants.SWEEP_INTERVAL_MINUTES
    ):
        super().__init__()
        self.job = job
        self.interval_minutes = interval_minutes
        self._scheduler: Optional[BackgroundScheduler] = None

    def _start(self) -> None:
        scheduler = BackgroundScheduler()
        scheduler.add_job(
            self._tick,
            IntervalTrigger(minutes=self.interval_minutes),
            id=self.JOB_ID,
            name="Overdue dose sweep",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info(f"Medicine scheduler started - checking every {self.interval_minutes} minutes")

    def _stop(self) -> None:
        # wait=True lets an in-flight tick finish
        if self._scheduler:
            self._scheduler.shutdown(wait=True)
            self._scheduler = None
        logger.info("Medicine scheduler stopped")

    def _tick(self) -> None:
        try:
            self.job()
        except Exception as e:
            logger.error(f"Error in medicine scheduler tick: {e}", exc_info=True)

    def trigger_now(self) -> None:
        """Run one tick synchronously in the caller's thread"""
        self._tick()


class OnDemandTicker(Ticker):
    """No background timer; refresh happens when a tracker is accessed"""

    mode = TickerMode.ON_DEMAND

    def _start(self) -> None:
        logger.info("Background scheduler disabled - trackers refresh on demand")

    def _stop(self) -> None:
        logger.info("On-demand medicine scheduler stopped")


def create_ticker(
    mode: str,
    job: Callable[[], Any],
    interval_minutes: int = TrackerConstants.SWEEP_INTERVAL_MINUTES
) -> Ticker:
    """Build the ticker for a deployment mode"""
    if mode == TickerMode.PERIODIC:
        return PeriodicTicker(job, interval_minutes=interval_minutes)
    if mode == TickerMode.ON_DEMAND:
        return OnDemandTicker()
    raise ValueError(f"Unknown scheduler mode: {mode}")
