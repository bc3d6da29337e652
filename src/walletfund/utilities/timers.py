import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional, Set

from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[None]]


class Timers(ABC):
    """Scheduling primitives used by the deposit reconciler.

    Implementations run coroutine callbacks on the event loop and expose a
    monotonic clock in seconds.
    """

    @abstractmethod
    def now(self) -> float:
        ...

    @abstractmethod
    def call_later(self, job_id: str, delay: float, func: TimerCallback) -> str:
        ...

    @abstractmethod
    def call_every(self, job_id: str, interval: float, func: TimerCallback) -> str:
        ...

    @abstractmethod
    def cancel(self, job_id: str) -> None:
        ...

    @abstractmethod
    def pending(self) -> Set[str]:
        ...


class SchedulerTimers(Timers):
    def __init__(self, scheduler: Optional[AsyncIOScheduler] = None):
        self.scheduler = scheduler or AsyncIOScheduler()
        self._jobs: Set[str] = set()

    def start(self):
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("[SCHEDULER] AsyncIO scheduler started")

    def shutdown(self):
        """Gracefully shutdown the scheduler"""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("[SCHEDULER] AsyncIO scheduler shutdown")
        self._jobs.clear()

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, job_id: str, delay: float, func: TimerCallback) -> str:
        async def fire_once():
            self._jobs.discard(job_id)
            await func()

        self.scheduler.add_job(
            func=fire_once,
            trigger="date",
            run_date=datetime.now(timezone.utc) + timedelta(seconds=delay),
            id=job_id,
            replace_existing=True,
            misfire_grace_time=None,
        )
        self._jobs.add(job_id)
        logger.debug(f"[TIMER_SCHEDULED] {job_id} fires in {delay}s")
        return job_id

    def call_every(self, job_id: str, interval: float, func: TimerCallback) -> str:
        self.scheduler.add_job(
            func=func,
            trigger="interval",
            seconds=interval,
            id=job_id,
            replace_existing=True,
            max_instances=1,  # a slow status check must not overlap the next tick
        )
        self._jobs.add(job_id)
        logger.debug(f"[TIMER_SCHEDULED] {job_id} every {interval}s")
        return job_id

    def cancel(self, job_id: str) -> None:
        try:
            if self.scheduler.get_job(job_id):
                self.scheduler.remove_job(job_id)
                logger.debug(f"[TIMER_REMOVED] {job_id}")
        finally:
            self._jobs.discard(job_id)

    def pending(self) -> Set[str]:
        return set(self._jobs)
