import logging
from typing import Awaitable, Callable, Iterable, Optional

from walletfund.core.deposits.model.signals import HardTimeout, NavigatedAway, PollExhausted, StatusSignal
from walletfund.core.deposits.model.statusresult import StatusResult
from walletfund.utilities.timers import Timers

logger = logging.getLogger(__name__)

SignalHandler = Callable[[object], Awaitable[None]]
CheckRunner = Callable[[str], Awaitable[Optional[StatusResult]]]


class Poller:
    """Ticks every ``interval`` seconds, asking for a rate-limited status check."""

    def __init__(
        self,
        reference: str,
        timers: Timers,
        run_check: CheckRunner,
        signal: SignalHandler,
        interval: float,
        max_ticks: int,
    ):
        self.job_id = f"deposit_poll_{reference}"
        self.reference = reference
        self.timers = timers
        self.run_check = run_check
        self.signal = signal
        self.interval = interval
        self.max_ticks = max_ticks
        self.ticks = 0

    def start(self) -> str:
        logger.info(f"[DEPOSIT_POLL_SCHEDULED] {self.job_id} every {self.interval}s, max {self.max_ticks} ticks")
        return self.timers.call_every(self.job_id, self.interval, self.tick)

    async def tick(self):
        self.ticks += 1
        logger.debug(f"[DEPOSIT_POLL_TICK] #{self.ticks} for {self.reference}")

        result = await self.run_check("poll")
        if result is not None and result.is_terminal:
            await self.signal(StatusSignal(result, source="poll"))

        if self.ticks >= self.max_ticks:
            logger.info(f"[DEPOSIT_POLL_EXHAUSTED] {self.reference} after {self.ticks} ticks")
            await self.signal(PollExhausted(ticks=self.ticks))


class NavigationWatcher:
    """
    Watches the hosted checkout's URL changes.

    Leaving checkout is only a hint; it asks for one out-of-band check and
    never resolves the attempt by itself. Repeated URLs off checkout raise a
    single hint until the browser comes back to checkout.
    """

    def __init__(self, signal: SignalHandler, checkout_markers: Iterable[str]):
        self.signal = signal
        self.checkout_markers = tuple(checkout_markers)
        self.away = False

    def is_on_checkout(self, url: str) -> bool:
        return any(marker in url for marker in self.checkout_markers)

    async def on_navigation_state_change(self, url: str) -> bool:
        if not url or self.is_on_checkout(url):
            self.away = False
            return False
        if self.away:
            return False

        self.away = True
        logger.info(f"[DEPOSIT_NAVIGATED_AWAY] {url}")
        await self.signal(NavigatedAway(url=url))
        return True


class AbsoluteTimeout:
    def __init__(self, reference: str, timers: Timers, signal: SignalHandler, duration: float):
        self.job_id = f"deposit_timeout_{reference}"
        self.timers = timers
        self.signal = signal
        self.duration = duration

    def start(self) -> str:
        logger.info(f"[DEPOSIT_TIMEOUT_SCHEDULED] {self.job_id} in {self.duration}s")
        return self.timers.call_later(self.job_id, self.duration, self.fire)

    async def fire(self):
        await self.signal(HardTimeout())
