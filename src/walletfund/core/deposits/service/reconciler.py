import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Set, Tuple

from walletfund.core.deposits.model.outcome import AttemptStatus, Outcome
from walletfund.core.deposits.model.paymentattempt import PaymentAttempt
from walletfund.core.deposits.model.reconciliationevent import ReconciliationEvent
from walletfund.core.deposits.model.reconciliationstate import ReconciliationState
from walletfund.core.deposits.model.signals import HardTimeout, NavigatedAway, PollExhausted, StatusSignal
from walletfund.core.deposits.model.statusresult import StatusKind, StatusResult
from walletfund.core.deposits.service.signal_sources import AbsoluteTimeout, NavigationWatcher, Poller
from walletfund.core.deposits.service.status_checker import RateLimitedStatusChecker
from walletfund.utilities.apiclient import BillsApiClient
from walletfund.utilities.timers import Timers

logger = logging.getLogger(__name__)

PENDING_MESSAGE = "Waiting for payment confirmation."
SUCCESS_MESSAGE = "Payment successful. Your wallet has been funded."
FAILED_MESSAGE = "Payment failed. Please try again."
VERIFICATION_TIMEOUT_MESSAGE = "Payment verification timeout. Please check your wallet balance."
SESSION_EXPIRED_MESSAGE = "Payment session expired. Please check your wallet balance before trying again."
CANCELLED_MESSAGE = "Payment cancelled. If you completed the payment, please check your wallet balance."

TransitionCallback = Callable[[ReconciliationEvent], None]

_OBSERVED_STATUS = {
    StatusKind.COMPLETED: AttemptStatus.COMPLETED,
    StatusKind.FAILED: AttemptStatus.FAILED,
    StatusKind.PENDING: AttemptStatus.PENDING,
}


@dataclass
class ReconcilerConfig:
    min_check_interval: float = 50
    poll_interval: float = 3
    poll_max_ticks: int = 60
    hard_timeout: float = 210
    checkout_markers: Tuple[str, ...] = ("paystack.com", "checkout")

    @classmethod
    def from_settings(cls, settings) -> "ReconcilerConfig":
        return cls(
            min_check_interval=settings.DEPOSIT_STATUS_MIN_INTERVAL_SECONDS,
            poll_interval=settings.DEPOSIT_POLL_INTERVAL_SECONDS,
            poll_max_ticks=settings.DEPOSIT_POLL_MAX_TICKS,
            hard_timeout=settings.DEPOSIT_HARD_TIMEOUT_SECONDS,
            checkout_markers=tuple(settings.CHECKOUT_URL_MARKERS),
        )


class PaymentReconciler:
    """
    Owns one funding attempt from "deposit initialized" to a terminal outcome.

    Three sources feed ``signal``: the poller, the checkout navigation
    watcher and the absolute timeout. All status checks go through the one
    ``RateLimitedStatusChecker`` built in ``start``. The outcome is
    write-once; every terminal path, user cancel included, runs
    ``teardown`` so no timer or in-flight check survives resolution.
    """

    def __init__(
        self,
        api_client: BillsApiClient,
        timers: Timers,
        config: Optional[ReconcilerConfig] = None,
        on_transition: Optional[TransitionCallback] = None,
    ):
        self.api_client = api_client
        self.timers = timers
        self.config = config or ReconcilerConfig()
        self.state = ReconciliationState()
        self.attempt: Optional[PaymentAttempt] = None
        self.checker: Optional[RateLimitedStatusChecker] = None
        self.poller: Optional[Poller] = None
        self.navigation: Optional[NavigationWatcher] = None
        self.timeout: Optional[AbsoluteTimeout] = None
        self._subscribers: List[TransitionCallback] = []
        self._inflight: Set[asyncio.Future] = set()
        self._torn_down = False
        self._message = PENDING_MESSAGE
        self._payload: Optional[Any] = None
        if on_transition is not None:
            self._subscribers.append(on_transition)

    @property
    def outcome(self) -> Outcome:
        return self.state.outcome

    def subscribe(self, callback: TransitionCallback) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def snapshot(self) -> ReconciliationEvent:
        return ReconciliationEvent(
            reference=self.attempt.reference if self.attempt else "",
            outcome=self.state.outcome,
            message=self._message,
            payload=self._payload,
            check_count=self.state.check_count,
        )

    def start(self, attempt: PaymentAttempt):
        if self.attempt is not None:
            raise RuntimeError(f"Reconciler already started for {self.attempt.reference}")

        self.attempt = attempt
        cfg = self.config
        self.checker = RateLimitedStatusChecker(
            self.api_client, attempt, self.state, self.timers.now, cfg.min_check_interval
        )
        self.poller = Poller(
            attempt.reference, self.timers, self.run_check, self.signal, cfg.poll_interval, cfg.poll_max_ticks
        )
        self.timeout = AbsoluteTimeout(attempt.reference, self.timers, self.signal, cfg.hard_timeout)
        self.navigation = NavigationWatcher(self.signal, cfg.checkout_markers)

        self.state.active_timers.add(self.poller.start())
        self.state.active_timers.add(self.timeout.start())
        logger.info(f"[RECONCILER_STARTED] {attempt.reference} amount={attempt.amount_requested}")

    async def handle_navigation(self, url: str) -> bool:
        if self.navigation is None or self.state.outcome.is_terminal:
            return False
        return await self.navigation.on_navigation_state_change(url)

    async def run_check(self, source: str) -> Optional[StatusResult]:
        if self.checker is None or self.state.outcome.is_terminal:
            return None

        task = asyncio.ensure_future(self.checker.request_check(source))
        self._inflight.add(task)
        try:
            result = await task
        except asyncio.CancelledError:
            if self._torn_down:
                logger.info(f"[RECONCILER_CHECK_ABANDONED] {self.attempt.reference} ({source}) cancelled by teardown")
                return None
            raise
        finally:
            self._inflight.discard(task)

        observed = _OBSERVED_STATUS.get(result.kind)
        if observed is not None:
            self.attempt.status = observed
        return result

    async def signal(self, event):
        if self.state.outcome.is_terminal:
            logger.debug(f"[RECONCILER_IGNORED] {type(event).__name__} after {self.state.outcome.value}")
            return

        if isinstance(event, StatusSignal):
            self._apply_status(event.result)
        elif isinstance(event, NavigatedAway):
            result = await self.run_check("navigation")
            if result is not None and result.kind is not StatusKind.SKIPPED:
                await self.signal(StatusSignal(result, source="navigation"))
        elif isinstance(event, PollExhausted):
            self._resolve(Outcome.TIMED_OUT, VERIFICATION_TIMEOUT_MESSAGE)
        elif isinstance(event, HardTimeout):
            self._resolve(Outcome.TIMED_OUT, SESSION_EXPIRED_MESSAGE)
        else:
            logger.warning(f"[RECONCILER_UNKNOWN_SIGNAL] {event!r}")

    def _apply_status(self, result: StatusResult):
        if result.kind is StatusKind.COMPLETED:
            self._resolve(Outcome.SUCCESS, SUCCESS_MESSAGE, result.payload)
        elif result.kind is StatusKind.FAILED:
            self._resolve(Outcome.FAILED, result.detail or FAILED_MESSAGE, result.payload)
        # pending / error / skipped: keep waiting

    def cancel(self) -> bool:
        """User walked away from checkout. The payment outcome stays unknown."""
        return self._resolve(Outcome.CANCELLED, CANCELLED_MESSAGE)

    def _resolve(self, outcome: Outcome, message: str, payload: Optional[Any] = None) -> bool:
        if self.state.outcome.is_terminal:
            return False

        self.state.outcome = outcome
        self._message = message
        self._payload = payload
        self.teardown()

        event = self.snapshot()
        reference = event.reference
        logger.info(f"[RECONCILER_RESOLVED] {reference} -> {outcome.value} after {self.state.check_count} status calls")
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"[RECONCILER_CALLBACK_ERROR] {reference}: {str(e)}", exc_info=True)
        return True

    def teardown(self):
        self._torn_down = True
        for job_id in list(self.state.active_timers):
            self.timers.cancel(job_id)
        self.state.active_timers.clear()

        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        for task in list(self._inflight):
            if task is not current and not task.done():
                task.cancel()
