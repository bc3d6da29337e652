import asyncio
from itertools import permutations

import pytest

from conftest import AWAY_URL, CHECKOUT_URL, REFERENCE, status_envelope
from walletfund.core.deposits.model.outcome import AttemptStatus, Outcome
from walletfund.core.deposits.model.paymentattempt import PaymentAttempt
from walletfund.core.deposits.model.signals import HardTimeout, NavigatedAway, PollExhausted, StatusSignal
from walletfund.core.deposits.model.statusresult import StatusKind, StatusResult
from walletfund.core.deposits.service.reconciler import (
    CANCELLED_MESSAGE,
    SESSION_EXPIRED_MESSAGE,
    VERIFICATION_TIMEOUT_MESSAGE,
    PaymentReconciler,
)
from walletfund.utilities.apiclient import ApiClientException
from walletfund.utilities.envelope import ApiEnvelope

COMPLETED = StatusResult(kind=StatusKind.COMPLETED, payload={"transaction": {"status": "Completed"}})
FAILED = StatusResult(kind=StatusKind.FAILED, detail="Card declined")


def assert_torn_down(reconciler, timers):
    assert timers.pending() == set()
    assert reconciler.state.active_timers == set()


@pytest.mark.asyncio
async def test_start_schedules_poller_and_absolute_timeout(make_reconciler, timers):
    reconciler = make_reconciler()

    assert timers.pending() == {f"deposit_poll_{REFERENCE}", f"deposit_timeout_{REFERENCE}"}
    assert reconciler.state.active_timers == timers.pending()
    assert reconciler.outcome is Outcome.PENDING
    assert reconciler.state.last_check_at is None


@pytest.mark.asyncio
async def test_start_twice_is_rejected(make_reconciler, timers):
    reconciler = make_reconciler()
    with pytest.raises(RuntimeError):
        reconciler.start(PaymentAttempt(reference="OTHER", amount_requested=1, created_at=timers.now()))


@pytest.mark.asyncio
async def test_happy_path_first_status_call_after_fifty_seconds(make_reconciler, api, timers, events):
    api.default_status = status_envelope("Completed")
    reconciler = make_reconciler()

    await timers.advance(50)
    assert reconciler.outcome is Outcome.PENDING
    assert api.calls_to("check_payment_status") == []

    await timers.advance(1)
    assert reconciler.outcome is Outcome.SUCCESS
    assert [call[2] for call in api.calls_to("check_payment_status")] == [51]
    assert reconciler.state.check_count == 1
    assert reconciler.attempt.status is AttemptStatus.COMPLETED
    assert len(events) == 1
    assert events[0].payload["user"]["new_balance"] == 2015
    assert_torn_down(reconciler, timers)


@pytest.mark.asyncio
async def test_backend_failure_is_terminal_with_backend_message(make_reconciler, api, timers, events):
    api.default_status = status_envelope("Failed", message="Transaction was declined by the bank")
    reconciler = make_reconciler()

    await timers.advance(51)

    assert reconciler.outcome is Outcome.FAILED
    assert events[0].message == "Transaction was declined by the bank"
    assert reconciler.attempt.status is AttemptStatus.FAILED
    assert_torn_down(reconciler, timers)


@pytest.mark.asyncio
async def test_hard_timeout_resolves_at_210_seconds(make_reconciler, api, timers, events):
    reconciler = make_reconciler(poll_max_ticks=100)

    await timers.advance(209)
    assert reconciler.outcome is Outcome.PENDING

    await timers.advance(1)
    assert reconciler.outcome is Outcome.TIMED_OUT
    assert events[0].message == SESSION_EXPIRED_MESSAGE
    assert reconciler.attempt.status is AttemptStatus.PENDING
    assert_torn_down(reconciler, timers)


@pytest.mark.asyncio
async def test_default_poll_budget_times_out_before_hard_timeout(make_reconciler, api, timers, events):
    reconciler = make_reconciler()

    await timers.advance(179)
    assert reconciler.outcome is Outcome.PENDING

    await timers.advance(1)
    assert reconciler.outcome is Outcome.TIMED_OUT
    assert reconciler.poller.ticks == 60
    assert events[0].message == VERIFICATION_TIMEOUT_MESSAGE
    assert reconciler.state.check_count == 3
    assert_torn_down(reconciler, timers)

    await timers.advance(100)
    assert len(events) == 1


@pytest.mark.asyncio
async def test_navigation_hint_inside_cooldown_is_skipped(make_reconciler, api, timers):
    reconciler = make_reconciler()

    await timers.advance(5)
    raised = await reconciler.handle_navigation(AWAY_URL)

    assert raised is True
    assert reconciler.outcome is Outcome.PENDING
    assert reconciler.state.check_count == 0
    assert api.calls_to("check_payment_status") == []


@pytest.mark.asyncio
async def test_navigation_hint_confirms_success_between_ticks(make_reconciler, api, timers, events):
    api.status_queue = [status_envelope("Pending"), status_envelope("Completed")]
    reconciler = make_reconciler()

    await timers.advance(101.5)
    assert reconciler.state.check_count == 1

    await reconciler.handle_navigation(AWAY_URL)

    assert reconciler.outcome is Outcome.SUCCESS
    assert [call[2] for call in api.calls_to("check_payment_status")] == [51, 101.5]
    assert_torn_down(reconciler, timers)


@pytest.mark.asyncio
async def test_navigation_within_checkout_is_ignored(make_reconciler, api, timers):
    reconciler = make_reconciler()
    await timers.advance(60)

    raised = await reconciler.handle_navigation(CHECKOUT_URL + "/card")

    assert raised is False
    assert reconciler.state.check_count == 1


@pytest.mark.asyncio
async def test_transient_errors_never_end_the_attempt(make_reconciler, api, timers, events):
    api.status_queue = [
        ApiClientException("Network error: connection reset"),
        ApiEnvelope(ok=False, message="Server error"),
        status_envelope("Completed"),
    ]
    reconciler = make_reconciler()

    await timers.advance(152)
    assert reconciler.outcome is Outcome.PENDING
    assert reconciler.state.check_count == 2

    await timers.advance(1)
    assert reconciler.outcome is Outcome.SUCCESS
    assert reconciler.state.check_count == 3
    assert len(events) == 1


@pytest.mark.asyncio
async def test_call_count_bounded_and_spaced_under_navigation_storm(make_reconciler, api, timers):
    reconciler = make_reconciler(poll_max_ticks=100)

    for second in range(1, 211):
        await timers.advance(1)
        if reconciler.outcome.is_terminal:
            break
        await reconciler.handle_navigation(AWAY_URL if second % 2 else CHECKOUT_URL)

    assert reconciler.outcome is Outcome.TIMED_OUT
    call_times = [call[2] for call in api.calls_to("check_payment_status")]
    assert len(call_times) == reconciler.state.check_count
    assert reconciler.state.check_count <= 5
    assert all(later - earlier >= 50 for earlier, later in zip(call_times, call_times[1:]))
    assert_torn_down(reconciler, timers)


@pytest.mark.asyncio
async def test_user_cancel_tears_down_without_claiming_a_status(make_reconciler, api, timers, events):
    reconciler = make_reconciler()
    await timers.advance(20)

    assert reconciler.cancel() is True

    assert reconciler.outcome is Outcome.CANCELLED
    assert events[0].message == CANCELLED_MESSAGE
    assert reconciler.attempt.status is None
    assert_torn_down(reconciler, timers)

    await timers.advance(300)
    assert api.calls_to("check_payment_status") == []
    assert reconciler.cancel() is False


@pytest.mark.asyncio
async def test_hard_timeout_abandons_inflight_navigation_check(make_reconciler, api, timers):
    gate = asyncio.Event()

    async def hang(reference):
        await gate.wait()
        return status_envelope("Completed")

    api.status_hook = hang
    reconciler = make_reconciler(poll_interval=1000, hard_timeout=100)

    await timers.advance(60)
    navigation = asyncio.ensure_future(reconciler.handle_navigation(AWAY_URL))
    for _ in range(5):
        await asyncio.sleep(0)
    assert reconciler.state.check_count == 1

    await timers.advance(40)
    assert reconciler.outcome is Outcome.TIMED_OUT

    assert await navigation is True
    assert reconciler.outcome is Outcome.TIMED_OUT
    assert_torn_down(reconciler, timers)


async def _resolve(reconciler, how):
    if how == "success":
        await reconciler.signal(StatusSignal(COMPLETED))
    elif how == "failed":
        await reconciler.signal(StatusSignal(FAILED))
    elif how == "timed_out":
        await reconciler.signal(HardTimeout())
    else:
        reconciler.cancel()


@pytest.mark.asyncio
@pytest.mark.parametrize("how", ["success", "failed", "timed_out", "cancelled"])
async def test_outcome_is_write_once(make_reconciler, api, timers, events, how):
    api.default_status = status_envelope("Completed")
    reconciler = make_reconciler()
    await timers.advance(20)
    await _resolve(reconciler, how)
    resolved = reconciler.snapshot()

    late_signals = [StatusSignal(COMPLETED), StatusSignal(FAILED), PollExhausted(ticks=60), HardTimeout(), NavigatedAway(AWAY_URL)]
    for ordering in permutations(late_signals):
        for late in ordering:
            await reconciler.signal(late)
        reconciler.cancel()
        await reconciler.handle_navigation(AWAY_URL)
        assert reconciler.snapshot() == resolved

    assert len(events) == 1
    assert_torn_down(reconciler, timers)


@pytest.mark.asyncio
async def test_subscriber_errors_do_not_escape(api, timers):
    reconciler = PaymentReconciler(api, timers)

    def broken(event):
        raise ValueError("render failed")

    seen = []
    reconciler.subscribe(broken)
    reconciler.subscribe(seen.append)
    reconciler.start(PaymentAttempt(reference=REFERENCE, amount_requested=500, created_at=timers.now()))

    reconciler.cancel()

    assert [event.outcome for event in seen] == [Outcome.CANCELLED]


@pytest.mark.asyncio
async def test_unsubscribe_stops_notifications(api, timers):
    reconciler = PaymentReconciler(api, timers)
    seen = []
    unsubscribe = reconciler.subscribe(seen.append)
    reconciler.start(PaymentAttempt(reference=REFERENCE, amount_requested=500, created_at=timers.now()))

    unsubscribe()
    reconciler.cancel()

    assert seen == []
