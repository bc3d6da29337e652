from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from walletfund.core.deposits.model.paymentattempt import PaymentAttempt
from walletfund.core.deposits.service.reconciler import PaymentReconciler, ReconcilerConfig
from walletfund.utilities.envelope import ApiEnvelope
from walletfund.utilities.timers import Timers

REFERENCE = "DEP-20261019-0001"
CHECKOUT_URL = "https://checkout.paystack.com/abc123"
AWAY_URL = "https://app.walletfund.ng/deposit/return"


class FakeTimers(Timers):
    """
    Virtual clock. Nothing fires until ``advance`` is awaited; due jobs then
    run in time order (ties in scheduling order) with the clock set to their
    due time.
    """

    def __init__(self):
        self.clock = 0.0
        self._jobs: Dict[str, list] = {}
        self._seq = 0

    def now(self) -> float:
        return self.clock

    def _add(self, job_id, due, interval, func):
        self._seq += 1
        self._jobs[job_id] = [due, interval, func, self._seq]
        return job_id

    def call_later(self, job_id, delay, func):
        return self._add(job_id, self.clock + delay, None, func)

    def call_every(self, job_id, interval, func):
        return self._add(job_id, self.clock + interval, interval, func)

    def cancel(self, job_id):
        self._jobs.pop(job_id, None)

    def pending(self):
        return set(self._jobs)

    async def advance(self, seconds: float):
        target = self.clock + seconds
        while True:
            due = [(job[0], job[3], job_id) for job_id, job in self._jobs.items() if job[0] <= target]
            if not due:
                break
            when, _, job_id = min(due)
            job = self._jobs[job_id]
            self.clock = when
            if job[1] is None:
                del self._jobs[job_id]
            else:
                job[0] = when + job[1]
            await job[2]()
        self.clock = target


def status_envelope(status: str, message: str = "Payment status retrieved") -> ApiEnvelope:
    return ApiEnvelope(
        ok=True,
        message=message,
        data={
            "transaction": {"status": status, "ref": REFERENCE, "amount": 1015},
            "user": {"email": "ada@example.com", "new_balance": 2015},
        },
    )


class FakeBillsApi:
    """In-memory stand-in for ``BillsApiClient`` that records every call."""

    def __init__(self, timers: Optional[FakeTimers] = None):
        self.timers = timers
        self.calls: List[Tuple[str, Any, float]] = []
        self.status_queue: List[Any] = []
        self.default_status: Any = status_envelope("Pending")
        self.status_hook: Optional[Callable] = None
        self.charge_response: Any = ApiEnvelope(
            ok=True,
            data={
                "amount": 1000,
                "percentage": 1.5,
                "percentage_charge": 15,
                "flat_fee": 0,
                "service_charge": 15,
                "total_to_pay": 1015,
            },
        )
        self.initialize_response: Any = ApiEnvelope(
            ok=True,
            message="Deposit initialized successfully",
            data={
                "authorization_url": CHECKOUT_URL,
                "access_code": "abc123",
                "reference": REFERENCE,
            },
        )
        self.dashboard_response: Any = ApiEnvelope(ok=True, data={"balance": "1000.00"})

    def _record(self, name, args):
        self.calls.append((name, args, self.timers.now() if self.timers else 0.0))

    def calls_to(self, name):
        return [call for call in self.calls if call[0] == name]

    @staticmethod
    def _answer(item):
        if isinstance(item, Exception):
            raise item
        return item

    async def check_payment_status(self, reference, token=None):
        self._record("check_payment_status", reference)
        if self.status_hook is not None:
            return await self.status_hook(reference)
        item = self.status_queue.pop(0) if self.status_queue else self.default_status
        return self._answer(item)

    async def initialize_deposit(self, email, amount, charge=None, token=None):
        self._record("initialize_deposit", {"email": email, "amount": amount, "charge": charge, "token": token})
        return self._answer(self.initialize_response)

    async def calculate_charge(self, amount, token=None):
        self._record("calculate_charge", amount)
        return self._answer(self.charge_response)

    async def get_dashboard(self, token=None):
        self._record("get_dashboard", token)
        return self._answer(self.dashboard_response)

    async def aclose(self):
        pass


@pytest.fixture()
def timers():
    return FakeTimers()


@pytest.fixture()
def api(timers):
    return FakeBillsApi(timers)


@pytest.fixture()
def events():
    return []


@pytest.fixture()
def make_reconciler(api, timers, events):
    def _make(**config_overrides) -> PaymentReconciler:
        reconciler = PaymentReconciler(api, timers, ReconcilerConfig(**config_overrides), on_transition=events.append)
        reconciler.start(PaymentAttempt(reference=REFERENCE, amount_requested=1015, created_at=timers.now()))
        return reconciler

    return _make
