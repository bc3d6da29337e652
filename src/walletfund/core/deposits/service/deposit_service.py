import hmac
import logging
from collections import OrderedDict
from typing import Dict, Optional

from pydantic import ValidationError

from walletfund.config import settings as default_settings
from walletfund.core.dashboard.service.dashboard_cache import DashboardCache, owner_key
from walletfund.core.deposits.dto.response.chargequote import ChargeQuote
from walletfund.core.deposits.model.outcome import Outcome
from walletfund.core.deposits.model.paymentattempt import PaymentAttempt
from walletfund.core.deposits.model.reconciliationevent import ReconciliationEvent
from walletfund.core.deposits.service.reconciler import PaymentReconciler, ReconcilerConfig
from walletfund.core.exceptions.DepositException import (
    DepositInitializationException,
    DepositNotFoundException,
    DepositValidationException,
    UpstreamUnavailableException,
)
from walletfund.utilities.apiclient import ApiClientException, BillsApiClient
from walletfund.utilities.timers import Timers

logger = logging.getLogger(__name__)


class DepositService:
    def __init__(
        self,
        api_client: BillsApiClient,
        timers: Timers,
        dashboard_cache: Optional[DashboardCache] = None,
        settings=None,
    ):
        self.api_client = api_client
        self.timers = timers
        self.dashboard_cache = dashboard_cache
        self.settings = settings or default_settings
        self.reconciler_config = ReconcilerConfig.from_settings(self.settings)
        self._active: Dict[str, PaymentReconciler] = {}
        # reference -> token that started the attempt, kept while its outcome is retained
        self._owners: Dict[str, Optional[str]] = {}
        self._finished: "OrderedDict[str, ReconciliationEvent]" = OrderedDict()

    async def calculate_charge(self, amount: float, token: Optional[str] = None) -> Optional[ChargeQuote]:
        if amount <= 0:
            return None
        try:
            envelope = await self.api_client.calculate_charge(amount, token=token)
        except ApiClientException as e:
            logger.warning(f"[CHARGE_CALCULATION_ERROR] {amount}: {e}")
            return None

        if not envelope.ok or not envelope.data:
            logger.info(f"[CHARGE_CALCULATION_FAILED] {amount}: {envelope.message}")
            return None
        try:
            return ChargeQuote.model_validate(envelope.data)
        except ValidationError as e:
            logger.warning(f"[CHARGE_CALCULATION_BAD_DATA] {amount}: {e}")
            return None

    def _validate(self, email: str, amount: float):
        if not email or not email.strip():
            raise DepositValidationException("Please enter your email address")
        if amount is None or amount <= 0:
            raise DepositValidationException("Please enter a valid amount greater than 0")
        minimum = self.settings.DEPOSIT_MIN_AMOUNT
        if amount < minimum:
            raise DepositValidationException(f"Minimum deposit amount is ₦{minimum:g}")

    async def initialize_deposit(self, email: str, amount: float, token: Optional[str] = None) -> PaymentAttempt:
        """
        Quote the charge, initialize the hosted checkout and start reconciling.

        The amount paid is the quoted ``total_to_pay`` when a quote is
        available, otherwise the bare amount.
        """
        self._validate(email, amount)

        charge = await self.calculate_charge(amount, token=token)
        payment_amount = charge.total_to_pay if charge else amount

        try:
            envelope = await self.api_client.initialize_deposit(
                email, payment_amount, charge=charge.model_dump() if charge else None, token=token
            )
        except ApiClientException as e:
            logger.error(f"[DEPOSIT_INITIALIZE_ERROR] {email}: {e}")
            raise UpstreamUnavailableException()

        data = envelope.data if isinstance(envelope.data, dict) else {}
        if not envelope.ok or not data.get("authorization_url") or not data.get("reference"):
            message = envelope.message
            if message and "successfully" in message.lower():
                message = "Payment initialized but no payment data received. Please try again."
            logger.warning(f"[DEPOSIT_INITIALIZE_REJECTED] {email}: {envelope.message}")
            raise DepositInitializationException(message or "Failed to initialize payment")

        attempt = PaymentAttempt(
            reference=data["reference"],
            amount_requested=payment_amount,
            created_at=self.timers.now(),
            email=email,
            authorization_url=data["authorization_url"],
            access_code=data.get("access_code") or "",
            auth_token=token,
        )
        self._start(attempt)
        return attempt

    def _start(self, attempt: PaymentAttempt):
        reference = attempt.reference
        if reference in self._active:
            raise DepositInitializationException(f"Payment {reference} is already being verified")

        reconciler = PaymentReconciler(self.api_client, self.timers, self.reconciler_config)
        reconciler.subscribe(self._on_transition)
        self._active[reference] = reconciler
        self._owners[reference] = attempt.auth_token
        reconciler.start(attempt)
        logger.info(f"[DEPOSIT_STARTED] {reference} for {attempt.email}")

    def _on_transition(self, event: ReconciliationEvent):
        reference = event.reference
        self._active.pop(reference, None)
        owner = self._owners.get(reference)

        self._finished[reference] = event
        self._finished.move_to_end(reference)
        while len(self._finished) > self.settings.DEPOSIT_RESULT_RETENTION:
            evicted, _ = self._finished.popitem(last=False)
            self._owners.pop(evicted, None)

        if event.outcome is Outcome.SUCCESS and owner and self.dashboard_cache is not None:
            self.dashboard_cache.reset_for_key(owner_key(owner))

    def _authorize(self, reference: str, token: Optional[str]):
        """Unknown references and references started by another token look the same to the caller."""
        if reference not in self._owners:
            raise DepositNotFoundException(f"No payment with reference {reference}")
        owner = self._owners[reference] or ""
        if not hmac.compare_digest(owner.encode("utf-8"), (token or "").encode("utf-8")):
            logger.warning(f"[DEPOSIT_ACCESS_DENIED] {reference}: token does not own this attempt")
            raise DepositNotFoundException(f"No payment with reference {reference}")

    def _reconciler(self, reference: str) -> PaymentReconciler:
        reconciler = self._active.get(reference)
        if reconciler is None:
            raise DepositNotFoundException(f"No active payment with reference {reference}")
        return reconciler

    def get_status(self, reference: str, token: Optional[str] = None) -> ReconciliationEvent:
        self._authorize(reference, token)
        reconciler = self._active.get(reference)
        if reconciler is not None:
            return reconciler.snapshot()
        event = self._finished.get(reference)
        if event is None:
            raise DepositNotFoundException(f"No payment with reference {reference}")
        return event

    async def handle_navigation(self, reference: str, url: str, token: Optional[str] = None) -> ReconciliationEvent:
        self._authorize(reference, token)
        if reference not in self._active and reference in self._finished:
            return self._finished[reference]
        await self._reconciler(reference).handle_navigation(url)
        return self.get_status(reference, token)

    def cancel(self, reference: str, token: Optional[str] = None) -> ReconciliationEvent:
        self._authorize(reference, token)
        if reference not in self._active and reference in self._finished:
            return self._finished[reference]
        self._reconciler(reference).cancel()
        return self.get_status(reference, token)

    def active_references(self):
        return list(self._active)

    def shutdown(self):
        for reference, reconciler in list(self._active.items()):
            logger.info(f"[DEPOSIT_SHUTDOWN_CANCEL] {reference}")
            reconciler.cancel()
