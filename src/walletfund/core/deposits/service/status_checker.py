import logging
import math
from typing import Callable

from walletfund.core.deposits.model.paymentattempt import PaymentAttempt
from walletfund.core.deposits.model.reconciliationstate import ReconciliationState
from walletfund.core.deposits.model.statusresult import StatusResult
from walletfund.utilities.apiclient import ApiClientException, BillsApiClient

logger = logging.getLogger(__name__)


class RateLimitedStatusChecker:
    """
    Gate in front of the payment-status endpoint.

    One instance per attempt, shared by every signal source. The gate stamps
    ``last_check_at`` before awaiting the network call, so a second requester
    arriving while a call is in flight is skipped rather than duplicated.
    Before the first real call the gate measures from the attempt's creation.
    """

    def __init__(
        self,
        api_client: BillsApiClient,
        attempt: PaymentAttempt,
        state: ReconciliationState,
        clock: Callable[[], float],
        min_interval: float,
    ):
        self.api_client = api_client
        self.attempt = attempt
        self.state = state
        self.clock = clock
        self.min_interval = min_interval

    def seconds_until_allowed(self) -> float:
        since = self.state.last_check_at
        if since is None:
            since = self.attempt.created_at
        return self.min_interval - (self.clock() - since)

    async def request_check(self, source: str = "poll") -> StatusResult:
        reference = self.attempt.reference
        remaining = self.seconds_until_allowed()
        if remaining > 0:
            retry_in = math.ceil(remaining)
            logger.info(f"[DEPOSIT_CHECK_SKIPPED] {reference} ({source}) - {retry_in}s remaining until next allowed call")
            return StatusResult.skipped(retry_in)

        self.state.last_check_at = self.clock()
        self.state.check_count += 1
        logger.info(f"[DEPOSIT_CHECK_START] Status call #{self.state.check_count} for {reference} ({source})")

        try:
            envelope = await self.api_client.check_payment_status(reference, token=self.attempt.auth_token)
        except ApiClientException as e:
            logger.warning(f"[DEPOSIT_CHECK_ERROR] {reference}: {e}")
            return StatusResult.error(str(e))
        except Exception as e:
            logger.error(f"[DEPOSIT_CHECK_UNEXPECTED_ERROR] {reference}: {str(e)}", exc_info=True)
            return StatusResult.error(str(e))

        try:
            result = StatusResult.from_envelope(envelope)
        except Exception as e:
            logger.error(f"[DEPOSIT_CHECK_BAD_RESPONSE] {reference}: {str(e)}", exc_info=True)
            return StatusResult.error(str(e))
        logger.info(f"[DEPOSIT_CHECK_RESULT] {reference}: {result.kind.value} {result.detail}".rstrip())
        return result
