from typing import Any, Optional

from pydantic import BaseModel

from walletfund.core.deposits.dto.response.chargequote import ChargeQuote
from walletfund.core.deposits.model.outcome import Outcome
from walletfund.core.deposits.model.reconciliationevent import ReconciliationEvent


class ChargeResponse(BaseModel):
    status: bool
    message: str
    charge: Optional[ChargeQuote] = None


class DepositInitializeResponse(BaseModel):
    status: bool
    message: str
    authorization_url: Optional[str] = None
    access_code: Optional[str] = None
    reference: Optional[str] = None
    amount_requested: Optional[float] = None


class DepositStatusResponse(BaseModel):
    reference: str
    outcome: Outcome
    message: str
    payload: Optional[Any] = None
    check_count: int = 0

    @classmethod
    def from_event(cls, event: ReconciliationEvent) -> "DepositStatusResponse":
        return cls(
            reference=event.reference,
            outcome=event.outcome,
            message=event.message,
            payload=event.payload,
            check_count=event.check_count,
        )
