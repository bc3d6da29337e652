from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from walletfund.core.deposits.model.outcome import AttemptStatus
from walletfund.utilities.envelope import ApiEnvelope


class StatusKind(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    PENDING = "pending"
    ERROR = "error"
    # Rate limiter refused the call; nothing reached the backend
    SKIPPED = "skipped"


@dataclass(frozen=True)
class StatusResult:
    kind: StatusKind
    payload: Optional[Any] = None
    detail: str = ""
    retry_in: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.kind in (StatusKind.COMPLETED, StatusKind.FAILED)

    @classmethod
    def skipped(cls, retry_in: int) -> "StatusResult":
        return cls(kind=StatusKind.SKIPPED, retry_in=retry_in)

    @classmethod
    def error(cls, detail: str) -> "StatusResult":
        return cls(kind=StatusKind.ERROR, detail=detail)

    @classmethod
    def from_envelope(cls, envelope: ApiEnvelope) -> "StatusResult":
        """
        Interpret a payment-callback response.

        Only an explicit "Completed" or "Failed" transaction status is
        terminal. A not-ok envelope or a body without a transaction status
        is an error, which callers treat like pending.
        """
        if not envelope.ok:
            return cls.error(envelope.message or "Payment status check failed")

        data = envelope.data
        transaction = data.get("transaction") if isinstance(data, dict) else None
        status = transaction.get("status") if isinstance(transaction, dict) else None
        if not status:
            return cls.error("Payment status response has no transaction status")

        if status == AttemptStatus.COMPLETED.value:
            return cls(kind=StatusKind.COMPLETED, payload=data, detail=envelope.message)
        if status == AttemptStatus.FAILED.value:
            return cls(kind=StatusKind.FAILED, payload=data, detail=envelope.message)
        return cls(kind=StatusKind.PENDING, payload=data, detail=str(status))
