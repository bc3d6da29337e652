from dataclasses import dataclass
from typing import Any, Optional

from walletfund.core.deposits.model.outcome import Outcome


@dataclass(frozen=True)
class ReconciliationEvent:
    reference: str
    outcome: Outcome
    message: str = ""
    payload: Optional[Any] = None
    check_count: int = 0
