from dataclasses import dataclass, field
from typing import Optional, Set

from walletfund.core.deposits.model.outcome import Outcome


@dataclass
class ReconciliationState:
    outcome: Outcome = Outcome.PENDING
    last_check_at: Optional[float] = None
    check_count: int = 0
    active_timers: Set[str] = field(default_factory=set)
