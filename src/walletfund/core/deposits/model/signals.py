from dataclasses import dataclass

from walletfund.core.deposits.model.statusresult import StatusResult


@dataclass(frozen=True)
class StatusSignal:
    result: StatusResult
    source: str = "poll"


@dataclass(frozen=True)
class NavigatedAway:
    url: str = ""


@dataclass(frozen=True)
class PollExhausted:
    ticks: int = 0


@dataclass(frozen=True)
class HardTimeout:
    pass
