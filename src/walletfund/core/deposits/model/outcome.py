from enum import Enum


class Outcome(str, Enum):
    PENDING = "PENDING"

    # Backend-confirmed
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"

    # Client-side only; the backend may still settle the payment
    TIMED_OUT = "TIMED_OUT"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self is not Outcome.PENDING


class AttemptStatus(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"
