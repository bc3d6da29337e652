from dataclasses import dataclass, field
from typing import Optional

from walletfund.core.deposits.model.outcome import AttemptStatus


@dataclass
class PaymentAttempt:
    reference: str
    amount_requested: float
    created_at: float
    email: str = ""
    authorization_url: str = ""
    access_code: str = ""
    # Last status observed from the backend; None until a check reports one
    status: Optional[AttemptStatus] = None
    auth_token: Optional[str] = field(default=None, repr=False)

    def __setattr__(self, name, value):
        if name == "reference" and "reference" in self.__dict__:
            raise AttributeError("PaymentAttempt.reference is immutable")
        super().__setattr__(name, value)
