from pydantic import BaseModel


class ChargeQuote(BaseModel):
    amount: float
    percentage: float = 0
    percentage_charge: float = 0
    flat_fee: float = 0
    service_charge: float = 0
    total_to_pay: float
