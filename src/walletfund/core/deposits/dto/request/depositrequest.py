from pydantic import BaseModel, EmailStr, Field


class DepositInitializeRequest(BaseModel):
    email: EmailStr
    amount: float = Field(..., gt=0)


class ChargeRequest(BaseModel):
    amount: float = Field(..., gt=0)


class NavigationEventRequest(BaseModel):
    url: str
