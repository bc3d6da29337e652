from typing import Optional

from fastapi import APIRouter, Depends, Request

from walletfund.core.deposits.dto.request.depositrequest import (
    ChargeRequest,
    DepositInitializeRequest,
    NavigationEventRequest,
)
from walletfund.core.deposits.dto.response.depositresponse import (
    ChargeResponse,
    DepositInitializeResponse,
    DepositStatusResponse,
)
from walletfund.core.deposits.service.deposit_service import DepositService
from walletfund.routes import bearer_token, validate_token

deposit_routes = APIRouter()


def get_deposit_service(request: Request) -> DepositService:
    return request.app.state.deposit_service


@deposit_routes.post("/charge", response_model=ChargeResponse)
async def calculate_deposit_charge(
    request: ChargeRequest,
    token: Optional[str] = Depends(bearer_token),
    service: DepositService = Depends(get_deposit_service),
):
    charge = await service.calculate_charge(request.amount, token=token)
    if charge is None:
        return ChargeResponse(status=False, message="Charge calculation unavailable")
    return ChargeResponse(status=True, message="Charge calculated", charge=charge)


@deposit_routes.post("/initialize", response_model=DepositInitializeResponse)
async def initialize_deposit(
    request: DepositInitializeRequest,
    token: str = Depends(validate_token),
    service: DepositService = Depends(get_deposit_service),
):
    """
    Initialize a wallet deposit.
    Returns the hosted checkout URL the app must open; payment verification
    starts immediately in the background. The attempt belongs to the caller's token.
    """
    attempt = await service.initialize_deposit(request.email, request.amount, token=token)
    return DepositInitializeResponse(
        status=True,
        message="Payment initialized",
        authorization_url=attempt.authorization_url,
        access_code=attempt.access_code,
        reference=attempt.reference,
        amount_requested=attempt.amount_requested,
    )


@deposit_routes.get("/{reference}", response_model=DepositStatusResponse)
async def get_deposit_status(
    reference: str,
    token: str = Depends(validate_token),
    service: DepositService = Depends(get_deposit_service),
):
    return DepositStatusResponse.from_event(service.get_status(reference, token=token))


@deposit_routes.post("/{reference}/navigation", response_model=DepositStatusResponse)
async def report_checkout_navigation(
    reference: str,
    request: NavigationEventRequest,
    token: str = Depends(validate_token),
    service: DepositService = Depends(get_deposit_service),
):
    """Forward a URL change from the embedded checkout browser."""
    event = await service.handle_navigation(reference, request.url, token=token)
    return DepositStatusResponse.from_event(event)


@deposit_routes.post("/{reference}/cancel", response_model=DepositStatusResponse)
async def cancel_deposit(
    reference: str,
    token: str = Depends(validate_token),
    service: DepositService = Depends(get_deposit_service),
):
    return DepositStatusResponse.from_event(service.cancel(reference, token=token))
