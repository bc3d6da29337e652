from typing import Optional

from fastapi import APIRouter, Depends, Header

from walletfund.core.exceptions.AuthException import MissingTokenError

# Router for organizing routes
base_routes = APIRouter()


def bearer_token(authorization: Optional[str] = Header(default=None)) -> Optional[str]:
    """Caller's token, forwarded to the bills API."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    return token if scheme.lower() == "bearer" and token else None


def validate_token(token: Optional[str] = Depends(bearer_token)) -> str:
    if not token:
        raise MissingTokenError()
    return token


# ROOT ROUTE
@base_routes.get("/")
def home():
    return {
        "message": "Welcome to Walletfund!",
        "description": "Back end for the wallet funding flow of the bills app.",
        "default endpoints": [
            "Deposit charge quote",
            "Deposit initialization and verification",
            "Dashboard",
        ],
    }


@base_routes.get("/health")
def health():
    return {"status": "ok"}
