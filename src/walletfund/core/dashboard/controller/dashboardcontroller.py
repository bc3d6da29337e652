from fastapi import APIRouter, Depends, Query, Request

from walletfund.core.dashboard.service.dashboard_cache import DashboardCache, owner_key
from walletfund.core.exceptions.DepositException import UpstreamUnavailableException
from walletfund.routes import validate_token
from walletfund.utilities.apiclient import ApiClientException

dashboard_routes = APIRouter()


def get_dashboard_cache(request: Request) -> DashboardCache:
    return request.app.state.dashboard_cache


@dashboard_routes.get("")
async def get_dashboard(
    request: Request,
    refresh: bool = Query(False),
    token: str = Depends(validate_token),
    cache: DashboardCache = Depends(get_dashboard_cache),
):
    """Dashboard of the account the token belongs to, served from cache unless ``refresh`` is set."""
    api_client = request.app.state.api_client
    owner = owner_key(token)

    async def fetch():
        return await api_client.get_dashboard(token=token)

    try:
        if refresh:
            data = await cache.refresh(owner, fetch)
        else:
            data = await cache.get_or_fetch(owner, fetch)
    except ApiClientException:
        raise UpstreamUnavailableException()
    return {"status": data is not None, "data": data}


@dashboard_routes.post("/logout")
async def logout(
    token: str = Depends(validate_token),
    cache: DashboardCache = Depends(get_dashboard_cache),
):
    cache.reset_for_key(owner_key(token))
    return {"status": True, "message": "Dashboard cache cleared"}
