import logging
from typing import Any, Dict, Optional

import httpx

from walletfund.config import settings
from walletfund.utilities.envelope import ApiEnvelope, normalize_envelope

logger = logging.getLogger(__name__)


class ApiClientException(Exception):
    pass


class BillsApiClient:
    """Async client for the remote bills API.

    Every call returns an ``ApiEnvelope``; transport failures and non-JSON
    bodies raise ``ApiClientException``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.API_TIMEOUT_SECONDS
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def _headers(self, token: Optional[str]) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(
        self,
        method: str,
        endpoint: str,
        token: Optional[str] = None,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> ApiEnvelope:
        logger.info(f"[API_REQUEST] {method} {self.base_url}{endpoint}")
        try:
            response = await self._client.request(
                method,
                endpoint,
                headers=self._headers(token),
                json=json,
                params=params,
            )
        except httpx.TimeoutException:
            logger.error(f"[API_TIMEOUT] {method} {endpoint}")
            raise ApiClientException(f"Request timeout: {endpoint}")
        except httpx.RequestError as e:
            logger.error(f"[API_NETWORK_ERROR] {method} {endpoint}: {e}")
            raise ApiClientException(f"Network error: {e}")

        try:
            body = response.json()
        except ValueError:
            logger.error(f"[API_BAD_BODY] {endpoint} returned non-JSON body (status={response.status_code})")
            raise ApiClientException(f"Invalid response body from {endpoint}")

        logger.debug(f"[API_RESPONSE] status={response.status_code}, body={body}")
        return normalize_envelope(body, status_code=response.status_code)

    async def initialize_deposit(
        self,
        email: str,
        amount: float,
        charge: Optional[Dict[str, Any]] = None,
        token: Optional[str] = None,
    ) -> ApiEnvelope:
        payload: Dict[str, Any] = {"email": email, "amount": amount}
        if charge:
            payload["charge_info"] = charge
        # The backend route is spelled "initalize"
        return await self._request("POST", "/user/deposit/initalize-deposit", token=token, json=payload)

    async def check_payment_status(self, reference: str, token: Optional[str] = None) -> ApiEnvelope:
        return await self._request(
            "GET",
            "/user/deposit/payment-callback",
            token=token,
            params={"trxref": reference, "reference": reference},
        )

    async def calculate_charge(self, amount: float, token: Optional[str] = None) -> ApiEnvelope:
        return await self._request("POST", "/user/deposit/calculate-charge", token=token, json={"amount": amount})

    async def get_dashboard(self, token: Optional[str] = None) -> ApiEnvelope:
        return await self._request("GET", "/user/dashboard", token=token)

    async def aclose(self):
        await self._client.aclose()
