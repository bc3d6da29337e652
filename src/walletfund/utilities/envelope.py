from typing import Any, Optional

from pydantic import BaseModel

MALFORMED_RESPONSE_MESSAGE = "Malformed response from server"
TOKEN_EXPIRED_MESSAGE = "Token expired"


class ApiEnvelope(BaseModel):
    """Single response shape consumed everywhere in the service.

    The bills API answers with either ``{"success": true, ...}`` or
    ``{"status": "success", ...}`` depending on the endpoint; both collapse
    into ``ok`` here.
    """

    ok: bool
    data: Optional[Any] = None
    message: str = ""
    token_expired: bool = False


def _is_ok(raw: dict) -> bool:
    if raw.get("success") is True:
        return True
    status = raw.get("status")
    if status is True:
        return True
    return isinstance(status, str) and status.lower() == "success"


def normalize_envelope(raw: Any, status_code: int = 200) -> ApiEnvelope:
    if not isinstance(raw, dict):
        return ApiEnvelope(ok=False, message=MALFORMED_RESPONSE_MESSAGE)

    message = raw.get("message") or ""
    if not isinstance(message, str):
        message = str(message)

    if status_code == 401 and "expired" in message.lower():
        return ApiEnvelope(ok=False, message=TOKEN_EXPIRED_MESSAGE, token_expired=True)

    return ApiEnvelope(ok=_is_ok(raw), data=raw.get("data"), message=message)
