import time

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


class APILoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and processing time for every request."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        client_host = request.client.host if request.client else "unknown"
        try:
            response = await call_next(request)
        except Exception as e:
            processing_time = (time.time() - start_time) * 1000
            logger.error(
                f"[API_REQUEST_ERROR] {request.method} {request.url.path} from {client_host} "
                f"failed after {processing_time:.1f}ms: {str(e)}"
            )
            raise

        processing_time = (time.time() - start_time) * 1000
        logger.info(
            f"[API_REQUEST] {request.method} {request.url.path} -> {response.status_code} "
            f"({processing_time:.1f}ms) client={client_host}"
        )
        return response
