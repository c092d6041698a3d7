"""
Request logging middleware. Logs method, path, status, duration and a request
id. Never logs the query string or headers.
"""
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:16]
        path = request.scope.get("path", "")
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request_crashed request_id=%s method=%s path=%s duration_ms=%.1f",
                request_id, request.method, path, (time.perf_counter() - start) * 1000,
            )
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        status = response.status_code
        level = logging.ERROR if status >= 500 else logging.WARNING if status >= 400 else logging.INFO
        logger.log(
            level,
            "request_finished request_id=%s method=%s path=%s status=%s duration_ms=%.1f",
            request_id, request.method, path, status, duration_ms,
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
