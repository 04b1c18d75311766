import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from taskapi.schemas import error_response

logger = structlog.get_logger("taskapi.request")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Binds a request id to the log context and logs one line per request.

    Exceptions no handler claimed are turned into the 500 envelope here,
    inside the middleware, so that response carries X-Request-ID as well.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("panic recovered")
            response = error_response(500, "internal_error", "An unexpected error occurred")
        latency_ms = round((time.perf_counter() - start) * 1000, 2)

        fields = {
            "status": response.status_code,
            "query": request.url.query,
            "client": request.client.host if request.client else None,
            "latency_ms": latency_ms,
        }
        if response.status_code >= 500:
            logger.error("server error", **fields)
        elif response.status_code >= 400:
            logger.warning("client error", **fields)
        else:
            logger.info("request", **fields)

        response.headers["X-Request-ID"] = request_id
        return response
