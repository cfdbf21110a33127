"""Request/response logging middleware."""
import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

# Query strings carry OAuth codes on the callback route
_UNLOGGED_QUERY_PATHS = ("/api/v1/auth/callback",)


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - start) * 1000, 2)

        path = request.url.path
        query = "" if path in _UNLOGGED_QUERY_PATHS else request.url.query
        logger.info(
            "request",
            method=request.method,
            path=path,
            query=query,
            status=response.status_code,
            duration_ms=elapsed_ms,
        )
        return response
