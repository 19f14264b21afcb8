"""Log every HTTP request with its status and timing."""

import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from underground.infrastructure.observability.logging import log_request


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = (time.time() - start_time) * 1000

        log_request(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(process_time, 2),
        )
        return response
