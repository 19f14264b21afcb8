"""
RequestContext Middleware - Adds request tracking to all requests.

Every request gets the following on request.state:
- request_id: Unique ID for request tracing
- ip_address: Client IP address
- user_agent: Client user agent string

The login route passes these to the audit recorder, and request_id is bound
into structlog's context so every log line of the request carries it.
"""

import uuid

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from underground.config import settings
from underground.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Add request context to all incoming requests.

    Also adds an X-Request-ID header to responses for client-side tracing.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        request.state.ip_address = self._extract_client_ip(request)
        request.state.user_agent = request.headers.get("user-agent")

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger.debug(
            "Request started",
            method=request.method,
            path=request.url.path,
            ip_address=request.state.ip_address,
        )

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    def _extract_client_ip(self, request: Request) -> str | None:
        """
        Client IP, honouring X-Forwarded-For only from a trusted proxy.

        TRUST_X_FORWARDED_FOR must be enabled and the direct peer must be
        listed in TRUSTED_PROXY_IPS; otherwise the header is ignored so a
        client cannot spoof the address recorded in login logs.
        """
        direct = request.client.host if request.client else None
        if not settings.TRUST_X_FORWARDED_FOR or direct not in settings.TRUSTED_PROXY_IPS:
            return direct

        forwarded_for = request.headers.get("x-forwarded-for")
        if not forwarded_for:
            return direct

        # "client, proxy1, proxy2": first entry is the original client
        ip_address = forwarded_for.split(",")[0].strip()
        logger.debug("Using X-Forwarded-For from trusted proxy", proxy_ip=direct, client_ip=ip_address)
        return ip_address
