"""
Middleware components for request processing.

This package contains middleware for:
- Request context (request ID, IP address, user agent)
- Request logging (method, path, status, duration)
"""

from underground.middleware.request_context import RequestContextMiddleware
from underground.middleware.request_logging import RequestLoggingMiddleware

__all__ = [
    "RequestContextMiddleware",
    "RequestLoggingMiddleware",
]
