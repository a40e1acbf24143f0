"""
API Module
"""
from .errors import register_exception_handlers
from .middleware import RequestLoggingMiddleware, RateLimitMiddleware, SecurityHeadersMiddleware

__all__ = [
    "register_exception_handlers",
    "RequestLoggingMiddleware",
    "RateLimitMiddleware",
    "SecurityHeadersMiddleware",
]
