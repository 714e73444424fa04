# API Middleware
"""
Middleware components: authentication, rate limiting, request logging and
security headers.
"""

from src.api.middleware.auth import APIKeyMiddleware
from src.api.middleware.rate_limit import RateLimitMiddleware
from src.api.middleware.request_log import RequestLogMiddleware, get_request_id
from src.api.middleware.security_headers import SecurityHeadersMiddleware

__all__ = [
    "APIKeyMiddleware",
    "RateLimitMiddleware",
    "RequestLogMiddleware",
    "SecurityHeadersMiddleware",
    "get_request_id",
]
