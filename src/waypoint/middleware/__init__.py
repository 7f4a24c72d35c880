"""Middleware — Protocol-based, no inheritance required.

A middleware is any callable matching:
    async def mw(request: Request, next: Next) -> Response

Built-in middleware:
    BearerAuth -- Bearer token authentication (401 short-circuit)
    ErrorHandler -- Convert exceptions into error responses
    LoginRequired -- Redirect anonymous requests to a login page
    RequestLogger -- One access-log line per request
"""

from waypoint.middleware.auth import AuthConfig, BearerAuth, LoginRequired
from waypoint.middleware.builtin import ErrorHandler, ErrorHandlerConfig, RequestLogger
from waypoint.middleware.pipeline import Pipeline, compose
from waypoint.middleware.protocol import Middleware, Next

__all__ = [
    "AuthConfig",
    "BearerAuth",
    "ErrorHandler",
    "ErrorHandlerConfig",
    "LoginRequired",
    "Middleware",
    "Next",
    "Pipeline",
    "RequestLogger",
    "compose",
]
