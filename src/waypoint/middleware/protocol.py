"""Middleware protocol and Next type alias.

A middleware is any callable matching::

    async def my_mw(request: Request, next: Next) -> Response: ...

No base class required. The pipeline checks the shape, not the lineage.
"""

from collections.abc import Awaitable, Callable
from typing import Protocol, TypeAlias

from waypoint.http.request import Request
from waypoint.http.response import Response

# The next link in the chain: another middleware or the terminal handler
Next: TypeAlias = Callable[[Request], Awaitable[Response]]


class Middleware(Protocol):
    """Protocol for waypoint middleware.

    Accepts both functions and callable objects::

        # Function middleware
        async def timing(request: Request, next: Next) -> Response:
            start = time.monotonic()
            response = await next(request)
            return response.with_header("X-Time", f"{time.monotonic() - start:.3f}")

        # Class middleware
        class RequireJSON:
            async def __call__(self, request: Request, next: Next) -> Response:
                if request.content_type != "application/json":
                    return Response("expected JSON", status=415)
                return await next(request)
    """

    async def __call__(self, request: Request, next: Next) -> Response: ...
