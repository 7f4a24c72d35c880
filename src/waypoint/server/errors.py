"""Error-to-response mapping.

Turns ``HTTPError`` exceptions and unexpected failures into Response
objects, using responders registered with ``App.error()`` or plain
defaults. Shared by the ASGI handler and the ``ErrorHandler``
middleware.
"""

import inspect
import logging
import traceback
from collections.abc import Callable, Mapping
from typing import Any, TypeAlias

from waypoint._internal.invoke import invoke
from waypoint.errors import HTTPError
from waypoint.http.request import Request
from waypoint.http.response import Response
from waypoint.server.negotiation import negotiate

logger = logging.getLogger("waypoint.server")

Responders: TypeAlias = Mapping[int | type, Callable[..., Any]]


async def call_error_responder(
    responder: Callable[..., Any],
    request: Request,
    exc: Exception,
) -> Response:
    """Invoke a registered error responder with introspected arguments.

    Responders may accept zero, one (request), or two (request, exc) args,
    and may be sync or async.
    """
    params = list(inspect.signature(responder).parameters.values())
    if len(params) >= 2:
        result = await invoke(responder, request, exc)
    elif len(params) == 1:
        result = await invoke(responder, request)
    else:
        result = await invoke(responder)
    return negotiate(result)


def _find_responder(responders: Responders, exc: Exception, status: int) -> Callable[..., Any] | None:
    for exc_type in type(exc).__mro__:
        if exc_type in responders:
            return responders[exc_type]
    return responders.get(status)


async def handle_http_error(
    exc: HTTPError,
    request: Request,
    responders: Responders,
    *,
    debug: bool = False,
) -> Response:
    """Map an HTTPError to a Response, keeping its status and headers."""
    logger.debug("%d %s %s — %s", exc.status, request.method, request.path, exc.detail)

    responder = _find_responder(responders, exc, exc.status)
    if responder is not None:
        response = await call_error_responder(responder, request, exc)
        # A responder returning a bare body keeps the error's status
        if response.status == 200:
            response = response.with_status(exc.status)
    else:
        detail = exc.detail or f"Error {exc.status}"
        if debug and exc.detail:
            detail = f"{exc.status}: {exc.detail}"
        response = Response(body=detail, status=exc.status)

    for name, value in exc.headers:
        if response.header(name) is None:
            response = response.with_header(name, value)
    return response


async def handle_internal_error(
    exc: Exception,
    request: Request,
    responders: Responders,
    *,
    debug: bool = False,
) -> Response:
    """Handle unexpected exceptions as 500 errors."""
    logger.error("500 %s %s", request.method, request.path, exc_info=exc)

    responder = _find_responder(responders, exc, 500)
    if responder is not None:
        response = await call_error_responder(responder, request, exc)
        if response.status == 200:
            response = response.with_status(500)
        return response

    if debug:
        body = "".join(traceback.format_exception(exc))
        return Response(body=body, status=500)
    return Response(body="Internal Server Error", status=500)


async def handle_error(
    exc: Exception,
    request: Request,
    responders: Responders,
    *,
    debug: bool = False,
) -> Response:
    """Dispatch to ``handle_http_error`` or ``handle_internal_error``."""
    if isinstance(exc, HTTPError):
        return await handle_http_error(exc, request, responders, debug=debug)
    return await handle_internal_error(exc, request, responders, debug=debug)
