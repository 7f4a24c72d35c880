"""Built-in middleware: access logging and error conversion.

``ErrorHandler`` belongs outermost so it sees failures from everything
inside it; ``RequestLogger`` usually sits just inside it::

    app.use(ErrorHandler())
    app.use(RequestLogger())
"""

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from waypoint.http.request import Request
from waypoint.http.response import Response
from waypoint.middleware.protocol import Next
from waypoint.server.errors import handle_error

access_logger = logging.getLogger("waypoint.access")


class RequestLogger:
    """Log one line per request: method, path, status, elapsed time.

    Exceptions from inner layers are logged and re-raised untouched.
    """

    __slots__ = ("level", "logger")

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.INFO) -> None:
        self.logger = logger or access_logger
        self.level = level

    async def __call__(self, request: Request, next: Next) -> Response:
        start = time.perf_counter()
        try:
            response = await next(request)
        except Exception:
            elapsed_ms = (time.perf_counter() - start) * 1000
            self.logger.log(
                self.level, "%s %s -> error (%.1fms)", request.method, request.url, elapsed_ms
            )
            raise
        elapsed_ms = (time.perf_counter() - start) * 1000
        self.logger.log(
            self.level,
            "%s %s -> %d (%.1fms)",
            request.method,
            request.url,
            response.status,
            elapsed_ms,
        )
        return response


@dataclass(frozen=True, slots=True)
class ErrorHandlerConfig:
    """ErrorHandler configuration.

    ``responders`` maps a status code or exception type to a callable
    taking ``()``, ``(request)`` or ``(request, exc)``.
    """

    debug: bool = False
    responders: Mapping[int | type, Callable[..., Any]] = field(default_factory=dict)


class ErrorHandler:
    """Convert exceptions raised inside the chain into responses.

    ``HTTPError`` keeps its status and headers; anything else becomes a
    500. ``asyncio.CancelledError`` is not an ``Exception`` and passes
    through.
    """

    __slots__ = ("config",)

    def __init__(self, config: ErrorHandlerConfig | None = None) -> None:
        self.config = config or ErrorHandlerConfig()

    async def __call__(self, request: Request, next: Next) -> Response:
        try:
            return await next(request)
        except Exception as exc:
            return await handle_error(
                exc, request, self.config.responders, debug=self.config.debug
            )
