"""Middleware pipeline — the onion model as function composition.

The chain is folded once, innermost-out, into a single ``Next``
callable. Calling it runs ``mw[0] -> mw[1] -> ... -> terminal`` on the
way in and unwinds in reverse on the way out. A middleware that returns
without awaiting ``next`` short-circuits everything inside it.

Exceptions raised anywhere in the chain propagate unchanged through the
enclosing ``await next(...)`` calls. Nothing here catches, retries, or
converts them; that is the job of an error-handling middleware placed
outermost.
"""

from collections.abc import Callable, Iterable
from typing import Any

from waypoint._internal.invoke import invoke
from waypoint.http.request import Request
from waypoint.http.response import Response
from waypoint.middleware.protocol import Middleware, Next


def _terminal(handler: Callable[..., Any]) -> Next:
    """Adapt a sync or async ``handler(request)`` to ``Next``."""

    async def call(request: Request) -> Response:
        return await invoke(handler, request)

    return call


def _link(middleware: Middleware, inner: Next) -> Next:
    async def call(request: Request) -> Response:
        return await middleware(request, inner)

    return call


def compose(middleware: Iterable[Middleware], terminal: Callable[..., Any]) -> Next:
    """Fold *middleware* around *terminal*; the first item ends up outermost."""
    chain = _terminal(terminal)
    for mw in reversed(tuple(middleware)):
        chain = _link(mw, chain)
    return chain


class Pipeline:
    """An ordered, write-once list of middleware.

    Usage::

        pipeline = Pipeline()
        pipeline.use(ErrorHandler())
        pipeline.use(RequestLogger())
        response = await pipeline.execute(request, handler)
    """

    __slots__ = ("_frozen", "_middleware")

    def __init__(self, middleware: Iterable[Middleware] = ()) -> None:
        self._middleware: list[Middleware] = list(middleware)
        self._frozen = False

    def use(self, middleware: Middleware) -> None:
        """Append *middleware*; earlier registrations wrap later ones."""
        if self._frozen:
            msg = "Cannot add middleware after the pipeline is frozen."
            raise RuntimeError(msg)
        self._middleware.append(middleware)

    def freeze(self) -> None:
        """Reject further ``use()`` calls."""
        self._frozen = True

    @property
    def middleware(self) -> tuple[Middleware, ...]:
        return tuple(self._middleware)

    def __len__(self) -> int:
        return len(self._middleware)

    def compose(self, terminal: Callable[..., Any]) -> Next:
        """Build the composed chain around *terminal* once, for reuse."""
        return compose(self._middleware, terminal)

    async def execute(self, request: Request, terminal: Callable[..., Any]) -> Response:
        """Run *request* through every middleware and then *terminal*."""
        return await self.compose(terminal)(request)
