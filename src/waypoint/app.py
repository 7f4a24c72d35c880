"""Waypoint application class — the composition root.

Owns one ``Router`` and one ``Pipeline``. Mutable during setup (route
registration, middleware, error responders, lifecycle hooks). Frozen on
the first dispatch, after which both are read-only and safe to share
between concurrent requests.
"""

import inspect
import logging
import threading
import uuid
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from waypoint._internal.asgi import Receive, Scope, Send
from waypoint._internal.invoke import invoke
from waypoint._internal.types import ErrorResponder, Handler
from waypoint.config import AppConfig
from waypoint.errors import HTTPMethodNotAllowed, HTTPNotFound
from waypoint.http.request import Request
from waypoint.http.response import Response
from waypoint.middleware.pipeline import Pipeline, compose
from waypoint.middleware.protocol import Middleware, Next
from waypoint.routing.route import Matched, MatchResult, MethodNotAllowed, Route
from waypoint.routing.router import Router
from waypoint.server.errors import handle_error
from waypoint.server.negotiation import negotiate

# Annotations a path parameter is converted to before the handler call
_CONVERTIBLE: tuple[type, ...] = (int, float, str, uuid.UUID)


def _handler_adapter(route: Route) -> Callable[[Request], Any]:
    """Build ``call(request)`` that invokes the route's handler.

    The handler signature is inspected once. Parameters are filled by name:
    ``request`` (or any parameter annotated ``Request``) gets the request,
    and placeholder names get their captured value, converted when the
    parameter is annotated ``int``, ``float`` or ``uuid.UUID``; a value that
    does not convert is passed as the raw string. A ``**kwargs`` parameter
    receives every path parameter.
    """
    handler = route.handler
    try:
        sig = inspect.signature(handler, eval_str=True)
    except (TypeError, ValueError):
        return lambda request: invoke(handler, request)

    request_names: list[str] = []
    converters: dict[str, Callable[[str], Any]] = {}
    accepts_kwargs = False
    for name, param in sig.parameters.items():
        if param.kind is inspect.Parameter.VAR_KEYWORD:
            accepts_kwargs = True
        elif name == "request" or param.annotation is Request:
            request_names.append(name)
        elif name in route.constraints:
            annotation = param.annotation
            converters[name] = annotation if annotation in _CONVERTIBLE else str

    async def call(request: Request) -> Any:
        kwargs: dict[str, Any] = {name: request for name in request_names}
        params = request.path_params
        if accepts_kwargs:
            kwargs.update((k, v) for k, v in params.items() if k not in kwargs)
        for name, convert in converters.items():
            value = params[name]
            try:
                kwargs[name] = convert(value)
            except (ValueError, TypeError):
                kwargs[name] = value
        return await invoke(handler, **kwargs)

    return call


class App:
    """The waypoint application.

    Usage::

        app = App()
        app.use(ErrorHandler())
        app.use(RequestLogger())

        @app.get("/users/{id:int}", name="user.show")
        def show_user(id: int):
            return {"id": id}

        response = await app.handle("GET", "/users/42")

    Thread safety:
        Setup is single-threaded (decorators at import time). The freeze
        transition uses a Lock + double-check so exactly one thread
        compiles the app even if several workers dispatch concurrently.
    """

    __slots__ = (
        "_chain",
        "_error_responders",
        "_freeze_lock",
        "_frozen",
        "_pipeline",
        "_route_chains",
        "_router",
        "_shutdown_hooks",
        "_startup_hooks",
        "config",
    )

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config: AppConfig = config or AppConfig()
        self._router = Router(strict_slashes=self.config.strict_slashes)
        self._pipeline = Pipeline()
        self._error_responders: dict[int | type, ErrorResponder] = {}
        self._startup_hooks: list[Callable[..., Any]] = []
        self._shutdown_hooks: list[Callable[..., Any]] = []
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()

        # Compiled state, set during _freeze()
        self._chain: Next | None = None
        self._route_chains: dict[int, Next] = {}

    # -- Route registration --

    def register(
        self,
        method: str,
        pattern: str,
        handler: Handler,
        *,
        constraints: Mapping[str, str] | None = None,
        name: str | None = None,
        middleware: Iterable[Middleware] = (),
    ) -> Route:
        """Register a route. Errors surface immediately, at startup."""
        self._check_not_frozen()
        return self._router.register(
            method,
            pattern,
            handler,
            constraints=constraints,
            name=name,
            middleware=middleware,
        )

    def route(
        self,
        pattern: str,
        *,
        methods: list[str] | None = None,
        name: str | None = None,
        constraints: Mapping[str, str] | None = None,
        middleware: Iterable[Middleware] = (),
    ) -> Callable[[Handler], Handler]:
        """Register a route handler via decorator.

        Args:
            pattern: URL pattern. Use ``{param}`` or ``{param:type}``.
            methods: HTTP methods. Defaults to ``["GET"]``. One route is
                registered per method.
            name: Optional route name for ``url_for()``. Attached to the
                first method only, since names are unique.
            constraints: Placeholder name -> type tag (``int``, ``slug``,
                ``uuid``, ``any``), merged with inline tags.
            middleware: Route-level middleware, run inside the app-wide
                pipeline for this route only.
        """
        route_middleware = tuple(middleware)

        def decorator(func: Handler) -> Handler:
            for i, method in enumerate(methods or ["GET"]):
                self.register(
                    method,
                    pattern,
                    func,
                    constraints=constraints,
                    name=name if i == 0 else None,
                    middleware=route_middleware,
                )
            return func

        return decorator

    def get(self, pattern: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        """Register a GET route via decorator."""
        return self.route(pattern, methods=["GET"], **kwargs)

    def post(self, pattern: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        """Register a POST route via decorator."""
        return self.route(pattern, methods=["POST"], **kwargs)

    def put(self, pattern: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        """Register a PUT route via decorator."""
        return self.route(pattern, methods=["PUT"], **kwargs)

    def patch(self, pattern: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        """Register a PATCH route via decorator."""
        return self.route(pattern, methods=["PATCH"], **kwargs)

    def delete(self, pattern: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        """Register a DELETE route via decorator."""
        return self.route(pattern, methods=["DELETE"], **kwargs)

    def options(self, pattern: str, **kwargs: Any) -> Callable[[Handler], Handler]:
        """Register an OPTIONS route via decorator."""
        return self.route(pattern, methods=["OPTIONS"], **kwargs)

    @property
    def router(self) -> Router:
        return self._router

    @property
    def routes(self) -> tuple[Route, ...]:
        return self._router.routes

    # -- Middleware --

    def use(self, middleware: Middleware) -> None:
        """Append a middleware; the first one added runs outermost."""
        self._check_not_frozen()
        self._pipeline.use(middleware)

    add_middleware = use

    # -- Error responders --

    def error(
        self,
        code_or_exception: int | type[Exception],
    ) -> Callable[[ErrorResponder], ErrorResponder]:
        """Register an error responder for a status code or exception type."""

        def decorator(func: ErrorResponder) -> ErrorResponder:
            self._check_not_frozen()
            self._error_responders[code_or_exception] = func
            return func

        return decorator

    # -- Lifecycle hooks --

    def on_startup(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register a sync or async hook run at ASGI lifespan startup."""
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register a sync or async hook run at ASGI lifespan shutdown."""
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    async def startup(self) -> None:
        """Freeze the app and run startup hooks in registration order."""
        self._ensure_frozen()
        for hook in self._startup_hooks:
            await invoke(hook)

    async def shutdown(self) -> None:
        """Run shutdown hooks in registration order."""
        for hook in self._shutdown_hooks:
            await invoke(hook)

    # -- Routing helpers --

    def url_for(self, name: str, /, **params: Any) -> str:
        """Build the path of a named route. See ``Router.url_for``."""
        return self._router.url_for(name, params)

    def match(self, method: str, path: str) -> MatchResult:
        """Resolve a method and path without running anything."""
        return self._router.match(method, path)

    # -- Dispatch --

    async def dispatch(self, request: Request) -> Response:
        """Route *request* and run it through the pipeline.

        Misses travel through the app-wide middleware too and become
        404 / 405 (with ``Allow``) at the innermost link. Exceptions that
        escape the pipeline are converted with the registered error
        responders or plain defaults.
        """
        self._ensure_frozen()
        assert self._chain is not None

        request = request.with_match(self._router.match(request.method, request.path))
        try:
            return await self._chain(request)
        except Exception as exc:
            return await handle_error(
                exc, request, self._error_responders, debug=self.config.debug
            )

    async def handle(
        self,
        method: str,
        path: str,
        *,
        headers: Mapping[str, str] | Iterable[tuple[str, str]] = (),
        query: str = "",
        body: bytes | str = b"",
    ) -> Response:
        """Dispatch from plain values; see ``Request.build``."""
        return await self.dispatch(
            Request.build(method, path, headers=headers, query=query, body=body)
        )

    async def _endpoint(self, request: Request) -> Response:
        """Innermost link of the app-wide pipeline."""
        result = request.match_result
        if isinstance(result, Matched):
            chain = self._route_chains[id(result.route)]
            return await chain(request)
        if isinstance(result, MethodNotAllowed):
            raise HTTPMethodNotAllowed(result.allowed_methods)
        raise HTTPNotFound(f"No route matches {request.method} {request.path!r}")

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        from waypoint.server.handler import handle_lifespan, handle_request

        if scope["type"] == "lifespan":
            await handle_lifespan(self, receive, send)
            return
        await handle_request(self, scope, receive, send)

    # -- Internal --

    def _ensure_frozen(self) -> None:
        """Thread-safe freeze with double-check locking."""
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Compile the app into its frozen runtime state.

        MUST only be called while holding _freeze_lock.
        """
        logging.getLogger("waypoint").setLevel(self.config.log_level.upper())

        # 1. Route table
        self._router.compile()

        # 2. One composed chain per route for its route-level middleware
        self._route_chains = {}
        for route in self._router.routes:
            adapter = _handler_adapter(route)

            async def endpoint(request: Request, _call: Callable[..., Any] = adapter) -> Response:
                return negotiate(await _call(request))

            self._route_chains[id(route)] = compose(route.middleware, endpoint)

        # 3. App-wide chain, composed once around the endpoint
        self._pipeline.freeze()
        self._chain = self._pipeline.compose(self._endpoint)

        self._frozen = True

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register routes, middleware, and error responders first."
            )
            raise RuntimeError(msg)
