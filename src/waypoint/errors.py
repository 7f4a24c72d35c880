"""Waypoint exception hierarchy.

Shared across Router, Pipeline, App, and middleware so every module
raises and catches the same types.

Registration problems are ``ConfigurationError`` subclasses and surface
at startup. Reverse-routing problems are ``ReverseRoutingError``
subclasses and surface at the ``url_for()`` call site. Route misses are
*not* exceptions inside the router; the app converts them into
``HTTPError`` only at the dispatch boundary.
"""

from dataclasses import dataclass


class WaypointError(Exception):
    """Base for all waypoint-specific errors."""


# -- Registration --


class ConfigurationError(WaypointError):
    """Raised when routes, middleware, or app configuration are invalid."""


class DuplicateRouteError(ConfigurationError):
    """A route with the same method and pattern shape already exists.

    Shape comparison erases placeholders, so ``/users/{id:int}`` and
    ``/users/{name}`` collide under the same method.
    """

    def __init__(self, method: str, pattern: str, existing: str) -> None:
        self.method = method
        self.pattern = pattern
        self.existing = existing
        super().__init__(
            f"Route {method} {pattern!r} duplicates already registered "
            f"{method} {existing!r}."
        )


class DuplicateNameError(ConfigurationError):
    """A route name is already taken by another route."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Route name {name!r} is already registered.")


class InvalidConstraintError(ConfigurationError):
    """A placeholder constraint is unknown, conflicting, or dangling."""


class InvalidPatternError(ConfigurationError):
    """A route pattern cannot be parsed."""


# -- Reverse routing --


class ReverseRoutingError(WaypointError):
    """Base for errors raised by ``url_for()``."""


class UnknownRouteError(ReverseRoutingError):
    """No route is registered under the requested name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"No route named {name!r}.")


class MissingParameterError(ReverseRoutingError):
    """A placeholder of the named route received no value."""

    def __init__(self, name: str, missing: tuple[str, ...]) -> None:
        self.name = name
        self.missing = missing
        super().__init__(
            f"Route {name!r} requires parameter(s): {', '.join(missing)}"
        )


class InvalidParameterError(ReverseRoutingError):
    """A supplied value does not satisfy the placeholder's constraint."""


# -- HTTP --


@dataclass(frozen=True, slots=True)
class HTTPError(WaypointError):
    """An error that maps directly to an HTTP status code.

    Raised by the app at the dispatch boundary, by middleware, or by
    handlers. The server layer (or an ``ErrorHandler`` middleware)
    converts it into a ``Response``.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class HTTPNotFound(HTTPError):
    """404 — no route matched the request path."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class HTTPMethodNotAllowed(HTTPError):
    """405 — the path exists but not for this HTTP method.

    Carries an ``Allow`` header listing the valid methods.
    """

    def __init__(self, allowed: frozenset[str], detail: str = "") -> None:
        allow_value = ", ".join(sorted(allowed))
        super().__init__(
            status=405,
            detail=detail or f"Method not allowed. Allowed methods: {allow_value}",
            headers=(("Allow", allow_value),),
        )
