"""Compiled router with specificity-ordered regex matching.

Every pattern is compiled into an anchored regular expression once, at
registration. Lookup per method is:

1. Exact literal routes (no placeholders), via a dict keyed by path.
2. Parameterized routes in ``(placeholder count, registration order)``
   order, so ``/users/{id}`` never shadows ``/users/active`` and the
   first registered of two equally specific patterns wins.

When nothing matches under the requested method the table is re-scanned
under every other method to tell ``NotFound`` from ``MethodNotAllowed``.
The router never raises for a miss; misses are values.
"""

import bisect
import logging
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import replace
from types import MappingProxyType
from typing import Any
from urllib.parse import quote, urlencode

from waypoint.errors import (
    ConfigurationError,
    DuplicateNameError,
    DuplicateRouteError,
    InvalidConstraintError,
    InvalidParameterError,
    InvalidPatternError,
    MissingParameterError,
    UnknownRouteError,
)
from waypoint.routing.params import DEFAULT_CONSTRAINT, constraint_pattern, satisfies
from waypoint.routing.route import (
    CompiledRoute,
    Matched,
    MatchResult,
    MethodNotAllowed,
    NotFound,
    PatternPart,
    Route,
)

logger = logging.getLogger("waypoint.routing")

METHODS: frozenset[str] = frozenset(
    {"GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"}
)

_PARAM_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_ANGLE_PARAM = re.compile(r"<[A-Za-z_][A-Za-z0-9_]*(?::[A-Za-z_]+)?>")


def parse_pattern(pattern: str) -> list[PatternPart]:
    """Parse a route pattern into literal and placeholder parts.

    Examples::

        "/users"              -> [PatternPart("/users")]
        "/users/{id}"         -> [PatternPart("/users/"), PatternPart("{id}", is_param=True, ...)]
        "/users/{id:int}/x"   -> [..., PatternPart("{id:int}", ..., param_type="int"), PatternPart("/x")]

    Raises ``InvalidPatternError`` for malformed patterns.
    """
    if not pattern.startswith("/"):
        msg = f"Route pattern {pattern!r} must start with '/'."
        raise InvalidPatternError(msg)
    if _ANGLE_PARAM.search(pattern):
        msg = (
            f"Route pattern {pattern!r} uses <param> placeholders. "
            "Waypoint expects {param} or {param:type}."
        )
        raise InvalidPatternError(msg)

    parts: list[PatternPart] = []
    literal: list[str] = []
    seen: set[str] = set()
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if char == "}":
            msg = f"Unbalanced '}}' at position {i} in route pattern {pattern!r}."
            raise InvalidPatternError(msg)
        if char != "{":
            literal.append(char)
            i += 1
            continue

        end = pattern.find("}", i + 1)
        if end == -1:
            msg = f"Unclosed '{{' at position {i} in route pattern {pattern!r}."
            raise InvalidPatternError(msg)
        inner = pattern[i + 1 : end]
        if "{" in inner:
            msg = f"Nested '{{' in route pattern {pattern!r}."
            raise InvalidPatternError(msg)

        if literal:
            parts.append(PatternPart("".join(literal)))
            literal = []
        elif parts and parts[-1].is_param:
            msg = f"Adjacent placeholders need a literal separator in {pattern!r}."
            raise InvalidPatternError(msg)

        name, sep, tag = inner.partition(":")
        if not _PARAM_NAME.fullmatch(name):
            msg = f"Invalid placeholder name {name!r} in route pattern {pattern!r}."
            raise InvalidPatternError(msg)
        if sep and not tag:
            msg = f"Placeholder {{{inner}}} in {pattern!r} has an empty type."
            raise InvalidPatternError(msg)
        if name in seen:
            msg = f"Placeholder {name!r} appears more than once in {pattern!r}."
            raise InvalidPatternError(msg)
        seen.add(name)

        parts.append(
            PatternPart(
                value=pattern[i : end + 1],
                is_param=True,
                param_name=name,
                param_type=tag or None,
            )
        )
        i = end + 1

    if literal:
        parts.append(PatternPart("".join(literal)))
    return parts


def _resolve_constraints(
    parts: list[PatternPart],
    constraints: Mapping[str, str],
    pattern: str,
) -> tuple[tuple[PatternPart, ...], dict[str, str]]:
    """Merge inline ``{name:type}`` tags with the constraints mapping."""
    names = {part.param_name for part in parts if part.is_param}
    dangling = sorted(set(constraints) - names)
    if dangling:
        msg = f"Constraint(s) for unknown placeholder(s) {', '.join(dangling)} in {pattern!r}."
        raise InvalidConstraintError(msg)

    resolved: dict[str, str] = {}
    out: list[PatternPart] = []
    for part in parts:
        if not part.is_param:
            out.append(part)
            continue
        name = part.param_name or ""
        mapped = constraints.get(name)
        if part.param_type and mapped and part.param_type != mapped:
            msg = (
                f"Placeholder {name!r} in {pattern!r} is typed {part.param_type!r} "
                f"inline but {mapped!r} in constraints."
            )
            raise InvalidConstraintError(msg)
        tag = part.param_type or mapped or DEFAULT_CONSTRAINT
        constraint_pattern(tag)  # validates the tag
        resolved[name] = tag
        out.append(replace(part, param_type=tag))
    return tuple(out), resolved


def _compile_regex(parts: Iterable[PatternPart]) -> re.Pattern[str]:
    chunks = [
        f"(?P<{part.param_name}>{constraint_pattern(part.param_type or DEFAULT_CONSTRAINT)})"
        if part.is_param
        else re.escape(part.value)
        for part in parts
    ]
    return re.compile("".join(chunks))


def _shape(parts: Iterable[PatternPart]) -> str:
    """The pattern with placeholders erased, used for duplicate detection."""
    return "".join("{}" if part.is_param else part.value for part in parts)


class Router:
    """Route table and matcher.

    Usage::

        router = Router()
        router.register("GET", "/users/{id:int}", show_user, name="user.show")
        router.register("GET", "/users/active", active_users)
        router.compile()

        router.match("GET", "/users/active")   # Matched(active_users route)
        router.match("POST", "/users/5")       # MethodNotAllowed({"GET"})
        router.url_for("user.show", id=42)     # "/users/42"
    """

    __slots__ = (
        "_compiled",
        "_dynamic",
        "_literal",
        "_names",
        "_routes",
        "_shapes",
        "strict_slashes",
    )

    def __init__(self, *, strict_slashes: bool = False) -> None:
        self.strict_slashes = strict_slashes
        self._routes: list[CompiledRoute] = []
        self._literal: dict[str, dict[str, CompiledRoute]] = {}
        self._dynamic: dict[str, list[CompiledRoute]] = {}
        self._shapes: dict[tuple[str, str], CompiledRoute] = {}
        self._names: dict[str, CompiledRoute] = {}
        self._compiled = False

    # -- Registration --

    def register(
        self,
        method: str,
        pattern: str,
        handler: Callable[..., Any],
        *,
        constraints: Mapping[str, str] | None = None,
        name: str | None = None,
        middleware: Iterable[Callable[..., Any]] = (),
    ) -> Route:
        """Register one route and return it with constraints resolved.

        Raises ``DuplicateRouteError``, ``DuplicateNameError``,
        ``InvalidConstraintError`` or ``InvalidPatternError``.
        """
        route = Route(
            method=method,
            pattern=pattern,
            handler=handler,
            constraints=dict(constraints or {}),
            name=name,
            middleware=tuple(middleware),
        )
        return self.add(route)

    def add(self, route: Route) -> Route:
        """Add a prebuilt route. Must be called before compile()."""
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)

        method = route.method.upper()
        if method not in METHODS:
            msg = f"Unsupported HTTP method {route.method!r} for {route.pattern!r}."
            raise ConfigurationError(msg)

        pattern = self._normalize(route.pattern)
        parts, resolved = _resolve_constraints(
            parse_pattern(pattern), route.constraints, route.pattern
        )

        shape = _shape(parts)
        existing = self._shapes.get((method, shape))
        if existing is not None:
            raise DuplicateRouteError(method, route.pattern, existing.route.pattern)
        if route.name is not None and route.name in self._names:
            raise DuplicateNameError(route.name)

        stored = replace(route, method=method, constraints=MappingProxyType(resolved))
        compiled = CompiledRoute(
            route=stored,
            regex=_compile_regex(parts),
            parts=parts,
            param_names=tuple(resolved),
            shape=shape,
            index=len(self._routes),
        )

        self._routes.append(compiled)
        self._shapes[(method, shape)] = compiled
        if stored.name is not None:
            self._names[stored.name] = compiled
        if compiled.is_literal:
            self._literal.setdefault(method, {})[pattern] = compiled
        else:
            bisect.insort(
                self._dynamic.setdefault(method, []),
                compiled,
                key=lambda c: c.specificity,
            )

        logger.debug("Registered %s %s", method, route.pattern)
        return stored

    def compile(self) -> None:
        """Freeze the router. No more routes can be added."""
        self._compiled = True

    @property
    def compiled(self) -> bool:
        return self._compiled

    @property
    def routes(self) -> tuple[Route, ...]:
        """All registered routes in registration order."""
        return tuple(compiled.route for compiled in self._routes)

    def __len__(self) -> int:
        return len(self._routes)

    # -- Matching --

    def match(self, method: str, path: str) -> MatchResult:
        """Resolve *method* and *path* to exactly one outcome.

        Returns ``Matched`` with raw string params, ``MethodNotAllowed``
        with the methods that do match the path, or ``NotFound``.
        """
        method = method.upper()
        path = self._normalize(path)

        found = self._match_method(method, path)
        if found is not None:
            compiled, params = found
            return Matched(route=compiled.route, params=params)

        allowed = self._allowed(path, exclude=method)
        if allowed:
            return MethodNotAllowed(method=method, path=path, allowed_methods=allowed)
        return NotFound(method=method, path=path)

    def allowed_methods(self, path: str) -> frozenset[str]:
        """Every method with a route matching *path*."""
        return self._allowed(self._normalize(path), exclude=None)

    def _allowed(self, path: str, *, exclude: str | None) -> frozenset[str]:
        methods = set(self._literal) | set(self._dynamic)
        return frozenset(
            m for m in methods if m != exclude and self._match_method(m, path) is not None
        )

    def _match_method(
        self, method: str, path: str
    ) -> tuple[CompiledRoute, dict[str, str]] | None:
        literal = self._literal.get(method)
        if literal is not None and path in literal:
            return literal[path], {}

        for compiled in self._dynamic.get(method, ()):
            m = compiled.regex.fullmatch(path)
            if m is not None:
                return compiled, {name: m.group(name) for name in compiled.param_names}
        return None

    def _normalize(self, path: str) -> str:
        if not path:
            return "/"
        if self.strict_slashes or len(path) == 1 or not path.endswith("/"):
            return path
        return path.rstrip("/") or "/"

    # -- Reverse routing --

    def url_for(
        self,
        name: str,
        params: Mapping[str, Any] | None = None,
        /,
        **kwargs: Any,
    ) -> str:
        """Build the path for the route registered as *name*.

        Values that are not placeholders of the route are appended as a
        query string. Raises ``UnknownRouteError``,
        ``MissingParameterError`` or ``InvalidParameterError``.
        """
        compiled = self._names.get(name)
        if compiled is None:
            raise UnknownRouteError(name)

        values = {**(params or {}), **kwargs}
        missing = tuple(p for p in compiled.param_names if p not in values)
        if missing:
            raise MissingParameterError(name, missing)

        chunks: list[str] = []
        for part in compiled.parts:
            if not part.is_param:
                chunks.append(part.value)
                continue
            param_name = part.param_name or ""
            tag = part.param_type or DEFAULT_CONSTRAINT
            value = str(values[param_name])
            if not satisfies(value, tag):
                msg = f"Value {value!r} for {param_name!r} of route {name!r} is not a valid {tag!r}."
                raise InvalidParameterError(msg)
            chunks.append(quote(value, safe=""))

        url = "".join(chunks)
        extra = [(k, str(v)) for k, v in values.items() if k not in compiled.param_names]
        if extra:
            url = f"{url}?{urlencode(extra)}"
        return url
