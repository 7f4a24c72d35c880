"""Route definitions and match outcomes as frozen dataclasses."""

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeAlias


@dataclass(frozen=True, slots=True)
class PatternPart:
    """A parsed piece of a route pattern.

    Literal:     ``/users/``  (is_param=False)
    Param:       ``{id}``     (is_param=True, param_name="id", param_type=None)
    Typed param: ``{id:int}`` (is_param=True, param_name="id", param_type="int")

    ``param_type`` is ``None`` for an untyped placeholder until the router
    resolves it against the route's constraints mapping.
    """

    value: str
    is_param: bool = False
    param_name: str | None = None
    param_type: str | None = None


@dataclass(frozen=True, slots=True)
class Route:
    """A registered route: one method, one pattern, one handler.

    ``constraints`` holds the resolved type tag for every placeholder.
    ``middleware`` runs inside the app-wide pipeline for this route only.
    """

    method: str
    pattern: str
    handler: Callable[..., Any]
    constraints: Mapping[str, str] = field(default_factory=dict)
    name: str | None = None
    middleware: tuple[Callable[..., Any], ...] = ()


@dataclass(frozen=True, slots=True)
class CompiledRoute:
    """A route plus its precompiled matcher. Never mutated after creation."""

    route: Route
    regex: re.Pattern[str]
    parts: tuple[PatternPart, ...]
    param_names: tuple[str, ...]
    shape: str
    index: int

    @property
    def is_literal(self) -> bool:
        """True when the pattern has no placeholders."""
        return not self.param_names

    @property
    def specificity(self) -> tuple[int, int]:
        """Sort key: fewer placeholders first, then registration order."""
        return (len(self.param_names), self.index)


# -- Match outcomes --


@dataclass(frozen=True, slots=True)
class Matched:
    """The path resolved to *route*; *params* holds raw captured strings."""

    route: Route
    params: dict[str, str]


@dataclass(frozen=True, slots=True)
class NotFound:
    """No route matches the path under any method."""

    method: str
    path: str


@dataclass(frozen=True, slots=True)
class MethodNotAllowed:
    """The path matches, but only under other methods."""

    method: str
    path: str
    allowed_methods: frozenset[str]

    @property
    def allow_header(self) -> str:
        """Value for the ``Allow`` response header."""
        return ", ".join(sorted(self.allowed_methods))


MatchResult: TypeAlias = Matched | NotFound | MethodNotAllowed
