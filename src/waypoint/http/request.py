"""Immutable HTTP request.

The hosting server parses raw HTTP; waypoint receives method, path,
headers, query, and body as structured values. Middleware that needs to
pass data inward (an authenticated user, a request id) derives a new
request with ``with_attribute()`` instead of mutating the old one.
"""

from __future__ import annotations

import json as json_module
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Any
from urllib.parse import unquote

from waypoint.http.headers import Headers
from waypoint.http.query import QueryParams

if TYPE_CHECKING:
    from waypoint.routing.route import MatchResult

_EMPTY: Mapping[str, Any] = MappingProxyType({})


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    ``path_params`` is empty until the router matches the request; the
    app then hands the pipeline a copy carrying the extracted values and
    the full ``match_result``. ``attributes`` holds values set by
    middleware.
    """

    method: str
    path: str
    headers: Headers = field(default_factory=Headers)
    query: QueryParams = field(default_factory=QueryParams)
    body: bytes = b""
    path_params: Mapping[str, str] = field(default_factory=lambda: _EMPTY)
    attributes: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    http_version: str = "1.1"
    client: tuple[str, int] | None = None
    match_result: MatchResult | None = field(default=None, repr=False, compare=False)

    # -- Computed properties --

    @property
    def content_type(self) -> str | None:
        """The Content-Type header value."""
        return self.headers.get("content-type")

    @property
    def url(self) -> str:
        """Path plus query string."""
        if self.query.raw:
            return f"{self.path}?{self.query.raw}"
        return self.path

    # -- Body access --

    def text(self) -> str:
        """The body decoded as UTF-8."""
        return self.body.decode("utf-8")

    def json(self) -> Any:
        """The body parsed as JSON."""
        return json_module.loads(self.body)

    # -- Derived copies --

    def with_path_params(self, params: Mapping[str, str]) -> Request:
        """Return a copy carrying the router's extracted parameters."""
        return replace(self, path_params=MappingProxyType(dict(params)))

    def with_match(self, result: MatchResult) -> Request:
        """Return a copy carrying a match outcome and, if matched, its params."""
        params = getattr(result, "params", {})
        return replace(
            self, match_result=result, path_params=MappingProxyType(dict(params))
        )

    def with_attribute(self, name: str, value: Any) -> Request:
        """Return a copy with one more middleware-provided attribute."""
        return replace(
            self, attributes=MappingProxyType({**self.attributes, name: value})
        )

    def attribute(self, name: str, default: Any = None) -> Any:
        """Return a middleware-provided attribute, or *default*."""
        return self.attributes.get(name, default)

    # -- Factory --

    @classmethod
    def build(
        cls,
        method: str,
        path: str,
        *,
        headers: Mapping[str, str] | Iterable[tuple[str, str]] = (),
        query: str = "",
        body: bytes | str = b"",
    ) -> Request:
        """Build a request from plain values (tests, non-ASGI hosts).

        A ``?query`` suffix on *path* is split off when *query* is empty.
        The path is percent-decoded, as ASGI servers deliver ``scope["path"]``.
        """
        if not query and "?" in path:
            path, query = path.split("?", 1)
        return cls(
            method=method.upper(),
            path=unquote(path),
            headers=Headers(headers),
            query=QueryParams(query),
            body=body.encode("utf-8") if isinstance(body, str) else body,
        )
