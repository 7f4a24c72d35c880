"""Authentication middleware.

``BearerAuth`` resolves ``Authorization: Bearer <token>`` to a user and
stores it as the ``"user"`` request attribute for inner layers. A
missing or rejected token short-circuits with 401, so nothing inside
it runs.

``LoginRequired`` guards routes that need an authenticated user and
redirects anonymous requests to a login page instead.

Usage::

    async def verify(token: str) -> User | None:
        return await tokens.lookup(token)

    app.use(BearerAuth(AuthConfig(verify_token=verify, optional=True)))

    @app.get("/profile", middleware=[LoginRequired("/login")])
    def profile(request):
        return f"hello {request.attribute('user').name}"
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

from waypoint._internal.invoke import invoke
from waypoint.errors import ConfigurationError
from waypoint.http.request import Request
from waypoint.http.response import Response
from waypoint.middleware.protocol import Next

USER_ATTRIBUTE = "user"


@dataclass(frozen=True, slots=True)
class AuthConfig:
    """BearerAuth configuration.

    ``verify_token`` is a sync or async callable returning the user for
    a token, or ``None`` to reject it. With ``optional=True`` requests
    without an ``Authorization`` header pass through anonymously; an
    invalid token is still rejected.
    """

    verify_token: Callable[[str], Any] | None = None
    realm: str = "api"
    optional: bool = False
    attribute: str = USER_ATTRIBUTE


class BearerAuth:
    """Token authentication for API routes."""

    __slots__ = ("config",)

    def __init__(self, config: AuthConfig) -> None:
        if config.verify_token is None:
            msg = "BearerAuth requires AuthConfig(verify_token=...)."
            raise ConfigurationError(msg)
        self.config = config

    def _unauthorized(self, error: str | None = None) -> Response:
        challenge = f'Bearer realm="{self.config.realm}"'
        if error:
            challenge += f', error="{error}"'
        return Response(body="Unauthorized", status=401).with_header(
            "WWW-Authenticate", challenge
        )

    async def __call__(self, request: Request, next: Next) -> Response:
        header = request.headers.get("authorization")
        if header is None:
            if self.config.optional:
                return await next(request)
            return self._unauthorized()

        scheme, _, token = header.partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token:
            return self._unauthorized("invalid_request")

        user = await invoke(self.config.verify_token, token)
        if user is None:
            return self._unauthorized("invalid_token")
        return await next(request.with_attribute(self.config.attribute, user))


class LoginRequired:
    """Redirect requests without an authenticated user to *login_url*.

    The original path is passed along as ``?next=...``.
    """

    __slots__ = ("attribute", "login_url", "status")

    def __init__(self, login_url: str, *, status: int = 303, attribute: str = USER_ATTRIBUTE) -> None:
        self.login_url = login_url
        self.status = status
        self.attribute = attribute

    async def __call__(self, request: Request, next: Next) -> Response:
        if request.attribute(self.attribute) is not None:
            return await next(request)
        location = f"{self.login_url}?{urlencode({'next': request.url})}"
        return Response.redirect(location, status=self.status)
