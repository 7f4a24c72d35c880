"""Waypoint — request routing with a composable middleware pipeline.

Basic usage::

    from waypoint import App, Response

    app = App()

    @app.get("/users/{id:int}", name="user.show")
    def show_user(id: int):
        return {"id": id}

    @app.get("/users/active")
    def active_users():
        return ["ada", "grace"]

    app.url_for("user.show", id=7)          # "/users/7"
    response = await app.handle("GET", "/users/active")

``App`` is also an ASGI 3 application for any ASGI server.
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "ConfigurationError",
    "HTTPError",
    "Matched",
    "MethodNotAllowed",
    "Middleware",
    "Next",
    "NotFound",
    "Pipeline",
    "Request",
    "Response",
    "Router",
    "WaypointError",
]


def __getattr__(name: str) -> object:
    """Lazy imports for the public API.

    Keeps ``import waypoint`` fast while providing a flat top-level API.
    """
    if name == "App":
        from waypoint.app import App

        return App

    if name == "AppConfig":
        from waypoint.config import AppConfig

        return AppConfig

    if name == "Request":
        from waypoint.http.request import Request

        return Request

    if name == "Response":
        from waypoint.http.response import Response

        return Response

    if name in ("Router", "Matched", "MethodNotAllowed", "NotFound"):
        from waypoint import routing as _routing

        return getattr(_routing, name)

    if name in ("Middleware", "Next", "Pipeline"):
        from waypoint import middleware as _mw

        return getattr(_mw, name)

    if name in ("ConfigurationError", "HTTPError", "WaypointError"):
        from waypoint import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
