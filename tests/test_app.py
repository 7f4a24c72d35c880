"""Tests for waypoint.app — App registration, dispatch, and ASGI entry."""

import asyncio
import logging
import uuid
from typing import Any

import pytest

from waypoint.app import App
from waypoint.config import AppConfig
from waypoint.errors import DuplicateRouteError, HTTPError
from waypoint.http.request import Request
from waypoint.http.response import Response
from waypoint.middleware import AuthConfig, BearerAuth, LoginRequired, RequestLogger
from waypoint.routing.route import Matched, MethodNotAllowed, NotFound
from waypoint.testing import TestClient


class TestAppRegistration:
    def test_route_decorator(self) -> None:
        app = App()

        @app.route("/")
        def index():
            return "hello"

        assert len(app.routes) == 1
        assert app.routes[0].pattern == "/"
        assert app.routes[0].method == "GET"

    def test_route_with_methods(self) -> None:
        app = App()

        @app.route("/users", methods=["GET", "POST"], name="users")
        def users():
            return "users"

        assert [r.method for r in app.routes] == ["GET", "POST"]
        # Names are unique, so only the first method carries it
        assert [r.name for r in app.routes] == ["users", None]

    def test_method_shortcuts(self) -> None:
        app = App()
        for register in (app.get, app.post, app.put, app.patch, app.delete, app.options):
            register("/thing")(lambda: "ok")
        assert [r.method for r in app.routes] == [
            "GET",
            "POST",
            "PUT",
            "PATCH",
            "DELETE",
            "OPTIONS",
        ]

    def test_decorator_returns_function(self) -> None:
        app = App()

        def handler():
            return "x"

        assert app.get("/")(handler) is handler

    def test_register_errors_surface_immediately(self) -> None:
        app = App()
        app.register("GET", "/users/{id:int}", lambda: "a")
        with pytest.raises(DuplicateRouteError):
            app.register("GET", "/users/{name}", lambda: "b")

    def test_strict_slashes_from_config(self) -> None:
        app = App(AppConfig(strict_slashes=True))
        assert app.router.strict_slashes is True

    def test_url_for(self) -> None:
        app = App()

        @app.get("/users/{id:int}", name="user.show")
        def show(id: int):
            return {"id": id}

        assert app.url_for("user.show", id=42) == "/users/42"

    def test_match(self) -> None:
        app = App()
        app.register("GET", "/users/{id:int}", lambda: "u")
        assert isinstance(app.match("GET", "/users/1"), Matched)
        assert isinstance(app.match("POST", "/users/1"), MethodNotAllowed)
        assert isinstance(app.match("GET", "/nope"), NotFound)


class TestAppFreeze:
    async def test_registration_after_dispatch_raises(self) -> None:
        app = App()
        app.register("GET", "/", lambda: "ok")
        await app.handle("GET", "/")

        with pytest.raises(RuntimeError, match="Cannot modify the app"):
            app.register("GET", "/late", lambda: "late")
        with pytest.raises(RuntimeError):
            app.use(RequestLogger())
        with pytest.raises(RuntimeError):
            app.error(404)(lambda: "x")
        with pytest.raises(RuntimeError):
            app.on_startup(lambda: None)

    async def test_freeze_applies_log_level(self) -> None:
        app = App(AppConfig(log_level="warning"))
        await app.startup()
        assert logging.getLogger("waypoint").level == logging.WARNING
        logging.getLogger("waypoint").setLevel(logging.NOTSET)


class TestDispatch:
    async def test_handle_literal_before_param(self) -> None:
        app = App()

        @app.get("/users/{id:int}")
        def show(id: int):
            return f"user {id}"

        @app.get("/users/active")
        def active():
            return "active users"

        assert (await app.handle("GET", "/users/active")).text == "active users"
        assert (await app.handle("GET", "/users/42")).text == "user 42"

    async def test_not_found(self) -> None:
        app = App()
        app.register("GET", "/users/{id:int}", lambda: "u")

        response = await app.handle("GET", "/users/abc")
        assert response.status == 404

    async def test_method_not_allowed_sets_allow(self) -> None:
        app = App()
        app.register("GET", "/users/{id:int}", lambda: "u")
        app.register("DELETE", "/users/{id:int}", lambda: "d")

        response = await app.handle("POST", "/users/5")
        assert response.status == 405
        assert response.header("Allow") == "DELETE, GET"

    async def test_dispatch_with_request(self) -> None:
        app = App()

        @app.post("/echo")
        def echo(request: Request):
            return request.json()

        request = Request.build("POST", "/echo", body=b'{"a": 1}')
        response = await app.dispatch(request)
        assert response.json() == {"a": 1}

    async def test_handler_exception_becomes_500(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.ERROR, logger="waypoint.server")
        app = App()

        @app.get("/boom")
        def boom():
            raise ValueError("boom")

        response = await app.handle("GET", "/boom")
        assert response.status == 500
        assert response.text == "Internal Server Error"
        assert "500 GET /boom" in caplog.text

    async def test_debug_500_shows_traceback(self) -> None:
        app = App(AppConfig(debug=True))

        @app.get("/boom")
        def boom():
            raise ValueError("boom")

        response = await app.handle("GET", "/boom")
        assert "ValueError: boom" in response.text

    async def test_http_error_from_handler(self) -> None:
        app = App()

        @app.get("/teapot")
        def teapot():
            raise HTTPError(status=418, detail="short and stout", headers=(("X-Tea", "1"),))

        response = await app.handle("GET", "/teapot")
        assert response.status == 418
        assert response.text == "short and stout"
        assert response.header("X-Tea") == "1"


class TestHandlerArguments:
    async def test_annotated_params_are_converted(self) -> None:
        app = App()
        seen: dict[str, Any] = {}

        @app.get("/items/{id:int}/{key:uuid}/{ratio}")
        def item(id: int, key: uuid.UUID, ratio: float):
            seen.update(id=id, key=key, ratio=ratio)
            return "ok"

        key = uuid.uuid4()
        await app.handle("GET", f"/items/7/{key}/0.5")
        assert seen == {"id": 7, "key": key, "ratio": 0.5}

    async def test_unannotated_params_stay_strings(self) -> None:
        app = App()

        @app.get("/users/{id:int}")
        def show(id):
            return {"type": type(id).__name__, "id": id}

        response = await app.handle("GET", "/users/42")
        assert response.json() == {"type": "str", "id": "42"}

    async def test_request_by_name_and_annotation(self) -> None:
        app = App()

        @app.get("/a/{slug:slug}")
        def by_name(request, slug):
            return f"{request.path} {slug}"

        @app.get("/b")
        def by_annotation(req: Request):
            return req.method

        assert (await app.handle("GET", "/a/x-y")).text == "/a/x-y x-y"
        assert (await app.handle("GET", "/b")).text == "GET"

    async def test_unconvertible_value_passed_as_string(self) -> None:
        app = App()

        @app.get("/items/{id}")
        def show(id: int):
            return {"type": type(id).__name__, "id": id}

        response = await app.handle("GET", "/items/abc")
        assert response.status == 200
        assert response.json() == {"type": "str", "id": "abc"}
        assert (await app.handle("GET", "/items/5")).json() == {"type": "int", "id": 5}

    async def test_encoded_url_decoded_like_asgi(self) -> None:
        app = App()

        @app.get("/files/{name}", name="file")
        def show(name: str):
            return name

        url = app.url_for("file", name="a b")
        assert url == "/files/a%20b"
        assert (await app.handle("GET", url)).text == "a b"

        async with TestClient(app) as client:
            # ASGI servers hand over the decoded path
            assert (await client.get("/files/a b")).text == "a b"

    async def test_var_keyword_receives_all_params(self) -> None:
        app = App()

        @app.get("/{section}/{page:int}")
        def catch_all(**params):
            return params

        response = await app.handle("GET", "/docs/3")
        assert response.json() == {"section": "docs", "page": "3"}

    async def test_async_handler(self) -> None:
        app = App()

        @app.get("/slow")
        async def slow():
            await asyncio.sleep(0)
            return ("accepted", 202)

        response = await app.handle("GET", "/slow")
        assert response.status == 202
        assert response.text == "accepted"

    async def test_path_params_visible_to_middleware(self) -> None:
        app = App()
        seen: list[dict[str, str]] = []

        async def spy(request, next):
            seen.append(dict(request.path_params))
            return await next(request)

        app.use(spy)
        app.register("GET", "/users/{id:int}", lambda: "u")

        await app.handle("GET", "/users/9")
        assert seen == [{"id": "9"}]


class TestMiddleware:
    async def test_order_and_unwinding(self) -> None:
        app = App()
        log: list[str] = []

        def recorder(name: str):
            async def mw(request, next):
                log.append(f"{name}:in")
                response = await next(request)
                log.append(f"{name}:out")
                return response

            return mw

        app.use(recorder("outer"))
        app.add_middleware(recorder("inner"))

        @app.get("/")
        def index():
            log.append("handler")
            return "ok"

        await app.handle("GET", "/")
        assert log == ["outer:in", "inner:in", "handler", "inner:out", "outer:out"]

    async def test_misses_pass_through_middleware(self) -> None:
        app = App()
        seen: list[object] = []
        raised: list[int] = []

        async def record(request, next):
            seen.append(request.match_result)
            try:
                return await next(request)
            except HTTPError as exc:
                raised.append(exc.status)
                raise

        app.use(record)
        app.register("GET", "/only", lambda: "x")

        response = await app.handle("GET", "/missing")
        assert response.status == 404
        assert isinstance(seen[0], NotFound)
        assert raised == [404]

    async def test_route_level_middleware(self) -> None:
        app = App()
        log: list[str] = []

        async def app_wide(request, next):
            log.append("app")
            return await next(request)

        async def route_only(request, next):
            log.append("route")
            response = await next(request)
            return response.with_header("X-Route", "yes")

        app.use(app_wide)

        @app.get("/guarded", middleware=[route_only])
        def guarded():
            return "guarded"

        @app.get("/open")
        def open_():
            return "open"

        guarded_response = await app.handle("GET", "/guarded")
        open_response = await app.handle("GET", "/open")

        assert guarded_response.header("X-Route") == "yes"
        assert open_response.header("X-Route") is None
        assert log == ["app", "route", "app"]

    async def test_auth_short_circuit_skips_handler(self) -> None:
        app = App()
        calls: list[str] = []

        app.use(RequestLogger())
        app.use(BearerAuth(AuthConfig(verify_token=lambda token: None)))

        @app.get("/secret")
        def secret():
            calls.append("handler")
            return "secret"

        response = await app.handle("GET", "/secret")
        assert response.status == 401
        assert calls == []

    async def test_login_required_on_one_route(self) -> None:
        app = App()
        app.use(BearerAuth(AuthConfig(verify_token=lambda t: t or None, optional=True)))

        @app.get("/profile", middleware=[LoginRequired("/login")])
        def profile(request: Request):
            return f"hi {request.attribute('user')}"

        anonymous = await app.handle("GET", "/profile")
        assert anonymous.status == 303
        assert anonymous.header("Location") == "/login?next=%2Fprofile"

        signed_in = await app.handle(
            "GET", "/profile", headers={"Authorization": "Bearer ada"}
        )
        assert signed_in.text == "hi ada"


class TestErrorResponders:
    async def test_404_responder(self) -> None:
        app = App()

        @app.error(404)
        def not_found(request: Request):
            return f"nothing at {request.path}"

        response = await app.handle("GET", "/nowhere")
        assert response.status == 404
        assert response.text == "nothing at /nowhere"

    async def test_405_responder_keeps_allow(self) -> None:
        app = App()
        app.register("GET", "/x", lambda: "x")

        @app.error(405)
        def not_allowed():
            return {"error": "method"}

        response = await app.handle("PUT", "/x")
        assert response.status == 405
        assert response.json() == {"error": "method"}
        assert response.header("Allow") == "GET"

    async def test_exception_type_responder(self) -> None:
        app = App()

        @app.get("/k")
        def k():
            raise KeyError("k")

        @app.error(LookupError)
        def lookup(request: Request, exc: Exception):
            return (f"lookup failed: {exc!r}", 400)

        response = await app.handle("GET", "/k")
        assert response.status == 400
        assert response.text == "lookup failed: KeyError('k')"


class TestAppE2E:
    async def test_basic_get(self) -> None:
        app = App()

        @app.get("/users/{id:int}", name="user.show")
        def show(id: int):
            return {"id": id}

        async with TestClient(app) as client:
            response = await client.get("/users/42")
            assert response.status == 200
            assert response.content_type == "application/json"
            assert response.json() == {"id": 42}

    async def test_query_string(self) -> None:
        app = App()

        @app.get("/search")
        def search(request: Request):
            return request.query.get("q", "")

        async with TestClient(app) as client:
            response = await client.get("/search?q=dune")
            assert response.text == "dune"

    async def test_405_over_asgi(self) -> None:
        app = App()
        app.register("GET", "/users/{id:int}", lambda: "u")

        async with TestClient(app) as client:
            response = await client.post("/users/5")
            assert response.status == 405
            assert response.header("allow") == "GET"

    async def test_post_json(self) -> None:
        app = App()

        @app.post("/items")
        def create(request: Request):
            return (request.json(), 201)

        async with TestClient(app) as client:
            response = await client.post("/items", json={"name": "widget"})
            assert response.status == 201
            assert response.json() == {"name": "widget"}

    async def test_body_too_large(self) -> None:
        app = App(AppConfig(max_content_length=4))

        @app.post("/upload")
        def upload(request: Request):
            return "stored"

        async with TestClient(app) as client:
            response = await client.post("/upload", body=b"0123456789")
            assert response.status == 413
            ok = await client.post("/upload", body=b"0123")
            assert ok.status == 200

    async def test_head_sends_no_body(self) -> None:
        app = App()
        app.register("HEAD", "/ping", lambda: "pong")

        async with TestClient(app) as client:
            response = await client.head("/ping")
            assert response.status == 200
            assert response.body == b""
            assert response.header("content-length") == "4"

    async def test_none_is_204(self) -> None:
        app = App()

        @app.delete("/items/{id:int}")
        def remove(id: int):
            return None

        async with TestClient(app) as client:
            response = await client.delete("/items/1")
            assert response.status == 204
            assert response.body == b""

    async def test_trailing_slash(self) -> None:
        app = App()
        app.register("GET", "/about", lambda: "about")

        async with TestClient(app) as client:
            assert (await client.get("/about/")).status == 200

        strict = App(AppConfig(strict_slashes=True))
        strict.register("GET", "/about", lambda: "about")

        async with TestClient(strict) as client:
            assert (await client.get("/about/")).status == 404


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


async def _lifespan_exchange(
    app: App,
) -> tuple[list[dict[str, Any]], bool]:
    """Drive the full lifespan protocol and return messages sent by the app.

    Returns (sent_messages, startup_ok).
    """
    sent: list[dict[str, Any]] = []
    receive_queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    async def receive() -> dict[str, Any]:
        return await receive_queue.get()

    async def send(message: dict[str, Any]) -> None:
        sent.append(message)

    scope: dict[str, Any] = {
        "type": "lifespan",
        "asgi": {"version": "3.0", "spec_version": "2.0"},
    }

    task = asyncio.create_task(app(scope, receive, send))

    await receive_queue.put({"type": "lifespan.startup"})
    await asyncio.sleep(0.01)

    startup_ok = any(m["type"] == "lifespan.startup.complete" for m in sent)

    if startup_ok:
        await receive_queue.put({"type": "lifespan.shutdown"})
    await asyncio.wait_for(task, timeout=2.0)

    return sent, startup_ok


class TestLifespanProtocol:
    """Full ASGI lifespan protocol via raw scope/receive/send."""

    async def test_happy_path(self) -> None:
        app = App()
        events: list[str] = []

        @app.on_startup
        async def setup():
            events.append("startup")

        @app.on_shutdown
        def teardown():
            events.append("shutdown")

        sent, ok = await _lifespan_exchange(app)

        assert ok is True
        assert events == ["startup", "shutdown"]
        types = [m["type"] for m in sent]
        assert types == ["lifespan.startup.complete", "lifespan.shutdown.complete"]

    async def test_startup_failure(self) -> None:
        app = App()

        @app.on_startup
        async def bad_setup():
            msg = "Database connection refused"
            raise ConnectionError(msg)

        sent, ok = await _lifespan_exchange(app)

        assert ok is False
        failed = [m for m in sent if m["type"] == "lifespan.startup.failed"]
        assert len(failed) == 1
        assert "Database connection refused" in failed[0]["message"]

    async def test_app_frozen_at_startup(self) -> None:
        app = App()
        app.register("GET", "/", lambda: "ok")

        await _lifespan_exchange(app)

        assert app.router.compiled
        with pytest.raises(RuntimeError):
            app.register("GET", "/late", lambda: "late")


class TestLifespanTestClient:
    async def test_hooks_run_around_client(self) -> None:
        app = App()
        events: list[str] = []

        app.on_startup(lambda: events.append("up"))
        app.on_shutdown(lambda: events.append("down"))
        app.register("GET", "/", lambda: "ok")

        async with TestClient(app) as client:
            assert events == ["up"]
            await client.get("/")
        assert events == ["up", "down"]
