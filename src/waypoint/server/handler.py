"""ASGI handler — translates ASGI scope/messages to waypoint types.

The only component that touches raw ASGI directly. Reads the request
body, builds a typed ``Request``, hands it to ``App.dispatch`` and sends
the resulting ``Response`` back through ``send()``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from waypoint._internal.asgi import Receive, Scope, Send
from waypoint.http.headers import Headers
from waypoint.http.query import QueryParams
from waypoint.http.request import Request
from waypoint.http.response import Response
from waypoint.server.sender import send_response

if TYPE_CHECKING:
    from waypoint.app import App

logger = logging.getLogger("waypoint.server")


class _BodyTooLarge(Exception):
    pass


class _ClientDisconnected(Exception):
    pass


async def _read_body(receive: Receive, limit: int) -> bytes:
    chunks: list[bytes] = []
    size = 0
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            raise _ClientDisconnected
        chunk = message.get("body", b"")
        size += len(chunk)
        if size > limit:
            raise _BodyTooLarge
        if chunk:
            chunks.append(chunk)
        if not message.get("more_body", False):
            return b"".join(chunks)


def request_from_scope(scope: Scope, body: bytes) -> Request:
    """Build a Request from an ASGI HTTP scope and a fully read body."""
    client = scope.get("client")
    return Request(
        method=scope["method"].upper(),
        path=scope["path"] or "/",
        headers=Headers.from_raw(scope.get("headers", ())),
        query=QueryParams(scope.get("query_string", b"")),
        body=body,
        http_version=scope.get("http_version", "1.1"),
        client=tuple(client) if client else None,
    )


async def handle_request(app: App, scope: Scope, receive: Receive, send: Send) -> None:
    """Process a single HTTP request through the app."""
    if scope["type"] != "http":
        return

    head = scope["method"].upper() == "HEAD"
    limit = app.config.max_content_length

    declared = Headers.from_raw(scope.get("headers", ())).get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > limit:
        await send_response(Response(body="Payload Too Large", status=413), send, head=head)
        return

    try:
        body = await _read_body(receive, limit)
    except _BodyTooLarge:
        await send_response(Response(body="Payload Too Large", status=413), send, head=head)
        return
    except _ClientDisconnected:
        logger.debug("Client disconnected before the body was read: %s", scope["path"])
        return

    response = await app.dispatch(request_from_scope(scope, body))
    await send_response(response, send, head=head)


async def handle_lifespan(app: App, receive: Receive, send: Send) -> None:
    """Run the ASGI lifespan protocol.

    Freezes the app at startup, before the first HTTP request, then runs
    startup/shutdown hooks and reports completion to the server.
    """
    while True:
        message = await receive()
        msg_type = message["type"]

        if msg_type == "lifespan.startup":
            try:
                await app.startup()
            except Exception as exc:
                logger.exception("Startup failed")
                await send({"type": "lifespan.startup.failed", "message": str(exc)})
                return
            await send({"type": "lifespan.startup.complete"})

        elif msg_type == "lifespan.shutdown":
            try:
                await app.shutdown()
            except Exception as exc:
                logger.exception("Shutdown failed")
                await send({"type": "lifespan.shutdown.failed", "message": str(exc)})
                return
            await send({"type": "lifespan.shutdown.complete"})
            return
