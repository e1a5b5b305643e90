"""ASGI binding — host a pipeline in any ASGI 3 server.

::

    app = asgi_app(define("site", [log_request, serve_static]))
    # uvicorn module:app

``http`` scopes are adapted into ``AsgiRequest`` / ``AsgiResponse`` (which
satisfy ``TransportRequest`` / ``TransportResponse``) and handed to the
dispatcher.  ``lifespan`` startup and shutdown are acknowledged.  Other scope
types (websockets) are not served.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Awaitable, Callable, Sequence

from leafline.config import LeaflineConfig
from leafline.engine.dispatch import to_dispatcher
from leafline.engine.pipeline import PipelineDefinition
from leafline.http.response import HeaderValue

logger = logging.getLogger(__name__)

Scope = Mapping[str, Any]
Receive = Callable[[], Awaitable[dict[str, Any]]]
Send = Callable[[dict[str, Any]], Awaitable[None]]


class AsgiRequest:
    """``TransportRequest`` view of an ASGI ``http`` scope."""

    def __init__(self, scope: Scope, receive: Receive) -> None:
        self.scope = scope
        self._receive = receive

        raw_path = scope.get("raw_path")
        target = raw_path.decode("latin-1") if raw_path else scope.get("path", "/")
        query = scope.get("query_string", b"")
        if query:
            target = f"{target}?{query.decode('latin-1')}"

        headers: dict[str, str] = {}
        for name, value in scope.get("headers", []):
            key = name.decode("latin-1").lower()
            text = value.decode("latin-1")
            if key in headers:
                separator = "; " if key == "cookie" else ", "
                text = f"{headers[key]}{separator}{text}"
            headers[key] = text

        client = scope.get("client")
        self.method: str = scope.get("method", "GET")
        self.url: str = target
        self.headers: dict[str, str] = headers
        self.http_version: str = scope.get("http_version", "1.1")
        self.remote_address: str | None = client[0] if client else None
        self.encrypted: bool = scope.get("scheme") in ("https", "wss")

    async def read_body(self) -> bytes:
        """Return the raw request body.  Can only be called once."""
        chunks: list[bytes] = []
        while True:
            message = await self._receive()
            if message["type"] == "http.disconnect":
                break
            chunks.append(message.get("body", b""))
            if not message.get("more_body", False):
                break
        return b"".join(chunks)


class AsgiResponse:
    """``TransportResponse`` writing ``http.response.*`` messages."""

    def __init__(self, send: Send) -> None:
        self._send = send
        self.headers_sent = False
        self.finished = False

    async def write_head(self, status: int, headers: Mapping[str, HeaderValue]) -> None:
        if self.headers_sent:
            raise RuntimeError("write_head() called twice on the same response")
        raw_headers: list[tuple[bytes, bytes]] = []
        for name, value in headers.items():
            values = value if isinstance(value, list) else [value]
            for item in values:
                raw_headers.append((name.lower().encode("latin-1"), str(item).encode("latin-1")))
        self.headers_sent = True
        await self._send({"type": "http.response.start", "status": status, "headers": raw_headers})

    async def write(self, chunk: bytes) -> None:
        if not self.headers_sent:
            await self.write_head(200, {})
        await self._send({"type": "http.response.body", "body": bytes(chunk), "more_body": True})

    async def end(self) -> None:
        if self.finished:
            return
        if not self.headers_sent:
            await self.write_head(200, {})
        self.finished = True
        await self._send({"type": "http.response.body", "body": b"", "more_body": False})


async def _lifespan(receive: Receive, send: Send) -> None:
    while True:
        message = await receive()
        if message["type"] == "lifespan.startup":
            await send({"type": "lifespan.startup.complete"})
        elif message["type"] == "lifespan.shutdown":
            await send({"type": "lifespan.shutdown.complete"})
            return


def asgi_app(
    pipeline: PipelineDefinition | Sequence[Any],
    *,
    config: LeaflineConfig | None = None,
) -> Callable[[Scope, Receive, Send], Awaitable[None]]:
    """Build an ASGI 3 application serving *pipeline*.

    Raises the same construction-time errors as ``to_dispatcher()``.
    """
    dispatcher = to_dispatcher(pipeline, config=config)

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        kind = scope["type"]
        if kind == "lifespan":
            await _lifespan(receive, send)
            return
        if kind != "http":
            logger.warning("leafline does not serve %r scopes", kind)
            return

        await dispatcher(AsgiRequest(scope, receive), AsgiResponse(send))

    app.dispatcher = dispatcher  # type: ignore[attr-defined]
    return app
