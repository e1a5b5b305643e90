"""Response serialization onto a transport.

The engine never talks to a socket.  A hosting server hands every dispatcher
a pair of transport objects satisfying the protocols below (see
``leafline.http.asgi`` for the ASGI binding), and ``send()`` is the only
place a response map becomes bytes on the wire.
"""
from __future__ import annotations

import inspect
import json
from collections.abc import AsyncIterable, Mapping
from typing import Any, Protocol, runtime_checkable

from leafline.engine.exceptions import InvalidArgumentError
from leafline.http.response import HeaderValue, Response, is_response, is_stream

CHUNK_SIZE = 64 * 1024


# ---------------------------------------------------------------------------
# Transport protocols
# ---------------------------------------------------------------------------

@runtime_checkable
class TransportRequest(Protocol):
    """Inbound request as delivered by the hosting server."""

    method: str
    url: str                      # request target, including the query string
    headers: Mapping[str, str]
    http_version: str             # e.g. "1.1"
    remote_address: str | None
    encrypted: bool


@runtime_checkable
class TransportResponse(Protocol):
    """Outbound response sink.  ``write_head`` must be called exactly once.

    A transport may also expose a ``finished`` flag; without one, the
    dispatcher ends a handler-started response itself, so ``end()`` should
    tolerate a second call.
    """

    headers_sent: bool

    async def write_head(self, status: int, headers: Mapping[str, HeaderValue]) -> None: ...

    async def write(self, chunk: bytes) -> None: ...

    async def end(self) -> None: ...


# ---------------------------------------------------------------------------
# Header helpers
# ---------------------------------------------------------------------------

def strip(headers: Mapping[str, Any]) -> dict[str, HeaderValue]:
    """Drop absent headers (``None`` values and empty lists)."""
    return {k: v for k, v in headers.items() if v is not None and v != []}


def content_length(resp: Any) -> dict[str, HeaderValue]:
    """Headers of *resp* with Content-Length filled in for str/bytes bodies."""
    _, raw_headers, body = _unpack(resp)
    headers = dict(raw_headers)
    if Response.field({"headers": headers}, "Content-Length") is None:
        if isinstance(body, str):
            headers["Content-Length"] = str(len(body.encode("utf-8")))
        elif isinstance(body, (bytes, bytearray, memoryview)):
            headers["Content-Length"] = str(len(body))
    return headers


def _unpack(resp: Any) -> tuple[int, Mapping[str, Any], Any]:
    if isinstance(resp, Response):
        return resp.status, resp.headers, resp.body
    return resp["status"], resp["headers"], resp.get("body")


def _to_bytes(chunk: Any) -> bytes:
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    return bytes(chunk)


# ---------------------------------------------------------------------------
# send / respond
# ---------------------------------------------------------------------------

def _encode_structured(resp: Any) -> dict[str, Any]:
    """Response map for *resp* with a mapping/list/tuple body JSON-encoded.

    Content-Type defaults to ``application/json`` for such bodies; anything
    else is returned unchanged.
    """
    status, raw_headers, body = _unpack(resp)
    headers = dict(raw_headers)
    if isinstance(body, (Mapping, list, tuple)):
        body = json.dumps(body, separators=(",", ":"))
        if Response.field({"headers": headers}, "Content-Type") is None:
            headers["Content-Type"] = "application/json; charset=utf-8"
    return {"status": status, "headers": headers, "body": body}


async def _write_body(transport: TransportResponse, body: Any) -> None:
    if body is None:
        return
    if isinstance(body, (str, bytes, bytearray, memoryview)):
        if body:
            await transport.write(_to_bytes(body))
    elif hasattr(body, "read"):
        try:
            while True:
                chunk = body.read(CHUNK_SIZE)
                if inspect.isawaitable(chunk):
                    chunk = await chunk
                if not chunk:
                    break
                await transport.write(_to_bytes(chunk))
        finally:
            close = getattr(body, "close", None)
            if close is not None:
                result = close()
                if inspect.isawaitable(result):
                    await result
    elif not is_stream(body):
        await transport.write(_to_bytes(str(body)))
    elif isinstance(body, AsyncIterable):
        async for chunk in body:
            await transport.write(_to_bytes(chunk))
    else:
        for chunk in body:
            await transport.write(_to_bytes(chunk))


async def send(transport: TransportResponse, resp: Any) -> None:
    """Write *resp* (a ``Response`` or response map) to *transport*.

    Status line and headers go first, then the body: text is UTF-8 encoded,
    bytes are written as-is, mappings and lists are JSON-encoded, iterables,
    async iterables and file-like objects are piped chunk by chunk (file-like
    objects are closed afterwards), and a missing body sends no payload.

    Once the head is written the response is always ended, even when the
    body fails partway; the body's exception then propagates.
    """
    resp = _encode_structured(resp)
    await transport.write_head(resp["status"], strip(content_length(resp)))
    try:
        await _write_body(transport, resp["body"])
    finally:
        await transport.end()


async def respond(transport: TransportResponse, value: Any) -> None:
    """Serialize a value an error continuation produced.

    Raises:
        InvalidArgumentError: If *value* is not a response.
    """
    if not is_response(value):
        raise InvalidArgumentError(
            f"Cannot respond with {type(value).__name__}; "
            f"return a Response or a response map"
        )
    await send(transport, value)
