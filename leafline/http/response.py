"""Response builder and response-map factories.

A *response* is anything with an int ``status``, a ``headers`` mapping and a
``body``.  Handlers and error continuations build one with the chainable
``Response`` class or with the factories at the bottom of this module; the
dispatcher hands it to ``send()``.

Header names are matched case-insensitively.  The first-seen casing is kept
until a write uses different casing, at which point the stored name becomes
the canonical Title-Case form (``content-type`` → ``Content-Type``).  A few
names have a fixed canonical form that is always used (``ETag``).
"""
from __future__ import annotations

import json
import mimetypes
import os
import re
from collections.abc import AsyncIterable, Iterable, Mapping
from datetime import datetime, timezone
from email.utils import format_datetime
from http import HTTPStatus
from pathlib import Path
from typing import Any, Callable, MutableMapping
from urllib.parse import quote

HeaderValue = str | list[str]

_CANONICAL_NAMES: dict[str, str] = {
    "etag": "ETag",
    "www-authenticate": "WWW-Authenticate",
}

# Built-in table only; /etc/mime.types must not change behaviour per host.
_MIME = mimetypes.MimeTypes(filenames=())

_CHARSET_TYPES = re.compile(r"^text/|^application/(javascript|json)")


def _encode_uri_component(value: str) -> str:
    return quote(str(value), safe="-_.!~*'()")


def canonical_name(name: str) -> str:
    """Title-Case each dash-separated part (``x-request-id`` → ``X-Request-Id``)."""
    lowered = name.lower()
    if lowered in _CANONICAL_NAMES:
        return _CANONICAL_NAMES[lowered]
    return "-".join(part[:1].upper() + part[1:].lower() for part in name.split("-"))


def is_stream(body: Any) -> bool:
    """True for streaming bodies: file-like objects, iterators, async iterables."""
    if body is None or isinstance(body, (str, bytes, bytearray, memoryview, Mapping, list, tuple)):
        return False
    return (
        hasattr(body, "read")
        or isinstance(body, AsyncIterable)
        or isinstance(body, Iterable)
    )


# ---------------------------------------------------------------------------
# Response
# ---------------------------------------------------------------------------

class Response:
    """Mutable response with chainable helpers.

    Every mutating method returns ``self``::

        Response({"ok": True}).set_status(201).type("json").cookie("sid", "abc")
    """

    def __init__(self, body: Any = None, status: int = 200, headers: Mapping[str, HeaderValue] | None = None) -> None:
        self.status = status
        self.headers: dict[str, HeaderValue] = dict(headers or {})
        self.body = body

    def __repr__(self) -> str:
        return f"Response(status={self.status}, headers={self.headers!r})"

    # ------------------------------------------------------------------
    # Header helpers usable on any response (class or map)
    # ------------------------------------------------------------------

    @staticmethod
    def field(response: Any, name: str) -> str | None:
        """Return the stored header name matching *name*, or ``None``."""
        headers = _headers_of(response)
        if name in headers:
            return name
        lowered = name.lower()
        for key in headers:
            if key.lower() == lowered:
                return key
        return None

    @staticmethod
    def get_header(response: Any, name: str) -> HeaderValue | None:
        key = Response.field(response, name)
        return None if key is None else _headers_of(response)[key]

    @staticmethod
    def set_header(response: Any, name: str, value: HeaderValue | None) -> Any:
        """Set (or with ``None`` remove) header *name* on *response*."""
        headers = _headers_of(response)
        existing = Response.field(response, name)

        if name.lower() in _CANONICAL_NAMES:
            name = _CANONICAL_NAMES[name.lower()]

        if existing is None:
            if value is None:
                return response
        elif existing != name:
            # Same header under a different case: settle on the canonical name.
            name = canonical_name(name)
            if existing != name:
                del headers[existing]

        if value is None:
            headers.pop(name, None)
        else:
            headers[name] = value
        return response

    # ------------------------------------------------------------------
    # Chainable API
    # ------------------------------------------------------------------

    def set(self, name: str, value: HeaderValue | None) -> "Response":
        return Response.set_header(self, name, value)

    def get(self, name: str) -> HeaderValue | None:
        return Response.get_header(self, name)

    def set_status(self, status: int | str) -> "Response":
        self.status = int(status)
        return self

    def set_body(self, body: Any) -> "Response":
        """Replace the body and drop any previously computed Content-Length."""
        self.body = body
        return self.length(None)

    def type(self, content_type: str) -> "Response":
        """Set Content-Type from a MIME type, extension or file name.

        ``"json"``, ``".json"``, ``"data.json"`` and ``"application/json"``
        all resolve to ``application/json``.  A JSON type serializes any body
        that is not already text, bytes or a stream.  Text-ish types get a
        ``; charset=utf-8`` suffix.
        """
        resolved = _lookup_mime(content_type) or content_type

        if resolved == "application/json" and self.body is not None and not (
            isinstance(self.body, (str, bytes, bytearray, memoryview)) or is_stream(self.body)
        ):
            self.body = json.dumps(self.body, separators=(",", ":"))

        charset = "; charset=utf-8" if _CHARSET_TYPES.match(resolved) else ""
        return self.set("Content-Type", resolved + charset)

    def cookie(
        self,
        name: str,
        value: str | Mapping[str, Any] | None = None,
        opts: Mapping[str, Any] | None = None,
    ) -> "Response":
        """Append a ``Set-Cookie`` header, or delete cookies.

        Cookies are unique by name and path.  With no value (or with a
        mapping as the second argument, which is then taken as *opts*) every
        cookie matching *name* and ``opts["path"]`` (default ``/``) is
        removed instead.

        Options: ``path``, ``domain``, ``maxage``, ``secure``, ``expires``
        (``datetime`` or preformatted string), ``httponly``, and ``encode``
        (defaults to percent-encoding).
        """
        current = self.get("Set-Cookie")
        if current is None:
            cookies: list[str] = []
        elif isinstance(current, list):
            cookies = list(current)
        else:
            cookies = [current]

        if isinstance(value, Mapping):
            opts, value = value, None
        opts = dict(opts or {})
        encode: Callable[[str], str] = opts.get("encode") if callable(opts.get("encode")) else _encode_uri_component

        if value is None:
            return self.set("Set-Cookie", _clear_cookie(cookies, name, opts.get("path")))

        parts = [f"{name}={encode(value)}"]
        if opts.get("path") is not None:
            parts.append(f"Path={opts['path']}")
        if opts.get("domain") is not None:
            parts.append(f"Domain={opts['domain']}")
        if opts.get("maxage") is not None:
            parts.append(f"Max-Age={opts['maxage']}")
        if opts.get("secure") is True:
            parts.append("Secure")
        if opts.get("expires") is not None:
            parts.append(f"Expires={_http_date(opts['expires'])}")
        if opts.get("httponly") is True:
            parts.append("HttpOnly")

        cookies.append("; ".join(parts))
        return self.set("Set-Cookie", cookies)

    def clear_cookie(self, name: str, path: str | None = None) -> "Response":
        return self.cookie(name, {"path": path} if path is not None else None)

    def length(self, size: int | None) -> "Response":
        """Set Content-Length; ``None`` or ``0`` clears it."""
        if size is not None and (isinstance(size, bool) or not isinstance(size, int)):
            raise TypeError(f"Expected int for Response.length() instead got: {type(size).__name__}")
        return self.set("Content-Length", str(size) if size else None)

    def attachment(self, filename: str | None = None) -> "Response":
        """Set ``Content-Disposition: attachment``; ``None`` clears it."""
        value = None
        if isinstance(filename, str):
            value = "attachment"
            if filename:
                value = f"{value}; filename={filename}"
        return self.set("Content-Disposition", value)

    def to_map(self) -> dict[str, Any]:
        return {"status": self.status, "headers": dict(self.headers), "body": self.body}


def _headers_of(response: Any) -> MutableMapping[str, HeaderValue]:
    if isinstance(response, Mapping):
        return response["headers"]
    return response.headers


def _lookup_mime(value: str) -> str | None:
    ext = re.sub(r"^.*[./\\]", "", value).lower()
    if not ext:
        return None
    return _MIME.types_map[True].get("." + ext) or _MIME.types_map[False].get("." + ext)


def _http_date(expires: Any) -> str:
    if isinstance(expires, datetime):
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return format_datetime(expires.astimezone(timezone.utc), usegmt=True)
    return str(expires)


def _cookie_path(cookie: str) -> str:
    begin = cookie.lower().find("path=")
    if begin == -1:
        return "/"
    rest = cookie[begin + 5:]
    end = rest.find(";")
    return (rest if end == -1 else rest[:end]).strip()


def _clear_cookie(cookies: list[str], name: str, path: str | None) -> list[str]:
    path = path or "/"
    return [
        ck for ck in cookies
        if ck[:ck.find("=")] != name or _cookie_path(ck) != path
    ]


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

def is_response(obj: Any) -> bool:
    """True for ``Response`` instances and well-formed response maps."""
    if isinstance(obj, Response):
        return True
    return (
        isinstance(obj, Mapping)
        and isinstance(obj.get("status"), int)
        and not isinstance(obj.get("status"), bool)
        and isinstance(obj.get("headers"), Mapping)
    )


def response(body: Any = None) -> Response:
    return Response(body)


def redirect(status: int | str, url: str | None = None) -> Response:
    """Redirect response; ``redirect(url)`` defaults to 302 Found.

    Raises:
        TypeError: Unless called as ``(url)`` or ``(int, url)``.
    """
    if url is None:
        status, url = 302, status  # type: ignore[assignment]
    if isinstance(status, bool) or not isinstance(status, int) or not isinstance(url, str):
        raise TypeError(
            "invalid arguments to `redirect`, need (int, str) or (str): "
            "an optional redirect status code and the URL to redirect to"
        )
    return Response("", status=status, headers={"Location": url})


def not_found(body: Any = None) -> Response:
    return Response(body, status=404)


def internal_err(body: Any = None) -> Response:
    return Response(body, status=500)


def error_status(err: Any, default: int = 500) -> int:
    """Status carried by *err* (``status`` / ``status_code``), else *default*."""
    for attr in ("status", "status_code"):
        status = getattr(err, attr, None)
        if isinstance(status, int) and not isinstance(status, bool) and 400 <= status <= 599:
            return status
    return default


def err_response(err: Any, *, default_status: int = 500, expose: bool = False) -> Response:
    """Generic failure response for *err*.

    The body is the status reason phrase.  The error text is appended only
    when *expose* is set; by default the cause stays server-side.
    """
    status = error_status(err, default_status)
    try:
        body = HTTPStatus(status).phrase
    except ValueError:
        body = "Error"
    if expose and err is not None:
        body = f"{body}: {err}"
    return Response(body, status=status).type("text/plain")


def file_response(path: str | os.PathLike[str]) -> Response:
    """Stream the file at *path*; the file is closed once it is sent.

    Raises:
        FileNotFoundError: If *path* does not exist.
    """
    file_path = Path(path)
    size = file_path.stat().st_size
    resp = Response(file_path.open("rb"))
    if _lookup_mime(file_path.name):
        resp.type(file_path.name)
    else:
        resp.type("application/octet-stream")
    return resp.length(size)
