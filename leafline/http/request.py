"""Request view — a normalized, read-mostly picture of an inbound request.

``create(raw)`` builds a ``RequestView`` from any object satisfying
``TransportRequest``.  The engine never calls this; handlers do, usually as
the first step of a pipeline::

    def parse(req, res, next):
        req.view = create(req)
        next()
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qs, urlsplit


@dataclass
class RequestView:
    """Normalized request.

    Attributes:
        method:   Upper-cased request method.
        headers:  Request headers with lower-cased names.
        scheme:   HTTP version, e.g. ``"1.1"``.
        path:     Raw request target, query string included.
        url:      Request path without the query string.
        pathname: Alias of ``url``.
        query:    Parsed query; repeated keys map to lists.  ``{}`` when absent.
        host:     Host from the ``Host`` header, port removed.
        port:     Port from the ``Host`` header, if present.
        ip:       Peer address, when the transport knows it.
        protocol: ``"https"`` over an encrypted transport, else ``"http"``.
    """

    method: str | None = None
    headers: dict[str, Any] = field(default_factory=dict)
    scheme: str | None = None
    path: str | None = None
    url: str | None = None
    pathname: str | None = None
    query: dict[str, Any] = field(default_factory=dict)
    host: str | None = None
    port: int | None = None
    ip: str | None = None
    protocol: str = "http"
    _raw: Any = field(default=None, repr=False)

    def req(self) -> Any:
        """Return the underlying transport request."""
        return self._raw


def urlquery(raw: Any, view: RequestView) -> None:
    target = getattr(raw, "url", None)
    if not target:
        return
    parts = urlsplit(target)
    view.url = parts.path
    view.pathname = parts.path
    view.query = {
        key: values[0] if len(values) == 1 else values
        for key, values in parse_qs(parts.query, keep_blank_values=True).items()
    }


def hostport(raw: Any, view: RequestView) -> None:
    """Split the Host header into ``host`` and ``port``; IPv6 literals keep their brackets."""
    headers = getattr(raw, "headers", None) or {}
    host = _header(headers, "host")
    if not host:
        return

    offset = host.find("]") + 1 if host.startswith("[") else 0
    index = host.find(":", offset)
    view.host = host
    if index != -1:
        view.host = host[:index]
        try:
            view.port = int(host[index + 1:])
        except ValueError:
            view.port = None


def protocol(raw: Any, view: RequestView) -> None:
    view.protocol = "https" if getattr(raw, "encrypted", False) else "http"


def create(raw: Any) -> RequestView:
    """Build a ``RequestView`` from a transport request."""
    method = getattr(raw, "method", None)
    headers = getattr(raw, "headers", None) or {}
    view = RequestView(
        method=method.upper() if isinstance(method, str) else method,
        headers={str(k).lower(): v for k, v in headers.items()},
        scheme=getattr(raw, "http_version", None),
        path=getattr(raw, "url", None),
        ip=getattr(raw, "remote_address", None),
        _raw=raw,
    )
    protocol(raw, view)
    hostport(raw, view)
    urlquery(raw, view)
    return view


def _header(headers: Any, name: str) -> str | None:
    value = headers.get(name)
    if value is not None:
        return value
    for key, value in headers.items():
        if str(key).lower() == name:
            return value
    return None
