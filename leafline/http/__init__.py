"""Request/response collaborators and response serialization.

The ASGI binding lives in ``leafline.http.asgi`` and is imported explicitly
because it depends on the engine.
"""
from leafline.http.request import RequestView, create
from leafline.http.response import (
    Response,
    err_response,
    file_response,
    internal_err,
    is_response,
    not_found,
    redirect,
    response,
)
from leafline.http.send import TransportRequest, TransportResponse, content_length, respond, send, strip

__all__ = [
    "RequestView",
    "create",
    "Response",
    "response",
    "redirect",
    "not_found",
    "internal_err",
    "err_response",
    "file_response",
    "is_response",
    "TransportRequest",
    "TransportResponse",
    "send",
    "respond",
    "content_length",
    "strip",
]
