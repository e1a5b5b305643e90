"""Shared fixtures: in-memory transport request/response doubles."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest


@dataclass
class FakeTransportRequest:
    method: str = "GET"
    url: str = "/"
    headers: dict[str, str] = field(default_factory=dict)
    http_version: str = "1.1"
    remote_address: str | None = "127.0.0.1"
    encrypted: bool = False


class FakeTransportResponse:
    """Records everything written to it."""

    def __init__(self) -> None:
        self.headers_sent = False
        self.status: int | None = None
        self.headers: dict[str, Any] = {}
        self.chunks: list[bytes] = []
        self.write_head_calls = 0
        self.end_calls = 0
        self.finished = False

    async def write_head(self, status: int, headers: dict[str, Any]) -> None:
        self.write_head_calls += 1
        self.headers_sent = True
        self.status = status
        self.headers = dict(headers)

    async def write(self, chunk: bytes) -> None:
        if not self.headers_sent:
            await self.write_head(200, {})
        self.chunks.append(bytes(chunk))

    async def end(self) -> None:
        self.end_calls += 1
        self.finished = True

    @property
    def body(self) -> bytes:
        return b"".join(self.chunks)


@pytest.fixture
def transport_request() -> FakeTransportRequest:
    return FakeTransportRequest()


@pytest.fixture
def transport_response() -> FakeTransportResponse:
    return FakeTransportResponse()


@pytest.fixture
def make_transport_request():
    def _make(**kwargs: Any) -> FakeTransportRequest:
        return FakeTransportRequest(**kwargs)
    return _make


@pytest.fixture
def make_transport_response():
    return FakeTransportResponse
