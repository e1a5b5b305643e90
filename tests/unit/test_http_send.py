"""Tests for leafline.http.send — writing responses onto a transport."""
from __future__ import annotations

import io

import pytest

from leafline.engine.exceptions import InvalidArgumentError
from leafline.http.response import Response
from leafline.http.send import (
    TransportRequest,
    TransportResponse,
    content_length,
    respond,
    send,
    strip,
)


class TestHelpers:
    def test_strip(self) -> None:
        assert strip({"A": "1", "B": None, "C": [], "D": ["x"]}) == {"A": "1", "D": ["x"]}

    def test_content_length_for_text(self) -> None:
        assert content_length(Response("héllo"))["Content-Length"] == "6"

    def test_content_length_for_bytes(self) -> None:
        assert content_length({"status": 200, "headers": {}, "body": b"abc"})["Content-Length"] == "3"

    def test_content_length_keeps_explicit_value(self) -> None:
        headers = content_length(Response("abc", headers={"content-length": "99"}))
        assert headers == {"content-length": "99"}

    def test_content_length_skips_streams(self) -> None:
        assert "Content-Length" not in content_length(Response(iter([b"a"])))

    def test_content_length_does_not_mutate(self) -> None:
        resp = Response("abc")
        content_length(resp)
        assert resp.headers == {}

    def test_fakes_satisfy_protocols(self, transport_request, transport_response) -> None:
        assert isinstance(transport_request, TransportRequest)
        assert isinstance(transport_response, TransportResponse)


class TestSend:
    async def test_text_body(self, transport_response) -> None:
        await send(transport_response, Response("hello", status=201).set("X-A", "1"))
        assert transport_response.status == 201
        assert transport_response.headers == {"X-A": "1", "Content-Length": "5"}
        assert transport_response.body == b"hello"
        assert transport_response.end_calls == 1

    async def test_response_map(self, transport_response) -> None:
        await send(transport_response, {"status": 204, "headers": {"X-Empty": None}})
        assert transport_response.status == 204
        assert transport_response.headers == {}
        assert transport_response.chunks == []
        assert transport_response.end_calls == 1

    async def test_bytes_body(self, transport_response) -> None:
        await send(transport_response, Response(b"\x00\x01"))
        assert transport_response.body == b"\x00\x01"

    async def test_empty_string_writes_nothing(self, transport_response) -> None:
        await send(transport_response, Response(""))
        assert transport_response.chunks == []
        assert transport_response.headers["Content-Length"] == "0"

    async def test_iterable_body(self, transport_response) -> None:
        await send(transport_response, Response(iter(["a", b"b", "c"])))
        assert transport_response.chunks == [b"a", b"b", b"c"]

    async def test_generator_body(self, transport_response) -> None:
        def rows():
            yield "id,name\n"
            yield "1,ada\n"

        await send(transport_response, Response(rows()))
        assert transport_response.body == b"id,name\n1,ada\n"

    async def test_async_iterable_body(self, transport_response) -> None:
        async def chunks():
            for part in (b"x", b"y"):
                yield part

        await send(transport_response, Response(chunks()))
        assert transport_response.chunks == [b"x", b"y"]

    async def test_file_like_body_closed(self, transport_response) -> None:
        body = io.BytesIO(b"file contents")
        await send(transport_response, Response(body))
        assert transport_response.body == b"file contents"
        assert body.closed

    async def test_file_like_closed_on_write_error(self) -> None:
        class Broken:
            headers_sent = False
            ended = False

            async def write_head(self, status, headers):
                self.headers_sent = True

            async def write(self, chunk):
                raise ConnectionResetError

            async def end(self):
                self.ended = True

        body = io.BytesIO(b"data")
        transport = Broken()
        with pytest.raises(ConnectionResetError):
            await send(transport, Response(body))
        assert body.closed
        assert transport.ended

    async def test_async_file_like_body(self, transport_response) -> None:
        class AsyncReader:
            def __init__(self) -> None:
                self.parts = [b"ab", b"cd"]
                self.closed = False

            async def read(self, size):
                return self.parts.pop(0) if self.parts else b""

            async def close(self):
                self.closed = True

        reader = AsyncReader()
        await send(transport_response, Response(reader))
        assert transport_response.body == b"abcd"
        assert reader.closed

    async def test_failing_iterable_still_ends(self, transport_response) -> None:
        def rows():
            yield "first,"
            raise OSError("source closed")

        with pytest.raises(OSError):
            await send(transport_response, Response(rows()))
        assert transport_response.body == b"first,"
        assert transport_response.end_calls == 1

    async def test_mapping_body_json_encoded(self, transport_response) -> None:
        await send(transport_response, {"status": 200, "headers": {}, "body": {"ok": True, "ids": [1, 2]}})
        assert transport_response.body == b'{"ok":true,"ids":[1,2]}'
        assert transport_response.headers["Content-Type"] == "application/json; charset=utf-8"
        assert transport_response.headers["Content-Length"] == str(len(transport_response.body))

    async def test_list_body_keeps_explicit_content_type(self, transport_response) -> None:
        await send(transport_response, Response(["a", "b"], headers={"content-type": "text/plain"}))
        assert transport_response.body == b'["a","b"]'
        assert transport_response.headers["content-type"] == "text/plain"
        assert "Content-Type" not in transport_response.headers

    async def test_structured_body_left_on_response(self, transport_response) -> None:
        resp = Response({"a": 1})
        await send(transport_response, resp)
        assert resp.body == {"a": 1}
        assert resp.headers == {}

    async def test_other_value_stringified(self, transport_response) -> None:
        await send(transport_response, Response(42))
        assert transport_response.body == b"42"


class TestRespond:
    async def test_writes_response(self, transport_response) -> None:
        await respond(transport_response, Response("ok"))
        assert transport_response.body == b"ok"

    @pytest.mark.parametrize("value", ["text", 42, {"status": 200}, object()])
    async def test_rejects_non_response(self, transport_response, value) -> None:
        with pytest.raises(InvalidArgumentError):
            await respond(transport_response, value)
        assert transport_response.write_head_calls == 0
