"""Tests for todochat.streaming.reader — StreamReader over httpx."""

from __future__ import annotations

import json

import httpx
import pytest

from todochat.errors import StreamHTTPError
from todochat.schemas.streaming import ChunkEvent, DoneEvent, StartEvent
from todochat.streaming.reader import StreamReader

_URL = "http://test/api/chat/stream"


# ── Helpers ───────────────────────────────────────────────────


def _sse_response(*parts: bytes, status: int = 200) -> httpx.Response:
    async def _body():
        for part in parts:
            yield part

    return httpx.Response(
        status, headers={"Content-Type": "text/event-stream"}, content=_body(),
    )


def _reader(handler) -> tuple[StreamReader, httpx.AsyncClient]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return StreamReader(client, _URL, timeout=5.0), client


async def _collect(reader: StreamReader, payload: dict | None = None) -> list:
    return [event async for event in reader.events(payload or {"messages": []})]


class TestStreamReader:
    @pytest.mark.asyncio()
    async def test_yields_events_in_wire_order(self):
        body = (
            b'data: {"type":"start"}\n\n'
            b'data: {"type":"chunk","content":"Hi"}\n\n'
            b'data: {"type":"chunk","content":" there!"}\n\n'
            b'data: {"type":"done"}\n\n'
        )
        reader, client = _reader(lambda request: _sse_response(body))
        async with client:
            events = await _collect(reader)

        assert events == [
            StartEvent(),
            ChunkEvent(content="Hi"),
            ChunkEvent(content=" there!"),
            DoneEvent(),
        ]

    @pytest.mark.asyncio()
    async def test_records_split_across_network_reads(self):
        # "é" is two bytes in UTF-8 and is split between reads
        encoded = 'data: {"type":"chunk","content":"café"}\n\n'.encode()
        cut = encoded.index("é".encode()) + 1
        reader, client = _reader(
            lambda request: _sse_response(encoded[:10], encoded[10:cut], encoded[cut:])
        )
        async with client:
            events = await _collect(reader)

        assert events == [ChunkEvent(content="café")]

    @pytest.mark.asyncio()
    async def test_unterminated_final_record_is_flushed(self):
        reader, client = _reader(lambda request: _sse_response(
            b'data: {"type":"chunk","content":"a"}\n\n', b'data: {"type":"done"}',
        ))
        async with client:
            events = await _collect(reader)

        assert events == [ChunkEvent(content="a"), DoneEvent()]

    @pytest.mark.asyncio()
    async def test_malformed_record_does_not_stop_stream(self):
        reader, client = _reader(lambda request: _sse_response(
            b'data: {"type":"chunk","content":"A"}\n\n'
            b"data: {not json}\n\n"
            b'data: {"type":"chunk","content":"B"}\n\n'
        ))
        async with client:
            events = await _collect(reader)

        assert [e.content for e in events] == ["A", "B"]

    @pytest.mark.asyncio()
    async def test_posts_payload_with_sse_headers(self):
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["accept"] = request.headers["accept"]
            seen["body"] = json.loads(request.content)
            return _sse_response(b'data: {"type":"done"}\n\n')

        reader, client = _reader(handler)
        payload = {"messages": [{"role": "user", "content": "hello"}]}
        async with client:
            await _collect(reader, payload)

        assert seen["method"] == "POST"
        assert seen["accept"] == "text/event-stream"
        assert seen["body"] == payload

    @pytest.mark.asyncio()
    async def test_error_status_raises_with_body(self):
        reader, client = _reader(lambda request: httpx.Response(
            500, json={"success": False, "error": "API Key is not configured"},
        ))
        async with client:
            with pytest.raises(StreamHTTPError) as exc_info:
                await _collect(reader)

        assert exc_info.value.status_code == 500
        assert "API Key is not configured" in exc_info.value.body
        assert str(exc_info.value) == "HTTP error! status: 500"

    @pytest.mark.asyncio()
    async def test_connection_failure_propagates(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        reader, client = _reader(handler)
        async with client:
            with pytest.raises(httpx.ConnectError):
                await _collect(reader)

    def test_url_property(self):
        reader = StreamReader(httpx.AsyncClient(), _URL)
        assert reader.url == _URL
