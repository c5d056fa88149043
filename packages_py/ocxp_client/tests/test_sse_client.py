"""
Tests for sse_client.py
Logic testing: Loop, Decision/Branch, State Transition, Error Path coverage
"""
import asyncio
from typing import List

import httpx
import pytest

from ocxp_client.errors import SseStreamError
from ocxp_client.streaming.sse_client import create_sse_client


class ChunkStream(httpx.AsyncByteStream):
    """Async byte stream yielding fixed chunks."""

    def __init__(self, chunks: List[bytes]):
        self.chunks = chunks

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk


class HangingStream(httpx.AsyncByteStream):
    """Yields one chunk, then blocks until cancelled."""

    def __init__(self, first: bytes):
        self.first = first

    async def __aiter__(self):
        yield self.first
        await asyncio.Event().wait()


def sse_response(*chunks: str, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code,
        headers={"Content-Type": "text/event-stream"},
        stream=ChunkStream([c.encode("utf-8") for c in chunks]),
    )


def scripted_fetch(responses):
    """Fetch returning (or raising) the scripted items in order, recording requests."""
    requests: List[httpx.Request] = []
    queue = list(responses)

    async def fetch(request):
        requests.append(request)
        item = queue.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    fetch.requests = requests
    return fetch


async def collect(sse):
    return [event async for event in sse.stream]


class TestSseParsing:
    """Frame parsing and the yield gate."""

    # Happy Path: JSON data then id-only frame
    @pytest.mark.asyncio
    async def test_json_then_id_frame(self):
        fetch = scripted_fetch([sse_response('data: {"a":1}\n\n', "id: 5\n\n")])
        sse = create_sse_client("https://h/events", fetch)

        assert await collect(sse) == [{"a": 1}]
        assert sse.last_event_id == "5"

    # Decision: non-JSON data is yielded as the raw string
    @pytest.mark.asyncio
    async def test_raw_string_yielded(self):
        fetch = scripted_fetch([sse_response("data: not json\n\n")])
        assert await collect(create_sse_client("https://h/e", fetch)) == ["not json"]

    # Loop: multi-line data joined with newlines
    @pytest.mark.asyncio
    async def test_multiline_data(self):
        fetch = scripted_fetch([sse_response("data: line1\ndata: line2\n\n")])
        assert await collect(create_sse_client("https://h/e", fetch)) == ["line1\nline2"]

    # Loop: frame split across chunks, CRLF normalized
    @pytest.mark.asyncio
    async def test_split_and_crlf(self):
        fetch = scripted_fetch([sse_response('data: {"a"', ':2}\r\n\r', "\ndata: 3\r\r")])
        assert await collect(create_sse_client("https://h/e", fetch)) == [{"a": 2}, 3]

    # Boundary: trailing partial chunk is discarded at stream end
    @pytest.mark.asyncio
    async def test_trailing_partial_dropped(self):
        fetch = scripted_fetch([sse_response("data: 1\n\ndata: 2")])
        assert await collect(create_sse_client("https://h/e", fetch)) == [1]

    # Path: on_sse_event sees every frame, including data-less ones
    @pytest.mark.asyncio
    async def test_on_sse_event(self):
        events = []
        fetch = scripted_fetch([sse_response("event: tick\nid: 7\ndata: 1\n\n", "retry: 500\n\n")])
        sse = create_sse_client("https://h/e", fetch, on_sse_event=events.append)
        await collect(sse)

        assert [(e.data, e.event, e.id, e.retry) for e in events] == [
            (1, "tick", "7", 3000),
            (None, None, "7", 500),
        ]
        assert sse.retry_delay == 500

    # Decision: invalid retry is ignored
    @pytest.mark.asyncio
    async def test_invalid_retry(self):
        fetch = scripted_fetch([sse_response("retry: soon\n\n")])
        sse = create_sse_client("https://h/e", fetch)
        await collect(sse)
        assert sse.retry_delay == 3000

    # Path: validator and transformer apply to JSON only
    @pytest.mark.asyncio
    async def test_transformer(self):
        fetch = scripted_fetch([sse_response("data: 2\n\ndata: x\n\n")])
        sse = create_sse_client("https://h/e", fetch, response_transformer=lambda v: v * 10)
        assert await collect(sse) == [20, "x"]


class TestSseReconnect:
    """Retry, backoff and resumption."""

    # Loop: backoff doubles and is capped
    @pytest.mark.asyncio
    async def test_backoff_sequence(self, recording_sleep):
        errors = []
        fetch = scripted_fetch([httpx.ConnectError("down")] * 6)
        sse = create_sse_client(
            "https://h/e",
            fetch,
            on_sse_error=errors.append,
            sse_max_retry_attempts=6,
            sse_max_retry_delay=30000,
            sse_sleep_fn=recording_sleep,
        )

        assert await collect(sse) == []
        assert recording_sleep.delays == [3000, 6000, 12000, 24000, 30000]
        assert len(errors) == 6
        assert len(fetch.requests) == 6

    # Error Path: non-OK status is retried, reported as SseStreamError
    @pytest.mark.asyncio
    async def test_bad_status(self, recording_sleep):
        errors = []
        fetch = scripted_fetch([sse_response(status_code=502), sse_response("data: 1\n\n")])
        sse = create_sse_client(
            "https://h/e", fetch, on_sse_error=errors.append, sse_sleep_fn=recording_sleep
        )

        assert await collect(sse) == [1]
        assert isinstance(errors[0], SseStreamError)
        assert errors[0].status_code == 502
        assert recording_sleep.delays == [3000]

    # State: Last-Event-ID sent on reconnect
    @pytest.mark.asyncio
    async def test_last_event_id_resume(self, recording_sleep):
        class Boom(httpx.AsyncByteStream):
            async def __aiter__(self):
                yield b"id: 42\ndata: 1\n\n"
                raise httpx.ReadError("reset")

        broken = httpx.Response(200, stream=Boom())
        fetch = scripted_fetch([broken, sse_response("data: 2\n\n")])
        sse = create_sse_client("https://h/e", fetch, sse_sleep_fn=recording_sleep)

        assert await collect(sse) == [1, 2]
        assert "last-event-id" not in fetch.requests[0].headers
        assert fetch.requests[1].headers["last-event-id"] == "42"

    # Decision: server retry field drives the backoff base
    @pytest.mark.asyncio
    async def test_retry_field_used_for_backoff(self, recording_sleep):
        class Boom(httpx.AsyncByteStream):
            async def __aiter__(self):
                yield b"retry: 100\n\n"
                raise httpx.ReadError("reset")

        first = httpx.Response(200, stream=Boom())
        fetch = scripted_fetch([first, httpx.ConnectError("down")])
        sse = create_sse_client(
            "https://h/e", fetch, sse_max_retry_attempts=2, sse_sleep_fn=recording_sleep
        )
        await collect(sse)
        assert recording_sleep.delays == [100]

    # Path: on_request hook can replace the request
    @pytest.mark.asyncio
    async def test_on_request(self):
        async def on_request(request):
            return httpx.Request(request.method, request.url, headers={"X-Hook": "1"})

        fetch = scripted_fetch([sse_response("data: 1\n\n")])
        sse = create_sse_client("https://h/e", fetch, on_request=on_request)
        await collect(sse)
        assert fetch.requests[0].headers["x-hook"] == "1"


class TestSseAbort:
    """Cancellation through the abort signal."""

    # State: signal set before start, no request made
    @pytest.mark.asyncio
    async def test_aborted_before_start(self):
        signal = asyncio.Event()
        signal.set()
        fetch = scripted_fetch([])
        assert await collect(create_sse_client("https://h/e", fetch, signal=signal)) == []
        assert fetch.requests == []

    # State: signal set while waiting for the next chunk
    @pytest.mark.asyncio
    async def test_abort_during_read(self):
        signal = asyncio.Event()
        errors = []
        response = httpx.Response(200, stream=HangingStream(b"data: 1\n\n"))
        fetch = scripted_fetch([response])
        sse = create_sse_client("https://h/e", fetch, signal=signal, on_sse_error=errors.append)

        received = []
        async for event in sse.stream:
            received.append(event)
            signal.set()

        assert received == [1]
        assert errors == []
        assert len(fetch.requests) == 1
