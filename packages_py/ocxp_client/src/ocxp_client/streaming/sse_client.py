"""
Server-Sent Events client with reconnection.

The stream reconnects on failure with exponential backoff and resumes from
the last seen event id via the ``Last-Event-ID`` header.
"""
import asyncio
import codecs
import inspect
import json
import logging
from typing import Any, AsyncGenerator, AsyncIterator, Awaitable, Callable, List, Optional, Tuple

import httpx

from ..config import SleepFn, Transformer, Validator
from ..core.headers import HeadersInput, merge_headers
from ..errors import SseStreamError
from ..types import Fetch, HttpMethod, SSEEvent

logger = logging.getLogger("ocxp_client.sse_client")

DEFAULT_RETRY_DELAY = 3000
DEFAULT_MAX_RETRY_DELAY = 30000

RequestHook = Callable[[httpx.Request], Awaitable[httpx.Request]]


async def _sleep_ms(ms: float) -> None:
    await asyncio.sleep(ms / 1000)


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def _read_chunk(iterator: AsyncIterator[bytes]) -> Optional[bytes]:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return None


class SseClient:
    """
    One logical SSE subscription.

    ``stream`` is an async generator of event payloads. It ends when the
    abort signal is set, when the server closes the stream cleanly, or when
    ``max_retry_attempts`` failed attempts have been made. It never raises
    for connection or stream failures; those go to ``on_sse_error``.
    """

    def __init__(
        self,
        url: str,
        fetch: Fetch,
        method: HttpMethod = "GET",
        headers: HeadersInput = None,
        body: Any = None,
        on_request: Optional[RequestHook] = None,
        on_sse_event: Optional[Callable[[SSEEvent], None]] = None,
        on_sse_error: Optional[Callable[[BaseException], None]] = None,
        response_validator: Optional[Validator] = None,
        response_transformer: Optional[Transformer] = None,
        signal: Optional[asyncio.Event] = None,
        default_retry_delay: Optional[int] = None,
        max_retry_attempts: Optional[int] = None,
        max_retry_delay: Optional[int] = None,
        sleep_fn: Optional[SleepFn] = None,
    ):
        self.url = url
        self.method = method
        self.last_event_id: Optional[str] = None
        self.retry_delay: int = default_retry_delay if default_retry_delay is not None else DEFAULT_RETRY_DELAY
        self._fetch = fetch
        self._headers = headers
        self._body = body
        self._on_request = on_request
        self._on_sse_event = on_sse_event
        self._on_sse_error = on_sse_error
        self._response_validator = response_validator
        self._response_transformer = response_transformer
        self._signal = signal
        self._max_retry_attempts = max_retry_attempts
        self._max_retry_delay = max_retry_delay if max_retry_delay is not None else DEFAULT_MAX_RETRY_DELAY
        self._sleep = sleep_fn or _sleep_ms
        self.stream: AsyncGenerator[Any, None] = self._run()

    def __aiter__(self) -> AsyncGenerator[Any, None]:
        return self.stream

    def _aborted(self) -> bool:
        return self._signal is not None and self._signal.is_set()

    def _build_request(self) -> httpx.Request:
        headers = merge_headers(self._headers)
        if self.last_event_id is not None:
            headers["Last-Event-ID"] = self.last_event_id
        return httpx.Request(self.method, self.url, headers=headers, content=self._body)

    async def _next_chunk(self, iterator: AsyncIterator[bytes]) -> Optional[bytes]:
        """Next body chunk, or None on end of stream or abort."""
        if self._signal is None:
            return await _read_chunk(iterator)

        read = asyncio.ensure_future(_read_chunk(iterator))
        abort = asyncio.ensure_future(self._signal.wait())
        try:
            done, _ = await asyncio.wait({read, abort}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            abort.cancel()
        if read in done:
            return read.result()

        read.cancel()
        logger.debug(f"SseClient: aborted while reading {self.url}")
        return None

    async def _parse_chunk(self, chunk: str) -> Tuple[bool, Any]:
        """
        Apply one event chunk.

        Returns (has_data, value). Only chunks with at least one data line
        are yielded; value is the parsed JSON or the raw joined string.
        """
        data_lines: List[str] = []
        event_name: Optional[str] = None

        for line in chunk.split("\n"):
            if line.startswith("data:"):
                data_lines.append(line[5:].lstrip())
            elif line.startswith("event:"):
                event_name = line[6:].lstrip()
            elif line.startswith("id:"):
                self.last_event_id = line[3:].lstrip()
            elif line.startswith("retry:"):
                try:
                    self.retry_delay = int(line[6:].strip())
                except ValueError:
                    logger.debug(f"SseClient: ignoring invalid retry value {line!r}")

        data: Any = None
        if data_lines:
            raw = "\n".join(data_lines)
            try:
                data = json.loads(raw)
            except ValueError:
                data = raw
            else:
                if self._response_validator:
                    await _maybe_await(self._response_validator(data))
                if self._response_transformer:
                    data = await _maybe_await(self._response_transformer(data))

        if self._on_sse_event:
            self._on_sse_event(
                SSEEvent(data=data, event=event_name, id=self.last_event_id, retry=self.retry_delay)
            )

        return bool(data_lines), data

    async def _read_events(self, response: httpx.Response) -> AsyncGenerator[Any, None]:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        iterator = response.aiter_bytes().__aiter__()
        buffer = ""

        while True:
            raw = await self._next_chunk(iterator)
            if raw is None:
                break

            buffer += decoder.decode(raw)
            buffer = buffer.replace("\r\n", "\n").replace("\r", "\n")
            chunks = buffer.split("\n\n")
            buffer = chunks.pop()

            for chunk in chunks:
                has_data, data = await self._parse_chunk(chunk)
                if has_data:
                    yield data

    async def _run(self) -> AsyncGenerator[Any, None]:
        attempt = 0

        while True:
            if self._aborted():
                break

            attempt += 1

            try:
                request = self._build_request()
                if self._on_request:
                    request = await self._on_request(request)

                logger.debug(
                    f"SseClient: connecting {request.method} {request.url}, attempt={attempt}, "
                    f"last_event_id={self.last_event_id}"
                )
                response = await self._fetch(request)
                try:
                    if not response.is_success:
                        raise SseStreamError(
                            f"SSE failed: {response.status_code} {response.reason_phrase}",
                            status_code=response.status_code,
                        )
                    async for data in self._read_events(response):
                        yield data
                finally:
                    await response.aclose()
                break
            except Exception as exc:
                if self._aborted():
                    break

                if self._on_sse_error:
                    self._on_sse_error(exc)

                if self._max_retry_attempts is not None and attempt >= self._max_retry_attempts:
                    logger.warning(
                        f"SseClient: giving up on {self.url} after {attempt} attempts: {exc}"
                    )
                    break

                backoff = min(self.retry_delay * 2 ** (attempt - 1), self._max_retry_delay)
                logger.debug(f"SseClient: {exc!r}, reconnecting in {backoff}ms")
                await self._sleep(backoff)


def create_sse_client(url: str, fetch: Fetch, **options: Any) -> SseClient:
    """
    Create an SSE client.

    Keyword options use the request option names: ``sse_default_retry_delay``,
    ``sse_max_retry_attempts``, ``sse_max_retry_delay`` and ``sse_sleep_fn``
    (milliseconds), plus ``method``, ``headers``, ``body``, ``on_request``,
    ``on_sse_event``, ``on_sse_error``, ``response_validator``,
    ``response_transformer`` and ``signal``.
    """
    return SseClient(
        url,
        fetch,
        method=options.get("method") or "GET",
        headers=options.get("headers"),
        body=options.get("body"),
        on_request=options.get("on_request"),
        on_sse_event=options.get("on_sse_event"),
        on_sse_error=options.get("on_sse_error"),
        response_validator=options.get("response_validator"),
        response_transformer=options.get("response_transformer"),
        signal=options.get("signal"),
        default_retry_delay=options.get("sse_default_retry_delay"),
        max_retry_attempts=options.get("sse_max_retry_attempts"),
        max_retry_delay=options.get("sse_max_retry_delay"),
        sleep_fn=options.get("sse_sleep_fn"),
    )
