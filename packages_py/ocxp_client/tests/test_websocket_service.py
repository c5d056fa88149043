"""
Tests for service.py
Logic testing: State Transition, Loop, Decision/Branch, Error Path coverage
"""
import asyncio
import json
from typing import Any, List

import pytest
from websockets.exceptions import InvalidURI

from ocxp_client.errors import WebSocketConnectionError, WebSocketTimeoutError
from ocxp_client.types import ConnectionState
from ocxp_client.websocket.messages import JobProgressMessage
from ocxp_client.websocket.service import (
    WebSocketService,
    WebSocketServiceOptions,
    create_websocket_service,
)

_CLOSE = object()


class FakeConnection:
    """In-memory stand-in for a websockets client connection."""

    def __init__(self):
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.sent: List[str] = []
        self.closed_with = None
        self.close_code = None

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self.inbox.get()
        if isinstance(item, tuple) and item[0] is _CLOSE:
            self.close_code = item[1]
            raise StopAsyncIteration
        return item

    def push(self, message: Any) -> None:
        self.inbox.put_nowait(json.dumps(message) if isinstance(message, dict) else message)

    def server_close(self, code: int) -> None:
        self.inbox.put_nowait((_CLOSE, code))

    async def send(self, data: str) -> None:
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed_with = (code, reason)
        self.close_code = code


class FakeFactory:
    """Connect factory returning scripted connections or raising scripted errors."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.urls: List[str] = []
        self.connections: List[FakeConnection] = []

    async def __call__(self, url: str):
        self.urls.append(url)
        outcome = self.outcomes.pop(0) if self.outcomes else FakeConnection()
        if isinstance(outcome, BaseException):
            raise outcome
        self.connections.append(outcome)
        return outcome


async def settle(predicate=None, rounds: int = 200) -> None:
    """Let scheduled tasks run, optionally until predicate() holds."""
    for _ in range(rounds):
        if predicate is not None and predicate():
            return
        await asyncio.sleep(0)


def make_service(factory, sleep_fn=None, **options) -> WebSocketService:
    options.setdefault("endpoint", "wss://ws.example.com/ws")
    return WebSocketService(
        WebSocketServiceOptions(**options), connect_factory=factory, sleep_fn=sleep_fn
    )


class TestConnect:
    """Opening the connection."""

    # Happy Path: URL carries workspace, user_id and token
    @pytest.mark.asyncio
    async def test_url_params(self):
        factory = FakeFactory()
        service = make_service(factory, workspace="w1", user_id="u 1", token="t")
        await service.connect()

        assert factory.urls == ["wss://ws.example.com/ws?workspace=w1&user_id=u+1&token=t"]
        assert service.connected
        assert service.connection_state is ConnectionState.CONNECTED
        await service.disconnect()

    # Path: async token provider, no user id
    @pytest.mark.asyncio
    async def test_token_provider(self):
        async def token():
            return "fresh"

        factory = FakeFactory()
        service = make_service(factory, token=token)
        await service.connect()
        assert factory.urls == ["wss://ws.example.com/ws?workspace=dev&token=fresh"]
        await service.disconnect()

    # Decision: already connected returns without a new socket
    @pytest.mark.asyncio
    async def test_connect_idempotent(self):
        factory = FakeFactory()
        service = make_service(factory)
        await service.connect()
        await service.connect()
        assert len(factory.urls) == 1
        await service.disconnect()

    # Decision: concurrent connects share one attempt
    @pytest.mark.asyncio
    async def test_concurrent_connects(self):
        factory = FakeFactory()
        service = make_service(factory)
        await asyncio.gather(service.connect(), service.connect())
        assert len(factory.urls) == 1
        await service.disconnect()

    # State: state handlers see connecting then connected
    @pytest.mark.asyncio
    async def test_state_handlers(self):
        states = []
        service = make_service(FakeFactory())
        unsubscribe = service.on_connection_state_change(states.append)
        await service.connect()
        unsubscribe()
        await service.disconnect()

        assert states == [ConnectionState.CONNECTING, ConnectionState.CONNECTED]

    # Error Path: timeout raises and, with no attempts allowed, ends disconnected
    @pytest.mark.asyncio
    async def test_timeout(self):
        async def never(url):
            await asyncio.Event().wait()

        service = make_service(never, connection_timeout_ms=10, max_reconnect_attempts=0)
        with pytest.raises(WebSocketTimeoutError) as exc_info:
            await service.connect()

        assert exc_info.value.timeout_ms == 10
        assert service.connection_state is ConnectionState.DISCONNECTED

    # Error Path: invalid URL never reconnects
    @pytest.mark.asyncio
    async def test_invalid_uri(self, recording_sleep):
        factory = FakeFactory(InvalidURI("nope", "not a websocket URI"))
        service = make_service(factory, recording_sleep)
        with pytest.raises(WebSocketConnectionError):
            await service.connect()

        await settle()
        assert service.connection_state is ConnectionState.DISCONNECTED
        assert recording_sleep.delays == []


class TestReconnect:
    """Reconnection after closes and failed attempts."""

    # Decision: normal closure (1000) does not reconnect
    @pytest.mark.asyncio
    async def test_normal_close(self, recording_sleep):
        factory = FakeFactory()
        service = make_service(factory, recording_sleep)
        await service.connect()

        factory.connections[0].server_close(1000)
        await settle(lambda: service.connection_state is ConnectionState.DISCONNECTED)

        assert service.connection_state is ConnectionState.DISCONNECTED
        assert recording_sleep.delays == []
        assert len(factory.urls) == 1

    # State: abnormal close reconnects and resets the attempt counter
    @pytest.mark.asyncio
    async def test_abnormal_close_reconnects(self, recording_sleep):
        factory = FakeFactory()
        service = make_service(factory, recording_sleep)
        await service.connect()

        factory.connections[0].server_close(1006)
        await settle(lambda: len(factory.connections) == 2 and service.connected)

        assert service.connected
        assert service.reconnect_attempts == 0
        assert recording_sleep.delays == [1000]
        await service.disconnect()

    # Loop: failed connects back off exponentially, then give up
    @pytest.mark.asyncio
    async def test_backoff_then_give_up(self, recording_sleep):
        factory = FakeFactory(*[OSError("refused")] * 6)
        service = make_service(factory, recording_sleep)

        with pytest.raises(WebSocketConnectionError):
            await service.connect()

        await settle(lambda: len(recording_sleep.delays) == 5
                     and service.connection_state is ConnectionState.DISCONNECTED)

        assert recording_sleep.delays == [1000, 2000, 4000, 8000, 16000]
        assert len(factory.urls) == 6
        assert service.connection_state is ConnectionState.DISCONNECTED

    # State: disconnect while a reconnect is pending cancels it
    @pytest.mark.asyncio
    async def test_disconnect_cancels_reconnect(self):
        delays = []
        gate = asyncio.Event()

        async def slow_sleep(ms):
            delays.append(ms)
            await gate.wait()

        factory = FakeFactory()
        service = make_service(factory, slow_sleep)
        await service.connect()

        factory.connections[0].server_close(1006)
        await settle(lambda: delays == [1000])
        assert service.connection_state is ConnectionState.RECONNECTING

        await service.disconnect()
        gate.set()
        await settle()

        assert service.connection_state is ConnectionState.DISCONNECTED
        assert len(factory.urls) == 1

    # Error Path: disconnect during an in-flight connect rejects the waiting caller
    @pytest.mark.asyncio
    async def test_disconnect_during_connect(self, recording_sleep):
        urls = []

        async def slow(url):
            urls.append(url)
            await asyncio.Event().wait()

        service = make_service(slow, recording_sleep)
        task = asyncio.ensure_future(service.connect())
        await settle(lambda: urls)

        await service.disconnect()
        with pytest.raises(WebSocketConnectionError, match="disconnected"):
            await task

        await settle()
        assert service.connection_state is ConnectionState.DISCONNECTED
        assert recording_sleep.delays == []
        assert len(urls) == 1

    # State: cancelling the caller itself still raises CancelledError
    @pytest.mark.asyncio
    async def test_caller_cancelled(self, recording_sleep):
        urls = []

        async def slow(url):
            urls.append(url)
            await asyncio.Event().wait()

        service = make_service(slow, recording_sleep)
        task = asyncio.ensure_future(service.connect())
        await settle(lambda: urls)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await service.disconnect()

    # Path: client disconnect closes with 1000
    @pytest.mark.asyncio
    async def test_disconnect_closes_socket(self):
        factory = FakeFactory()
        service = make_service(factory)
        await service.connect()
        await service.disconnect()

        assert factory.connections[0].closed_with == (1000, "Client disconnect")
        assert not service.connected
        assert service.connection_state is ConnectionState.DISCONNECTED


class TestDispatch:
    """Routing inbound messages to handlers."""

    # Happy Path: typed and wildcard handlers both receive the message
    @pytest.mark.asyncio
    async def test_type_and_wildcard(self):
        factory = FakeFactory()
        service = make_service(factory)
        typed, everything = [], []
        service.on_job_progress(typed.append)
        service.on("*", everything.append)
        await service.connect()

        factory.connections[0].push({
            "type": "job_progress",
            "job_id": "j1",
            "status": "running",
            "progress": 50,
            "files_processed": 5,
            "total_files": 10,
        })
        factory.connections[0].push({"type": "custom", "value": 1})
        await settle(lambda: len(everything) == 2)

        assert len(typed) == 1
        assert isinstance(typed[0], JobProgressMessage)
        assert typed[0].progress == 50
        assert [m.type for m in everything] == ["job_progress", "custom"]
        await service.disconnect()

    # State: unsubscribe stops delivery
    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        factory = FakeFactory()
        service = make_service(factory)
        received, marker = [], []
        unsubscribe = service.on("ping", received.append)
        service.on("pong", marker.append)
        await service.connect()

        unsubscribe()
        factory.connections[0].push({"type": "ping"})
        factory.connections[0].push({"type": "pong"})
        await settle(lambda: marker)

        assert received == []
        await service.disconnect()

    # Error Path: one failing handler does not block the others
    @pytest.mark.asyncio
    async def test_handler_error_isolated(self):
        factory = FakeFactory()
        service = make_service(factory)
        received = []

        def broken(message):
            raise RuntimeError("handler bug")

        service.on("pong", broken)
        service.on("*", received.append)
        await service.connect()

        factory.connections[0].push({"type": "pong"})
        await settle(lambda: received)

        assert len(received) == 1
        assert service.connected
        await service.disconnect()

    # Boundary: malformed frames are dropped
    @pytest.mark.asyncio
    async def test_malformed_dropped(self):
        factory = FakeFactory()
        service = make_service(factory)
        received = []
        service.on("*", received.append)
        await service.connect()

        factory.connections[0].push("not json")
        factory.connections[0].push({"no_type": True})
        factory.connections[0].push({"type": "pong"})
        await settle(lambda: received)

        assert [m.type for m in received] == ["pong"]
        await service.disconnect()


class TestSend:
    """Outbound messages."""

    # Decision: send while disconnected is a no-op
    @pytest.mark.asyncio
    async def test_send_disconnected(self):
        service = make_service(FakeFactory())
        await service.send({"action": "ping"})
        await service.ping()
        assert not service.connected

    # Happy Path: subscribe helpers
    @pytest.mark.asyncio
    async def test_subscribe_helpers(self):
        factory = FakeFactory()
        service = make_service(factory)
        await service.connect()

        await service.subscribe_to_job("j1")
        await service.subscribe_to_repo("r1")
        await service.subscribe_to_prototype_sync("p1")
        await service.ping()

        assert [json.loads(s) for s in factory.connections[0].sent] == [
            {"action": "subscribe", "type": "job", "id": "j1"},
            {"action": "subscribe", "type": "repo", "id": "r1"},
            {"action": "subscribe", "topic": "prototype_sync:p1"},
            {"action": "ping"},
        ]
        await service.disconnect()


class TestCreateWebSocketService:
    def test_from_kwargs(self):
        service = create_websocket_service(endpoint="wss://h/ws", workspace="prod")
        assert service.options.workspace == "prod"
        assert service.options.max_reconnect_attempts == 5
        assert service.connection_state is ConnectionState.DISCONNECTED

    def test_clear_handlers(self):
        service = create_websocket_service(endpoint="wss://h/ws")
        received = []
        service.on("*", received.append)
        service.on_connection_state_change(received.append)
        service.clear_handlers()
        service._set_state(ConnectionState.CONNECTING)
        assert received == []
