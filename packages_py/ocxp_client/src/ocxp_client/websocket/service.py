"""
WebSocket service for OCXP real-time push (job progress, sync events, ...).

The service keeps one connection open and reconnects with exponential
backoff after abnormal closes. ``disconnect()`` is the only way to stop
reconnection for good.
"""
import asyncio
import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Union
from urllib.parse import urlencode

import websockets
from websockets.exceptions import ConnectionClosed, InvalidURI

from ..errors import WebSocketConnectionError, WebSocketTimeoutError
from ..types import ConnectionState
from .messages import (
    JobProgressMessage,
    KBIndexingStatusMessage,
    NotificationMessage,
    PrototypeSyncCompleteMessage,
    PrototypeSyncProgressMessage,
    RepoStatusMessage,
    SyncEventMessage,
    WebSocketMessage,
    parse_ws_message,
)

logger = logging.getLogger("ocxp_client.websocket")

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006
WILDCARD = "*"

MessageHandler = Callable[[WebSocketMessage], None]
StateHandler = Callable[[ConnectionState], None]
Unsubscribe = Callable[[], None]
ConnectFactory = Callable[[str], Awaitable[Any]]
SleepFn = Callable[[float], Awaitable[None]]
TokenProvider = Union[str, Callable[[], Union[str, Awaitable[str]]], None]


async def _sleep_ms(ms: float) -> None:
    await asyncio.sleep(ms / 1000)


@dataclass
class WebSocketServiceOptions:
    """Connection options. Durations are in milliseconds."""

    endpoint: str
    workspace: str = "dev"
    user_id: Optional[str] = None
    token: TokenProvider = None
    max_reconnect_attempts: int = 5
    reconnect_delay_ms: int = 1000
    connection_timeout_ms: int = 10000


class WebSocketService:
    """
    Reconnecting WebSocket client.

    States: disconnected -> connecting -> connected -> reconnecting ->
    connecting (or disconnected once reconnect attempts are exhausted).
    """

    def __init__(
        self,
        options: WebSocketServiceOptions,
        connect_factory: Optional[ConnectFactory] = None,
        sleep_fn: Optional[SleepFn] = None,
    ):
        self.options = options
        self._connect_factory = connect_factory or websockets.connect
        self._sleep = sleep_fn or _sleep_ms
        self._ws: Any = None
        self._reader: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._pending: Optional[asyncio.Future] = None
        self._handlers: Dict[str, Set[MessageHandler]] = {}
        self._state_handlers: Set[StateHandler] = set()
        self._state = ConnectionState.DISCONNECTED
        self._reconnect_attempts = 0
        self._should_reconnect = True

    @property
    def connection_state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._ws is not None and self._state is ConnectionState.CONNECTED

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    async def connect(self) -> None:
        """
        Connect to the server.

        Joins an in-flight attempt if there is one and returns at once when
        already connected.

        Raises:
            WebSocketTimeoutError: the socket did not open in time.
            WebSocketConnectionError: the socket could not be opened, or
                disconnect() was called before it opened.
        """
        if self._pending is None:
            if self.connected:
                return
            self._should_reconnect = True
            self._pending = asyncio.ensure_future(self._do_connect())

        pending = self._pending
        try:
            await pending
        except asyncio.CancelledError:
            # disconnect() cancelled the shared attempt
            if pending.cancelled() and not self._should_reconnect:
                raise WebSocketConnectionError("WebSocket disconnected") from None
            raise

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self._state:
            logger.debug(f"WebSocketService: {self._state.value} -> {state.value}")
        self._state = state
        for handler in list(self._state_handlers):
            handler(state)

    async def _build_url(self) -> str:
        token = self.options.token
        if callable(token):
            token = token()
        if inspect.isawaitable(token):
            token = await token

        params = {"workspace": self.options.workspace}
        if self.options.user_id:
            params["user_id"] = self.options.user_id
        if token:
            params["token"] = token

        return f"{self.options.endpoint}?{urlencode(params)}"

    async def _do_connect(self) -> None:
        self._set_state(ConnectionState.CONNECTING)
        url = await self._build_url()
        timeout_ms = self.options.connection_timeout_ms

        try:
            ws = await asyncio.wait_for(self._connect_factory(url), timeout_ms / 1000)
        except InvalidURI as e:
            self._pending = None
            self._set_state(ConnectionState.DISCONNECTED)
            raise WebSocketConnectionError(f"Invalid WebSocket URL: {e}", cause=e) from e
        except asyncio.TimeoutError as e:
            logger.debug(f"WebSocketService: connect timed out after {timeout_ms}ms")
            self._handle_close(ABNORMAL_CLOSURE)
            raise WebSocketTimeoutError("WebSocket connection timeout", timeout_ms=timeout_ms) from e
        except Exception as e:
            logger.debug(f"WebSocketService: connect failed: {e!r}")
            self._handle_close(ABNORMAL_CLOSURE)
            raise WebSocketConnectionError("WebSocket connection failed", cause=e) from e

        self._ws = ws
        self._reconnect_attempts = 0
        self._set_state(ConnectionState.CONNECTED)
        self._reader = asyncio.ensure_future(self._read_loop(ws))

    async def _read_loop(self, ws: Any) -> None:
        try:
            async for frame in ws:
                message = parse_ws_message(frame)
                if message is not None:
                    self._dispatch(message)
        except ConnectionClosed as e:
            logger.debug(f"WebSocketService: connection closed: {e}")

        if ws is not self._ws:
            return

        code = ws.close_code if ws.close_code is not None else ABNORMAL_CLOSURE
        self._handle_close(code)

    def _handle_close(self, code: int) -> None:
        self._pending = None
        self._ws = None
        self._reader = None

        if self._should_reconnect and code != NORMAL_CLOSURE:
            self._set_state(ConnectionState.RECONNECTING)
            self._schedule_reconnect()
        else:
            self._set_state(ConnectionState.DISCONNECTED)

    def _schedule_reconnect(self) -> None:
        if not self._should_reconnect:
            return

        max_attempts = self.options.max_reconnect_attempts
        if self._reconnect_attempts >= max_attempts:
            logger.warning(f"WebSocketService: giving up after {max_attempts} reconnect attempts")
            self._set_state(ConnectionState.DISCONNECTED)
            return

        delay = self.options.reconnect_delay_ms * 2 ** self._reconnect_attempts
        self._reconnect_attempts += 1
        logger.debug(
            f"WebSocketService: reconnect attempt {self._reconnect_attempts} in {delay}ms"
        )
        self._reconnect_task = asyncio.ensure_future(self._reconnect_after(delay))

    async def _reconnect_after(self, delay: float) -> None:
        await self._sleep(delay)
        self._reconnect_task = None
        try:
            await self.connect()
        except (WebSocketConnectionError, WebSocketTimeoutError) as e:
            # The failed attempt has already scheduled the next one
            logger.debug(f"WebSocketService: reconnect failed: {e}")

    def _dispatch(self, message: WebSocketMessage) -> None:
        handlers = list(self._handlers.get(message.type, ())) + list(self._handlers.get(WILDCARD, ()))
        for handler in handlers:
            try:
                handler(message)
            except Exception:
                logger.exception(f"WebSocketService: handler for {message.type} failed")

    def on(self, type: str, handler: MessageHandler) -> Unsubscribe:
        """
        Subscribe to a message type, or "*" for every message.

        Returns:
            Function that removes the subscription.
        """
        self._handlers.setdefault(type, set()).add(handler)

        def unsubscribe() -> None:
            self._handlers.get(type, set()).discard(handler)

        return unsubscribe

    def on_job_progress(self, handler: Callable[[JobProgressMessage], None]) -> Unsubscribe:
        return self.on("job_progress", handler)

    def on_repo_status(self, handler: Callable[[RepoStatusMessage], None]) -> Unsubscribe:
        return self.on("repo_status", handler)

    def on_notification(self, handler: Callable[[NotificationMessage], None]) -> Unsubscribe:
        return self.on("notification", handler)

    def on_sync_event(self, handler: Callable[[SyncEventMessage], None]) -> Unsubscribe:
        return self.on("sync_event", handler)

    def on_prototype_sync_progress(
        self, handler: Callable[[PrototypeSyncProgressMessage], None]
    ) -> Unsubscribe:
        return self.on("prototype_sync_progress", handler)

    def on_prototype_sync_complete(
        self, handler: Callable[[PrototypeSyncCompleteMessage], None]
    ) -> Unsubscribe:
        return self.on("prototype_sync_complete", handler)

    def on_kb_indexing_status(self, handler: Callable[[KBIndexingStatusMessage], None]) -> Unsubscribe:
        return self.on("kb_indexing_status", handler)

    def on_connection_state_change(self, handler: StateHandler) -> Unsubscribe:
        self._state_handlers.add(handler)

        def unsubscribe() -> None:
            self._state_handlers.discard(handler)

        return unsubscribe

    async def send(self, data: Dict[str, Any]) -> None:
        """Send a JSON message. Does nothing unless the socket is open; nothing is queued."""
        if not self.connected:
            logger.debug("WebSocketService: send skipped, not connected")
            return
        await self._ws.send(json.dumps(data))

    async def subscribe_to_job(self, job_id: str) -> None:
        await self.send({"action": "subscribe", "type": "job", "id": job_id})

    async def subscribe_to_repo(self, repo_id: str) -> None:
        await self.send({"action": "subscribe", "type": "repo", "id": repo_id})

    async def subscribe_to_prototype_sync(self, job_id: str) -> None:
        await self.send({"action": "subscribe", "topic": f"prototype_sync:{job_id}"})

    async def ping(self) -> None:
        """Keep-alive ping."""
        await self.send({"action": "ping"})

    async def disconnect(self) -> None:
        """Close the connection and stop reconnecting."""
        self._should_reconnect = False

        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
            self._reconnect_task = None

        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

        ws, self._ws = self._ws, None
        if self._reader is not None:
            self._reader.cancel()
            self._reader = None
        if ws is not None:
            await ws.close(NORMAL_CLOSURE, "Client disconnect")

        self._reconnect_attempts = 0
        self._set_state(ConnectionState.DISCONNECTED)

    def clear_handlers(self) -> None:
        self._handlers.clear()
        self._state_handlers.clear()


def create_websocket_service(
    options: Optional[WebSocketServiceOptions] = None,
    **kwargs: Any,
) -> WebSocketService:
    """Create a WebSocketService from options or keyword option fields."""
    return WebSocketService(options or WebSocketServiceOptions(**kwargs))
