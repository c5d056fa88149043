"""
WebSocket support for ocxp_client.
"""
from .messages import (
    MESSAGE_MODELS,
    ChatMessage,
    ChatResponseMessage,
    ConnectedMessage,
    ErrorMessage,
    JobProgressMessage,
    KBIndexingStatusMessage,
    NotificationMessage,
    PingMessage,
    PongMessage,
    PrototypeSyncCompleteMessage,
    PrototypeSyncProgressMessage,
    RepoStatusMessage,
    StatusMessage,
    StreamChunkMessage,
    StreamEndMessage,
    StreamStartMessage,
    SyncEventMessage,
    WebSocketMessage,
    parse_ws_message,
)
from .service import (
    WebSocketService,
    WebSocketServiceOptions,
    create_websocket_service,
)

__all__ = [
    "MESSAGE_MODELS",
    "ChatMessage",
    "ChatResponseMessage",
    "ConnectedMessage",
    "ErrorMessage",
    "JobProgressMessage",
    "KBIndexingStatusMessage",
    "NotificationMessage",
    "PingMessage",
    "PongMessage",
    "PrototypeSyncCompleteMessage",
    "PrototypeSyncProgressMessage",
    "RepoStatusMessage",
    "StatusMessage",
    "StreamChunkMessage",
    "StreamEndMessage",
    "StreamStartMessage",
    "SyncEventMessage",
    "WebSocketMessage",
    "parse_ws_message",
    "WebSocketService",
    "WebSocketServiceOptions",
    "create_websocket_service",
]
