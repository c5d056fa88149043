"""
Inbound WebSocket message models.

Every message is a JSON object with a string ``type``. Known types are
validated against their model; unknown types become a plain
WebSocketMessage. Extra fields are kept on every model.
"""
import json
import logging
from typing import Any, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger("ocxp_client.websocket.messages")


class WebSocketMessage(BaseModel):
    """Any inbound message."""

    model_config = {"extra": "allow", "populate_by_name": True}

    type: str


# Domain messages


class JobProgressMessage(WebSocketMessage):
    type: Literal["job_progress"] = "job_progress"
    job_id: str
    status: str
    progress: float
    files_processed: int
    total_files: int
    error: Optional[str] = None


class RepoStatusMessage(WebSocketMessage):
    type: Literal["repo_status"] = "repo_status"
    repo_id: str
    status: str
    kb_synced: bool
    s3_path: Optional[str] = None
    files_count: Optional[int] = None


class NotificationAction(BaseModel):
    label: str
    url: str


class NotificationMessage(WebSocketMessage):
    type: Literal["notification"] = "notification"
    title: str
    message: str
    level: Literal["info", "warning", "error", "success"]
    action: Optional[NotificationAction] = None


class SyncEventMessage(WebSocketMessage):
    type: Literal["sync_event"] = "sync_event"
    event: str
    path: Optional[str] = None
    content_type: Optional[str] = None


class PrototypeSyncProgressMessage(WebSocketMessage):
    type: Literal["prototype_sync_progress"] = "prototype_sync_progress"
    job_id: str
    status: Literal["queued", "fetching", "downloading", "screenshotting", "uploading"]
    progress: float
    current_step: str
    files_processed: int
    files_total: int
    screenshots_processed: int
    screenshots_total: int


class PrototypeSyncCompleteMessage(WebSocketMessage):
    type: Literal["prototype_sync_complete"] = "prototype_sync_complete"
    job_id: str
    content_links: List[str]
    stored_versions: List[str]


class KBIndexingStatusMessage(WebSocketMessage):
    type: Literal["kb_indexing_status"] = "kb_indexing_status"
    status: str
    documents_count: int
    indexed: int
    failed: int
    error: Optional[str] = None
    kb_type: Optional[str] = None
    kb_id: Optional[str] = None
    job_id: Optional[str] = None


# Chat protocol messages


class SessionMessage(WebSocketMessage):
    """Fields shared by chat protocol messages."""

    id: Optional[str] = None
    timestamp: Optional[str] = None
    session_id: Optional[str] = Field(default=None, alias="sessionId")


class TokenUsage(BaseModel):
    model_config = {"populate_by_name": True}

    prompt_tokens: Optional[float] = Field(default=None, alias="promptTokens")
    completion_tokens: Optional[float] = Field(default=None, alias="completionTokens")
    total_tokens: Optional[float] = Field(default=None, alias="totalTokens")


class ChatMessage(SessionMessage):
    type: Literal["chat"] = "chat"
    content: str
    mission_id: Optional[str] = Field(default=None, alias="missionId")
    project_id: Optional[str] = Field(default=None, alias="projectId")
    metadata: Optional[Dict[str, Any]] = None


class ChatResponseMessage(SessionMessage):
    type: Literal["chat_response"] = "chat_response"
    content: str
    role: Optional[Literal["assistant", "system"]] = None
    metadata: Optional[Dict[str, Any]] = None
    usage: Optional[TokenUsage] = None


class StreamStartMessage(SessionMessage):
    type: Literal["stream_start"] = "stream_start"
    stream_id: str = Field(alias="streamId")


class StreamChunkMessage(SessionMessage):
    type: Literal["stream_chunk"] = "stream_chunk"
    stream_id: str = Field(alias="streamId")
    content: str
    index: Optional[int] = None


class StreamEndMessage(SessionMessage):
    type: Literal["stream_end"] = "stream_end"
    stream_id: str = Field(alias="streamId")
    usage: Optional[TokenUsage] = None


class ErrorMessage(SessionMessage):
    type: Literal["error"] = "error"
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None


class PingMessage(SessionMessage):
    type: Literal["ping"] = "ping"


class PongMessage(SessionMessage):
    type: Literal["pong"] = "pong"


class ConnectedMessage(SessionMessage):
    type: Literal["connected"] = "connected"
    connection_id: Optional[str] = Field(default=None, alias="connectionId")
    server_version: Optional[str] = Field(default=None, alias="serverVersion")


class StatusMessage(SessionMessage):
    type: Literal["status"] = "status"
    status: Literal["ready", "busy", "processing", "idle"]
    message: Optional[str] = None


MESSAGE_MODELS: Dict[str, Type[WebSocketMessage]] = {
    "job_progress": JobProgressMessage,
    "repo_status": RepoStatusMessage,
    "notification": NotificationMessage,
    "sync_event": SyncEventMessage,
    "prototype_sync_progress": PrototypeSyncProgressMessage,
    "prototype_sync_complete": PrototypeSyncCompleteMessage,
    "kb_indexing_status": KBIndexingStatusMessage,
    "chat": ChatMessage,
    "chat_response": ChatResponseMessage,
    "stream_start": StreamStartMessage,
    "stream_chunk": StreamChunkMessage,
    "stream_end": StreamEndMessage,
    "error": ErrorMessage,
    "ping": PingMessage,
    "pong": PongMessage,
    "connected": ConnectedMessage,
    "status": StatusMessage,
}


def parse_ws_message(data: Any) -> Optional[WebSocketMessage]:
    """
    Parse one inbound frame.

    Returns None for frames that are not JSON objects with a string
    ``type``, and for known types that fail validation.
    """
    if isinstance(data, (bytes, bytearray)):
        data = data.decode("utf-8", errors="replace")

    try:
        payload = json.loads(data)
    except (TypeError, ValueError):
        logger.debug("parse_ws_message: dropping non-JSON frame")
        return None

    if not isinstance(payload, dict) or not isinstance(payload.get("type"), str):
        logger.debug("parse_ws_message: dropping frame without a string type")
        return None

    model = MESSAGE_MODELS.get(payload["type"], WebSocketMessage)
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        logger.debug(f"parse_ws_message: invalid {payload['type']} frame: {e.error_count()} errors")
        return None
