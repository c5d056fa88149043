"""
Async HTTP and WebSocket client core for the OCXP content API.

Provides OpenAPI-style parameter serialization, a request engine with
interceptors, a reconnecting SSE client and a reconnecting WebSocket service.
"""
from .types import (
    AuthToken,
    ConnectionState,
    Fetch,
    HttpMethod,
    ParamStyle,
    ParseAs,
    RequestResult,
    ResponseStyle,
    SecurityScheme,
    SSEEvent,
)
from .errors import (
    ConfigurationError,
    OCXPAuthError,
    OCXPConflictError,
    OCXPError,
    OCXPErrorCode,
    OCXPNetworkError,
    OCXPNotFoundError,
    OCXPRateLimitError,
    OCXPTimeoutError,
    OCXPValidationError,
    SseStreamError,
    WebSocketConnectionError,
    WebSocketTimeoutError,
    map_http_error,
)
from .config import (
    ClientConfig,
    RequestOptions,
    TimeoutConfig,
    create_config,
    json_body_serializer,
    merge_configs,
    url_search_params_body_serializer,
)
from .core.auth import get_auth_token, set_auth_params
from .core.headers import merge_headers
from .core.interceptors import InterceptorHandle, Interceptors, create_interceptors
from .core.path_serializer import (
    serialize_array_param,
    serialize_object_param,
    serialize_primitive_param,
)
from .core.url_builder import (
    QuerySerializerOptions,
    SerializationPolicy,
    build_url,
    create_query_serializer,
    default_path_serializer,
    get_url,
)
from .core.base_client import Client, create_client
from .streaming.sse_client import SseClient, create_sse_client
from .websocket import (
    WebSocketMessage,
    WebSocketService,
    WebSocketServiceOptions,
    create_websocket_service,
    parse_ws_message,
)
from .path import (
    VALID_CONTENT_TYPES,
    ParsedPath,
    build_path,
    get_canonical_type,
    is_valid_content_type,
    normalize_path,
    parse_path,
)
from .ocxp import (
    ContentTypesResult,
    DeleteResult,
    ListEntry,
    ListResult,
    OCXPClient,
    ReadResult,
    WriteResult,
    create_ocxp_client,
)

__version__ = "0.1.0"

__all__ = [
    # Types
    "AuthToken",
    "ConnectionState",
    "Fetch",
    "HttpMethod",
    "ParamStyle",
    "ParseAs",
    "RequestResult",
    "ResponseStyle",
    "SecurityScheme",
    "SSEEvent",
    # Errors
    "ConfigurationError",
    "OCXPAuthError",
    "OCXPConflictError",
    "OCXPError",
    "OCXPErrorCode",
    "OCXPNetworkError",
    "OCXPNotFoundError",
    "OCXPRateLimitError",
    "OCXPTimeoutError",
    "OCXPValidationError",
    "SseStreamError",
    "WebSocketConnectionError",
    "WebSocketTimeoutError",
    "map_http_error",
    # Config
    "ClientConfig",
    "RequestOptions",
    "TimeoutConfig",
    "create_config",
    "json_body_serializer",
    "merge_configs",
    "url_search_params_body_serializer",
    # Core
    "get_auth_token",
    "set_auth_params",
    "merge_headers",
    "InterceptorHandle",
    "Interceptors",
    "create_interceptors",
    "serialize_array_param",
    "serialize_object_param",
    "serialize_primitive_param",
    "QuerySerializerOptions",
    "SerializationPolicy",
    "build_url",
    "create_query_serializer",
    "default_path_serializer",
    "get_url",
    "Client",
    "create_client",
    # Streaming
    "SseClient",
    "create_sse_client",
    # WebSocket
    "WebSocketMessage",
    "WebSocketService",
    "WebSocketServiceOptions",
    "create_websocket_service",
    "parse_ws_message",
    # Paths
    "VALID_CONTENT_TYPES",
    "ParsedPath",
    "build_path",
    "get_canonical_type",
    "is_valid_content_type",
    "normalize_path",
    "parse_path",
    # OCXP
    "ContentTypesResult",
    "DeleteResult",
    "ListEntry",
    "ListResult",
    "OCXPClient",
    "ReadResult",
    "WriteResult",
    "create_ocxp_client",
]
