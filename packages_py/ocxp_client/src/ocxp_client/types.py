"""
Type definitions for ocxp_client.
"""
from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    Literal,
    Optional,
    Union,
)

import httpx


# HTTP methods
HttpMethod = Literal[
    "GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS", "CONNECT", "TRACE"
]

# How a successful response body is read.
# - auto: detect from the Content-Type header
# - json / text: decoded body
# - blob / array_buffer: raw bytes
# - form_data: multipart body parsed into a dict
# - stream: the raw byte iterator, not buffered
ParseAs = Literal["auto", "json", "text", "blob", "array_buffer", "form_data", "stream"]

# "fields" returns a RequestResult envelope, "data" returns the payload only
ResponseStyle = Literal["fields", "data"]

# OpenAPI parameter serialization styles
ParamStyle = Literal[
    "form",
    "simple",
    "label",
    "matrix",
    "spaceDelimited",
    "pipeDelimited",
    "deepObject",
]

# Where a credential is attached
AuthLocation = Literal["header", "query", "cookie"]

# Transport call: takes a built request, returns a response
Fetch = Callable[[httpx.Request], Awaitable[httpx.Response]]

# Token, sync supplier or async supplier
AuthToken = Union[
    str,
    Callable[["SecurityScheme"], Optional[str]],
    Callable[["SecurityScheme"], Awaitable[Optional[str]]],
    None,
]


class ConnectionState(str, Enum):
    """WebSocket connection state."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


@dataclass(frozen=True)
class SecurityScheme:
    """Declared security requirement of an endpoint.

    scheme: "bearer" -> "Bearer <token>", "basic" -> "Basic <base64(token)>",
    anything else -> raw token.
    location: header (default), query or cookie.
    name: header / query / cookie name, defaults to Authorization.
    """

    type: Literal["http", "apiKey"] = "http"
    scheme: Optional[str] = None
    location: Optional[AuthLocation] = None
    name: Optional[str] = None


@dataclass
class SSEEvent:
    """Parsed Server-Sent Event frame."""

    data: Any
    event: Optional[str] = None
    id: Optional[str] = None
    retry: Optional[int] = None


@dataclass
class RequestResult:
    """Envelope returned when response_style is "fields"."""

    request: httpx.Request
    response: Optional[httpx.Response] = None
    data: Any = None
    error: Any = None
