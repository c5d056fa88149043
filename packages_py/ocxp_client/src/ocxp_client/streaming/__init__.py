"""
Streaming clients for ocxp_client.
"""
from .sse_client import (
    DEFAULT_MAX_RETRY_DELAY,
    DEFAULT_RETRY_DELAY,
    SseClient,
    create_sse_client,
)

__all__ = [
    "DEFAULT_MAX_RETRY_DELAY",
    "DEFAULT_RETRY_DELAY",
    "SseClient",
    "create_sse_client",
]
