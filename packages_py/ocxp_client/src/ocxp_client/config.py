"""
Configuration for ocxp_client.

A ClientConfig is never mutated in place: set_config() produces a new merged
config. ``None`` on a field means "not set" and never overrides when merging.
"""
import asyncio
import json
from dataclasses import dataclass, field, fields, replace
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence, Union

import httpx

from .core.headers import HeadersInput, merge_headers
from .core.url_builder import QuerySerializer, QuerySerializerOptions, default_query_serializer
from .types import (
    AuthToken,
    Fetch,
    HttpMethod,
    ParseAs,
    ResponseStyle,
    SecurityScheme,
    SSEEvent,
)

BodySerializer = Callable[[Any], Any]
Validator = Callable[[Any], Union[None, Awaitable[None]]]
Transformer = Callable[[Any], Any]
SleepFn = Callable[[float], Awaitable[None]]


def _json_default(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def json_body_serializer(body: Any) -> str:
    """Serialize a request body as JSON."""
    return json.dumps(body, default=_json_default)


def _urlencoded_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, default=_json_default)


def url_search_params_body_serializer(body: Mapping[str, Any]) -> str:
    """
    Serialize a mapping as application/x-www-form-urlencoded.

    None values are skipped, lists become repeated keys and non-string
    values are JSON-encoded.
    """
    pairs = []
    for key, value in body.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((key, _urlencoded_value(v)) for v in value)
        else:
            pairs.append((key, _urlencoded_value(value)))
    return str(httpx.QueryParams(pairs))


@dataclass
class TimeoutConfig:
    """Timeout configuration in seconds for the owned httpx client."""

    connect: float = 5.0
    read: float = 30.0
    write: float = 10.0


DEFAULT_TIMEOUT = TimeoutConfig()
DEFAULT_HEADERS = {"Content-Type": "application/json"}


def normalize_timeout(timeout: Union[TimeoutConfig, float, None]) -> TimeoutConfig:
    """Normalize timeout config."""
    if timeout is None:
        return DEFAULT_TIMEOUT
    if isinstance(timeout, (int, float)):
        return TimeoutConfig(connect=timeout, read=timeout, write=timeout)
    return timeout


@dataclass
class ClientConfig:
    """Client-wide configuration."""

    base_url: Optional[str] = None
    headers: HeadersInput = None
    body_serializer: Optional[BodySerializer] = None
    query_serializer: Union[QuerySerializer, QuerySerializerOptions, None] = None
    parse_as: Optional[ParseAs] = None
    fetch: Optional[Fetch] = None
    throw_on_error: Optional[bool] = None
    response_style: Optional[ResponseStyle] = None
    auth: AuthToken = None
    request_validator: Optional[Validator] = None
    response_validator: Optional[Validator] = None
    response_transformer: Optional[Transformer] = None
    timeout: Union[TimeoutConfig, float, None] = None
    debug: Optional[bool] = None


@dataclass
class RequestOptions(ClientConfig):
    """Per-call options. Fields left as None fall back to the client config."""

    method: Optional[HttpMethod] = None
    url: Optional[str] = None
    path: Optional[Dict[str, Any]] = None
    query: Optional[Dict[str, Any]] = None
    body: Any = None
    security: Optional[Sequence[SecurityScheme]] = None
    # SSE only
    signal: Optional[asyncio.Event] = None
    on_sse_event: Optional[Callable[[SSEEvent], None]] = None
    on_sse_error: Optional[Callable[[BaseException], None]] = None
    sse_default_retry_delay: Optional[int] = None
    sse_max_retry_attempts: Optional[int] = None
    sse_max_retry_delay: Optional[int] = None
    sse_sleep_fn: Optional[SleepFn] = None
    # Filled in while building the request
    serialized_body: Any = field(default=None, repr=False)


def create_config(**override: Any) -> ClientConfig:
    """Create a config with defaults applied."""
    defaults = ClientConfig(
        body_serializer=json_body_serializer,
        headers=dict(DEFAULT_HEADERS),
        parse_as="auto",
        query_serializer=default_query_serializer,
    )
    return replace(defaults, **override)


def merge_configs(a: ClientConfig, b: ClientConfig) -> ClientConfig:
    """
    Shallow-merge b over a.

    Headers are merged with merge_headers and a trailing slash is
    stripped from base_url.
    """
    overrides = {
        f.name: getattr(b, f.name)
        for f in fields(ClientConfig)
        if f.name != "headers" and getattr(b, f.name) is not None
    }
    config = replace(a, **overrides)
    if config.base_url:
        config.base_url = config.base_url.rstrip("/")
    config.headers = merge_headers(a.headers, b.headers)
    return config


def build_request_options(config: ClientConfig, options: RequestOptions) -> RequestOptions:
    """Layer per-call options over the client config."""
    base = {f.name: getattr(config, f.name) for f in fields(ClientConfig)}
    merged = RequestOptions(**base)
    for f in fields(RequestOptions):
        value = getattr(options, f.name)
        if value is not None and f.name != "headers":
            setattr(merged, f.name, value)
    merged.headers = merge_headers(config.headers, options.headers)
    merged.serialized_body = None
    return merged
