"""
Request engine: the HTTP client every generated operation goes through.
"""
import inspect
import logging
from dataclasses import replace
from typing import Any, Optional, Tuple

import httpx

from ..config import (
    ClientConfig,
    RequestOptions,
    build_request_options,
    create_config,
    merge_configs,
    normalize_timeout,
)
from ..console import print_request, print_response
from ..errors import ConfigurationError, OCXPNetworkError, map_http_error
from ..streaming.sse_client import SseClient, create_sse_client
from ..types import HttpMethod, RequestResult
from .auth import set_auth_params
from .headers import delete_header
from .interceptors import InterceptorRegistry, create_interceptors
from .response_parser import (
    empty_value,
    get_parse_as,
    is_empty_response,
    read_body,
    read_error_body,
)
from .url_builder import build_url as _build_url

logger = logging.getLogger("ocxp_client.base_client")


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _request_content(opts: RequestOptions) -> Any:
    """
    Body to send: the serialized body, or the raw body when no serializer ran.

    Raises:
        ConfigurationError: The raw body is not str, bytes or a byte stream.
    """
    if opts.serialized_body is not None:
        content = opts.serialized_body
    elif opts.body is None:
        return None
    elif isinstance(opts.body, (str, bytes, bytearray)):
        content = opts.body
    elif hasattr(opts.body, "__aiter__"):
        return opts.body
    else:
        raise ConfigurationError(
            f"Cannot send a {type(opts.body).__name__} body without a body_serializer",
            details={"body_type": type(opts.body).__name__},
        )
    return content if content != "" else None


def _error_message(error: Any, response: Optional[httpx.Response]) -> str:
    if isinstance(error, dict):
        inner = error.get("error")
        if isinstance(inner, dict) and inner.get("message"):
            return str(inner["message"])
        if isinstance(inner, str) and inner:
            return inner
        if error.get("message"):
            return str(error["message"])
    if isinstance(error, str) and error:
        return error
    if response is not None:
        return f"HTTP {response.status_code} {response.reason_phrase}".strip()
    return "Request failed"


def _retry_after(response: Optional[httpx.Response]) -> Optional[float]:
    if response is None:
        return None
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def to_exception(
    error: Any,
    request: httpx.Request,
    response: Optional[httpx.Response] = None,
) -> BaseException:
    """
    Turn a final error value into something raisable.

    Exceptions pass through unchanged, except raw httpx transport errors,
    which become OCXPNetworkError. Error payloads (parsed JSON or text) are
    mapped by status code, with the payload kept on ``error.payload``.
    """
    if isinstance(error, httpx.HTTPError):
        return OCXPNetworkError(str(error) or type(error).__name__, cause=error)
    if isinstance(error, BaseException):
        return error

    status_code = response.status_code if response is not None else 0
    exc = map_http_error(
        status_code,
        _error_message(error, response),
        details=error if isinstance(error, dict) else None,
        request_id=response.headers.get("X-Request-Id") if response is not None else None,
        path=request.url.path,
        retry_after=_retry_after(response),
    )
    exc.payload = error
    return exc


class SseMethods:
    """``client.sse.<method>(url, **options)`` returning an SseClient."""

    def __init__(self, client: "Client"):
        self._client = client

    async def connect(self, url: str, **options: Any) -> SseClient:
        return await self._client._sse("CONNECT", url, **options)

    async def delete(self, url: str, **options: Any) -> SseClient:
        return await self._client._sse("DELETE", url, **options)

    async def get(self, url: str, **options: Any) -> SseClient:
        return await self._client._sse("GET", url, **options)

    async def head(self, url: str, **options: Any) -> SseClient:
        return await self._client._sse("HEAD", url, **options)

    async def options(self, url: str, **options: Any) -> SseClient:
        return await self._client._sse("OPTIONS", url, **options)

    async def patch(self, url: str, **options: Any) -> SseClient:
        return await self._client._sse("PATCH", url, **options)

    async def post(self, url: str, **options: Any) -> SseClient:
        return await self._client._sse("POST", url, **options)

    async def put(self, url: str, **options: Any) -> SseClient:
        return await self._client._sse("PUT", url, **options)

    async def trace(self, url: str, **options: Any) -> SseClient:
        return await self._client._sse("TRACE", url, **options)


class Client:
    """
    Asynchronous HTTP client.

    Each call is exactly one transport attempt. The result is a
    RequestResult envelope, or the payload alone with
    ``response_style="data"``. With ``throw_on_error=True`` failures are
    raised instead of returned.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        httpx_client: Optional[httpx.AsyncClient] = None,
    ):
        self._config = merge_configs(create_config(), config or ClientConfig())
        self.interceptors: InterceptorRegistry = create_interceptors()
        self.sse = SseMethods(self)
        self._owns_http = httpx_client is None
        if httpx_client is not None:
            self._http = httpx_client
        else:
            timeout = normalize_timeout(self._config.timeout)
            self._http = httpx.AsyncClient(
                follow_redirects=True,
                timeout=httpx.Timeout(
                    connect=timeout.connect,
                    read=timeout.read,
                    write=timeout.write,
                    pool=timeout.connect,
                ),
            )

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying httpx client if this client created it."""
        if self._owns_http:
            await self._http.aclose()

    def get_config(self) -> ClientConfig:
        return replace(self._config, headers=httpx.Headers(self._config.headers))

    def set_config(self, config: Optional[ClientConfig] = None, **kwargs: Any) -> ClientConfig:
        """Merge config (or keyword fields) over the current config and return a copy."""
        self._config = merge_configs(self._config, config or ClientConfig(**kwargs))
        return self.get_config()

    def build_url(self, **options: Any) -> str:
        return _build_url(build_request_options(self._config, RequestOptions(**options)))

    async def _default_fetch(self, request: httpx.Request) -> httpx.Response:
        return await self._http.send(request, stream=True)

    async def _before_request(self, options: RequestOptions) -> Tuple[RequestOptions, str]:
        opts = build_request_options(self._config, options)
        opts.fetch = opts.fetch or self._default_fetch

        if opts.security:
            await set_auth_params(opts.security, opts)

        if opts.request_validator:
            await _maybe_await(opts.request_validator(opts))

        if opts.body is not None and opts.body_serializer:
            opts.serialized_body = opts.body_serializer(opts.body)

        if opts.body is None or opts.serialized_body == "":
            delete_header(opts.headers, "Content-Type")

        url = _build_url(opts)
        logger.debug(f"Client._before_request: method={opts.method}, url={url}")
        return opts, url

    def _result(
        self,
        opts: RequestOptions,
        request: httpx.Request,
        response: Optional[httpx.Response],
        data: Any = None,
    ) -> Any:
        if opts.response_style == "data":
            return data
        return RequestResult(request=request, response=response, data=data)

    def _failure(
        self,
        error: Any,
        opts: RequestOptions,
        request: httpx.Request,
        response: Optional[httpx.Response],
    ) -> Any:
        if opts.throw_on_error:
            raise to_exception(error, request, response)
        if opts.response_style == "data":
            return None
        return RequestResult(request=request, response=response, error=error)

    async def request(self, **options: Any) -> Any:
        """Make a request. Keyword options are RequestOptions fields."""
        opts, url = await self._before_request(RequestOptions(**options))

        request = httpx.Request(
            opts.method or "GET",
            url,
            headers=opts.headers,
            content=_request_content(opts),
        )
        for fn in self.interceptors.request:
            request = await _maybe_await(fn(request, opts))

        if opts.debug:
            print_request(request, opts.body)

        try:
            response = await opts.fetch(request)
        except Exception as exc:
            logger.debug(f"Client.request: transport error for {request.method} {request.url}: {exc!r}")
            final_error: Any = exc
            for fn in self.interceptors.error:
                final_error = await _maybe_await(fn(final_error, None, request, opts))
            return self._failure(final_error or {}, opts, request, None)

        for fn in self.interceptors.response:
            response = await _maybe_await(fn(response, request, opts))

        if response.is_success:
            return await self._parse_success(opts, request, response)

        error = await read_error_body(response)
        await response.aclose()
        logger.debug(f"Client.request: {request.method} {request.url} -> {response.status_code}")
        if opts.debug:
            print_response(response, request, error)

        final_error = error
        for fn in self.interceptors.error:
            final_error = await _maybe_await(fn(final_error, response, request, opts))
        return self._failure(final_error or {}, opts, request, response)

    async def _parse_success(
        self,
        opts: RequestOptions,
        request: httpx.Request,
        response: httpx.Response,
    ) -> Any:
        empty = is_empty_response(response)
        if opts.parse_as in (None, "auto"):
            content_type = response.headers.get("Content-Type")
            # Empty bodies without a Content-Type take the json shape, not stream
            if empty and not content_type:
                parse_as = "json"
            else:
                parse_as = get_parse_as(content_type) or "json"
        else:
            parse_as = opts.parse_as

        if empty:
            data = empty_value(parse_as, response)
            if parse_as != "stream":
                await response.aclose()
            return self._result(opts, request, response, data)

        if parse_as == "stream":
            return self._result(opts, request, response, response.aiter_bytes())

        try:
            data = await read_body(response, parse_as)
        finally:
            await response.aclose()

        if parse_as == "json":
            if opts.response_validator:
                await _maybe_await(opts.response_validator(data))
            if opts.response_transformer:
                data = await _maybe_await(opts.response_transformer(data))

        if opts.debug:
            print_response(response, request, data)

        return self._result(opts, request, response, data)

    async def _sse(self, method: HttpMethod, url: str, **options: Any) -> SseClient:
        opts, full_url = await self._before_request(
            RequestOptions(method=method, url=url, **options)
        )

        async def on_request(request: httpx.Request) -> httpx.Request:
            for fn in self.interceptors.request:
                request = await _maybe_await(fn(request, opts))
            return request

        return create_sse_client(
            full_url,
            opts.fetch,
            method=method,
            headers=opts.headers,
            body=_request_content(opts),
            on_request=on_request,
            on_sse_event=opts.on_sse_event,
            on_sse_error=opts.on_sse_error,
            response_validator=opts.response_validator,
            response_transformer=opts.response_transformer,
            signal=opts.signal,
            sse_default_retry_delay=opts.sse_default_retry_delay,
            sse_max_retry_attempts=opts.sse_max_retry_attempts,
            sse_max_retry_delay=opts.sse_max_retry_delay,
            sse_sleep_fn=opts.sse_sleep_fn,
        )

    async def get(self, url: str, **options: Any) -> Any:
        """GET request."""
        return await self.request(method="GET", url=url, **options)

    async def post(self, url: str, **options: Any) -> Any:
        """POST request."""
        return await self.request(method="POST", url=url, **options)

    async def put(self, url: str, **options: Any) -> Any:
        """PUT request."""
        return await self.request(method="PUT", url=url, **options)

    async def patch(self, url: str, **options: Any) -> Any:
        """PATCH request."""
        return await self.request(method="PATCH", url=url, **options)

    async def delete(self, url: str, **options: Any) -> Any:
        """DELETE request."""
        return await self.request(method="DELETE", url=url, **options)

    async def head(self, url: str, **options: Any) -> Any:
        """HEAD request."""
        return await self.request(method="HEAD", url=url, **options)

    async def options(self, url: str, **options: Any) -> Any:
        """OPTIONS request."""
        return await self.request(method="OPTIONS", url=url, **options)

    async def trace(self, url: str, **options: Any) -> Any:
        """TRACE request."""
        return await self.request(method="TRACE", url=url, **options)

    async def connect(self, url: str, **options: Any) -> Any:
        """CONNECT request."""
        return await self.request(method="CONNECT", url=url, **options)


def create_client(
    config: Optional[ClientConfig] = None,
    httpx_client: Optional[httpx.AsyncClient] = None,
) -> Client:
    """Create a Client with defaults applied under config."""
    return Client(config, httpx_client)
