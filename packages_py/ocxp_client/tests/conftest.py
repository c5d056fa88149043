"""
Shared fixtures for ocxp_client tests.
"""
from typing import Any, Callable, List

import httpx
import pytest

from ocxp_client.config import ClientConfig
from ocxp_client.core.base_client import Client


@pytest.fixture
def recorded_requests() -> List[httpx.Request]:
    return []


@pytest.fixture
def make_client(recorded_requests) -> Callable[..., Client]:
    """
    Build a Client whose transport is an httpx.MockTransport.

    The handler receives each outbound httpx.Request; every request is also
    appended to ``recorded_requests``.
    """

    def factory(handler: Callable[[httpx.Request], httpx.Response], **config: Any) -> Client:
        def record(request: httpx.Request) -> httpx.Response:
            recorded_requests.append(request)
            return handler(request)

        config.setdefault("base_url", "https://api.example.com")
        return Client(
            ClientConfig(**config),
            httpx_client=httpx.AsyncClient(transport=httpx.MockTransport(record)),
        )

    return factory


@pytest.fixture
def recording_sleep():
    """Async sleep that records delays (ms) and returns immediately."""
    delays: List[float] = []

    async def sleep(ms: float) -> None:
        delays.append(ms)

    sleep.delays = delays
    return sleep
