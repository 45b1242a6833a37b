import json
from typing import Callable, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from app.config import Config
from app.lifecycle import ShutdownState
from app.relay import Forwarder
from app.server import create_app


class FakeUpstream:
    """Records outbound requests and answers them from a route table."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.routes = {}

    def reply(self, url: str, status_code: int = 200, json_body=None, text: Optional[str] = None):
        if text is None:
            text = json.dumps(json_body if json_body is not None else {})
        self.routes[url] = (status_code, text)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status_code, text = self.routes.get(str(request.url), (404, '{"error":"no route"}'))
        return httpx.Response(status_code, text=text, request=request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def forwarder(upstream) -> Forwarder:
    return Forwarder(transport=upstream.transport)


@pytest.fixture
def make_client(upstream) -> Callable[..., TestClient]:
    """Build a TestClient for a fresh app wired to the fake upstream."""

    def _make(env: str = "test", shutdown_state: Optional[ShutdownState] = None, **kwargs):
        app = create_app(
            config=Config([{"APP_ENV": env}]),
            forwarder=Forwarder(transport=upstream.transport),
            shutdown_state=shutdown_state,
            log_skip_paths=[],
        )
        return TestClient(app, **kwargs)

    return _make
