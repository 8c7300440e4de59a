"""
pytest configuration and fixtures.
"""

from typing import Generator, Optional
import json

import pytest

from splitstack import HTTPServer, Mode, ServerConfig, create_app
from splitstack.app import Application
from splitstack.http import Headers, HTTPRequest


class FakeClock:
    """Monotonic clock the test moves by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_request(
    method: str = "GET",
    path: str = "/",
    headers: Optional[dict] = None,
    body: bytes = b"",
    client_ip: str = "203.0.113.7",
    json_body=None,
) -> HTTPRequest:
    """Build an HTTPRequest the way RequestParser would."""
    all_headers = Headers({"Host": "localhost:5000"})
    if json_body is not None:
        body = json.dumps(json_body).encode("utf-8")
        all_headers["Content-Type"] = "application/json"
    if body:
        all_headers["Content-Length"] = str(len(body))
    all_headers.update(headers or {})
    return HTTPRequest(
        method=method,
        path=path,
        headers=all_headers,
        body=body,
        client_address=(client_ip, 54321),
    )


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /api/data?page=1&limit=10 HTTP/1.1\r\n"
        b"Host: localhost:5000\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = b'{"name": "Widget", "qty": 3}'
    return (
        b"POST /api/data HTTP/1.1\r\n"
        b"Host: localhost:5000\r\n"
        b"Origin: http://localhost:3000\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> ServerConfig:
    """Test-mode configuration with a port chosen by the OS."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,
        mode=Mode.TEST,
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        log_level="WARNING",
    )


@pytest.fixture
def app(config: ServerConfig, clock: FakeClock) -> Generator[Application, None, None]:
    application = create_app(config, clock=clock)
    yield application
    application.close()


@pytest.fixture
def live_server(config: ServerConfig) -> Generator[HTTPServer, None, None]:
    """A real server on a free port, running in a background thread."""
    server = HTTPServer(create_app(config), config).start_background()
    yield server
    server.shutdown()


@pytest.fixture
def request_factory():
    """make_request() as a fixture, for tests outside this module."""
    return make_request
