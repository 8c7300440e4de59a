"""
Socket-level tests: a real server on a free port, driven with httpx.
"""

from http import HTTPStatus
import socket

import httpx
import pytest

from splitstack import HTTPServer, create_app
from splitstack.client import ApiClient, MemoryCredentialStore
from splitstack.config import ClientConfig


@pytest.fixture
def base_url(live_server) -> str:
    return live_server.url


def raw_exchange(address, payload: bytes) -> bytes:
    with socket.create_connection(address, timeout=5) as sock:
        sock.sendall(payload)
        chunks = []
        while True:
            chunk = sock.recv(65536)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


class TestLiveServer:
    """End-to-end over TCP."""

    def test_health(self, base_url):
        """GET /api/health over the wire."""
        response = httpx.get(f"{base_url}/api/health")

        assert response.status_code == 200
        assert response.json()["status"] == "OK"
        assert response.headers["x-content-type-options"] == "nosniff"
        assert response.headers["server"] == "splitstack"

    def test_keep_alive_reuses_connection(self, base_url):
        """Several requests over one client connection."""
        with httpx.Client(base_url=base_url) as client:
            statuses = [client.get("/api/health").status_code for _ in range(3)]

        assert statuses == [200, 200, 200]

    def test_post_and_list(self, base_url):
        """Data round trip through the API client."""
        config = ClientConfig(api_base_url=f"{base_url}/api")
        with ApiClient(config, MemoryCredentialStore("tok")) as api:
            created = api.post("/data", json={"name": "Widget"})
            listed = api.get("/data")

        assert created.status_code == 201
        assert listed.json()["data"] == [{"name": "Widget"}]

    def test_unknown_route(self, base_url):
        """404 body over the wire."""
        response = httpx.get(f"{base_url}/api/unknown")

        assert response.status_code == 404
        assert response.json() == {"error": "Route not found"}

    def test_head_has_no_body(self, base_url):
        """HEAD answers with headers only."""
        response = httpx.head(f"{base_url}/api/health")

        assert response.status_code == 200
        assert response.content == b""
        assert int(response.headers["content-length"]) > 0

    def test_malformed_request_line(self, live_server):
        """Garbage gets a hardened 400 and the connection closes."""
        reply = raw_exchange(live_server.address, b"NOT HTTP\r\n\r\n")

        assert reply.startswith(b"HTTP/1.1 400 Bad Request\r\n")
        assert b"X-Content-Type-Options: nosniff\r\n" in reply
        assert b"Connection: close\r\n" in reply

    def test_declared_body_too_large(self, live_server):
        """An oversized Content-Length is refused before the body is read."""
        size = live_server.config.max_request_size + 1
        reply = raw_exchange(
            live_server.address,
            b"POST /api/data HTTP/1.1\r\nHost: x\r\nContent-Type: application/json\r\n"
            + f"Content-Length: {size}\r\n\r\n".encode(),
        )

        assert reply.startswith(f"HTTP/1.1 {HTTPStatus.REQUEST_ENTITY_TOO_LARGE.value} ".encode())
        assert b'{"error": "Payload too large"}' in reply

    def test_chunked_post_refused(self, live_server):
        """A chunked body is never stored as an empty object."""
        reply = raw_exchange(
            live_server.address,
            b"POST /api/data HTTP/1.1\r\nHost: x\r\nContent-Type: application/json\r\n"
            b"Transfer-Encoding: chunked\r\n\r\n"
            b"c\r\n{\"name\":\"x\"}\r\n0\r\n\r\n",
        )

        assert reply.startswith(b"HTTP/1.1 501 Not Implemented\r\n")
        assert reply.count(b"HTTP/1.1 ") == 1
        assert live_server.app.data_store.list() == []


class TestLiveAdmission:
    """Admission control sees the same path the router does."""

    @pytest.fixture
    def limited_server(self, config):
        config.rate_limit_max = 2
        server = HTTPServer(create_app(config), config).start_background()
        yield server
        server.shutdown()

    def statuses(self, server, target: bytes, times: int):
        result = []
        for _ in range(times):
            reply = raw_exchange(
                server.address,
                b"GET " + target + b" HTTP/1.1\r\nHost: x\r\nConnection: close\r\n\r\n",
            )
            result.append(int(reply.split(b" ", 2)[1]))
        return result

    def test_encoded_slash_is_counted(self, limited_server):
        """'/%2Fapi/health' shares the quota of '/api/health'."""
        assert self.statuses(limited_server, b"/api/health", 2) == [200, 200]
        assert self.statuses(limited_server, b"/%2Fapi/health", 2) == [429, 429]
        assert self.statuses(limited_server, b"//api//health/", 1) == [429]

    def test_relative_target_is_rejected(self, limited_server):
        """A target without a leading slash never reaches a handler."""
        assert self.statuses(limited_server, b"api/health", 3) == [400, 400, 400]
