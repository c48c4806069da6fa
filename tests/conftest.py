"""
pytest configuration and fixtures.
"""

import threading
from typing import Generator, Optional

import httpx
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from userapi import HTTPServer, ServerConfig, create_app
from userapi.api import UserApi, UserStore
from userapi.http import HTTPRequest, Router, parse_request


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /users?page=1&limit=10 HTTP/1.1\r\n"
        b"Host: localhost:3000\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = '{"name": "Ana", "email": "ana@x.com"}'.encode()
    return (
        b"POST /users HTTP/1.1\r\n"
        b"Host: localhost:3000\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def config() -> ServerConfig:
    """Test server configuration on an OS-assigned port."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        keep_alive_timeout=1.0,
        log_level="WARNING",
    )


# ─────────────────────────────────────────────────────────────────────────
# In-process API (no sockets)
# ─────────────────────────────────────────────────────────────────────────

@pytest.fixture
def store() -> UserStore:
    return UserStore.seeded()


@pytest.fixture
def api(store: UserStore) -> UserApi:
    return UserApi(store, server_name="UserApiServer", version="1.0.0")


@pytest.fixture
def router(api: UserApi) -> Router:
    return api.register(Router())


def make_request(method: str, path: str, body: bytes = b"", headers: Optional[dict] = None) -> HTTPRequest:
    """Build an HTTPRequest by parsing a raw request, as the server would."""
    lines = [f"{method} {path} HTTP/1.1", "Host: localhost"]
    for name, value in (headers or {}).items():
        lines.append(f"{name}: {value}")
    if body:
        lines.append(f"Content-Length: {len(body)}")
    raw = ("\r\n".join(lines) + "\r\n\r\n").encode() + body
    return parse_request(raw, ("127.0.0.1", 50000))


@pytest.fixture
def request_factory():
    return make_request


# ─────────────────────────────────────────────────────────────────────────
# Real server on a background thread
# ─────────────────────────────────────────────────────────────────────────

class TestServer:
    """Runs an HTTPServer on a daemon thread for the duration of a test."""

    __test__ = False  # not a test class

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def url(self) -> str:
        return self.server.url

    def start(self):
        self._thread = threading.Thread(
            target=self.server.run,
            kwargs={"setup_logging": False},
            daemon=True,
        )
        self._thread.start()
        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.stop()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)


@pytest.fixture
def test_server(config: ServerConfig) -> Generator[TestServer, None, None]:
    """The full user API listening on a free port."""
    srv = TestServer(create_app(config))
    srv.start()
    yield srv
    srv.stop()


@pytest.fixture
def client(test_server: TestServer) -> Generator[httpx.Client, None, None]:
    with httpx.Client(base_url=test_server.url, timeout=5.0) as c:
        yield c
