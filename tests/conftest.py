"""
pytest configuration and fixtures.
"""

import socket
import threading
from typing import Callable, Dict, Generator, Optional, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from routekit import HTTPServer, NameStore, ServerConfig
from routekit.http import Router
from routekit.sample import create_router


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /users/alice?tab=posts&tab=likes HTTP/1.1\r\n"
        b"Host: localhost:8090\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: text/html\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a text body."""
    body = b"Alice"
    return (
        b"POST /hello HTTP/1.1\r\n"
        b"Host: localhost:8090\r\n"
        b"Content-Type: text/plain\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let the OS pick a free port
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        request_timeout=5.0,
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def store() -> NameStore:
    return NameStore()


@pytest.fixture
def sample_router(store: NameStore) -> Router:
    """The sample application wired to a fresh NameStore."""
    return create_router(store=store)


# =============================================================================
# LIVE SERVER
# =============================================================================

class RawResponse:
    """A response read off the socket."""

    def __init__(self, raw: bytes):
        head, _, self.body = raw.partition(b"\r\n\r\n")
        lines = head.decode("latin-1").split("\r\n")
        self.status_line = lines[0]
        self.status = int(lines[0].split(" ")[1])
        self.headers: Dict[str, str] = {}
        for line in lines[1:]:
            name, _, value = line.partition(":")
            self.headers[name.strip().lower()] = value.strip()

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")


class LiveServer:
    """Server helper that runs in a background thread."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> Tuple[str, int]:
        return self.server.address

    def start(self):
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()
        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.stop()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)

    def send_raw(self, data: bytes, timeout: float = 5.0) -> bytes:
        """Send bytes and read until the server closes the connection."""
        with socket.create_connection(self.address, timeout=timeout) as sock:
            sock.sendall(data)
            chunks = []
            while True:
                chunk = sock.recv(65536)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)

    def send_parsed(self, data: bytes, timeout: float = 5.0) -> RawResponse:
        return RawResponse(self.send_raw(data, timeout=timeout))

    def request(
        self,
        method: str,
        path: str,
        body: bytes = b"",
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 5.0,
    ) -> RawResponse:
        lines = [f"{method} {path} HTTP/1.1", f"Host: {self.address[0]}", "Connection: close"]
        for name, value in (headers or {}).items():
            lines.append(f"{name}: {value}")
        if body:
            lines.append(f"Content-Length: {len(body)}")
        data = ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1") + body
        return RawResponse(self.send_raw(data, timeout=timeout))


@pytest.fixture
def live_server(config: ServerConfig, sample_router: Router) -> Generator[LiveServer, None, None]:
    """The sample application served on an OS-assigned port."""
    srv = LiveServer(HTTPServer(sample_router, config))
    srv.start()

    yield srv

    srv.stop()


@pytest.fixture
def serve(config: ServerConfig) -> Generator[Callable[[Router], LiveServer], None, None]:
    """Start a LiveServer for any router; every server started is stopped."""
    started = []

    def _serve(router: Router) -> LiveServer:
        srv = LiveServer(HTTPServer(router, config))
        srv.start()
        started.append(srv)
        return srv

    yield _serve

    for srv in started:
        srv.stop()
