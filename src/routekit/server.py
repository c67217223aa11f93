"""
=============================================================================
HTTP SERVER
=============================================================================

Ties the networking core to a Router.

    ┌──────────────┐  Connection  ┌────────────┐  raw bytes  ┌───────────────┐
    │ SocketServer │ ───────────► │ ThreadPool │ ──────────► │ RequestParser │
    └──────────────┘              └────────────┘             └───────┬───────┘
                                                                     │ HTTPRequest
                                                                     ▼
    ┌──────────────┐  to_bytes()  ┌────────────────┐  dispatch ┌────────────┐
    │  Connection  │ ◄─────────── │ RouterResponse │ ◄──────── │   Router   │
    └──────────────┘              └────────────────┘           └────────────┘

One worker runs one connection's keep-alive loop. Each dispatch is given
``config.request_timeout`` seconds: the router runs on a helper thread and,
when that thread overruns, its response is cancelled (every later write
from the stuck handler raises RequestCancelledError) and the client gets
503 Service Unavailable instead. The same cancellation happens, without
an answer, when the client closes the connection before the handler
ends its response.

    router = Router()
    router.get("/hello", hello)
    HTTPServer(router, ServerConfig(port=8090)).run()

=============================================================================
"""

import logging
import time
import threading
from typing import List, Optional

from .config import ServerConfig
from .core import Connection, SocketServer, ThreadPool
from .errors import HandlerError, HTTPParseError
from .http import HTTPRequest, HTTPStatus, RequestParser, Router, RouterResponse, plain_response


logger = logging.getLogger(__name__)

# How often a running dispatch checks for a vanished client
DISCONNECT_POLL_INTERVAL = 0.05


class HTTPServer:
    """
    Threaded HTTP/1.1 server dispatching every request to a Router.

    Args:
        router: Routes to serve. An empty Router (everything 404s) when
                omitted.
        config: Server configuration, validated immediately.

    Raises:
        ValueError: If the configuration is invalid.
    """

    def __init__(self, router: Optional[Router] = None, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        self.router = router if router is not None else Router()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._running = False

    @property
    def address(self):
        """Bound (host, port) once listening."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self, host: Optional[str] = None, port: Optional[int] = None) -> None:
        """
        Serve until SIGINT/SIGTERM or stop(). Blocks.

        Raises:
            OSError: If the port cannot be bound.
        """
        if host:
            self.config.host = host
        if port is not None:
            self.config.port = port

        self._setup_logging()
        self._running = True
        self._thread_pool.start()

        logger.info(
            f"Starting {self.config.server_name} on {self.config.host}:{self.config.port} "
            f"({self.config.min_workers}-{self.config.max_workers} workers)"
        )
        for line in self.router.describe_routes():
            logger.info(f"  {line}")

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def stop(self) -> None:
        """Ask a running server to shut down; run() returns shortly after."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_ready(timeout)

    def _setup_logging(self) -> None:
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("routekit").setLevel(level)

    def _shutdown(self) -> None:
        logger.info("Shutting down server...")
        self._running = False
        self._thread_pool.shutdown(wait=True, timeout=self.config.keep_alive_timeout + 5.0)
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTIONS
    # =========================================================================

    def _handle_connection(self, conn: Connection) -> None:
        """Hand an accepted connection to the pool, or turn it away with 503."""
        submitted = self._thread_pool.submit(
            self._process_connection,
            conn,
            max_wait=self.config.timeout,
            block=False,
        )
        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_plain(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection) -> None:
        """Keep-alive loop for one connection (worker thread)."""
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                    if raw_request is None:
                        break

                    request = self._parser.parse(raw_request, conn.address)

                except HTTPParseError as e:
                    logger.info(f"[{conn.id}] Bad request: {e}")
                    self._send_plain(conn, e.status_code, str(e))
                    break
                except TimeoutError:
                    self._send_plain(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                    break

                response = self._dispatch(conn, request)
                if response is None:
                    logger.info(f"[{conn.id}] Client went away during {request.method} {request.path}")
                    break

                keep_alive = request.is_keep_alive and self.config.keep_alive
                if not conn.send_response(self._serialize(request, response, keep_alive)):
                    break

                if not keep_alive:
                    break
                conn.set_keep_alive()

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def _dispatch(self, conn: Connection, request: HTTPRequest) -> Optional[RouterResponse]:
        """
        Run the router with the per-request time limit.

        The router runs on a helper thread while this one watches the clock
        and the socket. Returns an ended response: the router's, a 503 when
        the limit expired, or a 500 when dispatch raised. Returns None when
        the client closed the connection first; the response is cancelled
        and there is nobody left to answer.
        """
        response = self.router.create_response()
        failure: List[BaseException] = []

        def target():
            try:
                self.router.dispatch(request, response)
            except Exception as e:
                failure.append(e)

        timeout = self.config.request_timeout
        deadline = time.monotonic() + timeout if timeout is not None else None

        worker = threading.Thread(
            target=target,
            name=f"dispatch-{conn.id}",
            daemon=True,
        )
        worker.start()

        while True:
            worker.join(DISCONNECT_POLL_INTERVAL)
            if not worker.is_alive():
                break

            if conn.peer_closed():
                response.cancel()
                return None

            if deadline is not None and time.monotonic() >= deadline:
                response.cancel()
                logger.warning(
                    f"[{conn.id}] {request.method} {request.path} exceeded "
                    f"{timeout}s, answering 503"
                )
                return plain_response(HTTPStatus.SERVICE_UNAVAILABLE, "Request timed out")

        if failure:
            logger.error(
                f"[{conn.id}] Dispatch of {request.method} {request.path} failed: {failure[0]!r}"
            )
            return plain_response(HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error")

        if not response.sent:
            # Router configured without its finalize step
            try:
                response.end()
            except HandlerError as e:
                logger.error(f"[{conn.id}] Could not end response: {e}")
                return plain_response(HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error")

        return response

    def _serialize(self, request: HTTPRequest, response: RouterResponse, keep_alive: bool) -> bytes:
        if keep_alive:
            extra = {
                "Connection": "keep-alive",
                "Keep-Alive": f"timeout={int(self.config.keep_alive_timeout)}",
            }
        else:
            extra = {"Connection": "close"}

        data = response.to_bytes(self.config.server_name, extra_headers=extra)
        if request.method == "HEAD":
            data = data[:data.find(b"\r\n\r\n") + 4]
        return data

    def _send_plain(self, conn: Connection, status: int, message: str) -> None:
        response = plain_response(status, message)
        conn.send_response(
            response.to_bytes(self.config.server_name, extra_headers={"Connection": "close"})
        )


def create_server(router: Optional[Router] = None, config: Optional[ServerConfig] = None) -> HTTPServer:
    """Factory kept for symmetry with ``routekit.sample.create_router``."""
    return HTTPServer(router, config)
