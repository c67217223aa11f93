"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

Logs one line per request once its response is ended.

=============================================================================
WHEN THE LINE IS WRITTEN
=============================================================================

With continuation-style handlers the status and body are not known when
``next()`` returns: the error handlers, the fallback and the router's
finalize step all run after the route chains unwind. So the middleware
registers an end listener and writes the line from there:

    LoggingMiddleware.handle()
        │  request_id, start time, X-Request-ID header
        │  response.on_end(write_log)
        └─ next() ──► ... handlers ... ──► response.end()
                                                │
                                                └─► write_log(response)
                                                    status, size, duration

Register it first so it sees every request:

    router.all(LoggingMiddleware())
    router.all(BasicAuthMiddleware())

=============================================================================
"""

from dataclasses import dataclass
from typing import Optional
import json
import logging
import time
import uuid

from ..http.request import HTTPRequest
from ..http.response import RouterResponse
from .base import Continuation, RouterMiddleware


# Namespaced so deployments can route access logs separately:
#   logging.getLogger("routekit.access").addHandler(file_handler)
logger = logging.getLogger("routekit.access")


@dataclass
class RequestLog:
    """
    Structured access log entry.

    request_id:     Unique ID, echoed in the X-Request-ID header
    method:         HTTP method
    path:           Request path
    client_ip:      Peer address
    user_agent:     User-Agent header, "-" if missing
    status_code:    Final status
    content_length: Response body size in bytes
    duration_ms:    Time from middleware entry to end()
    timestamp:      Apache-style time of the request
    """

    request_id: str
    method: str
    path: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "method": self.method,
            "path": self.path,
            "client_ip": self.client_ip,
            "user_agent": self.user_agent,
            "status_code": self.status_code,
            "content_length": self.content_length,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        """Apache common-log style line."""
        return (
            f'{self.client_ip or "-"} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(RouterMiddleware):
    """
    Request logging middleware.

    Args:
        log_format: "text" (Apache style) or "json".
        include_request_id: Add an X-Request-ID header to the response.
        log_level: Level used for access lines.
        skip_paths: Paths that are never logged.
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[list] = None,
    ):
        if log_format not in ("text", "json"):
            raise ValueError(f"Unknown log format: {log_format}")
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def handle(self, request: HTTPRequest, response: RouterResponse, next: Continuation) -> None:
        request_id = str(uuid.uuid4())[:8]
        start_time = time.time()

        if self.include_request_id:
            response.headers["X-Request-ID"] = request_id

        if request.path not in self.skip_paths:
            response.on_end(
                lambda finished: self._write(request, finished, request_id, start_time)
            )

        next()

    def _write(
        self,
        request: HTTPRequest,
        response: RouterResponse,
        request_id: str,
        start_time: float,
    ) -> None:
        entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            client_ip=request.client_address[0],
            user_agent=request.user_agent or "-",
            status_code=response.status_code or 200,
            content_length=len(response.body),
            duration_ms=(time.time() - start_time) * 1000,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())
